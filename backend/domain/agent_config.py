"""
Agent descriptor data structure.

One descriptor per agent replaces separate provider/model/prompt maps
keyed by the same id.
"""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class AgentDescriptor:
    """
    Configuration of a single agent, immutable for the lifetime of a session.

    Attributes:
        agent_id: Unique agent id
        display_name: Name shown in the conversation and used as speaker label
        provider_id: AgentClient provider that serves this agent
        model: Provider model name
        system_prompt: System prompt sent with every request
    """

    agent_id: str
    display_name: str
    provider_id: str = ""
    model: str = ""
    system_prompt: str = ""

    def is_configured(self) -> bool:
        """
        Check whether the agent can be invoked.

        Returns:
            True if both provider and model are set, False otherwise
        """
        return bool(self.provider_id and self.provider_id.strip() and self.model and self.model.strip())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentDescriptor":
        """
        Build a descriptor from a plain mapping.

        Accepts both snake_case keys and the camelCase keys used by
        session files written by other clients.
        """
        agent_id = data.get("agent_id") or data.get("agentId") or data.get("id")
        if not agent_id:
            raise ValueError("Agent descriptor requires an id")
        return cls(
            agent_id=str(agent_id),
            display_name=data.get("display_name") or data.get("displayName") or data.get("name") or str(agent_id),
            provider_id=data.get("provider_id") or data.get("providerId") or "",
            model=data.get("model") or "",
            system_prompt=data.get("system_prompt") or data.get("systemPrompt") or "",
        )

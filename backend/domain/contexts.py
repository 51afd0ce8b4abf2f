"""
Context data structures passed to orchestration listeners.
"""

from dataclasses import dataclass
from typing import Optional

from .outcomes import Completed, Failed, Outcome


@dataclass(frozen=True)
class TurnEvent:
    """
    Notification that one agent invocation reached its terminal outcome.

    Failures are delivered here as non-fatal events instead of being raised.

    Attributes:
        agent_id: Agent that was invoked
        agent_name: Display name of the agent
        outcome: Completed or Failed
        is_retry: True when the invocation regenerated a past message
        message_index: Log index of the message produced, if any
    """

    agent_id: str
    agent_name: str
    outcome: Outcome
    is_retry: bool = False
    message_index: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return isinstance(self.outcome, Completed)

    @property
    def error(self) -> Optional[str]:
        if isinstance(self.outcome, Failed):
            return f"{self.outcome.kind}: {self.outcome.reason}"
        return None

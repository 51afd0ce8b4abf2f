"""
Conversation message record.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime

from utils.serializers import utc_now

from .enums import EntryKind, MessageRole


def _new_message_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Message:
    """
    One entry of the conversation log.

    Messages are immutable values. A streaming placeholder is "updated" by
    swapping in a new Message with the same message_id, so a history
    snapshot taken earlier keeps the content it saw.

    Attributes:
        role: USER for human and director entries, AGENT for agent replies
        agent_id: Author id (agent id, "user", or a director id)
        agent_name: Display name of the author
        content: Message text
        timestamp: Creation time (UTC)
        kind: SPEECH, COMMAND, or NARRATION
        message_id: Stable identity of this log entry
        is_open: True while this is an in-progress streaming placeholder
    """

    role: MessageRole
    agent_id: str
    agent_name: str
    content: str
    timestamp: datetime = field(default_factory=utc_now)
    kind: EntryKind = EntryKind.SPEECH
    message_id: str = field(default_factory=_new_message_id)
    is_open: bool = False

    @classmethod
    def placeholder(cls, agent_id: str, agent_name: str) -> "Message":
        """Create an empty open placeholder for a streaming agent turn."""
        return cls(role=MessageRole.AGENT, agent_id=agent_id, agent_name=agent_name, content="", is_open=True)

    def with_fragment(self, text: str) -> "Message":
        return replace(self, content=self.content + text)

    def closed(self) -> "Message":
        return replace(self, is_open=False)

    @property
    def is_agent(self) -> bool:
        return self.role == MessageRole.AGENT

"""
Serialized forms of session state.
"""

from datetime import datetime
from typing import List, Optional

from domain.agent_config import AgentDescriptor
from domain.enums import EntryKind, MessageRole, TurnPolicy
from domain.messages import Message
from domain.session_ids import SESSION_ID_PATTERN
from pydantic import BaseModel, field_serializer, field_validator, model_validator
from utils.serializers import serialize_utc_datetime as _serialize_utc_datetime


class MessageSchema(BaseModel):
    role: MessageRole
    agent_id: str
    agent_name: str
    content: str
    timestamp: datetime
    kind: EntryKind = EntryKind.SPEECH
    message_id: Optional[str] = None

    @field_serializer("timestamp")
    def serialize_timestamp(self, dt: datetime, _info):
        return _serialize_utc_datetime(dt)

    @classmethod
    def from_message(cls, message: Message) -> "MessageSchema":
        return cls(
            role=message.role,
            agent_id=message.agent_id,
            agent_name=message.agent_name,
            content=message.content,
            timestamp=message.timestamp,
            kind=message.kind,
            message_id=message.message_id,
        )

    def to_message(self) -> Message:
        """Restored messages are always closed."""
        fields = dict(
            role=self.role,
            agent_id=self.agent_id,
            agent_name=self.agent_name,
            content=self.content,
            timestamp=_serialize_utc_datetime(self.timestamp),
            kind=self.kind,
        )
        if self.message_id:
            fields["message_id"] = self.message_id
        return Message(**fields)


class AgentDescriptorSchema(BaseModel):
    agent_id: str
    display_name: str
    provider_id: str = ""
    model: str = ""
    system_prompt: str = ""

    @classmethod
    def from_descriptor(cls, agent: AgentDescriptor) -> "AgentDescriptorSchema":
        return cls(
            agent_id=agent.agent_id,
            display_name=agent.display_name,
            provider_id=agent.provider_id,
            model=agent.model,
            system_prompt=agent.system_prompt,
        )

    def to_descriptor(self) -> AgentDescriptor:
        return AgentDescriptor(
            agent_id=self.agent_id,
            display_name=self.display_name,
            provider_id=self.provider_id,
            model=self.model,
            system_prompt=self.system_prompt,
        )


class SessionSnapshot(BaseModel):
    """
    Everything needed to redraw a conversation and configure future turns.

    Per-turn state (loading flags, locks, responded set) is never included,
    so a restored session always starts idle.
    """

    session_id: str
    agents: List[AgentDescriptorSchema] = []
    messages: List[MessageSchema] = []
    policy: TurnPolicy = TurnPolicy.BROADCAST
    selection: List[str] = []
    streaming_enabled: bool = True
    user_name: str = "User"
    created_at: Optional[datetime] = None
    saved_at: Optional[datetime] = None

    @field_validator("session_id")
    @classmethod
    def validate_session_id(cls, v: str) -> str:
        if not SESSION_ID_PATTERN.match(v):
            raise ValueError(f"Invalid session id: {v!r}")
        return v

    @model_validator(mode="after")
    def dedupe_selection(self):
        """Keep the first occurrence of each selected id."""
        self.selection = list(dict.fromkeys(self.selection))
        return self

    @field_serializer("created_at")
    def serialize_created_at(self, dt: Optional[datetime], _info):
        return _serialize_utc_datetime(dt)

    @field_serializer("saved_at")
    def serialize_saved_at(self, dt: Optional[datetime], _info):
        return _serialize_utc_datetime(dt)

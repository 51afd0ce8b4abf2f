"""
Domain enums for type-safe constants.
"""

from enum import Enum


class MessageRole(str, Enum):
    """Who authored a conversation entry."""

    USER = "user"
    AGENT = "agent"

    def __str__(self) -> str:
        return self.value


class EntryKind(str, Enum):
    """What a conversation entry represents."""

    SPEECH = "speech"
    COMMAND = "command"  # Director command addressed to specific agents
    NARRATION = "narration"  # Director narration addressed to everyone

    def __str__(self) -> str:
        return self.value


class TurnPolicy(str, Enum):
    """How selected agents take turns."""

    BROADCAST = "broadcast"
    SEQUENTIAL = "sequential"

    def __str__(self) -> str:
        return self.value


class FailureKind(str, Enum):
    """Terminal failure categories of a single agent invocation."""

    MISCONFIGURED = "misconfigured"
    PROVIDER_ERROR = "provider_error"
    STREAM_START_FAILURE = "stream_start_failure"

    def __str__(self) -> str:
        return self.value

"""
Domain layer for internal business logic data structures.

This package contains the dataclasses and enums shared by the
orchestration, SDK and persistence layers.
"""

from .agent_config import AgentDescriptor
from .contexts import TurnEvent
from .enums import EntryKind, FailureKind, MessageRole, TurnPolicy
from .messages import Message
from .outcomes import Completed, Failed, Outcome
from .turn import TurnSelection, TurnState

__all__ = [
    "AgentDescriptor",
    "Completed",
    "EntryKind",
    "Failed",
    "FailureKind",
    "Message",
    "MessageRole",
    "Outcome",
    "TurnEvent",
    "TurnPolicy",
    "TurnSelection",
    "TurnState",
]

"""
Turn orchestration for multi-agent conversations.

This module provides the shared conversation log, single-agent
invocation, turn coordination under the broadcast and sequential
policies, director entries, and session snapshots.
"""

from .context import build_chat_request
from .conversation_log import ConversationLog, LogChange
from .coordinator import TurnCoordinator
from .director import DirectorExtension
from .invoker import AgentInvoker
from .snapshotter import RestoredSession, SessionSnapshotter, capture_session, restore_session

__all__ = [
    "AgentInvoker",
    "ConversationLog",
    "DirectorExtension",
    "LogChange",
    "RestoredSession",
    "SessionSnapshotter",
    "TurnCoordinator",
    "build_chat_request",
    "capture_session",
    "restore_session",
]

"""
Provider client boundary for agent invocations.

This module provides the AgentClient contract, the shared streaming base
class, and the Claude Agent SDK adapter.
"""

from .claude_client import ClaudeAgentClient
from .client import AgentClient, ChatRequest, ChunkCallback, GenerateResult, StreamChunk, StreamStart, Subscription
from .streaming import StreamingAgentClient

__all__ = [
    "AgentClient",
    "ChatRequest",
    "ChunkCallback",
    "ClaudeAgentClient",
    "GenerateResult",
    "StreamChunk",
    "StreamStart",
    "StreamingAgentClient",
    "Subscription",
]

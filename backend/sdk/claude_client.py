"""
AgentClient adapter backed by the Claude Agent SDK.

Each invocation opens a fresh ClaudeSDKClient because the request
carries the complete conversation history; there is no SDK-side session
to resume. A semaphore caps how many CLI processes run at once.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Iterable, List, Optional

from claude_agent_sdk import ClaudeAgentOptions, ClaudeSDKClient
from core.settings import get_settings

from .client import ChatRequest
from .streaming import StreamingAgentClient

logger = logging.getLogger("ClaudeAgentClient")


class ClaudeProviderError(Exception):
    """The SDK reported an error result."""


def build_prompt(request: ChatRequest) -> str:
    """
    Flatten the provider history into a single transcript prompt.

    Entries are already speaker-labelled, so they are joined in order.
    """
    return "\n\n".join(entry["content"] for entry in request.messages if entry.get("content"))


def _block_texts(message: Any) -> List[str]:
    """Text of every text block in an assistant message."""
    content = getattr(message, "content", None)
    if not isinstance(content, list):
        return []
    return [block.text for block in content if isinstance(getattr(block, "text", None), str)]


def _text_delta(message: Any) -> Optional[str]:
    """Text of a partial stream event, if it is a text delta."""
    event = getattr(message, "event", None)
    if not isinstance(event, dict) or event.get("type") != "content_block_delta":
        return None
    delta = event.get("delta") or {}
    if delta.get("type") != "text_delta":
        return None
    return delta.get("text", "")


def _raise_on_error_result(message: Any) -> None:
    if getattr(message, "is_error", False) is True:
        raise ClaudeProviderError(getattr(message, "result", None) or "Claude returned an error result")


class ClaudeAgentClient(StreamingAgentClient):
    """Serves the configured provider ids with claude_agent_sdk."""

    MAX_CONCURRENT_CONNECTIONS = 10

    def __init__(self, provider_ids: Optional[Iterable[str]] = None, max_turns: Optional[int] = None):
        super().__init__()
        settings = get_settings()
        self.provider_ids = set(provider_ids) if provider_ids is not None else set(settings.get_claude_provider_ids())
        self.max_turns = max_turns if max_turns is not None else settings.claude_max_turns
        self._connection_semaphore = asyncio.Semaphore(self.MAX_CONCURRENT_CONNECTIONS)

    def supports(self, provider_id: str) -> bool:
        return provider_id in self.provider_ids

    def build_options(self, request: ChatRequest, stream: bool) -> ClaudeAgentOptions:
        return ClaudeAgentOptions(
            model=request.model,
            system_prompt=request.system_prompt,
            max_turns=self.max_turns,
            allowed_tools=[],
            setting_sources=[],
            include_partial_messages=stream,
        )

    async def _iter_messages(self, request: ChatRequest, stream: bool) -> AsyncIterator[Any]:
        options = self.build_options(request, stream)
        async with self._connection_semaphore:
            client = ClaudeSDKClient(options=options)
            await client.connect()
            try:
                await client.query(build_prompt(request))
                async for message in client.receive_response():
                    yield message
            finally:
                await client.disconnect()

    async def _complete(self, provider_id: str, request: ChatRequest) -> str:
        parts: List[str] = []
        async for message in self._iter_messages(request, stream=False):
            _raise_on_error_result(message)
            parts.extend(_block_texts(message))
        return "".join(parts)

    async def _stream_text(self, provider_id: str, request: ChatRequest) -> AsyncIterator[str]:
        streamed_any = False
        async for message in self._iter_messages(request, stream=True):
            _raise_on_error_result(message)

            delta = _text_delta(message)
            if delta is not None:
                streamed_any = True
                yield delta
                continue

            # Complete assistant messages repeat the deltas; use them only
            # when the SDK sent no partial events.
            if not streamed_any:
                for text in _block_texts(message):
                    yield text

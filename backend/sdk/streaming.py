"""
Base class for AgentClients that produce text from async iterators.

Subclasses implement ``supports``, ``_complete`` and ``_stream_text``.
This class turns them into the AgentClient contract: errors become
``GenerateResult(error=...)`` and each stream runs as a background task
that publishes chunks to every subscriber, finishing with a done chunk
(or an error chunk that is also marked done).
"""

import asyncio
import logging
from typing import AsyncIterator, List

from .client import ChatRequest, ChunkCallback, GenerateResult, StreamChunk, StreamStart, Subscription

logger = logging.getLogger("StreamingAgentClient")


class StreamingAgentClient:
    """Subscription channel and stream pumping shared by provider adapters."""

    # Timeout for cancelling outstanding streams on shutdown (seconds)
    SHUTDOWN_TIMEOUT = 5.0

    def __init__(self):
        self._subscribers: List[ChunkCallback] = []
        self._stream_tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Provider hooks
    # ------------------------------------------------------------------

    def supports(self, provider_id: str) -> bool:
        raise NotImplementedError

    async def _complete(self, provider_id: str, request: ChatRequest) -> str:
        raise NotImplementedError

    def _stream_text(self, provider_id: str, request: ChatRequest) -> AsyncIterator[str]:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # AgentClient contract
    # ------------------------------------------------------------------

    def subscribe(self, callback: ChunkCallback) -> Subscription:
        self._subscribers.append(callback)

        def _remove():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return Subscription(_remove)

    async def generate(self, provider_id: str, request: ChatRequest) -> GenerateResult:
        if not self.supports(provider_id):
            return GenerateResult(error=f"Unknown provider: {provider_id}")

        try:
            content = await self._complete(provider_id, request)
        except Exception as e:
            logger.error(f"❌ Provider {provider_id} call failed: {e}")
            return GenerateResult(error=str(e) or e.__class__.__name__)

        return GenerateResult(content=content)

    async def generate_stream(self, provider_id: str, request: ChatRequest, source_id: str) -> StreamStart:
        if not self.supports(provider_id):
            return StreamStart(started=False, error=f"Unknown provider: {provider_id}")

        task = asyncio.create_task(self._pump(source_id, provider_id, request))
        self._stream_tasks.add(task)
        task.add_done_callback(self._stream_tasks.discard)
        logger.debug(f"📡 Stream started | source={source_id} provider={provider_id}")
        return StreamStart(started=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _emit(self, chunk: StreamChunk) -> None:
        for callback in list(self._subscribers):
            try:
                callback(chunk)
            except Exception:
                logger.exception(f"Chunk subscriber failed for source {chunk.source_id}")

    async def _pump(self, source_id: str, provider_id: str, request: ChatRequest) -> None:
        try:
            async for text in self._stream_text(provider_id, request):
                if text:
                    self._emit(StreamChunk(source_id=source_id, text=text))
        except asyncio.CancelledError:
            self._emit(StreamChunk(source_id=source_id, error="stream cancelled", done=True))
            raise
        except Exception as e:
            logger.error(f"❌ Stream {source_id} failed: {e}")
            self._emit(StreamChunk(source_id=source_id, error=str(e) or e.__class__.__name__, done=True))
            return

        self._emit(StreamChunk(source_id=source_id, done=True))

    @property
    def active_stream_count(self) -> int:
        return len(self._stream_tasks)

    async def shutdown(self, timeout: float = SHUTDOWN_TIMEOUT) -> None:
        """Cancel outstanding streams and wait for them to finish."""
        tasks = list(self._stream_tasks)
        if not tasks:
            return

        logger.info(f"🛑 Cancelling {len(tasks)} active stream(s)")
        for task in tasks:
            task.cancel()

        done, pending = await asyncio.wait(tasks, timeout=timeout)
        if pending:
            logger.warning(f"⚠️  {len(pending)} stream(s) did not stop within {timeout}s")

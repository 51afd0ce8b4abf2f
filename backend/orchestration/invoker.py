"""
Lifecycle of a single agent invocation.

An AgentInvoker builds the request from a history snapshot, calls the
AgentClient, folds the reply into the ConversationLog, and reports one
terminal outcome to its TurnCoordinator. Every terminal path (misconfigured
agent, stream start failure, stream error chunk, stream done chunk,
exception while calling the provider) goes through ``terminal``, which
acts only on its first call.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import TYPE_CHECKING, Iterable, Optional

from domain.agent_config import AgentDescriptor
from domain.enums import FailureKind, MessageRole
from domain.messages import Message
from domain.outcomes import Completed, Failed, Outcome
from sdk.client import ChatRequest, StreamChunk

from .context import build_chat_request

if TYPE_CHECKING:
    from .conversation_log import ConversationLog
    from .coordinator import TurnCoordinator

logger = logging.getLogger("AgentInvoker")

EMPTY_RESPONSE = "empty response"


def new_source_id(agent_id: str) -> str:
    """Stream routing id, unique per invocation."""
    return f"{agent_id}#{uuid.uuid4().hex[:12]}"


class AgentInvoker:
    """
    One agent's turn.

    Attributes:
        agent: Agent being invoked
        history: Value snapshot of the log taken when the invocation was created
        streaming: Whether the reply is requested as a stream
        retry_index: Log index being regenerated, or None for a normal turn
        source_id: Routing id of stream chunks for this invocation
        placeholder_id: message_id of the streaming placeholder, if any
        message_index: Log index of the reply after a successful append/replace
        outcome: Terminal outcome once finished
    """

    def __init__(
        self,
        coordinator: "TurnCoordinator",
        agent: AgentDescriptor,
        history: Iterable[Message],
        streaming: bool,
        retry_index: Optional[int] = None,
    ):
        self.coordinator = coordinator
        self.agent = agent
        self.history = tuple(history)
        self.streaming = streaming
        self.retry_index = retry_index
        self.source_id = new_source_id(agent.agent_id)
        self.placeholder_id: Optional[str] = None
        self.message_index: Optional[int] = None
        self.outcome: Optional[Outcome] = None
        self._finished = False
        self._finished_event = asyncio.Event()

    @property
    def log(self) -> "ConversationLog":
        return self.coordinator.log

    @property
    def finished(self) -> bool:
        return self._finished

    async def run(self) -> Outcome:
        """Invoke the agent and wait for its terminal outcome."""
        if not self.agent.is_configured():
            self.terminal(
                Failed(
                    FailureKind.MISCONFIGURED,
                    f"Agent {self.agent.display_name} has no provider or model configured",
                )
            )
            return self.outcome

        logger.info(f"🤖 Invoking {self.agent.display_name} | stream={self.streaming} history={len(self.history)}")

        try:
            request = build_chat_request(self.agent, self.history)
            if self.streaming:
                await self._run_streaming(request)
            else:
                await self._run_once(request)
        except Exception as e:
            logger.error(f"❌ Agent {self.agent.display_name} invocation error: {e}")
            self.terminal(Failed(FailureKind.PROVIDER_ERROR, str(e) or e.__class__.__name__))

        return await self.wait()

    async def wait(self) -> Outcome:
        await self._finished_event.wait()
        return self.outcome

    async def _run_once(self, request: ChatRequest) -> None:
        result = await self.coordinator.client.generate(self.agent.provider_id, request)

        if not result.ok:
            self.terminal(Failed(FailureKind.PROVIDER_ERROR, result.error or "provider returned no content"))
            return

        content = result.content.strip()
        if not content:
            self.terminal(Failed(FailureKind.PROVIDER_ERROR, EMPTY_RESPONSE))
            return

        reply = Message(
            role=MessageRole.AGENT,
            agent_id=self.agent.agent_id,
            agent_name=self.agent.display_name,
            content=content,
        )
        self.message_index = self._place_reply(reply)
        self.terminal(Completed(content))

    def _place_reply(self, reply: Message) -> int:
        """Append the reply, or replace the retried message in place."""
        index = self.retry_index
        if index is not None and index < len(self.log):
            current = self.log[index]
            if current.is_agent and current.agent_id == self.agent.agent_id:
                self.log.replace(index, reply)
                return index
            logger.warning(f"⚠️  Retried message at {index} changed owner, appending reply instead")
        return self.log.append(reply)

    async def _run_streaming(self, request: ChatRequest) -> None:
        placeholder = self.log.open_placeholder(self.agent.agent_id, self.agent.display_name)
        self.placeholder_id = placeholder.message_id

        start = await self.coordinator.client.generate_stream(self.agent.provider_id, request, self.source_id)
        if not start.started:
            self.terminal(Failed(FailureKind.STREAM_START_FAILURE, start.error or "stream could not be started"))

    def on_chunk(self, chunk: StreamChunk) -> None:
        """Fold one stream chunk into the log."""
        if self._finished:
            logger.debug(f"Ignoring chunk for finished invocation {self.source_id}")
            return

        if chunk.text:
            self._append_fragment(chunk.text)

        if chunk.error:
            self.terminal(Failed(FailureKind.PROVIDER_ERROR, chunk.error))
            return

        if chunk.done:
            message = self.log.get(self.placeholder_id) if self.placeholder_id else None
            if message is not None and message.content:
                self.terminal(Completed(message.content))
            else:
                self.terminal(Failed(FailureKind.PROVIDER_ERROR, EMPTY_RESPONSE))

    def _append_fragment(self, text: str) -> None:
        updated = self.log.append_fragment(self.placeholder_id, text) if self.placeholder_id else None
        if updated is None:
            # Placeholder is gone; reopen one carrying this fragment
            placeholder = self.log.open_placeholder(self.agent.agent_id, self.agent.display_name)
            self.placeholder_id = placeholder.message_id
            self.log.append_fragment(self.placeholder_id, text)

    def terminal(self, outcome: Outcome) -> bool:
        """
        Record the terminal outcome of this invocation.

        Only the first call has any effect; later calls are logged no-ops.

        Returns:
            True if this call finished the invocation
        """
        if self._finished:
            logger.debug(f"🔁 Duplicate terminal signal for {self.source_id} suppressed ({outcome})")
            return False

        self._finished = True
        self.outcome = outcome

        if self.placeholder_id is not None:
            if not self.log.discard_if_empty(self.placeholder_id):
                self.log.close(self.placeholder_id)
                self.message_index = self.log.index_of(self.placeholder_id)

        self._finished_event.set()
        self.coordinator._on_invocation_finished(self, outcome)
        return True

"""
Turn coordinator for multi-agent conversations.

Decides which agents are invoked for each new conversational event and
when. Under the broadcast policy every selected agent is invoked at once
with the same history snapshot. Under the sequential policy agents are
invoked one at a time in selection order, each seeing the replies of
those before it.

The coordinator owns all per-turn state (TurnState). Invocations report
back through ``_on_invocation_finished``, which releases the agent's lock
and, for sequential turns, queues one deferred "who is next" pass. Any
number of completion paths hitting that queue before the pass runs are
coalesced into it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional, Sequence

from core.settings import USER_AGENT_ID, get_settings
from domain.agent_config import AgentDescriptor
from domain.contexts import TurnEvent
from domain.enums import FailureKind, MessageRole, TurnPolicy
from domain.exceptions import (
    EmptyContentError,
    EmptySelectionError,
    RetryNotSupportedError,
    TurnInProgressError,
    UnknownAgentError,
)
from domain.messages import Message
from domain.outcomes import Failed, Outcome
from domain.turn import TurnSelection, TurnState
from sdk.client import AgentClient, StreamChunk, Subscription

from .conversation_log import ConversationLog
from .invoker import AgentInvoker

if TYPE_CHECKING:
    import schemas

    from .snapshotter import SessionSnapshotter

logger = logging.getLogger("TurnCoordinator")

TurnListener = Callable[[TurnEvent], None]

SESSION_CLOSED = "session closed"


class TurnCoordinator:
    """
    Runs turns over a shared ConversationLog.

    Args:
        client: Provider client used for every invocation
        agents: Agents taking part in this session
        log: Existing conversation log (a new empty one by default)
        policy: Turn policy (DEFAULT_TURN_POLICY setting by default)
        selection: Agents targeted by user messages, in order
        streaming_enabled: Request streamed replies (STREAMING_ENABLED setting by default)
        advance_delay: Delay of the deferred next-agent pass in seconds
        snapshotter: Receives a snapshot after every completed step, optional
        user_name: Display name of the human participant
    """

    def __init__(
        self,
        client: AgentClient,
        agents: Iterable[AgentDescriptor],
        log: Optional[ConversationLog] = None,
        policy: Optional[TurnPolicy] = None,
        selection: Optional[TurnSelection] = None,
        streaming_enabled: Optional[bool] = None,
        advance_delay: Optional[float] = None,
        snapshotter: Optional["SessionSnapshotter"] = None,
        user_name: Optional[str] = None,
    ):
        settings = get_settings()

        self.client = client
        self.agents: Dict[str, AgentDescriptor] = {agent.agent_id: agent for agent in agents}
        self.log = log if log is not None else ConversationLog()
        self.policy = policy if policy is not None else TurnPolicy(settings.default_turn_policy)
        self.selection = selection if selection is not None else TurnSelection()
        self.streaming_enabled = settings.streaming_enabled if streaming_enabled is None else streaming_enabled
        self.advance_delay = settings.advance_delay_seconds if advance_delay is None else advance_delay
        self.snapshotter = snapshotter
        self.user_name = user_name or settings.user_name

        self.state = TurnState(policy=self.policy)

        # Invoker currently holding each agent's lock
        self._owners: Dict[str, AgentInvoker] = {}
        # Stream routing: source_id -> live invoker
        self._routes: Dict[str, AgentInvoker] = {}
        self._tasks: set[asyncio.Task] = set()

        self._advance_scheduled = False
        self._advance_handle: Optional[asyncio.TimerHandle] = None

        self._subscription: Optional[Subscription] = None
        self._listeners: List[TurnListener] = []
        self._idle = asyncio.Event()
        self._idle.set()

    @classmethod
    def from_snapshot(
        cls,
        snapshot: "schemas.SessionSnapshot",
        client: AgentClient,
        snapshotter: Optional["SessionSnapshotter"] = None,
        advance_delay: Optional[float] = None,
    ) -> "TurnCoordinator":
        """Build an idle coordinator from a saved session."""
        from .snapshotter import restore_session

        restored = restore_session(snapshot)
        return cls(
            client=client,
            agents=restored.agents,
            log=restored.log,
            policy=restored.policy,
            selection=restored.selection,
            streaming_enabled=restored.streaming_enabled,
            advance_delay=advance_delay,
            snapshotter=snapshotter,
            user_name=restored.user_name,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Subscribe to the client's chunk channel (once per session)."""
        if self._subscription is None:
            self._subscription = self.client.subscribe(self._dispatch_chunk)
            logger.debug("🔌 Subscribed to stream chunks")

    async def close(self) -> None:
        """
        Dispose the chunk subscription and wait for pending snapshot saves.

        Streams still running can no longer deliver chunks, so their
        invocations end as failures with whatever text they already have.
        """
        if self._subscription is not None:
            self._subscription.dispose()
            self._subscription = None
            logger.debug("🔌 Stream subscription disposed")

        for invoker in list(self._routes.values()):
            logger.warning(f"⚠️  Ending stream of {invoker.agent.display_name} on close")
            invoker.terminal(Failed(FailureKind.PROVIDER_ERROR, SESSION_CLOSED))

        if self._advance_handle is not None:
            self._advance_handle.cancel()
            self._advance_handle = None
        self._advance_scheduled = False
        self._refresh_idle()

        if self.snapshotter is not None:
            await self.snapshotter.flush()

    async def __aenter__(self) -> "TurnCoordinator":
        self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def is_busy(self) -> bool:
        """True while any agent is loading or a next-agent pass is queued."""
        return self.state.any_loading() or self._advance_scheduled

    def loading_agents(self) -> List[str]:
        return self.state.loading_agents()

    def add_listener(self, listener: TurnListener) -> Callable[[], None]:
        """Register a callback for terminal outcomes. Returns a function that removes it."""
        self._listeners.append(listener)

        def _remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    async def wait_until_idle(self, timeout: Optional[float] = None) -> None:
        await asyncio.wait_for(self._idle.wait(), timeout)

    def _refresh_idle(self) -> None:
        if self.is_busy:
            self._idle.clear()
        else:
            self._idle.set()

    def _ensure_idle(self, action: str) -> None:
        if self.is_busy:
            loading = ", ".join(self.loading_agents()) or "pending turn"
            raise TurnInProgressError(f"Cannot {action} while agents are responding ({loading})")

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_policy(self, policy: TurnPolicy) -> None:
        """Switch turn policy. Resets the per-turn state."""
        self._ensure_idle("change turn policy")
        self.policy = TurnPolicy(policy)
        self.state.reset((), self.policy)
        logger.info(f"🔀 Turn policy set to {self.policy}")
        self._persist()

    def set_streaming(self, enabled: bool) -> None:
        self._ensure_idle("change streaming mode")
        self.streaming_enabled = bool(enabled)
        self._persist()

    def _check_known(self, agent_ids: Iterable[str]) -> None:
        unknown = [agent_id for agent_id in agent_ids if agent_id not in self.agents]
        if unknown:
            raise UnknownAgentError(f"Unknown agent id(s): {', '.join(unknown)}")

    def update_selection(self, agent_ids: Sequence[str]) -> None:
        """Replace the selection, keeping the order of ids that stay selected."""
        self._ensure_idle("change selection")
        self._check_known(agent_ids)
        self.selection.update(agent_ids)
        self._persist()

    def add_to_selection(self, agent_id: str) -> None:
        self._ensure_idle("change selection")
        self._check_known([agent_id])
        self.selection.add(agent_id)
        self._persist()

    def remove_from_selection(self, agent_id: str) -> None:
        self._ensure_idle("change selection")
        self.selection.remove(agent_id)
        self._persist()

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    def send_user_message(self, content: str) -> Message:
        """
        Append a user message and start a turn for the current selection.

        Raises:
            EmptyContentError: content is blank
            TurnInProgressError: an agent is still responding
            EmptySelectionError: no agent is selected
        """
        text = content.strip()
        if not text:
            raise EmptyContentError("Message is empty")
        self._ensure_idle("send a message")
        if not self.selection:
            raise EmptySelectionError("Select at least one agent before sending")

        message = Message(role=MessageRole.USER, agent_id=USER_AGENT_ID, agent_name=self.user_name, content=text)
        self.log.append(message)
        self._persist()

        self.start_turn(self.selection.ids)
        return message

    def start_turn(self, targets: Iterable[str], policy: Optional[TurnPolicy] = None) -> None:
        """
        Start a turn for ``targets`` using the current log as history.

        Args:
            targets: Agent ids to invoke, in order
            policy: Policy for this turn only (the session policy by default)
        """
        self._ensure_idle("start a turn")
        policy = TurnPolicy(policy) if policy is not None else self.policy
        self.state.reset(targets, policy)
        logger.info(f"🎬 Turn started | policy={policy} targets={list(self.state.targets)}")

        if policy == TurnPolicy.BROADCAST:
            history = self.log.snapshot()
            for agent_id in self.state.targets:
                agent = self.agents.get(agent_id)
                if agent is None:
                    logger.error(f"❌ Unknown agent {agent_id} in selection, skipping")
                    self.state.mark_responded(agent_id)
                    continue
                self._launch(agent, history)
        else:
            self._schedule_advance()

        self._refresh_idle()

    def _schedule_advance(self) -> None:
        """Queue one deferred next-agent pass; further requests before it runs are coalesced."""
        if self._advance_scheduled:
            logger.debug("⏭️  Next-agent pass already queued")
            return

        self._advance_scheduled = True
        loop = asyncio.get_running_loop()
        self._advance_handle = loop.call_later(self.advance_delay, self._run_advance)
        self._refresh_idle()

    def _run_advance(self) -> None:
        self._advance_scheduled = False
        self._advance_handle = None
        try:
            self.advance()
        finally:
            self._refresh_idle()

    def advance(self) -> Optional[str]:
        """
        Start the next eligible agent of a sequential turn.

        Scans the turn targets in order and launches the first agent that
        has not responded and is neither in flight nor loading. Its lock is
        taken before the invocation is created.

        Returns:
            The agent id started, or None if nothing was started
        """
        if self.state.policy != TurnPolicy.SEQUENTIAL:
            return None

        busy = [agent_id for agent_id in self.state.targets if self.state.is_in_flight(agent_id)]
        if busy:
            logger.debug(f"Sequential turn waiting on {busy}")
            return None

        for agent_id in self.state.targets:
            if not self.state.is_eligible(agent_id):
                continue

            agent = self.agents.get(agent_id)
            if agent is None:
                logger.error(f"❌ Unknown agent {agent_id} in selection, marking as responded")
                self.state.mark_responded(agent_id)
                continue

            self._launch(agent, self.log.snapshot())
            return agent_id

        logger.info(f"🏁 Sequential turn complete | responded={len(self.state.responded_this_turn)}")
        return None

    def _launch(
        self, agent: AgentDescriptor, history: Sequence[Message], retry_index: Optional[int] = None
    ) -> Optional[AgentInvoker]:
        if self.state.is_in_flight(agent.agent_id):
            logger.warning(f"⚠️  {agent.display_name} is already responding, skipping")
            return None

        self.state.acquire(agent.agent_id)

        streaming = self.streaming_enabled and retry_index is None
        invoker = AgentInvoker(self, agent, history, streaming=streaming, retry_index=retry_index)
        self._owners[agent.agent_id] = invoker
        if streaming:
            self.open()
            self._routes[invoker.source_id] = invoker

        task = asyncio.create_task(invoker.run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        self._refresh_idle()
        return invoker

    def _dispatch_chunk(self, chunk: StreamChunk) -> None:
        invoker = self._routes.get(chunk.source_id)
        if invoker is None:
            logger.warning(f"⚠️  Chunk for unknown source {chunk.source_id} ignored")
            return
        invoker.on_chunk(chunk)

    def _on_invocation_finished(self, invoker: AgentInvoker, outcome: Outcome) -> None:
        agent = invoker.agent
        self._routes.pop(invoker.source_id, None)

        if self._owners.get(agent.agent_id) is invoker:
            del self._owners[agent.agent_id]
            self.state.release(agent.agent_id)

        is_retry = invoker.retry_index is not None
        if not is_retry:
            self.state.mark_responded(agent.agent_id)

        if isinstance(outcome, Failed):
            logger.error(f"❌ Agent {agent.display_name} failed ({outcome.kind}): {outcome.reason}")
        else:
            logger.info(f"✅ Agent {agent.display_name} responded ({len(outcome.content)} chars)")

        self._notify(
            TurnEvent(
                agent_id=agent.agent_id,
                agent_name=agent.display_name,
                outcome=outcome,
                is_retry=is_retry,
                message_index=invoker.message_index,
            )
        )
        self._persist()

        if not is_retry and self.state.policy == TurnPolicy.SEQUENTIAL:
            self._schedule_advance()

        self._refresh_idle()

    def _notify(self, event: TurnEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Turn listener failed for agent {event.agent_id}")

    # ------------------------------------------------------------------
    # Retry
    # ------------------------------------------------------------------

    async def retry(self, index: int) -> Outcome:
        """
        Regenerate the agent reply at ``index``.

        The agent sees the history before that message. On success the reply
        replaces the message in place. Other agents are not triggered.

        Raises:
            RetryNotSupportedError: streaming is enabled, or the entry is not a finished agent reply
            TurnInProgressError: an agent is still responding
            UnknownAgentError: the reply's agent is not part of this session
        """
        if self.streaming_enabled:
            raise RetryNotSupportedError("Retry is only available with streaming disabled")
        self._ensure_idle("retry")
        if not 0 <= index < len(self.log):
            raise RetryNotSupportedError(f"No message at index {index}")

        message = self.log[index]
        if not message.is_agent or message.is_open:
            raise RetryNotSupportedError(f"Message at index {index} is not a finished agent reply")

        agent = self.agents.get(message.agent_id)
        if agent is None:
            raise UnknownAgentError(f"Unknown agent id: {message.agent_id}")

        logger.info(f"🔄 Retrying {agent.display_name} at index {index}")
        invoker = self._launch(agent, self.log.snapshot()[:index], retry_index=index)
        return await invoker.wait()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _persist(self) -> None:
        if self.snapshotter is not None:
            self.snapshotter.persist(self)

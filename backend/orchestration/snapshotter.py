"""
Session snapshot capture, restore and persistence.

A snapshot is captured after every completed step (user or director
entry appended, agent terminal outcome, configuration change) and handed
to the session store. Saves run in background tasks, one at a time and in
capture order; a failing save is logged and never interrupts a turn.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from domain.agent_config import AgentDescriptor
from domain.enums import TurnPolicy
from domain.session_ids import validate_session_id
from domain.turn import TurnSelection, TurnState
from schemas import AgentDescriptorSchema, MessageSchema, SessionSnapshot
from utils.serializers import utc_now

from .conversation_log import ConversationLog

if TYPE_CHECKING:
    from infrastructure.session_store import SessionStore

    from .coordinator import TurnCoordinator

logger = logging.getLogger("SessionSnapshotter")


@dataclass
class RestoredSession:
    """
    Display and configuration state rebuilt from a snapshot.

    Attributes:
        session_id: Id the snapshot was saved under
        log: Conversation log with every message closed
        agents: Agent descriptors in saved order
        policy: Turn policy
        selection: Turn selection in saved order
        streaming_enabled: Streaming flag
        user_name: Display name of the human participant
        state: Always an empty TurnState
    """

    session_id: str
    log: ConversationLog
    agents: List[AgentDescriptor]
    policy: TurnPolicy
    selection: TurnSelection
    streaming_enabled: bool
    user_name: str
    state: TurnState = field(default_factory=TurnState)


def capture_session(
    coordinator: "TurnCoordinator", session_id: str, created_at: Optional[datetime] = None
) -> SessionSnapshot:
    """
    Capture a coordinator's conversation and configuration.

    Open placeholders are saved as closed messages with their partial
    text; empty open placeholders are left out.
    """
    messages = [
        MessageSchema.from_message(message)
        for message in coordinator.log.snapshot()
        if not (message.is_open and not message.content)
    ]
    return SessionSnapshot(
        session_id=session_id,
        agents=[AgentDescriptorSchema.from_descriptor(agent) for agent in coordinator.agents.values()],
        messages=messages,
        policy=coordinator.policy,
        selection=list(coordinator.selection.ids),
        streaming_enabled=coordinator.streaming_enabled,
        user_name=coordinator.user_name,
        created_at=created_at,
        saved_at=utc_now(),
    )


def restore_session(snapshot: SessionSnapshot) -> RestoredSession:
    """Rebuild session state from a snapshot. No turn is resumed."""
    return RestoredSession(
        session_id=snapshot.session_id,
        log=ConversationLog(message.to_message() for message in snapshot.messages),
        agents=[agent.to_descriptor() for agent in snapshot.agents],
        policy=snapshot.policy,
        selection=TurnSelection(snapshot.selection),
        streaming_enabled=snapshot.streaming_enabled,
        user_name=snapshot.user_name,
    )


class SessionSnapshotter:
    """Captures snapshots for one session and forwards them to a store."""

    def __init__(self, session_id: str, store: Optional["SessionStore"] = None):
        self.session_id = validate_session_id(session_id)
        self.store = store
        self.created_at = utc_now()
        self.last_snapshot: Optional[SessionSnapshot] = None
        self._save_lock = asyncio.Lock()
        self._save_tasks: set[asyncio.Task] = set()
        self._deferred: Optional[SessionSnapshot] = None

    def capture(self, coordinator: "TurnCoordinator") -> SessionSnapshot:
        return capture_session(coordinator, self.session_id, created_at=self.created_at)

    def restore(self, snapshot: SessionSnapshot) -> RestoredSession:
        if snapshot.created_at is not None:
            self.created_at = snapshot.created_at
        return restore_session(snapshot)

    def persist(self, coordinator: "TurnCoordinator") -> Optional[asyncio.Task]:
        """
        Capture now and save in the background.

        Outside a running event loop the snapshot is kept as deferred and
        saved by the next ``persist`` or ``flush`` that runs inside one.
        """
        snapshot = self.capture(coordinator)
        self.last_snapshot = snapshot
        if self.store is None:
            return None

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self._deferred = snapshot
            logger.debug(f"⏸️  No running loop, deferring save of session {self.session_id}")
            return None

        # A newer capture supersedes any deferred one
        self._deferred = None
        return self._schedule(snapshot)

    def _schedule(self, snapshot: SessionSnapshot) -> asyncio.Task:
        task = asyncio.create_task(self._save(snapshot))
        self._save_tasks.add(task)
        task.add_done_callback(self._save_tasks.discard)
        return task

    async def _save(self, snapshot: SessionSnapshot) -> None:
        async with self._save_lock:
            try:
                await self.store.save(self.session_id, snapshot)
                logger.debug(f"💾 Saved session {self.session_id} ({len(snapshot.messages)} messages)")
            except Exception as e:
                logger.error(f"❌ Failed to save session {self.session_id}: {e}")

    @property
    def pending_saves(self) -> int:
        return len(self._save_tasks) + (1 if self._deferred is not None else 0)

    async def flush(self) -> None:
        """Save any deferred snapshot and wait for every queued save to finish."""
        if self._deferred is not None and self.store is not None:
            snapshot, self._deferred = self._deferred, None
            self._schedule(snapshot)
        while self._save_tasks:
            await asyncio.gather(*list(self._save_tasks))

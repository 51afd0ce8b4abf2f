"""
Session factory wiring settings, logging, persistence and the provider client.

``chat_session`` is the entry point for hosting one conversation: it
validates configuration, prepares the database, restores the session if
it was saved before, and disposes everything on exit.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Optional

from database import init_db
from domain.agent_config import AgentDescriptor
from domain.exceptions import SessionNotFoundError
from domain.session_ids import new_session_id
from infrastructure.session_store import DatabaseSessionStore, SessionStore
from orchestration import SessionSnapshotter, TurnCoordinator
from sdk import AgentClient, ClaudeAgentClient

from .logging import get_logger, setup_logging

logger = get_logger("SessionFactory")


async def open_session(
    agents: Iterable[AgentDescriptor] = (),
    session_id: Optional[str] = None,
    client: Optional[AgentClient] = None,
    store: Optional[SessionStore] = None,
    resume: bool = False,
) -> TurnCoordinator:
    """
    Create a coordinator for a new or previously saved session.

    Args:
        agents: Agents for a new session (ignored when a saved session is restored)
        session_id: Id to restore or create; a fresh id is generated if omitted
        client: Provider client (ClaudeAgentClient by default)
        store: Snapshot store (DatabaseSessionStore by default)
        resume: Require a saved session with this id instead of creating one

    Returns:
        An idle, subscribed TurnCoordinator

    Raises:
        SessionNotFoundError: resume is set and nothing is saved under session_id
    """
    if client is None:
        client = ClaudeAgentClient()
    if store is None:
        await init_db()
        store = DatabaseSessionStore()

    session_id = session_id or new_session_id("session")
    snapshotter = SessionSnapshotter(session_id, store)

    snapshot = await store.load(session_id)
    if snapshot is None and resume:
        raise SessionNotFoundError(f"No saved session {session_id}")

    if snapshot is not None:
        snapshotter.restore(snapshot)
        coordinator = TurnCoordinator.from_snapshot(snapshot, client, snapshotter=snapshotter)
        logger.info(f"📂 Restored session {session_id} ({len(coordinator.log)} messages)")
    else:
        coordinator = TurnCoordinator(client, agents, snapshotter=snapshotter)
        logger.info(f"🆕 New session {session_id} with {len(coordinator.agents)} agent(s)")

    coordinator.open()
    return coordinator


@asynccontextmanager
async def chat_session(
    agents: Iterable[AgentDescriptor] = (),
    session_id: Optional[str] = None,
    client: Optional[AgentClient] = None,
    store: Optional[SessionStore] = None,
    resume: bool = False,
) -> AsyncIterator[TurnCoordinator]:
    """Open a session for the duration of the block and close it afterwards."""
    setup_logging()

    from config.validation import log_config_validation

    log_config_validation()

    owned_client = None
    if client is None:
        client = owned_client = ClaudeAgentClient()

    coordinator = await open_session(agents, session_id=session_id, client=client, store=store, resume=resume)
    try:
        yield coordinator
    finally:
        logger.info("🛑 Closing session...")
        await coordinator.close()
        if owned_client is not None:
            await owned_client.shutdown()
        logger.info("✅ Session closed")

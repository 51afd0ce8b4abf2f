"""
Pytest configuration and shared fixtures for backend tests.

This module provides a scripted AgentClient, agent descriptors,
coordinator factories and a temporary SQLite database.
"""

import asyncio
import sys
from pathlib import Path
from typing import AsyncGenerator, Dict, List, Optional, Sequence, Tuple

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

# Add backend directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from core.settings import reset_settings
from database import Base, create_session_maker
from domain.agent_config import AgentDescriptor
from domain.enums import TurnPolicy
from domain.turn import TurnSelection
from orchestration.coordinator import TurnCoordinator
from sdk.client import ChatRequest, GenerateResult, StreamChunk, StreamStart, Subscription


class FakeAgentClient:
    """
    Scripted AgentClient keyed by request model name.

    Non-streaming:
        replies[model] may be a string, a GenerateResult, or an Exception to raise.
        hold(model) returns an Event that the call waits on before answering.

    Streaming:
        stream_scripts[model] is a list of StreamChunk keyword dicts played
        back after generate_stream returns. Without a script the stream stays
        open until the test calls emit(). start_failures[model] makes the
        stream refuse to start.
    """

    def __init__(self):
        self.replies: Dict[str, object] = {}
        self.stream_scripts: Dict[str, List[dict]] = {}
        self.start_failures: Dict[str, str] = {}
        self.calls: List[Tuple[str, str, ChatRequest, Optional[str]]] = []
        self.sources: Dict[str, str] = {}
        self._gates: Dict[str, asyncio.Event] = {}
        self._subscribers: List = []
        self.subscribe_count = 0
        self._tasks: set = set()

    # Test controls

    def hold(self, model: str) -> asyncio.Event:
        event = asyncio.Event()
        self._gates[model] = event
        return event

    def emit(self, source_id: str, text=None, error=None, done=False) -> None:
        chunk = StreamChunk(source_id=source_id, text=text, error=error, done=done)
        for callback in list(self._subscribers):
            callback(chunk)

    def histories(self, model: str) -> List[List[dict]]:
        return [request.messages for _, _, request, _ in self.calls if request.model == model]

    def called_models(self) -> List[str]:
        return [request.model for _, _, request, _ in self.calls]

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    # AgentClient

    def subscribe(self, callback) -> Subscription:
        self.subscribe_count += 1
        self._subscribers.append(callback)
        return Subscription(lambda: self._subscribers.remove(callback))

    async def generate(self, provider_id: str, request: ChatRequest) -> GenerateResult:
        self.calls.append(("generate", provider_id, request, None))
        gate = self._gates.get(request.model)
        if gate is not None:
            await gate.wait()

        reply = self.replies.get(request.model, f"reply from {request.model}")
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, GenerateResult):
            return reply
        return GenerateResult(content=reply)

    async def generate_stream(self, provider_id: str, request: ChatRequest, source_id: str) -> StreamStart:
        self.calls.append(("stream", provider_id, request, source_id))
        self.sources[request.model] = source_id

        if request.model in self.start_failures:
            return StreamStart(started=False, error=self.start_failures[request.model])

        script = self.stream_scripts.get(request.model)
        if script is not None:
            task = asyncio.create_task(self._play(source_id, script))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return StreamStart(started=True)

    async def _play(self, source_id: str, script: Sequence[dict]) -> None:
        for step in script:
            await asyncio.sleep(0)
            self.emit(source_id, **step)


async def settle(predicate, attempts: int = 200) -> None:
    """Yield to the event loop until predicate() is true."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


def make_agent(agent_id: str, **overrides) -> AgentDescriptor:
    """Configured agent whose model name is "model-{agent_id}"."""
    fields = dict(
        agent_id=agent_id,
        display_name=agent_id.upper(),
        provider_id="fake",
        model=f"model-{agent_id}",
        system_prompt=f"You are {agent_id.upper()}.",
    )
    fields.update(overrides)
    return AgentDescriptor(**fields)


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Isolate tests from .env and environment overrides."""
    for name in ("STREAMING_ENABLED", "DEFAULT_TURN_POLICY", "ADVANCE_DELAY_SECONDS", "USER_NAME"):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def fake_client() -> FakeAgentClient:
    return FakeAgentClient()


@pytest.fixture
def agents() -> List[AgentDescriptor]:
    return [make_agent("a"), make_agent("b"), make_agent("c")]


@pytest.fixture
def make_coordinator(fake_client, agents):
    """Factory for coordinators over the fake client."""

    def _make(
        selection: Sequence[str] = ("a", "b"),
        policy: TurnPolicy = TurnPolicy.SEQUENTIAL,
        streaming: bool = False,
        agent_list: Optional[Sequence[AgentDescriptor]] = None,
        **kwargs,
    ) -> TurnCoordinator:
        coordinator = TurnCoordinator(
            fake_client,
            agent_list if agent_list is not None else agents,
            policy=policy,
            selection=TurnSelection(selection),
            streaming_enabled=streaming,
            advance_delay=0.0,
            user_name="User",
            **kwargs,
        )
        coordinator.open()
        return coordinator

    return _make


@pytest.fixture
async def session_maker(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Session factory bound to a temporary SQLite database."""
    import models  # noqa: F401

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sessions.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield create_session_maker(engine)
    finally:
        await engine.dispose()

"""
Unit tests for session factory wiring.
"""

import pytest
from core.session_factory import chat_session, open_session
from domain.enums import MessageRole
from domain.exceptions import SessionNotFoundError
from infrastructure.session_store import InMemorySessionStore
from conftest import make_agent


@pytest.mark.asyncio
async def test_new_session_then_restore(fake_client):
    store = InMemorySessionStore()
    coordinator = await open_session([make_agent("a")], session_id="room-1", client=fake_client, store=store)

    assert fake_client.subscriber_count == 1
    coordinator.set_streaming(False)
    coordinator.update_selection(["a"])
    coordinator.send_user_message("Hello")
    await coordinator.wait_until_idle(timeout=1)
    await coordinator.close()

    assert fake_client.subscriber_count == 0
    assert await store.list_sessions() == ["room-1"]

    restored = await open_session(session_id="room-1", client=fake_client, store=store)

    assert [m.role for m in restored.log] == [MessageRole.USER, MessageRole.AGENT]
    assert restored.log[1].content == "reply from model-a"
    assert restored.selection.ids == ("a",)
    assert list(restored.agents) == ["a"]
    await restored.close()


@pytest.mark.asyncio
async def test_generated_session_id(fake_client):
    store = InMemorySessionStore()

    coordinator = await open_session([make_agent("a")], client=fake_client, store=store)

    assert coordinator.snapshotter.session_id.startswith("session")
    await coordinator.close()


@pytest.mark.asyncio
async def test_chat_session_closes_coordinator(fake_client):
    store = InMemorySessionStore()

    async with chat_session([make_agent("a")], session_id="room-2", client=fake_client, store=store) as coordinator:
        assert fake_client.subscriber_count == 1
        assert coordinator.is_busy is False

    assert fake_client.subscriber_count == 0


@pytest.mark.asyncio
async def test_resume_missing_session_raises(fake_client):
    store = InMemorySessionStore()

    with pytest.raises(SessionNotFoundError):
        await open_session(session_id="missing-1", client=fake_client, store=store, resume=True)

    assert await store.list_sessions() == []
    assert fake_client.subscriber_count == 0

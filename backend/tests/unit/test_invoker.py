"""
Unit tests for AgentInvoker.

Tests the single-agent lifecycle: misconfiguration, non-streaming and
streaming replies, and the exactly-once terminal guarantee.
"""

import asyncio
from unittest.mock import patch

import pytest
from conftest import make_agent, settle
from domain.enums import FailureKind, MessageRole
from domain.messages import Message
from domain.outcomes import Completed, Failed
from orchestration.context import build_chat_request
from orchestration.invoker import AgentInvoker
from sdk.client import GenerateResult, StreamChunk


def seed(coordinator, text="Hello"):
    coordinator.log.append(Message(role=MessageRole.USER, agent_id="user", agent_name="User", content=text))


async def start_stream(invoker):
    await invoker._run_streaming(build_chat_request(invoker.agent, invoker.history))


class TestMisconfiguredAgent:
    """Tests for agents without provider or model."""

    @pytest.mark.asyncio
    async def test_fails_fast_without_network_call(self, make_coordinator, fake_client):
        """A misconfigured agent reports Misconfigured and appends nothing."""
        broken = make_agent("a", provider_id="")
        coordinator = make_coordinator(selection=["a"], agent_list=[broken])
        seed(coordinator)

        invoker = AgentInvoker(coordinator, broken, coordinator.log.snapshot(), streaming=True)
        outcome = await invoker.run()

        assert isinstance(outcome, Failed)
        assert outcome.kind == FailureKind.MISCONFIGURED
        assert fake_client.calls == []
        assert len(coordinator.log) == 1


class TestNonStreaming:
    """Tests for single-result invocations."""

    @pytest.mark.asyncio
    async def test_success_appends_trimmed_reply(self, make_coordinator, fake_client, agents):
        fake_client.replies["model-a"] = "  Hi there \n"
        coordinator = make_coordinator(selection=["a"])
        seed(coordinator)

        invoker = AgentInvoker(coordinator, agents[0], coordinator.log.snapshot(), streaming=False)
        outcome = await invoker.run()

        assert outcome == Completed("Hi there")
        assert coordinator.log[1].content == "Hi there"
        assert coordinator.log[1].agent_id == "a"
        assert invoker.message_index == 1

    @pytest.mark.asyncio
    async def test_provider_error_appends_nothing(self, make_coordinator, fake_client, agents):
        fake_client.replies["model-a"] = GenerateResult(error="rate limited")
        coordinator = make_coordinator(selection=["a"])
        seed(coordinator)

        outcome = await AgentInvoker(coordinator, agents[0], coordinator.log.snapshot(), streaming=False).run()

        assert outcome == Failed(FailureKind.PROVIDER_ERROR, "rate limited")
        assert len(coordinator.log) == 1

    @pytest.mark.asyncio
    async def test_blank_reply_is_a_failure(self, make_coordinator, fake_client, agents):
        fake_client.replies["model-a"] = "   "
        coordinator = make_coordinator(selection=["a"])
        seed(coordinator)

        outcome = await AgentInvoker(coordinator, agents[0], coordinator.log.snapshot(), streaming=False).run()

        assert isinstance(outcome, Failed)
        assert len(coordinator.log) == 1

    @pytest.mark.asyncio
    async def test_exception_becomes_provider_error(self, make_coordinator, fake_client, agents):
        fake_client.replies["model-a"] = ConnectionError("network down")
        coordinator = make_coordinator(selection=["a"])
        seed(coordinator)

        outcome = await AgentInvoker(coordinator, agents[0], coordinator.log.snapshot(), streaming=False).run()

        assert outcome == Failed(FailureKind.PROVIDER_ERROR, "network down")


class TestStreaming:
    """Tests for streamed invocations."""

    @pytest.mark.asyncio
    async def test_fragments_fill_placeholder(self, make_coordinator, fake_client, agents):
        """Partial content is visible before completion."""
        coordinator = make_coordinator(selection=["a"], streaming=True)
        seed(coordinator)
        invoker = AgentInvoker(coordinator, agents[0], coordinator.log.snapshot(), streaming=True)
        coordinator._routes[invoker.source_id] = invoker

        await start_stream(invoker)
        fake_client.emit(invoker.source_id, text="Hel")

        assert coordinator.log[1].content == "Hel"
        assert coordinator.log[1].is_open is True

        fake_client.emit(invoker.source_id, text="lo", done=True)

        assert invoker.outcome == Completed("Hello")
        assert coordinator.log[1].content == "Hello"
        assert coordinator.log[1].is_open is False

    @pytest.mark.asyncio
    async def test_error_with_partial_content_keeps_it(self, make_coordinator, fake_client, agents):
        fake_client.stream_scripts["model-a"] = [{"text": "Par"}, {"error": "cut off", "done": True}]
        coordinator = make_coordinator(selection=["a"], streaming=True)
        seed(coordinator)
        invoker = AgentInvoker(coordinator, agents[0], coordinator.log.snapshot(), streaming=True)
        coordinator._routes[invoker.source_id] = invoker

        outcome = await invoker.run()

        assert outcome == Failed(FailureKind.PROVIDER_ERROR, "cut off")
        assert len(coordinator.log) == 2
        assert coordinator.log[1].content == "Par"
        assert coordinator.log[1].is_open is False

    @pytest.mark.asyncio
    async def test_text_in_error_chunk_is_kept(self, make_coordinator, fake_client, agents):
        fake_client.stream_scripts["model-a"] = [{"text": "Hi "}, {"text": "there", "error": "boom", "done": True}]
        coordinator = make_coordinator(selection=["a"], streaming=True)
        seed(coordinator)
        invoker = AgentInvoker(coordinator, agents[0], coordinator.log.snapshot(), streaming=True)
        coordinator._routes[invoker.source_id] = invoker

        outcome = await invoker.run()

        assert outcome == Failed(FailureKind.PROVIDER_ERROR, "boom")
        assert coordinator.log[-1].content == "Hi there"
        assert coordinator.log[-1].is_open is False

    @pytest.mark.asyncio
    async def test_error_without_content_removes_placeholder(self, make_coordinator, fake_client, agents):
        fake_client.stream_scripts["model-a"] = [{"error": "boom"}]
        coordinator = make_coordinator(selection=["a"], streaming=True)
        seed(coordinator)
        invoker = AgentInvoker(coordinator, agents[0], coordinator.log.snapshot(), streaming=True)
        coordinator._routes[invoker.source_id] = invoker

        outcome = await invoker.run()

        assert isinstance(outcome, Failed)
        assert len(coordinator.log) == 1

    @pytest.mark.asyncio
    async def test_empty_stream_is_a_failure(self, make_coordinator, fake_client, agents):
        """A stream that finishes without text leaves no empty agent turn."""
        fake_client.stream_scripts["model-a"] = [{"done": True}]
        coordinator = make_coordinator(selection=["a"], streaming=True)
        seed(coordinator)
        invoker = AgentInvoker(coordinator, agents[0], coordinator.log.snapshot(), streaming=True)
        coordinator._routes[invoker.source_id] = invoker

        outcome = await invoker.run()

        assert outcome.kind == FailureKind.PROVIDER_ERROR
        assert len(coordinator.log) == 1

    @pytest.mark.asyncio
    async def test_stream_start_failure(self, make_coordinator, fake_client, agents):
        fake_client.start_failures["model-a"] = "no api key"
        coordinator = make_coordinator(selection=["a"], streaming=True)
        seed(coordinator)

        outcome = await AgentInvoker(coordinator, agents[0], coordinator.log.snapshot(), streaming=True).run()

        assert outcome == Failed(FailureKind.STREAM_START_FAILURE, "no api key")
        assert len(coordinator.log) == 1

    @pytest.mark.asyncio
    async def test_fragment_after_placeholder_removed_reopens(self, make_coordinator, fake_client, agents):
        coordinator = make_coordinator(selection=["a"], streaming=True)
        seed(coordinator)
        invoker = AgentInvoker(coordinator, agents[0], coordinator.log.snapshot(), streaming=True)
        coordinator._routes[invoker.source_id] = invoker
        await start_stream(invoker)
        coordinator.log.discard_if_empty(invoker.placeholder_id)

        invoker.on_chunk(StreamChunk(source_id=invoker.source_id, text="again"))

        assert coordinator.log[1].content == "again"
        assert coordinator.log[1].is_open is True


class TestExactlyOnceTerminal:
    """Tests for duplicate terminal suppression."""

    @pytest.mark.asyncio
    async def test_error_then_done_reports_once(self, make_coordinator, fake_client, agents):
        """Only the first of several terminal signals reaches the coordinator."""
        coordinator = make_coordinator(selection=["a"], streaming=True)
        seed(coordinator)
        invoker = AgentInvoker(coordinator, agents[0], coordinator.log.snapshot(), streaming=True)
        await start_stream(invoker)

        with patch.object(coordinator, "_on_invocation_finished") as finished:
            invoker.on_chunk(StreamChunk(source_id=invoker.source_id, text="x"))
            invoker.on_chunk(StreamChunk(source_id=invoker.source_id, error="mid-stream"))
            invoker.on_chunk(StreamChunk(source_id=invoker.source_id, done=True))
            assert invoker.terminal(Failed(FailureKind.PROVIDER_ERROR, "outer")) is False

        finished.assert_called_once()
        assert finished.call_args.args[1] == Failed(FailureKind.PROVIDER_ERROR, "mid-stream")
        assert invoker.outcome.reason == "mid-stream"

    @pytest.mark.asyncio
    async def test_chunks_after_terminal_do_not_mutate_log(self, make_coordinator, fake_client, agents):
        coordinator = make_coordinator(selection=["a"], streaming=True)
        seed(coordinator)
        invoker = AgentInvoker(coordinator, agents[0], coordinator.log.snapshot(), streaming=True)
        await start_stream(invoker)

        invoker.on_chunk(StreamChunk(source_id=invoker.source_id, text="final", done=True))
        invoker.on_chunk(StreamChunk(source_id=invoker.source_id, text=" extra"))

        assert coordinator.log[1].content == "final"

    @pytest.mark.asyncio
    async def test_history_is_a_value_snapshot(self, make_coordinator, fake_client, agents):
        """Mutating the live log does not change the request of an in-flight invocation."""
        gate = fake_client.hold("model-a")
        coordinator = make_coordinator(selection=["a"])
        seed(coordinator)
        invoker = AgentInvoker(coordinator, agents[0], coordinator.log.snapshot(), streaming=False)

        task = asyncio.create_task(invoker.run())
        await settle(lambda: fake_client.calls)
        seed(coordinator, "Interruption")
        gate.set()
        await task

        assert fake_client.histories("model-a") == [[{"role": "user", "content": "User: Hello"}]]
        assert len(invoker.history) == 1

"""Unit tests for agent events and the EventBus."""

import asyncio
import dataclasses
import logging

import pytest

from switchboard.agent.events import (
    EVENT_ICONS,
    AgentEvent,
    EventBus,
    agent_completed_event,
    agent_delegated_event,
    agent_error_event,
    agent_failed_event,
    agent_started_event,
    agent_tool_called_event,
    agent_tool_completed_event,
)


class TestAgentEvent:
    """Tests for event factories and rendering."""

    def test_started(self):
        event = agent_started_event("weather", "Is it raining?", parent="root")
        assert event.type == "started"
        assert event.agent == "weather"
        assert event.metadata == {"task": "Is it raining?", "parent": "root"}
        assert event.description == "🤖 Agent 'weather' (parent: root) started: Is it raining?"
        assert event.detail == "Is it raining?"

    def test_started_without_parent(self):
        assert agent_started_event("root", "hi").description == "🤖 Agent 'root' started: hi"

    @pytest.mark.parametrize(
        ("event", "description", "detail"),
        [
            (
                agent_delegated_event("root", "weather", "needs forecast"),
                "🔄 Agent 'root' delegated to 'weather': needs forecast",
                "weather: needs forecast",
            ),
            (
                agent_tool_called_event("weather", "get_weather", '{"city": "Oslo"}'),
                "🛠️ Agent 'weather' using tool: get_weather, arguments: {\"city\": \"Oslo\"}",
                'get_weather({"city": "Oslo"})',
            ),
            (
                agent_tool_completed_event("weather", "Sunny"),
                "✅ Agent 'weather' completed tool: Sunny",
                "Sunny",
            ),
            (
                agent_completed_event("weather", "It is sunny"),
                "🏁 Agent 'weather' completed with result: It is sunny",
                "It is sunny",
            ),
            (
                agent_failed_event("weather", "error: timeout"),
                "⚠️ Agent 'weather' failed: error: timeout",
                "error: timeout",
            ),
            (
                agent_error_event("weather", "timeout"),
                "❌ Agent 'weather' error: timeout",
                "timeout",
            ),
        ],
    )
    def test_descriptions(self, event, description, detail):
        assert event.description == description
        assert event.detail == detail
        assert event.icon == EVENT_ICONS[event.type]

    def test_terminal_types(self):
        assert agent_completed_event("a", "r").is_terminal
        assert agent_failed_event("a", "r").is_terminal
        assert not agent_error_event("a", "m").is_terminal
        assert not agent_started_event("a", "t").is_terminal

    def test_frozen(self):
        event = agent_started_event("a", "t")
        with pytest.raises(dataclasses.FrozenInstanceError):
            event.agent = "b"

    def test_extra_metadata(self):
        event = agent_completed_event("a", "r", tokens=42)
        assert event.metadata["tokens"] == 42


class TestEventBus:
    """Tests for EventBus delivery."""

    @pytest.mark.asyncio
    async def test_delivers_in_emission_order(self):
        received = []

        async def slow(event: AgentEvent) -> None:
            # Later events must not overtake an earlier slow delivery
            await asyncio.sleep(0.01 if event.agent == "first" else 0)
            received.append(event.agent)

        async with EventBus() as bus:
            bus.subscribe(slow)
            for name in ["first", "second", "third"]:
                bus.emit(agent_started_event(name, "t"))
            await bus.drain()

        assert received == ["first", "second", "third"]

    @pytest.mark.asyncio
    async def test_type_filter(self):
        completed = []
        everything = []

        async with EventBus() as bus:
            bus.subscribe(completed.append, event_types=["completed"])
            bus.subscribe(everything.append)
            bus.emit(agent_started_event("a", "t"))
            bus.emit(agent_completed_event("a", "r"))
            await bus.drain()

        assert [e.type for e in completed] == ["completed"]
        assert [e.type for e in everything] == ["started", "completed"]

    @pytest.mark.asyncio
    async def test_failing_subscriber_is_isolated(self, caplog):
        received = []

        def broken(event: AgentEvent) -> None:
            raise ValueError("subscriber bug")

        async with EventBus() as bus:
            bus.subscribe(broken)
            bus.subscribe(received.append)
            with caplog.at_level(logging.WARNING, logger="switchboard.agent.events"):
                await bus.publish(agent_started_event("a", "t"))
                await bus.drain()

        assert len(received) == 1
        assert "subscriber bug" in caplog.text

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        received = []
        async with EventBus() as bus:
            bus.subscribe(received.append, event_types=["started"])
            assert bus.unsubscribe(received.append, event_types=["started"])
            assert not bus.unsubscribe(received.append)
            bus.emit(agent_started_event("a", "t"))
            await bus.drain()
        assert received == []

    @pytest.mark.asyncio
    async def test_aclose_delivers_pending_then_drops(self):
        received = []
        bus = EventBus()
        bus.subscribe(received.append)
        bus.emit(agent_started_event("a", "t"))
        await bus.aclose()

        assert len(received) == 1
        assert bus.closed
        bus.emit(agent_completed_event("a", "r"))
        assert len(received) == 1
        with pytest.raises(RuntimeError):
            bus.subscribe(received.append)

    @pytest.mark.asyncio
    async def test_drain_without_events(self):
        bus = EventBus()
        await bus.drain()
        await bus.aclose()

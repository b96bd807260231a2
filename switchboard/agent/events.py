"""
Agent event system

- AgentEvent: immutable lifecycle record produced by agents
- Factory functions build each event variant with the right metadata
- EventBus: serialized, in-order multicast delivery to subscribers
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal, TypeAlias

logger = logging.getLogger(__name__)

AgentEventType: TypeAlias = Literal[
    "started",
    "delegated",
    "tool_called",
    "tool_completed",
    "completed",
    "failed",
    "error",
]

EVENT_ICONS: dict[str, str] = {
    "started": "🤖",
    "delegated": "🔄",
    "tool_called": "🛠️",
    "tool_completed": "✅",
    "completed": "🏁",
    "failed": "⚠️",
    "error": "❌",
}

# Event types that close the agent's node in a conversation tree
TERMINAL_EVENT_TYPES = frozenset({"completed", "failed"})


# =============================================================================
# AgentEvent (read-only, immutable)
# =============================================================================


@dataclass(frozen=True, slots=True)
class AgentEvent:
    """Lifecycle event emitted by an agent.

    Attributes:
        type: Event variant
        agent: Name of the agent the event is about
        timestamp: Creation time
        metadata: Variant-specific fields (task, parent, to, reason, tool, ...)
    """

    type: AgentEventType
    agent: str
    timestamp: float = field(default_factory=time.time)
    metadata: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def icon(self) -> str:
        return EVENT_ICONS.get(self.type, "")

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENT_TYPES

    @property
    def detail(self) -> str:
        """Short text shown on the event's conversation-tree node."""
        meta = self.metadata
        match self.type:
            case "started":
                return meta.get("task", "")
            case "delegated":
                return f"{meta.get('to', '')}: {meta.get('reason', '')}"
            case "tool_called":
                return f"{meta.get('tool', '')}({meta.get('arguments', '')})"
            case "tool_completed" | "completed" | "failed":
                return meta.get("result", "")
            case "error":
                return meta.get("message", "")
        return ""

    @property
    def description(self) -> str:
        """One-line human readable rendering."""
        meta = self.metadata
        agent = f"Agent '{self.agent}'"
        match self.type:
            case "started":
                parent = f" (parent: {meta['parent']})" if meta.get("parent") else ""
                return f"{self.icon} {agent}{parent} started: {meta.get('task', '')}"
            case "delegated":
                return f"{self.icon} {agent} delegated to '{meta.get('to', '')}': {meta.get('reason', '')}"
            case "tool_called":
                return f"{self.icon} {agent} using tool: {meta.get('tool', '')}, arguments: {meta.get('arguments', '')}"
            case "tool_completed":
                return f"{self.icon} {agent} completed tool: {meta.get('result', '')}"
            case "completed":
                return f"{self.icon} {agent} completed with result: {meta.get('result', '')}"
            case "failed":
                return f"{self.icon} {agent} failed: {meta.get('result', '')}"
            case "error":
                return f"{self.icon} {agent} error: {meta.get('message', '')}"
        return f"{agent} {self.type}"


# =============================================================================
# Factory functions
# =============================================================================


def agent_started_event(agent: str, task: str, parent: str | None = None, **metadata: Any) -> AgentEvent:
    """Agent began executing a task"""
    return AgentEvent(type="started", agent=agent, metadata={"task": task, "parent": parent, **metadata})


def agent_delegated_event(agent: str, to: str, reason: str, **metadata: Any) -> AgentEvent:
    """Agent handed a task to one of its delegates"""
    return AgentEvent(type="delegated", agent=agent, metadata={"to": to, "reason": reason, **metadata})


def agent_tool_called_event(agent: str, tool: str, arguments: str, **metadata: Any) -> AgentEvent:
    return AgentEvent(
        type="tool_called",
        agent=agent,
        metadata={"tool": tool, "arguments": arguments, **metadata},
    )


def agent_tool_completed_event(agent: str, result: str, **metadata: Any) -> AgentEvent:
    return AgentEvent(type="tool_completed", agent=agent, metadata={"result": result, **metadata})


def agent_completed_event(agent: str, result: str, **metadata: Any) -> AgentEvent:
    return AgentEvent(type="completed", agent=agent, metadata={"result": result, **metadata})


def agent_failed_event(agent: str, result: str, **metadata: Any) -> AgentEvent:
    return AgentEvent(type="failed", agent=agent, metadata={"result": result, **metadata})


def agent_error_event(agent: str, message: str, **metadata: Any) -> AgentEvent:
    return AgentEvent(type="error", agent=agent, metadata={"message": message, **metadata})


# =============================================================================
# Event Bus
# =============================================================================


EventHandler: TypeAlias = Callable[[AgentEvent], Any]


class EventBus:
    """
    Event bus: multicast delivery of AgentEvents.

    Features:
    - Serialized delivery: one dispatcher task calls subscribers one at a time,
      in emission order, so a subscriber never runs concurrently with itself
    - Sync or async subscribers
    - Type filtering: subscribers may listen to selected event types
    - Isolation: a failing subscriber is logged and skipped

    ``emit`` matches the ``AgentContext.event_handler`` signature and must be
    called from within a running event loop.

    Example:
        async with EventBus() as bus:
            bus.subscribe(tree.handle)
            await agent.execute(AgentContext(messages, event_handler=bus.emit))
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventHandler]] = {}
        self._wildcards: list[EventHandler] = []
        self._queue: asyncio.Queue[AgentEvent | None] = asyncio.Queue()
        self._dispatcher: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(
        self,
        callback: EventHandler,
        event_types: list[str] | None = None,
    ) -> None:
        """
        Subscribe to events.

        Args:
            callback: Sync or async callable receiving each event
            event_types: Event types to receive, None for all
        """
        if self._closed:
            raise RuntimeError("EventBus is closed")

        if event_types is None:
            self._wildcards.append(callback)
        else:
            for et in event_types:
                self._subscribers.setdefault(et, []).append(callback)

    def unsubscribe(
        self,
        callback: EventHandler,
        event_types: list[str] | None = None,
    ) -> bool:
        """
        Remove a subscription.

        Returns:
            Whether anything was removed
        """
        removed = False
        if event_types is None:
            if callback in self._wildcards:
                self._wildcards.remove(callback)
                removed = True
        else:
            for et in event_types:
                if et in self._subscribers and callback in self._subscribers[et]:
                    self._subscribers[et].remove(callback)
                    removed = True
        return removed

    def emit(self, event: AgentEvent) -> None:
        """Enqueue an event for delivery without waiting for subscribers."""
        if self._closed:
            logger.debug(f"Dropping {event.type} event from '{event.agent}', bus is closed")
            return
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.get_running_loop().create_task(self._dispatch())
        self._queue.put_nowait(event)

    async def publish(self, event: AgentEvent) -> None:
        """Async form of ``emit``."""
        self.emit(event)

    async def drain(self) -> None:
        """Wait until every emitted event has been delivered."""
        if self._dispatcher is not None:
            await self._queue.join()

    async def _dispatch(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                if event is None:
                    return
                callbacks = self._wildcards.copy()
                callbacks.extend(self._subscribers.get(event.type, []))
                for callback in callbacks:
                    await self._invoke_safe(callback, event)
            finally:
                self._queue.task_done()

    async def _invoke_safe(self, callback: EventHandler, event: AgentEvent) -> None:
        try:
            result = callback(event)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"Event handler error for {event.type}: {e}")

    async def aclose(self) -> None:
        """Deliver pending events, stop the dispatcher and drop subscriptions."""
        if self._closed:
            return
        if self._dispatcher is not None and not self._dispatcher.done():
            self._queue.put_nowait(None)
            await self._dispatcher
        self._closed = True
        self._subscribers.clear()
        self._wildcards.clear()

    async def __aenter__(self) -> EventBus:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

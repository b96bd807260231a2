"""Agent execution context."""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .message import Message

if TYPE_CHECKING:
    from .events import AgentEvent

DEFAULT_MAX_DELEGATION_DEPTH = 5


def _discard_event(event: AgentEvent) -> None:
    pass


@dataclass(frozen=True)
class AgentContext:
    """Everything an agent execution needs besides the agent itself.

    Contexts are never mutated: ``with_messages`` and ``delegate`` return
    copies.

    Attributes:
        messages: Conversation handed to the agent
        event_handler: Receives every lifecycle event, e.g. ``EventBus.emit``
        parent: Name of the delegating agent, None for a top-level run
        depth: Number of delegation hops from the top-level agent
        max_delegation_depth: Depth at which ``transfer`` refuses to delegate
    """

    messages: list[Message] = field(default_factory=list)
    event_handler: Callable[[AgentEvent], Any] = _discard_event
    parent: str | None = None
    depth: int = 0
    max_delegation_depth: int = DEFAULT_MAX_DELEGATION_DEPTH

    @property
    def task(self) -> str:
        """Text of the last message, used as the task description."""
        if self.messages and self.messages[-1].text:
            return self.messages[-1].text
        return "Unknown task"

    def with_messages(self, messages: list[Message]) -> AgentContext:
        return dataclasses.replace(self, messages=list(messages))

    def delegate(self, parent: str, messages: list[Message]) -> AgentContext:
        """Fresh context for a delegate agent, one hop deeper."""
        return dataclasses.replace(self, messages=list(messages), parent=parent, depth=self.depth + 1)

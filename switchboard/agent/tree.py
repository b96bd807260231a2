"""Conversation tree: the nested view of messages and agent lifecycle events.

Nodes live in an arena and are referenced by integer handle, with parent
pointers, so inserting an event is an append plus a pointer update. The tree
is a single-writer structure: feed it from one ``EventBus`` subscription.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterator
from dataclasses import dataclass, field

from .events import AgentEvent
from .message import AgentEventContent, Message

logger = logging.getLogger(__name__)


@dataclass
class _Node:
    message: Message
    parent: int | None = None
    children: list[int] = field(default_factory=list)
    closed: bool = False

    @property
    def agent(self) -> str | None:
        event = self.message.event
        return event.agent_name if event is not None else None


def event_message(event: AgentEvent) -> Message:
    """Render an event as a system message carrying ``AgentEventContent``."""
    return Message(
        role="system",
        content=AgentEventContent(type=event.type, agent_name=event.agent, detail_text=event.detail),
    )


class ConversationTree:
    """Nested tree of visible messages and agent event nodes.

    Event insertion:
    1. The search key is the event's agent, except for a ``started`` event
       that names a parent, which is keyed on the parent. A ``started`` event
       without a parent goes straight to the top level.
    2. Top-level nodes are scanned in order. An open event node for the key
       takes the new node; otherwise the first open node for the key inside
       its subtree (pre-order) does. Closed subtrees are never entered.
    3. With no match anywhere, the node is appended at the top level.

    A ``completed``/``failed`` node closes the node it lands in, and every
    further ancestor of the same agent name. Siblings stay open.
    """

    def __init__(self) -> None:
        self._nodes: list[_Node | None] = []
        self._roots: list[int] = []
        self._by_id: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Plain messages
    # ------------------------------------------------------------------

    def append_message(self, message: Message) -> int:
        """Append a message at the top level and return its handle."""
        handle = self._new_node(message)
        self._roots.append(handle)
        return handle

    def upsert_message(self, message: Message) -> int:
        """Replace the node holding a message with the same id, or append it."""
        handle = self._by_id.get(message.id)
        if handle is None:
            return self.append_message(message)
        node = self._node(handle)
        node.message = message
        return handle

    def remove_message(self, message_id: str) -> bool:
        """Remove a message and its subtree. Returns whether anything was removed."""
        handle = self._by_id.get(message_id)
        if handle is None:
            return False
        node = self._node(handle)
        siblings = self._node(node.parent).children if node.parent is not None else self._roots
        siblings.remove(handle)
        self._drop(handle)
        return True

    async def track(self, stream: AsyncIterator[Message]) -> AsyncIterator[Message]:
        """Mirror a message stream into the tree, passing every message through.

        Snapshots sharing an id replace each other in place. If the stream
        fails or is cancelled, the in-flight assistant message is removed so
        it is never left half-applied. A turn ends when its final message is
        repeated (``ProviderRegistry.stream`` re-yields it); a finished turn
        is kept even if the stream fails afterwards.
        """
        in_flight: str | None = None
        previous: Message | None = None
        try:
            async for message in stream:
                self.upsert_message(message)
                if message.role != "assistant" or message == previous:
                    in_flight = None
                else:
                    in_flight = message.id
                previous = message
                yield message
        except BaseException:
            if in_flight is not None:
                logger.debug(f"Discarding in-flight message {in_flight}")
                self.remove_message(in_flight)
            raise

    # ------------------------------------------------------------------
    # Agent events
    # ------------------------------------------------------------------

    def handle(self, event: AgentEvent) -> int:
        """Insert an event node following the insertion rules; returns its handle."""
        handle = self._new_node(event_message(event))
        node = self._node(handle)
        node.closed = event.is_terminal

        parent_name = event.metadata.get("parent") if event.type == "started" else None
        if event.type == "started" and not parent_name:
            target = None
        else:
            target = self._find_open(parent_name or event.agent)

        if target is None:
            self._roots.append(handle)
            return handle

        node.parent = target
        self._node(target).children.append(handle)

        if event.is_terminal:
            self._close_chain(target, event.agent)
        return handle

    def is_closed(self, handle: int) -> bool:
        return self._node(handle).closed

    def _find_open(self, agent: str) -> int | None:
        for root in self._roots:
            found = self._search(root, agent)
            if found is not None:
                return found
        return None

    def _search(self, handle: int, agent: str) -> int | None:
        node = self._node(handle)
        if node.closed or node.message.event is None:
            return None
        if node.agent == agent:
            return handle
        for child in node.children:
            found = self._search(child, agent)
            if found is not None:
                return found
        return None

    def _close_chain(self, handle: int | None, agent: str) -> None:
        node = self._node(handle) if handle is not None else None
        if node is not None:
            node.closed = True
            handle = node.parent
        while handle is not None:
            node = self._node(handle)
            if node.agent != agent:
                break
            node.closed = True
            handle = node.parent

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._roots)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.snapshot())

    def roots(self) -> list[int]:
        return list(self._roots)

    def children(self, handle: int) -> list[int]:
        return list(self._node(handle).children)

    def message(self, handle: int) -> Message:
        return self._node(handle).message

    def snapshot(self) -> list[Message]:
        """Nested value copy of the tree; event nodes carry their children."""
        return [self._materialize(h) for h in self._roots]

    def _materialize(self, handle: int) -> Message:
        node = self._node(handle)
        event = node.message.event
        if event is None:
            return node.message
        children = [self._materialize(c) for c in node.children]
        return node.message.model_copy(update={"content": event.model_copy(update={"children": children})})

    # ------------------------------------------------------------------
    # Arena
    # ------------------------------------------------------------------

    def _new_node(self, message: Message) -> int:
        handle = len(self._nodes)
        self._nodes.append(_Node(message=message))
        self._by_id[message.id] = handle
        return handle

    def _node(self, handle: int) -> _Node:
        node = self._nodes[handle]
        if node is None:
            raise KeyError(f"Node {handle} was removed")
        return node

    def _drop(self, handle: int) -> None:
        node = self._node(handle)
        for child in node.children:
            self._drop(child)
        self._by_id.pop(node.message.id, None)
        self._nodes[handle] = None

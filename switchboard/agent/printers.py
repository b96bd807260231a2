"""
Printers

- RichEventPrinter: prints each agent event's one-line description as it arrives
- render_tree: renders a ConversationTree as a rich Tree
"""

from __future__ import annotations

from rich.console import Console
from rich.text import Text
from rich.tree import Tree

from .events import EVENT_ICONS, AgentEvent
from .message import Message
from .tree import ConversationTree

EVENT_STYLES: dict[str, str] = {
    "started": "bold cyan",
    "delegated": "magenta",
    "tool_called": "yellow",
    "tool_completed": "green",
    "completed": "bold green",
    "failed": "bold red",
    "error": "red",
}

ROLE_STYLES: dict[str, str] = {
    "user": "bold blue",
    "assistant": "white",
    "tool": "dim",
    "system": "dim italic",
}


class RichEventPrinter:
    """
    Event printer, usable as an EventBus subscriber.

    Usage:
        printer = RichEventPrinter()
        bus.subscribe(printer.handle)
    """

    def __init__(self, console: Console | None = None, *, max_length: int = 200) -> None:
        self.console = console or Console()
        self.max_length = max_length

    def handle(self, event: AgentEvent) -> None:
        indent = "  " if event.type != "started" else ""
        line = indent + _truncate(event.description, self.max_length)
        self.console.print(Text(line, style=EVENT_STYLES.get(event.type, "")))


def _truncate(text: str, limit: int) -> str:
    text = text.replace("\n", " ")
    return text if len(text) <= limit else text[: limit - 3] + "..."


def _label(message: Message, max_length: int) -> Text:
    event = message.event
    if event is not None:
        icon = EVENT_ICONS.get(event.type, "")
        label = f"{icon} {event.agent_name} {event.type}"
        if event.detail_text:
            label += f": {_truncate(event.detail_text, max_length)}"
        return Text(label, style=EVENT_STYLES.get(event.type, ""))
    body = _truncate(message.text, max_length)
    if message.tool_selections:
        calls = ", ".join(s.name for s in message.tool_selections)
        body = f"{body} [tools: {calls}]".strip()
    return Text(f"{message.role}: {body}", style=ROLE_STYLES.get(message.role, ""))


def _add_branch(parent: Tree, message: Message, max_length: int) -> None:
    branch = parent.add(_label(message, max_length))
    event = message.event
    if event is not None:
        for child in event.children:
            _add_branch(branch, child, max_length)


def render_tree(tree: ConversationTree, *, title: str = "conversation", max_length: int = 120) -> Tree:
    """Build a rich Tree from a conversation tree snapshot."""
    root = Tree(Text(title, style="bold"))
    for message in tree.snapshot():
        _add_branch(root, message, max_length)
    return root

"""Tool-call loop: resolve tool selections and re-issue the request until the
model answers without selecting any tool."""

from __future__ import annotations

import inspect
import json
import logging
import warnings
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any

from switchboard.errors import (
    SwitchboardError,
    ToolArgumentDecodeError,
    ToolExecutionError,
    ToolLoopLimitExceeded,
    UnknownTool,
)
from switchboard.tool.types import Tool

from .message import ChatRequest, Message, ToolResult, ToolSelection
from .registry import ProviderRegistry

logger = logging.getLogger(__name__)

HOOK_TYPES = ("before_tool_calling", "after_tool_calling")


@dataclass
class _LoopState:
    """Internal state of one loop run."""

    rounds: int = 0
    messages: list[Message] = field(default_factory=list)


class ToolCallLoop:
    """Runs a request through the registry, executing selected tools.

    Tools run sequentially, in selection order. After every round one tool
    message per result is appended and the request is re-issued. The loop ends
    when a response carries no tool selections.

    Failure rules:
    - selecting an undeclared tool raises ``UnknownTool``
    - arguments that are not a JSON object or fail the tool's schema raise
      ``ToolArgumentDecodeError``
    - a callback raising a framework error propagates it
    - any other callback exception becomes an error tool result

    Example:
        loop = ToolCallLoop(registry, max_rounds=8)
        loop.register_hook("before_tool_calling", lambda s: print(s.name))
        answer = await loop.perform(request)
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        max_rounds: int | None = None,
        hooks: dict[str, Callable[..., Any]] | None = None,
    ) -> None:
        """
        Args:
            registry: Registry used to dispatch every round
            max_rounds: Maximum tool rounds (None for unbounded)
            hooks: Initial hooks keyed by hook type
        """
        self._registry = registry
        self._max_rounds = max_rounds
        self._hooks: dict[str, Callable[..., Any]] = {}
        for hook_type, hook in (hooks or {}).items():
            self.register_hook(hook_type, hook)

    def register_hook(self, hook_type: str, hook: Callable[..., Any]) -> None:
        if hook_type not in HOOK_TYPES:
            raise ValueError(f"Unknown hook type '{hook_type}', expected one of {HOOK_TYPES}")
        self._hooks[hook_type] = hook

    async def _invoke_hook(self, hook_type: str, *args: Any) -> None:
        """Invoke a hook if registered. Hook failures warn but never stop the loop."""
        hook = self._hooks.get(hook_type)
        if hook is None:
            return
        try:
            result = hook(*args)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            warnings.warn(f"Hook '{hook_type}' failed: {e}", RuntimeWarning, stacklevel=2)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def perform(self, request: ChatRequest) -> Message:
        """Run the loop without streaming and return the final assistant message."""
        state = _LoopState(messages=list(request.messages))
        while True:
            response = await self._registry.perform(request.with_messages(state.messages))
            state.messages.append(response)
            if not response.has_tool_selections:
                return response
            self._next_round(state)
            state.messages.extend(await self._resolve_to_messages(response, request.tools))

    async def stream(self, request: ChatRequest) -> AsyncIterator[Message]:
        """Run the loop with streaming.

        Yields assistant snapshots (same id while in progress), then one tool
        message per result, then the next assistant turn under a new id.
        """
        state = _LoopState(messages=list(request.messages))
        while True:
            response: Message | None = None
            async for snapshot in self._registry.stream(request.with_messages(state.messages)):
                response = snapshot
                yield snapshot
            if response is None or not response.has_tool_selections:
                return

            state.messages.append(response)
            self._next_round(state)
            for tool_message in await self._resolve_to_messages(response, request.tools):
                state.messages.append(tool_message)
                yield tool_message

    async def resolve(self, message: Message, tools: list[Tool]) -> list[ToolResult]:
        """Execute every tool selection of an assistant message, in order."""
        results: list[ToolResult] = []
        for selection in message.tool_selections or ():
            results.append(await self._execute_tool(selection, tools))
        return results

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _next_round(self, state: _LoopState) -> None:
        if self._max_rounds is not None and state.rounds >= self._max_rounds:
            raise ToolLoopLimitExceeded(self._max_rounds)
        state.rounds += 1

    async def _resolve_to_messages(self, message: Message, tools: list[Tool]) -> list[Message]:
        return [Message.tool_result(r) for r in await self.resolve(message, tools)]

    async def _execute_tool(self, selection: ToolSelection, tools: list[Tool]) -> ToolResult:
        """Execute a single tool selection."""
        tool = next((t for t in tools if t.name == selection.name), None)
        if tool is None:
            raise UnknownTool(selection.name)

        arguments = _decode_arguments(selection)
        # Schema errors are raised before the callback runs
        tool.validate_parameters(arguments)

        await self._invoke_hook("before_tool_calling", selection)

        try:
            text = await tool.arun(**arguments)
            result = ToolResult(
                tool_selection_id=selection.id,
                result_text=text if isinstance(text, str) else str(text),
            )
        except ToolExecutionError as e:
            result = ToolResult(tool_selection_id=selection.id, result_text=str(e), is_error=True)
        except SwitchboardError:
            raise
        except Exception as e:
            # All other errors return to the model as text
            logger.info(f"Tool '{selection.name}' failed: {type(e).__name__}: {e}")
            result = ToolResult(
                tool_selection_id=selection.id,
                result_text=f"{type(e).__name__}: {e}",
                is_error=True,
            )

        await self._invoke_hook("after_tool_calling", selection, result)
        return result


def _decode_arguments(selection: ToolSelection) -> dict[str, Any]:
    try:
        arguments = json.loads(selection.arguments or "{}")
    except json.JSONDecodeError as e:
        raise ToolArgumentDecodeError(selection.name, selection.arguments, e) from e
    if not isinstance(arguments, dict):
        raise ToolArgumentDecodeError(
            selection.name, selection.arguments, TypeError("arguments must be a JSON object")
        )
    return arguments

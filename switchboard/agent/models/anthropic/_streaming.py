"""
Anthropic 流式事件处理

将 Anthropic 的原始流事件（message_start / content_block_* / message_delta ...）
转换为统一的 MessageDelta。工具调用以内容块 index 作为合并键。
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from anthropic.types import (
    RawContentBlockDeltaEvent,
    RawContentBlockStartEvent,
    RawMessageDeltaEvent,
    RawMessageStartEvent,
)

from switchboard.agent.message import MessageDelta, ToolCallDelta

from ._converters import convert_usage, map_stop_reason

logger = logging.getLogger(__name__)


def _handle_message_start(payload: dict[str, Any]) -> MessageDelta | None:
    """message_start：角色与输入 token 数"""
    event = RawMessageStartEvent.model_validate(payload)
    return MessageDelta(role="assistant", usage=convert_usage(event.message.usage))


def _handle_content_block_start(payload: dict[str, Any]) -> MessageDelta | None:
    """content_block_start：工具调用块携带 id 与 name"""
    event = RawContentBlockStartEvent.model_validate(payload)
    block = event.content_block
    if block.type == "tool_use":
        return MessageDelta(tool_calls=[ToolCallDelta(index=event.index, id=block.id, name=block.name)])
    if block.type == "text" and block.text:
        return MessageDelta(text=block.text)
    return None


def _handle_content_block_delta(payload: dict[str, Any]) -> MessageDelta | None:
    event = RawContentBlockDeltaEvent.model_validate(payload)
    delta = event.delta
    if delta.type == "text_delta":
        return MessageDelta(text=delta.text)
    if delta.type == "input_json_delta":
        return MessageDelta(tool_calls=[ToolCallDelta(index=event.index, arguments=delta.partial_json)])
    # thinking / signature / citations 不进入规范化增量
    logger.debug(f"Ignoring content_block_delta of type {delta.type}")
    return None


def _handle_message_delta(payload: dict[str, Any]) -> MessageDelta | None:
    """message_delta：stop_reason 与输出 token 数"""
    event = RawMessageDeltaEvent.model_validate(payload)
    return MessageDelta(
        stop_reason=map_stop_reason(event.delta.stop_reason),
        usage=convert_usage(event.usage),
    )


_HANDLERS: dict[str, Callable[[dict[str, Any]], MessageDelta | None]] = {
    "message_start": _handle_message_start,
    "content_block_start": _handle_content_block_start,
    "content_block_delta": _handle_content_block_delta,
    "message_delta": _handle_message_delta,
}

# 不携带规范化增量的事件
_IGNORED = frozenset({"content_block_stop", "message_stop", "ping"})


def handle_event(payload: dict[str, Any]) -> MessageDelta | None:
    """统一事件处理入口"""
    event_type = payload.get("type")
    handler = _HANDLERS.get(event_type or "")
    if handler is not None:
        return handler(payload)
    if event_type not in _IGNORED:
        logger.debug(f"Unhandled event type: {event_type}")
    return None

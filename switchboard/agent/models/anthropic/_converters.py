"""
Anthropic 消息格式转换器

处理通用消息与 Anthropic Messages API 格式之间的转换：
- system 消息提升为顶层 system 字段
- tool 消息转换为 user 轮次中的 tool_result 块，相邻结果合并到同一轮
- 工具定义使用 input_schema
"""

from __future__ import annotations

import json
import logging
from typing import Any

from anthropic.types import Message as AnthropicMessage

from switchboard.agent.message import ChatRequest, Message, TokenUsage, ToolSelection

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 4096


def prepare_request(request: ChatRequest) -> dict[str, Any]:
    """将通用请求转换为 Anthropic 格式"""
    system_parts: list[str] = []
    messages: list[dict[str, Any]] = []

    for message in request.messages:
        if message.event is not None:
            continue
        if message.role == "system":
            if message.text:
                system_parts.append(message.text)
            continue

        converted = convert_message_to_anthropic(message)
        # Anthropic 要求 user/assistant 交替，相邻同角色消息合并内容块
        if messages and messages[-1]["role"] == converted["role"]:
            messages[-1]["content"].extend(converted["content"])
        else:
            messages.append(converted)

    req: dict[str, Any] = {
        "model": request.model.id,
        "messages": messages,
        "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
    }
    if system_parts:
        req["system"] = "\n\n".join(system_parts)

    if request.tools:
        req["tools"] = [convert_tool_definition(t) for t in request.tools]
        if request.tool_choice:
            req["tool_choice"] = convert_tool_choice(request.tool_choice)

    if request.temperature is not None:
        req["temperature"] = request.temperature

    return req


def convert_tool_definition(tool: Any) -> dict[str, Any]:
    """转换工具定义为 Anthropic 格式"""
    return {
        "name": tool.name,
        "description": tool.description,
        "input_schema": tool.parameters_schema,
    }


def convert_tool_choice(tool_choice: str) -> dict[str, Any]:
    mapping = {"auto": "auto", "none": "none", "required": "any"}
    return {"type": mapping.get(tool_choice, "auto")}


def convert_message_to_anthropic(message: Message) -> dict[str, Any]:
    """转换单条非 system 消息"""
    if message.role == "tool":
        block: dict[str, Any] = {
            "type": "tool_result",
            "tool_use_id": message.tool_selection_id,
            "content": message.text,
        }
        if message.is_error:
            block["is_error"] = True
        return {"role": "user", "content": [block]}

    content: list[dict[str, Any]] = []
    if message.text:
        content.append({"type": "text", "text": message.text})

    for selection in message.tool_selections or ():
        content.append(
            {
                "type": "tool_use",
                "id": selection.id,
                "name": selection.name,
                "input": _decode_arguments(selection.arguments),
            }
        )

    return {"role": message.role, "content": content}


def _decode_arguments(arguments: str) -> Any:
    try:
        return json.loads(arguments or "{}")
    except json.JSONDecodeError:
        logger.warning(f"Sending undecodable tool arguments as empty input: {arguments!r}")
        return {}


def map_stop_reason(stop_reason: str | None) -> str | None:
    # Anthropic 的 stop_reason 即为通用取值
    return stop_reason


def convert_usage(usage: Any) -> TokenUsage | None:
    if usage is None:
        return None
    return TokenUsage(
        input_tokens=getattr(usage, "input_tokens", None),
        output_tokens=getattr(usage, "output_tokens", None),
    )


def parse_response(response: AnthropicMessage) -> Message:
    """将 Anthropic Message 转换为通用 assistant 消息"""
    texts: list[str] = []
    selections: list[ToolSelection] = []

    for block in response.content:
        if block.type == "text":
            texts.append(block.text)
        elif block.type == "tool_use":
            selections.append(
                ToolSelection(id=block.id, name=block.name, arguments=json.dumps(block.input))
            )
        else:
            logger.debug(f"Ignoring content block of type {block.type}")

    return Message.assistant("".join(texts) or None, selections)

"""
OpenAI 消息格式转换器

提供通用消息格式与 OpenAI Chat Completions 格式之间的转换函数。
所有函数均为纯函数，无状态依赖。
"""

from __future__ import annotations

import logging
from typing import Any

from openai.types.chat import ChatCompletion, ChatCompletionChunk

from switchboard.agent.message import (
    ChatRequest,
    Message,
    MessageDelta,
    TokenUsage,
    ToolCallDelta,
    ToolSelection,
)

logger = logging.getLogger(__name__)


def prepare_request(request: ChatRequest) -> dict[str, Any]:
    """将通用请求转换为 OpenAI 格式

    system 消息保持在 messages 中（OpenAI 原生支持），Agent 事件节点不发送。
    """
    req: dict[str, Any] = {
        "model": request.model.id,
        "messages": [convert_message_to_openai(m) for m in request.messages if m.event is None],
    }

    if request.tools:
        req["tools"] = [convert_tool_definition(t) for t in request.tools]
        if request.tool_choice:
            req["tool_choice"] = request.tool_choice

    if request.max_tokens is not None:
        req["max_tokens"] = request.max_tokens
    if request.temperature is not None:
        req["temperature"] = request.temperature

    return req


def convert_tool_definition(tool: Any) -> dict[str, Any]:
    """转换工具定义为 OpenAI 格式（嵌套 function 格式）"""
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": tool.parameters_schema,
        },
    }


def convert_message_to_openai(message: Message) -> dict[str, Any]:
    """转换单条消息为 OpenAI 格式"""
    if message.role == "tool":
        return {
            "role": "tool",
            "tool_call_id": message.tool_selection_id,
            "content": message.text,
        }

    if message.role == "assistant":
        msg: dict[str, Any] = {"role": "assistant", "content": message.text or None}
        if message.tool_selections:
            msg["tool_calls"] = [
                {
                    "id": s.id,
                    "type": "function",
                    "function": {"name": s.name, "arguments": s.arguments},
                }
                for s in message.tool_selections
            ]
        return msg

    return {"role": message.role, "content": message.text}


def map_stop_reason(finish_reason: str | None) -> str | None:
    """映射 OpenAI finish_reason 到通用 stop_reason"""
    if finish_reason is None:
        return None
    mapping = {
        "stop": "end_turn",
        "length": "max_tokens",
        "tool_calls": "tool_use",
        "function_call": "tool_use",
        "content_filter": "content_filter",
    }
    return mapping.get(finish_reason, finish_reason)


def convert_usage(usage: Any) -> TokenUsage | None:
    if usage is None:
        return None
    return TokenUsage(input_tokens=usage.prompt_tokens, output_tokens=usage.completion_tokens)


def chunk_to_delta(chunk: ChatCompletionChunk) -> MessageDelta | None:
    """将单个 ChatCompletionChunk 转换为 MessageDelta

    只处理第一个 choice；既无 choice 又无 usage 的 chunk 返回 None。
    """
    usage = convert_usage(chunk.usage)
    if not chunk.choices:
        # usage-only chunk（stream_options.include_usage）
        return MessageDelta(usage=usage) if usage is not None else None

    choice = chunk.choices[0]
    delta = choice.delta

    tool_calls = [
        ToolCallDelta(
            index=tc.index,
            id=tc.id,
            name=tc.function.name if tc.function else None,
            arguments=(tc.function.arguments or "") if tc.function else "",
        )
        for tc in delta.tool_calls or ()
    ]

    return MessageDelta(
        role="assistant" if delta.role == "assistant" else None,
        text=delta.content or "",
        tool_calls=tool_calls,
        stop_reason=map_stop_reason(choice.finish_reason),
        usage=usage,
    )


def parse_response(response: ChatCompletion) -> Message:
    """将 ChatCompletion 转换为通用 assistant 消息"""
    if not response.choices:
        return Message.assistant()

    message = response.choices[0].message
    selections: list[ToolSelection] = []
    for tc in message.tool_calls or ():
        function = getattr(tc, "function", None)
        if function is None:
            logger.warning(f"Skipping non-function tool call {tc.id}")
            continue
        selections.append(ToolSelection(id=tc.id, name=function.name, arguments=function.arguments or "{}"))

    return Message.assistant(message.content, selections)

"""
Ollama 消息格式转换器

Ollama /api/chat 的工具定义沿用 OpenAI 的 function 格式，但工具调用参数是 JSON 对象
而非字符串，且调用本身没有 id。非流式响应与流式的每一行共用同一结构（ChatChunk）。
"""

from __future__ import annotations

import itertools
import json
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from switchboard.agent.message import (
    ChatRequest,
    Message,
    MessageDelta,
    TokenUsage,
    ToolCallDelta,
    ToolSelection,
    new_message_id,
)

from ..openai._converters import convert_tool_definition

logger = logging.getLogger(__name__)

# 同一次流中工具调用可能分布在多行，index 必须全局递增才不会被误合并
_tool_call_index = itertools.count()


# =============================================================================
# 线上格式
# =============================================================================


class OllamaFunction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class OllamaToolCall(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    function: OllamaFunction


class OllamaMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: str = "assistant"
    content: str = ""
    tool_calls: list[OllamaToolCall] | None = None


class ChatChunk(BaseModel):
    """/api/chat 的一行（流式）或完整响应（非流式）"""

    model_config = ConfigDict(extra="ignore")

    model: str | None = None
    message: OllamaMessage | None = None
    done: bool = False
    done_reason: str | None = None
    prompt_eval_count: int | None = None
    eval_count: int | None = None


# =============================================================================
# 请求
# =============================================================================


def prepare_request(request: ChatRequest) -> dict[str, Any]:
    """将通用请求转换为 Ollama 格式

    max_tokens / temperature 进入 options；Ollama 不支持 tool_choice，忽略之。
    """
    req: dict[str, Any] = {
        "model": request.model.id,
        "messages": convert_messages(request.messages),
    }

    if request.tools:
        req["tools"] = [convert_tool_definition(t) for t in request.tools]
        if request.tool_choice:
            logger.debug(f"Ollama ignores tool_choice={request.tool_choice!r}")

    options: dict[str, Any] = {}
    if request.max_tokens is not None:
        options["num_predict"] = request.max_tokens
    if request.temperature is not None:
        options["temperature"] = request.temperature
    if options:
        req["options"] = options

    return req


def convert_messages(messages: list[Message]) -> list[dict[str, Any]]:
    """转换消息列表；tool 消息通过前文的 ToolSelection 找回工具名"""
    names: dict[str, str] = {}
    converted: list[dict[str, Any]] = []

    for message in messages:
        if message.event is not None:
            continue

        if message.role == "assistant":
            msg: dict[str, Any] = {"role": "assistant", "content": message.text}
            if message.tool_selections:
                msg["tool_calls"] = []
                for s in message.tool_selections:
                    names[s.id] = s.name
                    msg["tool_calls"].append({"function": {"name": s.name, "arguments": _arguments_object(s)}})
            converted.append(msg)
        elif message.role == "tool":
            msg = {"role": "tool", "content": message.text}
            name = names.get(message.tool_selection_id or "")
            if name:
                msg["tool_name"] = name
            converted.append(msg)
        else:
            converted.append({"role": message.role, "content": message.text})

    return converted


def _arguments_object(selection: ToolSelection) -> dict[str, Any]:
    try:
        arguments = json.loads(selection.arguments or "{}")
    except json.JSONDecodeError:
        logger.warning(f"Tool call {selection.id} has non-JSON arguments; sending an empty object")
        return {}
    return arguments if isinstance(arguments, dict) else {}


# =============================================================================
# 响应
# =============================================================================


def map_stop_reason(done_reason: str | None) -> str | None:
    if done_reason is None:
        return None
    mapping = {"stop": "end_turn", "length": "max_tokens"}
    return mapping.get(done_reason, done_reason)


def convert_usage(chunk: ChatChunk) -> TokenUsage | None:
    if chunk.prompt_eval_count is None and chunk.eval_count is None:
        return None
    return TokenUsage(input_tokens=chunk.prompt_eval_count, output_tokens=chunk.eval_count)


def _new_call_id() -> str:
    return f"call_{new_message_id()[:12]}"


def chunk_to_delta(chunk: ChatChunk) -> MessageDelta:
    """将一行流式响应转换为 MessageDelta

    每个工具调用在一行内完整给出，因此各自占用一个新 index。
    """
    message = chunk.message or OllamaMessage()
    tool_calls = [
        ToolCallDelta(
            index=next(_tool_call_index),
            id=tc.id or _new_call_id(),
            name=tc.function.name,
            arguments=json.dumps(tc.function.arguments, ensure_ascii=False),
        )
        for tc in message.tool_calls or ()
    ]
    return MessageDelta(
        role="assistant" if message.role == "assistant" else None,
        text=message.content,
        tool_calls=tool_calls,
        stop_reason=map_stop_reason(chunk.done_reason) if chunk.done else None,
        usage=convert_usage(chunk) if chunk.done else None,
    )


def parse_response(chunk: ChatChunk) -> Message:
    """将非流式响应转换为通用 assistant 消息"""
    message = chunk.message or OllamaMessage()
    selections = [
        ToolSelection(
            id=tc.id or _new_call_id(),
            name=tc.function.name,
            arguments=json.dumps(tc.function.arguments, ensure_ascii=False),
        )
        for tc in message.tool_calls or ()
    ]
    return Message.assistant(message.content or None, selections)

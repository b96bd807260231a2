"""
消息抽象层核心类型定义

所有规范化的值类型（Model、Message、MessageDelta、ChatRequest 等）均为 pydantic 模型，
与具体提供商的线上格式无关。适配器负责双向转换。
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

from switchboard.errors import ToolProtocolError

if TYPE_CHECKING:
    from switchboard.tool.types import Tool

Role: TypeAlias = Literal["system", "user", "assistant", "tool"]


def new_message_id() -> str:
    return uuid.uuid4().hex


# =============================================================================
# Model 标识
# =============================================================================


class Model(BaseModel):
    """模型标识：提供商 + 模型 ID，配置时构建，不可变"""

    model_config = ConfigDict(frozen=True)

    id: str
    provider: str

    def __str__(self) -> str:
        return f"{self.provider}:{self.id}"

    @classmethod
    def parse(cls, value: str) -> Model:
        """解析 ``provider:model_id`` 形式的字符串"""
        provider, sep, model_id = value.partition(":")
        if not sep or not provider or not model_id:
            raise ValueError(f"Expected 'provider:model', got {value!r}")
        return cls(id=model_id, provider=provider)


# =============================================================================
# 工具调用 / 工具结果
# =============================================================================


class ToolSelection(BaseModel):
    """模型在 assistant 消息中发起的一次工具调用

    arguments 保持序列化后的 JSON 字符串，由工具循环负责解析。
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    arguments: str = "{}"


class ToolResult(BaseModel):
    """工具执行结果，总是通过 role=tool 的消息承载"""

    model_config = ConfigDict(frozen=True)

    tool_selection_id: str
    result_text: str
    is_error: bool = False


# =============================================================================
# Message
# =============================================================================


class AgentEventContent(BaseModel):
    """Agent 生命周期事件节点的内容，children 为嵌套的子节点快照"""

    model_config = ConfigDict(frozen=True)

    type: str
    agent_name: str
    detail_text: str = ""
    children: list[Message] = Field(default_factory=list)


class Message(BaseModel):
    """
    通用消息格式

    content 为 tagged variant：
    - None: 空内容
    - str: 纯文本
    - list[str]: 有序文本片段
    - AgentEventContent: Agent 事件节点（role=system）

    消息不可变；流式过程中以相同 id 产生新的快照。
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_message_id)
    role: Role
    content: str | list[str] | AgentEventContent | None = None

    # 以下字段仅在特定 role 下使用
    tool_selections: list[ToolSelection] | None = None  # assistant: 模型请求调用工具
    tool_selection_id: str | None = None  # tool: 对应 ToolSelection.id
    is_error: bool = False  # tool: 结果是否为错误

    @property
    def text(self) -> str:
        """消息的文本内容（片段直接拼接，事件节点返回 detail_text）"""
        content = self.content
        if content is None:
            return ""
        if isinstance(content, str):
            return content
        if isinstance(content, AgentEventContent):
            return content.detail_text
        return "".join(content)

    @property
    def event(self) -> AgentEventContent | None:
        return self.content if isinstance(self.content, AgentEventContent) else None

    @property
    def has_tool_selections(self) -> bool:
        return bool(self.tool_selections)

    # ------------------------------------------------------------------
    # 构造辅助
    # ------------------------------------------------------------------

    @classmethod
    def system(cls, text: str) -> Message:
        return cls(role="system", content=text)

    @classmethod
    def user(cls, text: str) -> Message:
        return cls(role="user", content=text)

    @classmethod
    def assistant(
        cls,
        text: str | None = None,
        tool_selections: list[ToolSelection] | None = None,
        *,
        id: str | None = None,
    ) -> Message:
        return cls(
            id=id or new_message_id(),
            role="assistant",
            content=text,
            tool_selections=tool_selections or None,
        )

    @classmethod
    def tool_result(cls, result: ToolResult) -> Message:
        return cls(
            role="tool",
            content=result.result_text,
            tool_selection_id=result.tool_selection_id,
            is_error=result.is_error,
        )

    def to_tool_result(self) -> ToolResult:
        if self.role != "tool" or self.tool_selection_id is None:
            raise ValueError("Only tool messages carry a tool result")
        return ToolResult(
            tool_selection_id=self.tool_selection_id,
            result_text=self.text,
            is_error=self.is_error,
        )


AgentEventContent.model_rebuild()


# =============================================================================
# 流式增量
# =============================================================================


def _first_non_empty(a: str | None, b: str | None) -> str | None:
    return a if a else (b if b else None)


class TokenUsage(BaseModel):
    """Token 使用统计，合并时逐字段取最后一个非空值"""

    model_config = ConfigDict(frozen=True)

    input_tokens: int | None = None
    output_tokens: int | None = None

    def combine(self, other: TokenUsage | None) -> TokenUsage:
        if other is None:
            return self
        return TokenUsage(
            input_tokens=other.input_tokens if other.input_tokens is not None else self.input_tokens,
            output_tokens=other.output_tokens if other.output_tokens is not None else self.output_tokens,
        )


class ToolCallDelta(BaseModel):
    """工具调用增量片段，按 index 合并"""

    model_config = ConfigDict(frozen=True)

    index: int
    id: str | None = None
    name: str | None = None
    arguments: str = ""  # 参数 JSON 片段

    def combine(self, other: ToolCallDelta) -> ToolCallDelta:
        return ToolCallDelta(
            index=self.index,
            id=_first_non_empty(self.id, other.id),
            name=_first_non_empty(self.name, other.name),
            arguments=self.arguments + other.arguments,
        )


class MessageDelta(BaseModel):
    """
    单个流式帧解码后的规范化增量

    combine 满足结合律：
    - text: 拼接
    - role: 取第一个非空
    - tool_calls: 按 index 合并，id/name 取第一个非空，arguments 拼接
    - stop_reason / usage: 取最后一个非空
    """

    model_config = ConfigDict(frozen=True)

    role: Role | None = None
    text: str = ""
    tool_calls: list[ToolCallDelta] = Field(default_factory=list)
    stop_reason: str | None = None
    usage: TokenUsage | None = None

    @property
    def has_content(self) -> bool:
        """是否携带可见文本或工具调用数据"""
        return bool(self.text.strip()) or bool(self.tool_calls)

    def combine(self, other: MessageDelta) -> MessageDelta:
        merged: dict[int, ToolCallDelta] = {tc.index: tc for tc in self.tool_calls}
        for tc in other.tool_calls:
            existing = merged.get(tc.index)
            merged[tc.index] = existing.combine(tc) if existing is not None else tc

        if self.usage is None:
            usage = other.usage
        else:
            usage = self.usage.combine(other.usage)

        return MessageDelta(
            role=self.role or other.role,
            text=self.text + other.text,
            tool_calls=list(merged.values()),
            stop_reason=other.stop_reason if other.stop_reason is not None else self.stop_reason,
            usage=usage,
        )

    def to_message(self, id: str, text: str | None = None) -> Message:
        """按给定 id 生成 assistant 消息快照"""
        selections = [
            ToolSelection(
                id=tc.id or f"call_{tc.index}",
                name=tc.name or "",
                arguments=tc.arguments or "{}",
            )
            for tc in sorted(self.tool_calls, key=lambda tc: tc.index)
        ]
        body = self.text if text is None else text
        return Message(
            id=id,
            role="assistant",
            content=body or None,
            tool_selections=selections or None,
        )


# =============================================================================
# 请求
# =============================================================================


class ChatRequest(BaseModel):
    """提供商无关的聊天请求"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    model: Model
    messages: list[Message]
    tools: list[Any] = Field(default_factory=list)  # list[Tool]
    tool_choice: Literal["auto", "none", "required"] | None = None
    max_tokens: int | None = None
    temperature: float | None = None

    def get_tool(self, name: str) -> Tool | None:
        for t in self.tools:
            if t.name == name:
                return t
        return None

    def with_messages(self, messages: list[Message]) -> ChatRequest:
        return self.model_copy(update={"messages": list(messages)})


def validate_conversation(messages: list[Message]) -> None:
    """检查每条 tool 消息都对应前一条 assistant 消息中的某个 ToolSelection

    Raises:
        ToolProtocolError: 工具结果没有匹配的调用
    """
    pending: set[str] | None = None
    for message in messages:
        if message.role == "assistant":
            pending = {s.id for s in message.tool_selections or ()}
        elif message.role == "tool":
            if pending is None or message.tool_selection_id not in pending:
                raise ToolProtocolError(
                    f"Tool result {message.tool_selection_id!r} does not answer a selection "
                    "of the preceding assistant message"
                )
        else:
            pending = None

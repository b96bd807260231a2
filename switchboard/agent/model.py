"""
Provider Adapter 基类

统一 LLM 提供商的编解码接口。适配器只做格式转换，不发起 HTTP 请求：
HTTP 交换由其持有的 Transport 完成，调度与累积由 ProviderRegistry 负责。
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from switchboard.errors import ProviderAPIError

from .message import ChatRequest, Message, MessageDelta
from .streaming import split_sse_frames
from .transport import DEFAULT_TIMEOUT, HttpxTransport, Transport, WireRequest

__all__ = ["ProviderAdapter", "ProviderRequest", "ProviderResponse"]

# 提供商特定的请求/响应格式，各家差异很大
ProviderRequest = dict[str, Any]
ProviderResponse = dict[str, Any]


class ProviderAdapter(ABC):
    """
    ProviderAdapter 抽象基类

    子类必须实现：
    - provider: 提供商标识
    - default_base_url: 默认 API 地址
    - _prepare_request_impl(): 通用请求 -> 提供商请求体
    - _parse_response_impl(): 提供商响应体 -> 通用 Message
    - decode_frame(): 单个完整帧 -> MessageDelta | None

    可选覆盖：
    - split_frames(): 流式分帧规则，默认 SSE（空行分隔）
    - _auth_headers(): 认证头
    - decode_error(): 错误响应 -> ProviderAPIError

    Example:
        adapter = OpenAIAdapter(api_key="sk-...", models=["gpt-4o"])
        registry.register(adapter)
    """

    provider: str
    default_base_url: str
    path: str

    def __init__(
        self,
        api_key: str | None = None,
        *,
        models: Iterable[str] | None = None,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Transport | None = None,
    ) -> None:
        """
        Args:
            api_key: API 密钥
            models: 本适配器声明支持的模型 ID；None 表示该提供商的任意模型
            base_url: 覆盖默认 API 地址
            timeout: 请求超时（秒）
            transport: 自定义传输层（测试中注入 mock）
        """
        self.api_key = api_key
        self.models: frozenset[str] | None = frozenset(models) if models is not None else None
        self.transport = transport or HttpxTransport(base_url or self.default_base_url, timeout=timeout)

    # ==========================================================================
    # 路由
    # ==========================================================================

    def accepts(self, request: ChatRequest) -> bool:
        """是否能处理该请求的模型"""
        model = request.model
        if model.provider != self.provider:
            return False
        return self.models is None or model.id in self.models

    def overlaps(self, other: ProviderAdapter) -> bool:
        """两个适配器声明的模型集合是否有交集"""
        if self.provider != other.provider:
            return False
        if self.models is None or other.models is None:
            return True
        return bool(self.models & other.models)

    # ==========================================================================
    # 编码
    # ==========================================================================

    def encode(self, request: ChatRequest, stream: bool) -> WireRequest:
        """编码为线上请求"""
        body = self._prepare_request_impl(request)
        if stream:
            body["stream"] = True
        return WireRequest(path=self.path, body=body, headers=self._auth_headers())

    def _auth_headers(self) -> dict[str, str]:
        return {}

    @abstractmethod
    def _prepare_request_impl(self, request: ChatRequest) -> ProviderRequest:
        """将通用请求转换为提供商特定格式"""

    # ==========================================================================
    # 解码
    # ==========================================================================

    def decode_response(self, body: bytes) -> Message:
        """解码完整（非流式）响应"""
        return self._parse_response_impl(json.loads(body))

    @abstractmethod
    def _parse_response_impl(self, response: ProviderResponse) -> Message:
        """将提供商响应转换为通用格式"""

    def split_frames(self, buffer: bytes) -> tuple[list[bytes], bytes]:
        """从缓冲区切出完整帧，返回 (帧列表, 剩余字节)

        帧列表为空表示需要更多字节。默认按 SSE 事件分帧。
        """
        return split_sse_frames(buffer)

    @abstractmethod
    def decode_frame(self, frame: bytes) -> MessageDelta | None:
        """解码 split_frames 切出的一个完整帧

        帧不携带规范化增量时（keep-alive、[DONE]、ping 等）返回 None。
        """

    def decode_error(self, status: int | None, body: bytes) -> ProviderAPIError:
        """错误响应体原样保留：能解析为 JSON 则保留对象，否则保留文本"""
        text = body.decode("utf-8", errors="replace")
        try:
            payload: Any = json.loads(text)
        except json.JSONDecodeError:
            payload = text
        return ProviderAPIError(self.provider, status, payload)

    def __repr__(self) -> str:
        models = sorted(self.models) if self.models is not None else "*"
        return f"{self.__class__.__name__}(provider={self.provider!r}, models={models})"

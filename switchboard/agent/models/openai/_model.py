"""
OpenAI Chat Completions 适配器

流式格式：每个 SSE 帧携带一行 ``data: {chunk}``，以 ``data: [DONE]`` 结束。
"""

from __future__ import annotations

import logging
from typing import Any

from openai.types.chat import ChatCompletion, ChatCompletionChunk

from switchboard.agent.message import ChatRequest, Message, MessageDelta
from switchboard.agent.model import ProviderAdapter, ProviderRequest, ProviderResponse
from switchboard.agent.transport import WireRequest
from switchboard.errors import ProviderAPIError

from .._utils import DONE_SENTINEL, parse_sse_frame
from ._converters import chunk_to_delta, parse_response, prepare_request

logger = logging.getLogger(__name__)


class OpenAIAdapter(ProviderAdapter):
    """
    OpenAI 兼容提供商适配器

    同样适用于 DeepSeek、Kimi 等 OpenAI 兼容 API，只需设置 base_url 与 provider。

    Example:
        adapter = OpenAIAdapter(api_key="sk-...", models=["gpt-4o"])
        registry.register(adapter)
    """

    provider = "openai"
    default_base_url = "https://api.openai.com/v1"
    path = "/chat/completions"

    def __init__(self, api_key: str | None = None, *, provider: str | None = None, **kwargs: Any) -> None:
        if provider is not None:
            self.provider = provider
        super().__init__(api_key, **kwargs)

    def _auth_headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        return {"Authorization": f"Bearer {self.api_key}"}

    def encode(self, request: ChatRequest, stream: bool) -> WireRequest:
        wire = super().encode(request, stream)
        if stream:
            wire.body["stream_options"] = {"include_usage": True}
        return wire

    def _prepare_request_impl(self, request: ChatRequest) -> ProviderRequest:
        return prepare_request(request)

    def _parse_response_impl(self, response: ProviderResponse) -> Message:
        if "error" in response:
            raise ProviderAPIError(self.provider, None, response["error"])
        return parse_response(ChatCompletion.model_validate(response))

    def decode_frame(self, frame: bytes) -> MessageDelta | None:
        sse = parse_sse_frame(frame)
        if sse is None or sse.data.strip() == DONE_SENTINEL:
            return None

        payload = sse.json()
        if "error" in payload:
            # 流中途的错误帧
            raise ProviderAPIError(self.provider, None, payload["error"])
        return chunk_to_delta(ChatCompletionChunk.model_validate(payload))

"""
Anthropic Messages API 适配器

流式格式：每个 SSE 帧由 ``event:`` 行和 ``data:`` 行组成，event 行仅作提示，
以 data 中的 type 字段为准。
"""

from __future__ import annotations

import logging
from typing import Any

from anthropic.types import Message as AnthropicMessage

from switchboard.agent.message import ChatRequest, Message, MessageDelta
from switchboard.agent.model import ProviderAdapter, ProviderRequest, ProviderResponse
from switchboard.errors import ProviderAPIError

from .._utils import parse_sse_frame
from ._converters import parse_response, prepare_request
from ._streaming import handle_event

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicAdapter(ProviderAdapter):
    """
    Anthropic 提供商适配器

    Example:
        adapter = AnthropicAdapter(api_key="sk-ant-...", models=["claude-sonnet-4-5"])
        registry.register(adapter)
    """

    provider = "anthropic"
    default_base_url = "https://api.anthropic.com/v1"
    path = "/messages"

    def __init__(self, api_key: str | None = None, *, provider: str | None = None, **kwargs: Any) -> None:
        if provider is not None:
            self.provider = provider
        super().__init__(api_key, **kwargs)

    def _auth_headers(self) -> dict[str, str]:
        headers = {"anthropic-version": ANTHROPIC_VERSION}
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    def _prepare_request_impl(self, request: ChatRequest) -> ProviderRequest:
        return prepare_request(request)

    def _parse_response_impl(self, response: ProviderResponse) -> Message:
        if response.get("type") == "error":
            raise ProviderAPIError(self.provider, None, response.get("error", response))
        return parse_response(AnthropicMessage.model_validate(response))

    def decode_frame(self, frame: bytes) -> MessageDelta | None:
        sse = parse_sse_frame(frame)
        if sse is None:
            return None

        payload = sse.json()
        if payload.get("type") == "error":
            raise ProviderAPIError(self.provider, None, payload.get("error", payload))
        return handle_event(payload)

"""
Ollama /api/chat 适配器

流式格式：NDJSON，每行一个完整 JSON 对象，最后一行 ``done`` 为 true 并携带
done_reason 与 token 计数。中途出错时某一行为 ``{"error": "..."}``。
"""

from __future__ import annotations

import json
import logging
from typing import Any

from switchboard.agent.message import ChatRequest, Message, MessageDelta
from switchboard.agent.model import ProviderAdapter, ProviderRequest, ProviderResponse
from switchboard.agent.streaming import split_ndjson_lines
from switchboard.agent.transport import WireRequest
from switchboard.errors import ProviderAPIError

from ._converters import ChatChunk, chunk_to_delta, parse_response, prepare_request

logger = logging.getLogger(__name__)


class OllamaAdapter(ProviderAdapter):
    """
    Ollama 本地模型适配器

    默认连接本机 Ollama 服务，不需要 API 密钥；设置 api_key 时以 Bearer 发送。

    Example:
        adapter = OllamaAdapter(models=["llama3.2"])
        registry.register(adapter)
    """

    provider = "ollama"
    default_base_url = "http://localhost:11434"
    path = "/api/chat"

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
        # Ollama 默认流式，非流式必须显式关闭
        wire.body["stream"] = stream
        return wire

    def _prepare_request_impl(self, request: ChatRequest) -> ProviderRequest:
        return prepare_request(request)

    def _parse_response_impl(self, response: ProviderResponse) -> Message:
        if "error" in response:
            raise ProviderAPIError(self.provider, None, response["error"])
        return parse_response(ChatChunk.model_validate(response))

    def split_frames(self, buffer: bytes) -> tuple[list[bytes], bytes]:
        return split_ndjson_lines(buffer)

    def decode_frame(self, frame: bytes) -> MessageDelta | None:
        payload = json.loads(frame)
        if "error" in payload:
            raise ProviderAPIError(self.provider, None, payload["error"])

        delta = chunk_to_delta(ChatChunk.model_validate(payload))
        if delta == MessageDelta(role="assistant"):
            return None
        return delta

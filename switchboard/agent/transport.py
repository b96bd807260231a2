"""
HTTP 传输层

适配器只负责编解码，HTTP 交换由 Transport 完成。默认实现基于 httpx.AsyncClient，
测试中可注入 httpx.MockTransport。
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

import httpx

from switchboard.errors import TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0


@dataclass
class WireRequest:
    """适配器编码后的提供商请求"""

    path: str
    body: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class WireResponse:
    """一次非流式交换的结果"""

    status: int
    body: bytes


class StreamResponse:
    """流式交换：状态码 + 原始字节流"""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response

    @property
    def status(self) -> int:
        return self._response.status_code

    async def aread(self) -> bytes:
        try:
            return await self._response.aread()
        except httpx.TransportError as e:
            raise TransportError(f"Failed to read error body: {e}", e) from e

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_bytes():
                yield chunk
        except httpx.TimeoutException as e:
            raise TransportError(f"Stream timed out: {e}", e) from e
        except httpx.TransportError as e:
            raise TransportError(f"Stream interrupted: {e}", e) from e


class Transport(ABC):
    """HTTP POST 传输抽象"""

    @abstractmethod
    async def send(self, request: WireRequest) -> WireResponse:
        """发送请求并读取完整响应体"""

    @abstractmethod
    def stream(self, request: WireRequest) -> Any:
        """异步上下文管理器，产出 StreamResponse；退出时关闭连接"""

    async def aclose(self) -> None:
        pass


class HttpxTransport(Transport):
    """基于 httpx.AsyncClient 的传输实现

    超时与网络错误统一映射为 TransportError，不做重试。
    """

    def __init__(
        self,
        base_url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers or {},
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return str(self._client.base_url)

    async def send(self, request: WireRequest) -> WireResponse:
        try:
            response = await self._client.post(request.path, json=request.body, headers=request.headers)
        except httpx.TimeoutException as e:
            logger.error(f"Request to {request.path} timed out: {e}")
            raise TransportError(f"Request timed out: {e}", e) from e
        except httpx.TransportError as e:
            logger.error(f"Request to {request.path} failed: {e}")
            raise TransportError(f"Connection failed: {e}", e) from e
        return WireResponse(status=response.status_code, body=response.content)

    @asynccontextmanager
    async def stream(self, request: WireRequest) -> AsyncIterator[StreamResponse]:
        try:
            async with self._client.stream(
                "POST", request.path, json=request.body, headers=request.headers
            ) as response:
                yield StreamResponse(response)
        except httpx.TimeoutException as e:
            logger.error(f"Stream to {request.path} timed out: {e}")
            raise TransportError(f"Request timed out: {e}", e) from e
        except httpx.TransportError as e:
            logger.error(f"Stream to {request.path} failed: {e}")
            raise TransportError(f"Connection failed: {e}", e) from e

    async def aclose(self) -> None:
        await self._client.aclose()

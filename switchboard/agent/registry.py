"""
Provider Registry

按注册顺序调度请求到第一个接受该模型的适配器，并完成一次完整的 HTTP 交换：
- perform(): 非流式，返回完整 assistant 消息
- stream(): 流式，逐个产出同一 id 的 assistant 消息快照
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from switchboard.errors import UnregisteredProvider

from .message import ChatRequest, Message, validate_conversation
from .model import ProviderAdapter
from .streaming import StreamDecoder, Transcript

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """适配器注册表

    注册顺序即调度优先级：第一个 accepts() 的适配器胜出，后注册的适配器
    不会覆盖先注册的适配器。

    Example:
        registry = ProviderRegistry()
        registry.register(OpenAIAdapter(api_key="sk-..."))
        message = await registry.perform(request)
    """

    def __init__(self, adapters: list[ProviderAdapter] | None = None) -> None:
        self._adapters: list[ProviderAdapter] = []
        for adapter in adapters or ():
            self.register(adapter)

    @property
    def adapters(self) -> list[ProviderAdapter]:
        return list(self._adapters)

    def register(self, adapter: ProviderAdapter) -> None:
        for existing in self._adapters:
            if existing.overlaps(adapter):
                logger.warning(f"{adapter!r} overlaps {existing!r}; the earlier registration takes priority")
        self._adapters.append(adapter)
        logger.debug(f"Registered {adapter!r} at priority {len(self._adapters) - 1}")

    def dispatch(self, request: ChatRequest) -> ProviderAdapter:
        """选择处理该请求的适配器

        Raises:
            UnregisteredProvider: 没有适配器接受该模型
        """
        for adapter in self._adapters:
            if adapter.accepts(request):
                logger.debug(f"Dispatching {request.model} to {adapter!r}")
                return adapter
        raise UnregisteredProvider(request.model)

    async def perform(self, request: ChatRequest) -> Message:
        """非流式调用，返回完整 assistant 消息"""
        validate_conversation(request.messages)
        adapter = self.dispatch(request)
        response = await adapter.transport.send(adapter.encode(request, stream=False))
        if response.status >= 400:
            raise adapter.decode_error(response.status, response.body)
        return adapter.decode_response(response.body)

    async def stream(self, request: ChatRequest) -> AsyncIterator[Message]:
        """流式调用

        产出的每个快照共享同一 id。最后一个元素为最终消息，即使与上一个快照
        相同也会再次产出，标志本轮结束。空响应产出一条空的 assistant 消息。
        """
        validate_conversation(request.messages)
        adapter = self.dispatch(request)
        transcript = Transcript()

        async with adapter.transport.stream(adapter.encode(request, stream=True)) as response:
            if response.status >= 400:
                raise adapter.decode_error(response.status, await response.aread())

            async for delta in StreamDecoder(adapter, response.aiter_bytes()):
                snapshot = transcript.add(delta)
                if snapshot is not None:
                    yield snapshot

        final = transcript.finish()
        yield final if final is not None else Message.assistant()

    async def aclose(self) -> None:
        for adapter in self._adapters:
            await adapter.transport.aclose()

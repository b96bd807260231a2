"""
流式解码与响应累积

- split_sse_frames / split_ndjson_lines: 提供商分帧规则（适配器通过 split_frames 选择）
- StreamDecoder: 字节流 -> 完整帧 -> MessageDelta（惰性、只能迭代一次）
- ResponseAccumulator: MessageDelta 折叠为 assistant 消息快照
- Transcript: 面向调用方的消息列表，维护流式消息的 id 连续性
"""

from __future__ import annotations

import functools
import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterable
from typing import TYPE_CHECKING

from switchboard.errors import StreamDecodeError, SwitchboardError

from .message import Message, MessageDelta, new_message_id

if TYPE_CHECKING:
    from .model import ProviderAdapter

logger = logging.getLogger(__name__)

SSE_SEPARATOR = b"\n\n"


def normalize_text(text: str) -> str:
    """去除分块产生的首尾空白；所有可见快照与最终消息统一经过此处"""
    return text.strip()


def fold(deltas: Iterable[MessageDelta]) -> MessageDelta:
    """批量折叠增量，结果与逐个 add 相同"""
    return functools.reduce(MessageDelta.combine, deltas, MessageDelta())


# =============================================================================
# 分帧
# =============================================================================


def split_sse_frames(buffer: bytes) -> tuple[list[bytes], bytes]:
    """按空行切分 SSE 事件

    CRLF 先规范化为 LF；返回 (完整帧, 剩余字节)。没有完整帧时帧列表为空，
    表示需要更多字节。
    """
    buffer = buffer.replace(b"\r\n", b"\n")
    frames: list[bytes] = []
    while (end := buffer.find(SSE_SEPARATOR)) != -1:
        frames.append(buffer[:end])
        buffer = buffer[end + len(SSE_SEPARATOR):]
    return frames, buffer


def split_ndjson_lines(buffer: bytes) -> tuple[list[bytes], bytes]:
    """按行切分 NDJSON 流，空行被丢弃"""
    *lines, rest = buffer.split(b"\n")
    frames = [line.rstrip(b"\r") for line in lines]
    return [f for f in frames if f.strip()], rest


class StreamDecoder:
    """将原始字节流解码为 MessageDelta 序列

    字节在缓冲区中累积，由适配器的 split_frames 切出完整帧（SSE 事件、NDJSON
    行等）后才交给 decode_frame，因此跨读取边界的多字节 UTF-8 字符是安全的。
    split_frames 不返回帧时继续等待更多字节。传输关闭时，缓冲区中剩余的非空
    字节作为最后一帧解码。

    Example:
        async with transport.stream(wire) as response:
            async for delta in StreamDecoder(adapter, response.aiter_bytes()):
                ...
    """

    def __init__(self, adapter: ProviderAdapter, chunks: AsyncIterable[bytes]) -> None:
        self._adapter = adapter
        self._chunks = chunks
        self._consumed = False

    def __aiter__(self) -> AsyncIterator[MessageDelta]:
        if self._consumed:
            raise RuntimeError("StreamDecoder can only be iterated once")
        self._consumed = True
        return self._decode()

    async def _decode(self) -> AsyncIterator[MessageDelta]:
        buffer = b""
        async for chunk in self._chunks:
            if not chunk:
                continue
            frames, buffer = self._adapter.split_frames(buffer + chunk)
            for frame in frames:
                delta = self._decode_frame(frame)
                if delta is not None:
                    yield delta

        if buffer.strip():
            logger.debug(f"Decoding {len(buffer)} trailing bytes as final frame")
            delta = self._decode_frame(buffer)
            if delta is not None:
                yield delta

    def _decode_frame(self, frame: bytes) -> MessageDelta | None:
        try:
            return self._adapter.decode_frame(frame)
        except SwitchboardError:
            raise
        except Exception as e:
            logger.warning(f"{self._adapter.provider} frame decode failed: {e}")
            raise StreamDecodeError(frame, e) from e


class ResponseAccumulator:
    """将 MessageDelta 依次折叠为单条 assistant 消息

    所有快照共享同一个 id。
    """

    def __init__(self, message_id: str | None = None) -> None:
        self.id = message_id or new_message_id()
        self._delta = MessageDelta()
        self.finalized = False

    @property
    def delta(self) -> MessageDelta:
        """目前为止的合并增量（含 stop_reason / usage）"""
        return self._delta

    def add(self, delta: MessageDelta) -> Message:
        if self.finalized:
            raise RuntimeError("Cannot add to a finalized response")
        self._delta = self._delta.combine(delta)
        return self.snapshot()

    def snapshot(self) -> Message:
        return self._delta.to_message(self.id, normalize_text(self._delta.text))

    def message(self) -> Message:
        """未经规范化的原始消息"""
        return self._delta.to_message(self.id)

    def finalize(self) -> Message:
        self.finalized = True
        return self.snapshot()


class Transcript:
    """面向调用方的消息列表

    身份规则：仅当最后一条消息是未完成的 assistant 消息时，增量才延续它（同一 id）；
    否则开启新的 assistant 消息（新 id）。不携带可见文本和工具调用数据的增量
    永远不会开启新消息，它们被暂存并并入下一条消息。
    """

    def __init__(self, messages: Iterable[Message] | None = None) -> None:
        self.messages: list[Message] = list(messages or ())
        self._accumulator: ResponseAccumulator | None = None
        self._pending = MessageDelta()

    @property
    def last_delta(self) -> MessageDelta | None:
        return self._accumulator.delta if self._accumulator is not None else None

    def add(self, delta: MessageDelta) -> Message | None:
        """并入一个增量；可见快照变化时返回新快照，否则返回 None"""
        if self._accumulator is None:
            if not delta.has_content:
                self._pending = self._pending.combine(delta)
                return None
            self._accumulator = ResponseAccumulator()
            self._accumulator.add(self._pending)
            self._pending = MessageDelta()
            snapshot = self._accumulator.add(delta)
            self.messages.append(snapshot)
            return snapshot

        previous = self.messages[-1]
        snapshot = self._accumulator.add(delta)
        if snapshot == previous:
            return None
        self.messages[-1] = snapshot
        return snapshot

    def finish(self) -> Message | None:
        """结束当前 assistant 消息，返回最终消息（无进行中的消息时返回 None）"""
        if self._accumulator is None:
            return None
        final = self._accumulator.finalize()
        self.messages[-1] = final
        self._accumulator = None
        self._pending = MessageDelta()
        return final

    def append(self, message: Message) -> None:
        """追加一条完整消息（如工具结果），同时结束进行中的 assistant 消息"""
        self.finish()
        self.messages.append(message)

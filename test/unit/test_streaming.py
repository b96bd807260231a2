"""Unit tests for StreamDecoder, ResponseAccumulator and Transcript."""

import json

import pytest

from switchboard.agent.message import Message, MessageDelta, TokenUsage, ToolCallDelta, ToolResult
from switchboard.agent.models import OllamaAdapter, OpenAIAdapter
from switchboard.agent.streaming import (
    ResponseAccumulator,
    StreamDecoder,
    Transcript,
    normalize_text,
    split_ndjson_lines,
    split_sse_frames,
)
from switchboard.errors import ProviderAPIError, StreamDecodeError


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


def _split_every(data: bytes, size: int) -> list[bytes]:
    return [data[i : i + size] for i in range(0, len(data), size)]


async def _collect(decoder: StreamDecoder) -> list[MessageDelta]:
    return [delta async for delta in decoder]


@pytest.fixture
def adapter() -> OpenAIAdapter:
    return OpenAIAdapter("sk-test", base_url="https://api.test/v1")


class TestStreamDecoder:
    """Tests for frame buffering and decoding."""

    @pytest.mark.asyncio
    async def test_decodes_frames_and_skips_done(self, adapter, payloads):
        body = payloads.sse(payloads.chunk("Hel", role="assistant"), payloads.chunk("lo"))
        deltas = await _collect(StreamDecoder(adapter, _chunks(body)))
        assert [d.text for d in deltas] == ["Hel", "lo"]
        assert deltas[0].role == "assistant"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("size", [1, 3, 7, 64])
    async def test_chunking_does_not_change_result(self, adapter, payloads, size):
        body = payloads.sse(
            payloads.chunk("Grüße ", role="assistant"),
            payloads.chunk("aus Köln 🎉"),
            payloads.chunk(finish_reason="stop"),
        )
        whole = ResponseAccumulator()
        for delta in await _collect(StreamDecoder(adapter, _chunks(body))):
            whole.add(delta)

        split = ResponseAccumulator()
        for delta in await _collect(StreamDecoder(adapter, _chunks(*_split_every(body, size)))):
            split.add(delta)

        assert split.finalize().text == whole.finalize().text == "Grüße aus Köln 🎉"
        assert split.delta.stop_reason == "end_turn"

    @pytest.mark.asyncio
    async def test_crlf_separators(self, adapter, payloads):
        frame = f"data: {json.dumps(payloads.chunk('ok'))}\r\n\r\n".encode()
        # Split inside the CRLF pair
        deltas = await _collect(StreamDecoder(adapter, _chunks(frame[:-3], frame[-3:])))
        assert [d.text for d in deltas] == ["ok"]

    @pytest.mark.asyncio
    async def test_trailing_frame_without_separator(self, adapter, payloads):
        body = f"data: {json.dumps(payloads.chunk('tail'))}".encode()
        deltas = await _collect(StreamDecoder(adapter, _chunks(body)))
        assert [d.text for d in deltas] == ["tail"]

    @pytest.mark.asyncio
    async def test_keepalive_comments_are_ignored(self, adapter, payloads):
        body = b": keep-alive\n\n" + payloads.sse(payloads.chunk("x"))
        deltas = await _collect(StreamDecoder(adapter, _chunks(body)))
        assert [d.text for d in deltas] == ["x"]

    @pytest.mark.asyncio
    async def test_malformed_frame_raises_with_buffer(self, adapter):
        body = b"data: {not json}\n\n"
        with pytest.raises(StreamDecodeError) as exc_info:
            await _collect(StreamDecoder(adapter, _chunks(body)))
        assert exc_info.value.buffer == b"data: {not json}"
        assert exc_info.value.cause is not None

    @pytest.mark.asyncio
    async def test_error_frame_surfaces_provider_error(self, adapter):
        body = b'data: {"error": {"message": "overloaded", "type": "server_error"}}\n\n'
        with pytest.raises(ProviderAPIError) as exc_info:
            await _collect(StreamDecoder(adapter, _chunks(body)))
        assert exc_info.value.body == {"message": "overloaded", "type": "server_error"}

    @pytest.mark.asyncio
    async def test_single_use(self, adapter, payloads):
        decoder = StreamDecoder(adapter, _chunks(payloads.sse(payloads.chunk("x"))))
        await _collect(decoder)
        with pytest.raises(RuntimeError):
            decoder.__aiter__()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("size", [1, 5, 4096])
    async def test_line_delimited_frames(self, size):
        lines = [
            {"model": "llama3.2", "message": {"role": "assistant", "content": "Grüße"}, "done": False},
            {"model": "llama3.2", "message": {"role": "assistant", "content": " aus Köln"}, "done": False},
            {
                "model": "llama3.2",
                "message": {"role": "assistant", "content": ""},
                "done": True,
                "done_reason": "stop",
                "prompt_eval_count": 7,
                "eval_count": 3,
            },
        ]
        body = b"".join(json.dumps(line, ensure_ascii=False).encode() + b"\n" for line in lines)
        decoder = StreamDecoder(OllamaAdapter(), _chunks(*_split_every(body, size)))
        deltas = await _collect(decoder)

        assert [d.text for d in deltas] == ["Grüße", " aus Köln", ""]
        assert deltas[-1].stop_reason == "end_turn"
        assert deltas[-1].usage == TokenUsage(input_tokens=7, output_tokens=3)

    @pytest.mark.asyncio
    async def test_line_delimited_trailing_line(self):
        body = b'{"message": {"role": "assistant", "content": "a"}}\n{"message": {"role": "assistant", "content": "b"}}'
        deltas = await _collect(StreamDecoder(OllamaAdapter(), _chunks(body)))
        assert [d.text for d in deltas] == ["a", "b"]


class TestSplitFrames:
    """Tests for the framing rules adapters choose from."""

    def test_sse_needs_blank_line(self):
        assert split_sse_frames(b"data: a\n") == ([], b"data: a\n")
        assert split_sse_frames(b"data: a\r\n\r\ndata: b") == ([b"data: a"], b"data: b")

    def test_ndjson_needs_newline(self):
        assert split_ndjson_lines(b'{"a": 1}') == ([], b'{"a": 1}')
        assert split_ndjson_lines(b'{"a": 1}\r\n\n{"b"') == ([b'{"a": 1}'], b'{"b"')


class TestResponseAccumulator:
    """Tests for folding deltas into a message."""

    def test_snapshots_share_id(self):
        acc = ResponseAccumulator()
        first = acc.add(MessageDelta(role="assistant", text="a"))
        second = acc.add(MessageDelta(text="b"))
        assert first.id == second.id == acc.id
        assert second.text == "ab"

    def test_finalize_trims_whitespace(self):
        acc = ResponseAccumulator()
        acc.add(MessageDelta(text="\n\nanswer"))
        acc.add(MessageDelta(text=" here\n"))
        assert acc.message().text == "\n\nanswer here\n"
        assert acc.finalize().text == "answer here"
        assert acc.finalized

    def test_add_after_finalize_raises(self):
        acc = ResponseAccumulator()
        acc.finalize()
        with pytest.raises(RuntimeError):
            acc.add(MessageDelta(text="late"))

    def test_tool_selections_from_fragments(self):
        acc = ResponseAccumulator()
        acc.add(MessageDelta(tool_calls=[ToolCallDelta(index=0, id="c1", name="add")]))
        acc.add(MessageDelta(tool_calls=[ToolCallDelta(index=0, arguments='{"a": 1, ')]))
        message = acc.add(MessageDelta(tool_calls=[ToolCallDelta(index=0, arguments='"b": 2}')]))
        (selection,) = message.tool_selections
        assert json.loads(selection.arguments) == {"a": 1, "b": 2}

    def test_normalize_text(self):
        assert normalize_text("\n 4 \n") == "4"


class TestTranscript:
    """Tests for the message identity rule."""

    def test_two_chunks_four_and_empty(self):
        transcript = Transcript([Message.user("2+2?")])
        transcript.add(MessageDelta(role="assistant", text="4"))
        transcript.add(MessageDelta(text=""))
        final = transcript.finish()
        assistants = [m for m in transcript.messages if m.role == "assistant"]
        assert len(assistants) == 1
        assert final.text == "4"

    def test_deltas_update_in_place(self):
        transcript = Transcript()
        first = transcript.add(MessageDelta(text="Hel"))
        second = transcript.add(MessageDelta(text="lo"))
        assert first.id == second.id
        assert len(transcript.messages) == 1
        assert transcript.messages[0].text == "Hello"

    def test_unchanged_snapshot_returns_none(self):
        transcript = Transcript()
        transcript.add(MessageDelta(text="x"))
        assert transcript.add(MessageDelta(stop_reason="end_turn")) is None

    def test_new_turn_gets_new_identity(self):
        transcript = Transcript()
        first = transcript.add(MessageDelta(tool_calls=[ToolCallDelta(index=0, id="c1", name="f")]))
        transcript.append(Message.tool_result(ToolResult(tool_selection_id="c1", result_text="ok")))
        second = transcript.add(MessageDelta(text="done"))
        assert first.id != second.id
        assert [m.role for m in transcript.messages] == ["assistant", "tool", "assistant"]

    def test_empty_delta_never_starts_message(self):
        transcript = Transcript([Message.user("q")])
        assert transcript.add(MessageDelta(role="assistant")) is None
        assert transcript.add(MessageDelta(text="\n")) is None
        assert len(transcript.messages) == 1
        assert transcript.finish() is None

    def test_pending_metadata_folds_into_next_message(self):
        transcript = Transcript()
        transcript.add(MessageDelta(role="assistant"))
        transcript.add(MessageDelta(text="hi"))
        assert transcript.last_delta.role == "assistant"

    def test_finished_message_is_not_continued(self):
        transcript = Transcript()
        first = transcript.add(MessageDelta(text="one"))
        transcript.finish()
        second = transcript.add(MessageDelta(text="two"))
        assert first.id != second.id

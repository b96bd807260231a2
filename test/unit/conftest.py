"""Shared fixtures: OpenAI-shaped payload builders and a scripted HTTP server."""

import json
from typing import Any

import httpx
import pytest

from switchboard.agent.message import Model
from switchboard.agent.models import OpenAIAdapter
from switchboard.agent.registry import ProviderRegistry
from switchboard.agent.transport import HttpxTransport


class OpenAIPayloads:
    """Builders for OpenAI Chat Completions wire payloads."""

    @staticmethod
    def chunk(
        content: str | None = None,
        *,
        role: str | None = None,
        tool_calls: list[dict[str, Any]] | None = None,
        finish_reason: str | None = None,
    ) -> dict[str, Any]:
        delta: dict[str, Any] = {}
        if role is not None:
            delta["role"] = role
        if content is not None:
            delta["content"] = content
        if tool_calls is not None:
            delta["tool_calls"] = tool_calls
        return {
            "id": "chatcmpl-1",
            "object": "chat.completion.chunk",
            "created": 1700000000,
            "model": "gpt-test",
            "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
        }

    @staticmethod
    def tool_call_chunk(index: int, *, id: str | None = None, name: str | None = None, arguments: str = "") -> dict:
        call: dict[str, Any] = {"index": index, "function": {"arguments": arguments}}
        if id is not None:
            call["id"] = id
            call["type"] = "function"
        if name is not None:
            call["function"]["name"] = name
        return OpenAIPayloads.chunk(tool_calls=[call])

    @staticmethod
    def completion(
        content: str | None = None,
        tool_calls: list[tuple[str, str, str]] | None = None,
        finish_reason: str = "stop",
    ) -> dict[str, Any]:
        message: dict[str, Any] = {"role": "assistant", "content": content}
        if tool_calls:
            message["tool_calls"] = [
                {"id": id, "type": "function", "function": {"name": name, "arguments": arguments}}
                for id, name, arguments in tool_calls
            ]
            finish_reason = "tool_calls"
        return {
            "id": "chatcmpl-1",
            "object": "chat.completion",
            "created": 1700000000,
            "model": "gpt-test",
            "choices": [{"index": 0, "message": message, "finish_reason": finish_reason, "logprobs": None}],
            "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
        }

    @staticmethod
    def sse(*payloads: dict[str, Any], done: bool = True) -> bytes:
        body = b"".join(f"data: {json.dumps(p, ensure_ascii=False)}\n\n".encode() for p in payloads)
        return body + (b"data: [DONE]\n\n" if done else b"")


class ScriptedServer:
    """Answers each POST with the next queued response and records request bodies.

    Queued entries may be a dict (JSON 200), bytes (SSE 200) or an httpx.Response.
    """

    def __init__(self, responses: list[Any]) -> None:
        self.responses = list(responses)
        self.requests: list[dict[str, Any]] = []
        self.headers: list[httpx.Headers] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        self.headers.append(request.headers)
        if not self.responses:
            return httpx.Response(500, json={"error": {"message": "no scripted response left"}})
        response = self.responses.pop(0)
        if isinstance(response, httpx.Response):
            return response
        if isinstance(response, bytes):
            return httpx.Response(200, content=response, headers={"content-type": "text/event-stream"})
        return httpx.Response(200, json=response)


@pytest.fixture
def payloads() -> type[OpenAIPayloads]:
    return OpenAIPayloads


@pytest.fixture
def model() -> Model:
    return Model(id="gpt-test", provider="openai")


@pytest.fixture
def scripted():
    """Factory: scripted(responses) -> (registry, server) backed by one OpenAI adapter."""

    def make(responses: list[Any], **adapter_kwargs: Any) -> tuple[ProviderRegistry, ScriptedServer]:
        server = ScriptedServer(responses)
        transport = HttpxTransport("https://api.test/v1", transport=httpx.MockTransport(server))
        adapter = OpenAIAdapter("sk-test", transport=transport, **adapter_kwargs)
        return ProviderRegistry([adapter]), server

    return make

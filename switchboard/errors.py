"""Error taxonomy for switchboard.

Every error raised across the public API derives from ``SwitchboardError``.
Delegation and tool-execution failures are never raised to the caller; their
``str()`` becomes a tool result that the model reads.
"""

from __future__ import annotations

from typing import Any


class SwitchboardError(Exception):
    """Base class for all switchboard errors."""


class ConfigError(SwitchboardError):
    """Configuration file missing, unreadable or invalid."""


# =============================================================================
# Dispatch / transport
# =============================================================================


class UnregisteredProvider(SwitchboardError):
    """No registered adapter accepts the request's model."""

    def __init__(self, model: Any) -> None:
        self.model = model
        super().__init__(f"No registered provider can handle model {model}")


class TransportError(SwitchboardError):
    """The HTTP exchange failed before a complete response was read."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        self.cause = cause
        super().__init__(message)


class StreamDecodeError(SwitchboardError):
    """A complete stream frame could not be decoded.

    Attributes:
        buffer: The raw frame bytes that failed to decode.
        cause: The underlying decoding exception.
    """

    def __init__(self, buffer: bytes, cause: BaseException | None = None) -> None:
        self.buffer = buffer
        self.cause = cause
        preview = buffer[:200].decode("utf-8", errors="replace")
        super().__init__(f"Failed to decode stream frame: {cause!r} (frame: {preview!r})")


class ProviderAPIError(SwitchboardError):
    """The provider answered with an error.

    ``body`` carries the provider's error payload verbatim: the parsed JSON
    object when the body was JSON, otherwise the raw text.
    """

    def __init__(self, provider: str, status: int | None, body: Any) -> None:
        self.provider = provider
        self.status = status
        self.body = body
        super().__init__(f"{provider} API error (status={status}): {body}")


# =============================================================================
# Tool loop
# =============================================================================


class ToolProtocolError(SwitchboardError):
    """A tool result does not answer a selection of the preceding assistant message."""


class UnknownTool(SwitchboardError):
    """The model selected a tool that is not declared on the request."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool '{name}' is not declared on this request")


class ToolArgumentDecodeError(SwitchboardError):
    """Tool arguments are not a JSON object or do not match the tool's schema."""

    def __init__(self, name: str, arguments: str, cause: BaseException | None = None) -> None:
        self.name = name
        self.arguments = arguments
        self.cause = cause
        super().__init__(f"Invalid arguments for tool '{name}': {cause}")


class ToolSchemaError(SwitchboardError):
    """A tool declares a parameters schema that is not valid JSON Schema."""

    def __init__(self, name: str, cause: BaseException | None = None) -> None:
        self.name = name
        self.cause = cause
        super().__init__(f"Tool '{name}' has an invalid parameters schema: {cause}")


class ToolLoopLimitExceeded(SwitchboardError):
    """The model kept selecting tools past the caller's round limit."""

    def __init__(self, rounds: int) -> None:
        self.rounds = rounds
        super().__init__(f"Maximum tool rounds ({rounds}) reached")


# =============================================================================
# Non-fatal: rendered into tool results, never raised to the caller
# =============================================================================


class ToolExecutionError(SwitchboardError):
    """A tool callback failed; the message becomes an error tool result."""


class DelegationTargetNotFound(ToolExecutionError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Agent '{name}' not found")


class DelegationDepthExceeded(ToolExecutionError):
    def __init__(self, depth: int) -> None:
        self.depth = depth
        super().__init__(f"Delegation depth limit ({depth}) reached, answer the task yourself")

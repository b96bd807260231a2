"""Provider-agnostic chat runtime: registry, streaming, tool loop and agents."""

from .agent import Agent, TransferTool
from .context import AgentContext
from .events import (
    AgentEvent,
    EventBus,
    agent_completed_event,
    agent_delegated_event,
    agent_error_event,
    agent_failed_event,
    agent_started_event,
    agent_tool_called_event,
    agent_tool_completed_event,
)
from .loop import ToolCallLoop
from .message import (
    AgentEventContent,
    ChatRequest,
    Message,
    MessageDelta,
    Model,
    TokenUsage,
    ToolCallDelta,
    ToolResult,
    ToolSelection,
    validate_conversation,
)
from .model import ProviderAdapter
from .registry import ProviderRegistry
from .streaming import ResponseAccumulator, StreamDecoder, Transcript, fold, normalize_text
from .transport import HttpxTransport, Transport, WireRequest
from .tree import ConversationTree

__all__ = [
    # Agents
    "Agent",
    "AgentContext",
    "TransferTool",
    # Events
    "AgentEvent",
    "EventBus",
    "agent_completed_event",
    "agent_delegated_event",
    "agent_error_event",
    "agent_failed_event",
    "agent_started_event",
    "agent_tool_called_event",
    "agent_tool_completed_event",
    "ConversationTree",
    # Messages
    "AgentEventContent",
    "ChatRequest",
    "Message",
    "MessageDelta",
    "Model",
    "TokenUsage",
    "ToolCallDelta",
    "ToolResult",
    "ToolSelection",
    "validate_conversation",
    # Runtime
    "ProviderAdapter",
    "ProviderRegistry",
    "ToolCallLoop",
    "ResponseAccumulator",
    "StreamDecoder",
    "Transcript",
    "fold",
    "normalize_text",
    "HttpxTransport",
    "Transport",
    "WireRequest",
]

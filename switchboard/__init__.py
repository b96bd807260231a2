"""switchboard - one chat request, any LLM provider.

Provider dispatch, streaming decode, tool-call loop and agent delegation
behind a single provider-agnostic API.
"""

from switchboard.agent import (
    Agent,
    AgentContext,
    AgentEvent,
    ChatRequest,
    ConversationTree,
    EventBus,
    Message,
    Model,
    ProviderRegistry,
    ToolCallLoop,
)
from switchboard.agent.models import AnthropicAdapter, OllamaAdapter, OpenAIAdapter
from switchboard.tool import FunctionTool, Tool, tool

__version__ = "0.1.0"

__all__ = [
    "Agent",
    "AgentContext",
    "AgentEvent",
    "AnthropicAdapter",
    "ChatRequest",
    "ConversationTree",
    "EventBus",
    "FunctionTool",
    "Message",
    "Model",
    "OllamaAdapter",
    "OpenAIAdapter",
    "ProviderRegistry",
    "Tool",
    "ToolCallLoop",
    "tool",
]

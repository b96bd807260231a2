"""Agent - a named model configuration that runs the tool-call loop and can
delegate work to other agents through a synthesized ``transfer`` tool.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

from switchboard.errors import DelegationDepthExceeded, DelegationTargetNotFound
from switchboard.tool.types import Tool

from .context import AgentContext
from .events import (
    AgentEvent,
    agent_completed_event,
    agent_delegated_event,
    agent_error_event,
    agent_failed_event,
    agent_started_event,
    agent_tool_called_event,
    agent_tool_completed_event,
)
from .loop import ToolCallLoop
from .message import ChatRequest, Message, Model, ToolResult, ToolSelection
from .registry import ProviderRegistry
from .streaming import normalize_text

logger = logging.getLogger(__name__)

TRANSFER_TOOL_NAME = "transfer"
EMPTY_RESULT_MESSAGE = "Empty result received"


async def _emit(context: AgentContext, event: AgentEvent) -> None:
    result = context.event_handler(event)
    if inspect.isawaitable(result):
        await result


class TransferTool(Tool):
    """Delegates a task to one of an agent's delegates.

    Built per execution so the callback sees the delegating agent's context.
    Unknown targets and an exhausted depth budget come back to the model as
    error results instead of aborting the run.
    """

    def __init__(self, agent: Agent, context: AgentContext) -> None:
        self._agent = agent
        self._context = context

    @property
    def name(self) -> str:
        return TRANSFER_TOOL_NAME

    @property
    def description(self) -> str:
        return "Transfer the conversation to another agent"

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "agent_name": {"type": "string", "description": "Name of the agent to transfer to"},
                "reason": {"type": "string", "description": "Reason for the transfer"},
            },
            "required": ["agent_name", "reason"],
        }

    async def arun(self, agent_name: str, reason: str) -> str:
        parent = self._agent
        context = self._context

        delegate = next((a for a in parent.delegate_agents if a.name == agent_name), None)
        if delegate is None:
            raise DelegationTargetNotFound(agent_name)
        if context.depth >= context.max_delegation_depth:
            raise DelegationDepthExceeded(context.max_delegation_depth)

        await _emit(context, agent_delegated_event(parent.name, agent_name, reason))

        note = (
            f"You are a delegate agent of {parent.name}, given the following reason provided from "
            f"{parent.name}, perform your function and respond back with your answer."
        )
        child = context.delegate(parent.name, [Message.system(note), Message.user(reason)])
        return await delegate.execute(child)


class Agent:
    """Named model configuration with tools and delegates.

    An agent is read-only once constructed. ``execute`` never raises for
    provider, tool or delegation failures: it reports them as ``error`` and
    ``failed`` events and returns an ``"error: ..."`` string.

    Example:
        weather = Agent(
            name="weather",
            description="Answers weather questions",
            instructions="Use get_weather to answer.",
            model=Model(id="gpt-4o", provider="openai"),
            registry=registry,
            tools=[get_weather],
        )
        root = Agent(..., delegate_agents=[weather])
        answer = await root.run("Is it raining in Oslo?", event_handler=bus.emit)
    """

    def __init__(
        self,
        name: str,
        description: str,
        instructions: str,
        model: Model,
        registry: ProviderRegistry,
        *,
        tools: Sequence[Tool] = (),
        delegate_agents: Sequence[Agent] = (),
        max_tool_rounds: int | None = None,
        temperature: float | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize an Agent.

        Args:
            name: Unique agent name, used as delegation target
            description: One-line role shown to the model and to delegating agents
            instructions: Task instructions placed in the system prompt
            model: Model to run on
            registry: Registry dispatching requests to providers
            tools: Tools offered to the model
            delegate_agents: Agents this agent may transfer work to
            max_tool_rounds: Maximum tool rounds per execution (None for unlimited)
            temperature: Sampling temperature passed to the provider
            clock: Source of the current time shown in the system prompt
        """
        self.name = name
        self.description = description
        self.instructions = instructions
        self.model = model
        self.registry = registry
        self.tools: tuple[Tool, ...] = tuple(tools)
        self.delegate_agents: tuple[Agent, ...] = tuple(delegate_agents)
        self.max_tool_rounds = max_tool_rounds
        self.temperature = temperature
        self._clock = clock

    def system_prompt(self) -> str:
        """Build the system prompt from the agent configuration."""
        prompt = f"You are an AI assistant named {self.name}."
        prompt += f"\nRole: {self.description}"
        prompt += f"\n\nInstructions:\n{self.instructions}"

        if self.tools:
            prompt += "\n\nAvailable Tools:"
            for t in self.tools:
                prompt += f"\n- {t.name}: {t.description}"

        if self.delegate_agents:
            prompt += "\n\nYou can transfer to these agents:"
            for agent in self.delegate_agents:
                prompt += f"\n- {agent.name}: {agent.description};"
            prompt += (
                "\n\nYou should relay any responses from your delegate agents "
                "and always return a response no matter what."
            )

        prompt += f"\n\nCurrent time: {self._clock().isoformat(sep=' ', timespec='seconds')}"
        return prompt

    async def run(
        self,
        prompt: str,
        *,
        event_handler: Callable[[AgentEvent], Any] | None = None,
        max_delegation_depth: int | None = None,
    ) -> str:
        """Execute a single user prompt as a top-level task."""
        options: dict[str, Any] = {}
        if event_handler is not None:
            options["event_handler"] = event_handler
        if max_delegation_depth is not None:
            options["max_delegation_depth"] = max_delegation_depth
        return await self.execute(AgentContext(messages=[Message.user(prompt)], **options))

    async def execute(self, context: AgentContext) -> str:
        """Run the agent on a context and return its answer text."""
        await _emit(context, agent_started_event(self.name, context.task, parent=context.parent))

        tools: list[Tool] = list(self.tools)
        if self.delegate_agents:
            tools.append(TransferTool(self, context))

        request = ChatRequest(
            model=self.model,
            messages=[Message.system(self.system_prompt()), *context.messages],
            tools=tools,
            temperature=self.temperature,
        )

        async def before_tool_calling(selection: ToolSelection) -> None:
            await _emit(context, agent_tool_called_event(self.name, selection.name, selection.arguments))

        async def after_tool_calling(selection: ToolSelection, result: ToolResult) -> None:
            await _emit(context, agent_tool_completed_event(self.name, result.result_text))

        loop = ToolCallLoop(
            self.registry,
            max_rounds=self.max_tool_rounds,
            hooks={
                "before_tool_calling": before_tool_calling,
                "after_tool_calling": after_tool_calling,
            },
        )

        try:
            response = await loop.perform(request)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.warning(f"Agent '{self.name}' failed: {type(e).__name__}: {message}")
            return await self._fail(context, message)

        result = normalize_text(response.text)
        if not result:
            return await self._fail(context, EMPTY_RESULT_MESSAGE)

        await _emit(context, agent_completed_event(self.name, result))
        return result

    async def _fail(self, context: AgentContext, message: str) -> str:
        await _emit(context, agent_error_event(self.name, message))
        error = f"error: {message}"
        await _emit(context, agent_failed_event(self.name, error))
        return error

    def __repr__(self) -> str:
        return f"Agent(name='{self.name}', model={self.model})"

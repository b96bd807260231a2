"""Tool type definitions and the Tool base class."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

JSONType = Literal["string", "integer", "number", "boolean", "array", "object", "null"]


class ToolSchemaProperty(BaseModel):
    """One property of a tool's parameter schema.

    Serialized with ``enum`` as the key and without unset fields, so the same
    schema can be sent verbatim to every provider.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: JSONType
    description: str | None = None
    enum_values: list[str] | None = Field(default=None, alias="enum")
    properties: dict[str, ToolSchemaProperty] | None = None
    required: list[str] | None = None
    items: ToolSchemaProperty | None = None

    def to_json_schema(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ToolSchema(BaseModel):
    """Top-level JSON Schema object describing a tool's arguments."""

    type: Literal["object"] = "object"
    properties: dict[str, ToolSchemaProperty] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)

    def to_json_schema(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Tool(ABC):
    """Abstract base class for tools offered to a model.

    Subclasses must implement:
    - name (property): Tool name, unique within a request
    - description (property): Tool description
    - parameters_schema (property): JSON Schema for parameters
    - arun(**kwargs) or run(**kwargs): the callback; returns the result text

    Raising from the callback signals a domain error. The tool loop turns it
    into an error tool result that the model can read.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The unique name of the tool used for identification and invocation."""
        raise NotImplementedError

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        raise NotImplementedError

    @property
    @abstractmethod
    def parameters_schema(self) -> dict[str, Any]:
        """JSON Schema defining the expected input parameters."""
        raise NotImplementedError

    def _is_method_overridden(self, method_name: str) -> bool:
        return getattr(type(self), method_name) is not getattr(Tool, method_name)

    def run(self, **kwargs: Any) -> str:
        """Execute the tool synchronously."""
        raise NotImplementedError(f"{type(self).__name__} must implement run() or arun()")

    async def arun(self, **kwargs: Any) -> str:
        """Execute the tool asynchronously.

        Falls back to running ``run()`` in a worker thread.
        """
        if self._is_method_overridden("run"):
            return await asyncio.to_thread(lambda: self.run(**kwargs))
        raise NotImplementedError(f"{type(self).__name__} must implement run() or arun()")

    def validate_parameters(self, parameters: dict[str, Any]) -> None:
        """Validate parameters against the JSON Schema.

        Raises:
            ToolArgumentDecodeError: parameters do not match.
            ToolSchemaError: the schema itself is invalid.
        """
        from ._utils import validate_parameters

        validate_parameters(self.name, parameters, self.parameters_schema)

    async def ainvoke(self, parameters: dict[str, Any]) -> str:
        """Validate parameters, then run the callback and stringify its result."""
        self.validate_parameters(parameters)
        result = await self.arun(**parameters)
        return result if isinstance(result, str) else str(result)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"

"""Unit tests for Tool, FunctionTool and the @tool decorator."""

from typing import Any, Literal

import pytest

from switchboard.errors import ToolArgumentDecodeError, ToolSchemaError
from switchboard.tool import FunctionTool, Tool, ToolSchema, ToolSchemaProperty, tool


class TestToolDecorator:
    """Tests for schema generation from function signatures."""

    def test_schema_from_signature(self):
        @tool
        def search(query: str, limit: int = 10, tags: list[str] | None = None, mode: Literal["fast", "deep"] = "fast"):
            """Search the knowledge base.

            Returns matching documents.
            """
            return query

        assert search.name == "search"
        assert search.description == "Search the knowledge base.\n\nReturns matching documents."
        schema = search.parameters_schema
        assert schema["required"] == ["query"]
        assert schema["properties"]["query"] == {"type": "string"}
        assert schema["properties"]["limit"] == {"type": "integer", "default": 10}
        assert schema["properties"]["tags"] == {"type": "array", "items": {"type": "string"}, "default": None}
        assert schema["properties"]["mode"] == {"type": "string", "enum": ["fast", "deep"], "default": "fast"}

    def test_overrides(self):
        @tool(name="lookup", description="Look a key up")
        def get(key: str) -> str:
            return key

        assert isinstance(get, FunctionTool)
        assert get.name == "lookup"
        assert get.description == "Look a key up"

    def test_explicit_schema_is_used_verbatim(self):
        schema = {"type": "object", "properties": {"q": {"type": "string"}}, "required": ["q"]}

        @tool(parameters_schema=schema)
        def find(q):
            return q

        assert find.parameters_schema is schema


class TestFunctionTool:
    @pytest.mark.asyncio
    async def test_sync_function(self):
        @tool
        def multiply(a: int, b: int) -> int:
            return a * b

        assert multiply.run(a=3, b=4) == 12
        assert await multiply.ainvoke({"a": 3, "b": 4}) == "12"

    @pytest.mark.asyncio
    async def test_async_function(self):
        @tool
        async def greet(name: str) -> str:
            return f"Hello, {name}"

        assert await greet.ainvoke({"name": "Ada"}) == "Hello, Ada"
        with pytest.raises(RuntimeError):
            greet.run(name="Ada")

    @pytest.mark.asyncio
    async def test_ainvoke_validates_first(self):
        calls = []

        @tool
        def record(n: int) -> str:
            calls.append(n)
            return "ok"

        with pytest.raises(ToolArgumentDecodeError):
            await record.ainvoke({"n": "not a number"})
        assert calls == []


class TestValidateParameters:
    """Tests for JSON Schema validation of arguments."""

    @pytest.fixture
    def weather(self):
        @tool
        def get_weather(city: str, days: int = 1) -> str:
            return city

        return get_weather

    def test_valid(self, weather):
        weather.validate_parameters({"city": "Oslo", "days": 3})

    def test_missing_required(self, weather):
        with pytest.raises(ToolArgumentDecodeError) as exc_info:
            weather.validate_parameters({"days": 3})
        assert exc_info.value.name == "get_weather"
        assert "city" in str(exc_info.value.cause)

    def test_wrong_type(self, weather):
        with pytest.raises(ToolArgumentDecodeError):
            weather.validate_parameters({"city": "Oslo", "days": "three"})

    def test_invalid_schema(self):
        broken = FunctionTool(lambda: "x", name="broken", parameters_schema={"type": "object", "required": "city"})
        with pytest.raises(ToolSchemaError) as exc_info:
            broken.validate_parameters({})
        assert exc_info.value.name == "broken"


class TestToolBase:
    """Tests for custom Tool subclasses."""

    class Echo(Tool):
        @property
        def name(self) -> str:
            return "echo"

        @property
        def description(self) -> str:
            return "Echo the input"

        @property
        def parameters_schema(self) -> dict[str, Any]:
            return ToolSchema(
                properties={"text": ToolSchemaProperty(type="string", description="Text to echo")},
                required=["text"],
            ).to_json_schema()

        def run(self, text: str) -> str:
            return text

    @pytest.mark.asyncio
    async def test_run_only_subclass_works_async(self):
        assert await self.Echo().ainvoke({"text": "ping"}) == "ping"

    @pytest.mark.asyncio
    async def test_subclass_without_callback(self):
        class Silent(self.Echo):
            run = Tool.run

        with pytest.raises(NotImplementedError):
            await Silent().arun(text="x")

    def test_repr(self):
        assert repr(self.Echo()) == "Echo(name='echo')"


class TestToolSchemaProperty:
    def test_enum_alias(self):
        prop = ToolSchemaProperty(type="string", enum=["c", "f"])
        assert prop.enum_values == ["c", "f"]
        assert prop.to_json_schema() == {"type": "string", "enum": ["c", "f"]}

    def test_nested(self):
        schema = ToolSchema(
            properties={
                "points": ToolSchemaProperty(
                    type="array",
                    items=ToolSchemaProperty(
                        type="object",
                        properties={"x": ToolSchemaProperty(type="number")},
                        required=["x"],
                    ),
                )
            },
            required=["points"],
        )
        assert schema.to_json_schema() == {
            "type": "object",
            "properties": {
                "points": {
                    "type": "array",
                    "items": {"type": "object", "properties": {"x": {"type": "number"}}, "required": ["x"]},
                }
            },
            "required": ["points"],
        }

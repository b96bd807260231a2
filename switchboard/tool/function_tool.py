"""Tools built from plain Python functions."""

from __future__ import annotations

import functools
import inspect
from typing import Any, Callable, ParamSpec, TypeVar, overload

from ._utils import build_parameters_schema
from .types import Tool

P = ParamSpec("P")
R = TypeVar("R")


class FunctionTool(Tool):
    """Tool whose callback is a sync or async function.

    The function name is the tool name and its docstring the description,
    unless overridden. The parameters schema is derived from the signature on
    first access. Sync functions are executed in a worker thread by ``arun``.

    Usage:
        def convert(amount: float, currency: Literal["EUR", "USD"]) -> str:
            '''Convert an amount to the given currency.'''
            ...

        convert_tool = FunctionTool(convert)
        text = await convert_tool.ainvoke({"amount": 10, "currency": "EUR"})
    """

    def __init__(
        self,
        func: Callable[..., Any],
        *,
        name: str | None = None,
        description: str | None = None,
        parameters_schema: dict[str, Any] | None = None,
    ) -> None:
        self.func = func
        self._name = name or func.__name__
        self._description = description if description is not None else inspect.cleandoc(func.__doc__ or "")
        self._parameters_schema = parameters_schema
        self.is_coroutine = inspect.iscoroutinefunction(func)

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def parameters_schema(self) -> dict[str, Any]:
        if self._parameters_schema is None:
            self._parameters_schema = build_parameters_schema(self.func)
        return self._parameters_schema

    def run(self, **kwargs: Any) -> Any:
        if self.is_coroutine:
            raise RuntimeError(f"Tool '{self.name}' wraps a coroutine function; await arun() instead")
        return self.func(**kwargs)

    async def arun(self, **kwargs: Any) -> Any:
        if self.is_coroutine:
            return await self.func(**kwargs)
        return await super().arun(**kwargs)


@overload
def tool(func: Callable[P, R], /) -> FunctionTool: ...


@overload
def tool(
    *,
    name: str | None = None,
    description: str | None = None,
    parameters_schema: dict[str, Any] | None = None,
) -> Callable[[Callable[P, R]], FunctionTool]: ...


def tool(
    func: Callable[P, R] | None = None,
    /,
    **options: Any,
) -> FunctionTool | Callable[[Callable[P, R]], FunctionTool]:
    """Turn a function into a ``FunctionTool``.

    Works bare (``@tool``) or with overrides
    (``@tool(name=..., description=..., parameters_schema=...)``)::

        @tool
        def get_weather(city: str) -> str:
            '''Look up the current weather for a city.'''
            return "sunny"
    """
    if func is None:
        return functools.partial(FunctionTool, **options)
    return FunctionTool(func, **options)

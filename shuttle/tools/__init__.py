"""Tool registry and define_tool helper."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..errors import ToolNotFoundError
from ..types import Tool, ToolHandler, ToolProvider, ToolResult
from .runner import ToolRunner, ToolRunOptions, await_with_deadline
from .schema import DictSchema, PydanticSchema, as_schema, dump_value

if TYPE_CHECKING:
    from ..context import AgentContext


def define_tool(
    name: str,
    execute: ToolHandler,
    description: str = "",
    parameters: Any = None,
    timeout: float | None = None,
    metadata: dict[str, Any] | None = None,
) -> Tool:
    """Build a Tool. ``parameters`` may be a Pydantic model, a type, or a JSON Schema dict."""
    return Tool(
        name=name,
        description=description,
        execute=execute,
        input_schema=as_schema(parameters),
        timeout=timeout,
        metadata=dict(metadata or {}),
    )


class ToolRegistry:
    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._tools: dict[str, Tool] = {}
        self.logger = logger or logging.getLogger(__name__)

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            self.logger.warning('Tool "%s" already registered. Overwriting existing definition.', tool.name)
        self._tools[tool.name] = tool

    def register_tool(
        self,
        name: str,
        contract: Any,
        handler: ToolHandler,
        description: str = "",
        timeout: float | None = None,
    ) -> Tool:
        tool = define_tool(name, handler, description=description, parameters=contract, timeout=timeout)
        self.register(tool)
        return tool

    def unregister(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def list(self) -> list[Tool]:
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    async def execute(
        self,
        name: str,
        input: Any,
        context: AgentContext,
        options: ToolRunOptions | None = None,
    ) -> ToolResult:
        tool = self._tools.get(name)
        if tool is None:
            return ToolResult.fail(name, ToolNotFoundError(name))
        return await ToolRunner.execute(tool, input, context, options)


__all__ = [
    "DictSchema",
    "PydanticSchema",
    "Tool",
    "ToolProvider",
    "ToolRegistry",
    "ToolResult",
    "ToolRunOptions",
    "ToolRunner",
    "as_schema",
    "await_with_deadline",
    "define_tool",
    "dump_value",
]

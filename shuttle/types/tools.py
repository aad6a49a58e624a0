"""Tool types."""

from __future__ import annotations

import asyncio
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Protocol, Union, runtime_checkable

from ..errors import error_message

if TYPE_CHECKING:
    from ..agent.base import BaseAgent
    from ..context import AgentContext


@runtime_checkable
class ToolSchema(Protocol):
    def parse(self, raw: Any) -> Any: ...
    def to_json_schema(self) -> dict: ...


@dataclass
class ToolResult:
    """Uniform outcome of one tool invocation."""

    tool_name: str
    success: bool
    output: Any = None
    error: Exception | str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    started_at: float | None = None
    finished_at: float | None = None

    @classmethod
    def ok(
        cls,
        tool_name: str,
        output: Any,
        *,
        metadata: dict[str, Any] | None = None,
        started_at: float | None = None,
        finished_at: float | None = None,
    ) -> ToolResult:
        return cls(
            tool_name=tool_name,
            success=True,
            output=output,
            metadata=metadata or {},
            started_at=started_at,
            finished_at=finished_at if finished_at is not None else time.time(),
        )

    @classmethod
    def fail(
        cls,
        tool_name: str,
        error: Exception | str,
        *,
        metadata: dict[str, Any] | None = None,
        started_at: float | None = None,
        finished_at: float | None = None,
    ) -> ToolResult:
        return cls(
            tool_name=tool_name,
            success=False,
            error=error,
            metadata=metadata or {},
            started_at=started_at,
            finished_at=finished_at if finished_at is not None else time.time(),
        )

    @property
    def error_message(self) -> str | None:
        if self.success:
            return None
        return error_message(self.error)


@dataclass
class ToolCallRecord:
    tool_name: str
    input: Any = None
    output: Any = None
    success: bool | None = None
    error: str | None = None
    started_at: float = field(default_factory=time.time)
    finished_at: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass
class ToolExecutionContext:
    agent_context: AgentContext
    signal: asyncio.Event | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    # Parent for spans the tool opens itself.
    span_id: str | None = None


ToolHandler = Callable[[Any, ToolExecutionContext], Union[Awaitable[Any], Any]]


@dataclass
class Tool:
    name: str
    execute: ToolHandler
    description: str = ""
    input_schema: ToolSchema | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    timeout: float | None = None
    # Set when the tool wraps another agent (see BaseAgent.as_tool).
    agent: BaseAgent | None = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Tool definition requires a non-empty name")

    @property
    def is_agent(self) -> bool:
        return self.agent is not None


class ToolProvider(ABC):
    """Expands into tools for the duration of one agent invocation."""

    name: str = "provider"

    @abstractmethod
    async def setup(self, agent: BaseAgent) -> list[Tool]: ...

    @abstractmethod
    async def teardown(self) -> None: ...


ToolEntry = Union[Tool, ToolProvider]

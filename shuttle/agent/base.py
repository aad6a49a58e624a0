"""BaseAgent - invocation lifecycle and the tool execution façade."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from ..config import AgentConfig
from ..context import AgentContext
from ..errors import ToolNotFoundError, ToolTimeoutError, ValidationError, error_message
from ..hooks import (
    AfterToolPayload,
    AgentEndPayload,
    AgentStartPayload,
    BeforeToolPayload,
    HookEvent,
    HookHandler,
    HookManager,
    HookPayload,
    ToolErrorPayload,
    Unregister,
)
from ..memory import InMemoryStore, Memory
from ..tools import ToolRunner, as_schema
from ..types import (
    ModelSpec,
    Tool,
    ToolCallRecord,
    ToolEntry,
    ToolExecutionContext,
    ToolProvider,
    ToolResult,
    ToolSchema,
)


@dataclass
class AgentRun:
    """Output of one invocation together with the context that produced it."""

    output: Any
    context: AgentContext


class BaseAgent(ABC):
    """
    Shared agent machinery. Subclasses implement ``run_loop``.

    Tools and providers are told apart once, at registration. Provider tools
    exist only while an invocation runs; they shadow base tools of the same
    name and the base tool comes back on teardown.
    """

    def __init__(
        self,
        name: str,
        *,
        description: str | None = None,
        instructions: str | None = None,
        tools: Iterable[ToolEntry] | None = None,
        config: AgentConfig | None = None,
        input_schema: Any = None,
        output_schema: Any = None,
        memory: Memory | None = None,
        metadata: dict[str, Any] | None = None,
        hooks: HookManager | None = None,
        logger: logging.Logger | None = None,
        on_stream_start: HookHandler | None = None,
        on_stream_chunk: HookHandler | None = None,
        on_stream_end: HookHandler | None = None,
        on_stream_error: HookHandler | None = None,
    ) -> None:
        if not name:
            raise ValueError("Agent requires a name")
        self.name = name
        self.description = description
        self.instructions = instructions
        self.config = config or AgentConfig()
        self.input_schema: ToolSchema | None = as_schema(input_schema)
        self.output_schema: ToolSchema | None = as_schema(output_schema)
        self.metadata = dict(metadata or {})
        self.logger = logger or logging.getLogger(__name__)
        self.hooks = hooks or HookManager(logger=self.logger)

        if memory is not None or self.config.enable_memory:
            self.memory: Memory | None = memory or InMemoryStore()
        else:
            self.memory = None

        self._tools: dict[str, Tool] = {}
        self._base_tools: dict[str, Tool] = {}
        self._providers: list[ToolProvider] = []
        self._provider_tools: dict[int, tuple[ToolProvider, list[Tool]]] = {}
        # Overlapping invocations share one provider activation.
        self._active_runs = 0
        self._provider_lock = asyncio.Lock()

        for event, handler in (
            (HookEvent.STREAM_START, on_stream_start),
            (HookEvent.STREAM_CHUNK, on_stream_chunk),
            (HookEvent.STREAM_END, on_stream_end),
            (HookEvent.STREAM_ERROR, on_stream_error),
        ):
            if handler is not None:
                self.hooks.on(event, handler)

        for entry in tools or ():
            self._register_entry(entry)

    # -- configuration views --

    @property
    def max_iterations(self) -> int:
        return self.config.max_iterations

    @property
    def model(self) -> ModelSpec:
        return self.config.model

    @property
    def enable_streaming(self) -> bool:
        return self.config.enable_streaming

    @property
    def enable_memory(self) -> bool:
        return self.memory is not None

    # -- invocation --

    async def process(
        self,
        input: Any,
        parent_span_id: str | None = None,
        signal: asyncio.Event | None = None,
    ) -> Any:
        """Run the agent on ``input`` and return the validated output."""
        run = await self.invoke(input, parent_span_id=parent_span_id, signal=signal)
        return run.output

    async def invoke(
        self,
        input: Any,
        parent_span_id: str | None = None,
        signal: asyncio.Event | None = None,
    ) -> AgentRun:
        validated_input = self._validate(self.input_schema, input, "input")
        context = AgentContext(
            agent_name=self.name,
            parent_span_id=parent_span_id,
            goal=validated_input,
            metadata=dict(self.metadata),
        )

        try:
            await self._activate_tool_providers()
            await self._trigger(AgentStartPayload(context=context))

            result = await self.run_loop(validated_input, context, signal)
            output = self._validate(self.output_schema, result, "output")
            context.cleanup_breakdown_if_only(self.name)

            await self._trigger(AgentEndPayload(context=context, result=output))
            return AgentRun(output=output, context=context)
        except Exception as e:
            await self._trigger(AgentEndPayload(context=context, error=e))
            raise
        finally:
            await self._deactivate_tool_providers()

    @abstractmethod
    async def run_loop(
        self, input: Any, context: AgentContext, signal: asyncio.Event | None = None
    ) -> Any: ...

    def _validate(self, schema: ToolSchema | None, value: Any, label: str) -> Any:
        if schema is None:
            return value
        try:
            return schema.parse(value)
        except ValidationError as e:
            raise ValidationError(
                f"Invalid agent {label} for {self.name}: {e.message}", errors=e.errors, cause=e
            ) from e

    # -- tools --

    def _register_entry(self, entry: ToolEntry) -> None:
        if isinstance(entry, Tool):
            self.add_tool(entry)
        elif isinstance(entry, ToolProvider):
            self.add_tool_provider(entry)
        else:
            raise TypeError(f"Expected Tool or ToolProvider, got {type(entry).__name__}")

    def add_tool(self, tool: Tool) -> None:
        if tool.name in self._tools:
            self.logger.warning(
                '[%s] Tool "%s" already registered. Overwriting existing definition.',
                self.name,
                tool.name,
            )
        self._base_tools[tool.name] = tool
        self._tools[tool.name] = tool

    def remove_tool(self, tool_name: str) -> bool:
        self._base_tools.pop(tool_name, None)
        return self._tools.pop(tool_name, None) is not None

    def get_tool(self, tool_name: str) -> Tool | None:
        return self._tools.get(tool_name)

    def get_tools(self) -> list[Tool]:
        return list(self._tools.values())

    def add_tool_provider(self, provider: ToolProvider) -> None:
        if not any(existing is provider for existing in self._providers):
            self._providers.append(provider)

    @property
    def tool_providers(self) -> list[ToolProvider]:
        return list(self._providers)

    async def _activate_tool_providers(self) -> None:
        self._active_runs += 1
        async with self._provider_lock:
            pending = [p for p in self._providers if id(p) not in self._provider_tools]
            if pending:
                await asyncio.gather(*(self._activate(p) for p in pending))

    async def _activate(self, provider: ToolProvider) -> None:
        try:
            provided = list(await provider.setup(self) or [])
        except Exception as e:
            self.logger.warning(
                "[%s] Failed to activate tool provider %s: %s", self.name, provider.name, e
            )
            return
        self._provider_tools[id(provider)] = (provider, provided)
        for tool in provided:
            if tool.name in self._tools:
                self.logger.warning(
                    '[%s] Tool "%s" from provider overwrites existing tool.', self.name, tool.name
                )
            self._tools[tool.name] = tool

    async def _deactivate_tool_providers(self) -> None:
        self._active_runs -= 1
        async with self._provider_lock:
            if self._active_runs > 0:
                return
            active = list(self._provider_tools.values())
            self._provider_tools.clear()
            for _, provided in active:
                for tool in provided:
                    self._tools.pop(tool.name, None)
                    base = self._base_tools.get(tool.name)
                    if base is not None:
                        self._tools[tool.name] = base
            if active:
                await asyncio.gather(*(self._teardown(provider) for provider, _ in active))

    async def _teardown(self, provider: ToolProvider) -> None:
        try:
            await provider.teardown()
        except Exception as e:
            self.logger.warning(
                "[%s] Error while tearing down tool provider %s: %s", self.name, provider.name, e
            )

    def as_tool(self, name: str | None = None, description: str | None = None) -> Tool:
        """
        Wrap this agent as a tool another agent can call.

        The nested run is parented to the calling tool span, and its usage
        is added to the caller's context under the tool's name.
        """
        tool_name = name or self.name

        async def run_nested(input: Any, execution_context: ToolExecutionContext) -> ToolResult:
            caller = execution_context.agent_context
            parent_span_id = execution_context.span_id or caller.parent_span_id
            try:
                run = await self.invoke(
                    input, parent_span_id=parent_span_id, signal=execution_context.signal
                )
            except Exception as e:
                return ToolResult.fail(tool_name, e)
            caller.update_usage_with_source(tool_name, run.context.usage)
            return ToolResult.ok(tool_name, run.output)

        return Tool(
            name=tool_name,
            description=description or self.description or f"Agent: {self.name}",
            execute=run_nested,
            input_schema=self.input_schema,
            metadata={"is_agent": True, "agent_name": self.name},
            agent=self,
        )

    # -- hooks --

    def register_hook(self, event: HookEvent | str, handler: HookHandler) -> Unregister:
        return self.hooks.on(event, handler)

    def on(self, event: HookEvent | str, handler: HookHandler) -> Unregister:
        return self.hooks.on(event, handler)

    def once(self, event: HookEvent | str, handler: HookHandler) -> Unregister:
        return self.hooks.once(event, handler)

    def off(self, event: HookEvent | str, handler: HookHandler) -> None:
        self.hooks.off(event, handler)

    async def _trigger(self, payload: HookPayload) -> None:
        await self.hooks.publish(payload)

    # -- tool execution façade --

    async def execute_tool(
        self,
        tool_name: str,
        input: Any,
        context: AgentContext,
        span_id: str | None = None,
        signal: asyncio.Event | None = None,
        timeout: float | None = None,
    ) -> ToolResult:
        """
        Run one tool call and record it on ``context``.

        Every outcome is folded into a ToolResult; exactly one ToolCallRecord
        is appended per call.
        """
        tool_call_id = uuid.uuid4().hex
        tool = self._tools.get(tool_name)
        if tool is None:
            return await self._reject(tool_name, input, context, tool_call_id, ToolNotFoundError(tool_name))

        started_at = time.time()
        try:
            parsed = ToolRunner.validate(tool, input)
        except ValidationError as e:
            return await self._reject(tool_name, input, context, tool_call_id, e, tool, started_at)

        await self._trigger(
            BeforeToolPayload(context=context, tool=tool, input=parsed, tool_call_id=tool_call_id)
        )

        if timeout is None:
            timeout = tool.timeout if tool.timeout is not None else self.config.tool_timeout
        execution_context = ToolExecutionContext(agent_context=context, signal=signal, span_id=span_id)

        try:
            result = await ToolRunner.invoke(tool, parsed, execution_context, timeout)
        except Exception as e:
            finished_at = time.time()
            metadata = {"timed_out": True} if isinstance(e, ToolTimeoutError) else {}
            failure = ToolResult.fail(
                tool.name, e, metadata=metadata, started_at=started_at, finished_at=finished_at
            )
            record = context.record_tool_call(
                ToolCallRecord(
                    tool_name=tool.name,
                    input=input,
                    success=False,
                    error=error_message(e),
                    started_at=started_at,
                    finished_at=finished_at,
                    metadata=dict(metadata),
                    id=tool_call_id,
                )
            )
            await self._trigger(
                ToolErrorPayload(
                    context=context, tool_name=tool.name, error=e, tool_call_id=tool_call_id, tool=tool
                )
            )
            await self._trigger(AfterToolPayload(context=context, tool=tool, result=failure, record=record))
            return failure

        if result.started_at is None:
            result.started_at = started_at
        record = context.record_tool_call(
            ToolCallRecord(
                tool_name=tool.name,
                input=input,
                output=result.output if result.success else None,
                success=result.success,
                error=result.error_message,
                started_at=started_at,
                finished_at=time.time(),
                metadata=dict(result.metadata),
                id=tool_call_id,
            )
        )
        await self._trigger(AfterToolPayload(context=context, tool=tool, result=result, record=record))
        return result

    async def _reject(
        self,
        tool_name: str,
        input: Any,
        context: AgentContext,
        tool_call_id: str,
        error: Exception,
        tool: Tool | None = None,
        started_at: float | None = None,
    ) -> ToolResult:
        finished_at = time.time()
        started_at = started_at if started_at is not None else finished_at
        context.record_tool_call(
            ToolCallRecord(
                tool_name=tool_name,
                input=input,
                success=False,
                error=error_message(error),
                started_at=started_at,
                finished_at=finished_at,
                id=tool_call_id,
            )
        )
        await self._trigger(
            ToolErrorPayload(
                context=context, tool_name=tool_name, error=error, tool_call_id=tool_call_id, tool=tool
            )
        )
        return ToolResult.fail(tool_name, error, started_at=started_at, finished_at=finished_at)

    # -- visualization --

    def visualize_flow(self, output_path: str | None = None, include_provider_tools: bool = False) -> str:
        from ..visualization import generate_flow_diagram

        return generate_flow_diagram(
            self, output_path=output_path, include_provider_tools=include_provider_tools
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, tools={list(self._tools)})"

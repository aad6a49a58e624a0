"""
Tool Runner - invokes tools under a deadline and a cancellation token.

``invoke`` raises on any fault and is what the agent's execution façade
builds on; ``execute`` and the batch helpers fold every outcome into a
ToolResult for callers outside the agent loop.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..errors import ToolAbortedError, ToolTimeoutError, ValidationError
from ..types import Tool, ToolExecutionContext, ToolResult

if TYPE_CHECKING:
    from ..context import AgentContext

logger = logging.getLogger(__name__)


@dataclass
class ToolRunOptions:
    signal: asyncio.Event | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    # Overrides the tool's own timeout (seconds).
    timeout: float | None = None
    span_id: str | None = None


def _consume_outcome(task: asyncio.Future) -> None:
    # Retrieve the result of an abandoned call so its exception is not reported as unhandled.
    if not task.cancelled():
        exc = task.exception()
        if exc is not None:
            logger.debug("Abandoned tool call finished with error: %s", exc)


async def await_with_deadline(
    awaitable: Any,
    tool_name: str,
    timeout: float | None = None,
    signal: asyncio.Event | None = None,
) -> Any:
    """
    Await ``awaitable`` racing it against a timer and a cancellation token.

    On timeout or cancellation the underlying call keeps running; only its
    result is discarded.
    """
    if timeout is None and signal is None:
        return await awaitable

    task = asyncio.ensure_future(awaitable)
    waiters: set[asyncio.Future] = {task}
    signal_waiter = None
    if signal is not None:
        signal_waiter = asyncio.ensure_future(signal.wait())
        waiters.add(signal_waiter)

    try:
        done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    finally:
        if signal_waiter is not None and not signal_waiter.done():
            signal_waiter.cancel()

    if task in done:
        return task.result()

    task.add_done_callback(_consume_outcome)
    if signal_waiter is not None and signal_waiter in done:
        raise ToolAbortedError(tool_name)
    raise ToolTimeoutError(tool_name, timeout or 0)


class ToolRunner:
    """Utility for executing tools with validation, deadlines and cancellation."""

    @staticmethod
    def validate(tool: Tool, input: Any) -> Any:
        """Return the parsed input or raise ValidationError."""
        if tool.input_schema is None:
            return input
        try:
            return tool.input_schema.parse(input)
        except ValidationError as e:
            raise ValidationError(
                f'Invalid input for tool "{tool.name}": {e.message}', errors=e.errors, cause=e
            ) from e
        except Exception as e:
            raise ValidationError(f'Invalid input for tool "{tool.name}": {e}', cause=e) from e

    @staticmethod
    async def invoke(
        tool: Tool,
        input: Any,
        execution_context: ToolExecutionContext,
        timeout: float | None = None,
    ) -> ToolResult:
        """Run the tool; raises ToolAbortedError, ToolTimeoutError or whatever the tool raised."""
        signal = execution_context.signal
        if signal is not None and signal.is_set():
            raise ToolAbortedError(tool.name)

        effective_timeout = timeout if timeout is not None else tool.timeout
        outcome = tool.execute(input, execution_context)
        if inspect.isawaitable(outcome):
            outcome = await await_with_deadline(outcome, tool.name, effective_timeout, signal)

        if isinstance(outcome, ToolResult):
            return outcome
        return ToolResult.ok(tool.name, outcome)

    @classmethod
    async def execute(
        cls,
        tool: Tool,
        input: Any,
        context: AgentContext,
        options: ToolRunOptions | None = None,
    ) -> ToolResult:
        options = options or ToolRunOptions()
        if options.signal is not None and options.signal.is_set():
            return ToolResult.fail(tool.name, ToolAbortedError(tool.name))

        try:
            parsed = cls.validate(tool, input)
        except ValidationError as e:
            return ToolResult.fail(tool.name, e)

        execution_context = ToolExecutionContext(
            agent_context=context,
            signal=options.signal,
            metadata=dict(options.metadata),
            span_id=options.span_id,
        )
        try:
            return await cls.invoke(tool, parsed, execution_context, options.timeout)
        except ToolTimeoutError as e:
            return ToolResult.fail(tool.name, e, metadata={"timed_out": True})
        except Exception as e:
            return ToolResult.fail(tool.name, e)

    @classmethod
    async def execute_parallel(
        cls,
        executions: list[tuple[Tool, Any, AgentContext] | tuple[Tool, Any, AgentContext, ToolRunOptions]],
    ) -> list[ToolResult]:
        """Run all executions concurrently; results follow the input order."""
        return list(await asyncio.gather(*(cls.execute(*execution) for execution in executions)))

    @classmethod
    async def execute_sequential(
        cls,
        executions: list[tuple[Tool, Any, AgentContext] | tuple[Tool, Any, AgentContext, ToolRunOptions]],
    ) -> list[ToolResult]:
        """Run one at a time, stopping after the first failure (included in the results)."""
        results: list[ToolResult] = []
        for execution in executions:
            result = await cls.execute(*execution)
            results.append(result)
            if not result.success:
                break
        return results


__all__ = ["ToolRunOptions", "ToolRunner", "await_with_deadline"]

"""Agent - the think/act loop driven by a model client."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from pydantic import BaseModel

from ..config import ClientConfig
from ..context import AgentContext, ExecutionCycle
from ..errors import IterationLimitError, MemoryFault, ValidationError, error_message
from ..hooks import (
    AgentThought,
    ChunkData,
    LlmCallPayload,
    LlmResponsePayload,
    LoopEndPayload,
    LoopStartPayload,
    MemoryErrorPayload,
    MemoryReadPayload,
    MemoryWritePayload,
    StreamChunkPayload,
    StreamEndPayload,
    StreamErrorPayload,
    StreamStartPayload,
    ThinkEndPayload,
)
from ..tools import PydanticSchema, dump_value
from ..types import CallRequest, LlmCallType, ModelClient, StreamResponse, ToolSchema, Usage
from ..utils import StreamAssembler
from .base import BaseAgent
from .prompts import FINAL_RESULT_PROMPT, NO_INSTRUCTIONS, build_think_instructions
from .schemas import AgentDecision, ToolCall, ToolExecutionSummary

_DECISION_SCHEMA = PydanticSchema(AgentDecision)

_NOT_COMPLETE = object()


def serialize_input(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(dump_value(value), default=str)
    return str(value)


def _render_output(output: Any) -> str:
    if isinstance(output, str):
        return output
    return json.dumps(dump_value(output), default=str)


class Agent(BaseAgent):
    """
    Concrete agent: think, handle memory, run tools, repeat until the model
    stops asking for actions, then synthesize the answer.

    Pass ``client`` to use any ModelClient; otherwise an OpperClient is
    built from ``client_config``.
    """

    def __init__(
        self,
        name: str,
        *,
        client: ModelClient | None = None,
        client_config: ClientConfig | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(name, **kwargs)
        if client is None:
            from ..providers import OpperClient

            client = OpperClient(client_config, logger=self.logger)
        self.client = client

    async def run_loop(
        self, input: Any, context: AgentContext, signal: asyncio.Event | None = None
    ) -> Any:
        self._log(
            "Starting agent loop (max_iterations=%d, tools=%s)",
            self.max_iterations,
            list(self._tools),
        )
        span = await self.client.create_span(
            f"{self.name}_execution", serialize_input(input), context.parent_span_id
        )
        context.parent_span_id = span.id

        try:
            result = await self._iterate(input, context, signal)
        except Exception as e:
            await self.client.update_span(span.id, error=error_message(e))
            raise
        await self.client.update_span(span.id, dump_value(result))
        return result

    async def _iterate(self, input: Any, context: AgentContext, signal: asyncio.Event | None) -> Any:
        completed = False
        while context.iteration < self.max_iterations:
            current = context.iteration + 1
            self._log("Iteration %d/%d", current, self.max_iterations)
            await self._trigger(LoopStartPayload(context=context))

            try:
                decision, think_span_id = await self._think(input, context)

                early = self._immediate_result(decision)
                if early is not _NOT_COMPLETE:
                    memory_results = await self._handle_memory_actions(decision, context, think_span_id)
                    self._record_cycle(context, current, decision, len(context.tool_calls), memory_results)
                    self._log("Task completed in think step, skipping final result call")
                    return early

                tool_call_start = len(context.tool_calls)
                memory_results = await self._handle_memory_actions(decision, context, think_span_id)
                tool_results = await self._execute_tool_calls(decision, context, think_span_id, signal)
                self._record_cycle(
                    context, current, decision, tool_call_start, memory_results + tool_results
                )

                has_reads = self.enable_memory and bool(decision.memory_reads)
                completed = not decision.tool_calls and not has_reads
            finally:
                await self._trigger(LoopEndPayload(context=context))

            if completed:
                self._log("Loop complete, generating final result")
                break

        if not completed:
            raise IterationLimitError(self.max_iterations)

        return await self.generate_final_result(input, context)

    def _immediate_result(self, decision: AgentDecision) -> Any:
        """Validated final_result when the decision finished the task inline, else _NOT_COMPLETE."""
        if (
            decision.is_complete is not True
            or decision.final_result is None
            or decision.tool_calls
            or decision.memory_reads
        ):
            return _NOT_COMPLETE
        if self.output_schema is None:
            return decision.final_result
        try:
            return self.output_schema.parse(decision.final_result)
        except ValidationError as e:
            # Falls through to the synthesis call.
            self.logger.warning(
                "[%s] Inline final_result failed output validation, generating final result: %s",
                self.name,
                e.message,
            )
            return _NOT_COMPLETE

    def _record_cycle(
        self,
        context: AgentContext,
        iteration: int,
        decision: AgentDecision,
        tool_call_start: int,
        results: list[ToolExecutionSummary],
    ) -> None:
        context.add_cycle(
            ExecutionCycle(
                iteration=iteration,
                thought={
                    "reasoning": decision.reasoning,
                    "user_message": decision.user_message,
                    "memory_reads": list(decision.memory_reads),
                    "memory_updates": {
                        key: update.model_dump(exclude_none=True)
                        for key, update in decision.memory_updates.items()
                    },
                },
                tool_calls=tuple(context.tool_calls[tool_call_start:]),
                results=tuple(results),
            )
        )
        context.iteration = iteration

    # -- think --

    async def _think(self, input: Any, context: AgentContext) -> tuple[AgentDecision, str | None]:
        self._log("Think step (iteration %d)", context.iteration + 1)
        await self._trigger(LlmCallPayload(context=context, call_type="think"))

        request = CallRequest(
            name="think",
            instructions=build_think_instructions(self.enable_memory),
            input=await self._build_think_context(input, context),
            model=self.model,
            output_schema=_DECISION_SCHEMA.to_json_schema(),
            parent_span_id=context.parent_span_id,
        )

        try:
            if self.enable_streaming:
                response = await self._stream_call(request, context, "think")
                raw = response.parsed_output
                if raw is None:
                    raw = response.text_message
            else:
                response = await self.client.call(request)
                context.update_usage_with_source(self.name, response.usage)
                raw = response.parsed_output
            decision = _DECISION_SCHEMA.parse(raw)
        except Exception as e:
            self.logger.error("[%s] Think step failed: %s", self.name, e)
            raise

        await self._trigger(
            LlmResponsePayload(context=context, call_type="think", response=response, parsed=decision)
        )
        await self._trigger(
            ThinkEndPayload(
                context=context,
                thought=AgentThought(reasoning=decision.reasoning, user_message=decision.user_message),
            )
        )
        self._log(
            "Think result: %s (tool_calls=%d, memory_reads=%d, memory_writes=%d)",
            decision.reasoning,
            len(decision.tool_calls),
            len(decision.memory_reads),
            len(decision.memory_updates),
        )
        return decision, response.span_id

    async def _build_think_context(self, input: Any, context: AgentContext) -> dict[str, Any]:
        available_tools = [
            {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.input_schema.to_json_schema() if tool.input_schema else {},
            }
            for tool in self._tools.values()
        ]

        history = []
        for cycle in context.get_last_cycles(self.config.history_window):
            thought = cycle.thought.get("reasoning", "") if isinstance(cycle.thought, dict) else str(cycle.thought or "")
            results = []
            for summary in cycle.results:
                entry: dict[str, Any] = {"tool": summary.tool_name, "success": summary.success}
                if summary.success:
                    entry["result"] = _render_output(summary.output)
                else:
                    entry["error"] = summary.error
                results.append(entry)
            history.append({"iteration": cycle.iteration, "thought": thought, "results": results})

        memory_catalog = None
        if self.memory is not None and await self.memory.has_entries():
            memory_catalog = [
                {"key": e.key, "description": e.description, "metadata": e.metadata}
                for e in await self.memory.list_entries()
            ]

        think_input: dict[str, Any] = {
            "goal": serialize_input(input),
            "agent_description": self.description or "",
            "instructions": self.instructions or NO_INSTRUCTIONS,
            "available_tools": available_tools,
            "execution_history": history,
            "current_iteration": context.iteration + 1,
            "max_iterations": self.max_iterations,
            "memory_catalog": memory_catalog,
            "loaded_memory": context.metadata.get("current_memory"),
        }
        if self.output_schema is not None:
            think_input["output_schema"] = self.output_schema.to_json_schema()
        return think_input

    # -- streaming --

    async def _stream_call(
        self,
        request: CallRequest,
        context: AgentContext,
        call_type: LlmCallType,
        schema: ToolSchema | None = None,
    ) -> StreamResponse:
        assembler = StreamAssembler(schema)
        span_id: str | None = None
        await self._trigger(StreamStartPayload(context=context, call_type=call_type))

        try:
            async for chunk in self.client.stream(request):
                span_id = span_id or chunk.span_id
                fed = assembler.feed(chunk.delta, chunk.path)
                if fed is None:
                    continue
                await self._trigger(
                    StreamChunkPayload(
                        context=context,
                        call_type=call_type,
                        chunk_data=ChunkData(delta=chunk.delta, path=chunk.path, chunk_kind=chunk.chunk_kind),
                        accumulated=fed.accumulated,
                        field_buffers=fed.snapshot,
                    )
                )
            final = assembler.finalize()
        except Exception as e:
            await self._trigger(StreamErrorPayload(context=context, call_type=call_type, error=e))
            raise

        field_buffers = assembler.field_buffers()
        await self._trigger(StreamEndPayload(context=context, call_type=call_type, field_buffers=field_buffers))

        usage = await self._streamed_usage(span_id)
        context.update_usage_with_source(self.name, usage)
        return StreamResponse(
            span_id=span_id,
            parsed_output=final.value if final.kind == "structured" else None,
            text_message=final.text if final.kind == "root" else None,
            field_buffers=field_buffers,
            usage=usage,
        )

    async def _streamed_usage(self, span_id: str | None) -> Usage:
        fetch = getattr(self.client, "fetch_usage", None)
        usage = None
        if span_id and fetch is not None:
            try:
                usage = await fetch(span_id)
            except Exception as e:
                self.logger.warning("[%s] Could not fetch usage for span %s: %s", self.name, span_id, e)
        if usage is None:
            return Usage.single_request()
        usage = usage.totals()
        usage.requests = 1
        return usage

    # -- memory --

    async def _handle_memory_actions(
        self, decision: AgentDecision, context: AgentContext, parent_span_id: str | None
    ) -> list[ToolExecutionSummary]:
        if self.memory is None:
            return []

        keys = list(dict.fromkeys(key for key in decision.memory_reads if key))
        updates = [(key, update) for key, update in decision.memory_updates.items() if key]
        if not keys and not updates:
            return []

        self._log("Handling memory operations (reads=%d, writes=%d)", len(keys), len(updates))
        parent = parent_span_id or context.parent_span_id
        summaries: list[ToolExecutionSummary] = []

        if keys:
            try:
                span = await self.client.create_span("memory_read", keys, parent)
                data = await self.memory.read(keys)
                await self.client.update_span(span.id, data)
                context.set_metadata("current_memory", data)
                self._log("Loaded %d memory entries", len(data))
                summaries.append(
                    ToolExecutionSummary(
                        tool_name="memory_read", success=True, output={"keys": keys, "data": data}
                    )
                )
                for key in keys:
                    await self._trigger(MemoryReadPayload(context=context, key=key, value=data.get(key)))
            except Exception as e:
                summaries.append(await self._memory_failure(context, "read", e))

        if updates:
            try:
                span = await self.client.create_span("memory_write", [key for key, _ in updates], parent)
                for key, update in updates:
                    await self.memory.write(key, update.value, update.description or key, update.metadata)
                    await self._trigger(MemoryWritePayload(context=context, key=key, value=update.value))
                await self.client.update_span(span.id, f"Successfully wrote {len(updates)} keys")
                self._log("Wrote %d memory entries", len(updates))
                summaries.append(
                    ToolExecutionSummary(
                        tool_name="memory_write", success=True, output={"keys": [key for key, _ in updates]}
                    )
                )
            except Exception as e:
                summaries.append(await self._memory_failure(context, "write", e))

        return summaries

    async def _memory_failure(self, context: AgentContext, operation: str, err: Exception) -> ToolExecutionSummary:
        fault = err if isinstance(err, MemoryFault) else MemoryFault(operation, error_message(err), err)
        await self._trigger(MemoryErrorPayload(context=context, operation=operation, error=fault))
        self.logger.warning("[%s] Memory %s failed: %s", self.name, operation, fault.message)
        return ToolExecutionSummary(tool_name=f"memory_{operation}", success=False, error=fault.message)

    # -- tools --

    async def _execute_tool_calls(
        self,
        decision: AgentDecision,
        context: AgentContext,
        parent_span_id: str | None,
        signal: asyncio.Event | None,
    ) -> list[ToolExecutionSummary]:
        calls = decision.tool_calls
        if not calls:
            return []

        self._log("Executing %d tool call(s)", len(calls))
        if self.config.parallel_tool_execution:
            return list(
                await asyncio.gather(
                    *(self._run_tool_call(call, context, parent_span_id, signal) for call in calls)
                )
            )
        return [await self._run_tool_call(call, context, parent_span_id, signal) for call in calls]

    async def _run_tool_call(
        self,
        call: ToolCall,
        context: AgentContext,
        parent_span_id: str | None,
        signal: asyncio.Event | None,
    ) -> ToolExecutionSummary:
        self._log("Action: %s %s", call.tool_name, call.arguments)
        span = await self.client.create_span(
            f"tool_{call.tool_name}", call.arguments, parent_span_id or context.parent_span_id
        )
        result = await self.execute_tool(call.tool_name, call.arguments, context, span_id=span.id, signal=signal)

        if result.success:
            output = dump_value(result.output)
            await self.client.update_span(span.id, output)
            self._log("Tool %s succeeded", call.tool_name)
            return ToolExecutionSummary(tool_name=call.tool_name, success=True, output=output)

        await self.client.update_span(span.id, error=result.error_message)
        self._log("Tool %s failed: %s", call.tool_name, result.error_message)
        return ToolExecutionSummary(tool_name=call.tool_name, success=False, error=result.error_message)

    # -- synthesis --

    async def generate_final_result(self, input: Any, context: AgentContext) -> Any:
        self._log("Generating final result (total_iterations=%d)", context.iteration)
        await self._trigger(LlmCallPayload(context=context, call_type="final_result"))

        final_context = {
            "goal": serialize_input(input),
            "instructions": self.instructions or NO_INSTRUCTIONS,
            "execution_history": [
                {
                    "iteration": cycle.iteration,
                    "actions_taken": [summary.tool_name for summary in cycle.results],
                    "results": [
                        {"tool": summary.tool_name, "result": _render_output(summary.output)}
                        for summary in cycle.results
                        if summary.success
                    ],
                }
                for cycle in context.execution_history
            ],
            "total_iterations": context.iteration,
        }
        request = CallRequest(
            name="generate_final_result",
            instructions=FINAL_RESULT_PROMPT,
            input=final_context,
            model=self.model,
            output_schema=self.output_schema.to_json_schema() if self.output_schema else None,
            parent_span_id=context.parent_span_id,
        )

        try:
            if self.enable_streaming:
                response = await self._stream_call(request, context, "final_result", self.output_schema)
            else:
                response = await self.client.call(request)
                context.update_usage_with_source(self.name, response.usage)

            if self.output_schema is not None:
                raw = response.parsed_output
                if raw is None:
                    raw = response.text_message
                result = self.output_schema.parse(raw)
            else:
                result = response.text_message if response.text_message is not None else response.parsed_output
        except Exception as e:
            self.logger.error("[%s] Failed to generate final result: %s", self.name, e)
            raise

        await self._trigger(
            LlmResponsePayload(context=context, call_type="final_result", response=response, parsed=result)
        )
        return result

    def _log(self, message: str, *args: Any) -> None:
        level = logging.INFO if self.config.verbose else logging.DEBUG
        self.logger.log(level, "[%s] " + message, self.name, *args)

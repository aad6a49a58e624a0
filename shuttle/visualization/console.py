"""
Rich console tracer.

Subscribes to an agent's hooks and prints an execution tree: iterations,
model calls, tool calls and stream progress, followed by a usage summary.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.panel import Panel
from rich.text import Text
from rich.tree import Tree

from ..errors import error_message
from ..hooks import (
    AfterToolPayload,
    AgentEndPayload,
    AgentStartPayload,
    BeforeToolPayload,
    HookEvent,
    HookRegistration,
    LlmResponsePayload,
    LoopStartPayload,
    MemoryErrorPayload,
    MemoryReadPayload,
    MemoryWritePayload,
    StreamEndPayload,
    StreamStartPayload,
    ThinkEndPayload,
    ToolErrorPayload,
    Unregister,
)
from ..tools import dump_value

if TYPE_CHECKING:
    from ..agent.base import BaseAgent

_PREVIEW = 200


def _preview(value: Any) -> str:
    text = value if isinstance(value, str) else json.dumps(value, default=str, ensure_ascii=False)
    return text if len(text) <= _PREVIEW else text[:_PREVIEW] + "..."


class ConsoleTracer:
    """Prints one agent's execution as a rich Tree once the invocation ends."""

    def __init__(self, console: Console | None = None, show_streams: bool = True) -> None:
        self.console = console or Console()
        self.show_streams = show_streams
        self.root: Tree | None = None
        self.iteration_node: Tree | None = None
        self.stats = {"llm_calls": 0, "tool_calls": 0, "errors": 0}

    def attach(self, agent: BaseAgent) -> Unregister:
        """Register on ``agent``'s hooks; returns a function that detaches the tracer."""
        handlers = {
            HookEvent.AGENT_START: self._on_agent_start,
            HookEvent.AGENT_END: self._on_agent_end,
            HookEvent.LOOP_START: self._on_loop_start,
            HookEvent.LLM_RESPONSE: self._on_llm_response,
            HookEvent.THINK_END: self._on_think_end,
            HookEvent.BEFORE_TOOL: self._on_before_tool,
            HookEvent.AFTER_TOOL: self._on_after_tool,
            HookEvent.TOOL_ERROR: self._on_tool_error,
            HookEvent.MEMORY_READ: self._on_memory_read,
            HookEvent.MEMORY_WRITE: self._on_memory_write,
            HookEvent.MEMORY_ERROR: self._on_memory_error,
        }
        if self.show_streams:
            handlers[HookEvent.STREAM_START] = self._on_stream_start
            handlers[HookEvent.STREAM_END] = self._on_stream_end
        return agent.hooks.register_many(
            HookRegistration(event=event, handler=handler) for event, handler in handlers.items()
        )

    # -- handlers --

    def _on_agent_start(self, payload: AgentStartPayload) -> None:
        context = payload.context
        self.stats = {"llm_calls": 0, "tool_calls": 0, "errors": 0}
        self.root = Tree(f"🤖 [bold blue]Agent: {context.agent_name}[/bold blue]")
        self.root.add(Text(f"Input: {_preview(context.goal)}", style="dim"))
        self.iteration_node = None

    def _on_loop_start(self, payload: LoopStartPayload) -> None:
        if self.root is None:
            return
        self.iteration_node = self.root.add(f"[bold]Iteration {payload.context.iteration + 1}[/bold]")

    def _on_llm_response(self, payload: LlmResponsePayload) -> None:
        self.stats["llm_calls"] += 1
        if payload.call_type == "final_result" and self.root is not None:
            self.root.add("🧠 [cyan]Final result generated[/cyan]")

    def _on_think_end(self, payload: ThinkEndPayload) -> None:
        node = self.iteration_node or self.root
        if node is None:
            return
        node.add(Text(f"💭 {_preview(payload.thought.reasoning)}", style="italic"))
        if payload.thought.user_message:
            node.add(Text(f"💬 {payload.thought.user_message}"))

    def _on_before_tool(self, payload: BeforeToolPayload) -> None:
        self.stats["tool_calls"] += 1
        node = self.iteration_node or self.root
        if node is not None:
            node.add(f"🛠️ [bold yellow]Tool: {payload.tool.name}[/bold yellow] {_preview(payload.input)}")

    def _on_after_tool(self, payload: AfterToolPayload) -> None:
        node = self.iteration_node or self.root
        if node is None:
            return
        record = payload.record
        elapsed = (record.finished_at or record.started_at) - record.started_at
        if payload.result.success:
            node.add(f"  ✅ {payload.tool.name} ({elapsed:.2f}s): {_preview(payload.result.output)}")
        else:
            node.add(f"  ❌ [red]{payload.tool.name} ({elapsed:.2f}s): {record.error}[/red]")

    def _on_tool_error(self, payload: ToolErrorPayload) -> None:
        self.stats["errors"] += 1
        if payload.tool is None:
            node = self.iteration_node or self.root
            if node is not None:
                node.add(f"❌ [red]{payload.tool_name}: {error_message(payload.error)}[/red]")

    def _on_memory_read(self, payload: MemoryReadPayload) -> None:
        node = self.iteration_node or self.root
        if node is not None:
            node.add(f"📖 memory read [magenta]{payload.key}[/magenta]")

    def _on_memory_write(self, payload: MemoryWritePayload) -> None:
        node = self.iteration_node or self.root
        if node is not None:
            node.add(f"📝 memory write [magenta]{payload.key}[/magenta] = {_preview(payload.value)}")

    def _on_memory_error(self, payload: MemoryErrorPayload) -> None:
        self.stats["errors"] += 1
        node = self.iteration_node or self.root
        if node is not None:
            node.add(f"❌ [red]memory {payload.operation}: {error_message(payload.error)}[/red]")

    def _on_stream_start(self, payload: StreamStartPayload) -> None:
        node = self.iteration_node or self.root
        if node is not None:
            node.add(f"📡 [dim]streaming {payload.call_type}[/dim]")

    def _on_stream_end(self, payload: StreamEndPayload) -> None:
        node = self.iteration_node or self.root
        if node is not None:
            fields = ", ".join(payload.field_buffers) or "-"
            node.add(f"📡 [dim]{payload.call_type} stream done ({fields})[/dim]")

    def _on_agent_end(self, payload: AgentEndPayload) -> None:
        if self.root is None:
            return
        if payload.error is not None:
            self.stats["errors"] += 1
            self.root.add(f"❌ [bold red]Error[/bold red]: {error_message(payload.error)}")
        else:
            self.root.add(f"✅ [bold]Output[/bold]: {_preview(dump_value(payload.result))}")

        usage = payload.context.usage
        summary = (
            f"🧠 LLM Calls: {self.stats['llm_calls']} | "
            f"🛠️ Tool Calls: {self.stats['tool_calls']} | "
            f"❌ Errors: {self.stats['errors']} | "
            f"Tokens: {usage.total_tokens} | Cost: {usage.cost.total:.6f}"
        )
        self.console.print(Panel(self.root, title="Execution Trace", border_style="blue"))
        self.console.print(Panel(summary, style="white on black"))
        self.root = None
        self.iteration_node = None

"""Execution context - mutable per-invocation state owned by one agent run."""

from __future__ import annotations

import copy
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from .types import ToolCallRecord, Usage


@dataclass(frozen=True)
class ExecutionCycle:
    iteration: int
    thought: Any = None
    tool_calls: tuple[ToolCallRecord, ...] = ()
    results: tuple[Any, ...] = ()
    timestamp: float = field(default_factory=time.time)


@dataclass
class IterationSummary:
    iteration: int
    thought: dict[str, Any]
    tool_calls: list[dict[str, Any]]
    results: list[Any]


@dataclass
class AgentContextSnapshot:
    agent_name: str
    session_id: str
    parent_span_id: str | None
    iteration: int
    goal: Any
    execution_history: list[ExecutionCycle]
    usage: Usage
    tool_calls: list[ToolCallRecord]
    metadata: dict[str, Any]
    started_at: float
    updated_at: float


class AgentContext:
    """
    Per-invocation record of iterations, usage, cycles and tool calls.

    Only the loop driving the invocation mutates it. ``execution_history`` and
    ``tool_calls`` are append-only.
    """

    def __init__(
        self,
        agent_name: str,
        session_id: str | None = None,
        parent_span_id: str | None = None,
        goal: Any = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        now = time.time()
        self.agent_name = agent_name
        self.session_id = session_id or uuid.uuid4().hex
        self.parent_span_id = parent_span_id
        self.goal = goal
        self.iteration = 0
        self.execution_history: list[ExecutionCycle] = []
        self.tool_calls: list[ToolCallRecord] = []
        self.usage = Usage()
        self.metadata: dict[str, Any] = dict(metadata or {})
        self.started_at = now
        self.updated_at = now

    # -- usage --

    def update_usage(self, delta: Usage) -> None:
        breakdown = self.usage.breakdown
        self.usage = self.usage.totals() + delta.totals()
        self.usage.breakdown = breakdown
        self._touch()

    def update_usage_with_source(self, source: str, delta: Usage) -> None:
        """Add ``delta`` to the totals and to the breakdown entry for ``source``."""
        self.update_usage(delta)
        if self.usage.breakdown is None:
            self.usage.breakdown = {}
        existing = self.usage.breakdown.get(source, Usage())
        self.usage.breakdown[source] = existing + delta.totals()

    def cleanup_breakdown_if_only(self, agent_name: str) -> None:
        breakdown = self.usage.breakdown
        if breakdown is not None and list(breakdown) == [agent_name]:
            self.usage.breakdown = None

    def get_context_size(self) -> int:
        return self.usage.total_tokens

    # -- history --

    def add_cycle(self, cycle: ExecutionCycle) -> ExecutionCycle:
        self.execution_history.append(cycle)
        self._touch()
        return cycle

    def record_tool_call(self, record: ToolCallRecord) -> ToolCallRecord:
        self.tool_calls.append(record)
        self._touch()
        return record

    def get_last_cycles(self, count: int = 3) -> list[ExecutionCycle]:
        if count <= 0:
            return []
        return self.execution_history[-count:]

    def get_last_iterations_summary(self, count: int = 2) -> list[IterationSummary]:
        summaries = []
        for cycle in self.get_last_cycles(count):
            thought = dict(cycle.thought) if isinstance(cycle.thought, dict) else {"text": cycle.thought}
            tool_calls = []
            for call in cycle.tool_calls:
                entry: dict[str, Any] = {"tool_name": call.tool_name}
                if call.success is not None:
                    entry["success"] = call.success
                tool_calls.append(entry)
            summaries.append(
                IterationSummary(
                    iteration=cycle.iteration,
                    thought=thought,
                    tool_calls=tool_calls,
                    results=list(cycle.results),
                )
            )
        return summaries

    def clear_history(self) -> None:
        self.execution_history.clear()
        self.tool_calls.clear()
        self._touch()

    # -- metadata --

    def set_metadata(self, key: str, value: Any) -> None:
        self.metadata[key] = value
        self._touch()

    def snapshot(self) -> AgentContextSnapshot:
        return AgentContextSnapshot(
            agent_name=self.agent_name,
            session_id=self.session_id,
            parent_span_id=self.parent_span_id,
            iteration=self.iteration,
            goal=self.goal,
            execution_history=list(self.execution_history),
            usage=self.usage.copy(),
            tool_calls=list(self.tool_calls),
            metadata=copy.copy(self.metadata),
            started_at=self.started_at,
            updated_at=self.updated_at,
        )

    def _touch(self) -> None:
        self.updated_at = time.time()

    def __repr__(self) -> str:
        return (
            f"AgentContext(agent_name={self.agent_name!r}, session_id={self.session_id!r}, "
            f"iteration={self.iteration})"
        )

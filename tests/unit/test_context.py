"""Unit tests for AgentContext and usage accounting."""

import dataclasses

import pytest

from shuttle.context import AgentContext, ExecutionCycle
from shuttle.types import Cost, ToolCallRecord, Usage


def usage(total_in: int, total_out: int, cost: float = 0.0) -> Usage:
    return Usage.single_request(total_in, total_out, Cost(generation=cost, total=cost))


class TestUsage:
    def test_add(self):
        u = usage(10, 5, 0.1) + usage(1, 2, 0.2)
        assert u.requests == 2
        assert u.input_tokens == 11
        assert u.output_tokens == 7
        assert u.total_tokens == 18
        assert u.cost.total == pytest.approx(0.3)

    def test_copy_is_deep(self):
        u = usage(1, 1)
        u.breakdown = {"a": usage(1, 1)}
        c = u.copy()
        c.breakdown["a"].total_tokens = 99
        c.cost.total = 5
        assert u.breakdown["a"].total_tokens == 2
        assert u.cost.total == 0

    def test_to_dict(self):
        data = usage(3, 4).to_dict()
        assert data["total_tokens"] == 7
        assert "breakdown" not in data


class TestUsageWithSource:
    def test_breakdown_sums_to_total(self):
        ctx = AgentContext("main")
        for source, (i, o) in [("main", (10, 5)), ("helper", (3, 2)), ("main", (1, 1)), ("other", (7, 0))]:
            ctx.update_usage_with_source(source, usage(i, o))

        assert ctx.usage.total_tokens == 29
        assert sum(entry.total_tokens for entry in ctx.usage.breakdown.values()) == ctx.usage.total_tokens
        assert ctx.usage.breakdown["main"].requests == 2

    def test_nested_breakdown_is_not_merged(self):
        ctx = AgentContext("main")
        nested = usage(4, 4)
        nested.breakdown = {"inner": usage(4, 4)}
        ctx.update_usage_with_source("tool", nested)
        assert ctx.usage.breakdown["tool"].breakdown is None

    def test_update_usage_keeps_breakdown(self):
        ctx = AgentContext("main")
        ctx.update_usage_with_source("main", usage(1, 1))
        ctx.update_usage(usage(2, 2))
        assert ctx.usage.total_tokens == 6
        assert list(ctx.usage.breakdown) == ["main"]

    def test_cleanup_only_own_name(self):
        ctx = AgentContext("main")
        ctx.update_usage_with_source("main", usage(1, 1))
        ctx.cleanup_breakdown_if_only("main")
        assert ctx.usage.breakdown is None

    def test_cleanup_keeps_mixed_breakdown(self):
        ctx = AgentContext("main")
        ctx.update_usage_with_source("main", usage(1, 1))
        ctx.update_usage_with_source("helper", usage(1, 1))
        ctx.cleanup_breakdown_if_only("main")
        assert set(ctx.usage.breakdown) == {"main", "helper"}


class TestHistory:
    def test_defaults(self):
        ctx = AgentContext("a", goal="g")
        assert ctx.iteration == 0
        assert len(ctx.session_id) == 32
        assert ctx.execution_history == []
        assert ctx.tool_calls == []
        assert ctx.get_context_size() == 0

    def test_cycles_are_frozen(self):
        ctx = AgentContext("a")
        cycle = ctx.add_cycle(ExecutionCycle(iteration=1, thought={"reasoning": "r"}))
        with pytest.raises(dataclasses.FrozenInstanceError):
            cycle.iteration = 2

    def test_last_cycles(self):
        ctx = AgentContext("a")
        for i in range(1, 6):
            ctx.add_cycle(ExecutionCycle(iteration=i))
        assert [c.iteration for c in ctx.get_last_cycles(3)] == [3, 4, 5]
        assert ctx.get_last_cycles(0) == []

    def test_iterations_summary(self):
        ctx = AgentContext("a")
        record = ToolCallRecord(tool_name="search", success=True)
        ctx.add_cycle(ExecutionCycle(iteration=1, thought={"reasoning": "r"}, tool_calls=(record,), results=("x",)))
        [summary] = ctx.get_last_iterations_summary()
        assert summary.iteration == 1
        assert summary.thought == {"reasoning": "r"}
        assert summary.tool_calls == [{"tool_name": "search", "success": True}]
        assert summary.results == ["x"]

    def test_record_and_clear(self):
        ctx = AgentContext("a")
        ctx.record_tool_call(ToolCallRecord(tool_name="t"))
        ctx.add_cycle(ExecutionCycle(iteration=1))
        ctx.clear_history()
        assert ctx.tool_calls == []
        assert ctx.execution_history == []

    def test_snapshot_copies_usage(self):
        ctx = AgentContext("a", metadata={"k": "v"})
        ctx.update_usage_with_source("a", usage(1, 1))
        snap = ctx.snapshot()
        ctx.update_usage_with_source("a", usage(5, 5))
        ctx.set_metadata("k", "changed")
        assert snap.usage.total_tokens == 2
        assert snap.usage.breakdown["a"].total_tokens == 2
        assert snap.metadata == {"k": "v"}

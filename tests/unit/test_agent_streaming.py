"""Streaming think and final-result calls."""

import pytest
from pydantic import BaseModel

from shuttle import AgentConfig, HookEvent
from shuttle.types import Usage
from tests.conftest import chunks


class Answer(BaseModel):
    value: int


STREAMING = AgentConfig(max_iterations=3, enable_streaming=True)


class TestStreaming:
    async def test_structured_think_completes_inline(self, make_agent, client):
        client.streams = [
            chunks(
                ("Know", "reasoning"),
                ("n", "reasoning"),
                ("true", "is_complete"),
                ("42", "final_result.value"),
            )
        ]
        agent = make_agent(config=STREAMING, output_schema=Answer)
        started, deltas, ended = [], [], []
        agent.on(HookEvent.STREAM_START, started.append)
        agent.on(HookEvent.STREAM_CHUNK, deltas.append)
        agent.on(HookEvent.STREAM_END, ended.append)

        run = await agent.invoke("question")
        assert run.output == Answer(value=42)
        assert client.calls == []
        assert len(client.stream_requests) == 1
        assert started[0].call_type == "think"
        assert [p.accumulated for p in deltas[:2]] == ["Know", "Known"]
        assert deltas[1].field_buffers["reasoning"] == "Known"
        assert ended[0].field_buffers["final_result.value"] == "42"

    async def test_usage_from_span_lookup(self, make_agent, client):
        client.streams = [chunks(("done", "reasoning"), ("true", "is_complete"), ("ok", "final_result"))]
        client.usage_by_span["stream-span"] = Usage.single_request(12, 8)
        run = await make_agent(config=STREAMING).invoke("x")
        assert run.output == "ok"
        assert run.context.usage.total_tokens == 20
        assert run.context.usage.requests == 1

    async def test_usage_fallback_counts_request(self, make_agent, client):
        client.streams = [chunks(("done", "reasoning"), ("true", "is_complete"), ("ok", "final_result"))]
        run = await make_agent(config=STREAMING).invoke("x")
        assert run.context.usage.requests == 1
        assert run.context.usage.total_tokens == 0

    async def test_root_text_think_then_streamed_answer(self, make_agent, client):
        client.streams = [
            chunks(('{"reasoning": "nothing to do"', None), ("}", None)),
            chunks(("Hello", None), (" world", None)),
        ]
        agent = make_agent(config=STREAMING)
        call_types = []
        agent.on(HookEvent.STREAM_START, lambda p: call_types.append(p.call_type))
        assert await agent.process("greet") == "Hello world"
        assert call_types == ["think", "final_result"]
        assert [r.name for r in client.stream_requests] == ["think", "generate_final_result"]

    async def test_streamed_final_result_with_schema(self, make_agent, client):
        client.streams = [
            chunks(("summarize", "reasoning")),
            chunks(("1", "value"), ("7", "value")),
        ]
        agent = make_agent(config=STREAMING, output_schema=Answer)
        assert await agent.process("x") == Answer(value=17)

    async def test_stream_failure_emits_error(self, make_agent, client):
        client.streams = [RuntimeError("connection dropped")]
        agent = make_agent(config=STREAMING)
        errors, ends = [], []
        agent.on(HookEvent.STREAM_ERROR, errors.append)
        agent.on(HookEvent.STREAM_END, ends.append)
        with pytest.raises(RuntimeError, match="connection dropped"):
            await agent.process("x")
        assert str(errors[0].error) == "connection dropped"
        assert ends == []

    async def test_constructor_stream_handlers(self, make_agent, client):
        seen = []
        client.streams = [chunks(("done", "reasoning"), ("true", "is_complete"), ("ok", "final_result"))]
        agent = make_agent(config=STREAMING, on_stream_chunk=lambda p: seen.append(p.chunk_data.path))
        await agent.process("x")
        assert seen == ["reasoning", "is_complete", "final_result"]

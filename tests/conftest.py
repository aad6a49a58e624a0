"""Shared fixtures: a scripted model client and agent builders."""

from __future__ import annotations

from typing import Any

import pytest

from shuttle.agent import Agent
from shuttle.config import AgentConfig
from shuttle.types import CallRequest, CallResponse, Span, StreamChunk, Usage


def decision(reasoning: str = "thinking", **fields: Any) -> dict[str, Any]:
    """Raw think-step payload as a model would return it."""
    return {"reasoning": reasoning, **fields}


def tool_call(tool_name: str, arguments: Any = None, call_id: str | None = None) -> dict[str, Any]:
    return {"id": call_id or f"call_{tool_name}", "tool_name": tool_name, "arguments": arguments or {}}


class FakeModelClient:
    """
    ModelClient that replays scripted answers.

    ``responses`` feeds ``call``: a dict becomes ``parsed_output``, a str
    becomes ``text_message``, a CallResponse is returned as is and an
    exception is raised. ``streams`` feeds ``stream`` the same way with
    lists of StreamChunk.
    """

    def __init__(
        self,
        responses: list[Any] | None = None,
        streams: list[Any] | None = None,
        usage: Usage | None = None,
    ) -> None:
        self.responses = list(responses or [])
        self.streams = list(streams or [])
        self.usage = usage or Usage.single_request(input_tokens=10, output_tokens=5)
        self.calls: list[CallRequest] = []
        self.stream_requests: list[CallRequest] = []
        self.spans: list[Span] = []
        self.span_parents: dict[str, str | None] = {}
        self.span_updates: list[dict[str, Any]] = []
        self.usage_by_span: dict[str, Usage] = {}

    @property
    def model_calls(self) -> int:
        return len(self.calls) + len(self.stream_requests)

    async def call(self, request: CallRequest) -> CallResponse:
        self.calls.append(request)
        if not self.responses:
            raise AssertionError(f"No scripted response left for {request.name!r}")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, CallResponse):
            return item
        span_id = f"{request.name}-{len(self.calls)}"
        if isinstance(item, str):
            return CallResponse(span_id=span_id, text_message=item, usage=self.usage.copy())
        return CallResponse(span_id=span_id, parsed_output=item, usage=self.usage.copy())

    async def stream(self, request: CallRequest):
        self.stream_requests.append(request)
        if not self.streams:
            raise AssertionError(f"No scripted stream left for {request.name!r}")
        item = self.streams.pop(0)
        if isinstance(item, Exception):
            raise item
        for chunk in item:
            yield chunk

    async def create_span(self, name: str, input: Any = None, parent_span_id: str | None = None) -> Span:
        span = Span(id=f"span-{len(self.spans) + 1}", name=name, input=input)
        self.spans.append(span)
        self.span_parents[span.id] = parent_span_id
        return span

    async def update_span(
        self,
        span_id: str,
        output: Any = None,
        *,
        error: str | None = None,
        start_time: float | None = None,
        end_time: float | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        self.span_updates.append({"span_id": span_id, "output": output, "error": error})

    async def fetch_usage(self, span_id: str) -> Usage | None:
        return self.usage_by_span.get(span_id)

    def span_named(self, name: str) -> Span:
        return next(span for span in self.spans if span.name == name)


def chunks(*parts: tuple[Any, str | None], span_id: str = "stream-span") -> list[StreamChunk]:
    return [StreamChunk(delta=delta, path=path, span_id=span_id) for delta, path in parts]


@pytest.fixture
def client() -> FakeModelClient:
    return FakeModelClient()


@pytest.fixture
def make_agent(client: FakeModelClient):
    """Build an Agent bound to the fake client; keyword args override defaults."""

    def build(name: str = "assistant", config: AgentConfig | None = None, **kwargs: Any) -> Agent:
        kwargs.setdefault("client", client)
        return Agent(name, config=config or AgentConfig(max_iterations=5), **kwargs)

    return build

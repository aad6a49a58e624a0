"""Model client types."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, Sequence, Union, runtime_checkable

from .usage import Usage

LlmCallType = Literal["think", "final_result"]

ModelSpec = Union[str, Sequence[str]]


@dataclass
class CallRequest:
    name: str
    instructions: str
    input: Any
    model: ModelSpec | None = None
    input_schema: dict[str, Any] | None = None
    output_schema: dict[str, Any] | None = None
    parent_span_id: str | None = None


@dataclass
class CallResponse:
    span_id: str
    parsed_output: Any = None
    text_message: str | None = None
    usage: Usage = field(default_factory=Usage)


@dataclass
class StreamChunk:
    delta: Any = None
    path: str | None = None
    chunk_kind: str | None = None
    span_id: str | None = None


@dataclass
class StreamResponse:
    """Summary of a streamed call once the stream is exhausted."""

    span_id: str | None
    parsed_output: Any = None
    text_message: str | None = None
    field_buffers: dict[str, str] = field(default_factory=dict)
    usage: Usage = field(default_factory=Usage)


@dataclass
class Span:
    id: str
    name: str
    input: Any = None


@runtime_checkable
class ModelClient(Protocol):
    async def call(self, request: CallRequest) -> CallResponse: ...

    def stream(self, request: CallRequest) -> AsyncIterator[StreamChunk]: ...

    async def create_span(
        self, name: str, input: Any = None, parent_span_id: str | None = None
    ) -> Span: ...

    async def update_span(
        self,
        span_id: str,
        output: Any = None,
        *,
        error: str | None = None,
        start_time: float | None = None,
        end_time: float | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None: ...

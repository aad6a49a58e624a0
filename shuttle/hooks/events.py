"""Hook event names and their payloads - one dataclass per event."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Literal, Union

from ..types import CallResponse, LlmCallType, StreamResponse, Tool, ToolCallRecord, ToolResult

if TYPE_CHECKING:
    from ..context import AgentContext


class HookEvent(str, Enum):
    AGENT_START = "agent:start"
    AGENT_END = "agent:end"
    LOOP_START = "loop:start"
    LOOP_END = "loop:end"
    LLM_CALL = "llm:call"
    LLM_RESPONSE = "llm:response"
    THINK_END = "think:end"
    BEFORE_TOOL = "tool:before"
    AFTER_TOOL = "tool:after"
    TOOL_ERROR = "tool:error"
    MEMORY_READ = "memory:read"
    MEMORY_WRITE = "memory:write"
    MEMORY_ERROR = "memory:error"
    STREAM_START = "stream:start"
    STREAM_CHUNK = "stream:chunk"
    STREAM_END = "stream:end"
    STREAM_ERROR = "stream:error"


MemoryOperation = Literal["read", "write", "delete", "clear"]


@dataclass
class AgentThought:
    reasoning: str
    user_message: str = ""


@dataclass
class ChunkData:
    delta: Any
    path: str | None = None
    chunk_kind: str | None = None


@dataclass
class AgentStartPayload:
    event: ClassVar[HookEvent] = HookEvent.AGENT_START
    context: AgentContext


@dataclass
class AgentEndPayload:
    event: ClassVar[HookEvent] = HookEvent.AGENT_END
    context: AgentContext
    result: Any = None
    error: BaseException | None = None


@dataclass
class LoopStartPayload:
    event: ClassVar[HookEvent] = HookEvent.LOOP_START
    context: AgentContext


@dataclass
class LoopEndPayload:
    event: ClassVar[HookEvent] = HookEvent.LOOP_END
    context: AgentContext


@dataclass
class LlmCallPayload:
    event: ClassVar[HookEvent] = HookEvent.LLM_CALL
    context: AgentContext
    call_type: LlmCallType


@dataclass
class LlmResponsePayload:
    event: ClassVar[HookEvent] = HookEvent.LLM_RESPONSE
    context: AgentContext
    call_type: LlmCallType
    response: CallResponse | StreamResponse
    parsed: Any = None


@dataclass
class ThinkEndPayload:
    event: ClassVar[HookEvent] = HookEvent.THINK_END
    context: AgentContext
    thought: AgentThought


@dataclass
class BeforeToolPayload:
    event: ClassVar[HookEvent] = HookEvent.BEFORE_TOOL
    context: AgentContext
    tool: Tool
    input: Any
    tool_call_id: str


@dataclass
class AfterToolPayload:
    event: ClassVar[HookEvent] = HookEvent.AFTER_TOOL
    context: AgentContext
    tool: Tool
    result: ToolResult
    record: ToolCallRecord


@dataclass
class ToolErrorPayload:
    event: ClassVar[HookEvent] = HookEvent.TOOL_ERROR
    context: AgentContext
    tool_name: str
    error: BaseException | str
    tool_call_id: str
    tool: Tool | None = None


@dataclass
class MemoryReadPayload:
    event: ClassVar[HookEvent] = HookEvent.MEMORY_READ
    context: AgentContext
    key: str
    value: Any


@dataclass
class MemoryWritePayload:
    event: ClassVar[HookEvent] = HookEvent.MEMORY_WRITE
    context: AgentContext
    key: str
    value: Any


@dataclass
class MemoryErrorPayload:
    event: ClassVar[HookEvent] = HookEvent.MEMORY_ERROR
    context: AgentContext
    operation: MemoryOperation
    error: BaseException


@dataclass
class StreamStartPayload:
    event: ClassVar[HookEvent] = HookEvent.STREAM_START
    context: AgentContext
    call_type: LlmCallType


@dataclass
class StreamChunkPayload:
    event: ClassVar[HookEvent] = HookEvent.STREAM_CHUNK
    context: AgentContext
    call_type: LlmCallType
    chunk_data: ChunkData
    accumulated: str
    field_buffers: dict[str, str] = field(default_factory=dict)


@dataclass
class StreamEndPayload:
    event: ClassVar[HookEvent] = HookEvent.STREAM_END
    context: AgentContext
    call_type: LlmCallType
    field_buffers: dict[str, str] = field(default_factory=dict)


@dataclass
class StreamErrorPayload:
    event: ClassVar[HookEvent] = HookEvent.STREAM_ERROR
    context: AgentContext
    call_type: LlmCallType
    error: BaseException


HookPayload = Union[
    AgentStartPayload,
    AgentEndPayload,
    LoopStartPayload,
    LoopEndPayload,
    LlmCallPayload,
    LlmResponsePayload,
    ThinkEndPayload,
    BeforeToolPayload,
    AfterToolPayload,
    ToolErrorPayload,
    MemoryReadPayload,
    MemoryWritePayload,
    MemoryErrorPayload,
    StreamStartPayload,
    StreamChunkPayload,
    StreamEndPayload,
    StreamErrorPayload,
]

PAYLOAD_TYPES: dict[HookEvent, type] = {
    payload_type.event: payload_type
    for payload_type in HookPayload.__args__  # type: ignore[attr-defined]
}

"""Core type definitions - re-exported from sub-modules."""

from .llm import (
    CallRequest, CallResponse, LlmCallType, ModelClient, ModelSpec, Span, StreamChunk, StreamResponse,
)
from .tools import (
    Tool, ToolCallRecord, ToolEntry, ToolExecutionContext, ToolHandler, ToolProvider, ToolResult,
    ToolSchema,
)
from .usage import Cost, Usage

__all__ = [
    "CallRequest", "CallResponse", "LlmCallType", "ModelClient", "ModelSpec", "Span",
    "StreamChunk", "StreamResponse",
    "Tool", "ToolCallRecord", "ToolEntry", "ToolExecutionContext", "ToolHandler", "ToolProvider",
    "ToolResult", "ToolSchema",
    "Cost", "Usage",
]

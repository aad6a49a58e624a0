"""Lifecycle hooks."""

from .events import (
    PAYLOAD_TYPES,
    AfterToolPayload,
    AgentEndPayload,
    AgentStartPayload,
    AgentThought,
    BeforeToolPayload,
    ChunkData,
    HookEvent,
    HookPayload,
    LlmCallPayload,
    LlmResponsePayload,
    LoopEndPayload,
    LoopStartPayload,
    MemoryErrorPayload,
    MemoryOperation,
    MemoryReadPayload,
    MemoryWritePayload,
    StreamChunkPayload,
    StreamEndPayload,
    StreamErrorPayload,
    StreamStartPayload,
    ThinkEndPayload,
    ToolErrorPayload,
)
from .manager import HookHandler, HookManager, HookRegistration, Unregister

__all__ = [
    "PAYLOAD_TYPES",
    "AfterToolPayload",
    "AgentEndPayload",
    "AgentStartPayload",
    "AgentThought",
    "BeforeToolPayload",
    "ChunkData",
    "HookEvent",
    "HookPayload",
    "LlmCallPayload",
    "LlmResponsePayload",
    "LoopEndPayload",
    "LoopStartPayload",
    "MemoryErrorPayload",
    "MemoryOperation",
    "MemoryReadPayload",
    "MemoryWritePayload",
    "StreamChunkPayload",
    "StreamEndPayload",
    "StreamErrorPayload",
    "StreamStartPayload",
    "ThinkEndPayload",
    "ToolErrorPayload",
    "HookHandler",
    "HookManager",
    "HookRegistration",
    "Unregister",
]

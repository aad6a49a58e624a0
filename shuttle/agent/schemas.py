"""Structured shapes exchanged with the model during the think step."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ToolCall(BaseModel):
    id: str
    tool_name: str
    arguments: Any = None


class MemoryUpdate(BaseModel):
    value: Any = None
    description: str | None = None
    metadata: dict[str, Any] | None = None


class AgentDecision(BaseModel):
    """
    One think step's answer.

    ``is_complete`` left unset means the model answered without the completion
    fields; such decisions complete purely on the absence of actions.
    """

    reasoning: str
    user_message: str = Field(default="", description="Short status update shown to users")
    tool_calls: list[ToolCall] = Field(default_factory=list)
    memory_reads: list[str] = Field(default_factory=list)
    memory_updates: dict[str, MemoryUpdate] = Field(default_factory=dict)
    is_complete: bool | None = Field(
        default=None, description="True when the goal is reached and final_result holds the answer"
    )
    final_result: Any = Field(
        default=None, description="The finished answer, only when is_complete is true"
    )


class ToolExecutionSummary(BaseModel):
    tool_name: str
    success: bool
    output: Any = None
    error: str | None = None


__all__ = ["AgentDecision", "MemoryUpdate", "ToolCall", "ToolExecutionSummary"]

from .base import AgentRun, BaseAgent
from .core import Agent, serialize_input
from .schemas import AgentDecision, MemoryUpdate, ToolCall, ToolExecutionSummary

__all__ = [
    "Agent",
    "AgentDecision",
    "AgentRun",
    "BaseAgent",
    "MemoryUpdate",
    "ToolCall",
    "ToolExecutionSummary",
    "serialize_input",
]

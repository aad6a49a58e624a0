"""
shuttle - execution core for LLM-driven agents.

An Agent asks a model what to do next, runs the requested tool calls and
memory operations, and repeats until the model has nothing left to do;
lifecycle events are published to hook handlers along the way.

```python
from shuttle import Agent, AgentConfig, define_tool

async def add(args, ctx):
    return args["a"] + args["b"]

agent = Agent(
    "calculator",
    instructions="Use the add tool for arithmetic.",
    tools=[define_tool("add", add, "Add two numbers", {"type": "object"})],
    config=AgentConfig(max_iterations=5),
)
answer = await agent.process("What is 2 + 3?")
```
"""

from .agent import Agent, AgentDecision, AgentRun, BaseAgent, ToolCall, ToolExecutionSummary
from .config import DEFAULT_MODEL, AgentConfig, ClientConfig, RetryConfig
from .context import AgentContext, ExecutionCycle
from .errors import (
    HookError,
    IterationLimitError,
    MemoryFault,
    ShuttleError,
    ToolAbortedError,
    ToolError,
    ToolNotFoundError,
    ToolTimeoutError,
    TransportError,
    ValidationError,
)
from .hooks import HookEvent, HookManager
from .memory import InMemoryStore, Memory
from .providers import BaseModelClient, OpperClient
from .tools import ToolRegistry, ToolRunner, define_tool
from .types import (
    CallRequest,
    CallResponse,
    Cost,
    ModelClient,
    Span,
    StreamChunk,
    Tool,
    ToolCallRecord,
    ToolExecutionContext,
    ToolProvider,
    ToolResult,
    Usage,
)
from .utils import StreamAssembler
from .visualization import ConsoleTracer, generate_flow_diagram

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_MODEL",
    "Agent",
    "AgentConfig",
    "AgentContext",
    "AgentDecision",
    "AgentRun",
    "BaseAgent",
    "BaseModelClient",
    "CallRequest",
    "CallResponse",
    "ClientConfig",
    "ConsoleTracer",
    "Cost",
    "ExecutionCycle",
    "HookError",
    "HookEvent",
    "HookManager",
    "InMemoryStore",
    "IterationLimitError",
    "Memory",
    "MemoryFault",
    "ModelClient",
    "OpperClient",
    "RetryConfig",
    "ShuttleError",
    "Span",
    "StreamAssembler",
    "StreamChunk",
    "Tool",
    "ToolAbortedError",
    "ToolCall",
    "ToolCallRecord",
    "ToolError",
    "ToolExecutionContext",
    "ToolExecutionSummary",
    "ToolNotFoundError",
    "ToolProvider",
    "ToolRegistry",
    "ToolResult",
    "ToolRunner",
    "ToolTimeoutError",
    "TransportError",
    "ValidationError",
    "define_tool",
    "generate_flow_diagram",
]

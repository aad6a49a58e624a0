from .console import ConsoleTracer
from .mermaid import generate_flow_diagram

__all__ = ["ConsoleTracer", "generate_flow_diagram"]

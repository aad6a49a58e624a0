"""Structured error hierarchy for the agent core."""

from __future__ import annotations

from typing import Any


class ShuttleError(Exception):
    def __init__(self, code: str, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.cause = cause

    @classmethod
    def wrap(cls, err: Exception) -> ShuttleError:
        if isinstance(err, ShuttleError):
            return err
        return ShuttleError("UNKNOWN", str(err), err)


class ValidationError(ShuttleError):
    """Input, output or decision payload does not match its contract."""

    def __init__(
        self,
        message: str,
        errors: list[dict[str, Any]] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__("VALIDATION_ERROR", message, cause)
        self.errors = errors or []


class IterationLimitError(ShuttleError):
    def __init__(self, max_iterations: int) -> None:
        super().__init__(
            "ITERATION_LIMIT",
            f"Agent exceeded maximum iterations ({max_iterations}) without completing the task",
        )
        self.max_iterations = max_iterations


class ToolError(ShuttleError):
    def __init__(
        self,
        tool_name: str,
        message: str,
        code: str = "TOOL_ERROR",
        cause: Exception | None = None,
    ) -> None:
        super().__init__(code, message, cause)
        self.tool_name = tool_name


class ToolNotFoundError(ToolError):
    def __init__(self, tool_name: str) -> None:
        super().__init__(
            tool_name, f'Tool "{tool_name}" not found in agent registry', "TOOL_NOT_FOUND"
        )


class ToolTimeoutError(ToolError):
    def __init__(self, tool_name: str, timeout: float) -> None:
        super().__init__(
            tool_name, f'Tool "{tool_name}" timed out after {timeout:g}s', "TOOL_TIMEOUT"
        )
        self.timeout = timeout


class ToolAbortedError(ToolError):
    def __init__(self, tool_name: str) -> None:
        super().__init__(tool_name, f'Tool "{tool_name}" execution was aborted', "TOOL_ABORTED")


class MemoryFault(ShuttleError):
    def __init__(self, operation: str, message: str, cause: Exception | None = None) -> None:
        super().__init__("MEMORY_ERROR", message, cause)
        self.operation = operation


class HookError(ShuttleError):
    def __init__(self, event: str, handler_index: int, cause: Exception) -> None:
        super().__init__(
            "HOOK_ERROR", f'Hook handler {handler_index} failed for event "{event}"', cause
        )
        self.event = event
        self.handler_index = handler_index


class TransportError(ShuttleError):
    """Model or span call failure. ``transient`` marks it as retryable."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        transient: bool = False,
        cause: Exception | None = None,
    ) -> None:
        super().__init__("TRANSPORT_ERROR", message, cause)
        self.status_code = status_code
        self.transient = transient


def error_message(err: BaseException | str | None) -> str:
    if err is None:
        return ""
    if isinstance(err, str):
        return err
    return str(err) or err.__class__.__name__


__all__ = [
    "ShuttleError",
    "ValidationError",
    "IterationLimitError",
    "ToolError",
    "ToolNotFoundError",
    "ToolTimeoutError",
    "ToolAbortedError",
    "MemoryFault",
    "HookError",
    "TransportError",
    "error_message",
]

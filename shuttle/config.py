"""Agent and client configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .types import ModelSpec

DEFAULT_MODEL = "gcp/gemini-flash-latest"
API_KEY_ENV = "OPPER_API_KEY"


@dataclass
class RetryConfig:
    max_retries: int = 3
    initial_delay: float = 1.0
    backoff_multiplier: float = 2.0
    max_delay: float = 10.0


@dataclass
class ClientConfig:
    api_key: str | None = None
    base_url: str | None = None
    retry: RetryConfig = field(default_factory=RetryConfig)

    def __post_init__(self) -> None:
        if self.api_key is None:
            self.api_key = os.environ.get(API_KEY_ENV)


@dataclass
class AgentConfig:
    """
    Loop behaviour of an agent.

    ``model`` may be a single identifier or an ordered fallback list.
    ``tool_timeout`` applies to tools that declare no timeout of their own.
    """

    max_iterations: int = 25
    model: ModelSpec = DEFAULT_MODEL
    enable_streaming: bool = False
    enable_memory: bool = False
    parallel_tool_execution: bool = False
    tool_timeout: float | None = None
    verbose: bool = False
    history_window: int = 3

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        if self.tool_timeout is not None and self.tool_timeout <= 0:
            raise ValueError("tool_timeout must be positive")


__all__ = ["API_KEY_ENV", "DEFAULT_MODEL", "AgentConfig", "ClientConfig", "RetryConfig"]

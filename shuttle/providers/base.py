"""Base model client with retry and exponential backoff."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any, Awaitable, Callable, TypeVar

from ..config import RetryConfig
from ..errors import TransportError
from ..types import CallRequest, CallResponse, Span, StreamChunk, Usage

T = TypeVar("T")

_RETRYABLE_PATTERNS = (
    "network",
    "timeout",
    "timed out",
    "econnreset",
    "enotfound",
    "econnrefused",
    "etimedout",
    "connection reset",
    "rate limit",
    "429",
    "500",
    "502",
    "503",
    "504",
)


def _retryable_status(status: Any) -> bool:
    return isinstance(status, int) and (status in (408, 429) or 500 <= status < 600)


def is_transient(err: BaseException) -> bool:
    """Network, timeout, rate-limit and 5xx faults are worth retrying; nothing else is."""
    if isinstance(err, TransportError):
        return err.transient or _retryable_status(err.status_code)
    if isinstance(err, (TimeoutError, ConnectionError)):
        return True
    if _retryable_status(getattr(err, "status_code", None)):
        return True
    message = str(err).lower()
    return any(pattern in message for pattern in _RETRYABLE_PATTERNS)


class BaseModelClient:
    """Abstract base with retry. Subclass and implement the ``_do_*`` methods."""

    def __init__(self, retry: RetryConfig | None = None, logger: logging.Logger | None = None) -> None:
        self._retry = retry or RetryConfig()
        self.logger = logger or logging.getLogger(__name__)

    async def call(self, request: CallRequest) -> CallResponse:
        return await self._with_retry(lambda: self._do_call(request), request.name)

    async def stream(self, request: CallRequest) -> AsyncIterator[StreamChunk]:
        """Stream chunks. A stream is only retried when it fails before its first chunk."""
        delay = self._retry.initial_delay
        for attempt in range(self._retry.max_retries + 1):
            started = False
            try:
                async for chunk in self._do_stream(request):
                    started = True
                    yield chunk
                return
            except Exception as e:
                if started or attempt == self._retry.max_retries or not is_transient(e):
                    raise
                self._log_retry(f"stream:{request.name}", e, attempt, delay)
                await asyncio.sleep(delay)
                delay = min(delay * self._retry.backoff_multiplier, self._retry.max_delay)

    async def create_span(
        self, name: str, input: Any = None, parent_span_id: str | None = None
    ) -> Span:
        return await self._with_retry(
            lambda: self._do_create_span(name, input, parent_span_id), f"create-span:{name}"
        )

    async def update_span(
        self,
        span_id: str,
        output: Any = None,
        *,
        error: str | None = None,
        start_time: float | None = None,
        end_time: float | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        await self._with_retry(
            lambda: self._do_update_span(
                span_id, output, error=error, start_time=start_time, end_time=end_time, meta=meta
            ),
            f"update-span:{span_id}",
        )

    async def fetch_usage(self, span_id: str) -> Usage | None:
        """Usage of a finished streamed call, when the backend can report it."""
        return None

    # -- Override these --

    async def _do_call(self, request: CallRequest) -> CallResponse:
        raise NotImplementedError

    async def _do_stream(self, request: CallRequest) -> AsyncIterator[StreamChunk]:
        raise NotImplementedError
        yield  # pragma: no cover

    async def _do_create_span(self, name: str, input: Any, parent_span_id: str | None) -> Span:
        raise NotImplementedError

    async def _do_update_span(
        self,
        span_id: str,
        output: Any,
        *,
        error: str | None,
        start_time: float | None,
        end_time: float | None,
        meta: dict[str, Any] | None,
    ) -> None:
        raise NotImplementedError

    # -- Internals --

    async def _with_retry(self, fn: Callable[[], Awaitable[T]], operation: str) -> T:
        delay = self._retry.initial_delay
        attempts = self._retry.max_retries + 1
        for attempt in range(attempts):
            try:
                return await fn()
            except Exception as e:
                if attempt == attempts - 1:
                    self.logger.error(
                        'Operation "%s" failed after %d attempts: %s', operation, attempts, e
                    )
                    raise
                if not is_transient(e):
                    raise
                self._log_retry(operation, e, attempt, delay)
                await asyncio.sleep(delay)
                delay = min(delay * self._retry.backoff_multiplier, self._retry.max_delay)
        raise AssertionError("unreachable")

    def _log_retry(self, operation: str, err: Exception, attempt: int, delay: float) -> None:
        self.logger.warning(
            'Operation "%s" failed (attempt %d/%d), retrying in %.2fs: %s',
            operation,
            attempt + 1,
            self._retry.max_retries + 1,
            delay,
            err,
        )

"""Opper platform client."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from collections.abc import AsyncIterator
from typing import Any

from ..config import ClientConfig
from ..errors import TransportError
from ..types import CallRequest, CallResponse, Cost, Span, StreamChunk, Usage
from .base import BaseModelClient, is_transient


def _read(record: Any, key: str) -> Any:
    if record is None:
        return None
    if isinstance(record, dict):
        return record.get(key)
    return getattr(record, key, None)


def _number(record: Any, key: str) -> float:
    value = _read(record, key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def _usage_from(response: Any) -> Usage:
    usage = _read(response, "usage")
    cost = _read(response, "cost")
    return Usage.single_request(
        input_tokens=int(_number(usage, "input_tokens")),
        output_tokens=int(_number(usage, "output_tokens")),
        cost=Cost(
            generation=float(_number(cost, "generation")),
            platform=float(_number(cost, "platform")),
            total=float(_number(cost, "total")),
        ),
    )


def _serialize(output: Any) -> str | None:
    if output is None:
        return None
    if isinstance(output, (dict, list)):
        return json.dumps(output, default=str)
    return str(output)


def _as_transport_error(err: Exception) -> TransportError:
    status = _read(err, "status_code")
    return TransportError(
        str(err),
        status_code=status if isinstance(status, int) else None,
        transient=is_transient(err),
        cause=err,
    )


class OpperClient(BaseModelClient):
    """ModelClient backed by the ``opperai`` SDK."""

    def __init__(self, config: ClientConfig | None = None, **kwargs: Any) -> None:
        config = config or ClientConfig()
        super().__init__(retry=config.retry, **kwargs)
        try:
            from opperai import Opper
        except ImportError:
            raise ImportError("pip install opperai") from None
        client_kwargs: dict[str, Any] = {"http_bearer": config.api_key or ""}
        if config.base_url:
            client_kwargs["server_url"] = config.base_url
        self._client = Opper(**client_kwargs)

    @property
    def client(self) -> Any:
        return self._client

    def _call_kwargs(self, request: CallRequest) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "name": request.name,
            "instructions": request.instructions,
            "input": request.input,
        }
        if request.input_schema:
            kwargs["input_schema"] = request.input_schema
        if request.output_schema:
            kwargs["output_schema"] = request.output_schema
        if request.model:
            kwargs["model"] = request.model if isinstance(request.model, str) else list(request.model)
        if request.parent_span_id:
            kwargs["parent_span_id"] = request.parent_span_id
        return kwargs

    async def _do_call(self, request: CallRequest) -> CallResponse:
        try:
            response = await self._client.call_async(**self._call_kwargs(request))
        except Exception as e:
            raise _as_transport_error(e) from e
        return CallResponse(
            span_id=str(_read(response, "span_id") or ""),
            parsed_output=_read(response, "json_payload"),
            text_message=_read(response, "message"),
            usage=_usage_from(response),
        )

    async def _do_stream(self, request: CallRequest) -> AsyncIterator[StreamChunk]:
        try:
            response = await self._client.stream_async(**self._call_kwargs(request))
        except Exception as e:
            raise _as_transport_error(e) from e
        events = _read(response, "result") or response
        async for event in events:
            data = _read(event, "data") or event
            yield StreamChunk(
                delta=_read(data, "delta"),
                path=_read(data, "json_path"),
                chunk_kind=_read(data, "chunk_type"),
                span_id=_read(data, "span_id"),
            )

    async def _do_create_span(self, name: str, input: Any, parent_span_id: str | None) -> Span:
        kwargs: dict[str, Any] = {"name": name}
        if input is not None:
            kwargs["input"] = _serialize(input)
        if parent_span_id:
            kwargs["parent_id"] = parent_span_id
        try:
            span = await self._client.spans.create_async(**kwargs)
        except Exception as e:
            raise _as_transport_error(e) from e
        return Span(id=str(_read(span, "id")), name=name, input=input)

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
        kwargs: dict[str, Any] = {"span_id": span_id}
        serialized = _serialize(output)
        if serialized is not None:
            kwargs["output"] = serialized
        if error:
            kwargs["error"] = error
        if start_time is not None:
            kwargs["start_time"] = datetime.fromtimestamp(start_time, tz=timezone.utc)
        if end_time is not None:
            kwargs["end_time"] = datetime.fromtimestamp(end_time, tz=timezone.utc)
        if meta:
            kwargs["meta"] = meta
        try:
            await self._client.spans.update_async(**kwargs)
        except Exception as e:
            raise _as_transport_error(e) from e

    async def fetch_usage(self, span_id: str) -> Usage | None:
        # Streamed calls report usage on the span's generation record, when the SDK exposes it.
        spans = getattr(self._client, "spans", None)
        getter = getattr(spans, "get_async", None)
        if getter is None:
            return None
        try:
            span = await getter(span_id=span_id)
        except Exception as e:
            self.logger.debug("Could not fetch usage for span %s: %s", span_id, e)
            return None
        if _read(span, "usage") is None and _read(span, "cost") is None:
            return None
        return _usage_from(span)


__all__ = ["OpperClient"]

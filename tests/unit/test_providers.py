"""Unit tests for model clients: retry policy and Opper response mapping."""

import logging
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from shuttle.config import ClientConfig, RetryConfig
from shuttle.errors import TransportError
from shuttle.providers import BaseModelClient, is_transient
from shuttle.types import CallRequest, CallResponse, Span, StreamChunk

FAST_RETRY = RetryConfig(max_retries=2, initial_delay=0.001, max_delay=0.002)


class ScriptedClient(BaseModelClient):
    """Raises the scripted errors in turn, then succeeds."""

    def __init__(self, errors=(), stream_plan=None, **kwargs):
        super().__init__(retry=FAST_RETRY, **kwargs)
        self.errors = list(errors)
        self.attempts = 0
        # One list per stream attempt; exceptions inside are raised at that position.
        self.stream_plan = list(stream_plan or [])

    async def _do_call(self, request):
        self.attempts += 1
        if self.errors:
            raise self.errors.pop(0)
        return CallResponse(span_id="ok", text_message="done")

    async def _do_stream(self, request):
        self.attempts += 1
        for item in self.stream_plan.pop(0):
            if isinstance(item, Exception):
                raise item
            yield StreamChunk(delta=item)

    async def _do_create_span(self, name, input, parent_span_id):
        self.attempts += 1
        if self.errors:
            raise self.errors.pop(0)
        return Span(id="s1", name=name, input=input)


def request(name="think"):
    return CallRequest(name=name, instructions="", input={})


class TestIsTransient:
    @pytest.mark.parametrize(
        "err",
        [
            TimeoutError(),
            ConnectionError("reset"),
            RuntimeError("Network unreachable"),
            RuntimeError("Rate limit exceeded"),
            RuntimeError("upstream returned 503"),
            TransportError("x", status_code=429),
            TransportError("x", transient=True),
        ],
    )
    def test_transient(self, err):
        assert is_transient(err)

    @pytest.mark.parametrize(
        "err",
        [
            ValueError("bad request"),
            TransportError("forbidden", status_code=403),
            KeyError("missing"),
        ],
    )
    def test_not_transient(self, err):
        assert not is_transient(err)

    def test_status_code_attribute(self):
        err = RuntimeError("opaque")
        err.status_code = 502
        assert is_transient(err)


class TestRetry:
    async def test_transient_faults_are_retried(self, caplog):
        client = ScriptedClient(errors=[TimeoutError("timed out"), ConnectionError("reset")])
        with caplog.at_level(logging.WARNING):
            response = await client.call(request())
        assert response.text_message == "done"
        assert client.attempts == 3
        assert "retrying" in caplog.text

    async def test_permanent_fault_fails_immediately(self):
        client = ScriptedClient(errors=[ValueError("bad request")])
        with pytest.raises(ValueError):
            await client.call(request())
        assert client.attempts == 1

    async def test_exhausted_retries_raise_last_error(self, caplog):
        client = ScriptedClient(errors=[TimeoutError("a"), TimeoutError("b"), TimeoutError("c")])
        with caplog.at_level(logging.ERROR), pytest.raises(TimeoutError, match="c"):
            await client.call(request())
        assert client.attempts == 3
        assert "failed after 3 attempts" in caplog.text

    async def test_span_calls_retry(self):
        client = ScriptedClient(errors=[TransportError("down", status_code=500)])
        span = await client.create_span("tool_search", {"q": 1})
        assert span.id == "s1"
        assert client.attempts == 2

    async def test_backoff_capped(self, monkeypatch):
        delays = []

        async def fake_sleep(delay):
            delays.append(delay)

        monkeypatch.setattr("shuttle.providers.base.asyncio.sleep", fake_sleep)
        client = ScriptedClient(errors=[TimeoutError(), TimeoutError()])
        client._retry = RetryConfig(max_retries=3, initial_delay=1.0, backoff_multiplier=4.0, max_delay=3.0)
        await client.call(request())
        assert delays == [1.0, 3.0]

    async def test_fetch_usage_defaults_to_none(self):
        assert await ScriptedClient().fetch_usage("span") is None


class TestStreamRetry:
    async def test_retry_before_first_chunk(self):
        client = ScriptedClient(stream_plan=[[TimeoutError()], ["a", "b"]])
        deltas = [chunk.delta async for chunk in client.stream(request())]
        assert deltas == ["a", "b"]
        assert client.attempts == 2

    async def test_no_retry_after_first_chunk(self):
        client = ScriptedClient(stream_plan=[["a", TimeoutError("mid-stream")], ["b"]])
        seen = []
        with pytest.raises(TimeoutError):
            async for chunk in client.stream(request()):
                seen.append(chunk.delta)
        assert seen == ["a"]
        assert client.attempts == 1


class FakeSpans:
    def __init__(self):
        self.created = []
        self.updated = []

    async def create_async(self, **kwargs):
        self.created.append(kwargs)
        return SimpleNamespace(id="opper-span")

    async def update_async(self, **kwargs):
        self.updated.append(kwargs)

    async def get_async(self, span_id):
        return {"usage": {"input_tokens": 7, "output_tokens": 3}, "cost": {"total": 0.5}}


class FakeOpper:
    def __init__(self, response=None, events=(), error=None):
        self.response = response
        self.events = list(events)
        self.error = error
        self.kwargs = None
        self.spans = FakeSpans()

    async def call_async(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        return self.response

    async def stream_async(self, **kwargs):
        self.kwargs = kwargs

        async def events():
            for event in self.events:
                yield event

        return SimpleNamespace(result=events())


@pytest.fixture
def opper_client():
    pytest.importorskip("opperai")
    from shuttle.providers import OpperClient

    def build(fake):
        client = OpperClient(ClientConfig(api_key="test-key", retry=RetryConfig(max_retries=0)))
        client._client = fake
        return client

    return build


class TestOpperClient:
    async def test_call_maps_response(self, opper_client):
        fake = FakeOpper(
            response=SimpleNamespace(
                span_id="sp-1",
                json_payload={"reasoning": "ok"},
                message=None,
                usage={"input_tokens": 30, "output_tokens": 15},
                cost={"generation": 0.1, "platform": 0.01, "total": 0.11},
            )
        )
        client = opper_client(fake)
        response = await client.call(
            CallRequest(
                name="think",
                instructions="Decide",
                input={"goal": "x"},
                model=["a", "b"],
                output_schema={"type": "object"},
                parent_span_id="parent",
            )
        )
        assert fake.kwargs["model"] == ["a", "b"]
        assert fake.kwargs["parent_span_id"] == "parent"
        assert "input_schema" not in fake.kwargs
        assert response.span_id == "sp-1"
        assert response.parsed_output == {"reasoning": "ok"}
        assert response.usage.requests == 1
        assert response.usage.total_tokens == 45
        assert response.usage.cost.total == pytest.approx(0.11)

    async def test_missing_usage_counts_as_one_request(self, opper_client):
        client = opper_client(FakeOpper(response={"span_id": "s", "message": "hi"}))
        response = await client.call(request())
        assert response.text_message == "hi"
        assert response.usage.requests == 1
        assert response.usage.total_tokens == 0

    async def test_sdk_error_becomes_transport_error(self, opper_client):
        err = RuntimeError("service unavailable")
        err.status_code = 503
        client = opper_client(FakeOpper(error=err))
        with pytest.raises(TransportError) as exc:
            await client.call(request())
        assert exc.value.status_code == 503
        assert exc.value.transient
        assert exc.value.cause is err

    async def test_stream_maps_events(self, opper_client):
        events = [
            SimpleNamespace(data=SimpleNamespace(delta="Hel", json_path="answer", chunk_type="json", span_id="sp")),
            SimpleNamespace(data={"delta": "lo", "json_path": "answer"}),
        ]
        client = opper_client(FakeOpper(events=events))
        chunks = [chunk async for chunk in client.stream(request())]
        assert [c.delta for c in chunks] == ["Hel", "lo"]
        assert chunks[0].path == "answer"
        assert chunks[0].span_id == "sp"

    async def test_spans(self, opper_client):
        fake = FakeOpper()
        client = opper_client(fake)
        span = await client.create_span("agent_execution", {"goal": 1}, parent_span_id="root")
        await client.update_span(span.id, {"answer": 2}, error="boom")
        assert span.id == "opper-span"
        assert fake.spans.created == [
            {"name": "agent_execution", "input": '{"goal": 1}', "parent_id": "root"}
        ]
        assert fake.spans.updated == [
            {"span_id": "opper-span", "output": '{"answer": 2}', "error": "boom"}
        ]

    async def test_span_times_are_forwarded(self, opper_client):
        fake = FakeOpper()
        client = opper_client(fake)
        await client.update_span("sp", start_time=0.0, end_time=1.5, meta={"k": "v"})
        [update] = fake.spans.updated
        assert update["start_time"] == datetime(1970, 1, 1, tzinfo=timezone.utc)
        assert update["end_time"] == datetime(1970, 1, 1, 0, 0, 1, 500000, tzinfo=timezone.utc)
        assert update["meta"] == {"k": "v"}
        assert "output" not in update

    async def test_fetch_usage(self, opper_client):
        usage = await opper_client(FakeOpper()).fetch_usage("sp")
        assert usage.total_tokens == 10
        assert usage.cost.total == 0.5

"""Tests for ResilientApiClient — retries, backoff, cache, offline, timeout, cancel."""

from __future__ import annotations

import asyncio
import json
import random

import httpx
import pytest
from pydantic import ValidationError

from lawdesk.core.cancellation import CancellationToken
from lawdesk.core.errors import ApiError, ApiErrorKind, RequestCancelled
from lawdesk.core.models import ClientOptions, RequestDescriptor
from lawdesk.core.resilient import ResilientApiClient
from lawdesk.core.streaming import StreamingClient

from tests.helpers import BASE_URL, json_response


# -- helpers ----------------------------------------------------------------

class Backend:
    """Scripted MockTransport handler; each entry is a response or an exception."""

    def __init__(self, *script):
        self.script = list(script)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        step = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(step, Exception):
            raise step
        return step

    @property
    def calls(self) -> int:
        return len(self.requests)


def _refused() -> httpx.ConnectError:
    return httpx.ConnectError("connection refused")


# -- tests ------------------------------------------------------------------

class TestSuccessAndCache:
    async def test_get_returns_json_and_caches(self, make_api):
        backend = Backend(json_response([{"id": "c-1"}]))
        api = make_api(backend)

        first = await api.get("/api/clients")
        second = await api.get("/api/clients")

        assert first == second == [{"id": "c-1"}]
        assert backend.calls == 1

    async def test_stale_entry_is_refetched(self, make_api, clock):
        backend = Backend(json_response({"n": 1}), json_response({"n": 2}))
        api = make_api(backend, cache_ttl=60)

        assert await api.get("/api/x") == {"n": 1}
        clock.advance(61)
        assert await api.get("/api/x") == {"n": 2}
        assert backend.calls == 2

    async def test_entry_expires_at_exactly_its_ttl(self, make_api, clock):
        backend = Backend(json_response({"n": 1}), json_response({"n": 2}))
        api = make_api(backend, cache_ttl=60)

        assert await api.get("/api/x") == {"n": 1}
        clock.advance(59.9)
        assert await api.get("/api/x") == {"n": 1}
        assert backend.calls == 1

        clock.advance(0.1)
        assert await api.get("/api/x") == {"n": 2}
        assert backend.calls == 2

    async def test_post_is_never_cached(self, make_api, context):
        backend = Backend(json_response({"ok": True}))
        api = make_api(backend)

        await api.post("/api/x", {"a": 1})
        await api.post("/api/x", {"a": 1})

        assert backend.calls == 2
        assert len(context.cache) == 0

    async def test_call_level_cache_off(self, make_api):
        backend = Backend(json_response({"ok": True}))
        api = make_api(backend)

        await api.get("/api/x", cache=False)
        await api.get("/api/x", cache=False)
        assert backend.calls == 2

    async def test_params_are_part_of_the_key(self, make_api):
        backend = Backend(json_response({"ok": True}))
        api = make_api(backend)

        await api.get("/api/documents", params={"client_id": "a"})
        await api.get("/api/documents", params={"client_id": "b"})

        assert backend.calls == 2
        assert backend.requests[0].url.params["client_id"] == "a"

    async def test_text_response(self, make_api):
        api = make_api(Backend(httpx.Response(200, text="pong")))
        assert await api.get("/health") == "pong"

    async def test_clear_cache(self, make_api):
        backend = Backend(json_response({"ok": True}))
        api = make_api(backend)
        await api.get("/api/x")
        api.clear_cache()
        await api.get("/api/x")
        assert backend.calls == 2


class TestRequestShape:
    async def test_header_merge_call_wins(self, make_api):
        backend = Backend(json_response({}))
        api = make_api(backend, headers={"X-Tenant": "firm-1", "Accept": "text/plain"})

        await api.get("/api/x", headers={"X-Tenant": "firm-2"})

        sent = backend.requests[0].headers
        assert sent["X-Tenant"] == "firm-2"
        assert sent["Accept"] == "text/plain"
        assert sent["Content-Type"] == "application/json"

    async def test_auth_token(self, make_api):
        backend = Backend(json_response({}))
        api = make_api(backend)
        api.set_auth_token("abc")

        await api.get("/api/x")
        assert backend.requests[0].headers["Authorization"] == "Bearer abc"

    async def test_json_body_and_absolute_url(self, make_api):
        backend = Backend(json_response({}))
        api = make_api(backend)

        await api.post("http://elsewhere/api/y", {"query": "hi"})

        request = backend.requests[0]
        assert str(request.url) == "http://elsewhere/api/y"
        assert json.loads(request.content) == {"query": "hi"}

    async def test_redirect_is_followed(self, make_api):
        backend = Backend(
            httpx.Response(307, headers={"Location": f"{BASE_URL}/api/clients/"}),
            json_response([{"id": "c-1"}]),
        )
        api = make_api(backend)

        assert await api.get("/api/clients") == [{"id": "c-1"}]
        assert [r.url.path for r in backend.requests] == ["/api/clients", "/api/clients/"]

    async def test_default_transports_follow_redirects(self, context):
        api = ResilientApiClient(ClientOptions(base_url=BASE_URL), context=context)
        streaming = StreamingClient(ClientOptions(base_url=BASE_URL), context=context)
        try:
            assert api._http.follow_redirects is True
            assert streaming._http.follow_redirects is True
        finally:
            await api.aclose()
            await streaming.aclose()


class TestRetry:
    async def test_retry_bound_and_exact_backoff(self, make_api, sleeps):
        backend = Backend(_refused())
        api = make_api(backend, retries=3, retry_delay=1.0)

        with pytest.raises(ApiError) as exc_info:
            await api.get("/api/x")

        assert exc_info.value.kind == ApiErrorKind.NETWORK
        assert backend.calls == 4
        assert sleeps.delays == [1.0, 1.5, 2.25]

    async def test_zero_retries_means_one_attempt(self, make_api, sleeps):
        backend = Backend(_refused())
        api = make_api(backend, retries=0)

        with pytest.raises(ApiError):
            await api.get("/api/x")
        assert backend.calls == 1
        assert sleeps.delays == []

    @pytest.mark.parametrize("override", [
        {"retries": -1},
        {"retry_delay": -0.5},
        {"cache_ttl": -1},
        {"timeout": -2},
    ])
    async def test_negative_call_overrides_are_rejected(self, make_api, override):
        backend = Backend(json_response({}))
        api = make_api(backend)

        with pytest.raises(ValidationError):
            await api.get("/api/x", **override)
        assert backend.calls == 0

    async def test_descriptor_without_attempts_raises_api_error(self, make_api):
        backend = Backend(json_response({}))
        api = make_api(backend)
        descriptor = RequestDescriptor.model_construct(url=f"{BASE_URL}/api/x", retries=-1)

        with pytest.raises(ApiError) as exc_info:
            await api.send(descriptor)
        assert exc_info.value.kind == ApiErrorKind.UNKNOWN
        assert backend.calls == 0

    async def test_recovers_after_transient_failures(self, make_api, sleeps):
        backend = Backend(_refused(), _refused(), json_response({"ok": True}))
        api = make_api(backend, retries=3)

        assert await api.get("/api/x") == {"ok": True}
        assert backend.calls == 3
        assert len(sleeps.delays) == 2

    async def test_server_error_is_not_retried(self, make_api, sleeps):
        backend = Backend(json_response({"detail": "database down"}, status=500))
        api = make_api(backend, retries=3)

        with pytest.raises(ApiError) as exc_info:
            await api.get("/api/x")

        err = exc_info.value
        assert err.kind == ApiErrorKind.SERVER
        assert err.status == 500
        assert err.message == "database down"
        assert backend.calls == 1
        assert sleeps.delays == []

    async def test_auth_error_is_not_retried(self, make_api):
        backend = Backend(json_response({"message": "Token expired"}, status=401))
        api = make_api(backend, retries=3)

        with pytest.raises(ApiError) as exc_info:
            await api.get("/api/x")
        assert exc_info.value.kind == ApiErrorKind.AUTH
        assert exc_info.value.user_message == "Token expired"
        assert backend.calls == 1

    async def test_error_without_body_message(self, make_api):
        api = make_api(Backend(httpx.Response(404, text="not here")), retries=0)

        with pytest.raises(ApiError, match="HTTP error 404"):
            await api.get("/api/x")

    async def test_unknown_failure_retried_when_network_looks_down(self, make_api, context):
        for _ in range(3):
            context.connectivity.record_failure()
        backend = Backend(RuntimeError("socket exploded"))
        api = make_api(backend, retries=2)

        with pytest.raises(ApiError) as exc_info:
            await api.get("/api/x")
        assert exc_info.value.kind == ApiErrorKind.NETWORK
        assert backend.calls == 3

    async def test_success_resets_connectivity(self, make_api, context):
        context.connectivity.record_failure()
        context.connectivity.record_failure()
        backend = Backend(_refused(), json_response({}))
        api = make_api(backend, retries=1)

        await api.get("/api/x")
        assert not context.connectivity.is_likely_network_issue()

    def test_jitter_is_bounded(self):
        api = ResilientApiClient(ClientOptions(retry_jitter=1.0), rng=random.Random(7))
        for attempt in range(4):
            base = 2.0 * 1.5 ** attempt
            delay = api.retry_delay(attempt, 2.0)
            assert base <= delay <= base + 1.0


class TestStaleAndOffline:
    async def test_stale_served_after_total_failure(self, make_api, clock, sleeps):
        backend = Backend(json_response({"v": "old"}), _refused())
        api = make_api(backend, retries=2, cache_ttl=60)

        await api.get("/api/x")
        clock.advance(120)
        assert await api.get("/api/x") == {"v": "old"}
        assert backend.calls == 4

    async def test_offline_serves_cache_regardless_of_age(self, make_api, context, clock):
        backend = Backend(json_response({"v": 1}))
        api = make_api(backend, cache_ttl=1)

        await api.get("/api/x")
        clock.advance(3600)
        context.connectivity.set_online(False)

        assert await api.get("/api/x") == {"v": 1}
        assert backend.calls == 1

    async def test_offline_without_cache_fails_fast(self, make_api, context, sleeps):
        backend = Backend(json_response({}))
        api = make_api(backend)
        context.connectivity.set_online(False)

        with pytest.raises(ApiError, match="Network is offline") as exc_info:
            await api.post("/api/x", {"a": 1})

        assert exc_info.value.kind == ApiErrorKind.NETWORK
        assert backend.calls == 0
        assert sleeps.delays == []


class TestTimeoutAndCancel:
    async def test_attempt_timeout(self, make_api, sleeps):
        async def slow(request):
            await asyncio.sleep(5)
            return json_response({})

        api = make_api(slow, timeout=0.05, retries=1)

        with pytest.raises(ApiError) as exc_info:
            await api.get("/api/x")
        assert exc_info.value.kind == ApiErrorKind.TIMEOUT
        assert sleeps.delays == [1.0]

    async def test_cancel_in_flight(self, make_api):
        started = asyncio.Event()
        calls = []

        async def hang(request):
            calls.append(request)
            started.set()
            await asyncio.sleep(5)
            return json_response({})

        api = make_api(hang, retries=3)
        token = CancellationToken()
        task = asyncio.create_task(api.get("/api/x", cancel_token=token))
        await started.wait()
        token.cancel()

        with pytest.raises(RequestCancelled):
            await task
        assert len(calls) == 1

    async def test_cancel_during_backoff(self, context):
        backend = Backend(_refused())
        http = httpx.AsyncClient(transport=httpx.MockTransport(backend))
        api = ResilientApiClient(
            ClientOptions(base_url=BASE_URL, retries=3, retry_delay=10.0, retry_jitter=0.0),
            context=context,
            http_client=http,
        )
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.05, token.cancel)

        with pytest.raises(RequestCancelled):
            await api.get("/api/x", cancel_token=token)
        assert backend.calls == 1

    async def test_cancelled_before_start(self, make_api):
        backend = Backend(json_response({}))
        api = make_api(backend)
        token = CancellationToken()
        token.cancel()

        with pytest.raises(RequestCancelled):
            await api.get("/api/x", cancel_token=token)
        assert backend.calls == 0


class TestTracing:
    async def test_request_writes_jsonl_trace(self, make_api, context, trace_collector, tmp_path):
        context.trace = trace_collector
        backend = Backend(_refused(), json_response({"ok": True}))
        api = make_api(backend, retries=1)

        await api.get("/api/x")

        files = list((tmp_path / "traces").glob("*.jsonl"))
        assert len(files) == 1
        events = [json.loads(line)["event"] for line in files[0].read_text().splitlines()]
        assert events == [
            "request_start", "attempt_failed", "retry_scheduled", "attempt", "request_done",
        ]

    async def test_trace_lines_carry_request_and_order(self, make_api, context, trace_collector):
        context.trace = trace_collector
        api = make_api(Backend(httpx.Response(404, json={"detail": "No such client"})))

        with pytest.raises(ApiError):
            await api.get("/api/clients/zzz")

        (path,) = trace_collector.trace_dir.glob("*.jsonl")
        lines = trace_collector.read(path.stem)
        assert [line["seq"] for line in lines] == list(range(len(lines)))
        assert {line["request_id"] for line in lines} == {path.stem}
        assert {line["method"] for line in lines} == {"GET"}
        assert {line["url"] for line in lines} == {f"{BASE_URL}/api/clients/zzz"}
        assert lines[0]["elapsed_ms"] == 0
        assert lines[-1]["event"] == "request_done"
        assert lines[-1]["outcome"] == "error"

    async def test_cancelled_outcome_is_traced(self, make_api, context, trace_collector):
        context.trace = trace_collector
        api = make_api(Backend(json_response({})))
        token = CancellationToken()
        token.cancel()

        with pytest.raises(RequestCancelled):
            await api.get("/api/x", cancel_token=token)

        (path,) = trace_collector.trace_dir.glob("*.jsonl")
        assert trace_collector.read(path.stem)[-1]["outcome"] == "cancelled"
        assert trace_collector.read("missing") == []

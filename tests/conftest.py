"""Shared fixtures for lawdesk tests."""

from __future__ import annotations

from typing import Callable

import httpx
import pytest

from lawdesk.cache.in_memory import InMemoryResponseCache
from lawdesk.context import RequestContext
from lawdesk.core.connectivity import ConnectivityMonitor
from lawdesk.core.models import ClientOptions
from lawdesk.core.resilient import ResilientApiClient
from lawdesk.storage.in_memory import InMemoryKeyValueStore
from lawdesk.tracing.jsonl_tracer import JSONLTraceCollector

from tests.helpers import BASE_URL, FakeClock, RecordingNotifier, SleepRecorder


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def markers():
    return InMemoryKeyValueStore()


@pytest.fixture
def context(clock, markers):
    return RequestContext(
        cache=InMemoryResponseCache(clock=clock),
        markers=markers,
        connectivity=ConnectivityMonitor(clock=clock),
    )


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def trace_collector(tmp_path):
    return JSONLTraceCollector(trace_dir=str(tmp_path / "traces"))


@pytest.fixture
def make_api(context, sleeps) -> Callable[..., ResilientApiClient]:
    """Build a client over ``httpx.MockTransport(handler)``.

    Jitter defaults to zero so backoff delays are exact.
    """

    def _make(handler, **option_overrides) -> ResilientApiClient:
        options = ClientOptions(base_url=BASE_URL, retry_jitter=0.0, **option_overrides)
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
        return ResilientApiClient(options, context=context, http_client=http, sleep=sleeps)

    return _make

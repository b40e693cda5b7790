"""Tests for environment-driven factories and the CLI adapter."""

from __future__ import annotations

import json

import httpx
import pytest

import lawdesk
from lawdesk.adapters.cli import main as cli
from lawdesk.core.models import ClientOptions
from lawdesk.core.streaming import StreamingClient
from lawdesk.storage.in_memory import InMemoryKeyValueStore
from lawdesk.storage.json_file import JSONFileKeyValueStore
from lawdesk.tracing.interface import NullTraceCollector
from lawdesk.tracing.jsonl_tracer import JSONLTraceCollector

from tests.helpers import BASE_URL, sse_body

ENV_VARS = (
    "LAWDESK_API_BASE_URL",
    "LAWDESK_AUTH_TOKEN",
    "LAWDESK_TIMEOUT",
    "LAWDESK_RETRIES",
    "LAWDESK_RETRY_DELAY",
    "LAWDESK_CACHE",
    "LAWDESK_CACHE_TTL",
    "LAWDESK_MODEL",
    "LAWDESK_MARKER_FILE",
    "LAWDESK_TRACE_DIR",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestLoadOptions:
    def test_defaults(self):
        options = lawdesk.load_options()
        assert options == ClientOptions()

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("LAWDESK_API_BASE_URL", "https://api.firm.example")
        monkeypatch.setenv("LAWDESK_AUTH_TOKEN", "secret")
        monkeypatch.setenv("LAWDESK_TIMEOUT", "12.5")
        monkeypatch.setenv("LAWDESK_RETRIES", "1")
        monkeypatch.setenv("LAWDESK_RETRY_DELAY", "0.25")
        monkeypatch.setenv("LAWDESK_CACHE", "0")
        monkeypatch.setenv("LAWDESK_CACHE_TTL", "30")

        options = lawdesk.load_options()

        assert options.base_url == "https://api.firm.example"
        assert options.headers == {"Authorization": "Bearer secret"}
        assert options.timeout == 12.5
        assert options.retries == 1
        assert options.retry_delay == 0.25
        assert options.cache is False
        assert options.cache_ttl == 30.0

    def test_timeout_off(self, monkeypatch):
        monkeypatch.setenv("LAWDESK_TIMEOUT", "off")
        assert lawdesk.load_options().timeout is None

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("LAWDESK_RETRIES", "5")
        assert lawdesk.load_options(retries=0).retries == 0


class TestFactories:
    def test_default_context_is_in_memory(self):
        context = lawdesk.create_context()
        assert isinstance(context.markers, InMemoryKeyValueStore)
        assert isinstance(context.trace, NullTraceCollector)

    def test_context_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LAWDESK_MARKER_FILE", str(tmp_path / "markers.json"))
        monkeypatch.setenv("LAWDESK_TRACE_DIR", str(tmp_path / "traces"))

        context = lawdesk.create_context()

        assert isinstance(context.markers, JSONFileKeyValueStore)
        assert isinstance(context.trace, JSONLTraceCollector)

    async def test_quick_actions_share_the_client_store(self, monkeypatch):
        monkeypatch.setenv("LAWDESK_MODEL", "gpt-4o")
        api = lawdesk.create_api_client()
        orchestrator = lawdesk.create_quick_actions("c-1", lambda: [], api=api)
        assert orchestrator.model == "gpt-4o"
        api.context.markers.set("QUICK_ACTION_IN_PROGRESS", "true")
        api.context.markers.set("QUICK_ACTION_TIMESTAMP", "not-a-number")
        # unparseable timestamp counts as abandoned
        assert orchestrator.action_in_progress() is None
        await api.aclose()


class TestCli:
    async def test_query_prints_json_lines(self, monkeypatch, capsys):
        def handler(request):
            return httpx.Response(
                200,
                headers={"content-type": "text/event-stream"},
                content=sse_body({"content": "Hi"}, {"content": "!", "done": True}),
            )

        def fake_client():
            http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
            return StreamingClient(ClientOptions(base_url=BASE_URL), http_client=http)

        monkeypatch.setattr(cli, "create_streaming_client", fake_client)

        await cli.run_query(lawdesk.AIQueryRequest(query="hello", client_id="cli"))

        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        assert [line["content"] for line in lines] == ["Hi", "!"]
        assert lines[-1]["done"] is True

    def test_query_text_from_argv(self):
        request = cli._read_query(["what", "is", "due?"])
        assert request.query == "what is due?"
        assert request.client_id == "cli"

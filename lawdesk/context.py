"""RequestContext — the session-wide shared state, passed explicitly."""

from __future__ import annotations

from dataclasses import dataclass, field

from lawdesk.cache.in_memory import InMemoryResponseCache
from lawdesk.cache.interface import ResponseCache
from lawdesk.core.connectivity import ConnectivityMonitor
from lawdesk.storage.in_memory import InMemoryKeyValueStore
from lawdesk.storage.interface import KeyValueStore
from lawdesk.tracing.interface import NullTraceCollector, TraceCollector


@dataclass
class RequestContext:
    """Everything calls in one session share.

    One instance per session (or per test). The request engine reads and
    writes ``cache``; the quick-action orchestrator keeps its cross-reload
    markers in ``markers``.
    """

    cache: ResponseCache = field(default_factory=InMemoryResponseCache)
    markers: KeyValueStore = field(default_factory=InMemoryKeyValueStore)
    connectivity: ConnectivityMonitor = field(default_factory=ConnectivityMonitor)
    trace: TraceCollector = field(default_factory=NullTraceCollector)

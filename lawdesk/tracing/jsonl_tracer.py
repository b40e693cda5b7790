"""Per-request JSONL traces of the request engine."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from lawdesk.tracing.interface import TraceCollector


@dataclass
class _RequestTrace:
    started: float
    events: list[dict[str, Any]] = field(default_factory=list)
    request: dict[str, Any] = field(default_factory=dict)


class JSONLTraceCollector(TraceCollector):
    """Writes one ``{trace_dir}/{request_id}.jsonl`` file per logical call.

    Events are buffered until the engine flushes the call. Every line carries
    the call's method and URL (taken from its ``request_start`` event), a
    sequence number, and the milliseconds elapsed since the call started, so
    a single file reads as the full attempt/retry/cache story of one request.
    """

    def __init__(self, trace_dir: str = "./traces") -> None:
        self._dir = Path(trace_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._buffers: dict[str, _RequestTrace] = {}

    @property
    def trace_dir(self) -> Path:
        return self._dir

    async def emit(self, trace_id: str, event_type: str, data: dict[str, Any]) -> None:
        now = time.time()
        trace = self._buffers.setdefault(trace_id, _RequestTrace(started=now))
        if event_type == "request_start":
            trace.request = {k: data[k] for k in ("method", "url") if k in data}
        trace.events.append({
            "ts": now,
            "elapsed_ms": round((now - trace.started) * 1000, 2),
            "event": event_type,
            **data,
        })

    async def flush(self, trace_id: str) -> None:
        trace = self._buffers.pop(trace_id, None)
        if trace is None or not trace.events:
            return
        path = self._dir / f"{trace_id}.jsonl"
        with open(path, "a") as f:
            for seq, event in enumerate(trace.events):
                entry = {"request_id": trace_id, "seq": seq, **trace.request, **event}
                f.write(json.dumps(entry, default=str) + "\n")

    def read(self, request_id: str) -> list[dict[str, Any]]:
        """Load the flushed events of one request, oldest first."""
        path = self._dir / f"{request_id}.jsonl"
        if not path.exists():
            return []
        return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]

"""Structured audit logging.

Exactly one event is written per operation attempt. Events never contain the
GitHub token or tool argument values. A qualified success also records which
optional setup steps failed, so retries can be traced from the log alone.
"""

from __future__ import annotations

import json
import sys
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path


def new_correlation_id() -> str:
    """Generate a random correlation id for traceability."""
    return uuid.uuid4().hex


def _now_rfc3339() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class AuditEvent:
    """A single audit event."""

    timestamp: str
    correlation_id: str
    operation: str
    target: str
    outcome: str
    code: str | None
    duration_ms: int | None
    failed_steps: tuple[str, ...] = ()


class AuditLogger:
    """Writes audit events as JSONL to stderr and optionally to a file."""

    def __init__(self, *, sink_path: Path | None) -> None:
        self._sink_path = sink_path

    def write_event(self, event: AuditEvent) -> None:
        """Write an audit event to stderr and, when configured, append it to the sink file.

        Sink I/O failures are reported on stderr and never fail the tool call.
        """
        payload: dict[str, object] = {
            "timestamp": event.timestamp,
            "correlation_id": event.correlation_id,
            "operation": event.operation,
            "target": event.target,
            "outcome": event.outcome,
        }
        if event.code is not None:
            payload["code"] = event.code
        if event.duration_ms is not None:
            payload["duration_ms"] = event.duration_ms
        if event.failed_steps:
            payload["failed_steps"] = list(event.failed_steps)

        line = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        print(line, file=sys.stderr)
        if self._sink_path is not None:
            try:
                self._sink_path.parent.mkdir(parents=True, exist_ok=True)
                with self._sink_path.open("a", encoding="utf-8") as f:
                    f.write(line + "\n")
            except OSError as exc:
                print(f"audit sink write failed: {exc.strerror}", file=sys.stderr)

    def measure_start(self) -> float:
        """Return a monotonic start timestamp for duration measurement."""
        return time.monotonic()

    def measure_duration_ms(self, start: float) -> int:
        """Convert a monotonic start timestamp into elapsed milliseconds."""
        return int((time.monotonic() - start) * 1000)


def build_event(
    *,
    correlation_id: str,
    operation: str,
    target: str,
    outcome: str,
    code: str | None = None,
    duration_ms: int | None = None,
    failed_steps: tuple[str, ...] = (),
) -> AuditEvent:
    """Construct an audit event."""
    return AuditEvent(
        timestamp=_now_rfc3339(),
        correlation_id=correlation_id,
        operation=operation,
        target=target,
        outcome=outcome,
        code=code,
        duration_ms=duration_ms,
        failed_steps=failed_steps,
    )

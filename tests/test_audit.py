"""Audit logger tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from github_cli_mcp.audit import AuditLogger, build_event, new_correlation_id


def test_audit_event_written_to_stderr_and_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    sink = tmp_path / "logs" / "audit.jsonl"
    logger = AuditLogger(sink_path=sink)

    logger.write_event(
        build_event(
            correlation_id="cid",
            operation="create_workflow",
            target="octo/repo",
            outcome="succeeded",
            duration_ms=12,
        )
    )

    line = capsys.readouterr().err.strip()
    payload = json.loads(line)
    assert payload["operation"] == "create_workflow"
    assert payload["outcome"] == "succeeded"
    assert payload["duration_ms"] == 12
    assert "code" not in payload
    assert payload["timestamp"].endswith("Z")
    assert sink.read_text(encoding="utf-8").strip() == line


def test_audit_sink_failure_does_not_raise(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    logger = AuditLogger(sink_path=blocker / "audit.jsonl")

    logger.write_event(build_event(correlation_id="cid", operation="x", target="<none>", outcome="failed", code="InternalError"))

    assert "audit sink write failed" in capsys.readouterr().err


def test_correlation_ids_are_random_hex() -> None:
    a, b = new_correlation_id(), new_correlation_id()
    assert a != b
    assert len(a) == 32
    int(a, 16)


def test_partial_event_lists_failed_steps(capsys: pytest.CaptureFixture[str]) -> None:
    logger = AuditLogger(sink_path=None)

    logger.write_event(
        build_event(
            correlation_id="cid",
            operation="setup_repository",
            target="octo/demo",
            outcome="partial",
            code="PartialOrchestrationFailure",
            failed_steps=("add_license",),
        )
    )
    logger.write_event(build_event(correlation_id="cid2", operation="setup_repository", target="octo/demo", outcome="succeeded"))

    first, second = (json.loads(line) for line in capsys.readouterr().err.strip().splitlines())
    assert first["failed_steps"] == ["add_license"]
    assert "failed_steps" not in second

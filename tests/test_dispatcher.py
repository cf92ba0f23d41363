"""Dispatcher tests: error normalization, credential screening, audit events."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

import pytest
from github_cli_mcp.audit import AuditEvent
from github_cli_mcp.catalog import OperationDescriptor
from github_cli_mcp.config import build_config
from github_cli_mcp.errors import SafeError
from github_cli_mcp.runtime import Runtime, StepLedger, TextBlock, ToolOutput
from github_cli_mcp.tools import Dispatcher

_SCHEMA = {
    "type": "object",
    "properties": {"owner": {"type": "string"}, "repo": {"type": "string"}, "note": {"type": "string"}},
    "additionalProperties": False,
}


@dataclass
class DummyAudit:
    events: list[AuditEvent] = field(default_factory=list)

    def write_event(self, event: AuditEvent) -> None:
        self.events.append(event)

    def measure_start(self) -> float:
        return time.monotonic()

    def measure_duration_ms(self, start: float) -> int:
        return int((time.monotonic() - start) * 1000)


def _dispatcher(handler) -> tuple[Dispatcher, DummyAudit]:
    audit = DummyAudit()
    runtime = Runtime(
        config=build_config({"token": "tok"}),
        audit=audit,  # type: ignore[arg-type]
        github=None,  # type: ignore[arg-type]
        runner=None,  # type: ignore[arg-type]
    )
    descriptor = OperationDescriptor(name="echo_target", description="Echo target", input_schema=_SCHEMA, handler=handler)
    return Dispatcher(runtime, catalog=(descriptor,)), audit


async def _ok_handler(_runtime: Runtime, _arguments: dict[str, Any]) -> ToolOutput:
    return ToolOutput(blocks=(TextBlock("result", "done"),))


@pytest.mark.asyncio
async def test_success_envelope_and_audit_event() -> None:
    dispatcher, audit = _dispatcher(_ok_handler)

    out = await dispatcher.dispatch("echo_target", {"owner": "octo", "repo": "repo"})

    assert out["ok"] is True
    assert out["operation"] == "echo_target"
    assert out["blocks"] == [{"label": "result", "text": "done"}]
    assert len(audit.events) == 1
    event = audit.events[0]
    assert event.outcome == "succeeded"
    assert event.target == "octo/repo"
    assert event.correlation_id == out["correlation_id"]


@pytest.mark.asyncio
async def test_correlation_ids_are_unique() -> None:
    dispatcher, _ = _dispatcher(_ok_handler)

    first = await dispatcher.dispatch("echo_target", {})
    second = await dispatcher.dispatch("echo_target", {})

    assert first["correlation_id"] != second["correlation_id"]


@pytest.mark.asyncio
async def test_credential_like_values_are_rejected() -> None:
    called = {"n": 0}

    async def handler(_runtime: Runtime, _arguments: dict[str, Any]) -> ToolOutput:
        called["n"] += 1
        return ToolOutput(blocks=())

    dispatcher, audit = _dispatcher(handler)
    secret = "ghp_" + "x" * 36

    out = await dispatcher.dispatch("echo_target", {"note": secret})

    assert out["code"] == "ValidationError"
    assert out["details"] == [{"field": "note", "reason": "credential-like values are not allowed"}]
    assert secret not in str(out)
    assert called["n"] == 0
    assert audit.events[0].outcome == "denied"


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_internal_error() -> None:
    async def handler(_runtime: Runtime, _arguments: dict[str, Any]) -> ToolOutput:
        raise RuntimeError("secret detail ghp_leak")

    dispatcher, audit = _dispatcher(handler)

    out = await dispatcher.dispatch("echo_target", {})

    assert out["ok"] is False
    assert out["code"] == "InternalError"
    assert out["message"] == "Tool execution failed"
    assert "ghp_leak" not in str(out)
    assert out["retryable"] is False
    assert audit.events[0].outcome == "failed"
    assert audit.events[0].code == "InternalError"


@pytest.mark.asyncio
async def test_unknown_error_codes_are_normalized() -> None:
    async def handler(_runtime: Runtime, _arguments: dict[str, Any]) -> ToolOutput:
        raise SafeError(code="Weird", message="Something odd")

    dispatcher, _ = _dispatcher(handler)

    out = await dispatcher.dispatch("echo_target", {})

    assert out["code"] == "InternalError"
    assert out["message"] == "Something odd"


@pytest.mark.asyncio
async def test_partial_ledger_marks_envelope() -> None:
    async def handler(_runtime: Runtime, _arguments: dict[str, Any]) -> ToolOutput:
        ledger = StepLedger(("create", "decorate", "extra"))
        ledger.succeeded("create")
        ledger.failed("decorate", "GitHub request failed (status 500)")
        return ToolOutput(blocks=(TextBlock("repository", "created"),), ledger=ledger)

    dispatcher, audit = _dispatcher(handler)

    out = await dispatcher.dispatch("echo_target", {})

    assert out["ok"] is True
    assert out["code"] == "PartialOrchestrationFailure"
    assert out["retryable"] is True
    assert "decorate" in out["message"]
    assert [s["step"] for s in out["steps"]] == ["create", "decorate", "extra"]
    assert out["steps"][2] == {"step": "extra", "attempted": False, "succeeded": False, "error": None}
    assert audit.events[0].outcome == "partial"
    assert audit.events[0].code == "PartialOrchestrationFailure"
    assert audit.events[0].failed_steps == ("decorate",)


@pytest.mark.asyncio
async def test_unknown_operation_lists_available_tools() -> None:
    dispatcher, audit = _dispatcher(_ok_handler)

    out = await dispatcher.dispatch("nope", {})

    assert out["code"] == "UnknownOperation"
    assert out["hint"] == "Available tools: echo_target"
    assert audit.events[0].outcome == "denied"


def test_duplicate_operation_names_rejected() -> None:
    descriptor = OperationDescriptor(name="dup", description="", input_schema=_SCHEMA, handler=_ok_handler)
    runtime = Runtime(
        config=build_config({"token": "tok"}),
        audit=DummyAudit(),  # type: ignore[arg-type]
        github=None,  # type: ignore[arg-type]
        runner=None,  # type: ignore[arg-type]
    )

    with pytest.raises(ValueError):
        Dispatcher(runtime, catalog=(descriptor, descriptor))

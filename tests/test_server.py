"""MCP surface tests: tool listing, content rendering and resources."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any

import pytest
from github_cli_mcp import server
from github_cli_mcp.audit import AuditEvent
from github_cli_mcp.config import build_config
from github_cli_mcp.runtime import Runtime
from github_cli_mcp.subprocess_runner import CompletedCommand
from github_cli_mcp.tools import Dispatcher


@dataclass
class DummyAudit:
    events: list[AuditEvent] = field(default_factory=list)

    def write_event(self, event: AuditEvent) -> None:
        self.events.append(event)

    def measure_start(self) -> float:
        return time.monotonic()

    def measure_duration_ms(self, start: float) -> int:
        return int((time.monotonic() - start) * 1000)


class EchoRunner:
    async def run(self, executable: str, args: list[str], *, timeout_ms: int) -> CompletedCommand:
        return CompletedCommand(exit_code=0, stdout=f"explained: {args[-1]}\n", stderr="")


def _dispatcher() -> Dispatcher:
    runtime = Runtime(
        config=build_config({"token": "tok", "owner": "octo", "repo": "demo"}),
        audit=DummyAudit(),  # type: ignore[arg-type]
        github=None,  # type: ignore[arg-type]
        runner=EchoRunner(),  # type: ignore[arg-type]
    )
    return Dispatcher(runtime)


@pytest.mark.asyncio
async def test_list_tools_matches_catalog() -> None:
    tools = await server.list_tools()

    assert len(tools) == 8
    assert tools[0].name == "setup_repository"
    assert tools[0].inputSchema["required"] == ["name", "description"]


@pytest.mark.asyncio
async def test_call_tool_renders_one_content_per_block() -> None:
    contents = await server.call_tool(_dispatcher(), "copilot_explain", {"command": "ls -la"})

    assert [c.text for c in contents] == ["## command\n\nls -la", "## explanation\n\nexplained: ls -la"]


@pytest.mark.asyncio
async def test_call_tool_error_is_single_json_content() -> None:
    contents = await server.call_tool(_dispatcher(), "copilot_explain", None)

    assert len(contents) == 1
    payload = json.loads(contents[0].text)
    assert payload["ok"] is False
    assert payload["code"] == "ValidationError"
    assert payload["details"] == [{"field": "command", "reason": "is required"}]


def test_partial_success_renders_status_first() -> None:
    envelope: dict[str, Any] = {
        "ok": True,
        "operation": "setup_repository",
        "blocks": [{"label": "repository", "text": "Created public repository octo/demo"}],
        "steps": [{"step": "add_license", "attempted": True, "succeeded": False, "error": "boom"}],
        "code": "PartialOrchestrationFailure",
        "message": "1 optional step(s) failed: add_license",
        "retryable": True,
        "correlation_id": "abc",
    }

    contents = server.render_content(envelope)

    status = json.loads(contents[0].text)
    assert status["code"] == "PartialOrchestrationFailure"
    assert status["steps"][0]["step"] == "add_license"
    assert contents[1].text.startswith("## repository")


def test_resources_are_listed() -> None:
    uris = [str(r.uri).rstrip("/") for r in server.list_resource_objects()]
    assert uris == [server.STATUS_URI, server.CAPABILITIES_URI]


def test_status_resource_omits_token() -> None:
    text = server.read_resource_text(_dispatcher(), server.STATUS_URI)
    status = json.loads(text)

    assert status["tools_available"] == 8
    assert status["defaults"]["repository"] == "octo/demo"
    assert status["defaults"]["shell"] == "powershell"
    assert '"tok"' not in text


def test_capabilities_resource_lists_error_codes() -> None:
    caps = json.loads(server.read_resource_text(_dispatcher(), server.CAPABILITIES_URI))

    assert "copilot_check_setup" in caps["operations"]
    assert "PartialOrchestrationFailure" in caps["error_codes"]


def test_unknown_resource() -> None:
    payload = json.loads(server.read_resource_text(_dispatcher(), "github-cli-mcp://nope"))
    assert payload["ok"] is False

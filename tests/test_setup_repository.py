"""setup_repository orchestration tests.

The repository create step gates everything else; optional file steps fail
independently and are reported through the step ledger without rollback.
"""

from __future__ import annotations

import base64
import time
from dataclasses import dataclass
from typing import Any

import pytest
from github_cli_mcp.audit import AuditEvent
from github_cli_mcp.config import LimitsConfig, build_config
from github_cli_mcp.errors import remote_api_error
from github_cli_mcp.github_client import GitHubClient
from github_cli_mcp.runtime import Runtime
from github_cli_mcp.tools import Dispatcher


@dataclass
class DummyAudit:
    events: list[AuditEvent]

    def write_event(self, event: AuditEvent) -> None:
        self.events.append(event)

    def measure_start(self) -> float:
        return time.monotonic()

    def measure_duration_ms(self, start: float) -> int:
        return int((time.monotonic() - start) * 1000)


class DummyGitHub(GitHubClient):
    def __init__(self, routes: dict[tuple[str, str], object | Exception]) -> None:
        super().__init__(token="test-token", limits=LimitsConfig(max_backoff_s=0.0))
        self._routes = routes
        self.calls: list[dict[str, Any]] = []

    async def request_json(self, **kwargs: Any) -> object:
        self.calls.append(dict(kwargs))
        key = (str(kwargs.get("method")), str(kwargs.get("path")))
        if key not in self._routes:
            raise AssertionError(f"Unexpected GitHub call: {key}")
        val = self._routes[key]
        if isinstance(val, Exception):
            raise val
        return val


_CREATED = {"name": "demo", "owner": {"login": "octo"}, "html_url": "https://github.com/octo/demo"}
_FILE_OK = {"content": {"path": "x", "html_url": "https://github.com/octo/demo/blob/main/x"}}
_BASE = "/repos/octo/demo/contents"


def _setup(routes: dict[tuple[str, str], object | Exception]) -> tuple[Dispatcher, DummyGitHub, DummyAudit]:
    github = DummyGitHub(routes)
    audit = DummyAudit(events=[])
    runtime = Runtime(
        config=build_config({"token": "test-token"}),
        audit=audit,  # type: ignore[arg-type]
        github=github,
        runner=None,  # type: ignore[arg-type]
    )
    return Dispatcher(runtime), github, audit


def _steps(out: dict[str, Any]) -> dict[str, dict[str, Any]]:
    return {s["step"]: s for s in out["steps"]}


@pytest.mark.asyncio
async def test_license_failure_is_a_qualified_success() -> None:
    dispatcher, github, audit = _setup(
        {
            ("POST", "/user/repos"): _CREATED,
            ("PUT", f"{_BASE}/README.md"): _FILE_OK,
            ("PUT", f"{_BASE}/LICENSE"): remote_api_error(status_code=422, upstream_message="Invalid request"),
            ("PUT", f"{_BASE}/.gitignore"): _FILE_OK,
            ("PUT", f"{_BASE}/.github/workflows/ci.yml"): _FILE_OK,
        }
    )

    out = await dispatcher.dispatch(
        "setup_repository",
        {"name": "demo", "description": "Demo repo", "includeReadme": True, "includeLicense": True, "setupCI": True},
    )

    assert out["ok"] is True
    assert out["code"] == "PartialOrchestrationFailure"
    steps = _steps(out)
    assert steps["create_repository"]["succeeded"] is True
    assert steps["add_readme"]["succeeded"] is True
    assert steps["setup_ci"]["succeeded"] is True
    assert steps["add_gitignore"]["succeeded"] is True
    assert steps["add_license"]["attempted"] is True
    assert steps["add_license"]["succeeded"] is False
    assert "422" in steps["add_license"]["error"]
    assert "Invalid request" in steps["add_license"]["error"]

    # No rollback of the created repository.
    assert all(c["method"] != "DELETE" for c in github.calls)
    assert audit.events[-1].outcome == "partial"
    assert any(b["label"] == "retry" and "add_license" in b["text"] for b in out["blocks"])


@pytest.mark.asyncio
async def test_create_failure_aborts_without_further_steps() -> None:
    dispatcher, github, audit = _setup(
        {
            ("POST", "/user/repos"): remote_api_error(
                status_code=422,
                upstream_message="Repository creation failed.: name already exists on this account",
            ),
        }
    )

    out = await dispatcher.dispatch(
        "setup_repository",
        {"name": "demo", "description": "Demo repo", "includeReadme": True, "includeLicense": True, "setupCI": True},
    )

    assert out["ok"] is False
    assert out["code"] == "RemoteApiError"
    assert out["status_code"] == 422
    assert "already exists" in out["hint"]
    assert out["retryable"] is True
    assert len(github.calls) == 1
    assert audit.events[-1].outcome == "failed"


@pytest.mark.asyncio
async def test_all_steps_succeed() -> None:
    dispatcher, github, _ = _setup(
        {
            ("POST", "/user/repos"): _CREATED,
            ("PUT", f"{_BASE}/README.md"): _FILE_OK,
            ("PUT", f"{_BASE}/LICENSE"): _FILE_OK,
            ("PUT", f"{_BASE}/.gitignore"): _FILE_OK,
        }
    )

    out = await dispatcher.dispatch(
        "setup_repository",
        {"name": "demo", "description": "Demo repo", "language": "python", "private": True},
    )

    assert out["ok"] is True
    assert "code" not in out
    steps = _steps(out)
    assert steps["setup_ci"]["attempted"] is False
    assert [b["label"] for b in out["blocks"]] == ["repository", "steps"]
    assert "private repository octo/demo" in out["blocks"][0]["text"]

    create = github.calls[0]
    assert create["json_body"] == {"name": "demo", "description": "Demo repo", "private": True, "auto_init": False}

    gitignore = next(c for c in github.calls if c["path"].endswith(".gitignore"))
    decoded = base64.b64decode(gitignore["json_body"]["content"]).decode("utf-8")
    assert "__pycache__/" in decoded


@pytest.mark.asyncio
async def test_optional_steps_are_skipped_when_flags_are_off() -> None:
    dispatcher, github, _ = _setup({("POST", "/user/repos"): _CREATED})

    out = await dispatcher.dispatch(
        "setup_repository",
        {
            "name": "demo",
            "description": "",
            "includeReadme": False,
            "includeLicense": False,
            "includeGitignore": False,
        },
    )

    assert out["ok"] is True
    assert len(github.calls) == 1
    statuses = {s["step"]: s["attempted"] for s in out["steps"]}
    assert statuses == {
        "create_repository": True,
        "add_readme": False,
        "add_license": False,
        "add_gitignore": False,
        "setup_ci": False,
    }


@pytest.mark.asyncio
async def test_every_optional_step_failing_still_keeps_repository() -> None:
    err = remote_api_error(status_code=503, upstream_message="Service unavailable")
    dispatcher, _, _ = _setup(
        {
            ("POST", "/user/repos"): _CREATED,
            ("PUT", f"{_BASE}/README.md"): err,
            ("PUT", f"{_BASE}/LICENSE"): err,
            ("PUT", f"{_BASE}/.gitignore"): err,
        }
    )

    out = await dispatcher.dispatch("setup_repository", {"name": "demo", "description": "d"})

    assert out["ok"] is True
    assert out["code"] == "PartialOrchestrationFailure"
    failed = [s["step"] for s in out["steps"] if s["attempted"] and not s["succeeded"]]
    assert failed == ["add_readme", "add_license", "add_gitignore"]


@pytest.mark.asyncio
async def test_unexpected_create_response_is_remote_api_error() -> None:
    dispatcher, _, _ = _setup({("POST", "/user/repos"): ["not", "a", "repo"]})

    out = await dispatcher.dispatch("setup_repository", {"name": "demo", "description": "d"})

    assert out["ok"] is False
    assert out["code"] == "RemoteApiError"

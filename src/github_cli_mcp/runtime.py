"""Runtime dependencies and result types shared by tool handlers."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field
from typing import Any

from .audit import AuditLogger
from .config import AppConfig
from .github_client import GitHubClient, RequestBudget
from .subprocess_runner import SubprocessRunner


@dataclass(frozen=True, slots=True)
class Runtime:
    """Per-server dependencies, built once from AppConfig and shared read-only across calls."""

    config: AppConfig
    audit: AuditLogger
    github: GitHubClient
    runner: SubprocessRunner

    def budget(self) -> RequestBudget:
        return RequestBudget(total_timeout_s=self.config.limits.total_timeout_s)


def build_runtime(config: AppConfig) -> Runtime:
    """Wire the collaborators for a validated configuration."""
    return Runtime(
        config=config,
        audit=AuditLogger(sink_path=config.audit_log_path),
        github=GitHubClient(token=config.token, limits=config.limits),
        runner=SubprocessRunner(kill_grace_s=config.limits.kill_grace_s),
    )


@dataclass(frozen=True, slots=True)
class TextBlock:
    """One labeled piece of a tool result."""

    label: str
    text: str

    def as_dict(self) -> dict[str, str]:
        return {"label": self.label, "text": self.text}


@dataclass(slots=True)
class StepRecord:
    """Outcome of one orchestration step."""

    name: str
    attempted: bool = False
    succeeded: bool = False
    error: str | None = None

    @property
    def status(self) -> str:
        if not self.attempted:
            return "skipped"
        return "succeeded" if self.succeeded else "failed"

    def as_dict(self) -> dict[str, Any]:
        return {
            "step": self.name,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "error": self.error,
        }


class StepLedger:
    """Ordered record of orchestration steps.

    Slots are allocated up front, one per step name, so concurrent steps each
    write only their own record.
    """

    def __init__(self, step_names: Sequence[str]) -> None:
        self._records = {name: StepRecord(name=name) for name in step_names}

    def succeeded(self, name: str) -> None:
        record = self._records[name]
        record.attempted = True
        record.succeeded = True

    def failed(self, name: str, error: str) -> None:
        record = self._records[name]
        record.attempted = True
        record.succeeded = False
        record.error = error

    @property
    def failures(self) -> list[StepRecord]:
        return [r for r in self._records.values() if r.attempted and not r.succeeded]

    def as_list(self) -> list[dict[str, Any]]:
        return [r.as_dict() for r in self._records.values()]

    def summary(self) -> str:
        lines = []
        for r in self._records.values():
            line = f"- {r.name}: {r.status}"
            if r.error:
                line += f" ({r.error})"
            lines.append(line)
        return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class ToolOutput:
    """Successful handler result: ordered text blocks, plus a ledger for multi-step setups."""

    blocks: tuple[TextBlock, ...]
    ledger: StepLedger | None = field(default=None)


async def gather_settled(*calls: Awaitable[Any]) -> list[Any]:
    """Await every call to completion, then raise the first failure in argument order.

    No sibling call is left running once an error is reported.
    """
    results = await asyncio.gather(*calls, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)

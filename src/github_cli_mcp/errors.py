"""Error taxonomy and envelope helpers.

Every failure that leaves a tool handler is a `SafeError` carrying one of the
codes below. The dispatcher turns anything else into `InternalError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

UNKNOWN_OPERATION = "UnknownOperation"
VALIDATION_ERROR = "ValidationError"
REMOTE_API_ERROR = "RemoteApiError"
SUBPROCESS_SPAWN_ERROR = "SubprocessSpawnError"
SUBPROCESS_TIMEOUT = "SubprocessTimeout"
PARTIAL_ORCHESTRATION_FAILURE = "PartialOrchestrationFailure"
INTERNAL_ERROR = "InternalError"
CONFIG_ERROR = "Config"

RETRYABLE_CODES: frozenset[str] = frozenset({REMOTE_API_ERROR, SUBPROCESS_TIMEOUT})


@dataclass(frozen=True, slots=True)
class Violation:
    """A single schema violation for one argument field."""

    field: str
    reason: str

    def as_dict(self) -> dict[str, str]:
        return {"field": self.field, "reason": self.reason}


@dataclass(frozen=True, slots=True)
class SafeError(Exception):
    """An error safe to expose to the calling agent.

    Must never include the GitHub token or other host-provided secrets.
    """

    code: str
    message: str
    hint: str | None = None
    status_code: int | None = None
    details: tuple[Violation, ...] = ()


def validation_failed(violations: list[Violation] | tuple[Violation, ...]) -> SafeError:
    """Build a ValidationError that lists every violated field."""
    fields = ", ".join(v.field for v in violations)
    return SafeError(
        code=VALIDATION_ERROR,
        message=f"Invalid arguments: {fields}",
        details=tuple(violations),
    )


def remote_api_error(*, status_code: int | None, upstream_message: str | None) -> SafeError:
    """Return a RemoteApiError carrying the upstream status and message."""
    if status_code is None:
        message = "GitHub request failed"
    else:
        message = f"GitHub request failed (status {status_code})"
    return SafeError(
        code=REMOTE_API_ERROR,
        message=message,
        hint=upstream_message,
        status_code=status_code,
    )


def safe_error_to_result(err: SafeError) -> dict[str, Any]:
    """Convert a SafeError into the standard tool envelope."""
    out = to_error_result(code=err.code, message=err.message, hint=err.hint)
    if err.status_code is not None:
        out["status_code"] = err.status_code
    if err.details:
        out["details"] = [v.as_dict() for v in err.details]
    out["retryable"] = err.code in RETRYABLE_CODES
    return out


def to_error_result(*, code: str, message: str, hint: str | None = None) -> dict[str, Any]:
    """Build a standard tool error envelope."""
    out: dict[str, Any] = {"ok": False, "code": code, "message": message}
    if hint:
        out["hint"] = hint
    return out


def unknown_operation_error(name: str, available: list[str]) -> SafeError:
    """Error for an operation name that is not in the catalog."""
    return SafeError(
        code=UNKNOWN_OPERATION,
        message=f"Unknown tool: {name}",
        hint=f"Available tools: {', '.join(available)}",
    )


def internal_error(message: str = "Internal error") -> dict[str, Any]:
    """Error envelope for unexpected failures."""
    out = to_error_result(code=INTERNAL_ERROR, message=message)
    out["retryable"] = False
    return out

"""Tool dispatch layer.

The Dispatcher is the single entry point for tool calls. It:
- resolves the operation in the catalog (UnknownOperation otherwise)
- validates arguments and screens them for credentials before any side effect
- runs the handler against the shared Runtime
- maps every failure onto the error taxonomy and every success onto the block envelope
- writes exactly one audit event per call
"""

from __future__ import annotations

import logging
from typing import Any

from .audit import build_event, new_correlation_id
from .catalog import CATALOG, OperationDescriptor, index_catalog
from .errors import (
    INTERNAL_ERROR,
    PARTIAL_ORCHESTRATION_FAILURE,
    REMOTE_API_ERROR,
    SUBPROCESS_SPAWN_ERROR,
    SUBPROCESS_TIMEOUT,
    UNKNOWN_OPERATION,
    VALIDATION_ERROR,
    SafeError,
    internal_error,
    safe_error_to_result,
    unknown_operation_error,
)
from .runtime import Runtime, ToolOutput
from .safety import find_secret_violations
from .validation import validate_arguments

logger = logging.getLogger(__name__)

_KNOWN_CODES = frozenset(
    {
        UNKNOWN_OPERATION,
        VALIDATION_ERROR,
        REMOTE_API_ERROR,
        SUBPROCESS_SPAWN_ERROR,
        SUBPROCESS_TIMEOUT,
        INTERNAL_ERROR,
    }
)


def _target_from_args(arguments: Any) -> str:
    if not isinstance(arguments, dict):
        return "<none>"
    owner = arguments.get("owner")
    repo = arguments.get("repo")
    if isinstance(owner, str) and isinstance(repo, str) and owner and repo:
        return f"{owner}/{repo}"
    name = arguments.get("name")
    if isinstance(name, str) and name:
        return name
    return "<none>"


def _normalize(err: SafeError) -> SafeError:
    if err.code in _KNOWN_CODES:
        return err
    return SafeError(code=INTERNAL_ERROR, message=err.message, hint=err.hint, status_code=err.status_code)


def _success_envelope(name: str, output: ToolOutput) -> dict[str, Any]:
    out: dict[str, Any] = {
        "ok": True,
        "operation": name,
        "blocks": [b.as_dict() for b in output.blocks],
    }
    if output.ledger is not None:
        out["steps"] = output.ledger.as_list()
        failures = output.ledger.failures
        if failures:
            out["code"] = PARTIAL_ORCHESTRATION_FAILURE
            out["message"] = f"{len(failures)} optional step(s) failed: {', '.join(r.name for r in failures)}"
            out["retryable"] = True
    return out


class Dispatcher:
    """Validates and routes tool calls; stateless across calls."""

    def __init__(self, runtime: Runtime, catalog: tuple[OperationDescriptor, ...] = CATALOG) -> None:
        self._runtime = runtime
        self._catalog = catalog
        self._operations = index_catalog(catalog)

    @property
    def runtime(self) -> Runtime:
        return self._runtime

    def list_operations(self) -> list[dict[str, Any]]:
        """Return name, description and inputSchema for every operation."""
        return [d.listing() for d in self._catalog]

    def _validate(self, descriptor: OperationDescriptor, arguments: Any) -> dict[str, Any]:
        secrets = find_secret_violations(arguments) if isinstance(arguments, dict) else []
        return validate_arguments(descriptor.input_schema, arguments, extra_violations=secrets)

    async def dispatch(self, name: str, arguments: Any) -> dict[str, Any]:
        """Dispatch a tool call.

        Always returns an envelope that includes correlation_id.
        """
        correlation_id = new_correlation_id()
        target = _target_from_args(arguments)
        audit = self._runtime.audit
        start = audit.measure_start()

        try:
            descriptor = self._operations.get(name)
            if descriptor is None:
                raise unknown_operation_error(name, sorted(self._operations))

            validated = self._validate(descriptor, arguments)
            output = await descriptor.handler(self._runtime, validated)

        except SafeError as exc:
            err = _normalize(exc)
            outcome = "denied" if err.code in (UNKNOWN_OPERATION, VALIDATION_ERROR) else "failed"
            logger.info("Tool %s %s: %s", name, outcome, err.code)
            audit.write_event(
                build_event(
                    correlation_id=correlation_id,
                    operation=name,
                    target=target,
                    outcome=outcome,
                    code=err.code,
                    duration_ms=audit.measure_duration_ms(start),
                )
            )
            result = safe_error_to_result(err)
            result["correlation_id"] = correlation_id
            return result

        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("Tool %s raised an unexpected error", name)
            audit.write_event(
                build_event(
                    correlation_id=correlation_id,
                    operation=name,
                    target=target,
                    outcome="failed",
                    code=INTERNAL_ERROR,
                    duration_ms=audit.measure_duration_ms(start),
                )
            )
            result = internal_error("Tool execution failed")
            result["correlation_id"] = correlation_id
            return result

        out = _success_envelope(name, output)
        out["correlation_id"] = correlation_id
        partial = out.get("code") == PARTIAL_ORCHESTRATION_FAILURE
        failed_steps = tuple(r.name for r in output.ledger.failures) if output.ledger is not None else ()
        audit.write_event(
            build_event(
                correlation_id=correlation_id,
                operation=name,
                target=target,
                outcome="partial" if partial else "succeeded",
                code=out.get("code"),
                duration_ms=audit.measure_duration_ms(start),
                failed_steps=failed_steps,
            )
        )
        return out

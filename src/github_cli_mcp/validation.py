"""Declarative argument validation.

Schemas are the JSON-Schema subset advertised in the tool catalog:
- required fields and additionalProperties=false
- primitive types (string/integer/number/boolean/array/object)
- enum, minLength, minimum/maximum/exclusiveMinimum
- array element schemas via `items`
- defaults for omitted optional fields

It does NOT implement full JSON Schema. Validation never stops at the first
problem: every violation is collected so callers can fix them in one round trip.
"""

from __future__ import annotations

import copy
from typing import Any

from .errors import Violation, validation_failed

_TYPE_NAMES = {
    "string": "a string",
    "integer": "an integer",
    "number": "a number",
    "boolean": "a boolean",
    "array": "an array",
    "object": "an object",
}


def _is_type(value: Any, expected: str) -> bool:
    if expected == "string":
        return isinstance(value, str)
    if expected == "integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if expected == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected == "boolean":
        return isinstance(value, bool)
    if expected == "array":
        return isinstance(value, list)
    if expected == "object":
        return isinstance(value, dict)
    return True


def _check_value(field: str, value: Any, spec: dict[str, Any], out: list[Violation]) -> None:
    expected = spec.get("type")
    if isinstance(expected, str) and not _is_type(value, expected):
        out.append(Violation(field, f"must be {_TYPE_NAMES.get(expected, expected)}"))
        return

    allowed = spec.get("enum")
    if isinstance(allowed, list) and value not in allowed:
        out.append(Violation(field, f"must be one of: {', '.join(str(a) for a in allowed)}"))

    if isinstance(value, str):
        min_len = spec.get("minLength")
        if isinstance(min_len, int) and len(value) < min_len:
            if min_len == 1:
                out.append(Violation(field, "must not be empty"))
            else:
                out.append(Violation(field, f"must be at least {min_len} characters"))

    if expected in ("integer", "number"):
        minimum = spec.get("minimum")
        maximum = spec.get("maximum")
        exclusive_min = spec.get("exclusiveMinimum")
        if minimum is not None and value < minimum:
            out.append(Violation(field, f"must be >= {minimum}"))
        if maximum is not None and value > maximum:
            out.append(Violation(field, f"must be <= {maximum}"))
        if exclusive_min is not None and value <= exclusive_min:
            out.append(Violation(field, f"must be > {exclusive_min}"))

    if expected == "array":
        item_spec = spec.get("items")
        if isinstance(item_spec, dict):
            for i, item in enumerate(value):
                _check_value(f"{field}[{i}]", item, item_spec, out)

    if expected == "object" and "properties" in spec:
        _check_object(value, spec, out, prefix=f"{field}.")


def _check_object(arguments: dict[str, Any], schema: dict[str, Any], out: list[Violation], prefix: str = "") -> None:
    props: dict[str, Any] = schema.get("properties", {})

    for k in schema.get("required", []):
        if k not in arguments or arguments[k] is None:
            out.append(Violation(f"{prefix}{k}", "is required"))

    if schema.get("additionalProperties", True) is False:
        for k in arguments:
            if k not in props:
                out.append(Violation(f"{prefix}{k}", "is not an allowed field"))

    for k, spec in props.items():
        if k not in arguments or arguments[k] is None:
            continue
        _check_value(f"{prefix}{k}", arguments[k], spec, out)


def collect_violations(schema: dict[str, Any], arguments: Any) -> list[Violation]:
    """Return every violation of `schema` found in `arguments` (empty when valid)."""
    if not isinstance(arguments, dict):
        return [Violation("<arguments>", "must be an object")]
    out: list[Violation] = []
    _check_object(arguments, schema, out)
    return out


def apply_defaults(schema: dict[str, Any], arguments: dict[str, Any]) -> dict[str, Any]:
    """Return a new mapping with declared defaults filled in for omitted fields."""
    validated = {k: v for k, v in arguments.items() if v is not None}
    for k, spec in schema.get("properties", {}).items():
        if k not in validated and "default" in spec:
            validated[k] = copy.deepcopy(spec["default"])
    return validated


def validate_arguments(
    schema: dict[str, Any],
    arguments: Any,
    *,
    extra_violations: list[Violation] | None = None,
) -> dict[str, Any]:
    """Validate `arguments` against `schema` and return validated arguments.

    `null` values are treated as omitted.

    Raises:
        SafeError: ValidationError listing every violation.
    """
    violations = collect_violations(schema, arguments)
    if extra_violations:
        violations.extend(extra_violations)
    if violations:
        raise validation_failed(violations)
    return apply_defaults(schema, arguments)

"""Credential screening for agent-provided input.

Tool arguments end up in GitHub API payloads and on `gh` command lines, so
anything that looks like a credential is rejected before either is reached.
Suspected secret values are never echoed back.
"""

from __future__ import annotations

import re
from typing import Any

from .errors import Violation

_CRED_FIELD_NAMES = {
    "token",
    "access_token",
    "authorization",
    "password",
    "private_key",
    "pem",
    "jwt",
}

_TOKEN_PREFIXES = (
    "ghp_",
    "gho_",
    "ghu_",
    "ghs_",
    "ghr_",
    "github_pat_",
)

_JWT_LIKE_RE = re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+$")


def looks_like_secret_value(value: str) -> bool:
    """Return True if the value looks like a credential.

    - known GitHub token prefixes after trimming leading whitespace
    - bearer prefix, case-insensitive
    - JWT-looking values of at least 40 characters
    """
    if not isinstance(value, str):
        return False
    trimmed = value.lstrip()
    lowered = trimmed.lower()
    if lowered.startswith("bearer "):
        return True
    if lowered.startswith(_TOKEN_PREFIXES):
        return True
    if len(trimmed) >= 40 and _JWT_LIKE_RE.match(trimmed):
        return True
    return False


def looks_like_credential_field_name(field_name: str) -> bool:
    """Return True if a key name looks like a credential field."""
    if not isinstance(field_name, str):
        return False
    return field_name.strip().lower() in _CRED_FIELD_NAMES


def find_secret_violations(obj: Any, path: str = "") -> list[Violation]:
    """Return a violation for every credential-like key or value in `obj`."""
    out: list[Violation] = []
    if isinstance(obj, dict):
        for k, v in obj.items():
            field = f"{path}.{k}" if path else str(k)
            if looks_like_credential_field_name(str(k)):
                out.append(Violation(field, "credential-like fields are not allowed"))
                continue
            out.extend(find_secret_violations(v, field))
    elif isinstance(obj, list):
        for i, item in enumerate(obj):
            out.extend(find_secret_violations(item, f"{path}[{i}]"))
    elif isinstance(obj, str) and looks_like_secret_value(obj):
        out.append(Violation(path or "<value>", "credential-like values are not allowed"))
    return out


def redact_text(text: str, secrets: tuple[str, ...] = ()) -> str:
    """Return `text` with known secrets and token-looking words masked."""
    if not isinstance(text, str):
        return "<non-string>"
    for secret in secrets:
        if secret:
            text = text.replace(secret, "<redacted>")
    words = text.split(" ")
    return " ".join("<redacted>" if looks_like_secret_value(w) else w for w in words)

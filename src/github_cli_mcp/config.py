"""Configuration loading for github-cli-mcp.

Configuration is supplied by the host environment (e.g., MCP client config), not by
the agent. It is read once at startup, validated with the same rules as tool
arguments, and never mutated afterwards. The GitHub token is a secret and must
never be emitted to agents, logs, or audit events.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import CONFIG_ERROR, SafeError
from .validation import apply_defaults, collect_violations

SHELLS = ["bash", "powershell", "cmd", "zsh", "fish"]
OPERATING_SYSTEMS = ["linux", "windows", "macos"]

CONFIG_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["token"],
    "properties": {
        "token": {"type": "string", "minLength": 1},
        "owner": {"type": "string", "minLength": 1},
        "repo": {"type": "string", "minLength": 1},
        "cliPath": {"type": "string", "minLength": 1, "default": "gh"},
        "defaultShell": {"type": "string", "enum": SHELLS, "default": "powershell"},
        "defaultOs": {"type": "string", "enum": OPERATING_SYSTEMS},
        "timeout": {"type": "integer", "minimum": 1, "default": 30000},
        "auditLogPath": {"type": "string", "minLength": 1},
    },
    "additionalProperties": False,
}


@dataclass(frozen=True, slots=True)
class LimitsConfig:
    """Network limits for the GitHub REST client."""

    total_timeout_s: float = 60.0
    connect_timeout_s: float = 5.0
    read_timeout_s: float = 30.0

    # Retries for 429/5xx inside the HTTP client
    max_attempts: int = 3
    max_backoff_s: float = 5.0

    # Grace period between SIGTERM and SIGKILL for timed-out CLI processes
    kill_grace_s: float = 2.0


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Process-wide, read-only settings."""

    token: str
    owner: str | None
    repo: str | None
    cli_path: str
    default_shell: str
    default_os: str | None
    timeout_ms: int

    audit_log_path: Path | None
    limits: LimitsConfig

    @property
    def default_repository(self) -> str | None:
        if self.owner and self.repo:
            return f"{self.owner}/{self.repo}"
        return None


def _parse_int(value: str | None) -> int | str | None:
    # Non-numeric values are passed through so validation reports them.
    if value is None or not value.strip():
        return None
    try:
        return int(value.strip())
    except ValueError:
        return value


def _env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def raw_config_from_env() -> dict[str, Any]:
    """Collect the raw setting mapping from environment variables."""
    return {
        "token": _env("GITHUB_TOKEN"),
        "owner": _env("GITHUB_OWNER"),
        "repo": _env("GITHUB_REPO"),
        "cliPath": _env("GITHUB_CLI_PATH") or _env("COPILOT_CLI_PATH"),
        "defaultShell": _env("COPILOT_DEFAULT_SHELL"),
        "defaultOs": _env("COPILOT_DEFAULT_OS"),
        "timeout": _parse_int(os.getenv("COPILOT_TIMEOUT")),
        "auditLogPath": _env("GITHUB_CLI_MCP_AUDIT_LOG_PATH"),
    }


def build_config(raw: dict[str, Any], *, limits: LimitsConfig | None = None) -> AppConfig:
    """Validate a raw settings mapping and build an AppConfig.

    Raises:
        SafeError: code "Config" listing every invalid setting.
    """
    violations = collect_violations(CONFIG_SCHEMA, raw)
    if violations:
        fields = ", ".join(v.field for v in violations)
        raise SafeError(code=CONFIG_ERROR, message=f"Invalid configuration: {fields}", details=tuple(violations))

    values = apply_defaults(CONFIG_SCHEMA, raw)

    audit_path: Path | None = None
    if values.get("auditLogPath"):
        audit_path = Path(values["auditLogPath"])
        if not audit_path.is_absolute():
            raise SafeError(code=CONFIG_ERROR, message="GITHUB_CLI_MCP_AUDIT_LOG_PATH must be an absolute path when set")

    return AppConfig(
        token=values["token"],
        owner=values.get("owner"),
        repo=values.get("repo"),
        cli_path=values["cliPath"],
        default_shell=values["defaultShell"],
        default_os=values.get("defaultOs"),
        timeout_ms=values["timeout"],
        audit_log_path=audit_path,
        limits=limits or LimitsConfig(),
    )


def load_config_from_env() -> AppConfig:
    """Load and validate configuration from environment variables.

    Raises:
        SafeError: If configuration is missing/invalid.
    """
    return build_config(raw_config_from_env())

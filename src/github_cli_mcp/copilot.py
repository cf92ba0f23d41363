"""GitHub Copilot CLI tools.

Each tool runs `gh` with a fixed argument vector through the SubprocessRunner.
Output is treated as opaque text: ANSI escapes and surrounding whitespace are
stripped, nothing else is parsed.
"""

from __future__ import annotations

import logging
import platform
import re
from typing import Any

from .errors import INTERNAL_ERROR, SafeError
from .runtime import Runtime, TextBlock, ToolOutput, gather_settled
from .safety import redact_text
from .subprocess_runner import CompletedCommand

logger = logging.getLogger(__name__)

_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")

_HOST_OS = {"Linux": "linux", "Darwin": "macos", "Windows": "windows"}


def clean_output(text: str) -> str:
    return _ANSI_RE.sub("", text).strip()


def host_os() -> str | None:
    return _HOST_OS.get(platform.system())


async def _gh(runtime: Runtime, args: list[str]) -> CompletedCommand:
    return await runtime.runner.run(runtime.config.cli_path, args, timeout_ms=runtime.config.timeout_ms)


def _require_exit_zero(runtime: Runtime, result: CompletedCommand, what: str) -> None:
    if result.ok:
        return
    stderr = redact_text(clean_output(result.stderr), (runtime.config.token,))
    logger.warning("%s exited with status %s", what, result.exit_code)
    raise SafeError(
        code=INTERNAL_ERROR,
        message=f"{what} exited with status {result.exit_code}",
        hint=stderr[:2000] or None,
    )


async def copilot_explain(runtime: Runtime, arguments: dict[str, Any]) -> ToolOutput:
    command: str = arguments["command"]
    result = await _gh(runtime, ["copilot", "explain", command])
    _require_exit_zero(runtime, result, "gh copilot explain")

    explanation = clean_output(result.stdout)
    return ToolOutput(
        blocks=(
            TextBlock("command", command),
            TextBlock("explanation", explanation or "No explanation produced"),
        )
    )


def build_suggest_prompt(arguments: dict[str, Any], default_repository: str | None) -> str:
    prompt = arguments["task"]
    if arguments.get("context"):
        prompt += f"\n\nContext: {arguments['context']}"
    if arguments["repositoryContext"] and default_repository:
        prompt += f"\n\nRepository: {default_repository}"
    return prompt


async def copilot_suggest(runtime: Runtime, arguments: dict[str, Any]) -> ToolOutput:
    shell = arguments.get("shell") or runtime.config.default_shell
    target_os = arguments.get("os") or runtime.config.default_os or host_os()

    argv = ["copilot", "suggest", build_suggest_prompt(arguments, runtime.config.default_repository), f"--shell={shell}"]
    if target_os:
        argv.append(f"--os={target_os}")

    result = await _gh(runtime, argv)
    _require_exit_zero(runtime, result, "gh copilot suggest")

    suggestion = clean_output(result.stdout)
    target = f"{shell} on {target_os}" if target_os else shell
    return ToolOutput(
        blocks=(
            TextBlock("task", arguments["task"]),
            TextBlock("target", target),
            TextBlock("suggestion", suggestion or "No suggestion produced"),
        )
    )


async def copilot_check_setup(runtime: Runtime, arguments: dict[str, Any]) -> ToolOutput:
    del arguments
    version, extensions, auth = await gather_settled(
        _gh(runtime, ["--version"]),
        _gh(runtime, ["extension", "list"]),
        _gh(runtime, ["auth", "status"]),
    )

    version_line = clean_output(version.stdout).splitlines()[0] if version.ok and version.stdout.strip() else None
    has_copilot = extensions.ok and "gh-copilot" in extensions.stdout
    authenticated = auth.ok
    # `gh auth status` reports on stderr in most releases.
    auth_text = redact_text(clean_output(auth.stderr or auth.stdout), (runtime.config.token,))

    checks = [
        f"- gh installed: {'yes (' + version_line + ')' if version_line else 'no'}",
        f"- copilot extension: {'installed' if has_copilot else 'missing'}",
        f"- authenticated: {'yes' if authenticated else 'no'}",
    ]
    ready = bool(version_line) and has_copilot and authenticated

    fixes = []
    if not has_copilot:
        fixes.append("gh extension install github/gh-copilot")
    if not authenticated:
        fixes.append("gh auth login")

    blocks = [
        TextBlock("status", "ready" if ready else "not ready"),
        TextBlock("checks", "\n".join(checks)),
    ]
    if auth_text:
        blocks.append(TextBlock("auth", auth_text))
    if fixes:
        blocks.append(TextBlock("next_steps", "\n".join(fixes)))
    return ToolOutput(blocks=tuple(blocks))

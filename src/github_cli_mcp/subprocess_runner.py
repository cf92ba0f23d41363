"""Bounded execution of external CLI tools.

Commands are spawned from an argument vector (never through a shell), each in
its own process group so a timeout can take down the whole tree. Output is
buffered in full; callers parse complete transcripts.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from collections.abc import Sequence
from dataclasses import dataclass

from .errors import SUBPROCESS_SPAWN_ERROR, SUBPROCESS_TIMEOUT, SafeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CompletedCommand:
    """Exit status and captured output of a finished process."""

    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def _signal_group(proc: asyncio.subprocess.Process, sig: int) -> None:
    try:
        if hasattr(os, "killpg"):
            os.killpg(proc.pid, sig)
        elif sig == signal.SIGTERM:
            proc.terminate()
        else:
            proc.kill()
    except ProcessLookupError:
        pass


class SubprocessRunner:
    """Runs one external command per call under a wall-clock timeout."""

    def __init__(self, *, kill_grace_s: float = 2.0) -> None:
        self._kill_grace_s = kill_grace_s

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        _signal_group(proc, signal.SIGTERM)
        try:
            await asyncio.wait_for(proc.wait(), timeout=self._kill_grace_s)
            return
        except asyncio.TimeoutError:
            pass
        _signal_group(proc, getattr(signal, "SIGKILL", signal.SIGTERM))
        await proc.wait()

    async def _spawn(self, executable: str, args: Sequence[str]) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                executable,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as exc:
            raise SafeError(
                code=SUBPROCESS_SPAWN_ERROR,
                message=f"Could not start '{executable}'",
                hint=exc.strerror or str(exc),
            ) from exc

    async def run(self, executable: str, args: Sequence[str], *, timeout_ms: int) -> CompletedCommand:
        """Run `executable` with `args` and return its exit status and output.

        Raises:
            SafeError: SubprocessSpawnError if the executable cannot be started,
                SubprocessTimeout if it is still running after `timeout_ms`.
        """
        logger.debug("Running %s %s", executable, args[:1])
        proc = await self._spawn(executable, args)
        timed_out = False
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError:
            timed_out = True
        finally:
            # Also reached on cancellation; never leave the process group behind.
            if proc.returncode is None:
                await asyncio.shield(self._terminate(proc))

        if timed_out:
            logger.warning("'%s' timed out after %sms", executable, timeout_ms)
            raise SafeError(
                code=SUBPROCESS_TIMEOUT,
                message=f"'{executable}' did not finish within {timeout_ms}ms",
                hint="The process was terminated; retry or raise COPILOT_TIMEOUT",
            )

        return CompletedCommand(
            exit_code=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )

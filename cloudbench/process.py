"""
External tool invocation.

Every probe that shells out goes through a ``ToolRunner``:

    invoke(args, timeout) -> RawOutput

The runner never interprets output; parsing lives in ``cloudbench.parsers``.
``SubprocessToolRunner`` guarantees:
1. No shell: argv is passed verbatim.
2. Bounded wait when a timeout is given (SIGTERM -> SIGKILL on the group).
3. A missing binary surfaces as ToolError, not FileNotFoundError.
4. Cancelling ``invoke`` takes the child down the same way.
"""

import asyncio
import logging
import os
import shlex
import signal
import sys
import time
from dataclasses import dataclass
from typing import Optional, Sequence

from cloudbench.exceptions import ToolError, ToolTimeout

logger = logging.getLogger("cloudbench.process")


@dataclass(frozen=True)
class RawOutput:
    """Captured result of one tool invocation."""
    args: tuple
    returncode: int
    stdout: str
    stderr: str = ""
    elapsed_s: float = 0.0

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def check(self) -> "RawOutput":
        """Raise ToolError unless the tool exited 0; return self otherwise."""
        if self.returncode != 0:
            error_text = self.stderr.strip() or self.stdout.strip() or f"exit {self.returncode}"
            raise ToolError(f"{self.args[0]} failed: {error_text[:200]}")
        return self


class ToolRunner:
    """Interface for running external tools. Override ``invoke``."""

    async def invoke(self, args: Sequence[str], timeout: Optional[float] = None) -> RawOutput:
        raise NotImplementedError


class SubprocessToolRunner(ToolRunner):
    """Runs tools as child processes on the current event loop."""

    def __init__(self, kill_grace_s: float = 2.0, cwd: Optional[str] = None):
        self.kill_grace_s = kill_grace_s
        self.cwd = cwd

    async def invoke(self, args: Sequence[str], timeout: Optional[float] = None) -> RawOutput:
        argv = tuple(str(a) for a in args)
        printable = " ".join(shlex.quote(part) for part in argv)
        logger.debug(f"launching: {printable}")

        start = time.perf_counter()
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.cwd,
                # own process group so a timeout can take the whole tree down
                start_new_session=not sys.platform.startswith("win"),
            )
        except FileNotFoundError as exc:
            raise ToolError(f"{argv[0]} binary not found: {exc}") from exc
        except PermissionError as exc:
            raise ToolError(f"{argv[0]} is not executable: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await self._terminate(proc)
            raise ToolTimeout(f"{argv[0]} exceeded {timeout:.1f}s and was killed")
        except asyncio.CancelledError:
            await self._terminate(proc)
            raise

        elapsed = time.perf_counter() - start
        return RawOutput(
            args=argv,
            returncode=proc.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            elapsed_s=elapsed,
        )

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        """Polite SIGTERM to the group, SIGKILL if it lingers."""
        if proc.returncode is not None:
            return
        self._signal(proc, signal.SIGTERM)
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.kill_grace_s)
            return
        except asyncio.TimeoutError:
            pass
        self._signal(proc, getattr(signal, "SIGKILL", signal.SIGTERM))
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.kill_grace_s)
        except asyncio.TimeoutError:
            logger.error(f"pid {proc.pid} did not exit after SIGKILL")

    @staticmethod
    def _signal(proc: asyncio.subprocess.Process, sig: int) -> None:
        try:
            if sys.platform.startswith("win"):
                proc.kill()
            else:
                os.killpg(os.getpgid(proc.pid), sig)
        except ProcessLookupError:
            pass

"""TaskForge subprocess runner.

The runner is the executor's only side-effecting collaborator: it starts a
shell command in a working directory, waits for it and reports the exit
status. Cancelling the awaiting coroutine terminates the whole process group.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shlex
import shutil
import signal
import time
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from taskforge.exceptions import LaunchError

logger = logging.getLogger(__name__)

# POSIX shells report "found but not executable" and "not found" this way
_LAUNCH_FAILURE_CODES = {126: "command is not executable", 127: "command not found"}

# Leading words the shell handles itself; they never name a program on PATH
_SHELL_WORDS = frozenset(
    {
        ".", ":", "break", "case", "cd", "command", "continue",
        "eval", "exec", "exit", "export", "for", "if", "return", "set",
        "source", "test", "trap", "unset", "until", "while",
    }
)


def _missing_program(command: str, cwd: Path, env: Mapping[str, str] | None) -> bool:
    """Return True if the command's leading program cannot be found or run.

    Only meaningful after the shell exited with 126 or 127, which a program
    that did start may also return.
    """
    try:
        words = shlex.split(command)
    except ValueError:
        return False
    while words and "=" in words[0]:
        words.pop(0)
    program = words[0].lstrip("({!") if words else ""
    if not program or program in _SHELL_WORDS:
        return False

    if "/" in program:
        path = cwd / program
        return not (path.is_file() and os.access(path, os.X_OK))
    search_path = (env or os.environ).get("PATH")
    return shutil.which(program, path=search_path) is None


@dataclass(frozen=True)
class CommandResult:
    """Result of one finished command.

    Attributes:
        command: The command line that ran.
        exit_code: Process exit status.
        output: Combined stdout/stderr when captured, else None.
        elapsed: Wall-clock seconds.
    """

    command: str
    exit_code: int
    output: str | None = None
    elapsed: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


@runtime_checkable
class CommandRunner(Protocol):
    """Protocol for objects that run one shell command."""

    async def run(
        self,
        command: str,
        cwd: Path,
        capture: bool = False,
    ) -> CommandResult:
        """Run ``command`` in ``cwd`` and return its result.

        Raises:
            LaunchError: If the process could not be started.
        """
        ...


class SubprocessRunner:
    """Runs commands through the platform shell using asyncio subprocesses.

    Args:
        env: Extra environment variables layered over ``os.environ``.
        grace_period: Seconds to wait after SIGTERM before killing.
    """

    def __init__(
        self,
        env: Mapping[str, str] | None = None,
        grace_period: float = 5.0,
    ) -> None:
        self._env = dict(env or {})
        self.grace_period = grace_period

    async def run(
        self,
        command: str,
        cwd: Path,
        capture: bool = False,
    ) -> CommandResult:
        """Run a shell command and wait for it to exit.

        Args:
            command: Command line passed to the shell.
            cwd: Working directory.
            capture: If True, collect stdout and stderr instead of inheriting them.

        Returns:
            The command's result.

        Raises:
            LaunchError: If spawning fails, or the shell exits 126/127 because
                the leading program is missing or not executable. A program that
                ran and itself exited 126/127 yields a normal result.
        """
        env = {**os.environ, **self._env} if self._env else None
        pipe = asyncio.subprocess.PIPE if capture else None
        started = time.monotonic()

        try:
            process = await asyncio.create_subprocess_shell(
                command,
                cwd=str(cwd),
                env=env,
                stdout=pipe,
                stderr=asyncio.subprocess.STDOUT if capture else None,
                start_new_session=os.name == "posix",
            )
        except OSError as e:
            raise LaunchError(command, str(e)) from e

        try:
            stdout, _ = await process.communicate()
        except asyncio.CancelledError:
            await self._terminate(process)
            raise

        exit_code = process.returncode if process.returncode is not None else -1
        output = stdout.decode("utf-8", errors="replace") if stdout is not None else None
        elapsed = time.monotonic() - started

        if (
            os.name == "posix"
            and exit_code in _LAUNCH_FAILURE_CODES
            and _missing_program(command, cwd, env)
        ):
            reason = _LAUNCH_FAILURE_CODES[exit_code]
            if output:
                reason = f"{reason}: {output.strip()}"
            raise LaunchError(command, reason)

        return CommandResult(command, exit_code, output, elapsed)

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """Stop a process and its process group: SIGTERM first, then SIGKILL."""
        if process.returncode is not None:
            return

        logger.debug("Terminating process %d", process.pid)
        self._signal(process, signal.SIGTERM)
        try:
            await asyncio.wait_for(process.wait(), timeout=self.grace_period)
            return
        except asyncio.TimeoutError:
            logger.warning(
                "Process %d did not exit after %.1fs, killing",
                process.pid,
                self.grace_period,
            )

        self._signal(process, getattr(signal, "SIGKILL", signal.SIGTERM))
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(process.wait(), timeout=self.grace_period)

    @staticmethod
    def _signal(process: asyncio.subprocess.Process, sig: int) -> None:
        try:
            if os.name == "posix":
                os.killpg(process.pid, sig)
            else:
                process.send_signal(sig)
        except ProcessLookupError:
            pass

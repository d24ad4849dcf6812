"""Command channel bound to a local JVM through the jcmd launcher."""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from typing import Protocol, Sequence

from src.channel.base import ChannelFailure, CommandOutput

LOGGER = logging.getLogger(__name__)

DEFAULT_JCMD_EXECUTABLE = "jcmd"
DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class CompletedCommand:
    """Low-level result of running the jcmd launcher once."""

    stdout: str
    stderr: str
    returncode: int


class CommandRunner(Protocol):
    """Runner contract for launching jcmd."""

    def __call__(self, argv: Sequence[str], timeout_seconds: float) -> CompletedCommand:
        """Run argv to completion and capture its output."""


def run_subprocess(argv: Sequence[str], timeout_seconds: float) -> CompletedCommand:
    """Default runner backed by subprocess.run."""
    completed = subprocess.run(
        list(argv),
        capture_output=True,
        text=True,
        timeout=timeout_seconds,
        check=False,
    )
    return CompletedCommand(
        stdout=completed.stdout,
        stderr=completed.stderr,
        returncode=completed.returncode,
    )


class JcmdChannel:
    """Issue diagnostic commands to a JVM identified by PID."""

    def __init__(
        self,
        *,
        pid: int,
        executable: str = DEFAULT_JCMD_EXECUTABLE,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        runner: CommandRunner | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if pid <= 0:
            raise ValueError("pid must be > 0.")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0.")
        self._pid = pid
        self._executable = executable
        self._timeout_seconds = timeout_seconds
        self._runner = runner or run_subprocess
        self._logger = logger or LOGGER

    @property
    def pid(self) -> int:
        """Target JVM process id."""
        return self._pid

    def build_argv(self, command: str) -> list[str]:
        """Build the launcher argument vector for a command line."""
        return [self._executable, str(self._pid), *shlex.split(command)]

    def execute(self, command: str) -> CommandOutput:
        argv = self.build_argv(command)
        self._logger.debug("jcmd pid=%s command=%r", self._pid, command)
        try:
            completed = self._runner(argv, self._timeout_seconds)
        except subprocess.TimeoutExpired as error:
            raise ChannelFailure(
                f"Command '{command}' timed out after {self._timeout_seconds:.1f}s for pid={self._pid}.",
                command=command,
            ) from error
        except OSError as error:
            raise ChannelFailure(
                f"Unable to launch '{self._executable}': {error}",
                command=command,
            ) from error

        text = completed.stdout
        if completed.stderr:
            text = f"{text}{completed.stderr}"
        if completed.returncode != 0 and not self.attached_output(completed.stdout):
            raise ChannelFailure(
                f"Could not attach to pid={self._pid} for '{command}' (exit status {completed.returncode}).",
                command=command,
                output=text,
            )
        if completed.returncode != 0:
            self._logger.debug("jcmd pid=%s command=%r exit status %s", self._pid, command, completed.returncode)
        return CommandOutput(text=text, exit_status=completed.returncode)

    def attached_output(self, stdout: str) -> bool:
        """Return whether jcmd reached the target VM (it prints a '<pid>:' header first)."""
        return stdout.startswith(f"{self._pid}:")

"""JVM discovery and attach utilities."""

from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass
from typing import Protocol

from src.channel.jcmd import (
    DEFAULT_JCMD_EXECUTABLE,
    DEFAULT_TIMEOUT_SECONDS,
    CommandRunner,
    JcmdChannel,
    run_subprocess,
)

LOGGER = logging.getLogger(__name__)

# jcmd lists itself; never attach to it.
_JCMD_SELF_MARKER = "sun.tools.jcmd.JCmd"


class JvmAttachError(RuntimeError):
    """Raised when JVM discovery or attach fails."""


@dataclass(frozen=True)
class AttachedJvm:
    """Attached JVM details."""

    pid: int
    main_class: str


class JvmBackend(Protocol):
    """Backend contract for JVM lookup operations."""

    def find_pid_by_main_class(self, main_class: str) -> int | None:
        """Resolve PID by main class or jar name."""

    def get_main_class(self, pid: int) -> str | None:
        """Get main class for a PID."""


def parse_jvm_listing(text: str) -> list[tuple[int, str]]:
    """Parse `jcmd -l` output into (pid, main class) pairs."""
    results: list[tuple[int, str]] = []
    for line in text.splitlines():
        parts = line.strip().split(maxsplit=1)
        if not parts or not parts[0].isdigit():
            continue
        main_class = parts[1].split()[0] if len(parts) > 1 else ""
        if main_class.endswith(_JCMD_SELF_MARKER):
            continue
        results.append((int(parts[0]), main_class))
    return results


class JcmdJvmBackend:
    """Backend that lists local JVMs through `jcmd -l`."""

    def __init__(
        self,
        *,
        executable: str = DEFAULT_JCMD_EXECUTABLE,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        runner: CommandRunner | None = None,
    ) -> None:
        self._executable = executable
        self._timeout_seconds = timeout_seconds
        self._runner = runner or run_subprocess

    def _iter_jvms(self) -> list[tuple[int, str]]:
        try:
            completed = self._runner([self._executable, "-l"], self._timeout_seconds)
        except (OSError, subprocess.TimeoutExpired) as error:
            raise JvmAttachError(f"Failed to list running JVMs with '{self._executable} -l': {error}") from error
        if completed.returncode != 0:
            raise JvmAttachError(
                f"Failed to list running JVMs ('{self._executable} -l' exit status {completed.returncode})."
            )
        return parse_jvm_listing(completed.stdout)

    def find_pid_by_main_class(self, main_class: str) -> int | None:
        target = main_class.lower()
        for pid, name in self._iter_jvms():
            if name.lower() == target or name.lower().rsplit(".", 1)[-1] == target:
                return pid
        return None

    def get_main_class(self, pid: int) -> str | None:
        for current_pid, name in self._iter_jvms():
            if current_pid == pid:
                return name
        return None


def _attach_once(
    *,
    backend: JvmBackend,
    pid: int | None,
    main_class: str | None,
) -> AttachedJvm:
    if pid is None and main_class is None:
        raise JvmAttachError("attach_jvm requires either pid or main_class.")

    resolved_pid = pid
    resolved_name = main_class

    if resolved_pid is None and resolved_name is not None:
        resolved_pid = backend.find_pid_by_main_class(resolved_name)
        if resolved_pid is None:
            raise JvmAttachError(f"JVM not found for main class '{resolved_name}'.")

    if resolved_pid is None:
        raise JvmAttachError("Unable to resolve target JVM PID.")

    if resolved_name is None:
        resolved_name = backend.get_main_class(resolved_pid)
        if resolved_name is None:
            raise JvmAttachError(f"PID {resolved_pid} is not a running JVM.")

    return AttachedJvm(pid=resolved_pid, main_class=resolved_name)


def attach_jvm(
    *,
    pid: int | None = None,
    main_class: str | None = None,
    retries: int = 3,
    retry_delay_seconds: float = 0.5,
    backend: JvmBackend | None = None,
    logger: logging.Logger | None = None,
) -> AttachedJvm:
    """Locate a running JVM by PID or main class with retry/backoff."""
    if retries < 1:
        raise ValueError("retries must be >= 1")

    active_logger = logger or LOGGER
    active_backend = backend or JcmdJvmBackend()
    last_error: JvmAttachError | None = None

    for attempt in range(1, retries + 1):
        try:
            attached = _attach_once(
                backend=active_backend,
                pid=pid,
                main_class=main_class,
            )
            active_logger.info(
                "Attached to JVM pid=%s main_class=%s",
                attached.pid,
                attached.main_class,
            )
            return attached
        except JvmAttachError as error:
            last_error = error
            active_logger.warning("JVM attach attempt %s/%s failed: %s", attempt, retries, error)
            if attempt < retries:
                time.sleep(retry_delay_seconds)

    if last_error is None:
        raise JvmAttachError("Unknown JVM attach failure.")
    raise last_error


def open_jcmd_channel(
    attached: AttachedJvm,
    *,
    executable: str = DEFAULT_JCMD_EXECUTABLE,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    runner: CommandRunner | None = None,
) -> JcmdChannel:
    """Open a jcmd command channel for an attached JVM."""
    return JcmdChannel(
        pid=attached.pid,
        executable=executable,
        timeout_seconds=timeout_seconds,
        runner=runner,
    )

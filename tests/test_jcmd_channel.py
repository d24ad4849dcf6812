"""Tests for the jcmd-backed command channel."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from typing import Sequence

import pytest

from src.channel.base import ChannelFailure
from src.channel.jcmd import CompletedCommand, JcmdChannel


@dataclass
class FakeRunner:
    """Fake process runner recording argument vectors."""

    result: CompletedCommand = field(default_factory=lambda: CompletedCommand(stdout="", stderr="", returncode=0))
    error: Exception | None = None
    calls: list[tuple[list[str], float]] = field(default_factory=list)

    def __call__(self, argv: Sequence[str], timeout_seconds: float) -> CompletedCommand:
        self.calls.append((list(argv), timeout_seconds))
        if self.error is not None:
            raise self.error
        return self.result


def test_execute_builds_jcmd_argv() -> None:
    runner = FakeRunner(
        result=CompletedCommand(stdout="17235:\n0x00000000001a2b3c is a thread\n", stderr="", returncode=0)
    )
    channel = JcmdChannel(pid=17235, executable="/opt/jdk/bin/jcmd", timeout_seconds=5.0, runner=runner)

    output = channel.execute("VM.debug find -verbose 0x1a2b3c")

    assert runner.calls == [
        (["/opt/jdk/bin/jcmd", "17235", "VM.debug", "find", "-verbose", "0x1a2b3c"], 5.0)
    ]
    assert "is a thread" in output.text
    assert output.exit_status == 0


def test_execute_keeps_negative_sentinel_as_argument() -> None:
    runner = FakeRunner()
    channel = JcmdChannel(pid=17235, runner=runner)

    channel.execute("VM.debug find -1")

    assert runner.calls[0][0][-1] == "-1"


def test_execute_appends_stderr_to_output() -> None:
    runner = FakeRunner(result=CompletedCommand(stdout="17235:\n", stderr="warning: slow\n", returncode=0))
    channel = JcmdChannel(pid=17235, runner=runner)

    assert channel.execute("Thread.print").text == "17235:\nwarning: slow\n"


def test_execute_returns_output_of_attached_command_with_non_zero_exit() -> None:
    runner = FakeRunner(
        result=CompletedCommand(
            stdout="17235:\njava.lang.IllegalArgumentException: address not parsable\n",
            stderr="",
            returncode=1,
        )
    )
    channel = JcmdChannel(pid=17235, runner=runner)

    output = channel.execute("VM.debug find 0x10")

    assert output.exit_status == 1
    assert output.text == "17235:\njava.lang.IllegalArgumentException: address not parsable\n"


def test_execute_raises_when_attach_fails() -> None:
    runner = FakeRunner(
        result=CompletedCommand(stdout="", stderr="com.sun.tools.attach.AttachNotSupportedException\n", returncode=1)
    )
    channel = JcmdChannel(pid=17235, runner=runner)

    with pytest.raises(ChannelFailure, match="Could not attach to pid=17235") as excinfo:
        channel.execute("Thread.print")

    assert excinfo.value.command == "Thread.print"
    assert "AttachNotSupportedException" in excinfo.value.output


def test_execute_raises_on_timeout() -> None:
    runner = FakeRunner(error=subprocess.TimeoutExpired(cmd="jcmd", timeout=5.0))
    channel = JcmdChannel(pid=17235, timeout_seconds=5.0, runner=runner)

    with pytest.raises(ChannelFailure, match="timed out"):
        channel.execute("VM.debug find 0x10")


def test_execute_raises_when_launcher_is_missing() -> None:
    runner = FakeRunner(error=FileNotFoundError("jcmd"))
    channel = JcmdChannel(pid=17235, runner=runner)

    with pytest.raises(ChannelFailure, match="Unable to launch"):
        channel.execute("Thread.print")


def test_channel_rejects_invalid_pid() -> None:
    with pytest.raises(ValueError, match="pid"):
        JcmdChannel(pid=0, runner=FakeRunner())

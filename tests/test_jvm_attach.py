"""Tests for JVM discovery and attach behavior."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import pytest

from src.channel.attach import (
    AttachedJvm,
    JcmdJvmBackend,
    JvmAttachError,
    attach_jvm,
    open_jcmd_channel,
    parse_jvm_listing,
)
from src.channel.jcmd import CompletedCommand

JVM_LISTING = """\
17235 DcmdTestClass
17400 jdk.jcmd/sun.tools.jcmd.JCmd -l
17500 /opt/app/server.jar --port 8080
18000 com.example.VMDebugTest
"""


@dataclass
class FakeJvmBackend:
    """Simple fake backend for JVM attach tests."""

    by_name: dict[str, int] = field(default_factory=dict)
    by_pid: dict[int, str] = field(default_factory=dict)

    def find_pid_by_main_class(self, main_class: str) -> int | None:
        return self.by_name.get(main_class.lower())

    def get_main_class(self, pid: int) -> str | None:
        return self.by_pid.get(pid)


@dataclass
class FakeRunner:
    """Fake runner returning a fixed `jcmd -l` listing."""

    stdout: str = JVM_LISTING
    returncode: int = 0
    calls: list[list[str]] = field(default_factory=list)

    def __call__(self, argv: Sequence[str], timeout_seconds: float) -> CompletedCommand:
        self.calls.append(list(argv))
        return CompletedCommand(stdout=self.stdout, stderr="", returncode=self.returncode)


def test_parse_jvm_listing_skips_jcmd_itself() -> None:
    assert parse_jvm_listing(JVM_LISTING) == [
        (17235, "DcmdTestClass"),
        (17500, "/opt/app/server.jar"),
        (18000, "com.example.VMDebugTest"),
    ]


def test_attach_jvm_by_pid() -> None:
    backend = FakeJvmBackend(by_pid={17235: "DcmdTestClass"})

    attached = attach_jvm(pid=17235, backend=backend, retries=1)

    assert attached == AttachedJvm(pid=17235, main_class="DcmdTestClass")


def test_attach_jvm_by_main_class() -> None:
    backend = FakeJvmBackend(by_name={"dcmdtestclass": 17235})

    attached = attach_jvm(main_class="DcmdTestClass", backend=backend, retries=1)

    assert attached.pid == 17235
    assert attached.main_class == "DcmdTestClass"


def test_attach_jvm_retries_then_fails() -> None:
    backend = FakeJvmBackend()

    with pytest.raises(JvmAttachError, match="JVM not found"):
        attach_jvm(main_class="Missing", backend=backend, retries=2, retry_delay_seconds=0.0)


def test_attach_jvm_requires_pid_or_main_class() -> None:
    with pytest.raises(JvmAttachError, match="either pid or main_class"):
        attach_jvm(backend=FakeJvmBackend(), retries=1)


def test_jcmd_backend_resolves_simple_class_name() -> None:
    runner = FakeRunner()
    backend = JcmdJvmBackend(executable="jcmd", runner=runner)

    assert backend.find_pid_by_main_class("VMDebugTest") == 18000
    assert backend.get_main_class(17235) == "DcmdTestClass"
    assert backend.get_main_class(17400) is None
    assert runner.calls[0] == ["jcmd", "-l"]


def test_jcmd_backend_raises_when_listing_fails() -> None:
    backend = JcmdJvmBackend(runner=FakeRunner(stdout="", returncode=1))

    with pytest.raises(JvmAttachError, match="exit status 1"):
        backend.find_pid_by_main_class("DcmdTestClass")


def test_open_jcmd_channel_targets_attached_pid() -> None:
    channel = open_jcmd_channel(AttachedJvm(pid=17235, main_class="DcmdTestClass"), timeout_seconds=3.0)

    assert channel.pid == 17235
    assert channel.build_argv("Thread.print") == ["jcmd", "17235", "Thread.print"]

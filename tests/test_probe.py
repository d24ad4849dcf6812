"""Tests for single address probes."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from src.channel.base import ChannelFailure, CommandOutput
from src.probe.probe import THREAD_PRINT_COMMAND, find_command, list_threads, probe_address


@dataclass
class FakeChannel:
    """Channel that answers every command with the same text."""

    text: str = "0x0000000000000010 is an unknown value\n"
    failure: Exception | None = None
    exit_status: int = 0
    commands: list[str] = field(default_factory=list)

    def execute(self, command: str) -> CommandOutput:
        self.commands.append(command)
        if self.failure is not None:
            raise self.failure
        return CommandOutput(text=self.text, exit_status=self.exit_status)


def test_find_command_plain_and_verbose() -> None:
    assert find_command(0x1A2B3C) == "VM.debug find 0x1a2b3c"
    assert find_command(0x1A2B3C, verbose=True) == "VM.debug find -verbose 0x1a2b3c"


def test_probe_address_issues_single_command_and_returns_text() -> None:
    channel = FakeChannel(text="0x00000000001a2b3c is a thread\n")

    response = probe_address(channel, 0x1A2B3C)

    assert channel.commands == ["VM.debug find 0x1a2b3c"]
    assert response.text == "0x00000000001a2b3c is a thread\n"
    assert response.address == 0x1A2B3C
    assert response.verbose is False
    assert response.exit_status == 0


def test_find_response_keeps_non_zero_exit_status() -> None:
    channel = FakeChannel(text="java.lang.IllegalArgumentException: bad address\n", exit_status=1)

    response = probe_address(channel, 0x10)

    assert response.exit_status == 1
    assert "IllegalArgumentException" in response.text


def test_probe_address_sends_sentinels_literally() -> None:
    channel = FakeChannel()

    probe_address(channel, -1)
    probe_address(channel, 0)

    assert channel.commands == ["VM.debug find -1", "VM.debug find 0x0"]


def test_probe_address_propagates_channel_failure_unchanged() -> None:
    failure = ChannelFailure("target VM exited", command="VM.debug find 0x10")
    channel = FakeChannel(failure=failure)

    with pytest.raises(ChannelFailure) as excinfo:
        probe_address(channel, 0x10)

    assert excinfo.value is failure


def test_list_threads_uses_thread_print() -> None:
    channel = FakeChannel(text="Full thread dump\n")

    assert list_threads(channel) == "Full thread dump\n"
    assert channel.commands == [THREAD_PRINT_COMMAND]

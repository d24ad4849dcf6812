"""Command channel contract shared by all probe components."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class ChannelFailure(RuntimeError):
    """Raised when the command channel cannot deliver a command or its response."""

    def __init__(self, message: str, *, command: str | None = None, output: str = "") -> None:
        super().__init__(message)
        self.command = command
        self.output = output


@dataclass(frozen=True)
class CommandOutput:
    """Complete textual response of one diagnostic command."""

    text: str
    exit_status: int = 0


class CommandChannel(Protocol):
    """Request/response transport to the inspected process."""

    def execute(self, command: str) -> CommandOutput:
        """Run one diagnostic command and return its complete output."""

"""Single `VM.debug find` round trips through a command channel."""

from __future__ import annotations

from dataclasses import dataclass

from src.channel.base import CommandChannel
from src.probe.address import format_address

THREAD_PRINT_COMMAND = "Thread.print"
FIND_COMMAND = "VM.debug find"
VERBOSE_FLAG = "-verbose"


@dataclass(frozen=True)
class ProbeResponse:
    """Raw response of one address probe."""

    address: int
    command: str
    text: str
    verbose: bool = False
    exit_status: int = 0


def find_command(address: int, *, verbose: bool = False) -> str:
    """Build the find command line for an address."""
    if verbose:
        return f"{FIND_COMMAND} {VERBOSE_FLAG} {format_address(address)}"
    return f"{FIND_COMMAND} {format_address(address)}"


def probe_address(channel: CommandChannel, address: int, *, verbose: bool = False) -> ProbeResponse:
    """Ask the inspected process to describe an address.

    Channel errors propagate unchanged.
    """
    command = find_command(address, verbose=verbose)
    output = channel.execute(command)
    return ProbeResponse(
        address=address,
        command=command,
        text=output.text,
        verbose=verbose,
        exit_status=output.exit_status,
    )


def list_threads(channel: CommandChannel) -> str:
    """Return the live thread listing of the inspected process."""
    return channel.execute(THREAD_PRINT_COMMAND).text

"""Sequential robustness sweep around a known-valid address."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Iterator

from src.channel.base import CommandChannel
from src.probe.oracle import Classification, classify
from src.probe.probe import ProbeResponse, probe_address

LOGGER = logging.getLogger(__name__)

DEFAULT_LOOKBACK = 256
DEFAULT_COUNT = 512

ProbeCallback = Callable[[int, ProbeResponse], None]


class SweepRangeError(ValueError):
    """Raised when a sweep range cannot be laid out around an address."""


@dataclass
class SweepReport:
    """Summary of one completed neighborhood sweep."""

    start: int
    end: int
    probes: int = 0
    error_exits: int = 0
    classifications: Counter[Classification] = field(default_factory=Counter)


def sweep_range(
    known_good: int,
    *,
    lookback: int = DEFAULT_LOOKBACK,
    count: int = DEFAULT_COUNT,
) -> Iterator[int]:
    """Lazily yield ``count`` consecutive addresses starting ``lookback`` bytes before ``known_good``."""
    if lookback < 0:
        raise SweepRangeError("lookback must be >= 0.")
    if count < 1:
        raise SweepRangeError("count must be >= 1.")
    if known_good < lookback:
        raise SweepRangeError(
            f"Cannot sweep 0x{known_good:x} with lookback {lookback}: range would start below zero."
        )

    start = known_good - lookback
    return (start + offset for offset in range(count))


def sweep_neighborhood(
    channel: CommandChannel,
    known_good: int,
    *,
    lookback: int = DEFAULT_LOOKBACK,
    count: int = DEFAULT_COUNT,
    on_probe: ProbeCallback | None = None,
    logger: logging.Logger | None = None,
) -> SweepReport:
    """Probe every address of the neighborhood once, in increasing order.

    Responses are tallied but never asserted on. A channel failure aborts the
    sweep and propagates with the failing address logged.
    """
    active_logger = logger or LOGGER
    addresses = sweep_range(known_good, lookback=lookback, count=count)
    start = known_good - lookback
    report = SweepReport(start=start, end=start + count - 1)
    active_logger.info("Sweeping 0x%x..0x%x around 0x%x", report.start, report.end, known_good)

    for address in addresses:
        try:
            response = probe_address(channel, address)
        except Exception:
            active_logger.error("Sweep probe failed at 0x%x after %s probes", address, report.probes)
            raise
        report.probes += 1
        classification = classify(response)
        report.classifications[classification] += 1
        if response.exit_status != 0:
            report.error_exits += 1
        active_logger.debug("Sweep 0x%x -> %s (exit %s)", address, classification.name, response.exit_status)
        if on_probe is not None:
            on_probe(address, response)

    return report

"""End-to-end `VM.debug find` scenario.

The run is all-or-nothing: each step depends on the address produced by the
previous one, so the first extraction, classification, sweep-range or channel
failure propagates and leaves ``ScenarioRunner.state`` at the last state reached.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable

from src.channel.base import ChannelFailure, CommandChannel
from src.config.probe_profile import ProbeProfile
from src.probe.address import format_address, unsigned_view
from src.probe.extractor import ExtractionFailure, extract_address
from src.probe.oracle import Classification, ClassificationMismatch, assert_classification
from src.probe.probe import list_threads, probe_address
from src.probe.sweeper import ProbeCallback, SweepRangeError, SweepReport, sweep_neighborhood

LOGGER = logging.getLogger(__name__)

SCENARIO_FAILURES = (ExtractionFailure, ClassificationMismatch, ChannelFailure, SweepRangeError)


class ScenarioState(enum.Enum):
    """Scenario progress, in the only order it may advance."""

    INIT = 0
    THREAD_ADDRESS_FOUND = 1
    THREAD_CLASSIFIED = 2
    BAD_ADDRESSES_CHECKED = 3
    OBJECT_ADDRESS_FOUND = 4
    OBJECT_CLASSIFIED = 5
    NEIGHBORHOOD_SWEPT = 6
    DONE = 7


@dataclass(frozen=True)
class StateTransition:
    """One state the scenario reached."""

    state: ScenarioState
    detail: str = ""


TransitionCallback = Callable[[StateTransition], None]


def describe_sentinel(address: int) -> str:
    """Sentinel as sent, plus the unsigned address it denotes when negative."""
    if address < 0:
        return f"{format_address(address)} (0x{unsigned_view(address):x})"
    return format_address(address)


@dataclass
class ScenarioResult:
    """Addresses and sweep reports of a completed run."""

    thread_address: int
    object_address: int
    object_sweep: SweepReport
    thread_sweep: SweepReport | None = None
    transitions: list[StateTransition] = field(default_factory=list)


class ScenarioRunner:
    """Drive extraction, classification and sweeps against one command channel."""

    def __init__(
        self,
        *,
        channel: CommandChannel,
        profile: ProbeProfile | None = None,
        on_transition: TransitionCallback | None = None,
        on_probe: ProbeCallback | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._channel = channel
        self._profile = profile or ProbeProfile()
        self._on_transition = on_transition
        self._on_probe = on_probe
        self._logger = logger or LOGGER
        self._state = ScenarioState.INIT
        self._transitions: list[StateTransition] = []

    @property
    def state(self) -> ScenarioState:
        """Last state reached."""
        return self._state

    @property
    def transitions(self) -> tuple[StateTransition, ...]:
        return tuple(self._transitions)

    def _advance(self, state: ScenarioState, detail: str = "") -> None:
        if state.value != self._state.value + 1:
            raise RuntimeError(f"Illegal scenario transition {self._state.name} -> {state.name}.")
        self._state = state
        transition = StateTransition(state=state, detail=detail)
        self._transitions.append(transition)
        self._logger.info("Scenario state %s %s", state.name, detail)
        if self._on_transition is not None:
            self._on_transition(transition)

    def _sweep(self, address: int) -> SweepReport:
        return sweep_neighborhood(
            self._channel,
            address,
            lookback=self._profile.sweep.lookback,
            count=self._profile.sweep.count,
            on_probe=self._on_probe,
            logger=self._logger,
        )

    def run(self) -> ScenarioResult:
        """Run every step once, in order."""
        if self._state is not ScenarioState.INIT:
            raise RuntimeError("ScenarioRunner instances run only once.")
        profile = self._profile

        thread_address = extract_address(
            list_threads(self._channel), profile.thread_pattern, logger=self._logger
        )
        self._advance(ScenarioState.THREAD_ADDRESS_FOUND, format_address(thread_address))

        assert_classification(probe_address(self._channel, thread_address), Classification.THREAD)
        assert_classification(
            probe_address(self._channel, thread_address, verbose=True), Classification.THREAD
        )
        thread_sweep = self._sweep(thread_address) if profile.sweep_thread_neighborhood else None
        self._advance(ScenarioState.THREAD_CLASSIFIED, "thread, waiting")

        for sentinel in profile.sentinel_addresses:
            assert_classification(probe_address(self._channel, sentinel), Classification.UNSAFE)
        self._advance(
            ScenarioState.BAD_ADDRESSES_CHECKED,
            ", ".join(describe_sentinel(sentinel) for sentinel in profile.sentinel_addresses),
        )

        object_address = extract_address(
            list_threads(self._channel), profile.object_pattern, logger=self._logger
        )
        self._advance(ScenarioState.OBJECT_ADDRESS_FOUND, format_address(object_address))

        assert_classification(
            probe_address(self._channel, object_address),
            Classification.MANAGED_OBJECT,
            expected_field=profile.expected_field,
        )
        self._advance(ScenarioState.OBJECT_CLASSIFIED, profile.expected_field.describe())

        object_sweep = self._sweep(object_address)
        self._advance(
            ScenarioState.NEIGHBORHOOD_SWEPT,
            f"{object_sweep.probes} probes 0x{object_sweep.start:x}..0x{object_sweep.end:x}",
        )
        self._advance(ScenarioState.DONE)

        return ScenarioResult(
            thread_address=thread_address,
            object_address=object_address,
            object_sweep=object_sweep,
            thread_sweep=thread_sweep,
            transitions=list(self._transitions),
        )

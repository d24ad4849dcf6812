"""Interactive TUI that shows a scenario run as it progresses.

Usage:
    python -m src.app --main-class DcmdTestClass --tui

Controls:
    q: quit
"""

from __future__ import annotations

from src.channel.base import CommandChannel
from src.config.probe_profile import ProbeProfile
from src.probe.address import format_address
from src.probe.oracle import classify
from src.probe.probe import ProbeResponse
from src.probe.scenario import SCENARIO_FAILURES, ScenarioRunner, ScenarioState, StateTransition


class ScenarioTuiError(RuntimeError):
    """Raised when the scenario TUI cannot start."""


def format_transition_row(transition: StateTransition) -> tuple[str, str, str]:
    """Table cells (state, status, detail) for a reached state."""
    return (transition.state.name, "done", transition.detail)


def format_probe_status(probes: int, address: int, response: ProbeResponse) -> str:
    """Status line text for the latest sweep probe."""
    return f"sweep probes={probes} last={format_address(address)} -> {classify(response).name}"


def format_failure(state: ScenarioState, error: BaseException) -> str:
    """First line of a failure, prefixed with the state the run stopped at."""
    text = str(error)
    first_line = text.splitlines()[0] if text else type(error).__name__
    return f"failed after {state.name}: {first_line}"


def run_tui(*, channel: CommandChannel, profile: ProbeProfile) -> tuple[ScenarioState, BaseException | None]:
    """Run the scenario inside a Textual app.

    Returns the last state reached and the failure that stopped the run, if any.
    """
    try:
        from textual.app import App, ComposeResult
        from textual.binding import Binding
        from textual.widgets import DataTable, Footer, Header, Static
    except ModuleNotFoundError as import_error:  # pragma: no cover - dependency guard path
        raise ScenarioTuiError(
            "Missing dependency 'textual'. Install dependencies with `pip install -e .[dev]`."
        ) from import_error

    class ScenarioApp(App[None]):
        BINDINGS = [Binding("q", "quit", "Quit")]

        def __init__(self) -> None:
            super().__init__()
            self.runner = ScenarioRunner(
                channel=channel,
                profile=profile,
                on_transition=self._on_transition_from_worker,
                on_probe=self._on_probe_from_worker,
            )
            self.failure: BaseException | None = None
            self._probes = 0
            self._status_widget: Static | None = None
            self._table: DataTable | None = None

        def compose(self) -> ComposeResult:
            yield Header(show_clock=True)
            yield DataTable(id="state_table")
            yield Static("starting", id="status_line")
            yield Footer()

        def on_mount(self) -> None:
            self._table = self.query_one("#state_table", DataTable)
            self._status_widget = self.query_one("#status_line", Static)

            self._table.cursor_type = "none"
            self._table.zebra_stripes = True
            self._table.add_column("State", key="state")
            self._table.add_column("Status", key="status")
            self._table.add_column("Detail", key="detail")
            for state in ScenarioState:
                if state is not ScenarioState.INIT:
                    self._table.add_row(state.name, "pending", "", key=state.name)
            self.run_worker(self._run_scenario, thread=True, exclusive=True)

        def _run_scenario(self) -> None:
            try:
                self.runner.run()
            except SCENARIO_FAILURES as error:
                self.failure = error
                self.call_from_thread(self._show_status, format_failure(self.runner.state, error))
                return
            self.call_from_thread(self._show_status, f"passed, {self._probes} sweep probes")

        def _on_transition_from_worker(self, transition: StateTransition) -> None:
            self.call_from_thread(self._mark_state, transition)

        def _on_probe_from_worker(self, address: int, response: ProbeResponse) -> None:
            self._probes += 1
            self.call_from_thread(self._show_status, format_probe_status(self._probes, address, response))

        def _mark_state(self, transition: StateTransition) -> None:
            if self._table is None:
                return
            _, status, detail = format_transition_row(transition)
            self._table.update_cell(transition.state.name, "status", status)
            self._table.update_cell(transition.state.name, "detail", detail)

        def _show_status(self, text: str) -> None:
            if self._status_widget is not None:
                self._status_widget.update(text)

    app = ScenarioApp()
    app.run()
    return app.runner.state, app.failure

"""Command-line entrypoint for the `VM.debug find` verification scenario.

Usage:
    python -m src.app --pid 12345
    python -m src.app --main-class DcmdTestClass --tui
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from src.channel.attach import JcmdJvmBackend, JvmAttachError, attach_jvm, open_jcmd_channel
from src.config.probe_profile import ProbeProfileValidationError, load_probe_profile
from src.probe.scenario import SCENARIO_FAILURES, ScenarioResult, ScenarioRunner, ScenarioState


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="VM.debug find verification scenario")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--pid", type=int, help="PID of the JVM to inspect.")
    target.add_argument(
        "--main-class",
        help="Main class (or jar) of the JVM to inspect, as listed by `jcmd -l`.",
    )
    parser.add_argument(
        "--profile",
        type=Path,
        default=None,
        help="Optional path to a probe profile (default: src/config/probe_profile.json).",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO).",
    )
    parser.add_argument(
        "--tui",
        action="store_true",
        help="Show scenario progress in an interactive TUI.",
    )
    return parser


def _print_summary(result: ScenarioResult) -> None:
    for transition in result.transitions:
        print(f"{transition.state.name:<24} {transition.detail}")
    for report in (result.thread_sweep, result.object_sweep):
        if report is None:
            continue
        tally = ", ".join(
            f"{classification.name}={count}"
            for classification, count in sorted(report.classifications.items(), key=lambda item: item[0].name)
        )
        print(
            f"sweep 0x{report.start:x}..0x{report.end:x}: {report.probes} probes ({tally}), "
            f"{report.error_exits} non-zero exits"
        )


def main() -> None:
    """Attach to the target JVM and run the scenario once."""
    parser = _build_parser()
    args = parser.parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        profile = load_probe_profile(config_path=args.profile)
        attached = attach_jvm(
            pid=args.pid,
            main_class=args.main_class,
            backend=JcmdJvmBackend(
                executable=profile.jcmd.executable,
                timeout_seconds=profile.jcmd.timeout_seconds,
            ),
        )
    except (ProbeProfileValidationError, JvmAttachError) as error:
        raise SystemExit(f"Startup validation failed: {error}") from error

    channel = open_jcmd_channel(
        attached,
        executable=profile.jcmd.executable,
        timeout_seconds=profile.jcmd.timeout_seconds,
    )

    if args.tui:
        from src.probe.scenario_tui import run_tui

        state, failure = run_tui(channel=channel, profile=profile)
        if failure is not None:
            raise SystemExit(f"Scenario failed after {state.name}: {failure}")
        if state is not ScenarioState.DONE:
            raise SystemExit(f"Scenario interrupted after {state.name}.")
        print("VM.debug find scenario passed")
        return

    runner = ScenarioRunner(channel=channel, profile=profile)
    try:
        result = runner.run()
    except SCENARIO_FAILURES as error:
        raise SystemExit(f"Scenario failed after {runner.state.name}: {error}") from error

    _print_summary(result)
    print("VM.debug find scenario passed")


if __name__ == "__main__":
    main()

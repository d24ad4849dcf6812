"""Probe profile loading and schema validation."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from src.probe.address import parse_address
from src.probe.extractor import THREAD_ID_PATTERN, WAITING_ON_LOCK_PATTERN, ExtractionPattern
from src.probe.oracle import FieldExpectation
from src.probe.sweeper import DEFAULT_COUNT, DEFAULT_LOOKBACK

_SENTINEL_REGEX = re.compile(r"^(?:0x[0-9a-fA-F]+|-[0-9]+)$")
INT32_MIN = -(1 << 31)
INT32_MAX = (1 << 31) - 1


class ProbeProfileValidationError(RuntimeError):
    """Raised when the probe profile configuration is malformed."""


@dataclass(frozen=True)
class SweepSettings:
    """Neighborhood sweep geometry."""

    lookback: int = DEFAULT_LOOKBACK
    count: int = DEFAULT_COUNT


@dataclass(frozen=True)
class JcmdSettings:
    """Launcher settings for the jcmd command channel."""

    executable: str = "jcmd"
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class ProbeProfile:
    """Everything a scenario run needs besides the command channel."""

    version: int = 1
    thread_pattern: ExtractionPattern = THREAD_ID_PATTERN
    object_pattern: ExtractionPattern = WAITING_ON_LOCK_PATTERN
    sentinel_addresses: tuple[int, ...] = (0, -1)
    sweep: SweepSettings = field(default_factory=SweepSettings)
    sweep_thread_neighborhood: bool = True
    expected_field: FieldExpectation = field(default_factory=FieldExpectation)
    jcmd: JcmdSettings = field(default_factory=JcmdSettings)


def _default_config_path() -> Path:
    return Path(__file__).with_name("probe_profile.json")


def _error(message: str) -> ProbeProfileValidationError:
    return ProbeProfileValidationError(message)


def _require_key(data: dict[str, Any], key: str, expected_type: type | tuple[type, ...], where: str) -> Any:
    if key not in data:
        raise _error(f"Missing required key '{key}' in {where}.")
    value = data[key]
    # bool is an int subclass; never accept it where a number is required.
    if not isinstance(value, expected_type) or (isinstance(value, bool) and expected_type is not bool):
        type_name = (
            expected_type.__name__
            if isinstance(expected_type, type)
            else "/".join(item.__name__ for item in expected_type)
        )
        raise _error(
            f"Key '{key}' in {where} must be of type {type_name}, got {type(value).__name__}."
        )
    return value


def _parse_pattern(raw: dict[str, Any], where: str) -> ExtractionPattern:
    name = _require_key(raw, "name", str, where).strip()
    regex = _require_key(raw, "regex", str, where)
    group = _require_key(raw, "group", int, where)
    if not name:
        raise _error(f"{where}.name cannot be empty.")
    try:
        return ExtractionPattern.compile(name=name, regex=regex, group=group)
    except re.error as error:
        raise _error(f"{where}.regex does not compile: {error}") from error
    except ValueError as error:
        raise _error(f"{where}: {error}") from error


def _parse_sentinels(raw: list[Any]) -> tuple[int, ...]:
    if not raw:
        raise _error("sentinel_addresses must list at least one address.")
    sentinels: list[int] = []
    for index, value in enumerate(raw):
        if not isinstance(value, str) or not _SENTINEL_REGEX.fullmatch(value.strip()):
            raise _error(
                f"sentinel_addresses[{index}] must be a hex string like 0x0 or a negative sentinel like -1."
            )
        sentinels.append(parse_address(value))
    return tuple(sentinels)


def _parse_sweep(raw: dict[str, Any]) -> SweepSettings:
    lookback = _require_key(raw, "lookback", int, "sweep")
    count = _require_key(raw, "count", int, "sweep")
    if lookback < 0:
        raise _error("sweep.lookback must be >= 0.")
    if count < 1:
        raise _error("sweep.count must be >= 1.")
    return SweepSettings(lookback=lookback, count=count)


def _parse_expected_field(raw: dict[str, Any]) -> FieldExpectation:
    name = _require_key(raw, "name", str, "expected_field").strip()
    type_tag = _require_key(raw, "type_tag", str, "expected_field").strip()
    value = _require_key(raw, "value", int, "expected_field")
    if not name:
        raise _error("expected_field.name cannot be empty.")
    if type_tag != "I":
        raise _error(f"expected_field.type_tag must be 'I' (32-bit int), got '{type_tag}'.")
    if not INT32_MIN <= value <= INT32_MAX:
        raise _error(f"expected_field.value {value} does not fit a 32-bit int.")
    return FieldExpectation(name=name, type_tag=type_tag, value=value)


def _parse_jcmd(raw: dict[str, Any]) -> JcmdSettings:
    executable = _require_key(raw, "executable", str, "jcmd").strip()
    timeout_seconds = _require_key(raw, "timeout_seconds", (int, float), "jcmd")
    if not executable:
        raise _error("jcmd.executable cannot be empty.")
    if timeout_seconds <= 0:
        raise _error("jcmd.timeout_seconds must be > 0.")
    return JcmdSettings(executable=executable, timeout_seconds=float(timeout_seconds))


def load_probe_profile(config_path: Path | None = None) -> ProbeProfile:
    """Load and validate the probe profile configuration."""
    path = config_path or _default_config_path()
    try:
        raw = json.loads(path.read_text(encoding="ascii"))
    except FileNotFoundError as error:
        raise _error(f"Probe profile not found: {path}.") from error
    except json.JSONDecodeError as error:
        raise _error(f"Probe profile is not valid JSON ({path}): {error}") from error

    if not isinstance(raw, dict):
        raise _error(f"Probe profile must be a JSON object: {path}.")

    version = _require_key(raw, "version", int, "root")
    if version < 1:
        raise _error("Probe profile version must be >= 1.")

    return ProbeProfile(
        version=version,
        thread_pattern=_parse_pattern(_require_key(raw, "thread_pattern", dict, "root"), "thread_pattern"),
        object_pattern=_parse_pattern(_require_key(raw, "object_pattern", dict, "root"), "object_pattern"),
        sentinel_addresses=_parse_sentinels(_require_key(raw, "sentinel_addresses", list, "root")),
        sweep=_parse_sweep(_require_key(raw, "sweep", dict, "root")),
        sweep_thread_neighborhood=_require_key(raw, "sweep_thread_neighborhood", bool, "root"),
        expected_field=_parse_expected_field(_require_key(raw, "expected_field", dict, "root")),
        jcmd=_parse_jcmd(_require_key(raw, "jcmd", dict, "root")),
    )


def ensure_probe_profile_valid(config_path: Path | None = None) -> None:
    """Validate the probe profile and raise on malformed content."""
    load_probe_profile(config_path=config_path)

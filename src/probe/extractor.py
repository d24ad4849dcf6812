"""Extraction of candidate addresses from diagnostic text."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

LOGGER = logging.getLogger(__name__)

_HEX_DIGITS_REGEX = re.compile(r"[0-9a-fA-F]+")


class ExtractionFailure(AssertionError):
    """Raised when no line of the searched text matches an extraction pattern."""

    def __init__(self, pattern: ExtractionPattern, text: str, *, reason: str | None = None) -> None:
        summary = reason or f"Failed to find '{pattern.regex.pattern}' ({pattern.name})"
        super().__init__(f"{summary} in output:\n{text}")
        self.pattern = pattern
        self.text = text
        self.reason = reason


@dataclass(frozen=True)
class ExtractionPattern:
    """Named pattern plus the 1-based capture group holding hex address digits."""

    name: str
    regex: re.Pattern[str]
    group: int = 1

    def __post_init__(self) -> None:
        if self.group < 1:
            raise ValueError("group must be >= 1.")
        if self.regex.groups < self.group:
            raise ValueError(
                f"Pattern '{self.name}' has {self.regex.groups} groups, cannot use group {self.group}."
            )

    @classmethod
    def compile(cls, name: str, regex: str, group: int = 1) -> ExtractionPattern:
        """Build a pattern from regex source text."""
        return cls(name=name, regex=re.compile(regex), group=group)


def waiting_on_lock_pattern(lock_class: str) -> ExtractionPattern:
    """Pattern for a thread waiting on a monitor of the given class."""
    return ExtractionPattern.compile(
        name=f"waiting_on_{lock_class}",
        regex=rf"- waiting on <0x([0-9a-fA-F]+)> \(a {re.escape(lock_class)}\)",
    )


#  tid=0x0000153418029c20
THREAD_ID_PATTERN = ExtractionPattern.compile(name="thread_id", regex=r" tid=0x([0-9a-fA-F]+) ")

# - waiting on <0x00000007dd0135e8> (a MyLock)
WAITING_ON_LOCK_PATTERN = waiting_on_lock_pattern("MyLock")


def extract_address(
    text: str,
    pattern: ExtractionPattern,
    *,
    logger: logging.Logger | None = None,
) -> int:
    """Return the address captured on the first matching line of text."""
    active_logger = logger or LOGGER
    for line in text.splitlines():
        match = pattern.regex.search(line)
        if match is None:
            continue
        captured = match.group(pattern.group)
        if captured is None or not _HEX_DIGITS_REGEX.fullmatch(captured):
            raise ExtractionFailure(
                pattern,
                text,
                reason=f"Pattern '{pattern.name}' captured non-hex address {captured!r} on line {line!r}",
            )
        address = int(captured, 16)
        active_logger.info("Matched line: %s", line)
        active_logger.info("Found '%s', using pointer: 0x%x", pattern.name, address)
        return address
    raise ExtractionFailure(pattern, text)

"""Classification oracle for `VM.debug find` responses.

Responses are semi-structured prose, so classification is decided by the
presence of fixed marker substrings rather than by parsing a grammar. The
one structured piece read here is the object fields section, e.g.::

    0x00000007dd0135e8 is an oop: MyLock
    {0x00000007dd0135e8} - klass: 'MyLock'
     - ---- fields (total size 2 words):
     - private 'myInt' 'I' @12  12345 (0x00003039)
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass

from src.probe.probe import ProbeResponse

THREAD_MARKER = " is a thread"
THREAD_WAITING_MARKER = "java.lang.Thread.State: WAITING"
OBJECT_MARKER = " is an oop: "
FIELDS_MARKER = " - ---- fields (total size"
UNSAFE_MARKER = "address not safe"

_FIELD_LINE_REGEX = re.compile(
    r"^\s*- (?P<modifiers>(?:[a-z]+ )*)'(?P<name>[^']+)' '(?P<type_tag>[^']+)' "
    r"@(?P<offset>\d+)\s+(?P<value>.*?)\s*$"
)


class Classification(enum.Enum):
    """What a probed address was reported to be."""

    THREAD = "thread"
    MANAGED_OBJECT = "managed_object"
    UNSAFE = "unsafe"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ObjectField:
    """One instance field line of an object description."""

    modifiers: tuple[str, ...]
    name: str
    type_tag: str
    offset: int
    value: str


@dataclass(frozen=True)
class FieldExpectation:
    """Integer field the fixture object is expected to report."""

    name: str = "myInt"
    type_tag: str = "I"
    value: int = 12345

    @property
    def hex_text(self) -> str:
        # Negative ints are printed as their 32-bit two's complement.
        return f"0x{self.value & 0xFFFFFFFF:x}" if self.value < 0 else f"0x{self.value:x}"

    def describe(self) -> str:
        if 0 <= self.value <= 9:
            return f"field '{self.name}' '{self.type_tag}' = {self.value}"
        return f"field '{self.name}' '{self.type_tag}' = {self.value} ({self.hex_text})"

    def matches(self, field: ObjectField) -> bool:
        """Return whether a parsed field line shows this name, type and value."""
        if field.name != self.name or field.type_tag != self.type_tag:
            return False
        if 0 <= self.value <= 9:
            # No hex hint is printed for single-digit values.
            return field.value == str(self.value)
        hex_digits = self.hex_text[2:]
        value_regex = rf"{self.value} \((?i:0x0*{hex_digits})\)"
        return re.fullmatch(value_regex, field.value) is not None


class ClassificationMismatch(AssertionError):
    """Raised when a response lacks the markers of the expected classification."""

    def __init__(
        self,
        *,
        expected: Classification,
        text: str,
        missing: tuple[str, ...] = (),
        unexpected: tuple[str, ...] = (),
    ) -> None:
        details = []
        if missing:
            details.append(f"missing {list(missing)}")
        if unexpected:
            details.append(f"unexpected {list(unexpected)}")
        super().__init__(
            f"Expected classification {expected.name}: {'; '.join(details)}. Response:\n{text}"
        )
        self.expected = expected
        self.text = text
        self.missing = missing
        self.unexpected = unexpected


def _response_text(response: ProbeResponse | str) -> str:
    return response.text if isinstance(response, ProbeResponse) else response


def parse_object_fields(text: str) -> tuple[ObjectField, ...]:
    """Parse instance field lines following the fields section header."""
    fields: list[ObjectField] = []
    in_fields = False
    for line in text.splitlines():
        if FIELDS_MARKER in line:
            in_fields = True
            continue
        if not in_fields:
            continue
        match = _FIELD_LINE_REGEX.match(line)
        if match is None:
            continue
        fields.append(
            ObjectField(
                modifiers=tuple(match.group("modifiers").split()),
                name=match.group("name"),
                type_tag=match.group("type_tag"),
                offset=int(match.group("offset")),
                value=match.group("value"),
            )
        )
    return tuple(fields)


def classify(response: ProbeResponse | str) -> Classification:
    """Derive the classification a response shows from its markers."""
    text = _response_text(response)
    is_thread = THREAD_MARKER in text
    is_object = OBJECT_MARKER in text
    is_unsafe = UNSAFE_MARKER in text

    if is_unsafe and not (is_thread or is_object):
        return Classification.UNSAFE
    if is_thread and not (is_object or is_unsafe):
        return Classification.THREAD
    if is_object and not (is_thread or is_unsafe):
        return Classification.MANAGED_OBJECT
    return Classification.UNKNOWN


def assert_classification(
    response: ProbeResponse | str,
    expected: Classification,
    *,
    verbose: bool | None = None,
    expected_field: FieldExpectation | None = None,
) -> None:
    """Assert that a response carries the markers of the expected classification.

    ``verbose`` defaults to the probe's own mode when a ProbeResponse is given.
    """
    text = _response_text(response)
    if verbose is None:
        verbose = response.verbose if isinstance(response, ProbeResponse) else False

    missing: list[str] = []
    unexpected: list[str] = []

    if expected is Classification.THREAD:
        required = [THREAD_MARKER]
        if verbose:
            required.append(THREAD_WAITING_MARKER)
        missing = [marker for marker in required if marker not in text]
    elif expected is Classification.MANAGED_OBJECT:
        missing = [marker for marker in (OBJECT_MARKER, FIELDS_MARKER) if marker not in text]
        if expected_field is not None and not any(
            expected_field.matches(field) for field in parse_object_fields(text)
        ):
            missing.append(expected_field.describe())
    elif expected is Classification.UNSAFE:
        missing = [UNSAFE_MARKER] if UNSAFE_MARKER not in text else []
        unexpected = [
            marker for marker in (THREAD_MARKER, OBJECT_MARKER, FIELDS_MARKER) if marker in text
        ]
    else:
        raise ValueError(f"{expected.name} is not an assertable classification.")

    if missing or unexpected:
        raise ClassificationMismatch(
            expected=expected,
            text=text,
            missing=tuple(missing),
            unexpected=tuple(unexpected),
        )

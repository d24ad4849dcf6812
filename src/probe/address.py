"""Address text formatting and parsing helpers."""

from __future__ import annotations

import re

# "-1" as understood by the inspected process on a 64-bit VM.
MAX_UNSIGNED_SENTINEL = (1 << 64) - 1

_HEX_ADDRESS_REGEX = re.compile(r"^(?:0[xX])?([0-9a-fA-F]+)$")
_NEGATIVE_SENTINEL_REGEX = re.compile(r"^-[0-9]+$")


def format_address(address: int) -> str:
    """Render an address the way probe commands expect it.

    Non-negative addresses become ``0x`` plus unpadded lowercase hex.
    Negative sentinels are rendered literally (``-1``) so the inspected
    process performs its own input validation on them.
    """
    if not isinstance(address, int) or isinstance(address, bool):
        raise TypeError(f"Address must be int, got {type(address).__name__}.")
    if address < 0:
        return str(address)
    return f"0x{address:x}"


def parse_address(text: str) -> int:
    """Parse hex address text (optional ``0x`` prefix) or a negative sentinel."""
    stripped = text.strip()
    if _NEGATIVE_SENTINEL_REGEX.fullmatch(stripped):
        return int(stripped)
    match = _HEX_ADDRESS_REGEX.fullmatch(stripped)
    if match is None:
        raise ValueError(f"Not a hex address: {text!r}.")
    return int(match.group(1), 16)


def unsigned_view(address: int, *, width_bits: int = 64) -> int:
    """Return the unsigned value a negative sentinel denotes at a word width."""
    if address >= 0:
        return address
    return address & ((1 << width_bits) - 1)

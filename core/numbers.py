from __future__ import annotations

import re

U64_MASK = 0xFFFFFFFFFFFFFFFF

_DECIMAL_RE = re.compile(r"\s*([+-]?)(\d*)")
_AUTO_BASE_RE = re.compile(r"\s*([+-]?)(0[xX][0-9A-Fa-f]+|0[0-7]*|[1-9]\d*)?")


def clamp_u64(value: int) -> int:
    return value & U64_MASK


def parse_decimal(text: str) -> int:
    """Parse a decimal integer the way C ``atoi`` does.

    Leading whitespace and a sign are accepted, parsing stops at the first
    non-digit and text without any leading digits yields 0.
    """
    match = _DECIMAL_RE.match(text)
    if not match or not match.group(2):
        return 0
    value = int(match.group(2), 10)
    return -value if match.group(1) == "-" else value


def parse_auto_base(text: str) -> int:
    """Parse an unsigned 64-bit integer the way ``strtoull(text, NULL, 0)`` does.

    ``0x`` selects hex, a leading ``0`` selects octal, anything else is
    decimal. Only the longest valid prefix is used, unparsable text yields 0,
    negative values wrap and values past 64 bits saturate.
    """
    match = _AUTO_BASE_RE.match(text)
    if not match or not match.group(2):
        return 0
    digits = match.group(2)
    if digits[:2].lower() == "0x":
        value = int(digits[2:], 16)
    elif digits.startswith("0"):
        value = int(digits, 8)
    else:
        value = int(digits, 10)
    if value > U64_MASK:
        return U64_MASK
    if match.group(1) == "-":
        return clamp_u64(-value)
    return value


def parse_strict(text: str) -> int:
    """Strict variant used for config and command-line values."""
    raw = text.strip()
    if raw.lower().startswith("0x"):
        return int(raw, 16)
    return int(raw, 10)


def parse_address(text: str) -> int:
    value = parse_strict(text)
    if value < 0:
        raise ValueError(f"address must not be negative: {text!r}")
    return value

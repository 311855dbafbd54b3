"""
DP number canonicalization.

Every identifier stored by the API has the form ``DP`` + digits, where the
digits are the natural decimal form of a positive integer left-padded with
zeros to width 4 (``DP0042``). Values with 5 or more digits keep their
natural width (``DP12345``).
"""

from __future__ import annotations

import re
from typing import Any, Iterable

from app.core.errors import InvalidIdentifierFormatError

DP_PREFIX = "DP"
DP_MIN_DIGITS = 4

CANONICAL_PATTERN = re.compile(r"^DP(?!0{4}$)(?:[0-9]{4}|[1-9][0-9]{4,})$")
INTEGER_PATTERN = re.compile(r"^([+-]?)([0-9]+)$")
DECIMAL_PATTERN = re.compile(r"^[+-]?[0-9]*\.[0-9]*$")
PREFIX_PATTERN = re.compile(r"^dp", re.IGNORECASE)


def canonicalize_dp_number(raw: Any) -> str:
    """
    Turn a raw token (``"12"``, ``" dp12 "``, ``12``) into ``DP0012``.

    Raises InvalidIdentifierFormatError for anything that is not a positive
    base-10 integer once the optional ``DP`` prefix is removed.
    """
    if raw is None or isinstance(raw, bool):
        raise InvalidIdentifierFormatError(raw, "missing value")

    try:
        text = str(raw).strip()
    except ValueError:
        # int too large for str(); cannot be echoed back either
        raise InvalidIdentifierFormatError("<integer>", "too many digits") from None
    text = PREFIX_PATTERN.sub("", text, count=1).strip()
    if not text:
        raise InvalidIdentifierFormatError(raw, "missing digits")
    if DECIMAL_PATTERN.match(text):
        raise InvalidIdentifierFormatError(raw, "decimal values are not allowed")
    match = INTEGER_PATTERN.match(text)
    if not match:
        raise InvalidIdentifierFormatError(raw, "not a base-10 integer")

    # Work on the digit string; int() refuses very long literals.
    sign, digits = match.groups()
    digits = digits.lstrip("0")
    if not digits or sign == "-":
        raise InvalidIdentifierFormatError(raw, "must be greater than zero")

    return f"{DP_PREFIX}{digits.zfill(DP_MIN_DIGITS)}"


def is_canonical_dp_number(value: Any) -> bool:
    return isinstance(value, str) and CANONICAL_PATTERN.match(value) is not None


def dp_number_key(number: str) -> tuple[int, str]:
    """Numeric ordering key for a DP number without converting it to int."""
    digits = number[len(DP_PREFIX):] if number.upper().startswith(DP_PREFIX) else number
    digits = digits.lstrip("0")
    return len(digits), digits


def find_repeated_numbers(numbers: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    repeated: list[str] = []
    for number in numbers:
        if number in seen and number not in repeated:
            repeated.append(number)
        seen.add(number)
    return repeated


def sort_dp_numbers(numbers: Iterable[str]) -> list[str]:
    return sorted(set(numbers), key=dp_number_key)

"""GP amount parsing.

Accepted grammar (case-insensitive): ``^[0-9,.]+[kmb]?$``. Commas are
thousands separators; a trailing ``k``/``m``/``b`` multiplies by 1e3/1e6/1e9.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Tuple

# GP is an unsigned 64-bit amount
MAX_GP = 2**64 - 1

_GP_PATTERN = re.compile(r"^([0-9,.]+)([kmb]?)$", re.IGNORECASE)

_MULTIPLIERS = {
    "": Decimal(1),
    "k": Decimal(1_000),
    "m": Decimal(1_000_000),
    "b": Decimal(1_000_000_000),
}


def parse_gp(text: str) -> Tuple[int, bool]:
    """Return ``(value, ok)``; ``ok`` is False for anything outside the grammar."""
    if not isinstance(text, str):
        return 0, False

    match = _GP_PATTERN.match(text.strip())
    if not match:
        return 0, False

    digits, suffix = match.groups()
    digits = digits.replace(",", "")
    if not digits or digits.count(".") > 1 or digits == ".":
        return 0, False

    try:
        amount = Decimal(digits) * _MULTIPLIERS[suffix.lower()]
    except InvalidOperation:
        return 0, False

    value = int(amount)
    if value <= 0 or value > MAX_GP:
        return 0, False
    return value, True


def format_gp(value: int) -> str:
    """Compact display form (e.g. ``1.5M``)."""
    for threshold, suffix in ((1_000_000_000, "B"), (1_000_000, "M"), (1_000, "K")):
        if value >= threshold:
            scaled = value / threshold
            text = f"{scaled:.2f}".rstrip("0").rstrip(".")
            return f"{text}{suffix}"
    return str(value)


__all__ = ["MAX_GP", "format_gp", "parse_gp"]

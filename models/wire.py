"""Wire-format number conversion.

The backend item store serializes every numeric field as a string. All
parsing and formatting of those strings goes through this module so that
"unparseable means absent" is enforced in one place.
"""

import math
from typing import Any, Optional

_CURRENCY_CHARS = ("$", ",")


def parse_wire_number(value: Any) -> Optional[float]:
    """Parse a wire value into a finite float.

    Accepts ints, floats and numeric strings (surrounding whitespace and
    ``$``/``,`` decoration are ignored). Returns None for None, booleans,
    blank or non-numeric strings, NaN and infinities. Never raises.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        for char in _CURRENCY_CHARS:
            text = text.replace(char, "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_positive(value: Any) -> Optional[float]:
    """Return the parsed number if it is strictly positive, else None."""
    number = parse_wire_number(value)
    if number is None or number <= 0:
        return None
    return number


def parse_quantity(value: Any, default: int = 1) -> int:
    """Parse a quantity as an integer >= 1, falling back to ``default``."""
    number = parse_wire_number(value)
    if number is None:
        return default
    quantity = int(number)
    return quantity if quantity >= 1 else default


def format_wire_number(value: Any, default: str = "0") -> str:
    """Serialize a number for the wire.

    Integral values drop the fractional part (``25.0`` -> ``"25"``); other
    values use the shortest round-tripping representation.
    """
    number = parse_wire_number(value)
    if number is None:
        return default
    if number.is_integer():
        return str(int(number))
    return repr(number)

"""Display formatting helpers."""

from typing import Optional

from models.wire import parse_wire_number


def format_number(value: float, max_decimals: int = 3) -> str:
    """Thousands-separated number, trailing zeros dropped (``1234.5`` -> ``1,234.5``)."""
    number = parse_wire_number(value) or 0.0
    if number.is_integer():
        return f"{int(number):,}"
    text = f"{number:,.{max_decimals}f}".rstrip("0").rstrip(".")
    return text


def format_currency(value: float, decimals: int = 0) -> str:
    """US dollar amount, e.g. ``$15,000``."""
    number = parse_wire_number(value) or 0.0
    sign = "-" if number < 0 else ""
    return f"{sign}${abs(number):,.{decimals}f}"


def format_total_display(total: float, error: Optional[str] = None, loading: bool = False) -> str:
    """Total as shown next to the item table, with any persist error inline."""
    if loading:
        return "Loading..."
    display = format_currency(total, decimals=2)
    if error:
        display = f"{display} (Error: {error})"
    return display

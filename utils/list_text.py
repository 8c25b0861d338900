"""Plain-text list view of line items.

One item per line::

    Concrete Foundation - 500 sq ft - $15,000 - $18,500

Fields are name, measurement, unit price and proposed bid, separated by
`` - ``. Parsing is lenient: a missing name becomes ``Item <n>`` and money
that does not parse becomes 0.
"""

import uuid
from typing import Iterable, List

from models.line_item import LineItem
from models.wire import parse_wire_number
from utils.formatters import format_number

SEPARATOR = " - "


def format_list_text(items: Iterable[LineItem]) -> str:
    return "\n".join(
        SEPARATOR.join([
            item.name,
            item.measurement,
            f"${format_number(item.unit_price)}",
            f"${format_number(item.proposed_total)}",
        ])
        for item in items
    )


def _money(part: str) -> float:
    number = parse_wire_number(part)
    return number if number is not None and number > 0 else 0.0


def parse_list_text(text: str) -> List[LineItem]:
    """Parse list text into new, unsynced line items (blank lines skipped)."""
    lines = [line for line in text.split("\n") if line.strip()]
    items = []
    for index, line in enumerate(lines):
        parts = [part.strip() for part in line.split(SEPARATOR)]
        parts += [""] * (4 - len(parts))
        items.append(LineItem(
            id=f"new_{uuid.uuid4().hex}",
            name=parts[0] or f"Item {index + 1}",
            measurement=parts[1] or "TBD",
            unit_price=_money(parts[2]),
            proposed_total=_money(parts[3]),
        ))
    return items

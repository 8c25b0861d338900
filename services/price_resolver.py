"""Price resolution for bid line items.

Upstream stages (manual entry, price-list matching, automated calculation)
each leave their own price fields on a record. These pure functions pick one
canonical value from them by fixed precedence. A candidate that is missing,
unparseable, zero or negative is skipped; when every candidate is skipped the
result is 0.

The functions never cache: any candidate can change independently between
edits, so callers resolve again on every change.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

from pydantic import BaseModel

from models.line_item import LineItem
from models.wire import parse_positive, parse_quantity

PriceSource = Union[Mapping[str, Any], BaseModel]

# Dotted paths into a record, in precedence order.
UNIT_PRICE_PATHS: Tuple[str, ...] = (
    "calculatedUnitPrice",
    "priceCalculation.unitPrice",
    "pricesheetMatch.itemPrice",
    "pricing",
    "price",
    "unitPrice",
    "originalData.price",
)

CALCULATED_TOTAL_PATHS: Tuple[str, ...] = (
    "calculatedTotalPrice",
    "priceCalculation.totalPrice",
)

LEGACY_TOTAL_PATHS: Tuple[str, ...] = (
    "totalPrice",
    "proposedBid",
    "pricing",
    "originalData.proposedBid",
)

PROPOSED_BID_PATHS: Tuple[str, ...] = (
    "proposedBid",
    "calculatedTotalPrice",
    "priceCalculation.totalPrice",
    "totalPrice",
    "pricing",
    "price",
)

QUANTITY_PATHS: Tuple[str, ...] = (
    "measurements.quantity",
    "quantity",
)


@dataclass(frozen=True)
class ResolvedPrices:
    """Canonical prices for one record."""

    unit_price: float
    total_price: float
    proposed_bid: float
    quantity: int


def _as_mapping(record: PriceSource) -> Mapping[str, Any]:
    if isinstance(record, LineItem):
        return record.price_fields()
    if isinstance(record, BaseModel):
        return record.model_dump(by_alias=True)
    if isinstance(record, Mapping):
        return record
    return {}


def _lookup(record: Mapping[str, Any], path: str) -> Any:
    value: Any = record
    for key in path.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(key)
    return value


def first_positive(record: Mapping[str, Any], paths: Iterable[str]) -> Optional[float]:
    """Return the first strictly positive number found along ``paths``."""
    for path in paths:
        number = parse_positive(_lookup(record, path))
        if number is not None:
            return number
    return None


def resolve_quantity(record: PriceSource) -> int:
    """Quantity of a record, defaulting to 1."""
    data = _as_mapping(record)
    for path in QUANTITY_PATHS:
        value = _lookup(data, path)
        if value is not None and value != "":
            return parse_quantity(value)
    return 1


def resolve_unit_price(record: PriceSource) -> float:
    """Canonical unit price.

    Precedence: calculatedUnitPrice, priceCalculation.unitPrice,
    pricesheetMatch.itemPrice, pricing, price, unitPrice.
    """
    return first_positive(_as_mapping(record), UNIT_PRICE_PATHS) or 0.0


def resolve_total_price(record: PriceSource) -> float:
    """Canonical total price.

    Precedence: calculatedTotalPrice, priceCalculation.totalPrice,
    unit price x quantity (when a unit price resolves), then the legacy
    totalPrice, proposedBid and pricing fields.
    """
    data = _as_mapping(record)
    calculated = first_positive(data, CALCULATED_TOTAL_PATHS)
    if calculated is not None:
        return calculated
    unit_price = resolve_unit_price(data)
    if unit_price > 0:
        return unit_price * resolve_quantity(data)
    return first_positive(data, LEGACY_TOTAL_PATHS) or 0.0


def resolve_proposed_bid(record: PriceSource) -> float:
    """The amount actually bid for a record.

    An explicit proposedBid always wins, so a human override is never
    replaced by a recalculation. After that: calculatedTotalPrice,
    priceCalculation.totalPrice, totalPrice, pricing, price. If none of those
    is usable the derived total price is returned.
    """
    data = _as_mapping(record)
    proposed = first_positive(data, PROPOSED_BID_PATHS)
    if proposed is not None:
        return proposed
    return resolve_total_price(data)


def resolve_prices(record: PriceSource) -> ResolvedPrices:
    """Resolve every canonical price of a record at once."""
    data = _as_mapping(record)
    return ResolvedPrices(
        unit_price=resolve_unit_price(data),
        total_price=resolve_total_price(data),
        proposed_bid=resolve_proposed_bid(data),
        quantity=resolve_quantity(data),
    )


def sum_proposed_bids(items: Iterable[PriceSource]) -> float:
    """Sum of proposed bids across items, rounded to cents."""
    return round(sum(resolve_proposed_bid(item) for item in items), 2)

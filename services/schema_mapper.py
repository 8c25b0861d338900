"""Schema mapping between stored demolition records and UI line items.

Forward: backend payload -> ``ItemsEnvelope`` -> ``LineItem`` list.
Reverse: ``LineItem`` -> ``DemolitionRecord`` ready to send.

Neither direction drops an item. Missing names, measurements and ids are
replaced by placeholders, and backend fields the UI model does not know
about are carried in ``LineItem.extra`` and written back unchanged.
"""

import time
import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence

import structlog

from models.categories import to_backend_category, to_ui_category
from models.demolition_record import DemolitionRecord
from models.envelope import ItemsEnvelope, normalize_items_payload
from models.line_item import ItemOrigin, LineItem
from models.wire import format_wire_number, parse_quantity
from services.price_resolver import resolve_prices, resolve_proposed_bid

logger = structlog.get_logger()

UNNAMED_ITEM = "Unnamed Item"
NO_DESCRIPTION = "No description"
UNKNOWN_MEASUREMENT = "TBD"
DEFAULT_UNIT = "Each"
DEFAULT_ACTION = "Remove"
NEW_ITEM_NUMBER_PREFIX = "bid_item"

# Record fields folded into LineItem attributes. Everything else goes to ``extra``.
CONSUMED_FIELDS = frozenset({
    "itemNumber",
    "name",
    "description",
    "category",
    "measurement",
    "measurements",
    "quantity",
    "unit",
    "pricing",
    "unitPrice",
    "price",
    "totalPrice",
    "proposedBid",
    "notes",
    "calculatedUnitPrice",
    "calculatedTotalPrice",
    "pricesheetMatch",
    "priceCalculation",
})

# Aliases accepted by ``apply_edit`` for LineItem attributes.
EDIT_FIELD_ALIASES = {
    "price": "unit_price",
    "pricing": "unit_price",
    "unitPrice": "unit_price",
    "proposedBid": "proposed_total",
    "calculatedUnitPrice": "calculated_unit_price",
    "calculatedTotalPrice": "calculated_total_price",
}

EDITABLE_FIELDS = frozenset({
    "name",
    "measurement",
    "quantity",
    "unit",
    "category",
    "unit_price",
    "proposed_total",
    "description",
    "notes",
    "calculated_unit_price",
    "calculated_total_price",
})

_CENT = 0.005


def _text(value: Any) -> Optional[str]:
    """Stripped string form of a value, or None when blank."""
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _first_text(*values: Any) -> Optional[str]:
    for value in values:
        text = _text(value)
        if text is not None:
            return text
    return None


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def new_item_token() -> str:
    """Fresh unique identifier for a record that arrived without one."""
    return str(uuid.uuid4())


def new_item_number(index: int, now_ms: Optional[int] = None) -> str:
    """Backend key for a new item: timestamp plus its ordinal in the batch."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{NEW_ITEM_NUMBER_PREFIX}_{now_ms}_{index}"


# =============================================================================
# Forward: storage -> UI
# =============================================================================


def record_to_line_item(record: Mapping[str, Any]) -> LineItem:
    """Map one stored record to a LineItem.

    Args:
        record: A DemolitionRecord-shaped dict, possibly partial or legacy.

    Returns:
        LineItem with placeholders for anything unusable.
    """
    original = _dict(record.get("originalData"))
    snapshot = _dict(record.get("originalBidItem"))

    name = _first_text(
        record.get("name"),
        record.get("description"),
        original.get("description"),
        snapshot.get("name"),
    ) or UNNAMED_ITEM

    category = to_ui_category(_first_text(original.get("category"), record.get("category")))

    measurements = _dict(record.get("measurements")) or _dict(original.get("measurements"))
    raw_quantity = measurements.get("quantity")
    if _text(raw_quantity) is None:
        raw_quantity = record.get("quantity")
    quantity = parse_quantity(raw_quantity)
    unit_text = _first_text(measurements.get("unit"), record.get("unit"))
    unit = unit_text or DEFAULT_UNIT

    measurement = _text(record.get("measurement"))
    if measurement is None:
        if _text(raw_quantity) is not None or unit_text is not None:
            measurement = f"{quantity} {unit}"
        else:
            measurement = UNKNOWN_MEASUREMENT

    prices = resolve_prices(record)
    item_id = _first_text(record.get("itemNumber"), record.get("id"), record.get("_id")) or new_item_token()

    return LineItem(
        id=item_id,
        name=name,
        measurement=measurement,
        quantity=quantity,
        unit=unit,
        category=category.value,
        unit_price=prices.unit_price,
        proposed_total=prices.proposed_bid,
        description=_first_text(record.get("description"), original.get("description")),
        notes=_text(record.get("notes")),
        calculated_unit_price=record.get("calculatedUnitPrice"),
        calculated_total_price=record.get("calculatedTotalPrice"),
        pricesheet_match=record.get("pricesheetMatch") if isinstance(record.get("pricesheetMatch"), dict) else None,
        price_calculation=record.get("priceCalculation") if isinstance(record.get("priceCalculation"), dict) else None,
        measurements=measurements or None,
        extra={key: value for key, value in record.items() if key not in CONSUMED_FIELDS},
        derived_total=resolve_proposed_bid({key: value for key, value in record.items() if key != "proposedBid"}),
        origin=ItemOrigin.DEMOLITION,
    )


def envelope_to_line_items(envelope: ItemsEnvelope) -> List[LineItem]:
    """Map every record of a normalized envelope."""
    return [record_to_line_item(record) for record in envelope.records]


def map_items_payload(payload: Any) -> List[LineItem]:
    """Normalize a demolition-items payload and map its records.

    Args:
        payload: Decoded JSON body from the backend.

    Returns:
        LineItems in backend order; empty when no items were found.
    """
    envelope = normalize_items_payload(payload)
    items = envelope_to_line_items(envelope)
    logger.info(
        "demolition_items_mapped",
        envelope=envelope.kind.value,
        count=len(items),
        skipped=envelope.skipped,
    )
    return items


# =============================================================================
# Reverse: UI -> storage
# =============================================================================


def has_price_override(item: LineItem) -> bool:
    """True when the proposed total differs from what the price fields derive.

    Items read from storage compare against the total their record resolved
    to, since fields such as ``totalPrice`` are not kept on the item.
    """
    if item.proposed_total <= 0:
        return False
    baseline = item.derived_total
    if baseline is None:
        fields = item.price_fields()
        fields.pop("proposedBid", None)
        baseline = resolve_proposed_bid(fields)
    return abs(item.proposed_total - baseline) > _CENT


def line_item_to_record(item: LineItem, index: int = 0, now_ms: Optional[int] = None) -> DemolitionRecord:
    """Map a LineItem to the storage record sent to the backend.

    Args:
        item: The UI item.
        index: Ordinal of the item within the batch being written.
        now_ms: Timestamp used for new item numbers (defaults to now).

    Returns:
        DemolitionRecord with every numeric field serialized as a string.
    """
    item_number = new_item_number(index, now_ms) if item.is_temporary else item.id

    measurements = dict(item.measurements or {})
    measurements["quantity"] = str(item.quantity)
    measurements["unit"] = _first_text(item.unit, item.measurement) or DEFAULT_UNIT
    measurements.setdefault("dimensions", None)

    payload: Dict[str, Any] = dict(item.extra)
    payload.update({
        "itemNumber": item_number,
        "name": item.name,
        "description": _first_text(item.description, item.name) or NO_DESCRIPTION,
        "category": to_backend_category(item.category).value,
        "action": _first_text(item.extra.get("action")) or DEFAULT_ACTION,
        "measurements": measurements,
        "pricing": format_wire_number(item.unit_price),
        "unitPrice": format_wire_number(item.unit_price),
        "totalPrice": format_wire_number(item.proposed_total or item.unit_price),
        "notes": _text(item.notes),
        "isActive": item.extra.get("isActive", True) is not False,
        "originalBidItem": {
            "id": item.id,
            "name": item.name,
            "measurement": item.measurement,
            "price": item.unit_price,
            "proposedBid": item.proposed_total,
            "category": item.category,
        },
    })
    if has_price_override(item):
        payload["proposedBid"] = format_wire_number(item.proposed_total)
    if item.calculated_unit_price is not None:
        payload["calculatedUnitPrice"] = item.calculated_unit_price
    if item.calculated_total_price is not None:
        payload["calculatedTotalPrice"] = item.calculated_total_price
    if item.pricesheet_match is not None:
        payload["pricesheetMatch"] = item.pricesheet_match
    if item.price_calculation is not None:
        payload["priceCalculation"] = item.price_calculation

    return DemolitionRecord.model_validate(payload)


def line_items_to_records(items: Sequence[LineItem], now_ms: Optional[int] = None) -> List[DemolitionRecord]:
    """Map a batch; new items get distinct keys from their ordinal."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return [line_item_to_record(item, index, now_ms) for index, item in enumerate(items)]


# Storage keys affected by each editable LineItem attribute.
UPDATE_FIELD_KEYS = {
    "name": ("name",),
    "description": ("description",),
    "category": ("category",),
    "measurement": ("measurements",),
    "quantity": ("measurements",),
    "unit": ("measurements",),
    "unit_price": ("pricing", "unitPrice", "calculatedUnitPrice"),
    "calculated_unit_price": ("calculatedUnitPrice",),
    "proposed_total": ("totalPrice", "proposedBid", "calculatedTotalPrice"),
    "calculated_total_price": ("calculatedTotalPrice",),
    "notes": ("notes",),
}


def build_update_payload(item: LineItem, changes: Mapping[str, Any]) -> Dict[str, Any]:
    """Storage-shaped subset of an already-edited item covering ``changes``.

    Args:
        item: The item after ``apply_edit``.
        changes: The edit that was applied (attribute names or wire aliases).

    Returns:
        Dict with ``itemNumber`` plus the storage keys the edit touched.
    """
    record = line_item_to_record(item).to_payload()
    fields = normalize_changes(changes)
    keys = {"itemNumber"}
    for field in fields:
        keys.update(UPDATE_FIELD_KEYS.get(field, ()))

    payload = {key: record[key] for key in sorted(keys) if key in record}
    if "notes" in fields:
        payload.setdefault("notes", None)
    return payload


# =============================================================================
# Local edits
# =============================================================================


def normalize_changes(changes: Mapping[str, Any]) -> Dict[str, Any]:
    """Translate wire aliases to LineItem attribute names, dropping unknown keys."""
    normalized: Dict[str, Any] = {}
    for key, value in changes.items():
        field = EDIT_FIELD_ALIASES.get(key, key)
        if field in EDITABLE_FIELDS:
            normalized[field] = value
    return normalized


def apply_edit(item: LineItem, changes: Mapping[str, Any]) -> LineItem:
    """Return a new LineItem with ``changes`` applied.

    A unit price edit also replaces ``calculated_unit_price`` and a proposed
    total edit replaces ``calculated_total_price``, so the stale calculated
    value cannot win again on the next read.
    """
    normalized = normalize_changes(changes)
    if "category" in normalized and normalized["category"] is None:
        del normalized["category"]

    data = item.model_dump()
    data.update(normalized)
    edited = LineItem.model_validate(data)

    provenance: Dict[str, Any] = {}
    if "unit_price" in normalized and "calculated_unit_price" not in normalized:
        provenance["calculated_unit_price"] = edited.unit_price
    if "proposed_total" in normalized and "calculated_total_price" not in normalized:
        provenance["calculated_total_price"] = edited.proposed_total
    return edited.model_copy(update=provenance) if provenance else edited

"""Line item field validation.

Runs before an add or edit is applied. A failure blocks only that save; it
never touches the rest of the collection or the backend.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import structlog

from config.errors import ErrorCode, ValidationError
from models.wire import parse_wire_number

logger = structlog.get_logger(__name__)

NAME_REQUIRED = "Name is required"
MEASUREMENT_REQUIRED = "Measurement is required"
INVALID_PRICE = "Price must be a valid positive number"
INVALID_PROPOSED_BID = "Proposed bid must be a valid positive number"

# Blank text fields are missing; unusable money values are invalid.
_ERROR_CODES = {
    "name": ErrorCode.MISSING_FIELD,
    "measurement": ErrorCode.MISSING_FIELD,
    "price": ErrorCode.INVALID_FIELD,
    "proposedBid": ErrorCode.INVALID_FIELD,
}

# Edit keys accepted for each checked field, attribute name first.
_FIELD_KEYS = {
    "name": ("name",),
    "measurement": ("measurement",),
    "price": ("unit_price", "price"),
    "proposedBid": ("proposed_total", "proposedBid"),
}


@dataclass
class ValidationResult:
    """Result of line item validation."""
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    failed_field: Optional[str] = None
    values: Dict[str, Any] = field(default_factory=dict)


def _is_blank(value: Any) -> bool:
    return value is None or not str(value).strip()


def _money(value: Any) -> Optional[float]:
    number = parse_wire_number(value)
    if number is None or number < 0:
        return None
    return number


def check_fields(fields: Mapping[str, Any], partial: bool = False) -> ValidationResult:
    """Check name, measurement, price and proposedBid.

    Args:
        fields: Field values keyed by LineItem attribute name or wire alias.
        partial: Only check the fields present (edits).

    Returns:
        ValidationResult; ``failed_field`` names the first failing field and
        ``values`` holds the cleaned values that passed.
    """
    result = ValidationResult()
    checks = (
        ("name", NAME_REQUIRED, lambda v: None if _is_blank(v) else str(v).strip()),
        ("measurement", MEASUREMENT_REQUIRED, lambda v: None if _is_blank(v) else str(v).strip()),
        ("price", INVALID_PRICE, _money),
        ("proposedBid", INVALID_PROPOSED_BID, _money),
    )
    for name, message, clean in checks:
        key = next((k for k in _FIELD_KEYS[name] if k in fields), None)
        if key is None and partial:
            continue
        cleaned = clean(fields.get(key)) if key is not None else None
        if cleaned is None:
            result.errors.append(message)
            if result.failed_field is None:
                result.failed_field = name
        else:
            result.values[key] = cleaned
    result.is_valid = not result.errors
    return result


def validate_line_item_fields(fields: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
    """Validate fields and return their cleaned values.

    Raises:
        ValidationError: On the first invalid field, carrying its name.
    """
    result = check_fields(fields, partial=partial)
    if not result.is_valid:
        logger.info("line_item_validation_failed", field=result.failed_field, errors=result.errors)
        raise ValidationError(
            result.errors[0],
            field=result.failed_field,
            details={"errors": result.errors},
            code=_ERROR_CODES[result.failed_field],
        )
    return result.values

"""Line item models for BidSync.

``LineItem`` is the flat, UI-facing shape of one priced row in a bid.
Instances are immutable; every edit produces a new instance through
``model_copy`` so that collections holding them can be replaced wholesale.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.categories import DEFAULT_CATEGORY
from models.wire import parse_wire_number, parse_quantity


# =============================================================================
# ENUMS
# =============================================================================


class ItemOrigin(str, Enum):
    """Which pipeline produced a line item."""

    DEMOLITION = "demolition"
    MANUAL = "manual"


class SyncStatus(str, Enum):
    """Backend synchronization state of a line item."""

    CLEAN = "clean"
    PENDING_SYNC = "pending_sync"
    SYNC_FAILED = "sync_failed"


TEMP_ID_PREFIXES = ("temp_", "new_")

# Fields that only exist locally and are never written to the backend.
LOCAL_ONLY_FIELDS = {"origin", "sync_status", "revision", "extra", "derived_total"}


# =============================================================================
# LINE ITEM MODEL
# =============================================================================


class LineItem(BaseModel):
    """One priced row of a bid, in the shape the UI renders.

    Provenance fields (calculated prices, price-list match, price
    calculation, measurements) are carried through from the backend
    untouched. Backend fields this model does not know about live in
    ``extra`` so a read -> edit -> write cycle loses nothing.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., description="Identifier, unique within a bid")
    name: str = Field(default="Unnamed Item", description="Display name")
    measurement: str = Field(default="TBD", description="Free-text measurement, e.g. '500 sq ft'")
    quantity: int = Field(default=1, ge=1, description="Quantity")
    unit: str = Field(default="Each", description="Unit label")
    category: str = Field(default=DEFAULT_CATEGORY.value, description="UI category label")
    unit_price: float = Field(default=0.0, ge=0, alias="price", description="Unit price ($)")
    proposed_total: float = Field(
        default=0.0, ge=0, alias="proposedBid", description="Proposed total for this row ($)"
    )
    description: Optional[str] = Field(None, description="Description")
    notes: Optional[str] = Field(None, description="Notes")

    # Provenance carried through from the backend
    calculated_unit_price: Optional[Any] = Field(None, alias="calculatedUnitPrice")
    calculated_total_price: Optional[Any] = Field(None, alias="calculatedTotalPrice")
    pricesheet_match: Optional[Dict[str, Any]] = Field(None, alias="pricesheetMatch")
    price_calculation: Optional[Dict[str, Any]] = Field(None, alias="priceCalculation")
    measurements: Optional[Dict[str, Any]] = Field(None)
    extra: Dict[str, Any] = Field(default_factory=dict, description="Unrecognized backend fields")
    derived_total: Optional[float] = Field(
        None, ge=0, description="Proposed total the stored record resolved to without an explicit proposedBid"
    )

    # Local state
    origin: ItemOrigin = Field(default=ItemOrigin.MANUAL)
    sync_status: SyncStatus = Field(default=SyncStatus.CLEAN)
    revision: int = Field(default=0, ge=0)

    @field_validator("quantity", mode="before")
    @classmethod
    def coerce_quantity(cls, v):
        """Parse wire quantities; anything unusable becomes 1."""
        return parse_quantity(v)

    @field_validator("unit_price", "proposed_total", mode="before")
    @classmethod
    def coerce_money(cls, v):
        """Parse wire money values; unparseable or negative becomes 0."""
        number = parse_wire_number(v)
        if number is None or number < 0:
            return 0.0
        return number

    @property
    def is_temporary(self) -> bool:
        """True while the item has not received a backend identifier."""
        return not self.id or self.id.startswith(TEMP_ID_PREFIXES)

    def price_fields(self) -> Dict[str, Any]:
        """Flatten the item into the candidate-field mapping the resolver reads."""
        fields = dict(self.extra)
        fields.update(self.to_wire())
        # The item's own quantity is authoritative over the carried measurements.
        fields.pop("measurements", None)
        return fields

    def to_wire(self) -> Dict[str, Any]:
        """Serialize in the UI wire shape (camelCase, no local-only fields)."""
        data = self.model_dump(by_alias=True, exclude=LOCAL_ONLY_FIELDS, exclude_none=True)
        data["pricing"] = self.unit_price
        return data

"""Demolition record models for BidSync.

``DemolitionRecord`` is the storage shape the backend item store keeps under
``aiExtractedData.demolitionItems``. Every numeric field is a string on the
wire; numbers passed in are serialized through ``format_wire_number``.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.categories import DemolitionCategory
from models.wire import format_wire_number


class Measurements(BaseModel):
    """Quantity and unit of a stored record, both as strings."""

    model_config = ConfigDict(extra="allow")

    quantity: str = Field(default="1", description="Quantity (string on the wire)")
    unit: str = Field(default="Each", description="Unit label")
    dimensions: Optional[Any] = Field(None, description="Free-form dimensions")

    @field_validator("quantity", mode="before")
    @classmethod
    def stringify_quantity(cls, v):
        if v is None:
            return "1"
        return format_wire_number(v, default="1") if not isinstance(v, str) else v


class OriginalBidItem(BaseModel):
    """Snapshot of the UI item a record was written from, kept for traceability."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = None
    name: Optional[str] = None
    measurement: Optional[str] = None
    price: Optional[float] = None
    proposed_bid: Optional[float] = Field(None, alias="proposedBid")
    category: Optional[str] = None


class DemolitionRecord(BaseModel):
    """One stored demolition item.

    Unknown fields are allowed and round-trip untouched.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    item_number: Optional[str] = Field(None, alias="itemNumber", description="Stable item key")
    name: Optional[str] = Field(None, description="Display name")
    description: str = Field(default="No description", description="Item description")
    category: str = Field(default=DemolitionCategory.OTHER.value, description="Backend category token")
    action: str = Field(default="Remove", description="Demolition action")
    measurements: Measurements = Field(default_factory=Measurements)

    # Pricing, serialized as strings
    pricing: str = Field(default="0", description="Legacy unit price")
    unit_price: str = Field(default="0", alias="unitPrice")
    total_price: str = Field(default="0", alias="totalPrice")
    proposed_bid: Optional[str] = Field(None, alias="proposedBid", description="Explicit user override")

    # Provenance from upstream pricing stages
    calculated_unit_price: Optional[Any] = Field(None, alias="calculatedUnitPrice")
    calculated_total_price: Optional[Any] = Field(None, alias="calculatedTotalPrice")
    pricesheet_match: Optional[Dict[str, Any]] = Field(None, alias="pricesheetMatch")
    price_calculation: Optional[Dict[str, Any]] = Field(None, alias="priceCalculation")

    location: Optional[str] = None
    specifications: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool = Field(default=True, alias="isActive")
    original_bid_item: Optional[OriginalBidItem] = Field(None, alias="originalBidItem")

    @field_validator("pricing", "unit_price", "total_price", mode="before")
    @classmethod
    def stringify_price(cls, v):
        """Numbers become wire strings; unparseable values become "0"."""
        return format_wire_number(v)

    @field_validator("proposed_bid", mode="before")
    @classmethod
    def stringify_proposed_bid(cls, v):
        if v is None:
            return None
        return format_wire_number(v)

    def to_payload(self) -> Dict[str, Any]:
        """Serialize for the backend (camelCase, unset optionals omitted)."""
        return self.model_dump(by_alias=True, exclude_none=True)

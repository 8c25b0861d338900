"""Bid aggregate models for BidSync.

The aggregate is the total proposed amount of a bid, persisted separately
from its line items.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.wire import parse_wire_number


class AggregateSource(str, Enum):
    """Where a stored total came from."""

    MANUAL = "manual"
    CALCULATED = "calculated"
    API = "api"


class CalculatedFrom(BaseModel):
    """Breakdown of the items a total was computed from."""

    model_config = ConfigDict(populate_by_name=True)

    demolition_items: int = Field(default=0, ge=0, alias="demolitionItems")
    manual_items: int = Field(default=0, ge=0, alias="manualItems")
    total_items: int = Field(default=0, ge=0, alias="totalItems")


class BidAggregate(BaseModel):
    """Total proposed amount for one bid."""

    model_config = ConfigDict(populate_by_name=True)

    bid_id: str = Field(..., alias="bidId")
    total_proposed_amount: float = Field(default=0.0, ge=0, alias="totalProposedAmount")
    last_updated: Optional[datetime] = Field(None, alias="lastUpdated")
    source: AggregateSource = Field(default=AggregateSource.CALCULATED)
    calculated_from: Optional[CalculatedFrom] = Field(None, alias="calculatedFrom")

    @field_validator("last_updated", mode="before")
    @classmethod
    def lenient_timestamp(cls, v):
        """Unparseable timestamps are dropped rather than rejected."""
        if v is None or isinstance(v, datetime):
            return v
        if isinstance(v, str):
            try:
                return datetime.fromisoformat(v.replace("Z", "+00:00"))
            except ValueError:
                return None
        return None

    @field_validator("total_proposed_amount", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        number = parse_wire_number(v)
        return number if number is not None and number >= 0 else 0.0


class TotalProposedAmountResponse(BaseModel):
    """Envelope returned by the total-proposed-amount endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = Field(default=False)
    data: Optional[BidAggregate] = None
    message: Optional[str] = None

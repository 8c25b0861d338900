"""Category vocabularies for bid line items.

The UI and the backend item store use different, closed category sets.
Both directions of the mapping are total: every input maps to a member of
the target enum.
"""

from enum import Enum
from typing import Dict, Optional


class BidCategory(str, Enum):
    """Category labels shown on bid line items."""

    GENERAL = "General"
    REGULAR = "Regular"
    DEMOLITION = "Demolition"
    ELECTRICAL = "Electrical"
    PLUMBING = "Plumbing"
    HVAC = "HVAC"
    MEP = "MEP"
    MECHANICAL = "Mechanical"
    STOREFRONT = "Storefront"
    SIGNAGE = "Signage"
    FIRE_PROTECTION = "Fire Protection"
    WALL = "Wall"
    CEILING = "Ceiling"
    FLOOR = "Floor"
    DOOR = "Door"
    WINDOW = "Window"
    FIXTURE = "Fixture"
    CLEANUP = "Cleanup"
    STRUCTURAL = "Structural"
    INTERIOR = "Interior"
    EXTERIOR = "Exterior"


class DemolitionCategory(str, Enum):
    """Category tokens accepted by the backend item store."""

    OTHER = "other"
    STRUCTURAL = "structural"
    ELECTRICAL = "electrical"
    PLUMBING = "plumbing"
    HVAC = "hvac"
    MECHANICAL = "mechanical"
    STOREFRONT = "storefront"
    SIGNAGE = "signage"
    FIRE_PROTECTION = "fire protection"
    WALL = "wall"
    CEILING = "ceiling"
    FLOOR = "floor"
    DOOR = "door"
    WINDOW = "window"
    FIXTURE = "fixture"
    CLEANUP = "cleanup"
    INTERIOR = "interior"
    EXTERIOR = "exterior"


DEFAULT_CATEGORY = BidCategory.REGULAR
DEFAULT_DEMOLITION_CATEGORY = BidCategory.DEMOLITION

UI_TO_BACKEND_CATEGORY: Dict[BidCategory, DemolitionCategory] = {
    BidCategory.GENERAL: DemolitionCategory.OTHER,
    BidCategory.REGULAR: DemolitionCategory.OTHER,
    BidCategory.DEMOLITION: DemolitionCategory.STRUCTURAL,
    BidCategory.ELECTRICAL: DemolitionCategory.ELECTRICAL,
    BidCategory.PLUMBING: DemolitionCategory.PLUMBING,
    BidCategory.HVAC: DemolitionCategory.HVAC,
    BidCategory.MEP: DemolitionCategory.ELECTRICAL,
    BidCategory.MECHANICAL: DemolitionCategory.MECHANICAL,
    BidCategory.STOREFRONT: DemolitionCategory.STOREFRONT,
    BidCategory.SIGNAGE: DemolitionCategory.SIGNAGE,
    BidCategory.FIRE_PROTECTION: DemolitionCategory.FIRE_PROTECTION,
    BidCategory.WALL: DemolitionCategory.WALL,
    BidCategory.CEILING: DemolitionCategory.CEILING,
    BidCategory.FLOOR: DemolitionCategory.FLOOR,
    BidCategory.DOOR: DemolitionCategory.DOOR,
    BidCategory.WINDOW: DemolitionCategory.WINDOW,
    BidCategory.FIXTURE: DemolitionCategory.FIXTURE,
    BidCategory.CLEANUP: DemolitionCategory.CLEANUP,
    BidCategory.STRUCTURAL: DemolitionCategory.STRUCTURAL,
    BidCategory.INTERIOR: DemolitionCategory.INTERIOR,
    BidCategory.EXTERIOR: DemolitionCategory.EXTERIOR,
}

# Inverse direction. Tokens shared by several labels resolve to the label
# the demolition pipeline itself produces, so token -> label -> token is stable.
BACKEND_TO_UI_CATEGORY: Dict[DemolitionCategory, BidCategory] = {
    DemolitionCategory.OTHER: BidCategory.GENERAL,
    DemolitionCategory.STRUCTURAL: BidCategory.DEMOLITION,
    DemolitionCategory.ELECTRICAL: BidCategory.ELECTRICAL,
    DemolitionCategory.PLUMBING: BidCategory.PLUMBING,
    DemolitionCategory.HVAC: BidCategory.HVAC,
    DemolitionCategory.MECHANICAL: BidCategory.MECHANICAL,
    DemolitionCategory.STOREFRONT: BidCategory.STOREFRONT,
    DemolitionCategory.SIGNAGE: BidCategory.SIGNAGE,
    DemolitionCategory.FIRE_PROTECTION: BidCategory.FIRE_PROTECTION,
    DemolitionCategory.WALL: BidCategory.WALL,
    DemolitionCategory.CEILING: BidCategory.CEILING,
    DemolitionCategory.FLOOR: BidCategory.FLOOR,
    DemolitionCategory.DOOR: BidCategory.DOOR,
    DemolitionCategory.WINDOW: BidCategory.WINDOW,
    DemolitionCategory.FIXTURE: BidCategory.FIXTURE,
    DemolitionCategory.CLEANUP: BidCategory.CLEANUP,
    DemolitionCategory.INTERIOR: BidCategory.INTERIOR,
    DemolitionCategory.EXTERIOR: BidCategory.EXTERIOR,
}

_UI_BY_LOWER = {member.value.lower(): member for member in BidCategory}
_BACKEND_BY_LOWER = {member.value: member for member in DemolitionCategory}


def parse_bid_category(value: Optional[str]) -> Optional[BidCategory]:
    """Match a UI category label case-insensitively, or return None."""
    if not isinstance(value, str):
        return None
    return _UI_BY_LOWER.get(value.strip().lower())


def parse_demolition_category(value: Optional[str]) -> Optional[DemolitionCategory]:
    """Match a backend category token case-insensitively, or return None."""
    if not isinstance(value, str):
        return None
    return _BACKEND_BY_LOWER.get(value.strip().lower())


def to_backend_category(label: Optional[str]) -> DemolitionCategory:
    """Map a UI category label to its backend token.

    Labels match case-insensitively ("hvac", "HVAC" and "Hvac" are the same).
    A value that is already a backend token passes through. Anything else
    maps to ``other``.
    """
    category = parse_bid_category(label)
    if category is not None:
        return UI_TO_BACKEND_CATEGORY[category]
    return parse_demolition_category(label) or DemolitionCategory.OTHER


def to_ui_category(value: Optional[str]) -> BidCategory:
    """Map a stored category (label or token) to a UI label.

    Exact backend tokens win over labels ("structural" is a token,
    "Structural" a label). Missing or unrecognized values fall back to
    Demolition, since stored records come from the demolition pipeline.
    """
    if isinstance(value, str) and value.strip() in _BACKEND_BY_LOWER:
        return BACKEND_TO_UI_CATEGORY[_BACKEND_BY_LOWER[value.strip()]]
    category = parse_bid_category(value)
    if category is not None:
        return category
    token = parse_demolition_category(value)
    if token is not None:
        return BACKEND_TO_UI_CATEGORY[token]
    return DEFAULT_DEMOLITION_CATEGORY

"""Response envelopes for the demolition-items endpoint.

The backend has returned the item array under several different keys over
time. ``normalize_items_payload`` is the single place that decides which
shape a payload has; everything downstream works with ``ItemsEnvelope``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class EnvelopeKind(str, Enum):
    """Known locations of the item array, in lookup priority order."""

    AI_EXTRACTED = "ai_extracted"  # payload["aiExtractedData"]["demolitionItems"]
    ROOT = "root"                  # payload["demolitionItems"]
    DATA = "data"                  # payload["data"]
    ITEMS = "items"                # payload["items"]
    BARE = "bare"                  # payload is the array itself
    EMPTY = "empty"                # no non-empty array anywhere


@dataclass(frozen=True)
class ItemsEnvelope:
    """A normalized items payload: where the records were found, and the records."""

    kind: EnvelopeKind
    records: Tuple[Dict[str, Any], ...] = field(default_factory=tuple)
    skipped: int = 0

    def __len__(self) -> int:
        return len(self.records)


def _candidate_arrays(payload: Any) -> List[Tuple[EnvelopeKind, Optional[Any]]]:
    if isinstance(payload, list):
        return [(EnvelopeKind.BARE, payload)]
    if not isinstance(payload, dict):
        return []
    ai_data = payload.get("aiExtractedData")
    return [
        (EnvelopeKind.AI_EXTRACTED, ai_data.get("demolitionItems") if isinstance(ai_data, dict) else None),
        (EnvelopeKind.ROOT, payload.get("demolitionItems")),
        (EnvelopeKind.DATA, payload.get("data")),
        (EnvelopeKind.ITEMS, payload.get("items")),
    ]


def normalize_items_payload(payload: Any) -> ItemsEnvelope:
    """Locate the item array in a backend payload.

    The first non-empty array in priority order wins, so an empty root-level
    ``demolitionItems`` never shadows a populated
    ``aiExtractedData.demolitionItems``. Entries that are not objects are
    dropped and counted in ``skipped``.

    Args:
        payload: Decoded JSON body of the demolition-items endpoint.

    Returns:
        ItemsEnvelope tagged with where the records were found.
    """
    for kind, candidate in _candidate_arrays(payload):
        if isinstance(candidate, list) and candidate:
            records = tuple(entry for entry in candidate if isinstance(entry, dict))
            return ItemsEnvelope(
                kind=kind,
                records=records,
                skipped=len(candidate) - len(records),
            )
    return ItemsEnvelope(kind=EnvelopeKind.EMPTY)

"""Firestore snapshot cache for BidSync.

Mirrors the last known line items and total of each bid so a reload, or a
failed backend read, still has something to show. The backend stays the
source of truth: entries are overwritten after every successful read and
never written back to the backend.

Layout::

    snapshotCache/{feature_key}/bids/{bid_id}

Cache failures are logged and swallowed; a broken cache must never block
the item or total flows.
"""

import inspect
import os
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import firebase_admin
import structlog
from firebase_admin import firestore
from pydantic import ValidationError as PydanticValidationError

from config.settings import settings
from models.aggregate import BidAggregate
from models.line_item import LineItem

logger = structlog.get_logger()

ITEMS_FEATURE_KEY = "bid-data-entry"
TOTAL_FEATURE_KEY = "total-proposed-amount"


def _firestore_client():
    """Create a Firestore client, initializing the default app on first use."""
    if settings.is_emulator_mode:
        os.environ.setdefault("FIRESTORE_EMULATOR_HOST", settings.firestore_emulator_host)
    try:
        firebase_admin.get_app()
    except ValueError:
        options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
        firebase_admin.initialize_app(options=options)
    return firestore.client()


class SnapshotCache:
    """Per-bid cache of items and totals in Firestore."""

    COLLECTION_CACHE = "snapshotCache"
    SUBCOLLECTION_BIDS = "bids"

    def __init__(self, db=None, enabled: Optional[bool] = None):
        """Initialize SnapshotCache.

        Args:
            db: Optional Firestore client. If not provided, uses default.
            enabled: Turn the cache off entirely (defaults to settings).
        """
        self._db = db
        self.enabled = settings.snapshot_cache_enabled if enabled is None else enabled

    @property
    def db(self):
        """Get Firestore client (lazy initialization)."""
        if self._db is None:
            self._db = _firestore_client()
        return self._db

    async def _maybe_await(self, result: Any) -> Any:
        """Await result if it is awaitable (supports AsyncMock in unit tests)."""
        if inspect.isawaitable(result):
            return await result
        return result

    def _doc(self, feature_key: str, bid_id: str):
        return (
            self.db.collection(self.COLLECTION_CACHE)
            .document(feature_key)
            .collection(self.SUBCOLLECTION_BIDS)
            .document(bid_id)
        )

    async def _write(self, feature_key: str, bid_id: str, data: Dict[str, Any]) -> bool:
        if not self.enabled:
            return False
        try:
            data["cachedAt"] = datetime.now(timezone.utc).isoformat()
            await self._maybe_await(self._doc(feature_key, bid_id).set(data))
            return True
        except Exception as e:
            # Non-critical: the backend remains authoritative.
            logger.warning("snapshot_cache_write_failed", feature=feature_key, bid_id=bid_id, error=str(e))
            return False

    async def _read(self, feature_key: str, bid_id: str) -> Optional[Dict[str, Any]]:
        if not self.enabled:
            return None
        try:
            doc = await self._maybe_await(self._doc(feature_key, bid_id).get())
            if not doc.exists:
                return None
            return doc.to_dict()
        except Exception as e:
            logger.warning("snapshot_cache_read_failed", feature=feature_key, bid_id=bid_id, error=str(e))
            return None

    # -------------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------------

    async def save_items(self, bid_id: str, items: Iterable[LineItem]) -> bool:
        records = [item.model_dump(mode="json") for item in items]
        saved = await self._write(ITEMS_FEATURE_KEY, bid_id, {"items": records})
        if saved:
            logger.debug("snapshot_items_cached", bid_id=bid_id, count=len(records))
        return saved

    async def load_items(self, bid_id: str) -> Optional[List[LineItem]]:
        """Cached items of a bid, or None when nothing usable is cached.

        Entries that no longer validate are skipped.
        """
        data = await self._read(ITEMS_FEATURE_KEY, bid_id)
        if not data or not isinstance(data.get("items"), list):
            return None
        items = []
        for record in data["items"]:
            try:
                items.append(LineItem.model_validate(record))
            except PydanticValidationError as e:
                logger.warning("snapshot_item_invalid", bid_id=bid_id, error=str(e))
        return items

    # -------------------------------------------------------------------------
    # Total
    # -------------------------------------------------------------------------

    async def save_total(self, bid_id: str, aggregate: BidAggregate) -> bool:
        return await self._write(TOTAL_FEATURE_KEY, bid_id, {"total": aggregate.model_dump(mode="json", by_alias=True)})

    async def load_total(self, bid_id: str) -> Optional[BidAggregate]:
        data = await self._read(TOTAL_FEATURE_KEY, bid_id)
        if not data or not isinstance(data.get("total"), dict):
            return None
        try:
            return BidAggregate.model_validate(data["total"])
        except PydanticValidationError as e:
            logger.warning("snapshot_total_invalid", bid_id=bid_id, error=str(e))
            return None

    async def clear_total(self, bid_id: str) -> None:
        """Drop only the cached aggregate of a bid."""
        await self.clear(bid_id, features=(TOTAL_FEATURE_KEY,))

    async def clear(self, bid_id: str, features: Optional[Iterable[str]] = None) -> None:
        """Drop cached entries of a bid, every feature by default."""
        if not self.enabled:
            return
        for feature_key in features or (ITEMS_FEATURE_KEY, TOTAL_FEATURE_KEY):
            try:
                await self._maybe_await(self._doc(feature_key, bid_id).delete())
            except Exception as e:
                logger.warning("snapshot_cache_clear_failed", feature=feature_key, bid_id=bid_id, error=str(e))

"""Optimistic line item synchronization.

Every operation updates the local ``ItemStore`` first and then talks to the
backend. A failed backend call is never rolled back locally: the item is
marked ``sync_failed`` and the user is notified. Backend errors do not
propagate out of this module.

Only items from the demolition pipeline are pushed (origin ``demolition`` or
category "Demolition"). Manual items live in the local store only.

Each local mutation bumps the item's ``revision``. A response only settles
the item's sync status when the item still has the revision the request was
issued for, so a slow response can never overwrite a newer edit.
"""

import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import structlog

from config.errors import BidSyncError, ErrorCode
from models.line_item import ItemOrigin, LineItem, SyncStatus
from services.bid_api_client import BidBackendClient
from services.item_store import ItemStore
from services.price_resolver import sum_proposed_bids
from services.schema_mapper import (
    apply_edit,
    build_update_payload,
    line_item_to_record,
    line_items_to_records,
)
from utils.notifications import Notifier

logger = structlog.get_logger()

TEMP_ID_PREFIX = "temp_"


@dataclass(frozen=True)
class SyncOutcome:
    """Result of one gateway call.

    ``item`` is the local item after the call (None when it was not found),
    ``synced`` is True only when the backend accepted the change.
    """

    item: Optional[LineItem]
    synced: bool
    error: Optional[BidSyncError] = None


@dataclass(frozen=True)
class BulkSyncOutcome:
    """Result of ``replace_all``."""

    items: Tuple[LineItem, ...]
    synced: bool
    pushed: int = 0
    error: Optional[BidSyncError] = None


def new_temp_id() -> str:
    return f"{TEMP_ID_PREFIX}{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def is_pushable(item: LineItem) -> bool:
    """True for items the backend item store owns."""
    return item.origin == ItemOrigin.DEMOLITION or (item.category or "").strip().lower() == "demolition"


class ItemSyncGateway:
    """Create, update and delete line items against the backend item store."""

    def __init__(self, client: BidBackendClient, store: ItemStore, notifier: Notifier):
        self.client = client
        self.store = store
        self.notifier = notifier

    # -------------------------------------------------------------------------
    # Single items
    # -------------------------------------------------------------------------

    async def add_item(self, bid_id: str, item: LineItem) -> SyncOutcome:
        """Append an item locally, then create it on the backend.

        The item gets a temporary id until the backend assigns one.
        """
        pushable = is_pushable(item)
        local = item.model_copy(update={
            "id": item.id if item.id and item.is_temporary else new_temp_id(),
            "revision": item.revision + 1,
            "sync_status": SyncStatus.PENDING_SYNC if pushable else SyncStatus.CLEAN,
        })
        self.store.append(bid_id, local)

        if not pushable:
            logger.info("item_kept_local", bid_id=bid_id, item_id=local.id, category=local.category)
            return SyncOutcome(item=local, synced=False)

        record = line_item_to_record(local).to_payload()
        try:
            body = await self.client.create_demolition_item(bid_id, record)
        except BidSyncError as e:
            return self._settle_failure(bid_id, local, e, "Backend add failed", "Could not add item")

        backend_id = self.client.extract_created_id(body)
        if not backend_id:
            logger.warning("created_item_id_missing", bid_id=bid_id, item_id=local.id)
        self.notifier.success("Demolition item added", f"{local.name} saved to backend.", bid_id=bid_id)

        current = self.store.find(bid_id, local.id)
        if current is not None and current.revision != local.revision:
            # Edited while the create was in flight; push the newer state.
            adopted = current.model_copy(update={"id": backend_id}) if backend_id else current
            if adopted.is_temporary:
                # The edit cannot be pushed without a backend id.
                adopted = adopted.model_copy(update={"sync_status": SyncStatus.SYNC_FAILED})
                self.store.put(bid_id, adopted, item_id=local.id)
                logger.warning("edited_item_left_unsynced", bid_id=bid_id, item_id=local.id)
                return SyncOutcome(
                    item=adopted,
                    synced=False,
                    error=BidSyncError(
                        ErrorCode.BACKEND_INVALID_RESPONSE,
                        "Created item id missing",
                        {"item_id": local.id},
                    ),
                )
            self.store.put(bid_id, adopted, item_id=local.id)
            return await self._push_update(bid_id, adopted, line_item_to_record(adopted).to_payload())

        return self._settle_success(bid_id, local, new_id=backend_id)

    async def update_item(self, bid_id: str, item_id: str, changes: Mapping[str, Any]) -> SyncOutcome:
        """Apply an edit locally, then send the changed fields to the backend.

        Args:
            bid_id: Bid identifier.
            item_id: Id of the item to edit.
            changes: LineItem attribute names (or wire aliases) to new values.
        """
        existing = self.store.find(bid_id, item_id)
        if existing is None:
            logger.warning("update_unknown_item", bid_id=bid_id, item_id=item_id)
            return SyncOutcome(
                item=None,
                synced=False,
                error=BidSyncError(ErrorCode.ITEM_NOT_FOUND, f"Item not found: {item_id}", {"item_id": item_id}),
            )

        pushable = is_pushable(existing)
        edited = apply_edit(existing, changes).model_copy(update={
            "revision": existing.revision + 1,
            "sync_status": SyncStatus.PENDING_SYNC if pushable else existing.sync_status,
        })
        self.store.put(bid_id, edited)

        if not pushable:
            return SyncOutcome(item=edited, synced=False)
        if edited.is_temporary:
            # The pending create pushes the latest state once it has an id.
            return SyncOutcome(item=edited, synced=False)

        return await self._push_update(bid_id, edited, build_update_payload(edited, changes))

    async def delete_item(self, bid_id: str, item_id: str) -> SyncOutcome:
        """Remove an item locally, then delete it on the backend."""
        existing = self.store.find(bid_id, item_id)
        if existing is None:
            return SyncOutcome(item=None, synced=False)
        self.store.remove(bid_id, item_id)

        if not is_pushable(existing) or existing.is_temporary:
            return SyncOutcome(item=existing, synced=False)

        try:
            await self.client.delete_item(bid_id, existing.id)
        except BidSyncError as e:
            logger.warning("item_delete_failed", bid_id=bid_id, item_id=item_id, error=e.message)
            self.notifier.error("Backend delete failed", e.message or "Could not delete item", bid_id=bid_id)
            return SyncOutcome(item=existing, synced=False, error=e)

        logger.info("item_deleted", bid_id=bid_id, item_id=item_id)
        return SyncOutcome(item=existing, synced=True)

    # -------------------------------------------------------------------------
    # Bulk
    # -------------------------------------------------------------------------

    async def replace_all(self, bid_id: str, items: Sequence[LineItem]) -> BulkSyncOutcome:
        """Replace the whole collection locally, then the stored demolition items.

        New items adopt the item numbers generated for them once the backend
        accepts the batch.
        """
        local = tuple(
            item.model_copy(update={"revision": item.revision + 1, "sync_status": SyncStatus.PENDING_SYNC})
            if is_pushable(item) else item
            for item in items
        )
        self.store.replace(bid_id, local)

        pushed = [item for item in local if is_pushable(item)]
        records = line_items_to_records(pushed)
        summary = {
            "totalItems": len(records),
            "totalProposedBid": sum_proposed_bids(pushed),
            "updatedAt": datetime.now(timezone.utc).isoformat(),
        }

        try:
            await self.client.replace_demolition_items(bid_id, [record.to_payload() for record in records], summary)
        except BidSyncError as e:
            for item in pushed:
                self._mark(bid_id, item, SyncStatus.SYNC_FAILED)
            logger.warning("bulk_replace_failed", bid_id=bid_id, count=len(records), error=e.message)
            self.notifier.error("Save failed", e.message or "Could not save items", bid_id=bid_id)
            return BulkSyncOutcome(items=self.store.get(bid_id), synced=False, pushed=0, error=e)

        for item, record in zip(pushed, records):
            new_id = record.item_number if item.is_temporary else None
            self._mark(bid_id, item, SyncStatus.CLEAN, new_id=new_id)

        logger.info("bulk_replace_succeeded", bid_id=bid_id, count=len(records))
        return BulkSyncOutcome(items=self.store.get(bid_id), synced=True, pushed=len(records))

    # -------------------------------------------------------------------------
    # Settling responses
    # -------------------------------------------------------------------------

    async def _push_update(self, bid_id: str, item: LineItem, payload: Dict[str, Any]) -> SyncOutcome:
        try:
            await self.client.update_demolition_item(bid_id, item.id, payload)
        except BidSyncError as e:
            return self._settle_failure(bid_id, item, e, "Backend update failed", "Could not update item")
        self.notifier.success("Demolition item updated", f"{item.name} saved.", bid_id=bid_id)
        return self._settle_success(bid_id, item)

    def _mark(
        self,
        bid_id: str,
        issued: LineItem,
        status: SyncStatus,
        new_id: Optional[str] = None,
    ) -> Optional[LineItem]:
        """Apply a response to the current local item.

        The id is always adopted; the status only when no newer edit exists.
        """
        current = self.store.find(bid_id, issued.id)
        if current is None:
            return None
        updates: Dict[str, Any] = {}
        if new_id:
            updates["id"] = new_id
        if current.revision == issued.revision:
            updates["sync_status"] = status
        else:
            logger.info(
                "stale_sync_response_ignored",
                bid_id=bid_id,
                item_id=issued.id,
                issued_revision=issued.revision,
                current_revision=current.revision,
            )
        if not updates:
            return current
        settled = current.model_copy(update=updates)
        self.store.put(bid_id, settled, item_id=issued.id)
        return settled

    def _settle_success(self, bid_id: str, issued: LineItem, new_id: Optional[str] = None) -> SyncOutcome:
        settled = self._mark(bid_id, issued, SyncStatus.CLEAN, new_id=new_id)
        logger.info("item_synced", bid_id=bid_id, item_id=settled.id if settled else issued.id)
        return SyncOutcome(item=settled or issued, synced=True)

    def _settle_failure(
        self,
        bid_id: str,
        issued: LineItem,
        error: BidSyncError,
        title: str,
        fallback: str,
    ) -> SyncOutcome:
        settled = self._mark(bid_id, issued, SyncStatus.SYNC_FAILED)
        logger.warning("item_sync_failed", bid_id=bid_id, item_id=issued.id, error=error.message)
        self.notifier.error(title, error.message or fallback, bid_id=bid_id)
        return SyncOutcome(item=settled or issued, synced=False, error=error)

"""Bid workspace: the per-bid entry point used by the host application.

Wires the backend client, item store, sync gateway, total synchronizer and
snapshot cache together for one bid::

    load()  -> fetch -> normalize -> map -> store -> total refresh
    edit    -> validate -> gateway (optimistic) -> store -> total recompute

The total is recomputed from the store on every change through a store
listener, so every mutation path keeps it in step.
"""

from typing import Any, Mapping, Optional, Sequence, Tuple

import structlog

from config.errors import BidSyncError, ValidationError
from models.categories import BidCategory
from models.line_item import ItemOrigin, LineItem
from services.aggregate_synchronizer import AggregateSynchronizer, TotalView
from services.bid_api_client import BidBackendClient
from services.item_store import ItemStore
from services.item_sync_gateway import BulkSyncOutcome, ItemSyncGateway, SyncOutcome, new_temp_id
from services.schema_mapper import map_items_payload
from services.snapshot_cache import SnapshotCache
from utils.formatters import format_total_display
from utils.list_text import format_list_text, parse_list_text
from utils.notifications import Notifier
from validators.line_item_validator import validate_line_item_fields

logger = structlog.get_logger()


class BidWorkspace:
    """Line items and total of one bid.

    Args:
        bid_id: Backend bid identifier.
        client: Backend client.
        notifier: Receives user-facing messages.
        cache: Optional snapshot cache.
        store: Item store, shared between workspaces if given.
        debounce_seconds: Total persist delay override.
        sync_new_items: New items go to the backend item store as
            demolition items (category forced to Demolition).
    """

    def __init__(
        self,
        bid_id: str,
        client: Optional[BidBackendClient] = None,
        notifier: Optional[Notifier] = None,
        cache: Optional[SnapshotCache] = None,
        store: Optional[ItemStore] = None,
        debounce_seconds: Optional[float] = None,
        sync_new_items: bool = True,
    ):
        self.bid_id = bid_id
        self.client = client or BidBackendClient()
        self.notifier = notifier or Notifier()
        self.cache = cache
        self.store = store or ItemStore()
        self.sync_new_items = sync_new_items
        self.gateway = ItemSyncGateway(self.client, self.store, self.notifier)
        self.totals = AggregateSynchronizer(
            self.client,
            self.notifier,
            cache=cache,
            debounce_seconds=debounce_seconds,
        )
        self._unsubscribe = self.store.subscribe(self._on_items_changed)

    def _on_items_changed(self, bid_id: str, items: Tuple[LineItem, ...]) -> None:
        if bid_id == self.bid_id:
            self.totals.recompute_and_schedule_persist(bid_id, items)

    @property
    def items(self) -> Tuple[LineItem, ...]:
        return self.store.get(self.bid_id)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def load(self) -> Tuple[LineItem, ...]:
        """Load items from the backend, falling back to the snapshot cache.

        Returns:
            The items now in the store.
        """
        try:
            payload = await self.client.fetch_demolition_items(self.bid_id)
        except BidSyncError as e:
            logger.warning("items_load_failed", bid_id=self.bid_id, error=e.message)
            self.notifier.error("Failed to load items", e.message or "Could not load bid items", bid_id=self.bid_id)
            restored = await self.restore_from_cache()
            await self.totals.refresh(self.bid_id, restored)
            return self.items

        items = map_items_payload(payload)
        await self.totals.refresh(self.bid_id, items)
        self.store.replace(self.bid_id, items)
        if self.cache is not None:
            await self.cache.save_items(self.bid_id, items)
        logger.info("bid_items_loaded", bid_id=self.bid_id, count=len(items))
        return self.items

    async def restore_from_cache(self) -> Optional[Tuple[LineItem, ...]]:
        """Replace the store with cached items, if any are cached."""
        if self.cache is None:
            return None
        cached = await self.cache.load_items(self.bid_id)
        if cached is None:
            return None
        logger.info("bid_items_restored_from_cache", bid_id=self.bid_id, count=len(cached))
        return self.store.replace(self.bid_id, cached)

    # -------------------------------------------------------------------------
    # Edits
    # -------------------------------------------------------------------------

    def _validate(self, fields: Mapping[str, Any], partial: bool) -> None:
        try:
            validate_line_item_fields(fields, partial=partial)
        except ValidationError as e:
            self.notifier.error("Validation Error", e.message, bid_id=self.bid_id)
            raise

    async def add_item(self, fields: Mapping[str, Any]) -> SyncOutcome:
        """Validate and add a new item.

        Args:
            fields: name, measurement, price, proposedBid and optionally
                category, quantity, unit, description, notes.

        Raises:
            ValidationError: The fields are invalid; nothing was changed.
        """
        self._validate(fields, partial=False)

        category = fields.get("category") or BidCategory.REGULAR.value
        origin = ItemOrigin.MANUAL
        if self.sync_new_items:
            category = BidCategory.DEMOLITION.value
            origin = ItemOrigin.DEMOLITION

        item = LineItem(
            id=new_temp_id(),
            name=str(fields["name"]).strip(),
            measurement=str(fields["measurement"]).strip(),
            quantity=fields.get("quantity", 1),
            unit=fields.get("unit") or "Each",
            category=category,
            unit_price=fields.get("price", fields.get("unit_price")),
            proposed_total=fields.get("proposedBid", fields.get("proposed_total")),
            description=fields.get("description") or None,
            notes=fields.get("notes") or None,
            origin=origin,
        )
        outcome = await self.gateway.add_item(self.bid_id, item)
        if outcome.error is None:
            self.notifier.success("Item Added", f"{item.name} has been added successfully.", bid_id=self.bid_id)
        return outcome

    async def update_item(self, item_id: str, changes: Mapping[str, Any]) -> SyncOutcome:
        """Validate and apply an edit to one item.

        Raises:
            ValidationError: A changed field is invalid; nothing was changed.
        """
        self._validate(changes, partial=True)
        outcome = await self.gateway.update_item(self.bid_id, item_id, changes)
        if outcome.item is not None and outcome.error is None:
            self.notifier.success("Item Updated", "The item has been saved successfully", bid_id=self.bid_id)
        return outcome

    async def delete_item(self, item_id: str) -> SyncOutcome:
        outcome = await self.gateway.delete_item(self.bid_id, item_id)
        if outcome.item is not None and outcome.error is None:
            self.notifier.success("Item Deleted", "The item has been removed successfully", bid_id=self.bid_id)
        return outcome

    async def save_all(self, items: Optional[Sequence[LineItem]] = None) -> BulkSyncOutcome:
        """Write the whole collection (default: the current items) to the backend."""
        return await self.gateway.replace_all(self.bid_id, self.items if items is None else items)

    # -------------------------------------------------------------------------
    # List text
    # -------------------------------------------------------------------------

    def list_text(self) -> str:
        return format_list_text(self.items)

    def import_list_text(self, text: str) -> Tuple[LineItem, ...]:
        """Replace the local items with the ones parsed from list text.

        Parsed items are manual and stay local until saved.
        """
        return self.store.replace(self.bid_id, parse_list_text(text))

    # -------------------------------------------------------------------------
    # Total
    # -------------------------------------------------------------------------

    async def refresh_total(self) -> float:
        return await self.totals.refresh(self.bid_id, self.items)

    def total_view(self) -> TotalView:
        return self.totals.view(self.bid_id)

    def total_display(self) -> str:
        view = self.total_view()
        return format_total_display(view.total, error=view.error, loading=view.loading)

    async def flush(self) -> None:
        await self.totals.flush(self.bid_id)

    def close(self) -> None:
        """Stop listening and drop pending total persists."""
        self._unsubscribe()
        self.totals.close()

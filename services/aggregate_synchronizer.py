"""Total proposed amount synchronization.

The total of a bid is the sum of its items' proposed bids. It is recomputed
locally on every item change and persisted to the backend after a debounce
window, so a burst of edits produces a single write carrying the final
value.

Per-bid state machine::

    IDLE --change--> PENDING_PERSIST --timer--> PERSISTING --> IDLE
                          ^    |                                (error flag set
                          +----+ change (timer replaced)         on failure)

Persist failures are never retried automatically and never roll back the
local total; they set the error flag and notify the user.

All methods must be called from the event loop that owns the timers.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, Optional, Set

import structlog

from config.errors import BidSyncError, ErrorCode
from config.settings import settings
from models.aggregate import AggregateSource, BidAggregate, CalculatedFrom
from models.line_item import ItemOrigin, LineItem
from services.bid_api_client import BidBackendClient
from services.price_resolver import sum_proposed_bids
from utils.notifications import Notifier

logger = structlog.get_logger()

SAVE_FAILED_MESSAGE = "Failed to save total proposed amount"
LOAD_FAILED_MESSAGE = "Failed to load total proposed amount"
AUTO_SAVE_NOTES = "Auto-saved from calculated calculation"

_CENT = 0.005


class PersistState(str, Enum):
    IDLE = "idle"
    PENDING_PERSIST = "pending_persist"
    PERSISTING = "persisting"


@dataclass(frozen=True)
class TotalView:
    """What the UI renders for a bid's total."""

    total: float
    loading: bool
    error: Optional[str]
    state: PersistState


@dataclass
class _BidTotal:
    aggregate: BidAggregate
    state: PersistState = PersistState.IDLE
    loading: bool = False
    error: Optional[str] = None
    last_persisted: Optional[float] = None
    pending_amount: Optional[float] = None
    in_flight_amount: Optional[float] = None
    timer: Optional[asyncio.TimerHandle] = None
    tasks: Set[asyncio.Task] = field(default_factory=set)


def _same_amount(a: Optional[float], b: Optional[float]) -> bool:
    return a is not None and b is not None and abs(a - b) < _CENT


def _breakdown(items: Iterable[LineItem]) -> CalculatedFrom:
    items = list(items)
    demolition = sum(1 for item in items if item.origin == ItemOrigin.DEMOLITION)
    return CalculatedFrom(
        demolition_items=demolition,
        manual_items=len(items) - demolition,
        total_items=len(items),
    )


class AggregateSynchronizer:
    """Keeps each bid's total proposed amount in step with its items.

    Args:
        client: Backend client for the total-proposed-amount endpoints.
        notifier: Receives user-facing failure messages.
        cache: Optional snapshot cache; totals are mirrored into it.
        debounce_seconds: Persist delay, defaults to settings.
    """

    def __init__(
        self,
        client: BidBackendClient,
        notifier: Notifier,
        cache=None,
        debounce_seconds: Optional[float] = None,
    ):
        self.client = client
        self.notifier = notifier
        self.cache = cache
        self.debounce_seconds = (
            settings.total_persist_debounce_seconds if debounce_seconds is None else debounce_seconds
        )
        self._bids: Dict[str, _BidTotal] = {}

    def _entry(self, bid_id: str) -> _BidTotal:
        entry = self._bids.get(bid_id)
        if entry is None:
            entry = _BidTotal(aggregate=BidAggregate(bid_id=bid_id))
            self._bids[bid_id] = entry
        return entry

    def view(self, bid_id: str) -> TotalView:
        entry = self._entry(bid_id)
        return TotalView(
            total=entry.aggregate.total_proposed_amount,
            loading=entry.loading,
            error=entry.error,
            state=entry.state,
        )

    def aggregate(self, bid_id: str) -> BidAggregate:
        return self._entry(bid_id).aggregate

    # -------------------------------------------------------------------------
    # Recompute and debounce
    # -------------------------------------------------------------------------

    def recompute_and_schedule_persist(self, bid_id: str, items: Iterable[LineItem]) -> float:
        """Recompute the total from ``items`` and schedule a persist if it changed.

        Runs for every change, including an empty item list (total 0).

        Returns:
            The new local total.
        """
        items = list(items)
        total = sum_proposed_bids(items)
        entry = self._entry(bid_id)
        entry.aggregate = BidAggregate(
            bid_id=bid_id,
            total_proposed_amount=total,
            last_updated=datetime.now(timezone.utc),
            source=AggregateSource.CALCULATED,
            calculated_from=_breakdown(items),
        )

        if entry.timer is not None and _same_amount(total, entry.pending_amount):
            return total

        self._cancel_timer(entry)
        reference = entry.in_flight_amount if entry.tasks else entry.last_persisted
        if _same_amount(total, reference):
            entry.state = PersistState.PERSISTING if entry.tasks else PersistState.IDLE
            return total

        loop = asyncio.get_running_loop()
        entry.pending_amount = total
        entry.timer = loop.call_later(self.debounce_seconds, self._fire, bid_id)
        entry.state = PersistState.PENDING_PERSIST
        logger.debug("total_persist_scheduled", bid_id=bid_id, total=total, delay=self.debounce_seconds)
        return total

    def _cancel_timer(self, entry: _BidTotal) -> None:
        if entry.timer is not None:
            entry.timer.cancel()
            entry.timer = None
            entry.pending_amount = None

    def _fire(self, bid_id: str) -> None:
        entry = self._entry(bid_id)
        amount = entry.pending_amount
        entry.timer = None
        entry.pending_amount = None
        if amount is None:
            return
        entry.in_flight_amount = amount
        entry.state = PersistState.PERSISTING
        task = asyncio.get_running_loop().create_task(self._persist(bid_id, amount))
        entry.tasks.add(task)
        task.add_done_callback(entry.tasks.discard)

    async def _persist(self, bid_id: str, amount: float) -> None:
        entry = self._entry(bid_id)
        try:
            response = await self.client.set_total(
                bid_id,
                amount,
                source=AggregateSource.CALCULATED,
                notes=AUTO_SAVE_NOTES,
            )
            if not response.success:
                raise BidSyncError(ErrorCode.TOTAL_SAVE_FAILED, response.message or SAVE_FAILED_MESSAGE)
        except BidSyncError as e:
            entry.error = SAVE_FAILED_MESSAGE
            logger.warning("total_persist_failed", bid_id=bid_id, total=amount, error=e.message)
            self.notifier.error("Error", SAVE_FAILED_MESSAGE, bid_id=bid_id)
        else:
            entry.last_persisted = amount
            entry.error = None
            if response.data is not None and response.data.last_updated is not None:
                entry.aggregate = entry.aggregate.model_copy(update={"last_updated": response.data.last_updated})
            logger.info("total_persisted", bid_id=bid_id, total=amount)
            if self.cache is not None:
                await self.cache.save_total(bid_id, entry.aggregate)
        finally:
            if entry.in_flight_amount == amount:
                entry.in_flight_amount = None
            if entry.timer is not None:
                entry.state = PersistState.PENDING_PERSIST
            elif len(entry.tasks - {asyncio.current_task()}) > 0:
                entry.state = PersistState.PERSISTING
            else:
                entry.state = PersistState.IDLE

    async def flush(self, bid_id: Optional[str] = None) -> None:
        """Fire pending persists now and wait for every in-flight persist."""
        bid_ids = [bid_id] if bid_id is not None else list(self._bids)
        tasks = []
        for key in bid_ids:
            entry = self._entry(key)
            if entry.timer is not None:
                entry.timer.cancel()
                self._fire(key)
            tasks.extend(entry.tasks)
        if tasks:
            await asyncio.gather(*tasks)

    def close(self) -> None:
        """Cancel every pending persist without firing it."""
        for bid_id, entry in self._bids.items():
            if entry.timer is not None:
                logger.debug("total_persist_cancelled", bid_id=bid_id)
            self._cancel_timer(entry)
            if entry.state == PersistState.PENDING_PERSIST:
                entry.state = PersistState.IDLE

    # -------------------------------------------------------------------------
    # Backend reads and explicit writes
    # -------------------------------------------------------------------------

    async def refresh(self, bid_id: str, items: Optional[Iterable[LineItem]] = None) -> float:
        """Re-fetch the stored total and reconcile it with the local items.

        When ``items`` are given and their sum differs from the stored value,
        the local sum wins and is scheduled for persisting. Without items the
        stored value is displayed.

        Returns:
            The total now displayed.
        """
        entry = self._entry(bid_id)
        local_items = list(items) if items is not None else None
        entry.loading = True
        try:
            response = await self.client.get_total(bid_id)
        except BidSyncError as e:
            entry.loading = False
            entry.error = LOAD_FAILED_MESSAGE
            logger.warning("total_refresh_failed", bid_id=bid_id, error=e.message)
            if local_items is not None:
                entry.aggregate = entry.aggregate.model_copy(update={
                    "total_proposed_amount": sum_proposed_bids(local_items),
                    "calculated_from": _breakdown(local_items),
                })
            elif self.cache is not None:
                cached = await self.cache.load_total(bid_id)
                if cached is not None:
                    entry.aggregate = cached
            return entry.aggregate.total_proposed_amount

        entry.loading = False
        entry.error = None
        stored = response.data if response.success else None
        if stored is not None:
            entry.last_persisted = stored.total_proposed_amount

        if local_items is not None and (
            stored is None or not _same_amount(sum_proposed_bids(local_items), stored.total_proposed_amount)
        ):
            return self.recompute_and_schedule_persist(bid_id, local_items)

        if stored is not None:
            if _same_amount(entry.pending_amount, stored.total_proposed_amount):
                self._cancel_timer(entry)
                entry.state = PersistState.PERSISTING if entry.tasks else PersistState.IDLE
            entry.aggregate = stored.model_copy(update={"source": AggregateSource.API})
            if self.cache is not None:
                await self.cache.save_total(bid_id, entry.aggregate)
        logger.info("total_refreshed", bid_id=bid_id, total=entry.aggregate.total_proposed_amount)
        return entry.aggregate.total_proposed_amount

    async def set_manual_total(self, bid_id: str, amount: float) -> bool:
        """Store a user-entered total, replacing any pending automatic persist."""
        entry = self._entry(bid_id)
        self._cancel_timer(entry)
        entry.aggregate = entry.aggregate.model_copy(update={
            "total_proposed_amount": round(amount, 2),
            "source": AggregateSource.MANUAL,
            "last_updated": datetime.now(timezone.utc),
        })
        try:
            await self.client.update_total(bid_id, amount, source=AggregateSource.MANUAL)
        except BidSyncError as e:
            entry.error = SAVE_FAILED_MESSAGE
            entry.state = PersistState.IDLE
            logger.warning("manual_total_failed", bid_id=bid_id, error=e.message)
            self.notifier.error("Error", SAVE_FAILED_MESSAGE, bid_id=bid_id)
            return False
        entry.last_persisted = round(amount, 2)
        entry.error = None
        entry.state = PersistState.IDLE
        return True

    async def request_server_calculation(self, bid_id: str, items: Iterable[LineItem]) -> Optional[float]:
        """Have the backend compute the total from the items and adopt its answer."""
        items = list(items)
        demolition = [item.to_wire() for item in items if item.origin == ItemOrigin.DEMOLITION]
        manual = [item.to_wire() for item in items if item.origin != ItemOrigin.DEMOLITION]
        entry = self._entry(bid_id)
        try:
            response = await self.client.calculate_total(bid_id, demolition, manual, force_recalculate=True)
        except BidSyncError as e:
            entry.error = SAVE_FAILED_MESSAGE
            logger.warning("total_calculation_failed", bid_id=bid_id, error=e.message)
            self.notifier.error("Error", "Failed to calculate total proposed amount", bid_id=bid_id)
            return None
        if not response.success or response.data is None:
            return None
        self._cancel_timer(entry)
        entry.aggregate = response.data.model_copy(update={"source": AggregateSource.CALCULATED})
        entry.last_persisted = response.data.total_proposed_amount
        entry.error = None
        entry.state = PersistState.IDLE
        return entry.last_persisted

    async def clear(self, bid_id: str) -> bool:
        """Delete the stored total and reset the local one to 0."""
        entry = self._entry(bid_id)
        self._cancel_timer(entry)
        try:
            await self.client.clear_total(bid_id)
        except BidSyncError as e:
            entry.error = e.message
            logger.warning("total_clear_failed", bid_id=bid_id, error=e.message)
            self.notifier.error("Error", "Failed to clear total proposed amount", bid_id=bid_id)
            return False
        if self.cache is not None:
            await self.cache.clear_total(bid_id)
        entry.aggregate = BidAggregate(bid_id=bid_id)
        entry.last_persisted = None
        entry.error = None
        entry.state = PersistState.IDLE
        return True

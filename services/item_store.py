"""Per-bid in-memory line item collections.

Each bid's items are held as an immutable tuple. Mutations build a new tuple
and swap it in, so a caller holding the previous tuple never sees it change.
"""

from typing import Callable, Dict, Iterable, List, Optional, Tuple

import structlog

from models.line_item import LineItem

logger = structlog.get_logger()

ItemsListener = Callable[[str, Tuple[LineItem, ...]], None]


class ItemStore:
    """Holds the current line items of every open bid.

    Listeners are called synchronously after each replacement with the bid id
    and the new tuple.
    """

    def __init__(self):
        self._items: Dict[str, Tuple[LineItem, ...]] = {}
        self._listeners: List[ItemsListener] = []

    def subscribe(self, listener: ItemsListener) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def get(self, bid_id: str) -> Tuple[LineItem, ...]:
        return self._items.get(bid_id, ())

    def find(self, bid_id: str, item_id: str) -> Optional[LineItem]:
        for item in self.get(bid_id):
            if item.id == item_id:
                return item
        return None

    def replace(self, bid_id: str, items: Iterable[LineItem]) -> Tuple[LineItem, ...]:
        """Swap in a new item collection for a bid."""
        snapshot = tuple(items)
        self._items[bid_id] = snapshot
        for listener in list(self._listeners):
            listener(bid_id, snapshot)
        return snapshot

    def append(self, bid_id: str, item: LineItem) -> Tuple[LineItem, ...]:
        return self.replace(bid_id, self.get(bid_id) + (item,))

    def put(self, bid_id: str, item: LineItem, item_id: Optional[str] = None) -> Tuple[LineItem, ...]:
        """Replace the item with id ``item_id`` (default ``item.id``) in place.

        Unknown ids leave the collection unchanged.
        """
        target = item_id or item.id
        current = self.get(bid_id)
        if not any(existing.id == target for existing in current):
            logger.debug("item_store_put_unknown_id", bid_id=bid_id, item_id=target)
            return current
        return self.replace(bid_id, (item if existing.id == target else existing for existing in current))

    def remove(self, bid_id: str, item_id: str) -> Tuple[LineItem, ...]:
        return self.replace(bid_id, (item for item in self.get(bid_id) if item.id != item_id))

    def clear(self, bid_id: str) -> None:
        self._items.pop(bid_id, None)

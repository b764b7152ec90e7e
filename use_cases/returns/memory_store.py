"""
In-memory repositories for orders, refunds and gift-card deliveries.

Used for local development, tests, and when no Cosmos DB is configured.
A single lock per repository makes save_if_status atomic.
"""

import logging
import threading
from typing import Any, Dict, Generic, Iterable, List, Optional

from core.data import QueryOptions, QueryResult, Repository, T, paginate

from .domain.models import GiftCardDelivery, Order, RefundTransaction

logger = logging.getLogger(__name__)


def _matches(entity: Any, filters: Dict[str, Any]) -> bool:
    for name, expected in filters.items():
        actual = getattr(entity, name, None)
        actual = getattr(actual, "value", actual)
        expected = getattr(expected, "value", expected)
        if actual != expected:
            return False
    return True


class InMemoryRepository(Repository[T], Generic[T]):
    """Dictionary-backed repository keyed by entity id."""

    def __init__(self, items: Optional[Iterable[T]] = None):
        self._items: Dict[str, T] = {}
        self._lock = threading.Lock()
        for item in items or ():
            self._items[item.id] = item

    def get_by_id(self, id: str) -> Optional[T]:
        with self._lock:
            return self._items.get(id)

    def find(self, options: Optional[QueryOptions] = None) -> QueryResult[T]:
        options = options or QueryOptions()
        with self._lock:
            matched: List[T] = [e for e in self._items.values() if _matches(e, options.filters)]
        if options.order_by:
            matched.sort(key=lambda e: getattr(e, options.order_by), reverse=options.order_desc)
        return paginate(matched, options)

    def save(self, entity: T) -> T:
        with self._lock:
            self._items[entity.id] = entity
        return entity

    def save_if_status(self, entity: T, expected_statuses: Iterable[Any]) -> bool:
        expected = {getattr(s, "value", s) for s in expected_statuses}
        with self._lock:
            current = self._items.get(entity.id)
            if current is None:
                return False
            if getattr(current.status, "value", current.status) not in expected:
                logger.info(
                    f"Conditional update of {entity.id} rejected: "
                    f"status is {current.status.value}, expected one of {sorted(expected)}"
                )
                return False
            self._items[entity.id] = entity
            return True

    def delete(self, id: str) -> bool:
        with self._lock:
            return self._items.pop(id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class InMemoryOrderRepository(InMemoryRepository[Order]):
    pass


class InMemoryRefundRepository(InMemoryRepository[RefundTransaction]):
    pass


class InMemoryGiftCardDeliveryRepository(InMemoryRepository[GiftCardDelivery]):
    pass

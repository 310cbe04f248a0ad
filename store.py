"""
Order Store
===========
Authoritative in-process collection of active orders.

Single writer per order:
- mutate(order_id) holds that order's asyncio.Lock for the whole unit
  of work
- the caller edits a deep copy of the committed order
- on clean exit the copy is committed as the new snapshot
- on any exception the copy is dropped and the committed order is
  untouched

Slot bindings (create, move, close) change under one store-wide lock,
so no two active orders ever share a slot.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from copy import deepcopy
from typing import AsyncIterator, Callable, Dict, List, Optional

from prometheus_client import Counter

from errors import OrderNotFound, SlotOccupied
from order import Order


logger = logging.getLogger(__name__)


store_commits = Counter(
    'pos_store_commits_total',
    'Order mutation outcomes',
    ['result']
)


class OrderStore:
    """Active orders keyed by id, with a slot -> order id index."""

    def __init__(self):
        self._orders: Dict[str, Order] = {}
        self._slot_index: Dict[object, str] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._index_lock = asyncio.Lock()

    # ========================================================================
    # READS (always copies)
    # ========================================================================

    def get(self, order_id: str) -> Order:
        """
        Copy of the committed order.

        Raises:
            OrderNotFound: Unknown or closed order
        """
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return deepcopy(order)

    def order_id_for_slot(self, slot) -> Optional[str]:
        return self._slot_index.get(slot)

    def active_order_for_slot(self, slot) -> Optional[Order]:
        order_id = self._slot_index.get(slot)
        if order_id is None:
            return None
        return deepcopy(self._orders[order_id])

    def list_active(self) -> List[Order]:
        return [deepcopy(order) for order in self._orders.values()]

    def __len__(self):
        return len(self._orders)

    # ========================================================================
    # WRITES
    # ========================================================================

    async def get_or_create(self, slot, factory: Callable[[object], Order]) -> Order:
        """Active order for slot, creating one with factory(slot) if free."""
        async with self._index_lock:
            order_id = self._slot_index.get(slot)
            if order_id is not None:
                return deepcopy(self._orders[order_id])

            order = factory(slot)
            order.recompute_totals()
            self._orders[order.order_id] = order
            self._slot_index[slot] = order.order_id

            logger.debug(f"Order {order.order_id} bound to {slot.label}")
            return deepcopy(order)

    @asynccontextmanager
    async def mutate(self, order_id: str) -> AsyncIterator[Order]:
        """
        Serialized read-modify-write of one order.

        Raises:
            OrderNotFound: Order unknown, or closed while waiting for the lock
            SlotOccupied: A move targets a slot taken by another active order
        """
        if order_id not in self._orders:
            raise OrderNotFound(order_id)

        lock = self._locks.setdefault(order_id, asyncio.Lock())

        async with lock:
            committed = self._orders.get(order_id)
            if committed is None:
                # Closed by the previous lock holder
                raise OrderNotFound(order_id)

            working = deepcopy(committed)

            try:
                yield working
            except Exception:
                store_commits.labels(result="discarded").inc()
                raise

            await self._commit(committed, working)

    async def _commit(self, committed: Order, working: Order):
        async with self._index_lock:
            order_id = committed.order_id

            if working.slot != committed.slot and working.is_active:
                occupant = self._slot_index.get(working.slot)
                if occupant is not None and occupant != order_id:
                    store_commits.labels(result="conflict").inc()
                    raise SlotOccupied(working.slot.label, occupant)

                del self._slot_index[committed.slot]
                self._slot_index[working.slot] = order_id

            working.recompute_totals()

            if working.is_active:
                self._orders[order_id] = working
            else:
                del self._orders[order_id]
                self._slot_index.pop(committed.slot, None)
                self._locks.pop(order_id, None)
                logger.info(
                    f"Order {order_id} removed from active set",
                    extra={"order_id": order_id}
                )

            store_commits.labels(result="committed").inc()

"""
Order Module
============
Order lifecycle state machine and item ledger.

State transitions:
    OPEN -> SENT -> CLOSED

- OPEN: created on first access to an empty slot
- SENT: at least one send flushed pending quantities to kitchen/bar
- CLOSED: terminal, the order leaves the active set

Items track requested quantity against sent quantity. The difference is
the pending quantity that the next send flushes.

Quantity reductions live in reconciler.py and admin_gate.py; this module
never lowers a quantity.
"""

import logging
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from prometheus_client import Counter, Gauge

import pricing
from errors import (
    InvalidQuantity,
    InvalidTransition,
    ItemNotFound,
    ItemUnavailable,
    NothingToSend,
    NotSent,
    OrderClosed,
    OrderLimitExceeded,
    SlotOccupied,
)
from pricing import PricingSnapshot


logger = logging.getLogger(__name__)


# ============================================================================
# METRICS
# ============================================================================

orders_created = Counter(
    'pos_orders_created_total',
    'Orders created',
    ['slot_kind']
)
order_status_transitions = Counter(
    'pos_order_status_transitions_total',
    'Order status transitions',
    ['from_status', 'to_status']
)
order_items_flushed = Counter(
    'pos_order_items_flushed_total',
    'Item quantities flushed to kitchen/bar'
)
orders_active = Gauge(
    'pos_orders_active',
    'Currently active orders'
)


# ============================================================================
# ENUMS
# ============================================================================

class OrderStatus(Enum):
    """Order lifecycle states. CLOSED is terminal."""
    OPEN = "open"
    SENT = "sent"
    CLOSED = "closed"


class ReceiptKind(Enum):
    """Receipt printed when an order closes."""
    THERMAL = "thermal"   # Standard ticket
    FISCAL = "fiscal"     # Tax-registered receipt


VALID_TRANSITIONS = {
    OrderStatus.OPEN: {OrderStatus.SENT},
    OrderStatus.SENT: {OrderStatus.SENT, OrderStatus.CLOSED},
    OrderStatus.CLOSED: set(),  # Terminal
}


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def _normalize_notes(notes: Optional[str]) -> str:
    return (notes or "").strip()


# ============================================================================
# ORDER ITEM
# ============================================================================

@dataclass
class OrderItem:
    """
    One order line.

    sent_quantity never exceeds quantity. The unit price comes from the
    pricing snapshot taken when the line was created.
    """
    item_id: str
    menu_item_id: str
    name: str
    pricing: PricingSnapshot
    quantity: int
    sent_quantity: int = 0
    notes: str = ""
    print_destination: str = "kitchen"
    added_at: str = field(default_factory=lambda: datetime.utcnow().isoformat())

    @property
    def unit_price(self) -> float:
        return self.pricing.unit_price

    @property
    def total_price(self) -> float:
        return pricing.line_total(self)

    @property
    def pending_quantity(self) -> int:
        return max(0, self.quantity - self.sent_quantity)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "item_id": self.item_id,
            "menu_item_id": self.menu_item_id,
            "name": self.name,
            "unit_price": self.unit_price,
            "price_captured_at": self.pricing.captured_at,
            "quantity": self.quantity,
            "sent_quantity": self.sent_quantity,
            "pending_quantity": self.pending_quantity,
            "total_price": self.total_price,
            "notes": self.notes,
            "print_destination": self.print_destination,
            "added_at": self.added_at,
        }


@dataclass(frozen=True)
class SentLine:
    """Quantity of one line flushed by a send."""
    item_id: str
    menu_item_id: str
    name: str
    quantity: int
    notes: str
    print_destination: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ReceiptRequest:
    """Everything the receipt printer needs once an order closes."""
    order_id: str
    slot: Dict[str, Any]
    items: Tuple[Dict[str, Any], ...]
    total_amount: float
    receipt_kind: ReceiptKind
    closed_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "slot": self.slot,
            "items": list(self.items),
            "total_amount": self.total_amount,
            "receipt_kind": self.receipt_kind.value,
            "closed_at": self.closed_at,
        }


# ============================================================================
# ORDER
# ============================================================================

class Order:
    """
    An order bound to one slot.

    total_amount is derived; call recompute_totals() after any item change.
    """

    def __init__(self, slot, order_id: Optional[str] = None):
        self.order_id = order_id or _new_id("ord")
        self.slot = slot
        self.status = OrderStatus.OPEN
        self.items: List[OrderItem] = []
        self.total_amount = 0.0

        self.created_at = datetime.utcnow()
        self.updated_at = self.created_at
        self.closed_at: Optional[datetime] = None

        self._status_history: List[Tuple[OrderStatus, datetime]] = [
            (OrderStatus.OPEN, self.created_at)
        ]

    @property
    def is_active(self) -> bool:
        return self.status != OrderStatus.CLOSED

    @property
    def pending_quantity(self) -> int:
        return sum(item.pending_quantity for item in self.items)

    def find_item(self, item_id: str) -> OrderItem:
        """
        Get line by id.

        Raises:
            ItemNotFound: No such line on this order
        """
        for item in self.items:
            if item.item_id == item_id:
                return item
        raise ItemNotFound(self.order_id, item_id)

    def delete_item(self, item: OrderItem):
        self.items = [i for i in self.items if i.item_id != item.item_id]

    def recompute_totals(self):
        """Recompute total from scratch (no incremental drift)."""
        self.total_amount = pricing.order_total(self.items)
        self.updated_at = datetime.utcnow()

    def get_history(self) -> List[Dict[str, str]]:
        return [
            {"status": status.value, "timestamp": ts.isoformat()}
            for status, ts in self._status_history
        ]

    def to_dict(self) -> Dict[str, Any]:
        """Export to dictionary."""
        return {
            "order_id": self.order_id,
            "slot": self.slot.to_dict(),
            "status": self.status.value,
            "items": [item.to_dict() for item in self.items],
            "total_amount": self.total_amount,
            "pending_quantity": self.pending_quantity,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
            "history": self.get_history(),
        }

    def __repr__(self):
        return f"<Order {self.order_id} {self.slot.label} {self.status.value}>"


# ============================================================================
# LIFECYCLE
# ============================================================================

class OrderLifecycle:
    """
    Status transitions and additive item mutations.

    Every method works on the order handed to it by the store's mutation
    scope and leaves totals recomputed.
    """

    def __init__(self, max_quantity_per_item: int = 99, max_items_per_order: int = 100):
        self.max_quantity_per_item = max_quantity_per_item
        self.max_items_per_order = max_items_per_order

    def create(self, slot) -> Order:
        """Fresh OPEN order with no items."""
        order = Order(slot)

        orders_created.labels(slot_kind=slot.kind).inc()
        orders_active.inc()

        logger.info(
            f"Order created: {order.order_id} for {slot.label}",
            extra={"order_id": order.order_id, "slot": slot.label}
        )
        return order

    def transition(self, order: Order, new_status: OrderStatus):
        """
        Move order to new_status.

        Raises:
            InvalidTransition: Not allowed from the current status
        """
        if new_status not in VALID_TRANSITIONS.get(order.status, set()):
            logger.warning(
                f"Invalid transition: {order.status.value} -> {new_status.value}",
                extra={"order_id": order.order_id}
            )
            raise InvalidTransition(order.order_id, order.status.value, new_status.value)

        if new_status == order.status:
            return

        old_status = order.status
        now = datetime.utcnow()
        order.status = new_status
        order.updated_at = now
        order._status_history.append((new_status, now))

        order_status_transitions.labels(
            from_status=old_status.value,
            to_status=new_status.value
        ).inc()

        logger.info(
            f"Order {order.order_id}: {old_status.value} -> {new_status.value}",
            extra={"order_id": order.order_id}
        )

    def ensure_mutable(self, order: Order):
        if order.status == OrderStatus.CLOSED:
            raise OrderClosed(order.order_id)

    def add_item(
        self,
        order: Order,
        menu_item,
        quantity: int,
        notes: Optional[str] = None
    ) -> OrderItem:
        """
        Add menu_item to the order, legal while OPEN or SENT.

        Merges into an existing line only when it is the same menu item
        with the same notes and none of it has been sent. Notes mark a
        customization, so lines with different notes stay separate.

        Raises:
            InvalidQuantity: quantity < 1 or above the per-item limit
            ItemUnavailable: menu item switched off in the catalog
            OrderClosed: order already closed
        """
        self.ensure_mutable(order)
        quantity = self._validate_quantity(quantity)

        if not menu_item.available:
            raise ItemUnavailable(menu_item.menu_item_id)

        notes = _normalize_notes(notes)

        for item in order.items:
            if (
                item.menu_item_id == menu_item.menu_item_id
                and item.notes == notes
                and item.sent_quantity == 0
            ):
                merged = item.quantity + quantity
                if merged > self.max_quantity_per_item:
                    raise InvalidQuantity(
                        merged,
                        f"exceeds per-item limit of {self.max_quantity_per_item}"
                    )
                item.quantity = merged
                order.recompute_totals()

                logger.info(
                    f"Merged {quantity} x {item.name} into {item.item_id} "
                    f"(now {item.quantity})",
                    extra={"order_id": order.order_id}
                )
                return item

        if len(order.items) >= self.max_items_per_order:
            raise OrderLimitExceeded(
                f"Order {order.order_id} already has {len(order.items)} lines",
                {"order_id": order.order_id, "limit": self.max_items_per_order}
            )

        item = OrderItem(
            item_id=_new_id("itm"),
            menu_item_id=menu_item.menu_item_id,
            name=menu_item.name,
            pricing=pricing.snapshot(menu_item),
            quantity=quantity,
            notes=notes,
            print_destination=menu_item.print_destination.value,
        )
        order.items.append(item)
        order.recompute_totals()

        logger.info(
            f"Added item: {item.name} (quantity={quantity}, price={item.unit_price:.2f})",
            extra={"order_id": order.order_id, "item_id": item.item_id}
        )
        return item

    def send(self, order: Order) -> List[SentLine]:
        """
        Flush every pending quantity to kitchen/bar.

        OPEN advances to SENT; a SENT order stays SENT.

        Returns:
            The lines and quantities flushed by this send

        Raises:
            NothingToSend: No pending quantity on any line
        """
        self.ensure_mutable(order)

        if order.pending_quantity == 0:
            raise NothingToSend(order.order_id)

        flushed = []
        for item in order.items:
            pending = item.pending_quantity
            if pending <= 0:
                continue

            flushed.append(SentLine(
                item_id=item.item_id,
                menu_item_id=item.menu_item_id,
                name=item.name,
                quantity=pending,
                notes=item.notes,
                print_destination=item.print_destination,
            ))
            item.sent_quantity = item.quantity

        self.transition(order, OrderStatus.SENT)
        order.recompute_totals()

        order_items_flushed.inc(sum(line.quantity for line in flushed))

        logger.info(
            f"Order {order.order_id} sent: {len(flushed)} line(s) flushed",
            extra={"order_id": order.order_id}
        )
        return flushed

    def close(self, order: Order, receipt_kind: ReceiptKind) -> ReceiptRequest:
        """
        Close a SENT order and describe its receipt.

        Raises:
            NotSent: Order is still OPEN
            OrderClosed: Order already closed
        """
        self.ensure_mutable(order)

        if order.status != OrderStatus.SENT:
            raise NotSent(order.order_id, order.status.value)

        receipt_kind = ReceiptKind(receipt_kind)

        self.transition(order, OrderStatus.CLOSED)
        order.closed_at = order.updated_at
        orders_active.dec()

        logger.info(
            f"Order closed: {order.order_id} "
            f"(total={order.total_amount:.2f}, receipt={receipt_kind.value})",
            extra={"order_id": order.order_id}
        )

        return ReceiptRequest(
            order_id=order.order_id,
            slot=order.slot.to_dict(),
            items=tuple(item.to_dict() for item in order.items),
            total_amount=order.total_amount,
            receipt_kind=receipt_kind,
            closed_at=order.closed_at.isoformat(),
        )

    def move_to_table(self, order: Order, new_slot, occupant_order_id: Optional[str] = None):
        """
        Re-address order to new_slot, keeping status and items.

        The store re-checks occupancy when it commits the move.

        Raises:
            SlotOccupied: Another active order holds new_slot
        """
        self.ensure_mutable(order)

        if occupant_order_id is not None and occupant_order_id != order.order_id:
            raise SlotOccupied(new_slot.label, occupant_order_id)

        if new_slot == order.slot:
            return

        old_label = order.slot.label
        order.slot = new_slot
        order.updated_at = datetime.utcnow()

        logger.info(
            f"Order {order.order_id} moved: {old_label} -> {new_slot.label}",
            extra={"order_id": order.order_id}
        )

    def _validate_quantity(self, quantity: Any) -> int:
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidQuantity(quantity, "quantity must be a whole number")
        if quantity < 1:
            raise InvalidQuantity(quantity)
        if quantity > self.max_quantity_per_item:
            raise InvalidQuantity(
                quantity,
                f"exceeds per-item limit of {self.max_quantity_per_item}"
            )
        return quantity

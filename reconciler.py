"""
Quantity Reconciler
===================
Ordinary quantity changes and removals.

Quantity that has already gone to the kitchen/bar cannot be taken back
here. Those requests fail with requires_admin=True and must be retried
through AdminOverrideGate.
"""

import logging
from typing import Any

from prometheus_client import Counter

from errors import BelowSentQuantity, InvalidQuantity, RequiresAdmin
from order import Order, OrderItem


logger = logging.getLogger(__name__)


reconciler_rejections = Counter(
    'pos_reconciler_rejections_total',
    'Quantity changes refused because quantity was already sent',
    ['operation']
)


class QuantityReconciler:
    """Keeps sent_quantity <= quantity on every ordinary mutation."""

    def __init__(self, lifecycle, max_quantity_per_item: int = 99):
        self.lifecycle = lifecycle
        self.max_quantity_per_item = max_quantity_per_item

    def set_quantity(self, order: Order, item: OrderItem, new_quantity: Any):
        """
        Set a line's quantity.

        Raising is always allowed, also on a SENT order (the extra becomes
        pending). Zero deletes the line.

        Raises:
            InvalidQuantity: Negative, non-integer, or above the limit
            BelowSentQuantity: new_quantity < sent_quantity
        """
        self.lifecycle.ensure_mutable(order)

        if isinstance(new_quantity, bool) or not isinstance(new_quantity, int):
            raise InvalidQuantity(new_quantity, "quantity must be a whole number")
        if new_quantity < 0:
            raise InvalidQuantity(new_quantity, "quantity cannot be negative")
        if new_quantity > self.max_quantity_per_item:
            raise InvalidQuantity(
                new_quantity,
                f"exceeds per-item limit of {self.max_quantity_per_item}"
            )

        if new_quantity < item.sent_quantity:
            reconciler_rejections.labels(operation="set_quantity").inc()
            logger.warning(
                f"Refused reduction of {item.item_id} to {new_quantity} "
                f"(sent={item.sent_quantity})",
                extra={"order_id": order.order_id}
            )
            raise BelowSentQuantity(item.item_id, new_quantity, item.sent_quantity)

        if new_quantity == 0:
            order.delete_item(item)
            logger.info(
                f"Removed item via zero quantity: {item.name}",
                extra={"order_id": order.order_id, "item_id": item.item_id}
            )
        else:
            old_quantity = item.quantity
            item.quantity = new_quantity
            logger.info(
                f"Updated quantity: {item.name} {old_quantity} -> {new_quantity}",
                extra={"order_id": order.order_id, "item_id": item.item_id}
            )

        order.recompute_totals()

    def remove_item(self, order: Order, item: OrderItem):
        """
        Delete a line that has nothing sent.

        Raises:
            RequiresAdmin: Some of the line was already sent
        """
        self.lifecycle.ensure_mutable(order)

        if item.sent_quantity > 0:
            reconciler_rejections.labels(operation="remove_item").inc()
            logger.warning(
                f"Refused removal of {item.item_id} (sent={item.sent_quantity})",
                extra={"order_id": order.order_id}
            )
            raise RequiresAdmin(item.item_id, item.sent_quantity)

        order.delete_item(item)
        order.recompute_totals()

        logger.info(
            f"Removed item: {item.name}",
            extra={"order_id": order.order_id, "item_id": item.item_id}
        )

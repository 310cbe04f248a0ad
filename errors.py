"""
POS Error Taxonomy
==================
Typed failures raised by the order core.

Five families, each mapped to one user-facing treatment:
- ValidationError: malformed slot/quantity, user is re-prompted
- BusinessRuleViolation: rule refused the mutation, message shown
- AuthorizationError: admin credential rejected, credential re-entry
- ConflictError: destination already taken, user picks another
- NotFoundError: stale client state, client resyncs

Only BelowSentQuantity and RequiresAdmin carry requires_admin=True,
telling the caller to retry through the admin override.
"""

from typing import Any, Dict, Optional


class PosError(Exception):
    """Base class for every failure the order core reports."""

    code = "pos_error"
    requires_admin = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "error": self.code,
            "message": self.message,
            "requires_admin": self.requires_admin,
            "details": self.details,
        }


# ============================================================================
# FAMILIES
# ============================================================================

class ValidationError(PosError):
    code = "validation_error"


class BusinessRuleViolation(PosError):
    code = "business_rule_violation"


class AuthorizationError(PosError):
    code = "authorization_error"


class ConflictError(PosError):
    code = "conflict"


class NotFoundError(PosError):
    code = "not_found"


# ============================================================================
# VALIDATION
# ============================================================================

class SlotInvalid(ValidationError):
    code = "slot_invalid"

    def __init__(self, identifier: Any, reason: str = "out of range"):
        super().__init__(
            f"Invalid slot {identifier!r}: {reason}",
            {"identifier": str(identifier), "reason": reason}
        )


class InvalidQuantity(ValidationError):
    code = "invalid_quantity"

    def __init__(self, quantity: Any, reason: str = "quantity must be at least 1"):
        super().__init__(
            f"Invalid quantity {quantity!r}: {reason}",
            {"quantity": quantity, "reason": reason}
        )


class ItemUnavailable(ValidationError):
    code = "item_unavailable"

    def __init__(self, menu_item_id: str):
        super().__init__(
            f"Menu item {menu_item_id} is not available",
            {"menu_item_id": menu_item_id}
        )


class OrderLimitExceeded(ValidationError):
    code = "order_limit_exceeded"


class InvalidPrice(ValidationError):
    code = "invalid_price"

    def __init__(self, price: Any, reason: str = "price cannot be negative"):
        super().__init__(
            f"Invalid price {price!r}: {reason}",
            {"price": str(price), "reason": reason}
        )


# ============================================================================
# BUSINESS RULES
# ============================================================================

class BelowSentQuantity(BusinessRuleViolation):
    code = "below_sent_quantity"
    requires_admin = True

    def __init__(self, item_id: str, requested: int, sent_quantity: int):
        super().__init__(
            f"Cannot reduce item {item_id} to {requested}: "
            f"{sent_quantity} already sent",
            {
                "item_id": item_id,
                "requested_quantity": requested,
                "sent_quantity": sent_quantity,
            }
        )


class RequiresAdmin(BusinessRuleViolation):
    code = "requires_admin"
    requires_admin = True

    def __init__(self, item_id: str, sent_quantity: int):
        super().__init__(
            f"Item {item_id} has {sent_quantity} sent, admin override required",
            {"item_id": item_id, "sent_quantity": sent_quantity}
        )


class NothingToSend(BusinessRuleViolation):
    code = "nothing_to_send"

    def __init__(self, order_id: str):
        super().__init__(
            f"Order {order_id} has no pending items to send",
            {"order_id": order_id}
        )


class NotSent(BusinessRuleViolation):
    code = "not_sent"

    def __init__(self, order_id: str, status: str):
        super().__init__(
            f"Order {order_id} must be sent before closing (status: {status})",
            {"order_id": order_id, "status": status}
        )


class OrderClosed(BusinessRuleViolation):
    code = "order_closed"

    def __init__(self, order_id: str):
        super().__init__(
            f"Order {order_id} is closed",
            {"order_id": order_id}
        )


class InvalidTransition(BusinessRuleViolation):
    code = "invalid_transition"

    def __init__(self, order_id: str, from_status: str, to_status: str):
        super().__init__(
            f"Invalid transition for order {order_id}: {from_status} -> {to_status}",
            {"order_id": order_id, "from_status": from_status, "to_status": to_status}
        )


# ============================================================================
# AUTHORIZATION / CONFLICT / NOT FOUND
# ============================================================================

class InvalidCredential(AuthorizationError):
    code = "invalid_credential"

    def __init__(self, reason: str = "admin credential rejected"):
        super().__init__(reason, {"reason": reason})


class SlotOccupied(ConflictError):
    code = "slot_occupied"

    def __init__(self, slot_label: str, occupant_order_id: str):
        super().__init__(
            f"Slot {slot_label} already has active order {occupant_order_id}",
            {"slot": slot_label, "occupant_order_id": occupant_order_id}
        )


class OrderNotFound(NotFoundError):
    code = "order_not_found"

    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} not found", {"order_id": order_id})


class ItemNotFound(NotFoundError):
    code = "item_not_found"

    def __init__(self, order_id: str, item_id: str):
        super().__init__(
            f"Item {item_id} not found in order {order_id}",
            {"order_id": order_id, "item_id": item_id}
        )


class MenuItemNotFound(NotFoundError):
    code = "menu_item_not_found"

    def __init__(self, menu_item_id: str):
        super().__init__(
            f"Menu item {menu_item_id} not found",
            {"menu_item_id": menu_item_id}
        )

"""
Pricing
=======
Unit prices are captured when an item is added so later catalog edits
never change an open order. Totals are recomputed from scratch after
every mutation.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from errors import InvalidPrice


@dataclass(frozen=True)
class PricingSnapshot:
    """Unit price captured at add time."""
    unit_price: float
    captured_at: str = field(default_factory=lambda: datetime.utcnow().isoformat())


def _normalize_price(price: Any) -> float:
    try:
        p = float(price)
    except (TypeError, ValueError):
        raise InvalidPrice(price, "not a number")
    if p < 0:
        raise InvalidPrice(price)
    return round(p, 2)


def snapshot(menu_item) -> PricingSnapshot:
    """Copy the menu item's current price."""
    return PricingSnapshot(unit_price=_normalize_price(menu_item.price))


def line_total(item) -> float:
    return round(item.quantity * item.unit_price, 2)


def order_total(items: Iterable) -> float:
    return round(sum(line_total(item) for item in items), 2)

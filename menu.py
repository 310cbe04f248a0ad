"""
Menu Catalog
============
Read-only lookup of menu items by id.

The order core copies name, price and print destination out of a menu
item when a line is added and never holds on to the item itself.
Catalog CRUD and search live elsewhere; this module only loads and
serves items.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pricing
from errors import InvalidPrice, MenuItemNotFound


logger = logging.getLogger(__name__)


# Validation limits
MAX_MENU_SIZE = 1000
MAX_ITEM_NAME_LENGTH = 200
MAX_ITEM_PRICE = 100000.00


class PrintDestination(Enum):
    """Where a sent line is ticketed."""
    KITCHEN = "kitchen"
    BAR = "bar"


@dataclass(frozen=True)
class MenuItem:
    """
    Catalog entry.

    frozen=True: the order core can read a menu item but never change it.
    """
    menu_item_id: str
    name: str
    price: float
    category: str = "general"
    print_destination: PrintDestination = PrintDestination.KITCHEN
    available: bool = True
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "menu_item_id": self.menu_item_id,
            "name": self.name,
            "price": self.price,
            "category": self.category,
            "print_destination": self.print_destination.value,
            "available": self.available,
        }


class MenuCatalog:
    """
    In-process catalog keyed by menu item id.

    Invalid raw entries are skipped with a warning rather than failing
    the whole load.
    """

    def __init__(self, items: Optional[Iterable[MenuItem]] = None):
        self._items: Dict[str, MenuItem] = {}
        for item in items or ():
            self.put(item)

    def get_item(self, menu_item_id: str) -> MenuItem:
        """
        Get menu item by id.

        Raises:
            MenuItemNotFound: Unknown id
        """
        item = self._items.get(str(menu_item_id))
        if item is None:
            raise MenuItemNotFound(str(menu_item_id))
        return item

    def get_all_items(self) -> List[MenuItem]:
        return list(self._items.values())

    def get_categories(self) -> List[str]:
        return sorted({item.category for item in self._items.values()})

    def put(self, item: MenuItem):
        """
        Insert or replace an item (catalog edits do not touch open orders).

        Raises:
            InvalidPrice: Price negative, not a number, or above MAX_ITEM_PRICE
        """
        price = pricing.snapshot(item).unit_price
        if price > MAX_ITEM_PRICE:
            raise InvalidPrice(item.price, f"exceeds maximum of {MAX_ITEM_PRICE:.2f}")

        self._items[item.menu_item_id] = item

    def __len__(self):
        return len(self._items)

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> "MenuCatalog":
        catalog = cls()
        loaded = 0

        for raw in list(records)[:MAX_MENU_SIZE]:
            item = _validate_item(raw)
            if item is None:
                continue
            catalog.put(item)
            loaded += 1

        logger.info(f"Menu catalog loaded: {loaded} item(s)")
        return catalog

    @classmethod
    def from_json_file(cls, path: str) -> "MenuCatalog":
        """
        Load a catalog from a JSON file holding either a list of items
        or {"items": [...]}.
        """
        data = json.loads(Path(path).read_text(encoding="utf-8"))

        if isinstance(data, dict):
            data = data.get("items", [])

        if not isinstance(data, list):
            logger.warning(f"Menu file {path} has no item list")
            data = []

        return cls.from_records(data)


def _validate_item(raw: Dict[str, Any]) -> Optional[MenuItem]:
    """Validate one raw record; None if it cannot be used."""
    if not isinstance(raw, dict):
        logger.warning(f"Skipping non-object menu record: {raw!r}")
        return None

    item_id = raw.get("id", raw.get("menu_item_id"))
    name = str(raw.get("name", "")).strip()

    if item_id is None or not name:
        logger.warning(f"Skipping menu record without id/name: {raw!r}")
        return None

    if len(name) > MAX_ITEM_NAME_LENGTH:
        name = name[:MAX_ITEM_NAME_LENGTH]

    try:
        price = round(float(raw.get("price", 0)), 2)
    except (TypeError, ValueError):
        logger.warning(f"Skipping menu record {item_id} with bad price")
        return None

    if price < 0 or price > MAX_ITEM_PRICE:
        logger.warning(f"Skipping menu record {item_id}: price {price} out of range")
        return None

    try:
        destination = PrintDestination(
            str(raw.get("print_destination", "kitchen")).lower()
        )
    except ValueError:
        logger.warning(f"Unknown print destination for {item_id}, using kitchen")
        destination = PrintDestination.KITCHEN

    return MenuItem(
        menu_item_id=str(item_id),
        name=name,
        price=price,
        category=str(raw.get("category", "general")),
        print_destination=destination,
        available=bool(raw.get("available", True)),
    )

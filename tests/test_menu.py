import json

import pytest

from errors import InvalidPrice, MenuItemNotFound
from menu import MenuCatalog, MenuItem, PrintDestination


RECORDS = [
    {"id": 1, "name": "Espresso", "price": 55, "category": "drinks", "print_destination": "bar"},
    {"id": 2, "name": "Burger", "price": "320.499"},
    {"menu_item_id": "salad", "name": "Salad", "price": 180, "available": False},
    {"id": 4, "name": "", "price": 10},
    {"id": 5, "name": "Free lunch", "price": -1},
    {"id": 6, "name": "Tea", "price": "cheap"},
    {"id": 7, "name": "Soda", "price": 40, "print_destination": "roof"},
    "not a record",
]


def test_from_records_keeps_valid_items():
    catalog = MenuCatalog.from_records(RECORDS)

    assert len(catalog) == 4
    assert catalog.get_item("1").print_destination == PrintDestination.BAR
    assert catalog.get_item("2").price == 320.5
    assert catalog.get_item("2").print_destination == PrintDestination.KITCHEN
    assert not catalog.get_item("salad").available
    assert catalog.get_item("7").print_destination == PrintDestination.KITCHEN


def test_get_item_accepts_numeric_ids():
    catalog = MenuCatalog.from_records(RECORDS)

    assert catalog.get_item(1).name == "Espresso"


def test_unknown_item():
    with pytest.raises(MenuItemNotFound):
        MenuCatalog().get_item("missing")


def test_categories():
    catalog = MenuCatalog.from_records(RECORDS)

    assert set(catalog.get_categories()) == {"drinks", "general"}


@pytest.mark.parametrize("wrap", [False, True])
def test_from_json_file(tmp_path, wrap):
    data = {"items": RECORDS[:2]} if wrap else RECORDS[:2]
    path = tmp_path / "menu.json"
    path.write_text(json.dumps(data), encoding="utf-8")

    catalog = MenuCatalog.from_json_file(str(path))

    assert [item.name for item in catalog.get_all_items()] == ["Espresso", "Burger"]


@pytest.mark.parametrize("price", [-1, "free", 100000.01])
def test_put_rejects_bad_prices(price):
    catalog = MenuCatalog()

    with pytest.raises(InvalidPrice):
        catalog.put(MenuItem("bad", "Bad", price))
    assert len(catalog) == 0


def test_constructor_validates_items():
    with pytest.raises(InvalidPrice):
        MenuCatalog([MenuItem("bad", "Bad", -5)])

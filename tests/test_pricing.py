import pytest

import pricing
from errors import InvalidPrice
from menu import MenuItem


def test_snapshot_copies_price():
    item = MenuItem("tea", "Tea", 45.456)

    snap = pricing.snapshot(item)

    assert snap.unit_price == 45.46
    assert snap.captured_at


def test_snapshot_rejects_bad_price():
    with pytest.raises(InvalidPrice):
        pricing.snapshot(MenuItem("x", "X", -1))
    with pytest.raises(InvalidPrice):
        pricing.snapshot(MenuItem("x", "X", "n/a"))


def test_totals(order, lifecycle, coffee, cake):
    lifecycle.add_item(order, coffee, 3)
    lifecycle.add_item(order, cake, 2)

    assert [pricing.line_total(i) for i in order.items] == [180, 300]
    assert pricing.order_total(order.items) == 480
    assert pricing.order_total([]) == 0

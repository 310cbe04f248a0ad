import pytest

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
    ValidationError,
)
from menu import MenuItem
from order import OrderLifecycle, OrderStatus, ReceiptKind
from slots import DineIn, Takeout


def test_new_order_is_open_and_empty(order):
    assert order.status == OrderStatus.OPEN
    assert order.items == []
    assert order.total_amount == 0
    assert order.slot == DineIn(5)


def test_add_item_snapshots_price_and_totals(order, lifecycle, coffee):
    item = lifecycle.add_item(order, coffee, 2)

    assert item.unit_price == 60
    assert item.sent_quantity == 0
    assert item.print_destination == "bar"
    assert order.total_amount == 120
    assert order.status == OrderStatus.OPEN


def test_add_item_merges_same_unsent_line(order, lifecycle, coffee):
    first = lifecycle.add_item(order, coffee, 1)
    second = lifecycle.add_item(order, coffee, 2)

    assert first.item_id == second.item_id
    assert len(order.items) == 1
    assert order.items[0].quantity == 3


def test_add_item_keeps_lines_with_different_notes_apart(order, lifecycle, coffee):
    lifecycle.add_item(order, coffee, 1, "no sugar")
    lifecycle.add_item(order, coffee, 1)
    lifecycle.add_item(order, coffee, 1, "  no sugar ")

    assert [(i.notes, i.quantity) for i in order.items] == [("no sugar", 2), ("", 1)]


def test_add_item_does_not_merge_into_sent_line(order, lifecycle, coffee):
    lifecycle.add_item(order, coffee, 2)
    lifecycle.send(order)

    lifecycle.add_item(order, coffee, 1)

    assert [(i.quantity, i.sent_quantity) for i in order.items] == [(2, 2), (1, 0)]


@pytest.mark.parametrize("quantity", [0, -1, 100, "2", 1.5, True])
def test_add_item_rejects_bad_quantity(order, lifecycle, coffee, quantity):
    with pytest.raises(InvalidQuantity):
        lifecycle.add_item(order, coffee, quantity)
    assert order.items == []


def test_add_item_rejects_unavailable_item(order, lifecycle):
    with pytest.raises(ItemUnavailable):
        lifecycle.add_item(order, MenuItem("soup", "Soup", 90, available=False), 1)


def test_add_item_enforces_line_limit(coffee, cake):
    lifecycle = OrderLifecycle(max_items_per_order=1)
    order = lifecycle.create(DineIn(1))
    lifecycle.add_item(order, coffee, 1)

    with pytest.raises(OrderLimitExceeded):
        lifecycle.add_item(order, cake, 1)


def test_catalog_price_change_does_not_touch_open_order(order, lifecycle, coffee):
    lifecycle.add_item(order, coffee, 1)

    repriced = MenuItem("coffee", "Coffee", 80, "drinks", coffee.print_destination)
    lifecycle.add_item(order, repriced, 1, "oat milk")

    assert [i.unit_price for i in order.items] == [60, 80]
    assert order.total_amount == 140


def test_send_flushes_pending_and_advances(order, lifecycle, coffee):
    lifecycle.add_item(order, coffee, 2)

    flushed = lifecycle.send(order)

    assert order.status == OrderStatus.SENT
    assert order.items[0].sent_quantity == 2
    assert [(line.name, line.quantity) for line in flushed] == [("Coffee", 2)]


def test_send_only_flushes_new_quantity(order, lifecycle, coffee, cake):
    lifecycle.add_item(order, coffee, 2)
    lifecycle.send(order)
    lifecycle.add_item(order, cake, 1)

    flushed = lifecycle.send(order)

    assert [(line.name, line.quantity) for line in flushed] == [("Cake", 1)]
    assert order.status == OrderStatus.SENT
    assert [h["status"] for h in order.get_history()] == ["open", "sent"]


def test_send_twice_without_changes_fails(order, lifecycle, coffee):
    lifecycle.add_item(order, coffee, 1)
    lifecycle.send(order)

    with pytest.raises(NothingToSend):
        lifecycle.send(order)


def test_send_empty_order_fails(order, lifecycle):
    with pytest.raises(NothingToSend):
        lifecycle.send(order)
    assert order.status == OrderStatus.OPEN


def test_close_requires_sent(order, lifecycle, coffee):
    lifecycle.add_item(order, coffee, 1)

    with pytest.raises(NotSent):
        lifecycle.close(order, ReceiptKind.THERMAL)
    assert order.status == OrderStatus.OPEN


def test_close_returns_receipt_request(order, lifecycle, coffee):
    lifecycle.add_item(order, coffee, 2)
    lifecycle.send(order)

    receipt = lifecycle.close(order, ReceiptKind.FISCAL)

    assert order.status == OrderStatus.CLOSED
    assert not order.is_active
    assert receipt.order_id == order.order_id
    assert receipt.receipt_kind == ReceiptKind.FISCAL
    assert receipt.total_amount == 120
    assert receipt.items[0]["name"] == "Coffee"
    assert receipt.to_dict()["receipt_kind"] == "fiscal"


def test_closed_order_rejects_mutations(order, lifecycle, coffee):
    lifecycle.add_item(order, coffee, 1)
    lifecycle.send(order)
    lifecycle.close(order, ReceiptKind.THERMAL)

    with pytest.raises(OrderClosed):
        lifecycle.add_item(order, coffee, 1)
    with pytest.raises(OrderClosed):
        lifecycle.send(order)
    with pytest.raises(OrderClosed):
        lifecycle.close(order, ReceiptKind.THERMAL)


def test_status_never_regresses(order, lifecycle, coffee):
    lifecycle.add_item(order, coffee, 1)
    lifecycle.send(order)

    with pytest.raises(InvalidTransition):
        lifecycle.transition(order, OrderStatus.OPEN)

    lifecycle.close(order, ReceiptKind.THERMAL)

    for status in OrderStatus:
        with pytest.raises(InvalidTransition):
            lifecycle.transition(order, status)


def test_open_cannot_jump_to_closed(order, lifecycle):
    with pytest.raises(InvalidTransition):
        lifecycle.transition(order, OrderStatus.CLOSED)


def test_move_to_table_keeps_items_and_status(order, lifecycle, coffee):
    lifecycle.add_item(order, coffee, 2)
    lifecycle.send(order)

    lifecycle.move_to_table(order, Takeout(1001))

    assert order.slot == Takeout(1001)
    assert order.status == OrderStatus.SENT
    assert order.items[0].quantity == 2


def test_move_to_occupied_slot_fails(order, lifecycle):
    with pytest.raises(SlotOccupied):
        lifecycle.move_to_table(order, DineIn(7), occupant_order_id="ord_other")
    assert order.slot == DineIn(5)


def test_find_item_unknown(order):
    with pytest.raises(ItemNotFound):
        order.find_item("itm_missing")


def test_to_dict_shape(order, lifecycle, coffee):
    lifecycle.add_item(order, coffee, 2, "extra hot")

    data = order.to_dict()

    assert data["status"] == "open"
    assert data["slot"] == {"kind": "dine_in", "number": 5, "label": "table 5"}
    assert data["total_amount"] == 120
    assert data["pending_quantity"] == 2
    assert data["items"][0]["notes"] == "extra hot"
    assert data["items"][0]["total_price"] == 120


def test_add_item_with_bad_price_is_a_validation_error(order, lifecycle):
    with pytest.raises(ValidationError) as exc_info:
        lifecycle.add_item(order, MenuItem("ghost", "Ghost", -4), 1)

    assert exc_info.value.code == "invalid_price"
    assert order.items == []

import pytest

from admin_gate import AdminAuthorization, AdminOverrideGate, StaticAdminCodeVerifier
from errors import AuthorizationError, InvalidCredential, InvalidQuantity

from conftest import ADMIN_CODE


def test_verifier_accepts_only_configured_code():
    verifier = StaticAdminCodeVerifier(ADMIN_CODE)

    assert verifier.verify(ADMIN_CODE)
    assert verifier.verify(f" {ADMIN_CODE} ")
    assert not verifier.verify("0000")
    assert not verifier.verify("")
    assert not verifier.verify(None)


def test_verifier_requires_a_code():
    with pytest.raises(ValueError):
        StaticAdminCodeVerifier("")


def test_authorize_issues_token(gate, clock):
    authorization = gate.authorize(ADMIN_CODE)

    assert isinstance(authorization, AdminAuthorization)
    assert authorization.token
    assert authorization.issued_at == clock.now
    assert (authorization.expires_at - authorization.issued_at).total_seconds() == 300
    assert gate.validate(authorization.token) == authorization


def test_authorize_rejects_wrong_code(gate):
    with pytest.raises(InvalidCredential) as exc_info:
        gate.authorize("9999")

    assert isinstance(exc_info.value, AuthorizationError)
    assert not exc_info.value.requires_admin


def test_tokens_are_unique(gate):
    assert gate.authorize(ADMIN_CODE).token != gate.authorize(ADMIN_CODE).token


def test_token_expires(gate, clock):
    authorization = gate.authorize(ADMIN_CODE)

    clock.advance(299)
    gate.validate(authorization)

    clock.advance(1)
    with pytest.raises(InvalidCredential):
        gate.validate(authorization)


@pytest.mark.parametrize("token", [None, "forged-token"])
def test_validate_rejects_unknown_tokens(gate, token):
    with pytest.raises(InvalidCredential):
        gate.validate(token)


def test_force_remove_partial_clamps_sent(gate, order, lifecycle, coffee):
    item = lifecycle.add_item(order, coffee, 3)
    lifecycle.send(order)

    record = gate.force_remove(order, item, 2, gate.authorize(ADMIN_CODE))

    assert item.quantity == 1
    assert item.sent_quantity == 1
    assert order.total_amount == 60
    assert not record.deleted
    assert (record.quantity_before, record.quantity_after) == (3, 1)
    assert (record.sent_before, record.sent_after) == (3, 1)


def test_force_remove_keeps_unsent_part_pending(gate, order, lifecycle, reconciler, coffee):
    item = lifecycle.add_item(order, coffee, 2)
    lifecycle.send(order)
    reconciler.set_quantity(order, item, 5)

    gate.force_remove(order, item, 1, gate.authorize(ADMIN_CODE))

    assert item.quantity == 4
    assert item.sent_quantity == 2
    assert item.pending_quantity == 2


def test_force_remove_whole_line(gate, order, lifecycle, coffee, cake):
    item = lifecycle.add_item(order, coffee, 2)
    lifecycle.add_item(order, cake, 1)
    lifecycle.send(order)

    record = gate.force_remove(order, item, 5, gate.authorize(ADMIN_CODE))

    assert record.deleted
    assert [i.name for i in order.items] == ["Cake"]
    assert order.total_amount == 150


@pytest.mark.parametrize("amount", [0, -2, "1", True])
def test_force_remove_rejects_bad_amount(gate, order, lifecycle, coffee, amount):
    item = lifecycle.add_item(order, coffee, 2)

    with pytest.raises(InvalidQuantity):
        gate.force_remove(order, item, amount, gate.authorize(ADMIN_CODE))
    assert item.quantity == 2


def test_force_remove_without_authorization(gate, order, lifecycle, coffee):
    item = lifecycle.add_item(order, coffee, 2)

    with pytest.raises(InvalidCredential):
        gate.force_remove(order, item, 1, None)
    assert item.quantity == 2


def test_force_remove_with_expired_token(gate, clock, order, lifecycle, coffee):
    item = lifecycle.add_item(order, coffee, 2)
    authorization = gate.authorize(ADMIN_CODE)
    clock.advance(600)

    with pytest.raises(InvalidCredential):
        gate.force_remove(order, item, 1, authorization)
    assert gate.get_audit_trail() == []


def test_audit_trail_records_each_override(gate, order, lifecycle, coffee, cake):
    authorization = gate.authorize(ADMIN_CODE)
    coffee_line = lifecycle.add_item(order, coffee, 2)
    cake_line = lifecycle.add_item(order, cake, 1)
    lifecycle.send(order)

    gate.record_override(gate.force_remove(order, coffee_line, 1, authorization))
    gate.record_override(gate.force_remove(order, cake_line, 1, authorization.token))

    trail = gate.get_audit_trail()
    assert [r.menu_item_id for r in trail] == ["coffee", "cake"]
    assert all(r.order_id == order.order_id for r in trail)
    assert trail[0].token_suffix == authorization.token[-6:]
    assert trail[1].to_dict()["deleted"] is True


def test_force_remove_alone_is_not_audited(gate, order, lifecycle, coffee):
    item = lifecycle.add_item(order, coffee, 2)

    gate.force_remove(order, item, 1, gate.authorize(ADMIN_CODE))

    assert gate.get_audit_trail() == []


def test_audit_trail_keeps_most_recent(clock, order, lifecycle, coffee):
    gate = AdminOverrideGate(StaticAdminCodeVerifier(ADMIN_CODE), clock=clock, audit_limit=2)
    authorization = gate.authorize(ADMIN_CODE)
    item = lifecycle.add_item(order, coffee, 10)

    amounts = [1, 2, 3]
    for amount in amounts:
        gate.record_override(gate.force_remove(order, item, amount, authorization))

    assert [r.amount_requested for r in gate.get_audit_trail()] == [2, 3]

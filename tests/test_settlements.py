# tests/test_settlements.py

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError as SchemaError

from tripsplit.models.settlement import Settlement, SettlementStatus
from tripsplit.models.wallet import WalletTxKind
from tripsplit.schemas.settlement import SettlementCreate
from tripsplit.services.balances import get_dashboard, get_detailed_balances
from tripsplit.services.errors import InvalidState, NotFound, ValidationError
from tripsplit.services.results import run_operation
from tripsplit.services.settlements import (
    confirm_settlement,
    create_settlement,
    list_pending_incoming,
    list_pending_outgoing,
    list_settlements,
    preview_allocation,
    reject_settlement,
)
from tripsplit.services.wallet import get_wallet_balance, list_wallet_transactions, verify_wallet_chain


def _settle(db, actor, other, amount, direction, affects_wallet=True, expenses=()):
    s = create_settlement(
        db,
        actor,
        SettlementCreate(
            other_user_id=other.id,
            amount=Decimal(str(amount)),
            direction=direction,
            affects_wallet=affects_wallet,
            expenses=[{"expense_id": e, "amount": Decimal(str(a))} for e, a in expenses],
        ),
    )
    db.commit()
    return s


def _owed(balances, key):
    return {p["user_id"]: p["net_amount"] for p in balances[key]}


@pytest.fixture()
def dinner(alice, bob, carol, fund, make_expense):
    """Alice заплатила 300 за троих."""
    fund(alice, 1000)
    fund(bob, 1000)
    return make_expense(alice, "Dinner", 300, payers=[(alice, 300, 0)], splits=[(alice, 100), (bob, 100), (carol, 100)])


def test_pay_creates_pending_without_wallet_effects(db, alice, bob, dinner):
    s = _settle(db, bob, alice, 100, "pay")

    assert s.status == SettlementStatus.pending
    assert (s.payer_id, s.receiver_id) == (bob.id, alice.id)
    assert get_wallet_balance(db, bob.id) == Decimal("1000")
    # pending не влияет на балансы
    assert _owed(get_detailed_balances(db, bob), "owed_by_you") == {alice.id: Decimal("100")}
    assert [x.id for x in list_pending_incoming(db, alice)] == [s.id]
    assert [x.id for x in list_pending_outgoing(db, bob)] == [s.id]
    assert get_dashboard(db, alice)["pending_confirmations"] == 1


def test_confirm_applies_wallets_and_clears_debt(db, alice, bob, carol, dinner):
    s = _settle(db, bob, alice, 100, "pay")
    confirm_settlement(db, alice, s.id, True)
    db.commit()

    db.refresh(s)
    assert s.status == SettlementStatus.confirmed
    assert s.confirmed_at is not None
    assert get_wallet_balance(db, bob.id) == Decimal("900")
    assert get_wallet_balance(db, alice.id) == Decimal("800")

    sent = list_wallet_transactions(db, bob.id)[0]
    assert sent.kind == WalletTxKind.settlement_sent
    assert sent.counterparty_id == alice.id
    assert sent.description == "Paid 100.00 to Alice"
    received = list_wallet_transactions(db, alice.id)[0]
    assert received.kind == WalletTxKind.settlement_received
    assert received.description == "Received 100.00 from Bob"

    assert _owed(get_detailed_balances(db, alice), "owed_to_you") == {carol.id: Decimal("100")}
    assert get_detailed_balances(db, bob) == {"owed_to_you": [], "owed_by_you": []}
    for u in (alice, bob):
        assert verify_wallet_chain(db, u.id)["ok"] is True


def test_confirm_without_receiver_wallet(db, alice, bob, dinner):
    s = _settle(db, bob, alice, 100, "pay")
    confirm_settlement(db, alice, s.id, False)
    db.commit()

    assert get_wallet_balance(db, bob.id) == Decimal("900")
    assert get_wallet_balance(db, alice.id) == Decimal("700")
    db.refresh(s)
    assert s.affects_receiver_wallet is False


def test_pay_without_payer_wallet(db, alice, bob, dinner):
    s = _settle(db, bob, alice, 100, "pay", affects_wallet=False)
    confirm_settlement(db, alice, s.id, True)
    db.commit()
    assert get_wallet_balance(db, bob.id) == Decimal("1000")
    assert get_wallet_balance(db, alice.id) == Decimal("800")


def test_receive_is_confirmed_immediately(db, alice, bob, dinner):
    s = _settle(db, alice, bob, 100, "receive")

    assert s.status == SettlementStatus.confirmed
    assert (s.payer_id, s.receiver_id) == (bob.id, alice.id)
    assert s.affects_payer_wallet is True
    assert get_wallet_balance(db, bob.id) == Decimal("900")
    assert get_wallet_balance(db, alice.id) == Decimal("800")
    assert list_pending_incoming(db, alice) == []
    assert alice.id not in _owed(get_detailed_balances(db, bob), "owed_by_you")


def test_receive_without_my_wallet(db, alice, bob, dinner):
    _settle(db, alice, bob, 100, "receive", affects_wallet=False)
    assert get_wallet_balance(db, alice.id) == Decimal("700")
    assert get_wallet_balance(db, bob.id) == Decimal("900")


def test_only_receiver_can_confirm_or_reject(db, alice, bob, carol, dinner):
    s = _settle(db, bob, alice, 100, "pay")
    with pytest.raises(InvalidState):
        confirm_settlement(db, bob, s.id, True)
    with pytest.raises(InvalidState):
        reject_settlement(db, carol, s.id)
    db.rollback()
    assert get_wallet_balance(db, bob.id) == Decimal("1000")


def test_cannot_resolve_twice(db, alice, bob, dinner):
    s = _settle(db, bob, alice, 100, "pay")
    confirm_settlement(db, alice, s.id, True)
    db.commit()

    with pytest.raises(InvalidState):
        confirm_settlement(db, alice, s.id, True)
    with pytest.raises(InvalidState):
        reject_settlement(db, alice, s.id)


def test_confirm_missing(db, alice):
    with pytest.raises(NotFound):
        confirm_settlement(db, alice, 4242, True)


def test_reject_keeps_row_for_audit(db, alice, bob, dinner):
    s = _settle(db, bob, alice, 100, "pay")
    reject_settlement(db, alice, s.id)
    db.commit()

    row = db.get(Settlement, s.id)
    assert row is not None
    assert row.status == SettlementStatus.rejected
    assert row.rejected_at is not None
    assert get_wallet_balance(db, bob.id) == Decimal("1000")
    assert _owed(get_detailed_balances(db, bob), "owed_by_you") == {alice.id: Decimal("100")}
    assert list_pending_incoming(db, alice) == []
    assert [x.id for x in list_settlements(db, bob, "rejected")] == [s.id]


@pytest.mark.parametrize(
    "amount, direction",
    [(0, "pay"), (-5, "receive")],
)
def test_create_validation(db, alice, bob, amount, direction):
    with pytest.raises(ValidationError):
        _settle(db, alice, bob, amount, direction)


def test_cannot_settle_with_self(db, alice):
    with pytest.raises(ValidationError):
        _settle(db, alice, alice, 10, "pay")


def test_unknown_counterparty(db, alice):
    with pytest.raises(NotFound):
        create_settlement(db, alice, SettlementCreate(other_user_id=999, amount=Decimal("10"), direction="pay"))


def test_auto_links_newest_expenses_first(db, alice, bob, make_expense):
    old = make_expense(alice, "Old", 200, payers=[(alice, 200, 0)], splits=[(alice, 100), (bob, 100)], date=date(2025, 1, 1))
    new = make_expense(alice, "New", 60, payers=[(alice, 60, 0)], splits=[(alice, 30), (bob, 30)], date=date(2025, 1, 5))

    preview = preview_allocation(db, bob, alice.id, Decimal("50"))
    assert preview == [
        {"expense_id": new.id, "amount": Decimal("30")},
        {"expense_id": old.id, "amount": Decimal("20")},
    ]

    s = _settle(db, alice, bob, 50, "receive")
    links = sorted((l.expense_id, Decimal(str(l.amount))) for l in s.expense_links)
    assert links == sorted([(new.id, Decimal("30")), (old.id, Decimal("20"))])

    person = get_detailed_balances(db, alice)["owed_to_you"][0]
    assert person["net_amount"] == Decimal("80")
    assert [(x["id"], x["remaining"]) for x in person["expenses"]] == [(old.id, Decimal("80"))]


def test_explicit_links_validated(db, alice, bob, dinner):
    with pytest.raises(NotFound):
        _settle(db, bob, alice, 50, "pay", expenses=[(999, 50)])
    with pytest.raises(ValidationError):
        _settle(db, bob, alice, 50, "pay", expenses=[(dinner.id, 80)])


def test_alt_currency_is_stored(db, alice, bob, dinner):
    s = create_settlement(
        db,
        bob,
        SettlementCreate(other_user_id=alice.id, amount=Decimal("100"), amount_alt_currency=Decimal("240"), direction="pay"),
    )
    db.commit()
    assert Decimal(str(s.amount_alt_currency)) == Decimal("240")


def test_symmetry_after_settlements(db, alice, bob, carol, make_expense):
    make_expense(alice, "A", 300, payers=[(alice, 300, 0)], splits=[(alice, 100), (bob, 100), (carol, 100)])
    make_expense(bob, "B", Decimal("99.99"), payers=[(bob, Decimal("99.99"), 0)],
                 splits=[(alice, Decimal("33.33")), (bob, Decimal("33.33")), (carol, Decimal("33.33"))])
    _settle(db, alice, carol, 40, "receive")

    users = [alice, bob, carol]
    views = {u.id: get_detailed_balances(db, u) for u in users}
    for x in users:
        for y in users:
            if x.id == y.id:
                continue
            assert _owed(views[x.id], "owed_to_you").get(y.id) == _owed(views[y.id], "owed_by_you").get(x.id)


def test_out_of_range_settlement_is_a_failure_result(db, alice, bob):
    with pytest.raises(SchemaError):
        SettlementCreate(other_user_id=alice.id, amount=Decimal("1e30"), direction="pay")

    data = SettlementCreate.model_construct(
        other_user_id=alice.id,
        amount=Decimal("1e30"),
        amount_alt_currency=None,
        direction="pay",
        affects_wallet=True,
        expenses=[],
    )
    result = run_operation(db, create_settlement, bob, data)
    assert (result.success, result.code) == (False, "validation_error")
    assert db.query(Settlement).count() == 0

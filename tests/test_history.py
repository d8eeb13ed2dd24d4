# tests/test_history.py

from datetime import date
from decimal import Decimal

from tripsplit.schemas.history import history_item
from tripsplit.services.events import list_events_for_user, make_diff
from tripsplit.services.history import get_transaction_history


def test_history_splits_individual_and_group(db, alice, bob, fund, make_expense):
    fund(alice, 500)
    group = make_expense(alice, "Lunch", 100, payers=[(alice, 100, 0)], splits=[(alice, 50), (bob, 50)])
    personal = make_expense(alice, "Book", 20, payers=[(alice, 20, 0)], kind="individual")

    history = get_transaction_history(db, alice)
    assert [r["id"] for r in history["individual"]] == [personal.id]
    group_rows = {(r["type"], r["id"]) for r in history["group"]}
    assert ("expense", group.id) in group_rows
    assert any(t == "topup" for t, _ in group_rows)

    topup = next(r for r in history["group"] if r["type"] == "topup")
    assert topup["alt_amount"] == 1200

    lunch = next(r for r in history["group"] if r["type"] == "expense")
    assert lunch["your_share"] == Decimal("50")
    assert lunch["paid_by"] == "Alice"


def test_history_hides_other_peoples_individual_expenses(db, alice, bob, make_expense):
    make_expense(alice, "Book", 20, payers=[(alice, 20, 0)], kind="individual")
    assert get_transaction_history(db, bob) == {"group": [], "individual": []}


def test_events_feed_for_actor_and_target(db, alice, bob, admin, fund):
    from tripsplit.services.pot import load_pot

    fund(bob, 100)
    load_pot(db, admin, bob.id, Decimal("40"))
    db.commit()

    bob_types = [e.type for e in list_events_for_user(db, bob.id)]
    assert sorted(bob_types) == ["pot_loaded", "wallet_topup"]
    assert [e.type for e in list_events_for_user(db, alice.id)] == []


def test_make_diff():
    before = {"title": "Taxi", "total_amount": "10.00"}
    after = {"title": "Taxi", "total_amount": "12.00"}
    assert make_diff(before, after) == {
        "changed": ["total_amount"],
        "diff": {"total_amount": {"old": "10.00", "new": "12.00"}},
    }


def test_expense_rows_carry_expense_date_and_keep_entry_order(db, alice, bob, make_expense):
    late = make_expense(alice, "Hotel", 100, payers=[(alice, 100, 0)], splits=[(alice, 50), (bob, 50)], date=date(2025, 3, 9))
    back_dated = make_expense(alice, "Taxi", 40, payers=[(alice, 40, 0)], splits=[(alice, 20), (bob, 20)], date=date(2025, 3, 1))

    rows = get_transaction_history(db, alice)["group"]
    assert [r["id"] for r in rows] == [back_dated.id, late.id]
    assert [r["date"] for r in rows] == [date(2025, 3, 1), date(2025, 3, 9)]
    assert all(r["created_at"] is not None for r in rows)

    item = history_item(rows[0])
    assert item.date == date(2025, 3, 1)

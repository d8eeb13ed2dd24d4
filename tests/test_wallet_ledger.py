# tests/test_wallet_ledger.py

from decimal import Decimal

import pytest

from tripsplit.models.wallet import WalletTransaction, WalletTxKind
from tripsplit.services.errors import NotFound, ValidationError
from tripsplit.services.results import run_operation
from tripsplit.services.wallet import (
    append_wallet_transaction,
    create_topup,
    get_wallet_balance,
    has_wallet_setup,
    list_topups,
    list_wallet_transactions,
    record_manual_transaction,
    verify_wallet_chain,
)


def test_empty_wallet_is_zero(db, alice):
    assert get_wallet_balance(db, alice.id) == Decimal("0")
    assert has_wallet_setup(db, alice.id) is False
    assert verify_wallet_chain(db, alice.id) == {"ok": True, "entries_checked": 0, "broken_entry_id": None}


def test_append_builds_running_balance(db, alice):
    append_wallet_transaction(db, alice.id, WalletTxKind.topup, Decimal("1000"))
    append_wallet_transaction(db, alice.id, WalletTxKind.expense_paid, Decimal("-250.50"))
    append_wallet_transaction(db, alice.id, WalletTxKind.settlement_received, Decimal("100"))
    db.commit()

    assert get_wallet_balance(db, alice.id) == Decimal("849.50")
    entries = list_wallet_transactions(db, alice.id)
    # новые сверху
    assert [e.kind for e in entries] == [
        WalletTxKind.settlement_received,
        WalletTxKind.expense_paid,
        WalletTxKind.topup,
    ]
    assert [Decimal(str(e.balance_after)) for e in entries] == [Decimal("849.50"), Decimal("749.50"), Decimal("1000")]
    assert verify_wallet_chain(db, alice.id)["ok"] is True


def test_wallets_are_per_user(db, alice, bob):
    append_wallet_transaction(db, alice.id, WalletTxKind.topup, Decimal("500"))
    append_wallet_transaction(db, bob.id, WalletTxKind.topup, Decimal("70"))
    db.commit()
    assert get_wallet_balance(db, alice.id) == Decimal("500")
    assert get_wallet_balance(db, bob.id) == Decimal("70")


def test_append_unknown_user(db):
    with pytest.raises(NotFound):
        append_wallet_transaction(db, 999, WalletTxKind.topup, Decimal("1"))


def test_topup_records_wallet_entry(db, alice):
    topup = create_topup(db, alice, Decimal("3000"), Decimal("2.4"), " Exchange booth ")
    db.commit()

    assert topup.source == "Exchange booth"
    assert get_wallet_balance(db, alice.id) == Decimal("3000")
    entry = list_wallet_transactions(db, alice.id)[0]
    assert entry.reference_type == "wallet_topup"
    assert entry.reference_id == topup.id
    assert [t.id for t in list_topups(db, alice.id)] == [topup.id]


@pytest.mark.parametrize("amount, rate", [(Decimal("0"), Decimal("2.4")), (Decimal("10"), Decimal("0"))])
def test_topup_validation(db, alice, amount, rate):
    with pytest.raises(ValidationError):
        create_topup(db, alice, amount, rate)


def test_manual_transaction_sign_rules(db, alice):
    record_manual_transaction(db, alice, WalletTxKind.topup, Decimal("200"), "cash from home")
    record_manual_transaction(db, alice, WalletTxKind.expense_paid, Decimal("-20"), "snacks")
    db.commit()
    assert get_wallet_balance(db, alice.id) == Decimal("180")

    with pytest.raises(ValidationError):
        record_manual_transaction(db, alice, WalletTxKind.topup, Decimal("-5"))
    with pytest.raises(ValidationError):
        record_manual_transaction(db, alice, WalletTxKind.expense_paid, Decimal("5"))
    with pytest.raises(ValidationError):
        record_manual_transaction(db, alice, WalletTxKind.settlement_received, Decimal("5"))


def test_run_operation_rolls_back_on_domain_error(db, alice):
    def topup_then_fail(session, user):
        create_topup(session, user, Decimal("100"), Decimal("2.4"))
        raise ValidationError("boom")

    result = run_operation(db, topup_then_fail, alice)
    assert result.success is False
    assert result.code == "validation_error"
    assert result.error == "boom"
    assert get_wallet_balance(db, alice.id) == Decimal("0")


def test_verify_detects_broken_chain(db, alice):
    append_wallet_transaction(db, alice.id, WalletTxKind.topup, Decimal("100"))
    bad = append_wallet_transaction(db, alice.id, WalletTxKind.expense_paid, Decimal("-10"))
    db.commit()

    # порча журнала в обход сервиса
    db.query(WalletTransaction).filter(WalletTransaction.id == bad.id).update({"balance_after": Decimal("95")})
    db.commit()

    result = verify_wallet_chain(db, alice.id)
    assert result == {"ok": False, "entries_checked": 2, "broken_entry_id": bad.id}

# tripsplit/routers/wallet.py
# -----------------------------------------------------------------------------
# РОУТЕР: Кошелёк (журнал, баланс, пополнения, проверка цепочки)
# -----------------------------------------------------------------------------
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from starlette import status

from tripsplit.db import get_db
from tripsplit.models.user import User
from tripsplit.models.wallet import WalletTxKind
from tripsplit.schemas.wallet import (
    ManualTransactionIn,
    TopupIn,
    TopupOut,
    WalletBalanceOut,
    WalletChainOut,
    WalletTransactionOut,
)
from tripsplit.services.results import run_operation, run_query
from tripsplit.services.wallet import (
    create_topup,
    get_wallet_balance,
    has_wallet_setup,
    list_all_topups,
    list_topups,
    list_wallet_transactions,
    record_manual_transaction,
    verify_wallet_chain,
)
from tripsplit.utils.auth import get_current_user
from tripsplit.utils.responses import dump, dump_as, envelope

router = APIRouter()


def _wallet_summary(db: Session, user_id: int) -> dict:
    return {
        "user_id": user_id,
        "balance": get_wallet_balance(db, user_id),
        "has_wallet_setup": has_wallet_setup(db, user_id),
    }


@router.get("/transactions")
def get_transactions(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return envelope(run_query(db, list_wallet_transactions, user.id, serialize=dump(WalletTransactionOut.from_entry)))


@router.post("/transactions")
def post_transaction(
    payload: ManualTransactionIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Ручная запись в свой кошелёк: topup (> 0) или expense_paid (< 0)."""
    result = run_operation(
        db,
        record_manual_transaction,
        user,
        WalletTxKind(payload.kind),
        payload.amount,
        payload.description,
        serialize=dump(WalletTransactionOut.from_entry),
    )
    return envelope(result, status.HTTP_201_CREATED)


@router.get("/balance")
def get_balance(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return envelope(run_query(db, _wallet_summary, user.id, serialize=dump_as(WalletBalanceOut)))


@router.post("/topups")
def post_topup(payload: TopupIn, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    result = run_operation(
        db,
        create_topup,
        user,
        payload.amount,
        payload.exchange_rate,
        payload.source,
        serialize=dump(TopupOut.from_topup),
    )
    return envelope(result, status.HTTP_201_CREATED)


@router.get("/topups")
def get_topups(
    all_users: bool = Query(False, description="Пополнения всех участников"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if all_users:
        return envelope(run_query(db, list_all_topups, serialize=dump(TopupOut.from_topup)))
    return envelope(run_query(db, list_topups, user.id, serialize=dump(TopupOut.from_topup)))


@router.get("/verify")
def verify(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return envelope(run_query(db, verify_wallet_chain, user.id, serialize=dump_as(WalletChainOut)))

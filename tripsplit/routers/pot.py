# tripsplit/routers/pot.py
# -----------------------------------------------------------------------------
# РОУТЕР: Котёл (загрузка админом, балансы, журнал)
# -----------------------------------------------------------------------------
# Права проверяет сервис (services/pot.require_admin), ответ - 403 в конверте.
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tripsplit.db import get_db
from tripsplit.models.user import User
from tripsplit.schemas.pot import (
    BulkLoadOut,
    PotBalanceOut,
    PotBalancesOut,
    PotBulkLoadIn,
    PotLoadIn,
    PotLoadOut,
    PotTransactionOut,
    UserPotOut,
)
from tripsplit.services.pot import (
    bulk_load_pot,
    get_pot_balance,
    list_pot_balances,
    list_pot_transactions,
    list_users_with_pots,
    load_pot,
)
from tripsplit.services.results import run_operation, run_query
from tripsplit.utils.auth import get_current_user
from tripsplit.utils.responses import dump, dump_as, envelope

router = APIRouter()


def _my_pot(db: Session, user_id: int) -> dict:
    return {"user_id": user_id, "balance": get_pot_balance(db, user_id)}


@router.post("/load")
def post_load(payload: PotLoadIn, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    result = run_operation(db, load_pot, user, payload.user_id, payload.amount, serialize=dump_as(PotLoadOut))
    return envelope(result)


@router.post("/bulk-load")
def post_bulk_load(payload: PotBulkLoadIn, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    result = run_operation(db, bulk_load_pot, user, payload.amount_per_person, serialize=dump_as(BulkLoadOut))
    return envelope(result)


@router.get("/me")
def get_my_pot(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return envelope(run_query(db, _my_pot, user.id, serialize=dump_as(PotBalanceOut)))


@router.get("/me/transactions")
def get_my_pot_transactions(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return envelope(run_query(db, list_pot_transactions, user.id, serialize=dump(PotTransactionOut.from_entry)))


@router.get("/users")
def get_users_with_pots(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return envelope(run_query(db, list_users_with_pots, user, serialize=dump_as(UserPotOut)))


@router.get("/balances")
def get_pot_balances(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return envelope(run_query(db, list_pot_balances, user, serialize=dump_as(PotBalancesOut)))

# tripsplit/routers/expenses.py
# -----------------------------------------------------------------------------
# РОУТЕР: Расходы (создание/изменение/удаление, списки, статистика)
# -----------------------------------------------------------------------------
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from starlette import status

from tripsplit.db import get_db
from tripsplit.models.user import User
from tripsplit.schemas.expense import (
    ExpenseCreate,
    ExpenseListItemOut,
    ExpenseOut,
    ExpenseUpdate,
    SpendStatsOut,
)
from tripsplit.services.expenses import (
    create_expense,
    delete_expense,
    get_expense,
    get_spend_stats,
    list_expenses,
    list_recent_expenses,
    update_expense,
)
from tripsplit.services.results import run_operation, run_query
from tripsplit.utils.auth import get_current_user
from tripsplit.utils.responses import dump, dump_as, envelope

router = APIRouter()


def _list_items(user: User):
    return dump(lambda e: ExpenseListItemOut.from_expense(e, user.id))


@router.post("")
def post_expense(payload: ExpenseCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    result = run_operation(db, create_expense, user, payload, serialize=dump(ExpenseOut.from_expense))
    return envelope(result, status.HTTP_201_CREATED)


@router.get("")
def get_expenses(
    kind: Optional[str] = Query(None, description="group|individual|pot"),
    only_mine: bool = Query(False, description="Только где я плательщик или участник доли"),
    limit: Optional[int] = Query(None, ge=1, le=500),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return envelope(
        run_query(db, list_expenses, user, kind, only_mine, limit, serialize=_list_items(user))
    )


@router.get("/recent")
def get_recent(
    limit: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return envelope(run_query(db, list_recent_expenses, user, limit, serialize=_list_items(user)))


@router.get("/stats")
def get_stats(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return envelope(run_query(db, get_spend_stats, user, serialize=dump_as(SpendStatsOut)))


@router.get("/{expense_id}")
def get_one(expense_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return envelope(run_query(db, get_expense, user, expense_id, serialize=dump(ExpenseOut.from_expense)))


@router.put("/{expense_id}")
def put_expense(
    expense_id: int,
    payload: ExpenseUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = run_operation(db, update_expense, user, expense_id, payload, serialize=dump(ExpenseOut.from_expense))
    return envelope(result)


@router.delete("/{expense_id}")
def remove_expense(expense_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    result = run_operation(db, delete_expense, user, expense_id, serialize=lambda _: {"id": expense_id})
    return envelope(result)

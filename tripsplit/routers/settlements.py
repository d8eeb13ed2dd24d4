# tripsplit/routers/settlements.py
# -----------------------------------------------------------------------------
# РОУТЕР: Погашения (создание, подтверждение/отклонение, списки, подбор расходов)
# -----------------------------------------------------------------------------
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from starlette import status

from tripsplit.db import get_db
from tripsplit.models.user import User
from tripsplit.schemas.settlement import (
    AllocateIn,
    ExpenseLinkOut,
    SettlementConfirmIn,
    SettlementCreate,
    SettlementOut,
)
from tripsplit.services.results import run_operation, run_query
from tripsplit.services.settlements import (
    confirm_settlement,
    create_settlement,
    list_pending_incoming,
    list_pending_outgoing,
    list_settlements,
    preview_allocation,
    reject_settlement,
)
from tripsplit.utils.auth import get_current_user
from tripsplit.utils.responses import dump, dump_as, envelope

router = APIRouter()

_out = dump(SettlementOut.from_settlement)


@router.post("")
def post_settlement(payload: SettlementCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    result = run_operation(db, create_settlement, user, payload, serialize=_out)
    return envelope(result, status.HTTP_201_CREATED)


@router.get("")
def get_settlements(
    status_: Optional[str] = Query(None, alias="status", description="pending|confirmed|rejected"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return envelope(run_query(db, list_settlements, user, status_, serialize=_out))


@router.get("/pending")
def get_pending(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Ждут МОЕГО подтверждения (я получатель)."""
    return envelope(run_query(db, list_pending_incoming, user, serialize=_out))


@router.get("/outgoing")
def get_outgoing(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Мои платежи, которые ждут подтверждения получателя."""
    return envelope(run_query(db, list_pending_outgoing, user, serialize=_out))


@router.post("/allocate")
def post_allocate(payload: AllocateIn, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    result = run_query(
        db, preview_allocation, user, payload.other_user_id, payload.amount, serialize=dump_as(ExpenseLinkOut)
    )
    return envelope(result)


@router.post("/{settlement_id}/confirm")
def post_confirm(
    settlement_id: int,
    payload: Optional[SettlementConfirmIn] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    affects = payload.affects_my_wallet if payload is not None else True
    return envelope(run_operation(db, confirm_settlement, user, settlement_id, affects, serialize=_out))


@router.post("/{settlement_id}/reject")
def post_reject(settlement_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return envelope(run_operation(db, reject_settlement, user, settlement_id, serialize=_out))

# tripsplit/routers/history.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tripsplit.db import get_db
from tripsplit.models.user import User
from tripsplit.schemas.event import EventOut
from tripsplit.schemas.history import HistoryOut, history_item
from tripsplit.services.events import list_events_for_user
from tripsplit.services.history import get_transaction_history
from tripsplit.services.results import run_query
from tripsplit.utils.auth import get_current_user
from tripsplit.utils.responses import dump, envelope

router = APIRouter()


def _history_out(data: dict) -> dict:
    return HistoryOut(
        group=[history_item(r) for r in data["group"]],
        individual=[history_item(r) for r in data["individual"]],
    ).model_dump(mode="json")


@router.get("/history")
def history(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Расходы, погашения и пополнения - новые сверху; личные расходы отдельным списком."""
    return envelope(run_query(db, get_transaction_history, user, serialize=_history_out))


@router.get("/events")
def events(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return envelope(
        run_query(db, list_events_for_user, user.id, limit=limit, offset=offset, serialize=dump(EventOut.model_validate))
    )

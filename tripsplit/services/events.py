# tripsplit/services/events.py
from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from tripsplit.models.event import Event

# Типы событий (используй в сервисах)
EXPENSE_CREATED = "expense_created"
EXPENSE_UPDATED = "expense_updated"
EXPENSE_DELETED = "expense_deleted"

SETTLEMENT_CREATED = "settlement_created"
SETTLEMENT_CONFIRMED = "settlement_confirmed"
SETTLEMENT_REJECTED = "settlement_rejected"

WALLET_TOPUP = "wallet_topup"
POT_LOADED = "pot_loaded"


def _jsonable(v: Any) -> Any:
    # Decimal/даты в JSON-колонку - строками
    if isinstance(v, Decimal):
        return str(v)
    if isinstance(v, dict):
        return {k: _jsonable(x) for k, x in v.items()}
    if isinstance(v, (list, tuple)):
        return [_jsonable(x) for x in v]
    if hasattr(v, "isoformat"):
        return v.isoformat()
    if hasattr(v, "value"):
        return v.value
    return v


def log_event(
    db: Session,
    *,
    type: str,
    actor_id: int,
    target_user_id: Optional[int] = None,
    expense_id: Optional[int] = None,
    settlement_id: Optional[int] = None,
    data: Optional[Dict[str, Any]] = None,
) -> Event:
    """
    Единая точка записи событий. Вызывается в той же транзакции, что и бизнес-операция.
    Не делает commit.
    """
    ev = Event(
        type=type,
        actor_id=actor_id,
        target_user_id=target_user_id,
        expense_id=expense_id,
        settlement_id=settlement_id,
        data=_jsonable(data or {}),
    )
    db.add(ev)
    return ev


def make_diff(before: Dict[str, Any], after: Dict[str, Any]) -> Dict[str, Any]:
    """
    Дифф снапшотов (под EXPENSE_UPDATED): { changed: [...], diff: {field: {old, new}} }.
    """
    changed = []
    diff: Dict[str, Any] = {}
    for k in sorted(set(before.keys()) | set(after.keys())):
        if before.get(k) != after.get(k):
            changed.append(k)
            diff[k] = {"old": before.get(k), "new": after.get(k)}
    return {"changed": changed, "diff": diff}


def list_events_for_user(db: Session, user_id: int, *, limit: int = 20, offset: int = 0) -> List[Event]:
    """События, где пользователь - автор или вторая сторона."""
    stmt = (
        select(Event)
        .where(or_(Event.actor_id == user_id, Event.target_user_id == user_id))
        .order_by(Event.created_at.desc(), Event.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(db.scalars(stmt).all())

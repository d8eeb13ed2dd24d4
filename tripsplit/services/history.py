# tripsplit/services/history.py
# Лента истории: видимые расходы + погашения пользователя + его пополнения.
# group - всё, кроме individual-расходов; individual - личные расходы автора.

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from tripsplit.models.expense import Expense, ExpenseKind
from tripsplit.models.user import User
from tripsplit.services.expenses import is_visible
from tripsplit.services.settlements import list_settlements
from tripsplit.services.wallet import list_topups
from tripsplit.utils.dates import as_utc
from tripsplit.utils.money import D, round_half_up

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _expense_row(e: Expense, viewer_id: int) -> Dict:
    mine = next((s for s in e.splits if s.user_id == viewer_id), None)
    primary = e.primary_payer
    return {
        "id": e.id,
        "type": "expense",
        "title": e.title,
        "amount": D(e.total_amount),
        "date": e.date,
        "created_at": e.created_at,
        "kind": e.kind.value,
        "paid_by": primary.user.name if primary and primary.user else "Unknown",
        "split_between": len(e.splits),
        "your_share": D(mine.owed_amount) if mine else D(0),
    }


def _sort_at(row: Dict) -> datetime:
    # у расхода date - календарный день, порядок ленты - по моменту записи
    at = row["created_at"] if row["type"] == "expense" else row["date"]
    return as_utc(at) or _EPOCH


def _newest_first(rows: List[Dict]) -> List[Dict]:
    return sorted(rows, key=lambda r: (_sort_at(r), r["id"]), reverse=True)


def get_transaction_history(db: Session, actor: User) -> Dict[str, List[Dict]]:
    group_rows: List[Dict] = []
    individual_rows: List[Dict] = []

    for e in db.scalars(select(Expense)).unique():
        if not is_visible(e, actor):
            continue
        row = _expense_row(e, actor.id)
        (individual_rows if e.kind == ExpenseKind.individual else group_rows).append(row)

    for s in list_settlements(db, actor):
        group_rows.append({
            "id": s.id,
            "type": "settlement",
            "title": "Settlement",
            "amount": D(s.amount),
            "date": s.created_at,
            "status": s.status.value,
            "from_name": s.payer.name if s.payer else "Unknown",
            "to_name": s.receiver.name if s.receiver else "Unknown",
        })

    for t in list_topups(db, actor.id):
        group_rows.append({
            "id": t.id,
            "type": "topup",
            "title": "Wallet Top-up",
            "amount": D(t.amount),
            "date": t.created_at,
            "user_name": t.user.name if t.user else "Unknown",
            "exchange_rate": D(t.exchange_rate),
            "alt_amount": int(round_half_up(D(t.amount) * D(t.exchange_rate))),
        })

    return {"group": _newest_first(group_rows), "individual": _newest_first(individual_rows)}

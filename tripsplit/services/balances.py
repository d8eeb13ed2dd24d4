# tripsplit/services/balances.py
# Загрузка данных из БД под движок балансов (utils/balance.py) и дашборд.

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, List

from sqlalchemy import or_, select, func
from sqlalchemy.orm import Session

from tripsplit.models.settlement import Settlement, SettlementStatus
from tripsplit.models.user import User
from tripsplit.services.expenses import load_group_expenses, get_spend_stats
from tripsplit.services.pot import get_pot_balance
from tripsplit.services.wallet import get_wallet_balance
from tripsplit.utils.balance import build_detailed_balances, outstanding_expenses_with
from tripsplit.utils.money import ZERO

log = logging.getLogger(__name__)


def _user_names(db: Session) -> Dict[int, str]:
    return {uid: name for uid, name in db.execute(select(User.id, User.name)).all()}


def _confirmed_settlements_of(db: Session, user_id: int) -> List[Settlement]:
    stmt = (
        select(Settlement)
        .where(
            Settlement.status == SettlementStatus.confirmed,
            or_(Settlement.payer_id == user_id, Settlement.receiver_id == user_id),
        )
        .order_by(Settlement.created_at.asc(), Settlement.id.asc())
    )
    return list(db.scalars(stmt).unique())


def get_detailed_balances(db: Session, actor: User) -> Dict[str, List[Dict]]:
    """Кто должен текущему пользователю и кому должен он (пересчёт с нуля)."""
    return build_detailed_balances(
        expenses=load_group_expenses(db),
        settlements=_confirmed_settlements_of(db, actor.id),
        current_user_id=actor.id,
        user_names=_user_names(db),
    )


def outstanding_with(db: Session, actor: User, other_user_id: int) -> List[Dict]:
    """Незакрытые расходы между actor и other_user_id (для привязки погашения)."""
    return outstanding_expenses_with(get_detailed_balances(db, actor), other_user_id)


def _pending_incoming_count(db: Session, user_id: int) -> int:
    cnt = db.scalar(
        select(func.count())
        .select_from(Settlement)
        .where(Settlement.receiver_id == user_id, Settlement.status == SettlementStatus.pending)
    )
    return int(cnt or 0)


def get_dashboard(db: Session, actor: User) -> Dict:
    detailed = get_detailed_balances(db, actor)
    owed_to_me: Decimal = sum((p["net_amount"] for p in detailed["owed_to_you"]), ZERO)
    owed_by_me: Decimal = sum((p["net_amount"] for p in detailed["owed_by_you"]), ZERO)
    stats = get_spend_stats(db, actor)
    return {
        "owed_to_me": owed_to_me,
        "owed_by_me": owed_by_me,
        "wallet_balance": get_wallet_balance(db, actor.id),
        "pot_balance": get_pot_balance(db, actor.id),
        "total_group_spend": stats["total_group_spend"],
        "total_personal_spend": stats["total_personal_spend"],
        "pending_confirmations": _pending_incoming_count(db, actor.id),
    }

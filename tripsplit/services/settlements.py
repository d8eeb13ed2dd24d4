# tripsplit/services/settlements.py
# -----------------------------------------------------------------------------
# ПОГАШЕНИЯ: pending -> confirmed | rejected
# -----------------------------------------------------------------------------
# • "pay"     - инициатор платит: погашение pending, кошельки не трогаем,
#               пока получатель не подтвердит.
# • "receive" - инициатор подтверждает, что ему заплатили: сразу confirmed,
#               кошельки двигаем в той же транзакции.
# • Привязки к расходам (SettlementExpense): если не переданы - жадно от
#   новых расходов к старым по незакрытым расходам пары.
# • Отклонённое погашение не удаляем: статус rejected + rejected_at.
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from tripsplit.models.expense import Expense
from tripsplit.models.settlement import Settlement, SettlementExpense, SettlementStatus
from tripsplit.models.user import User
from tripsplit.models.wallet import WalletTxKind
from tripsplit.schemas.settlement import SettlementCreate
from tripsplit.services.balances import outstanding_with
from tripsplit.services.errors import InvalidState, NotFound, ValidationError
from tripsplit.services.events import (
    log_event,
    SETTLEMENT_CREATED,
    SETTLEMENT_CONFIRMED,
    SETTLEMENT_REJECTED,
)
from tripsplit.services.wallet import append_wallet_transaction
from tripsplit.utils.balance import allocate_settlement
from tripsplit.utils.dates import utc_now
from tripsplit.utils.money import D, ZERO, CENT, money

log = logging.getLogger(__name__)


# =========================
# КОШЕЛЬКИ
# =========================

def _record_sent(db: Session, s: Settlement) -> None:
    append_wallet_transaction(
        db,
        s.payer_id,
        WalletTxKind.settlement_sent,
        -D(s.amount),
        reference_id=s.id,
        reference_type="settlement",
        counterparty_id=s.receiver_id,
        description=f"Paid {money(s.amount)} to {s.receiver.name if s.receiver else 'Unknown'}",
    )


def _record_received(db: Session, s: Settlement) -> None:
    append_wallet_transaction(
        db,
        s.receiver_id,
        WalletTxKind.settlement_received,
        D(s.amount),
        reference_id=s.id,
        reference_type="settlement",
        counterparty_id=s.payer_id,
        description=f"Received {money(s.amount)} from {s.payer.name if s.payer else 'Unknown'}",
    )


def _apply_wallet_effects(db: Session, s: Settlement) -> None:
    if s.affects_payer_wallet:
        _record_sent(db, s)
    if s.affects_receiver_wallet:
        _record_received(db, s)


# =========================
# ПРИВЯЗКИ К РАСХОДАМ
# =========================

def _resolve_links(db: Session, actor: User, other_id: int, amount, links) -> List[Dict]:
    if links:
        ids = {l.expense_id for l in links}
        found = set(db.scalars(select(Expense.id).where(Expense.id.in_(ids))).all())
        missing = sorted(ids - found)
        if missing:
            raise NotFound(f"Expenses not found: {', '.join(str(m) for m in missing)}")
        out = [{"expense_id": l.expense_id, "amount": money(l.amount)} for l in links]
        linked_total = sum((l["amount"] for l in out), ZERO)
        if linked_total - money(amount) > CENT:
            raise ValidationError("Linked amounts exceed the settlement amount")
        return out
    return allocate_settlement(outstanding_with(db, actor, other_id), amount)


def preview_allocation(db: Session, actor: User, other_user_id: int, amount) -> List[Dict]:
    """Какие расходы закроет погашение на amount (без записи в БД)."""
    amount = money(amount)
    if amount <= 0:
        raise ValidationError("Amount must be positive")
    return allocate_settlement(outstanding_with(db, actor, other_user_id), amount)


# =========================
# ОПЕРАЦИИ
# =========================

def create_settlement(db: Session, actor: User, data: SettlementCreate) -> Settlement:
    amount = money(data.amount)
    if amount <= 0:
        raise ValidationError("Amount must be positive")
    if data.direction not in ("pay", "receive"):
        raise ValidationError("Direction must be 'pay' or 'receive'")
    if data.other_user_id == actor.id:
        raise ValidationError("Cannot settle with yourself")
    other = db.get(User, data.other_user_id)
    if other is None:
        raise NotFound("User not found")

    is_pay = data.direction == "pay"
    links = _resolve_links(db, actor, other.id, amount, data.expenses)

    s = Settlement(
        payer_id=actor.id if is_pay else other.id,
        receiver_id=other.id if is_pay else actor.id,
        amount=amount,
        amount_alt_currency=money(data.amount_alt_currency) if data.amount_alt_currency is not None else None,
        status=SettlementStatus.pending if is_pay else SettlementStatus.confirmed,
        affects_payer_wallet=data.affects_wallet if is_pay else True,
        # для "pay" окончательно решит получатель при подтверждении
        affects_receiver_wallet=True if is_pay else data.affects_wallet,
        created_at=utc_now(),
        confirmed_at=None if is_pay else utc_now(),
    )
    for link in links:
        s.expense_links.append(SettlementExpense(expense_id=link["expense_id"], amount=link["amount"]))
    db.add(s)
    db.flush()

    if not is_pay:
        _apply_wallet_effects(db, s)

    log_event(
        db,
        type=SETTLEMENT_CREATED,
        actor_id=actor.id,
        target_user_id=other.id,
        settlement_id=s.id,
        data={"amount": amount, "direction": data.direction, "status": s.status.value},
    )
    log.info(
        "settlement created id=%s %s->%s amount=%s status=%s",
        s.id, s.payer_id, s.receiver_id, amount, s.status.value,
    )
    return s


def _pending_for_receiver(db: Session, actor: User, settlement_id: int, verb: str) -> Settlement:
    s = db.get(Settlement, settlement_id)
    if s is None:
        raise NotFound("Settlement not found")
    if s.receiver_id != actor.id:
        raise InvalidState(f"Only the receiver can {verb} this settlement")
    if s.status != SettlementStatus.pending:
        raise InvalidState(f"Settlement is not pending (current status: {s.status.value})")
    return s


def confirm_settlement(db: Session, actor: User, settlement_id: int, affects_my_wallet: bool) -> Settlement:
    s = _pending_for_receiver(db, actor, settlement_id, "confirm")
    s.affects_receiver_wallet = bool(affects_my_wallet)
    _apply_wallet_effects(db, s)

    s.status = SettlementStatus.confirmed
    s.confirmed_at = utc_now()
    db.flush()

    log_event(
        db,
        type=SETTLEMENT_CONFIRMED,
        actor_id=actor.id,
        target_user_id=s.payer_id,
        settlement_id=s.id,
        data={"amount": s.amount, "affects_my_wallet": s.affects_receiver_wallet},
    )
    log.info("settlement confirmed id=%s by=%s", s.id, actor.id)
    return s


def reject_settlement(db: Session, actor: User, settlement_id: int) -> Settlement:
    s = _pending_for_receiver(db, actor, settlement_id, "reject")
    s.status = SettlementStatus.rejected
    s.rejected_at = utc_now()
    db.flush()

    log_event(
        db,
        type=SETTLEMENT_REJECTED,
        actor_id=actor.id,
        target_user_id=s.payer_id,
        settlement_id=s.id,
        data={"amount": s.amount},
    )
    log.info("settlement rejected id=%s by=%s", s.id, actor.id)
    return s


# =========================
# ЗАПРОСЫ
# =========================

def _newest_first(stmt):
    return stmt.order_by(Settlement.created_at.desc(), Settlement.id.desc())


def list_pending_incoming(db: Session, actor: User) -> List[Settlement]:
    stmt = select(Settlement).where(
        Settlement.receiver_id == actor.id, Settlement.status == SettlementStatus.pending
    )
    return list(db.scalars(_newest_first(stmt)).unique())


def list_pending_outgoing(db: Session, actor: User) -> List[Settlement]:
    stmt = select(Settlement).where(
        Settlement.payer_id == actor.id, Settlement.status == SettlementStatus.pending
    )
    return list(db.scalars(_newest_first(stmt)).unique())


def list_settlements(db: Session, actor: User, status: Optional[str] = None) -> List[Settlement]:
    stmt = select(Settlement).where(
        or_(Settlement.payer_id == actor.id, Settlement.receiver_id == actor.id)
    )
    if status:
        try:
            stmt = stmt.where(Settlement.status == SettlementStatus(status))
        except ValueError:
            raise ValidationError(f"Unknown settlement status: {status}")
    return list(db.scalars(_newest_first(stmt)).unique())

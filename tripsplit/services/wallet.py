# tripsplit/services/wallet.py
# -----------------------------------------------------------------------------
# ЖУРНАЛ КОШЕЛЬКА
# -----------------------------------------------------------------------------
# Текущий баланс = balance_after последней записи (created_at, затем id) или 0.
# Дописывание - read-modify-write: читаем баланс, пишем запись с
# balance_after = баланс + amount. Чтобы параллельные дописывания одного
# пользователя не теряли обновления, перед чтением берём блокировку строки
# users (SELECT … FOR UPDATE) в рамках транзакции операции. На SQLite FOR UPDATE
# игнорируется, там сериализует запись сама БД.
# Записи никогда не правятся и не удаляются: исправления - компенсирующими.
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from tripsplit.models.user import User
from tripsplit.models.wallet import WalletTopup, WalletTransaction, WalletTxKind
from tripsplit.services.errors import NotFound, ValidationError
from tripsplit.services.events import log_event, WALLET_TOPUP
from tripsplit.utils.money import D, ZERO, money

log = logging.getLogger(__name__)

# Ручные корректировки через API: только эти типы и только «свой» знак
MANUAL_KINDS = {
    WalletTxKind.topup: 1,
    WalletTxKind.expense_paid: -1,
}


def _lock_user(db: Session, user_id: int) -> None:
    found = db.execute(
        select(User.id).where(User.id == user_id).with_for_update()
    ).scalar_one_or_none()
    if found is None:
        raise NotFound(f"User {user_id} not found")


def _latest_entry(db: Session, user_id: int) -> Optional[WalletTransaction]:
    stmt = (
        select(WalletTransaction)
        .where(WalletTransaction.user_id == user_id)
        .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        .limit(1)
    )
    return db.scalars(stmt).first()


def get_wallet_balance(db: Session, user_id: int) -> Decimal:
    last = _latest_entry(db, user_id)
    return D(last.balance_after) if last is not None else ZERO


def append_wallet_transaction(
    db: Session,
    user_id: int,
    kind: WalletTxKind,
    amount,
    *,
    reference_id: Optional[int] = None,
    reference_type: Optional[str] = None,
    counterparty_id: Optional[int] = None,
    description: Optional[str] = None,
) -> WalletTransaction:
    """
    Дописывает движение со знаком (> 0 приход, < 0 расход). Не делает commit.
    """
    amount = money(amount)
    _lock_user(db, user_id)

    current = get_wallet_balance(db, user_id)
    entry = WalletTransaction(
        user_id=user_id,
        kind=kind,
        amount=amount,
        balance_after=money(current + amount),
        reference_id=reference_id,
        reference_type=reference_type,
        counterparty_id=counterparty_id,
        description=description,
    )
    db.add(entry)
    # flush сразу: следующий append в той же операции должен увидеть эту запись
    db.flush()
    log.debug("wallet append user=%s kind=%s amount=%s balance_after=%s", user_id, kind.value, amount, entry.balance_after)
    return entry


def record_manual_transaction(
    db: Session,
    actor: User,
    kind: WalletTxKind,
    amount,
    description: Optional[str] = None,
) -> WalletTransaction:
    """Ручная запись в собственный кошелёк (пополнение/трата наличных)."""
    sign = MANUAL_KINDS.get(kind)
    if sign is None:
        raise ValidationError(f"Kind '{kind.value}' cannot be recorded manually")
    amount = money(amount)
    if amount == 0 or (amount > 0) != (sign > 0):
        raise ValidationError(
            f"Amount for '{kind.value}' must be {'positive' if sign > 0 else 'negative'}"
        )
    return append_wallet_transaction(db, actor.id, kind, amount, description=description)


# =========================
# ПОПОЛНЕНИЯ
# =========================

def create_topup(
    db: Session,
    actor: User,
    amount,
    exchange_rate,
    source: Optional[str] = None,
) -> WalletTopup:
    amount = money(amount)
    rate = money(exchange_rate)
    if amount <= 0:
        raise ValidationError("Amount must be positive")
    if rate <= 0:
        raise ValidationError("Exchange rate must be positive")

    source = (source or "").strip() or None
    topup = WalletTopup(user_id=actor.id, amount=amount, exchange_rate=rate, source=source)
    db.add(topup)
    db.flush()

    description = f"Loaded {amount} ({source})" if source else f"Loaded {amount} at rate {rate}"
    append_wallet_transaction(
        db,
        actor.id,
        WalletTxKind.topup,
        amount,
        reference_id=topup.id,
        reference_type="wallet_topup",
        description=description,
    )
    log_event(db, type=WALLET_TOPUP, actor_id=actor.id, data={"topup_id": topup.id, "amount": amount})
    log.info("wallet topup user=%s amount=%s rate=%s", actor.id, amount, rate)
    return topup


def list_topups(db: Session, user_id: int) -> List[WalletTopup]:
    stmt = (
        select(WalletTopup)
        .where(WalletTopup.user_id == user_id)
        .order_by(WalletTopup.created_at.desc(), WalletTopup.id.desc())
    )
    return list(db.scalars(stmt).all())


def list_all_topups(db: Session) -> List[WalletTopup]:
    stmt = select(WalletTopup).order_by(WalletTopup.created_at.desc(), WalletTopup.id.desc())
    return list(db.scalars(stmt).all())


# =========================
# ЧТЕНИЕ ЖУРНАЛА
# =========================

def has_wallet_setup(db: Session, user_id: int) -> bool:
    cnt = db.scalar(
        select(func.count()).select_from(WalletTransaction).where(WalletTransaction.user_id == user_id)
    )
    return bool(cnt)


def list_wallet_transactions(db: Session, user_id: int) -> List[WalletTransaction]:
    stmt = (
        select(WalletTransaction)
        .where(WalletTransaction.user_id == user_id)
        .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
    )
    return list(db.scalars(stmt).all())


def verify_wallet_chain(db: Session, user_id: int) -> Dict:
    """
    Проверка инварианта цепочки: entry[i].balance_after == entry[i-1].balance_after + entry[i].amount.
    """
    stmt = (
        select(WalletTransaction)
        .where(WalletTransaction.user_id == user_id)
        .order_by(WalletTransaction.created_at.asc(), WalletTransaction.id.asc())
    )
    prev = ZERO
    checked = 0
    for entry in db.scalars(stmt):
        checked += 1
        expected = money(prev + D(entry.amount))
        if money(entry.balance_after) != expected:
            log.warning(
                "wallet chain broken user=%s entry=%s expected=%s actual=%s",
                user_id, entry.id, expected, entry.balance_after,
            )
            return {"ok": False, "entries_checked": checked, "broken_entry_id": entry.id}
        prev = D(entry.balance_after)
    return {"ok": True, "entries_checked": checked, "broken_entry_id": None}

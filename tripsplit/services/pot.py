# tripsplit/services/pot.py
# -----------------------------------------------------------------------------
# «КОТЁЛ» (POT): предоплаченный из кошелька баланс под pot-расходы админа
# -----------------------------------------------------------------------------
# • load_pot - админ переводит деньги участника из кошелька в котёл
#   (нужен достаточный баланс кошелька).
# • pot-расход списывает owed_amount каждой доли; удаление расхода - возврат
#   (refund) без ссылки на уже удалённый расход.
# • UserPot - строка-счётчик, блокируем FOR UPDATE перед изменением;
#   PotTransaction - журнал с balance_after.
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from tripsplit.models.pot import UserPot, PotTransaction, PotTxKind
from tripsplit.models.user import User, UserRole
from tripsplit.models.wallet import WalletTxKind
from tripsplit.services.errors import NotAuthorized, NotFound, ValidationError
from tripsplit.services.events import log_event, POT_LOADED
from tripsplit.services.wallet import append_wallet_transaction, get_wallet_balance
from tripsplit.utils.money import D, ZERO, money

log = logging.getLogger(__name__)


def require_admin(actor: User) -> None:
    if actor is None or not actor.is_admin:
        raise NotAuthorized("Only admin can manage the pot")


def get_pot_balance(db: Session, user_id: int) -> Decimal:
    pot = db.scalar(select(UserPot).where(UserPot.user_id == user_id))
    return D(pot.balance) if pot is not None else ZERO


def _locked_pot(db: Session, user_id: int) -> UserPot:
    pot = db.scalar(select(UserPot).where(UserPot.user_id == user_id).with_for_update())
    if pot is None:
        pot = UserPot(user_id=user_id, balance=ZERO)
        db.add(pot)
        db.flush()
    return pot


def _move_pot(
    db: Session,
    user_id: int,
    kind: PotTxKind,
    amount: Decimal,
    *,
    actor_id: Optional[int],
    description: str,
    reference_id: Optional[int] = None,
    reference_type: Optional[str] = None,
) -> PotTransaction:
    pot = _locked_pot(db, user_id)
    new_balance = money(D(pot.balance) + amount)
    pot.balance = new_balance
    if new_balance < 0:
        log.warning("pot of user=%s went negative: %s", user_id, new_balance)

    entry = PotTransaction(
        user_id=user_id,
        kind=kind,
        amount=money(amount),
        balance_after=new_balance,
        reference_id=reference_id,
        reference_type=reference_type,
        description=description,
        created_by=actor_id,
    )
    db.add(entry)
    db.flush()
    return entry


def deduct_from_pot(db: Session, user_id: int, amount, *, expense_id: int, expense_title: str, actor_id: int) -> PotTransaction:
    return _move_pot(
        db,
        user_id,
        PotTxKind.expense,
        -money(amount),
        actor_id=actor_id,
        description=f"Pot expense: {expense_title}",
        reference_id=expense_id,
        reference_type="expense",
    )


def refund_to_pot(
    db: Session,
    user_id: int,
    amount,
    *,
    expense_title: str,
    actor_id: int,
    reference_id: Optional[int] = None,
) -> PotTransaction:
    return _move_pot(
        db,
        user_id,
        PotTxKind.refund,
        money(amount),
        actor_id=actor_id,
        description=f"Refund: {expense_title}",
        reference_id=reference_id,
        reference_type="expense" if reference_id is not None else None,
    )


def _contribute(db: Session, actor: User, user: User, amount: Decimal, note: str) -> Dict:
    wallet_balance = get_wallet_balance(db, user.id)
    if wallet_balance < amount:
        raise ValidationError(f"Insufficient wallet balance. {user.name} has {wallet_balance}")

    pot_entry = _move_pot(
        db,
        user.id,
        PotTxKind.contribution,
        amount,
        actor_id=actor.id,
        description=f"Pot contribution from wallet{note}",
    )
    wallet_entry = append_wallet_transaction(
        db,
        user.id,
        WalletTxKind.pot_contribution,
        -amount,
        description=f"Contributed {amount} to group pot{note}",
    )
    return {
        "user_id": user.id,
        "new_pot_balance": D(pot_entry.balance_after),
        "new_wallet_balance": D(wallet_entry.balance_after),
    }


def load_pot(db: Session, actor: User, user_id: int, amount) -> Dict:
    """Загрузить котёл участника из его кошелька (только админ)."""
    require_admin(actor)
    amount = money(amount)
    if amount <= 0:
        raise ValidationError("Amount must be positive")

    user = db.get(User, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found")

    result = _contribute(db, actor, user, amount, "")
    log_event(db, type=POT_LOADED, actor_id=actor.id, target_user_id=user.id, data={"amount": amount})
    log.info("pot loaded user=%s amount=%s by=%s", user.id, amount, actor.id)
    return result


def bulk_load_pot(db: Session, actor: User, amount_per_person) -> Dict:
    """
    Одинаковая загрузка котла всем не-админам. Участника с недостаточным
    кошельком пропускаем и отражаем в results.
    """
    require_admin(actor)
    amount = money(amount_per_person)
    if amount <= 0:
        raise ValidationError("Amount must be positive")

    users = db.scalars(
        select(User).where(User.role != UserRole.admin).order_by(User.name.asc(), User.id.asc())
    ).all()

    results: List[Dict] = []
    for user in users:
        try:
            _contribute(db, actor, user, amount, " (bulk load)")
        except ValidationError as e:
            results.append({"user_id": user.id, "name": user.name, "success": False, "error": e.message})
            continue
        log_event(db, type=POT_LOADED, actor_id=actor.id, target_user_id=user.id, data={"amount": amount, "bulk": True})
        results.append({"user_id": user.id, "name": user.name, "success": True, "error": None})

    ok = sum(1 for r in results if r["success"])
    failed = len(results) - ok
    message = f"Loaded pot for {ok} users." + (f" {failed} failed." if failed else "")
    log.info("pot bulk load amount=%s ok=%s failed=%s", amount, ok, failed)
    return {"message": message, "results": results}


def list_users_with_pots(db: Session, actor: User) -> List[Dict]:
    require_admin(actor)
    users = db.scalars(
        select(User).where(User.role != UserRole.admin).order_by(User.name.asc())
    ).all()
    return [{"id": u.id, "name": u.name, "pot_balance": get_pot_balance(db, u.id)} for u in users]


def list_pot_balances(db: Session, actor: User) -> Dict:
    require_admin(actor)
    pots = db.scalars(select(UserPot).order_by(UserPot.user_id.asc())).all()
    balances = [
        {"user_id": p.user_id, "user_name": p.user.name if p.user else "Unknown", "balance": D(p.balance)}
        for p in pots
    ]
    total = sum((b["balance"] for b in balances), ZERO)
    return {"total": total, "balances": balances}


def list_pot_transactions(db: Session, user_id: int) -> List[PotTransaction]:
    stmt = (
        select(PotTransaction)
        .where(PotTransaction.user_id == user_id)
        .order_by(PotTransaction.created_at.desc(), PotTransaction.id.desc())
    )
    return list(db.scalars(stmt).all())

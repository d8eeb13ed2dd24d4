# tripsplit/services/expenses.py
# -----------------------------------------------------------------------------
# ЖУРНАЛ РАСХОДОВ: создание / изменение / удаление + побочные эффекты
# -----------------------------------------------------------------------------
# group/individual: каждому плательщику с нетто-вкладом > 0 - запись
#   expense_paid (отрицательная) в кошелёк.
# pot: только админ; единственный синтетический плательщик - админ на всю
#   сумму; у каждой доли списываем owed_amount из котла.
# Изменение: плательщики/доли заменяются целиком, а журналы кошелька и котла
#   НЕ переписываются - дописываем разницу (доплата или возврат), чтобы
#   цепочка balance_after оставалась целой.
# Удаление: компенсирующий приход (expense_refund) каждому плательщику или
#   возврат в котёл (refund), затем каскадное удаление строк.
# Всё - в одной транзакции операции (services/results.run_operation).
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.orm import Session

from tripsplit.models.expense import Expense, ExpenseKind, ExpensePayer, ExpenseSplit
from tripsplit.models.user import User
from tripsplit.models.wallet import WalletTxKind
from tripsplit.schemas.expense import ExpenseCreate, ExpenseUpdate
from tripsplit.services.errors import InvalidState, NotAuthorized, NotFound, ValidationError
from tripsplit.services.events import (
    log_event,
    make_diff,
    EXPENSE_CREATED,
    EXPENSE_UPDATED,
    EXPENSE_DELETED,
)
from tripsplit.services.pot import deduct_from_pot, refund_to_pot
from tripsplit.services.wallet import append_wallet_transaction
from tripsplit.utils.money import D, ZERO, CENT, money, round_half_up

log = logging.getLogger(__name__)


# =========================
# ВИДИМОСТЬ
# =========================

def _is_participant(expense: Expense, user_id: int) -> bool:
    return any(p.user_id == user_id for p in expense.payers) or any(
        s.user_id == user_id for s in expense.splits
    )


def is_visible(expense: Expense, viewer: User) -> bool:
    """
    individual - только автор; pot у админа - только созданные им;
    остальное - плательщик, участник доли или автор.
    """
    is_creator = expense.created_by == viewer.id
    if expense.kind == ExpenseKind.individual:
        return is_creator
    if expense.kind == ExpenseKind.pot and viewer.is_admin:
        return is_creator
    return is_creator or _is_participant(expense, viewer.id)


# =========================
# ВАЛИДАЦИЯ
# =========================

def _ensure_users_exist(db: Session, user_ids: Set[int]) -> None:
    if not user_ids:
        return
    found = set(db.scalars(select(User.id).where(User.id.in_(user_ids))).all())
    missing = sorted(user_ids - found)
    if missing:
        raise NotFound(f"Users not found: {', '.join(str(m) for m in missing)}")


def _validate_shape(db: Session, data: ExpenseCreate) -> Decimal:
    title = (data.title or "").strip()
    if not title:
        raise ValidationError("Title is required")
    total = money(data.total_amount)
    if total <= 0:
        raise ValidationError("Total amount must be positive")

    split_users = [s.user_id for s in data.splits]
    if len(split_users) != len(set(split_users)):
        raise ValidationError("A user can appear only once in splits")

    if data.kind in ("group", "pot"):
        if not data.splits:
            raise ValidationError("At least one person must share the expense")
        owed = sum((money(s.owed_amount) for s in data.splits), ZERO)
        if (owed - total).copy_abs() > CENT:
            raise ValidationError(f"Sum of splits ({owed}) must equal total amount ({total})")

    if data.kind == "group":
        paid = sum((money(p.cash_given) - money(p.change_taken) for p in data.payers), ZERO)
        if (paid - total).copy_abs() > CENT:
            raise ValidationError(f"Sum of payments ({paid}) must equal total amount ({total})")

    _ensure_users_exist(db, set(split_users) | {p.user_id for p in data.payers})
    return total


def _require_owner(expense: Expense, actor: User) -> None:
    if expense.created_by != actor.id and not actor.is_admin:
        raise NotAuthorized("Only the creator can change this expense")


def _require_pot_admin(actor: User) -> None:
    if not actor.is_admin:
        raise NotAuthorized("Only admin can manage pot expenses")


# =========================
# ЗАПОЛНЕНИЕ СТРОК
# =========================

def _fill_rows(expense: Expense, data: ExpenseCreate, actor: User, total: Decimal) -> None:
    if data.kind == "pot":
        # синтетический плательщик - админ на всю сумму
        expense.payers.append(ExpensePayer(user_id=actor.id, cash_given=total, change_taken=ZERO))
    else:
        # один пользователь - одна строка плательщика
        merged: Dict[int, List[Decimal]] = {}
        for p in data.payers:
            acc = merged.setdefault(p.user_id, [ZERO, ZERO])
            acc[0] += money(p.cash_given)
            acc[1] += money(p.change_taken)
        for uid, (given, change) in merged.items():
            expense.payers.append(ExpensePayer(user_id=uid, cash_given=given, change_taken=change))

    for s in data.splits:
        expense.splits.append(
            ExpenseSplit(user_id=s.user_id, shares=D(s.shares), owed_amount=money(s.owed_amount))
        )


def _net_paid_by_user(expense: Expense) -> Dict[int, Decimal]:
    out: Dict[int, Decimal] = {}
    for p in expense.payers:
        out[p.user_id] = out.get(p.user_id, ZERO) + p.net_paid
    return out


def _owed_by_user(expense: Expense) -> Dict[int, Decimal]:
    return {s.user_id: D(s.owed_amount) for s in expense.splits}


def _snapshot(expense: Expense) -> Dict:
    return {
        "title": expense.title,
        "total_amount": str(money(expense.total_amount)),
        "date": expense.date.isoformat() if expense.date else None,
        "kind": expense.kind.value,
        "payers": sorted(
            [[p.user_id, str(money(p.cash_given)), str(money(p.change_taken))] for p in expense.payers]
        ),
        "splits": sorted([[s.user_id, str(money(s.owed_amount))] for s in expense.splits]),
    }


# =========================
# ПОБОЧНЫЕ ЭФФЕКТЫ
# =========================

def _apply_wallet_delta(db: Session, expense: Expense, before: Dict[int, Decimal], after: Dict[int, Decimal]) -> None:
    """Дописываем в кошельки разницу нетто-оплат (after − before) по каждому участнику."""
    for uid in sorted(set(before) | set(after)):
        old = max(before.get(uid, ZERO), ZERO)
        new = max(after.get(uid, ZERO), ZERO)
        delta = money(new - old)
        if delta > 0:
            append_wallet_transaction(
                db, uid, WalletTxKind.expense_paid, -delta,
                reference_id=expense.id, reference_type="expense",
                description=f"Paid for: {expense.title}",
            )
        elif delta < 0:
            append_wallet_transaction(
                db, uid, WalletTxKind.expense_refund, -delta,
                reference_id=expense.id, reference_type="expense",
                description=f"Refund for: {expense.title}",
            )


def _apply_pot_delta(
    db: Session,
    expense: Expense,
    before: Dict[int, Decimal],
    after: Dict[int, Decimal],
    actor: User,
    *,
    link_refunds: bool = True,
) -> None:
    """Разница долей pot-расхода: рост - списание из котла, уменьшение - возврат."""
    for uid in sorted(set(before) | set(after)):
        delta = money(after.get(uid, ZERO) - before.get(uid, ZERO))
        if delta > 0:
            deduct_from_pot(db, uid, delta, expense_id=expense.id, expense_title=expense.title, actor_id=actor.id)
        elif delta < 0:
            refund_to_pot(
                db, uid, -delta,
                expense_title=expense.title,
                actor_id=actor.id,
                reference_id=expense.id if link_refunds else None,
            )


# =========================
# ОПЕРАЦИИ
# =========================

def create_expense(db: Session, actor: User, data: ExpenseCreate) -> Expense:
    if data.kind == "pot":
        _require_pot_admin(actor)
    total = _validate_shape(db, data)

    expense = Expense(
        title=data.title.strip(),
        total_amount=total,
        date=data.date,
        kind=ExpenseKind(data.kind),
        created_by=actor.id,
    )
    _fill_rows(expense, data, actor, total)
    db.add(expense)
    db.flush()  # получим expense.id

    if expense.kind == ExpenseKind.pot:
        _apply_pot_delta(db, expense, {}, _owed_by_user(expense), actor)
    else:
        _apply_wallet_delta(db, expense, {}, _net_paid_by_user(expense))

    log_event(db, type=EXPENSE_CREATED, actor_id=actor.id, expense_id=expense.id, data=_snapshot(expense))
    log.info("expense created id=%s kind=%s total=%s by=%s", expense.id, expense.kind.value, total, actor.id)
    return expense


def _get_expense_or_404(db: Session, expense_id: int) -> Expense:
    expense = db.get(Expense, expense_id)
    if expense is None:
        raise NotFound("Expense not found")
    return expense


def update_expense(db: Session, actor: User, expense_id: int, data: ExpenseUpdate) -> Expense:
    expense = _get_expense_or_404(db, expense_id)
    _require_owner(expense, actor)

    was_pot = expense.kind == ExpenseKind.pot
    if was_pot != (data.kind == "pot"):
        raise InvalidState("Changing an expense to or from pot is not allowed")
    if was_pot:
        _require_pot_admin(actor)

    total = _validate_shape(db, data)

    before = _snapshot(expense)
    old_paid = _net_paid_by_user(expense)
    old_owed = _owed_by_user(expense)

    expense.title = data.title.strip()
    expense.total_amount = total
    expense.date = data.date
    expense.kind = ExpenseKind(data.kind)

    # замена целиком: сначала удаляем старые строки (уникальность expense+user)
    expense.payers.clear()
    expense.splits.clear()
    db.flush()
    _fill_rows(expense, data, actor if not was_pot else db.get(User, expense.created_by), total)
    db.flush()

    if was_pot:
        _apply_pot_delta(db, expense, old_owed, _owed_by_user(expense), actor)
    else:
        _apply_wallet_delta(db, expense, old_paid, _net_paid_by_user(expense))

    diff = make_diff(before, _snapshot(expense))
    if diff["changed"]:
        log_event(db, type=EXPENSE_UPDATED, actor_id=actor.id, expense_id=expense.id, data=diff)
    log.info("expense updated id=%s changed=%s by=%s", expense.id, diff["changed"], actor.id)
    return expense


def delete_expense(db: Session, actor: User, expense_id: int) -> None:
    expense = _get_expense_or_404(db, expense_id)
    _require_owner(expense, actor)

    if expense.kind == ExpenseKind.pot:
        _require_pot_admin(actor)
        # возврат без ссылки: расход сейчас исчезнет
        _apply_pot_delta(db, expense, _owed_by_user(expense), {}, actor, link_refunds=False)
    else:
        _apply_wallet_delta(db, expense, _net_paid_by_user(expense), {})

    log_event(db, type=EXPENSE_DELETED, actor_id=actor.id, expense_id=expense.id, data=_snapshot(expense))
    db.delete(expense)
    db.flush()
    log.info("expense deleted id=%s by=%s", expense_id, actor.id)


def get_expense(db: Session, actor: User, expense_id: int) -> Expense:
    expense = _get_expense_or_404(db, expense_id)
    if not is_visible(expense, actor):
        raise NotFound("Expense not found")
    return expense


def list_expenses(
    db: Session,
    actor: User,
    kind: Optional[str] = None,
    only_mine: bool = False,
    limit: Optional[int] = None,
) -> List[Expense]:
    stmt = select(Expense).order_by(Expense.created_at.desc(), Expense.id.desc())
    if kind:
        try:
            stmt = stmt.where(Expense.kind == ExpenseKind(kind))
        except ValueError:
            raise ValidationError(f"Unknown expense kind: {kind}")

    out: List[Expense] = []
    for e in db.scalars(stmt).unique():
        if not is_visible(e, actor):
            continue
        if only_mine and not _is_participant(e, actor.id):
            continue
        out.append(e)
        if limit is not None and len(out) >= limit:
            break
    return out


def list_recent_expenses(db: Session, actor: User, limit: int = 5) -> List[Expense]:
    return list_expenses(db, actor, limit=limit)


def load_group_expenses(db: Session) -> List[Expense]:
    """Все group-расходы с плательщиками и долями (вход движка балансов)."""
    stmt = (
        select(Expense)
        .where(Expense.kind == ExpenseKind.group)
        .order_by(Expense.date.asc(), Expense.id.asc())
    )
    return list(db.scalars(stmt).unique())


def get_spend_stats(db: Session, actor: User) -> Dict[str, int]:
    group_total = ZERO
    personal = ZERO
    for e in db.scalars(select(Expense)).unique():
        if e.kind == ExpenseKind.group:
            group_total += D(e.total_amount)
        if not is_visible(e, actor):
            continue
        mine = next((s for s in e.splits if s.user_id == actor.id), None)
        if mine is not None:
            personal += D(mine.owed_amount)
    return {
        "total_group_spend": int(round_half_up(group_total)),
        "total_personal_spend": int(round_half_up(personal)),
    }

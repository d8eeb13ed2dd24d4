# tripsplit/utils/balance.py
# -----------------------------------------------------------------------------
# ДВИЖОК БАЛАНСОВ: КТО КОМУ ДОЛЖЕН
# -----------------------------------------------------------------------------
# Политика:
#   • Считаем «с нуля» на каждый запрос, ничего не кэшируем.
#   • В долги идут только расходы kind='group' (pot и individual - нет).
#   • Нетто-вклад по расходу: заплатил − должен.
#       net > 0 - переплатил (кредитор по расходу); net < 0 - недоплатил.
#   • Пропорциональное распределение: недоплата каждого покрывается из общего
#     «пула переплат» пропорционально вкладу каждого кредитора в этот пул.
#   • Знак парного баланса: > 0 - «мне должны», < 0 - «я должен».
#   • Округление: один раз по накопленной сумме (до вычета погашений),
#     половина - вверх по модулю. Тогда погашение ровно показанной суммы
#     обнуляет баланс.
#   • Подтверждённые погашения вычитаются из агрегата пары, а не по расходам.
#     Привязка погашений к расходам (SettlementExpense) влияет только на
#     детализацию «что ещё не закрыто».
# -----------------------------------------------------------------------------

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from typing import Dict, List, Iterable, Optional, Tuple

from tripsplit.utils.money import D, ZERO, round_half_up

# Расход, по которому пользователь «в нуле» (|net| < 0.01), пропускаем целиком
SQUARE_EPS = Decimal("0.01")
# Парные вклады по одному расходу меньше 0.50 - шум
NOISE_THRESHOLD = Decimal("0.50")
# Итоговые балансы меньше 1 целой единицы считаем погашенными
DISPLAY_EPS = Decimal("1")


# =========================
# ВСПОМОГАТЕЛЬНОЕ
# =========================

def _value(x) -> Optional[str]:
    # enum -> строка; строки пропускаем как есть
    if x is None:
        return None
    return getattr(x, "value", x)


def _is_group_expense(expense) -> bool:
    return _value(getattr(expense, "kind", None)) == "group"


def _is_confirmed(settlement) -> bool:
    return _value(getattr(settlement, "status", None)) == "confirmed"


def _name_of(user_names: Dict[int, str], uid: Optional[int]) -> str:
    if uid is None:
        return "Unknown"
    return user_names.get(uid) or "Unknown"


# =========================
# ОДИН РАСХОД
# =========================

def net_contributions(expense) -> Dict[int, Decimal]:
    """
    Нетто-вклад каждого участника расхода: заплатил (cash_given − change_taken)
    минус должен (owed_amount). Учитываются и плательщики без доли (owed = 0),
    и участники доли без оплаты (paid = 0).
    """
    nets: Dict[int, Decimal] = defaultdict(Decimal)

    for payer in getattr(expense, "payers", []) or []:
        uid = getattr(payer, "user_id", None)
        if uid is None:
            continue
        nets[uid] += D(getattr(payer, "cash_given", 0)) - D(getattr(payer, "change_taken", 0))

    for split in getattr(expense, "splits", []) or []:
        uid = getattr(split, "user_id", None)
        if uid is None:
            continue
        nets[uid] -= D(getattr(split, "owed_amount", 0))

    return dict(nets)


def total_overpaid(nets: Dict[int, Decimal]) -> Decimal:
    return sum((n for n in nets.values() if n > 0), ZERO)


def pair_amounts_for_expense(nets: Dict[int, Decimal], me: int) -> Dict[int, Decimal]:
    """
    Парные суммы «другой участник ↔ я» по одному расходу (со знаком, без округления).

      я переплатил, он недоплатил:  +|his_net| × (my_net / total_overpaid)
      я недоплатил, он переплатил:  −|my_net|  × (his_net / total_overpaid)

    Вклады по модулю < 0.50 отбрасываются.
    """
    my_net = nets.get(me, ZERO)
    if my_net.copy_abs() < SQUARE_EPS:
        return {}

    pool = total_overpaid(nets)
    if pool <= 0:
        return {}

    out: Dict[int, Decimal] = {}
    for uid, their_net in nets.items():
        if uid == me:
            continue

        change = ZERO
        if my_net > 0 and their_net < 0:
            change = their_net.copy_abs() * (my_net / pool)
        elif my_net < 0 and their_net > 0:
            change = -(my_net.copy_abs() * (their_net / pool))

        if change.copy_abs() >= NOISE_THRESHOLD:
            out[uid] = change
    return out


# =========================
# ПОГАШЕНИЯ
# =========================

def settled_by_expense(settlements: Iterable, me: int) -> Dict[Tuple[int, int], Decimal]:
    """
    Сколько уже отнесено к каждому расходу подтверждёнными погашениями внутри пары.
    Ключ: (expense_id, other_user_id).
    """
    out: Dict[Tuple[int, int], Decimal] = defaultdict(Decimal)
    for s in settlements:
        if not _is_confirmed(s):
            continue
        if me not in (s.payer_id, s.receiver_id):
            continue
        other = s.receiver_id if s.payer_id == me else s.payer_id
        for link in getattr(s, "expense_links", []) or []:
            out[(link.expense_id, other)] += D(link.amount)
    return dict(out)


def apply_settlements(running: Dict[int, Decimal], settlements: Iterable, me: int) -> None:
    """
    Неттинг подтверждённых погашений по агрегату пары (in-place):
      я получатель (мне заплатили) - вычитаем из «мне должны»;
      я плательщик (я заплатил)    - прибавляем (мой долг уменьшается).
    """
    for s in settlements:
        if not _is_confirmed(s):
            continue
        amount = D(s.amount)
        if s.receiver_id == me and s.payer_id != me:
            running[s.payer_id] = running.get(s.payer_id, ZERO) - amount
        elif s.payer_id == me and s.receiver_id != me:
            running[s.receiver_id] = running.get(s.receiver_id, ZERO) + amount


# =========================
# ДЕТАЛИЗИРОВАННЫЕ БАЛАНСЫ
# =========================

def _expense_item(expense, amount: Decimal, settled: Decimal, user_names: Dict[int, str]) -> Dict:
    rounded = round_half_up(amount).copy_abs()
    remaining = rounded - settled
    if remaining < 0:
        remaining = ZERO
    primary = (getattr(expense, "payers", None) or [None])[0]
    return {
        "id": expense.id,
        "title": expense.title,
        "amount": rounded,
        "settled": settled,
        "remaining": remaining,
        "total": D(expense.total_amount),
        "date": expense.date,
        "paid_by": _name_of(user_names, getattr(primary, "user_id", None)),
        "direction": "owed_to_you" if amount > 0 else "owed_by_you",
    }


def build_detailed_balances(
    *,
    expenses: Iterable,
    settlements: Iterable,
    current_user_id: int,
    user_names: Dict[int, str],
) -> Dict[str, List[Dict]]:
    """
    Возвращает {"owed_to_you": [...], "owed_by_you": [...]} для current_user_id.
    Каждый элемент: {user_id, name, net_amount, expenses: [...]}; net_amount - модуль,
    целые единицы; списки отсортированы по убыванию суммы.
    """
    me = current_user_id
    settlements = list(settlements)
    linked = settled_by_expense(settlements, me)

    running: Dict[int, Decimal] = defaultdict(Decimal)
    breakdown: Dict[int, List[Dict]] = defaultdict(list)

    for expense in expenses:
        if not _is_group_expense(expense):
            continue
        nets = net_contributions(expense)
        if not nets:
            continue
        for uid, amount in pair_amounts_for_expense(nets, me).items():
            running[uid] += amount
            breakdown[uid].append(
                _expense_item(expense, amount, linked.get((expense.id, uid), ZERO), user_names)
            )

    # Округляем накопленное ДО вычета погашений
    rounded: Dict[int, Decimal] = {uid: round_half_up(v) for uid, v in running.items()}
    apply_settlements(rounded, settlements, me)

    owed_to_you: List[Dict] = []
    owed_by_you: List[Dict] = []

    for uid, net in rounded.items():
        net = round_half_up(net)
        if net.copy_abs() < DISPLAY_EPS:
            continue

        items = [e for e in breakdown.get(uid, []) if e["remaining"] >= DISPLAY_EPS]
        items.sort(key=lambda e: (e["date"], e["id"]), reverse=True)

        person = {
            "user_id": uid,
            "name": _name_of(user_names, uid),
            "net_amount": net.copy_abs(),
            "expenses": items,
        }
        (owed_to_you if net > 0 else owed_by_you).append(person)

    owed_to_you.sort(key=lambda p: (-p["net_amount"], p["name"]))
    owed_by_you.sort(key=lambda p: (-p["net_amount"], p["name"]))
    return {"owed_to_you": owed_to_you, "owed_by_you": owed_by_you}


def outstanding_expenses_with(detailed: Dict[str, List[Dict]], other_user_id: int) -> List[Dict]:
    """Незакрытые расходы пары (для привязки нового погашения)."""
    for person in detailed.get("owed_to_you", []) + detailed.get("owed_by_you", []):
        if person["user_id"] == other_user_id:
            return list(person["expenses"])
    return []


# =========================
# ПРИВЯЗКА ПОГАШЕНИЯ К РАСХОДАМ
# =========================

def allocate_settlement(expense_items: Iterable[Dict], amount) -> List[Dict]:
    """
    Жадно «съедаем» сумму погашения от самых новых расходов к старым:
    каждый расход закрываем на его остаток, последний затронутый - частично.
    Возвращает [{"expense_id", "amount"}, ...].
    """
    left = D(amount)
    links: List[Dict] = []
    ordered = sorted(expense_items, key=lambda e: (e["date"], e["id"]), reverse=True)

    for item in ordered:
        if left <= 0:
            break
        outstanding = D(item.get("remaining", item.get("amount"))).copy_abs()
        if outstanding <= 0:
            continue
        take = outstanding if outstanding <= left else left
        links.append({"expense_id": item["id"], "amount": take})
        left -= take

    return links

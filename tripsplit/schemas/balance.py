# tripsplit/schemas/balance.py
from __future__ import annotations

from datetime import date as date_type
from typing import List, Literal

from pydantic import BaseModel


# --------- Расход в детализации пары ---------
class BalanceExpenseOut(BaseModel):
    id: int
    title: str
    amount: float      # вклад расхода в долг пары, целые
    settled: float     # уже закрыто привязанными погашениями
    remaining: float
    total: float
    date: date_type
    paid_by: str
    direction: Literal["owed_to_you", "owed_by_you"]


class PersonBalanceOut(BaseModel):
    user_id: int
    name: str
    net_amount: float  # модуль, целые
    expenses: List[BalanceExpenseOut]


class DetailedBalancesOut(BaseModel):
    owed_to_you: List[PersonBalanceOut]
    owed_by_you: List[PersonBalanceOut]


# --------- Дашборд ---------
class DashboardOut(BaseModel):
    owed_to_me: float
    owed_by_me: float
    wallet_balance: float
    pot_balance: float
    total_group_spend: int
    total_personal_spend: int
    pending_confirmations: int

# tripsplit/schemas/expense.py
# -----------------------------------------------------------------------------
# СХЕМЫ Pydantic: Expense / плательщики / доли
# -----------------------------------------------------------------------------
# Входные модели проверяют только форму данных. Бизнес-проверки (сумма
# вкладов = total, сумма долей ≈ total, права) - в services/expenses.py,
# чтобы работали и при прямом вызове сервисов.
# -----------------------------------------------------------------------------

from __future__ import annotations

from datetime import date as date_type, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from tripsplit.utils.money import DECIMAL_PLACES, MAX_DIGITS

ExpenseKindIn = Literal["group", "individual", "pot"]


class PayerIn(BaseModel):
    user_id: int
    cash_given: Decimal = Field(default=Decimal("0"), ge=0, max_digits=MAX_DIGITS, decimal_places=DECIMAL_PLACES, description="Сколько дал наличными")
    change_taken: Decimal = Field(default=Decimal("0"), ge=0, max_digits=MAX_DIGITS, decimal_places=DECIMAL_PLACES, description="Сколько забрал сдачи")


class SplitIn(BaseModel):
    user_id: int
    # колонка Numeric(4, 1): 0.1 .. 999.9
    shares: Decimal = Field(default=Decimal("1"), gt=0, max_digits=4, decimal_places=1, description="Количество долей")
    owed_amount: Decimal = Field(..., ge=0, max_digits=MAX_DIGITS, decimal_places=DECIMAL_PLACES, description="Сколько участник должен")


class ExpenseCreate(BaseModel):
    title: str
    total_amount: Decimal = Field(..., max_digits=MAX_DIGITS, decimal_places=DECIMAL_PLACES)
    date: date_type = Field(default_factory=date_type.today)
    kind: ExpenseKindIn = "group"
    # Для pot-расхода плательщики игнорируются: плательщик - админ на всю сумму
    payers: List[PayerIn] = Field(default_factory=list)
    splits: List[SplitIn] = Field(default_factory=list)


class ExpenseUpdate(ExpenseCreate):
    """Полная замена финансовой формы расхода (плательщики и доли целиком)."""


class PayerOut(BaseModel):
    user_id: int
    name: str
    cash_given: float
    change_taken: float


class SplitOut(BaseModel):
    user_id: int
    name: str
    shares: float
    owed_amount: float


class ExpenseOut(BaseModel):
    id: int
    title: str
    total_amount: float
    date: date_type
    kind: ExpenseKindIn
    created_by: int
    created_by_name: str
    created_at: Optional[datetime] = None
    payers: List[PayerOut] = Field(default_factory=list)
    splits: List[SplitOut] = Field(default_factory=list)

    @classmethod
    def from_expense(cls, e) -> "ExpenseOut":
        return cls(
            id=e.id,
            title=e.title,
            total_amount=e.total_amount,
            date=e.date,
            kind=e.kind.value,
            created_by=e.created_by,
            created_by_name=e.author.name if e.author else "Unknown",
            created_at=e.created_at,
            payers=[
                PayerOut(
                    user_id=p.user_id,
                    name=p.user.name if p.user else "Unknown",
                    cash_given=p.cash_given,
                    change_taken=p.change_taken,
                )
                for p in e.payers
            ],
            splits=[
                SplitOut(
                    user_id=s.user_id,
                    name=s.user.name if s.user else "Unknown",
                    shares=s.shares,
                    owed_amount=s.owed_amount,
                )
                for s in e.splits
            ],
        )


class ExpenseListItemOut(BaseModel):
    id: int
    title: str
    total_amount: float
    date: date_type
    kind: ExpenseKindIn
    created_at: Optional[datetime] = None
    paid_by: str
    split_between: int
    your_share: float

    @classmethod
    def from_expense(cls, e, viewer_id: int) -> "ExpenseListItemOut":
        mine = next((s for s in e.splits if s.user_id == viewer_id), None)
        primary = e.payers[0] if e.payers else None
        return cls(
            id=e.id,
            title=e.title,
            total_amount=e.total_amount,
            date=e.date,
            kind=e.kind.value,
            created_at=e.created_at,
            paid_by=(primary.user.name if primary and primary.user else "Unknown"),
            split_between=len(e.splits),
            your_share=mine.owed_amount if mine else 0,
        )


class SpendStatsOut(BaseModel):
    total_group_spend: int
    total_personal_spend: int

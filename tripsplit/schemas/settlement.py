# tripsplit/schemas/settlement.py

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from tripsplit.utils.money import DECIMAL_PLACES, MAX_DIGITS, to_alt_currency


class ExpenseLinkIn(BaseModel):
    expense_id: int
    amount: Decimal = Field(..., gt=0, max_digits=MAX_DIGITS, decimal_places=DECIMAL_PLACES)


class SettlementCreate(BaseModel):
    """
    direction:
      pay     - я плачу other_user_id (ждёт подтверждения получателя);
      receive - other_user_id заплатил мне (сразу подтверждено).
    Пустой expenses - привязки к расходам подберутся автоматически.
    """
    other_user_id: int
    amount: Decimal = Field(..., max_digits=MAX_DIGITS, decimal_places=DECIMAL_PLACES)
    amount_alt_currency: Optional[Decimal] = Field(default=None, ge=0, max_digits=MAX_DIGITS, decimal_places=DECIMAL_PLACES)
    direction: Literal["pay", "receive"]
    affects_wallet: bool = True
    expenses: List[ExpenseLinkIn] = Field(default_factory=list)


class SettlementConfirmIn(BaseModel):
    affects_my_wallet: bool = True


class AllocateIn(BaseModel):
    other_user_id: int
    amount: Decimal = Field(..., gt=0, max_digits=MAX_DIGITS, decimal_places=DECIMAL_PLACES)


class ExpenseLinkOut(BaseModel):
    expense_id: int
    amount: float


class SettlementOut(BaseModel):
    id: int
    payer_id: int
    payer_name: str
    receiver_id: int
    receiver_name: str
    amount: float
    amount_alt_currency: Optional[float] = None
    amount_alt_display: float  # amount × курс, только для отображения
    status: Literal["pending", "confirmed", "rejected"]
    affects_payer_wallet: bool
    affects_receiver_wallet: bool
    created_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    expenses: List[ExpenseLinkOut] = Field(default_factory=list)

    @classmethod
    def from_settlement(cls, s) -> "SettlementOut":
        return cls(
            id=s.id,
            payer_id=s.payer_id,
            payer_name=s.payer.name if s.payer else "Unknown",
            receiver_id=s.receiver_id,
            receiver_name=s.receiver.name if s.receiver else "Unknown",
            amount=s.amount,
            amount_alt_currency=s.amount_alt_currency,
            amount_alt_display=to_alt_currency(s.amount),
            status=s.status.value,
            affects_payer_wallet=s.affects_payer_wallet,
            affects_receiver_wallet=s.affects_receiver_wallet,
            created_at=s.created_at,
            confirmed_at=s.confirmed_at,
            rejected_at=s.rejected_at,
            expenses=[ExpenseLinkOut(expense_id=l.expense_id, amount=l.amount) for l in s.expense_links],
        )

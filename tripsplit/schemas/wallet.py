# tripsplit/schemas/wallet.py

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

from tripsplit.utils.money import DECIMAL_PLACES, MAX_DIGITS


class ManualTransactionIn(BaseModel):
    # topup - приход (> 0), expense_paid - трата наличных (< 0)
    kind: Literal["topup", "expense_paid"]
    amount: Decimal = Field(..., max_digits=MAX_DIGITS, decimal_places=DECIMAL_PLACES)
    description: Optional[str] = Field(default=None, max_length=255)


class TopupIn(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=MAX_DIGITS, decimal_places=DECIMAL_PLACES)
    exchange_rate: Decimal = Field(..., gt=0, max_digits=MAX_DIGITS, decimal_places=DECIMAL_PLACES)
    source: Optional[str] = Field(default=None, max_length=50)


class WalletTransactionOut(BaseModel):
    id: int
    kind: str
    amount: float
    balance_after: float
    reference_id: Optional[int] = None
    reference_type: Optional[str] = None
    counterparty_id: Optional[int] = None
    counterparty_name: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_entry(cls, t) -> "WalletTransactionOut":
        return cls(
            id=t.id,
            kind=t.kind.value,
            amount=t.amount,
            balance_after=t.balance_after,
            reference_id=t.reference_id,
            reference_type=t.reference_type,
            counterparty_id=t.counterparty_id,
            counterparty_name=t.counterparty.name if t.counterparty else None,
            description=t.description,
            created_at=t.created_at,
        )


class WalletBalanceOut(BaseModel):
    user_id: int
    balance: float
    has_wallet_setup: bool


class TopupOut(BaseModel):
    id: int
    user_id: int
    user_name: str
    amount: float
    exchange_rate: float
    source: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_topup(cls, t) -> "TopupOut":
        return cls(
            id=t.id,
            user_id=t.user_id,
            user_name=t.user.name if t.user else "Unknown",
            amount=t.amount,
            exchange_rate=t.exchange_rate,
            source=t.source,
            created_at=t.created_at,
        )


class WalletChainOut(BaseModel):
    ok: bool
    entries_checked: int
    broken_entry_id: Optional[int] = None

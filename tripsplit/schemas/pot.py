# tripsplit/schemas/pot.py

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from tripsplit.utils.money import DECIMAL_PLACES, MAX_DIGITS


class PotLoadIn(BaseModel):
    user_id: int
    amount: Decimal = Field(..., gt=0, max_digits=MAX_DIGITS, decimal_places=DECIMAL_PLACES)


class PotBulkLoadIn(BaseModel):
    amount_per_person: Decimal = Field(..., gt=0, max_digits=MAX_DIGITS, decimal_places=DECIMAL_PLACES)


class PotLoadOut(BaseModel):
    user_id: int
    new_pot_balance: float
    new_wallet_balance: float


class BulkLoadItemOut(BaseModel):
    user_id: int
    name: str
    success: bool
    error: Optional[str] = None


class BulkLoadOut(BaseModel):
    message: str
    results: List[BulkLoadItemOut]


class PotBalanceOut(BaseModel):
    user_id: int
    balance: float


class UserPotOut(BaseModel):
    id: int
    name: str
    pot_balance: float


class PotBalanceItemOut(BaseModel):
    user_id: int
    user_name: str
    balance: float


class PotBalancesOut(BaseModel):
    total: float
    balances: List[PotBalanceItemOut]


class PotTransactionOut(BaseModel):
    id: int
    kind: str
    amount: float
    balance_after: float
    reference_id: Optional[int] = None
    reference_type: Optional[str] = None
    description: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_entry(cls, t) -> "PotTransactionOut":
        return cls(
            id=t.id,
            kind=t.kind.value,
            amount=t.amount,
            balance_after=t.balance_after,
            reference_id=t.reference_id,
            reference_type=t.reference_type,
            description=t.description,
            created_by=t.created_by,
            created_at=t.created_at,
        )

# tripsplit/schemas/history.py
from __future__ import annotations

from datetime import date as date_type, datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel


class ExpenseHistoryItem(BaseModel):
    id: int
    type: Literal["expense"] = "expense"
    title: str
    amount: float
    date: date_type
    created_at: Optional[datetime] = None
    kind: str
    paid_by: str
    split_between: int
    your_share: float


class SettlementHistoryItem(BaseModel):
    id: int
    type: Literal["settlement"] = "settlement"
    title: str
    amount: float
    date: Optional[datetime] = None
    status: str
    from_name: str
    to_name: str


class TopupHistoryItem(BaseModel):
    id: int
    type: Literal["topup"] = "topup"
    title: str
    amount: float
    date: Optional[datetime] = None
    user_name: str
    exchange_rate: float
    alt_amount: int


HistoryItem = Union[ExpenseHistoryItem, SettlementHistoryItem, TopupHistoryItem]

_BY_TYPE = {
    "expense": ExpenseHistoryItem,
    "settlement": SettlementHistoryItem,
    "topup": TopupHistoryItem,
}


def history_item(row: dict) -> HistoryItem:
    return _BY_TYPE[row["type"]](**row)


class HistoryOut(BaseModel):
    group: List[HistoryItem]
    individual: List[HistoryItem]

# tripsplit/models/pot.py
# -----------------------------------------------------------------------------
# МОДЕЛИ: UserPot, PotTransaction (SQLAlchemy)
# -----------------------------------------------------------------------------
# «Котёл» - параллельный кошельку баланс участника, предоплаченный из кошелька.
# Тратится только pot-расходами админа. UserPot - строка-счётчик (блокируется
# FOR UPDATE при изменении), PotTransaction - журнал движений.
# -----------------------------------------------------------------------------

from __future__ import annotations

import enum
from decimal import Decimal

from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    Numeric,
    DateTime,
    Enum,
    Index,
    func,
)
from sqlalchemy.orm import relationship

from tripsplit.db import Base
from tripsplit.utils.dates import utc_now


class PotTxKind(enum.Enum):
    contribution = "contribution"
    expense = "expense"
    refund = "refund"


class UserPot(Base):
    __tablename__ = "user_pots"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    balance = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now())

    user = relationship("User", lazy="joined")


class PotTransaction(Base):
    __tablename__ = "pot_transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    kind = Column(Enum(PotTxKind, name="pot_tx_kind"), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False, comment="Со знаком: > 0 пополнение/возврат, < 0 списание")
    balance_after = Column(Numeric(12, 2), nullable=False)
    reference_id = Column(Integer, nullable=True)
    reference_type = Column(String(32), nullable=True)
    description = Column(String(255), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True, comment="Кто провёл операцию (админ)")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_pot_tx_user_created", "user_id", "created_at", "id"),
    )

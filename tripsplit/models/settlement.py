# tripsplit/models/settlement.py
# -----------------------------------------------------------------------------
# МОДЕЛИ: Settlement, SettlementExpense (SQLAlchemy)
# -----------------------------------------------------------------------------
# Settlement - направленный платёж payer -> receiver (погашение долга payer).
# Жизненный цикл: pending -> confirmed | rejected. confirmed/rejected - терминальные.
# SettlementExpense - какая часть суммы погашения отнесена к конкретному расходу.
# -----------------------------------------------------------------------------

from __future__ import annotations

import enum

from sqlalchemy import (
    Column,
    Integer,
    ForeignKey,
    Numeric,
    DateTime,
    Boolean,
    Enum,
    Index,
    func,
    text,
)
from sqlalchemy.orm import relationship

from tripsplit.db import Base


class SettlementStatus(enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    rejected = "rejected"


class Settlement(Base):
    __tablename__ = "settlements"

    id = Column(Integer, primary_key=True, index=True)

    payer_id = Column(
        Integer,
        ForeignKey("users.id"),
        nullable=False,
        comment="Кто платит (его долг уменьшается)",
    )
    receiver_id = Column(
        Integer,
        ForeignKey("users.id"),
        nullable=False,
        comment="Кто получает (его требование уменьшается)",
    )

    amount = Column(
        Numeric(10, 2),
        nullable=False,
        comment="Сумма в базовой валюте (эквивалент)",
    )
    amount_alt_currency = Column(
        Numeric(10, 2),
        nullable=True,
        comment="Фактически уплачено во второй валюте (если платили в ней)",
    )

    status = Column(
        Enum(SettlementStatus, name="settlement_status"),
        nullable=False,
        default=SettlementStatus.pending,
        server_default=text("'pending'"),
    )

    affects_payer_wallet = Column(Boolean, nullable=False, default=True)
    affects_receiver_wallet = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_settlements_payer_status", "payer_id", "status"),
        Index("ix_settlements_receiver_status", "receiver_id", "status"),
    )

    payer = relationship("User", foreign_keys=[payer_id], lazy="joined")
    receiver = relationship("User", foreign_keys=[receiver_id], lazy="joined")

    expense_links = relationship(
        "SettlementExpense",
        back_populates="settlement",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self):
        return (
            f"<Settlement(id={self.id}, {self.payer_id}->{self.receiver_id}, "
            f"amount={self.amount}, status={self.status})>"
        )


class SettlementExpense(Base):
    __tablename__ = "settlement_expenses"

    id = Column(Integer, primary_key=True, index=True)

    settlement_id = Column(
        Integer,
        ForeignKey("settlements.id", ondelete="CASCADE"),
        nullable=False,
    )
    expense_id = Column(
        Integer,
        ForeignKey("expenses.id", ondelete="CASCADE"),
        nullable=False,
    )
    amount = Column(Numeric(10, 2), nullable=False, comment="Часть погашения, отнесённая к расходу")

    __table_args__ = (
        Index("ix_settlement_expenses_settlement", "settlement_id"),
        Index("ix_settlement_expenses_expense", "expense_id"),
    )

    settlement = relationship("Settlement", back_populates="expense_links")
    expense = relationship("Expense", back_populates="settlement_links")

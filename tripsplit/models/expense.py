# tripsplit/models/expense.py
# -----------------------------------------------------------------------------
# МОДЕЛИ: Expense, ExpensePayer, ExpenseSplit (SQLAlchemy)
# -----------------------------------------------------------------------------
# • Expense - расход поездки (group | individual | pot).
# • ExpensePayer - кто платил: дал наличными cash_given, забрал сдачу change_taken.
#   Нетто-вклад плательщика = cash_given - change_taken.
# • ExpenseSplit - кто должен: доли shares и итоговая сумма owed_amount.
# Удаление расхода каскадом удаляет плательщиков и доли (FK + ORM delete-orphan).
# -----------------------------------------------------------------------------

from __future__ import annotations

import enum
from datetime import date as date_type
from decimal import Decimal

from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    Numeric,
    Date,
    DateTime,
    Enum,
    Index,
    UniqueConstraint,
    CheckConstraint,
    func,
    text,
)
from sqlalchemy.orm import relationship

from tripsplit.db import Base


class ExpenseKind(enum.Enum):
    group = "group"
    individual = "individual"
    pot = "pot"


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)

    title = Column(String(255), nullable=False, comment="Название расхода")

    total_amount = Column(
        Numeric(10, 2),
        nullable=False,
        comment="Общая сумма в базовой валюте (NUMERIC(10,2))",
    )

    date = Column(
        Date,
        nullable=False,
        default=date_type.today,
        comment="Дата расхода",
    )

    kind = Column(
        Enum(ExpenseKind, name="expense_kind"),
        nullable=False,
        default=ExpenseKind.group,
        server_default=text("'group'"),
        comment="Тип расхода: group|individual|pot",
    )

    created_by = Column(
        Integer,
        ForeignKey("users.id"),
        nullable=False,
        comment="Кто создал расход (владелец)",
    )

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    __table_args__ = (
        Index("ix_expenses_kind_created", "kind", "created_at"),
    )

    author = relationship("User", foreign_keys=[created_by], lazy="joined")

    payers = relationship(
        "ExpensePayer",
        back_populates="expense",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ExpensePayer.id",
    )
    splits = relationship(
        "ExpenseSplit",
        back_populates="expense",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ExpenseSplit.id",
    )
    settlement_links = relationship(
        "SettlementExpense",
        back_populates="expense",
        cascade="all, delete-orphan",
    )

    @property
    def primary_payer(self):
        return self.payers[0] if self.payers else None

    def __repr__(self):
        return f"<Expense(id={self.id}, title={self.title!r}, total={self.total_amount}, kind={self.kind})>"


class ExpensePayer(Base):
    __tablename__ = "expense_payers"

    id = Column(Integer, primary_key=True, index=True)

    expense_id = Column(
        Integer,
        ForeignKey("expenses.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    cash_given = Column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    change_taken = Column(Numeric(10, 2), nullable=False, default=Decimal("0"))

    __table_args__ = (
        CheckConstraint("cash_given >= 0 AND change_taken >= 0", name="ck_payers_positive"),
        Index("ix_payers_expense", "expense_id"),
        Index("ix_payers_user", "user_id"),
    )

    expense = relationship("Expense", back_populates="payers")
    user = relationship("User", lazy="joined")

    @property
    def net_paid(self) -> Decimal:
        return Decimal(str(self.cash_given or 0)) - Decimal(str(self.change_taken or 0))


class ExpenseSplit(Base):
    __tablename__ = "expense_splits"

    id = Column(Integer, primary_key=True, index=True)

    expense_id = Column(
        Integer,
        ForeignKey("expenses.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    shares = Column(Numeric(4, 1), nullable=False, default=Decimal("1.0"), comment="Количество долей")
    owed_amount = Column(Numeric(10, 2), nullable=False, comment="Сколько участник должен по расходу")

    __table_args__ = (
        UniqueConstraint("expense_id", "user_id", name="uq_splits_expense_user"),
        Index("ix_splits_user", "user_id"),
    )

    expense = relationship("Expense", back_populates="splits")
    user = relationship("User", lazy="joined")

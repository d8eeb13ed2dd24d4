# tripsplit/models/wallet.py
# -----------------------------------------------------------------------------
# МОДЕЛИ: WalletTopup, WalletTransaction (SQLAlchemy)
# -----------------------------------------------------------------------------
# Кошелёк - наличные «на руках» участника. Баланс не хранится отдельно:
# это balance_after последней записи журнала (created_at, затем id).
# Журнал только дописывается; исправления - компенсирующими записями.
# -----------------------------------------------------------------------------

from __future__ import annotations

import enum

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


class WalletTxKind(enum.Enum):
    topup = "topup"
    expense_paid = "expense_paid"
    expense_refund = "expense_refund"
    settlement_sent = "settlement_sent"
    settlement_received = "settlement_received"
    pot_contribution = "pot_contribution"


class WalletTopup(Base):
    __tablename__ = "wallet_topups"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False, comment="Сколько загружено в базовой валюте")
    exchange_rate = Column(Numeric(10, 2), nullable=False, comment="Курс обмена на момент пополнения")
    source = Column(String(50), nullable=True, comment="Откуда деньги (обменник, банкомат…)")
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    user = relationship("User", lazy="joined")


class WalletTransaction(Base):
    __tablename__ = "wallet_transactions"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    kind = Column(Enum(WalletTxKind, name="wallet_tx_kind"), nullable=False)

    amount = Column(
        Numeric(10, 2),
        nullable=False,
        comment="Со знаком: > 0 приход, < 0 расход",
    )
    balance_after = Column(Numeric(12, 2), nullable=False, comment="Баланс после записи")

    # Ссылка на источник без FK: расход может быть удалён, а след в журнале остаётся
    reference_id = Column(Integer, nullable=True)
    reference_type = Column(String(32), nullable=True, comment="expense|settlement|wallet_topup")

    counterparty_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    description = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_wallet_tx_user_created", "user_id", "created_at", "id"),
        Index("ix_wallet_tx_reference", "reference_type", "reference_id"),
    )

    user = relationship("User", foreign_keys=[user_id])
    counterparty = relationship("User", foreign_keys=[counterparty_id], lazy="joined")

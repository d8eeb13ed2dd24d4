"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-16 10:00:00.000000
initial schema

<описание: пользователи, расходы (плательщики/доли), погашения и их привязки,
журналы кошелька и котла, события>
"""
from __future__ import annotations
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum("member", "admin", name="user_role")
expense_kind = sa.Enum("group", "individual", "pot", name="expense_kind")
settlement_status = sa.Enum("pending", "confirmed", "rejected", name="settlement_status")
wallet_tx_kind = sa.Enum(
    "topup",
    "expense_paid",
    "expense_refund",
    "settlement_sent",
    "settlement_received",
    "pot_contribution",
    name="wallet_tx_kind",
)
pot_tx_kind = sa.Enum("contribution", "expense", "refund", name="pot_tx_kind")


# ---- upgrade ----
def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("pin_hash", sa.String(length=64), nullable=False, comment="SHA-256 от 4-значного PIN"),
        sa.Column("role", user_role, nullable=False, server_default=sa.text("'member'"), comment="Роль: member|admin"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_name", "users", ["name"])

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False, comment="Название расхода"),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False, comment="Общая сумма в базовой валюте (NUMERIC(10,2))"),
        sa.Column("date", sa.Date(), nullable=False, comment="Дата расхода"),
        sa.Column("kind", expense_kind, nullable=False, server_default=sa.text("'group'"), comment="Тип расхода: group|individual|pot"),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, comment="Кто создал расход (владелец)"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_expenses_id", "expenses", ["id"])
    op.create_index("ix_expenses_kind_created", "expenses", ["kind", "created_at"])

    op.create_table(
        "expense_payers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("expense_id", sa.Integer(), sa.ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("cash_given", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("change_taken", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.CheckConstraint("cash_given >= 0 AND change_taken >= 0", name="ck_payers_positive"),
    )
    op.create_index("ix_expense_payers_id", "expense_payers", ["id"])
    op.create_index("ix_payers_expense", "expense_payers", ["expense_id"])
    op.create_index("ix_payers_user", "expense_payers", ["user_id"])

    op.create_table(
        "expense_splits",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("expense_id", sa.Integer(), sa.ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("shares", sa.Numeric(4, 1), nullable=False, server_default="1.0", comment="Количество долей"),
        sa.Column("owed_amount", sa.Numeric(10, 2), nullable=False, comment="Сколько участник должен по расходу"),
        sa.UniqueConstraint("expense_id", "user_id", name="uq_splits_expense_user"),
    )
    op.create_index("ix_expense_splits_id", "expense_splits", ["id"])
    op.create_index("ix_splits_user", "expense_splits", ["user_id"])

    op.create_table(
        "settlements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("payer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, comment="Кто платит (его долг уменьшается)"),
        sa.Column("receiver_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, comment="Кто получает (его требование уменьшается)"),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False, comment="Сумма в базовой валюте (эквивалент)"),
        sa.Column("amount_alt_currency", sa.Numeric(10, 2), nullable=True, comment="Фактически уплачено во второй валюте (если платили в ней)"),
        sa.Column("status", settlement_status, nullable=False, server_default=sa.text("'pending'")),
        sa.Column("affects_payer_wallet", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("affects_receiver_wallet", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_settlements_id", "settlements", ["id"])
    op.create_index("ix_settlements_payer_status", "settlements", ["payer_id", "status"])
    op.create_index("ix_settlements_receiver_status", "settlements", ["receiver_id", "status"])

    op.create_table(
        "settlement_expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("settlement_id", sa.Integer(), sa.ForeignKey("settlements.id", ondelete="CASCADE"), nullable=False),
        sa.Column("expense_id", sa.Integer(), sa.ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False, comment="Часть погашения, отнесённая к расходу"),
    )
    op.create_index("ix_settlement_expenses_id", "settlement_expenses", ["id"])
    op.create_index("ix_settlement_expenses_settlement", "settlement_expenses", ["settlement_id"])
    op.create_index("ix_settlement_expenses_expense", "settlement_expenses", ["expense_id"])

    op.create_table(
        "wallet_topups",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False, comment="Сколько загружено в базовой валюте"),
        sa.Column("exchange_rate", sa.Numeric(10, 2), nullable=False, comment="Курс обмена на момент пополнения"),
        sa.Column("source", sa.String(length=50), nullable=True, comment="Откуда деньги (обменник, банкомат…)"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_wallet_topups_id", "wallet_topups", ["id"])

    op.create_table(
        "wallet_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", wallet_tx_kind, nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False, comment="Со знаком: > 0 приход, < 0 расход"),
        sa.Column("balance_after", sa.Numeric(12, 2), nullable=False, comment="Баланс после записи"),
        sa.Column("reference_id", sa.Integer(), nullable=True),
        sa.Column("reference_type", sa.String(length=32), nullable=True, comment="expense|settlement|wallet_topup"),
        sa.Column("counterparty_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_wallet_transactions_id", "wallet_transactions", ["id"])
    op.create_index("ix_wallet_tx_user_created", "wallet_transactions", ["user_id", "created_at", "id"])
    op.create_index("ix_wallet_tx_reference", "wallet_transactions", ["reference_type", "reference_id"])

    op.create_table(
        "user_pots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("balance", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_user_pots_id", "user_pots", ["id"])

    op.create_table(
        "pot_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", pot_tx_kind, nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False, comment="Со знаком: > 0 пополнение/возврат, < 0 списание"),
        sa.Column("balance_after", sa.Numeric(12, 2), nullable=False),
        sa.Column("reference_id", sa.Integer(), nullable=True),
        sa.Column("reference_type", sa.String(length=32), nullable=True),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True, comment="Кто провёл операцию (админ)"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_pot_transactions_id", "pot_transactions", ["id"])
    op.create_index("ix_pot_tx_user_created", "pot_transactions", ["user_id", "created_at", "id"])

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor_id", sa.Integer(), nullable=False),
        sa.Column("target_user_id", sa.Integer(), nullable=True),
        sa.Column("expense_id", sa.Integer(), nullable=True),
        sa.Column("settlement_id", sa.Integer(), nullable=True),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("data", sa.JSON().with_variant(postgresql.JSONB(), "postgresql"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_events_id", "events", ["id"])
    op.create_index("ix_events_actor_id", "events", ["actor_id"])
    op.create_index("ix_events_target_user_id", "events", ["target_user_id"])


# ---- downgrade ----
def downgrade() -> None:
    for table in (
        "events",
        "pot_transactions",
        "user_pots",
        "wallet_transactions",
        "wallet_topups",
        "settlement_expenses",
        "settlements",
        "expense_splits",
        "expense_payers",
        "expenses",
        "users",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum in (pot_tx_kind, wallet_tx_kind, settlement_status, expense_kind, user_role):
        enum.drop(bind, checkfirst=True)

"""Ledger core schema: accounts, transactions, ledger entries.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

from ledger_core.models.types import MinorUnits

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

account_type_enum = sa.Enum(
    "ASSET", "LIABILITY", name="account_type_enum", create_constraint=True
)
entry_type_enum = sa.Enum(
    "DEBIT", "CREDIT", name="entry_type_enum", create_constraint=True
)


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(20), nullable=False, unique=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("account_type", account_type_enum, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("cached_balance", MinorUnits(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("external_id", sa.Uuid(), nullable=False, unique=True),
        sa.Column("idempotency_key", sa.String(100), nullable=True, unique=True),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column(
            "reverses_id",
            sa.Integer(),
            sa.ForeignKey("transactions.id"),
            nullable=True,
            unique=True,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_transactions_transaction_date", "transactions", ["transaction_date"]
    )

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "transaction_id",
            sa.Integer(),
            sa.ForeignKey("transactions.id"),
            nullable=False,
        ),
        sa.Column(
            "account_id",
            sa.Integer(),
            sa.ForeignKey("accounts.id"),
            nullable=False,
        ),
        sa.Column("entry_type", entry_type_enum, nullable=False),
        sa.Column("amount", MinorUnits(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_ledger_entries_transaction_id", "ledger_entries", ["transaction_id"]
    )
    op.create_index(
        "ix_ledger_entries_account_date",
        "ledger_entries",
        ["account_id", "transaction_date"],
    )


def downgrade() -> None:
    op.drop_index("ix_ledger_entries_account_date", table_name="ledger_entries")
    op.drop_index("ix_ledger_entries_transaction_id", table_name="ledger_entries")
    op.drop_table("ledger_entries")
    op.drop_index("ix_transactions_transaction_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("accounts")
    account_type_enum.drop(op.get_bind(), checkfirst=True)
    entry_type_enum.drop(op.get_bind(), checkfirst=True)

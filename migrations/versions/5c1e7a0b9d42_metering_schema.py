"""metering schema

Revision ID: 5c1e7a0b9d42
Revises:
Create Date: 2026-10-19 09:12:44.318021

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1e7a0b9d42"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(36, 12)
RATE = sa.Numeric(30, 15)


def upgrade() -> None:
    """Create users, nodes, sessions, ledger records and login challenges."""
    op.create_table(
        "wallet_user",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("wallet_address", sa.String(length=42), nullable=False),
        sa.Column("usdc_balance", MONEY, nullable=False),
        sa.Column("x4pn_balance", MONEY, nullable=False),
        sa.Column("total_spent", MONEY, nullable=False),
        sa.Column("total_earned_x4pn", MONEY, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("usdc_balance >= 0", name="ck_wallet_user_usdc_non_negative"),
        sa.CheckConstraint("x4pn_balance >= 0", name="ck_wallet_user_x4pn_non_negative"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("wallet_address"),
    )
    op.create_table(
        "vpn_node",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("operator_address", sa.String(length=42), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("location", sa.Text(), nullable=False),
        sa.Column("country", sa.Text(), nullable=False),
        sa.Column("country_code", sa.String(length=8), nullable=False),
        sa.Column("ip_address", sa.Text(), nullable=False),
        sa.Column("port", sa.Integer(), nullable=False),
        sa.Column("rate_per_minute", RATE, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("total_earned_usdc", MONEY, nullable=False),
        sa.Column("total_earned_x4pn", MONEY, nullable=False),
        sa.Column("active_users", sa.Integer(), nullable=False),
        sa.Column("uptime", sa.Float(), nullable=False),
        sa.Column("latency", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("rate_per_minute > 0", name="ck_vpn_node_rate_positive"),
        sa.CheckConstraint("active_users >= 0", name="ck_vpn_node_active_users_non_negative"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_vpn_node_operator_address", "vpn_node", ["operator_address"])

    op.create_table(
        "vpn_session",
        sa.Column("id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("node_id", sa.String(length=36), nullable=False),
        sa.Column("user_address", sa.String(length=42), nullable=False),
        sa.Column("node_address", sa.String(length=42), nullable=False),
        sa.Column("rate_per_second", RATE, nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_settled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_cost", MONEY, nullable=False),
        sa.Column("total_duration", sa.BigInteger(), nullable=False),
        sa.Column("x4pn_earned", MONEY, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.CheckConstraint(
            "status IN ('active', 'ended', 'failed')", name="ck_vpn_session_status"
        ),
        sa.CheckConstraint("total_cost >= 0", name="ck_vpn_session_cost_non_negative"),
        sa.ForeignKeyConstraint(["node_id"], ["vpn_node.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["wallet_user.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "uq_vpn_session_active_user",
        "vpn_session",
        ["user_id"],
        unique=True,
        sqlite_where=sa.text("is_active"),
        postgresql_where=sa.text("is_active"),
    )
    op.create_index("ix_vpn_session_user_address", "vpn_session", ["user_address"])

    op.create_table(
        "ledger_transaction",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("token", sa.String(length=8), nullable=False),
        sa.Column("tx_hash", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("type IN ('deposit', 'withdrawal')", name="ck_ledger_transaction_type"),
        sa.CheckConstraint("token IN ('usdc', 'x4pn')", name="ck_ledger_transaction_token"),
        sa.CheckConstraint("amount > 0", name="ck_ledger_transaction_amount_positive"),
        sa.ForeignKeyConstraint(["user_id"], ["wallet_user.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_ledger_transaction_user_id", "ledger_transaction", ["user_id"])

    op.create_table(
        "session_sequence",
        sa.Column("id", sa.BigInteger(), nullable=False),
        sa.Column("last_value", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "login_nonce",
        sa.Column("wallet_address", sa.String(length=42), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("wallet_address"),
    )


def downgrade() -> None:
    """Drop the metering schema."""
    op.drop_table("login_nonce")
    op.drop_table("session_sequence")
    op.drop_index("ix_ledger_transaction_user_id", table_name="ledger_transaction")
    op.drop_table("ledger_transaction")
    op.drop_index("ix_vpn_session_user_address", table_name="vpn_session")
    op.drop_index("uq_vpn_session_active_user", table_name="vpn_session")
    op.drop_table("vpn_session")
    op.drop_index("ix_vpn_node_operator_address", table_name="vpn_node")
    op.drop_table("vpn_node")
    op.drop_table("wallet_user")

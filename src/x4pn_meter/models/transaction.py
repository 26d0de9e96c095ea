# src/x4pn_meter/models/transaction.py
"""Append-only ledger records for deposits and withdrawals."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from x4pn_meter.db.session import Base
from x4pn_meter.db.time import utcnow

from .types import Money

TRANSACTION_DEPOSIT = "deposit"
TRANSACTION_WITHDRAWAL = "withdrawal"

TOKEN_USDC = "usdc"
TOKEN_X4PN = "x4pn"

TRANSACTION_PENDING = "pending"
TRANSACTION_COMPLETED = "completed"
TRANSACTION_FAILED = "failed"


class LedgerTransaction(Base):
    """Audit record of a balance movement. Only ``status`` is ever updated."""

    __tablename__ = "ledger_transaction"
    __table_args__ = (
        CheckConstraint("type IN ('deposit', 'withdrawal')", name="ck_ledger_transaction_type"),
        CheckConstraint("token IN ('usdc', 'x4pn')", name="ck_ledger_transaction_token"),
        CheckConstraint("amount > 0", name="ck_ledger_transaction_amount_positive"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("wallet_user.id"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    token: Mapped[str] = mapped_column(String(8), nullable=False)
    tx_hash: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=TRANSACTION_PENDING)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

# src/x4pn_meter/models/user.py
"""SQLAlchemy models for wallet-identified users."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from x4pn_meter.db.session import Base
from x4pn_meter.db.time import utcnow

from .types import ZERO, Money


class User(Base):
    """Wallet identity holding the prepaid and reward balances.

    Balances are mutated only through the balance ledger, which issues
    single-statement deltas rather than read-modify-write updates.
    """

    __tablename__ = "wallet_user"
    __table_args__ = (
        CheckConstraint("usdc_balance >= 0", name="ck_wallet_user_usdc_non_negative"),
        CheckConstraint("x4pn_balance >= 0", name="ck_wallet_user_x4pn_non_negative"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    # Stored lower-cased so lookups are case-insensitive.
    wallet_address: Mapped[str] = mapped_column(String(42), unique=True, nullable=False)
    usdc_balance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    x4pn_balance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    total_spent: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    total_earned_x4pn: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

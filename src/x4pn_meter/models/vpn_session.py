# src/x4pn_meter/models/vpn_session.py
"""SQLAlchemy models for metered VPN sessions."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from x4pn_meter.db.session import Base
from x4pn_meter.db.time import utcnow

from .types import ZERO, Money, Rate

SESSION_STATUS_ACTIVE = "active"
SESSION_STATUS_ENDED = "ended"
SESSION_STATUS_FAILED = "failed"


class VpnSession(Base):
    """A user's metered connection to a node.

    Lifecycle: ``active -> (settle)* -> ended``, or ``active -> failed`` when
    the node goes away mid-session. Terminal rows are kept as history.
    """

    __tablename__ = "vpn_session"
    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'ended', 'failed')", name="ck_vpn_session_status"
        ),
        CheckConstraint("total_cost >= 0", name="ck_vpn_session_cost_non_negative"),
        # At most one active session per user; enforced by the database so that
        # two concurrent starts cannot both commit.
        Index(
            "uq_vpn_session_active_user",
            "user_id",
            unique=True,
            sqlite_where=text("is_active"),
            postgresql_where=text("is_active"),
        ),
        Index("ix_vpn_session_user_address", "user_address"),
    )

    # Allocated from the global session sequence, never reused.
    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("wallet_user.id"), nullable=False
    )
    node_id: Mapped[str] = mapped_column(String(36), ForeignKey("vpn_node.id"), nullable=False)
    user_address: Mapped[str] = mapped_column(String(42), nullable=False)
    node_address: Mapped[str] = mapped_column(String(42), nullable=False)

    # Snapshot of the node rate at start time.
    rate_per_second: Mapped[Decimal] = mapped_column(Rate, nullable=False)

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    last_settled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    total_cost: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    # Whole seconds actually paid for.
    total_duration: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    x4pn_earned: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=SESSION_STATUS_ACTIVE
    )
    # Optimistic-lock counter bumped by every settle and end.
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

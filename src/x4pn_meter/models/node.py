# src/x4pn_meter/models/node.py
"""SQLAlchemy models for operator-run VPN nodes."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from x4pn_meter.db.session import Base
from x4pn_meter.db.time import utcnow

from .types import ZERO, Money, Rate

DEFAULT_WIREGUARD_PORT = 51820


class Node(Base):
    """VPN endpoint that sessions are billed against."""

    __tablename__ = "vpn_node"
    __table_args__ = (
        CheckConstraint("rate_per_minute > 0", name="ck_vpn_node_rate_positive"),
        CheckConstraint("active_users >= 0", name="ck_vpn_node_active_users_non_negative"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    operator_address: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str] = mapped_column(Text, nullable=False)
    country: Mapped[str] = mapped_column(Text, nullable=False)
    country_code: Mapped[str] = mapped_column(String(8), nullable=False)
    ip_address: Mapped[str] = mapped_column(Text, nullable=False)
    port: Mapped[int] = mapped_column(Integer, nullable=False, default=DEFAULT_WIREGUARD_PORT)

    # Fixed at registration; open sessions keep their own per-second snapshot.
    rate_per_minute: Mapped[Decimal] = mapped_column(Rate, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    total_earned_usdc: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    total_earned_x4pn: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    active_users: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    uptime: Mapped[float] = mapped_column(Float, nullable=False, default=100.0)
    latency: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

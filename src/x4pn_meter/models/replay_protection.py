# src/x4pn_meter/models/replay_protection.py
"""Models supporting single-use login challenges."""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from x4pn_meter.db.session import Base


class LoginNonce(Base):
    """Outstanding sign-in challenge for a wallet address.

    A row exists only between issuing a challenge and consuming it; expired
    rows are ignored and overwritten.
    """

    __tablename__ = "login_nonce"

    wallet_address: Mapped[str] = mapped_column(String(42), primary_key=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

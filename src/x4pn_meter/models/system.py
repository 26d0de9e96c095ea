"""System-level bookkeeping models."""
from sqlalchemy import BigInteger
from sqlalchemy.orm import Mapped, mapped_column

from x4pn_meter.db.session import Base

SESSION_SEQUENCE_ROW_ID = 1


class SessionSequence(Base):
    """Single-row counter backing the global session id sequence."""

    __tablename__ = "session_sequence"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, default=SESSION_SEQUENCE_ROW_ID)
    last_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

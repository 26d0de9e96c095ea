"""Balance ledger: the only writer of user monetary state."""

from __future__ import annotations

import logging
import secrets
from decimal import Decimal
from typing import Any, Sequence

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from x4pn_meter.core.errors import InsufficientBalanceError, NotFoundError
from x4pn_meter.core.security import normalize_address
from x4pn_meter.core.settings import settings
from x4pn_meter.models import LedgerTransaction, User
from x4pn_meter.models.transaction import (
    TOKEN_USDC,
    TOKEN_X4PN,
    TRANSACTION_COMPLETED,
    TRANSACTION_DEPOSIT,
    TRANSACTION_WITHDRAWAL,
)
from x4pn_meter.services.billing import Amount, to_decimal

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")
# Backends without native decimals (SQLite) round-trip balances through
# floats; a full-balance debit may overshoot by this much and is clamped.
BALANCE_DUST = Decimal("1e-9")

__all__ = ["BALANCE_DUST", "BalanceLedger", "generate_reference_hash"]


def _clamped_sum(column: Any, delta: Decimal) -> Any:
    """Return SQL for ``column + delta`` floored at zero.

    The balance guard in `apply_delta` bounds any overshoot to `BALANCE_DUST`.
    """
    total = column + delta
    return case((total < 0, _ZERO), else_=total)


def generate_reference_hash() -> str:
    """Return an opaque 0x-prefixed 32-byte reference for a ledger record."""
    return f"0x{secrets.token_hex(32)}"


class BalanceLedger:
    """Atomic balance deltas over `User` rows.

    Every mutation is a single ``UPDATE ... SET col = col + :delta`` so that
    deposits, withdrawals and settlements can interleave without lost
    updates. The ledger never commits; callers own the transaction.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    # --- Lookups -----------------------------------------------------------------
    def get_user(self, user_id: str) -> User | None:
        """Return a user by primary key with freshly loaded balances."""
        return self.db.execute(
            select(User).where(User.id == user_id).execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_user_by_address(self, wallet_address: str) -> User | None:
        """Return the user owning `wallet_address`, matched case-insensitively."""
        return self.db.execute(
            select(User)
            .where(func.lower(User.wallet_address) == wallet_address.strip().lower())
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_or_create_user(self, wallet_address: str) -> User:
        """Return the user for `wallet_address`, creating it on first sight.

        Raises:
            ValueError: If the address is not a valid wallet address.
        """
        address = normalize_address(wallet_address)
        user = self.get_user_by_address(address)
        if user is not None:
            return user

        user = User(
            wallet_address=address,
            usdc_balance=settings.initial_usdc_balance,
            x4pn_balance=settings.initial_x4pn_balance,
            total_spent=_ZERO,
            total_earned_x4pn=_ZERO,
        )
        try:
            with self.db.begin_nested():
                self.db.add(user)
        except IntegrityError:
            # Lost a creation race; the other request's row is authoritative.
            logger.debug("Concurrent creation of user %s, reloading", address)
            existing = self.get_user_by_address(address)
            if existing is None:  # pragma: no cover - constraint fired for another reason
                raise
            return existing
        logger.info("Created user %s", address)
        return user

    # --- Deltas ------------------------------------------------------------------
    def apply_delta(
        self,
        user_id: str,
        usdc_delta: Amount,
        x4pn_delta: Amount,
        spent_delta: Amount = _ZERO,
        earned_delta: Amount = _ZERO,
    ) -> User:
        """Atomically add deltas to a user's balances and totals.

        Args:
            user_id: Primary key of the user.
            usdc_delta: Change to the prepaid balance.
            x4pn_delta: Change to the reward balance.
            spent_delta: Change to the cumulative spend.
            earned_delta: Change to the cumulative reward earnings.

        Returns:
            The refreshed `User`.

        Raises:
            NotFoundError: If the user does not exist.
            InsufficientBalanceError: If either balance would drop below zero.
        """
        usdc = to_decimal(usdc_delta)
        x4pn = to_decimal(x4pn_delta)
        stmt = (
            update(User)
            .where(
                User.id == user_id,
                User.usdc_balance + usdc >= -BALANCE_DUST,
                User.x4pn_balance + x4pn >= -BALANCE_DUST,
            )
            .values(
                usdc_balance=_clamped_sum(User.usdc_balance, usdc),
                x4pn_balance=_clamped_sum(User.x4pn_balance, x4pn),
                total_spent=User.total_spent + to_decimal(spent_delta),
                total_earned_x4pn=User.total_earned_x4pn + to_decimal(earned_delta),
            )
            .execution_options(synchronize_session=False)
        )

        result = self.db.execute(stmt)
        if result.rowcount == 0:
            if self.get_user(user_id) is None:
                raise NotFoundError("User not found")
            raise InsufficientBalanceError()

        user = self.get_user(user_id)
        if user is None:  # pragma: no cover - row was just updated
            raise NotFoundError("User not found")
        return user

    def deposit(self, user: User, amount: Amount) -> tuple[User, LedgerTransaction]:
        """Credit the prepaid balance and record a completed deposit."""
        value = to_decimal(amount)
        if value <= _ZERO:
            raise ValueError("Deposit amount must be positive")

        updated = self.apply_delta(user.id, value, _ZERO)
        record = self._record(user.id, TRANSACTION_DEPOSIT, value, TOKEN_USDC)
        logger.info("Deposit of %s usdc for user %s", value, user.wallet_address)
        return updated, record

    def withdraw(self, user: User, amount: Amount, token: str) -> tuple[User, LedgerTransaction]:
        """Debit the requested balance and record a completed withdrawal.

        Raises:
            InsufficientBalanceError: If the balance does not cover `amount`.
        """
        value = to_decimal(amount)
        if value <= _ZERO:
            raise ValueError("Withdrawal amount must be positive")
        if token not in (TOKEN_USDC, TOKEN_X4PN):
            raise ValueError(f"Unknown token kind: {token}")

        usdc_delta = -value if token == TOKEN_USDC else _ZERO
        x4pn_delta = -value if token == TOKEN_X4PN else _ZERO
        updated = self.apply_delta(user.id, usdc_delta, x4pn_delta)
        record = self._record(user.id, TRANSACTION_WITHDRAWAL, value, token)
        logger.info("Withdrawal of %s %s for user %s", value, token, user.wallet_address)
        return updated, record

    def list_transactions(self, user_id: str, limit: int = 100) -> Sequence[LedgerTransaction]:
        """Return a user's ledger records, newest first."""
        return self.db.execute(
            select(LedgerTransaction)
            .where(LedgerTransaction.user_id == user_id)
            .order_by(LedgerTransaction.created_at.desc())
            .limit(limit)
        ).scalars().all()

    def _record(self, user_id: str, kind: str, amount: Decimal, token: str) -> LedgerTransaction:
        record = LedgerTransaction(
            user_id=user_id,
            type=kind,
            amount=amount,
            token=token,
            tx_hash=generate_reference_hash(),
            status=TRANSACTION_COMPLETED,
        )
        self.db.add(record)
        self.db.flush()
        return record

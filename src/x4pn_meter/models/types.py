"""Shared column types for monetary values."""

from decimal import Decimal

from sqlalchemy import Numeric

# Balances, costs and rewards.
MONEY_SCALE = 12
Money = Numeric(36, MONEY_SCALE, asdecimal=True)

# Per-second billing rates are small; keep more fractional digits.
RATE_SCALE = 15
Rate = Numeric(30, RATE_SCALE, asdecimal=True)

ZERO = Decimal("0")

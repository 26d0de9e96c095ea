"""Settlement arithmetic for metered VPN sessions.

This module is pure: it converts elapsed wall-clock time, a per-second rate
and an optional available balance into a capped cost and a proportional
reward. It performs no I/O and holds no state, so the lifecycle manager can
call it as often as it needs to while retrying a settlement.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_FLOOR, ROUND_HALF_EVEN, Decimal
from typing import Union

from x4pn_meter.db.time import as_utc

Amount = Union[Decimal, int, float, str]

REWARD_MULTIPLIER = Decimal("10")
SECONDS_PER_MINUTE = Decimal("60")
RATE_QUANTUM = Decimal("1e-15")

_ZERO = Decimal("0")
_ONE_SECOND = timedelta(seconds=1)

__all__ = [
    "REWARD_MULTIPLIER",
    "Settlement",
    "compute_settlement",
    "elapsed_seconds",
    "rate_per_second_from_minute",
    "to_decimal",
]


@dataclass(frozen=True)
class Settlement:
    """Outcome of a single settlement computation.

    Attributes:
        cost: Amount to debit from the prepaid balance (never negative).
        reward: Reward tokens credited for this cost.
        seconds_paid: Whole seconds the cost actually covers.
        elapsed: Whole seconds between the last settlement and now.
        capped: True when the balance, not the clock, limited the cost.
    """

    cost: Decimal
    reward: Decimal
    seconds_paid: int
    elapsed: int
    capped: bool = False


def to_decimal(value: Amount) -> Decimal:
    """Convert a numeric input to Decimal without binary float artefacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def rate_per_second_from_minute(rate_per_minute: Amount) -> Decimal:
    """Return the per-second rate snapshot stored on a new session."""
    rate = to_decimal(rate_per_minute) / SECONDS_PER_MINUTE
    return rate.quantize(RATE_QUANTUM, rounding=ROUND_HALF_EVEN)


def elapsed_seconds(last_settled_at: datetime, now: datetime) -> int:
    """Return whole seconds from `last_settled_at` to `now`, clamped at zero."""
    delta = as_utc(now) - as_utc(last_settled_at)
    return max(0, delta // _ONE_SECOND)


def compute_settlement(
    rate_per_second: Amount,
    last_settled_at: datetime,
    now: datetime,
    available_balance: Amount | None = None,
) -> Settlement:
    """Compute the capped cost and reward for time elapsed since the last settlement.

    Args:
        rate_per_second: Billing rate snapshot of the session.
        last_settled_at: Timestamp up to which the session has been paid.
        now: Settlement timestamp. Earlier than `last_settled_at` charges nothing.
        available_balance: Prepaid balance; the cost never exceeds it when given.

    Returns:
        A `Settlement` describing cost, reward and covered seconds.
    """
    rate = to_decimal(rate_per_second)
    elapsed = elapsed_seconds(last_settled_at, now)
    raw_cost = rate * elapsed

    cost = raw_cost
    capped = False
    if available_balance is not None:
        balance = to_decimal(available_balance)
        if raw_cost > balance:
            # Deplete the balance fully rather than charging a partial second.
            cost = max(_ZERO, balance)
            capped = True

    if cost < _ZERO:
        cost = _ZERO

    reward = cost * REWARD_MULTIPLIER

    if rate <= _ZERO:
        seconds_paid = 0
    elif not capped:
        # floor(rate * elapsed / rate) is exactly elapsed.
        seconds_paid = elapsed
    else:
        seconds_paid = min(elapsed, int((cost / rate).to_integral_value(rounding=ROUND_FLOOR)))

    return Settlement(
        cost=cost,
        reward=reward,
        seconds_paid=seconds_paid,
        elapsed=elapsed,
        capped=capped,
    )

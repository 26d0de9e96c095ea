# mypy: ignore-errors
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from x4pn_meter.services.billing import (
    REWARD_MULTIPLIER,
    compute_settlement,
    elapsed_seconds,
    rate_per_second_from_minute,
)

T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=UTC)


def test_uncapped_settlement_charges_full_elapsed_time() -> None:
    """Sixty seconds at 0.01/s costs 0.60 and earns ten times that in rewards."""
    result = compute_settlement(Decimal("0.01"), T0, T0 + timedelta(seconds=60), Decimal("100"))

    assert result.cost == Decimal("0.60")
    assert result.reward == Decimal("6.0")
    assert result.seconds_paid == 60
    assert result.elapsed == 60
    assert result.capped is False


def test_settlement_is_capped_by_available_balance() -> None:
    """A balance smaller than the raw cost is fully depleted and no more."""
    result = compute_settlement(Decimal("0.01"), T0, T0 + timedelta(seconds=100), Decimal("0.50"))

    assert result.cost == Decimal("0.50")
    assert result.reward == Decimal("5.0")
    assert result.seconds_paid == 50
    assert result.elapsed == 100
    assert result.capped is True


def test_clock_skew_charges_nothing() -> None:
    """A settlement time earlier than the last settlement yields zero."""
    result = compute_settlement(Decimal("0.01"), T0, T0 - timedelta(seconds=30), Decimal("100"))

    assert result.cost == Decimal("0")
    assert result.reward == Decimal("0")
    assert result.seconds_paid == 0
    assert result.elapsed == 0


def test_partial_seconds_are_not_billed() -> None:
    """Elapsed time is floored to whole seconds."""
    result = compute_settlement(Decimal("0.01"), T0, T0 + timedelta(seconds=59, milliseconds=999))

    assert result.elapsed == 59
    assert result.cost == Decimal("0.59")


def test_zero_balance_yields_zero_cost() -> None:
    """A depleted balance caps the cost at zero."""
    result = compute_settlement(Decimal("0.01"), T0, T0 + timedelta(seconds=10), Decimal("0"))

    assert result.cost == Decimal("0")
    assert result.seconds_paid == 0
    assert result.capped is True


def test_without_balance_the_cost_is_uncapped() -> None:
    """Omitting the balance computes the raw cost."""
    result = compute_settlement("0.5", T0, T0 + timedelta(seconds=4))

    assert result.cost == Decimal("2.0")
    assert result.capped is False


def test_reward_is_proportional_to_cost() -> None:
    result = compute_settlement(Decimal("0.003"), T0, T0 + timedelta(seconds=7), Decimal("1"))

    assert result.reward == result.cost * REWARD_MULTIPLIER


def test_naive_timestamps_are_treated_as_utc() -> None:
    """Timestamps read back from SQLite lack tzinfo but compare as UTC."""
    naive_last = datetime(2025, 1, 1, 12, 0, 0)

    assert elapsed_seconds(naive_last, T0 + timedelta(seconds=15)) == 15


def test_rate_per_second_from_minute() -> None:
    """Per-minute rates convert to a fixed-scale per-second snapshot."""
    assert rate_per_second_from_minute("0.6") == Decimal("0.010000000000000")
    assert rate_per_second_from_minute(Decimal("0.001")) == Decimal("0.000016666666667")

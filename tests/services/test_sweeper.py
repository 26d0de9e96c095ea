# mypy: ignore-errors
import asyncio
from datetime import timedelta

import pytest

from conftest import START_TIME, assert_money, make_node, make_user
from x4pn_meter.core.settings import settings
from x4pn_meter.models import User, VpnSession
from x4pn_meter.services.notifications import InMemorySessionNotifier
from x4pn_meter.services.sessions import SessionLifecycleManager
from x4pn_meter.services.sweeper import SettlementSweepWorker, StaleSessionSweeper

OPERATOR = "0x" + "33" * 20


def _open_session(factory, address: str, usdc: str, rate_per_minute: str = "0.6") -> tuple[str, int]:
    with factory() as db:
        user = make_user(db, address, usdc=usdc)
        node = make_node(db, OPERATOR, rate_per_minute=rate_per_minute)
        user_id, node_id = user.id, node.id
        manager = SessionLifecycleManager(db, InMemorySessionNotifier(), clock=lambda: START_TIME)
        return user_id, manager.start_session(user_id, node_id).id


def _sweeper(factory, seconds_later: int) -> StaleSessionSweeper:
    now = START_TIME + timedelta(seconds=seconds_later)
    return StaleSessionSweeper(
        factory,
        InMemorySessionNotifier(),
        clock=lambda: now,
        stale_after_seconds=300,
    )


def test_sweep_settles_stale_sessions(file_session_factory) -> None:
    """A session idle past the threshold is settled on the server clock."""
    user_id, session_id = _open_session(file_session_factory, "0x" + "44" * 20, usdc="100")

    report = _sweeper(file_session_factory, 600).sweep_once()

    assert report.settled == 1
    assert report.ended == 0
    with file_session_factory() as db:
        session = db.get(VpnSession, session_id)
        assert session.is_active
        assert session.total_duration == 600
        assert_money(session.total_cost, "6")


def test_sweep_ignores_recent_sessions(file_session_factory) -> None:
    _, session_id = _open_session(file_session_factory, "0x" + "55" * 20, usdc="100")

    report = _sweeper(file_session_factory, 60).sweep_once()

    assert report.settled == report.ended == 0
    with file_session_factory() as db:
        assert db.get(VpnSession, session_id).version == 0


def test_sweep_ends_sessions_that_exhaust_the_balance(file_session_factory) -> None:
    """Settling down to zero balance also ends the session."""
    user_id, session_id = _open_session(file_session_factory, "0x" + "66" * 20, usdc="1")

    report = _sweeper(file_session_factory, 900).sweep_once()

    assert report.settled == 1
    assert report.ended == 1
    with file_session_factory() as db:
        session = db.get(VpnSession, session_id)
        assert session.status == "ended"
        assert session.total_duration == 100
        assert_money(db.get(User, user_id).usdc_balance, "0")


@pytest.mark.asyncio
async def test_worker_does_not_start_when_disabled(monkeypatch) -> None:
    monkeypatch.setattr(settings, "sweep_enabled", False)
    worker = SettlementSweepWorker(sweeper=object())

    await worker.start()

    assert worker._task is None
    await worker.stop()


@pytest.mark.asyncio
async def test_worker_runs_and_stops(monkeypatch, mocker) -> None:
    monkeypatch.setattr(settings, "sweep_enabled", True)
    monkeypatch.setattr(settings, "sweep_interval_seconds", 1.0)
    sweeper = mocker.Mock()
    worker = SettlementSweepWorker(sweeper=sweeper)

    await worker.start()
    await asyncio.sleep(0.1)
    await worker.stop()

    sweeper.sweep_once.assert_called()
    assert worker._task is None

"""Background settlement of sessions whose clients stopped settling.

A client that disappears without calling settle or end leaves its session
open. The sweeper settles such sessions on the server clock and ends any
whose owner has run out of prepaid balance.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from x4pn_meter.core.errors import NotActiveError, NothingToSettleError, SettlementError
from x4pn_meter.core.settings import settings
from x4pn_meter.db.session import SessionLocal
from x4pn_meter.db.time import utcnow
from x4pn_meter.models import VpnSession
from x4pn_meter.services.notifications import SessionNotifier
from x4pn_meter.services.sessions import Clock, SessionLifecycleManager

logger = logging.getLogger(__name__)

__all__ = ["SettlementSweepWorker", "StaleSessionSweeper", "SweepReport"]


@dataclass
class SweepReport:
    """Counts from a single sweep pass."""

    settled: int = 0
    ended: int = 0
    skipped: int = 0
    failed: int = 0


class StaleSessionSweeper:
    """Settles sessions not settled within ``stale_after`` seconds."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        notifier: SessionNotifier | None = None,
        *,
        clock: Clock = utcnow,
        stale_after_seconds: int | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.notifier = notifier
        self.clock = clock
        self.stale_after = timedelta(
            seconds=stale_after_seconds
            if stale_after_seconds is not None
            else settings.sweep_stale_after_seconds
        )

    def _stale_sessions(self) -> list[tuple[int, str]]:
        cutoff = self.clock() - self.stale_after
        with self.session_factory() as db:
            rows = db.execute(
                select(VpnSession.id, VpnSession.user_id)
                .where(VpnSession.is_active.is_(True), VpnSession.last_settled_at <= cutoff)
                .order_by(VpnSession.id)
            ).all()
            db.rollback()
        return [(int(row.id), str(row.user_id)) for row in rows]

    def sweep_once(self) -> SweepReport:
        """Run one pass; each session is handled in its own transaction."""
        report = SweepReport()
        for session_id, user_id in self._stale_sessions():
            with self.session_factory() as db:
                manager = SessionLifecycleManager(db, self.notifier, clock=self.clock)
                try:
                    manager.settle_session(session_id, None)
                    report.settled += 1
                except NotActiveError:
                    report.skipped += 1
                    continue
                except NothingToSettleError:
                    report.skipped += 1
                except SettlementError as err:
                    report.failed += 1
                    logger.warning("Sweep could not settle session %s: %s", session_id, err.message)
                    continue

                owner = manager.ledger.get_user(user_id)
                exhausted = owner is not None and owner.usdc_balance <= 0
                db.rollback()
                if exhausted:
                    manager.end_session(session_id)
                    report.ended += 1
                    logger.info("Ended session %s: prepaid balance exhausted", session_id)

        if report.settled or report.ended or report.failed:
            logger.info(
                "Sweep settled=%d ended=%d skipped=%d failed=%d",
                report.settled,
                report.ended,
                report.skipped,
                report.failed,
            )
        return report


class SettlementSweepWorker:
    """Runs `StaleSessionSweeper.sweep_once` on an interval inside the event loop."""

    def __init__(self, sweeper: StaleSessionSweeper | None = None) -> None:
        self.sweeper = sweeper or StaleSessionSweeper()
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    async def start(self) -> None:
        """Start the background sweep loop."""
        if not settings.sweep_enabled:
            return

        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background sweep loop."""
        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        interval = max(1.0, float(settings.sweep_interval_seconds))

        while not self._stopping.is_set():
            try:
                await asyncio.to_thread(self.sweeper.sweep_once)
            except (OSError, ConnectionError, TimeoutError) as e:
                logger.warning("SettlementSweepWorker encountered database error: %s", e)
            except Exception as e:
                logger.error("SettlementSweepWorker failed: %s", e, exc_info=True)

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue

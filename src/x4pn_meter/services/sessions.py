"""Session lifecycle management: start, settle, end and failure.

The manager owns every state transition of a `VpnSession` and coordinates
the balance ledger and node earnings so that each transition commits as a
unit. Concurrency rules:

- at most one active session per user is enforced by a partial unique index,
  so two racing starts cannot both commit;
- settlement uses a compare-and-swap on ``VpnSession.version`` and retries a
  bounded number of times, so two racing settles never charge the same window;
- ending is a conditional update on ``is_active``, so only one caller ever
  decrements the node's active-user counter.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from x4pn_meter.core.errors import (
    AlreadyActiveError,
    ConcurrentModificationError,
    ForbiddenError,
    InsufficientBalanceError,
    InvalidSignatureError,
    NodeUnavailableError,
    NotActiveError,
    NotFoundError,
    NothingToSettleError,
    SettlementError,
    TransientSettlementError,
)
from x4pn_meter.core.settings import settings
from x4pn_meter.db.time import utcnow
from x4pn_meter.models import Node, VpnSession
from x4pn_meter.models.vpn_session import (
    SESSION_STATUS_ACTIVE,
    SESSION_STATUS_ENDED,
    SESSION_STATUS_FAILED,
)
from x4pn_meter.services.attestation import SettlementAttestation, verify_attestation
from x4pn_meter.services.billing import (
    Settlement,
    compute_settlement,
    rate_per_second_from_minute,
    to_decimal,
)
from x4pn_meter.services.ledger import BalanceLedger
from x4pn_meter.services.nodes import NodeEarningsAccumulator
from x4pn_meter.services.notifications import (
    SessionNotifier,
    SessionStartEvent,
    get_session_notifier,
)
from x4pn_meter.services.sequence import next_session_id

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_ZERO = Decimal("0")

__all__ = ["Clock", "SessionLifecycleManager", "start_event"]


def start_event(session: VpnSession) -> SessionStartEvent:
    """Return the node notification for a newly started session."""
    return SessionStartEvent(
        session_id=session.id,
        user_address=session.user_address,
        node_id=session.node_id,
    )


class SessionLifecycleManager:
    """Coordinates session state transitions against a single database session."""

    def __init__(
        self,
        db: Session,
        notifier: SessionNotifier | None = None,
        *,
        clock: Clock = utcnow,
        max_retries: int | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            db: SQLAlchemy session. The manager commits or rolls it back once
                per operation.
            notifier: Channel used to tell nodes about new sessions.
            clock: Source of "now"; injectable for deterministic tests.
            max_retries: Attempts for a conflicted settlement before giving up.
        """
        self.db = db
        self.notifier = notifier if notifier is not None else get_session_notifier()
        self.clock = clock
        self.max_retries = max(
            1, max_retries if max_retries is not None else settings.settlement_max_retries
        )
        self.ledger = BalanceLedger(db)
        self.earnings = NodeEarningsAccumulator(db)

    # --- Queries -------------------------------------------------------------------
    def get_session(self, session_id: int) -> VpnSession | None:
        """Return a session with its columns freshly loaded from the database."""
        return self.db.execute(
            select(VpnSession)
            .where(VpnSession.id == session_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_active_session(self, user_id: str) -> VpnSession | None:
        return self.db.execute(
            select(VpnSession)
            .where(VpnSession.user_id == user_id, VpnSession.is_active.is_(True))
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_active_session_for_address(self, wallet_address: str) -> VpnSession | None:
        return self.db.execute(
            select(VpnSession).where(
                func.lower(VpnSession.user_address) == wallet_address.strip().lower(),
                VpnSession.is_active.is_(True),
            )
        ).scalar_one_or_none()

    def list_sessions_for_address(self, wallet_address: str, limit: int = 100) -> Sequence[VpnSession]:
        """Return a user's sessions, most recently started first."""
        return self.db.execute(
            select(VpnSession)
            .where(func.lower(VpnSession.user_address) == wallet_address.strip().lower())
            .order_by(VpnSession.started_at.desc(), VpnSession.id.desc())
            .limit(limit)
        ).scalars().all()

    # --- Start ---------------------------------------------------------------------
    def start_session(self, user_id: str, node_id: str, *, notify: bool = True) -> VpnSession:
        """Open a metered session for `user_id` on `node_id`.

        With `notify` false the caller is responsible for passing
        `start_event(session)` to `notify_session_start`, typically after the
        response has been sent.

        Raises:
            AlreadyActiveError: The user already has an active session.
            NodeUnavailableError: The node does not exist, is inactive or bills
                a per-second rate that rounds to zero.
            NotFoundError: The user does not exist.
            InsufficientBalanceError: The prepaid balance is not positive.
        """
        try:
            session = self._create_session(user_id, node_id)
            self.db.commit()
        except IntegrityError as err:
            self.db.rollback()
            if self.get_active_session(user_id) is not None:
                self.db.rollback()
                raise AlreadyActiveError() from err
            raise
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Started session %s for %s on node %s at %s/s",
            session.id,
            session.user_address,
            session.node_id,
            session.rate_per_second,
        )
        if notify:
            self.notify_session_start(start_event(session))
        return session

    def _create_session(self, user_id: str, node_id: str) -> VpnSession:
        if self.get_active_session(user_id) is not None:
            raise AlreadyActiveError()

        node = self.db.execute(
            select(Node).where(Node.id == node_id).execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if node is None:
            raise NodeUnavailableError("Node not found")
        if not node.is_active:
            raise NodeUnavailableError("Node is not active")
        rate_per_second = rate_per_second_from_minute(node.rate_per_minute)
        if rate_per_second <= _ZERO:
            raise NodeUnavailableError("Node rate is too small to bill")

        user = self.ledger.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        if user.usdc_balance <= _ZERO:
            raise InsufficientBalanceError("Insufficient USDC balance")

        now = self.clock()
        session = VpnSession(
            id=next_session_id(self.db),
            user_id=user.id,
            node_id=node.id,
            user_address=user.wallet_address,
            node_address=node.operator_address,
            rate_per_second=rate_per_second,
            started_at=now,
            last_settled_at=now,
            total_cost=_ZERO,
            total_duration=0,
            x4pn_earned=_ZERO,
            is_active=True,
            status=SESSION_STATUS_ACTIVE,
            version=0,
        )
        self.db.add(session)
        # Flush now so the one-active-session index is checked before counters move.
        self.db.flush()
        self.earnings.increment_active_users(node.id)
        return session

    def notify_session_start(self, event: SessionStartEvent) -> None:
        """Publish a session start; failures are logged and never raised."""
        try:
            self.notifier.publish_session_start(event)
        except Exception as err:
            logger.warning(
                "Failed to notify node %s about session %s: %s",
                event.node_id,
                event.session_id,
                err,
                exc_info=True,
            )

    # --- Settle --------------------------------------------------------------------
    def settle_session(
        self,
        session_id: int,
        caller_user_id: str | None,
        attestation: SettlementAttestation | None = None,
    ) -> VpnSession:
        """Charge the session owner for time elapsed since the last settlement.

        Args:
            session_id: Session to settle.
            caller_user_id: Authenticated caller; must own the session. ``None``
                is reserved for trusted internal callers such as the sweeper.
            attestation: Optional owner-signed claim of cumulative cost and duration.

        Raises:
            NotFoundError, ForbiddenError, NotActiveError, InvalidSignatureError,
            NothingToSettleError: Precondition failures; nothing is applied.
            TransientSettlementError: Conflicts persisted across all retries.
        """
        for attempt in range(1, self.max_retries + 1):
            try:
                session, outcome = self._settle_once(session_id, caller_user_id, attestation)
                self.db.commit()
            except ConcurrentModificationError:
                self.db.rollback()
                logger.info(
                    "Settlement of session %s conflicted (attempt %d/%d)",
                    session_id,
                    attempt,
                    self.max_retries,
                )
                continue
            except Exception:
                self.db.rollback()
                raise

            logger.info(
                "Settled session %s: cost=%s reward=%s seconds=%d%s",
                session_id,
                outcome.cost,
                outcome.reward,
                outcome.seconds_paid,
                " (capped by balance)" if outcome.capped else "",
            )
            return session

        logger.error("Giving up on settlement of session %s after %d attempts", session_id, self.max_retries)
        raise TransientSettlementError()

    def _settle_once(
        self,
        session_id: int,
        caller_user_id: str | None,
        attestation: SettlementAttestation | None,
    ) -> tuple[VpnSession, Settlement]:
        session = self.get_session(session_id)
        if session is None:
            raise NotFoundError("Session not found")
        if caller_user_id is not None and session.user_id != caller_user_id:
            raise ForbiddenError()
        if not session.is_active:
            raise NotActiveError()

        if attestation is not None and not verify_attestation(
            session.id,
            attestation.claimed_cost,
            attestation.claimed_duration,
            attestation.signature,
            session.user_address,
        ):
            raise InvalidSignatureError()

        user = self.ledger.get_user(session.user_id)
        if user is None:
            raise NotFoundError("User not found")

        now = self.clock()
        outcome = compute_settlement(
            session.rate_per_second,
            session.last_settled_at,
            now,
            user.usdc_balance,
        )
        if outcome.cost <= _ZERO:
            if outcome.elapsed > 0:
                raise NothingToSettleError("Insufficient balance for settlement")
            raise NothingToSettleError()

        if attestation is not None:
            new_total = session.total_cost + outcome.cost
            if to_decimal(attestation.claimed_cost) < new_total:
                logger.warning(
                    "Session %s attested cost %s below settled total %s",
                    session.id,
                    attestation.claimed_cost,
                    new_total,
                )

        result = self.db.execute(
            update(VpnSession)
            .where(
                VpnSession.id == session.id,
                VpnSession.version == session.version,
                VpnSession.is_active.is_(True),
            )
            .values(
                total_cost=VpnSession.total_cost + outcome.cost,
                total_duration=VpnSession.total_duration + outcome.seconds_paid,
                x4pn_earned=VpnSession.x4pn_earned + outcome.reward,
                last_settled_at=now,
                version=VpnSession.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConcurrentModificationError()

        try:
            self.ledger.apply_delta(
                user.id,
                -outcome.cost,
                outcome.reward,
                spent_delta=outcome.cost,
                earned_delta=outcome.reward,
            )
        except InsufficientBalanceError as err:
            # The balance moved between our read and the debit; recompute.
            raise ConcurrentModificationError() from err

        self.earnings.apply_earnings(session.node_id, outcome.cost, outcome.reward)

        refreshed = self.get_session(session.id)
        if refreshed is None:  # pragma: no cover - row was just updated
            raise NotFoundError("Session not found")
        return refreshed, outcome

    # --- End -----------------------------------------------------------------------
    def end_session(self, session_id: int, caller_user_id: str | None = None) -> VpnSession:
        """Terminate a session without settling outstanding time.

        Ending an already terminated session returns it unchanged, so the
        node's active-user counter is decremented at most once.
        """
        try:
            session = self.get_session(session_id)
            if session is None:
                raise NotFoundError("Session not found")
            if caller_user_id is not None and session.user_id != caller_user_id:
                raise ForbiddenError()

            if session.is_active:
                self._terminate(session, SESSION_STATUS_ENDED)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        ended = self.get_session(session_id)
        self.db.commit()
        if ended is None:  # pragma: no cover - sessions are never deleted
            raise NotFoundError("Session not found")
        return ended

    def _terminate(self, session: VpnSession, status: str) -> bool:
        result = self.db.execute(
            update(VpnSession)
            .where(VpnSession.id == session.id, VpnSession.is_active.is_(True))
            .values(
                is_active=False,
                status=status,
                ended_at=self.clock(),
                version=VpnSession.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            # A concurrent end got there first.
            return False
        self.earnings.decrement_active_users(session.node_id)
        logger.info("Session %s %s (total cost %s)", session.id, status, session.total_cost)
        return True

    # --- Node failure --------------------------------------------------------------
    def deactivate_node(self, node_id: str) -> list[VpnSession]:
        """Mark a node inactive and fail every session still open on it.

        Outstanding time is not settled, matching `end_session`.

        Returns:
            The sessions that were moved to ``failed``.
        """
        try:
            node = self.db.get(Node, node_id)
            if node is None:
                raise NotFoundError("Node not found")
            node.is_active = False
            # Counter updates below reload the node row.
            self.db.flush()

            open_sessions = self.db.execute(
                select(VpnSession).where(
                    VpnSession.node_id == node_id,
                    VpnSession.is_active.is_(True),
                )
            ).scalars().all()
            failed_ids = [s.id for s in open_sessions if self._terminate(s, SESSION_STATUS_FAILED)]
            self.earnings.reset_active_users(node_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if failed_ids:
            logger.warning("Node %s deactivated; failed sessions %s", node_id, failed_ids)
        failed = [self.get_session(session_id) for session_id in failed_ids]
        self.db.commit()
        return [s for s in failed if s is not None]

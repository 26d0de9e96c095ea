"""Session metering endpoints: start, settle, end and lookups."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, status

from x4pn_meter.api.v1.dependencies import CurrentUserDep, LifecycleDep
from x4pn_meter.core.errors import ForbiddenError
from x4pn_meter.schemas.session import SessionEnd, SessionResponse, SessionSettle, SessionStart
from x4pn_meter.services.attestation import SettlementAttestation
from x4pn_meter.services.sessions import start_event

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get("/user/{address}", response_model=list[SessionResponse])
def list_user_sessions(address: str, lifecycle: LifecycleDep) -> list[SessionResponse]:
    """Return a wallet's sessions, most recent first."""
    sessions = lifecycle.list_sessions_for_address(address)
    return [SessionResponse.model_validate(s) for s in sessions]


@router.get("/active/{address}", response_model=SessionResponse | None)
def get_active_session(address: str, lifecycle: LifecycleDep) -> SessionResponse | None:
    """Return the wallet's active session, or null when there is none."""
    session = lifecycle.get_active_session_for_address(address)
    if session is None:
        return None
    return SessionResponse.model_validate(session)


@router.post(
    "/start",
    status_code=status.HTTP_201_CREATED,
    response_model=SessionResponse,
)
def start_session(
    payload: SessionStart,
    current_user: CurrentUserDep,
    lifecycle: LifecycleDep,
    background_tasks: BackgroundTasks,
) -> SessionResponse:
    """Open a metered session on a node for the caller.

    The node is notified after the response is sent.
    """
    if payload.user_address is not None and payload.user_address != current_user.wallet_address:
        raise ForbiddenError("Sessions can only be started for the authenticated wallet")

    session = lifecycle.start_session(current_user.id, payload.node_id, notify=False)
    background_tasks.add_task(lifecycle.notify_session_start, start_event(session))
    return SessionResponse.model_validate(session)


@router.post("/settle", response_model=SessionResponse)
def settle_session(
    payload: SessionSettle,
    current_user: CurrentUserDep,
    lifecycle: LifecycleDep,
) -> SessionResponse:
    """Charge the caller for time elapsed since the last settlement."""
    attestation = None
    if payload.signature is not None:
        attestation = SettlementAttestation(
            claimed_cost=payload.claimed_cost,
            claimed_duration=payload.claimed_duration,
            signature=payload.signature,
        )
    session = lifecycle.settle_session(payload.session_id, current_user.id, attestation)
    return SessionResponse.model_validate(session)


@router.post("/end", response_model=SessionResponse)
def end_session(
    payload: SessionEnd,
    current_user: CurrentUserDep,
    lifecycle: LifecycleDep,
) -> SessionResponse:
    """Terminate a session; ending twice returns the terminal state."""
    session = lifecycle.end_session(payload.session_id, current_user.id)
    return SessionResponse.model_validate(session)

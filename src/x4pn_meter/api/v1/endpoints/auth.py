# src/x4pn_meter/api/v1/endpoints/auth.py
"""Wallet authentication endpoints for the X4PN API."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from fastapi import APIRouter, HTTPException, status
from jose import jwt

from x4pn_meter.api.v1.dependencies import CurrentUserDep, SessionDep
from x4pn_meter.core.settings import settings
from x4pn_meter.schemas.user import LoginRequest, LoginResponse, NonceResponse, UserResponse
from x4pn_meter.services.ledger import BalanceLedger
from x4pn_meter.services.wallet_auth import consume_login_nonce, issue_login_nonce

router = APIRouter(prefix="/auth", tags=["authentication"])


def create_access_token(subject: str, extra_claims: dict[str, str] | None = None) -> str:
    """Create JWT access token for a wallet address."""
    to_encode: dict[str, object] = {"sub": subject}
    if extra_claims:
        to_encode.update(extra_claims)
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode["exp"] = expire
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


@router.get(
    "/nonce/{address}",
    summary="Issue a login challenge for a wallet",
    response_model=NonceResponse,
)
def issue_nonce(address: str, db: SessionDep) -> NonceResponse:
    """Return the message the wallet must sign to log in."""
    try:
        challenge = issue_login_nonce(db, address)
    except ValueError as err:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(err),
        ) from err
    db.commit()
    return NonceResponse.model_validate(challenge)


@router.post(
    "/login",
    summary="Authenticate with a signed wallet challenge",
    status_code=status.HTTP_200_OK,
    response_model=LoginResponse,
)
def login_user(payload: LoginRequest, db: SessionDep) -> LoginResponse:
    """Verify the signed challenge, provision the user and issue a token."""
    address = consume_login_nonce(db, payload.wallet_address, payload.signature)
    BalanceLedger(db).get_or_create_user(address)
    db.commit()

    return LoginResponse(
        access_token=create_access_token(address),
        token_type="bearer",
        wallet_address=address,
    )


@router.get("/me", response_model=UserResponse)
def read_me(current_user: CurrentUserDep) -> UserResponse:
    """Return the authenticated user with balances."""
    return UserResponse.model_validate(current_user)

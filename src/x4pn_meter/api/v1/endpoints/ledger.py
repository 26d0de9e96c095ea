"""Deposit, withdrawal and transaction history endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from x4pn_meter.api.v1.dependencies import CurrentUserDep, SessionDep
from x4pn_meter.schemas.ledger import (
    DepositRequest,
    LedgerOperationResponse,
    TransactionResponse,
    WithdrawalRequest,
)
from x4pn_meter.schemas.user import UserResponse
from x4pn_meter.services.ledger import BalanceLedger

router = APIRouter(tags=["ledger"])


@router.post(
    "/deposits",
    status_code=status.HTTP_201_CREATED,
    response_model=LedgerOperationResponse,
)
def create_deposit(
    payload: DepositRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> LedgerOperationResponse:
    """Credit the caller's prepaid USDC balance."""
    try:
        user, record = BalanceLedger(db).deposit(current_user, payload.amount)
    except ValueError as err:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(err),
        ) from err
    db.commit()
    return LedgerOperationResponse(
        user=UserResponse.model_validate(user),
        transaction=TransactionResponse.model_validate(record),
    )


@router.post(
    "/withdrawals",
    status_code=status.HTTP_201_CREATED,
    response_model=LedgerOperationResponse,
)
def create_withdrawal(
    payload: WithdrawalRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> LedgerOperationResponse:
    """Debit the caller's USDC or X4PN balance."""
    try:
        user, record = BalanceLedger(db).withdraw(current_user, payload.amount, payload.token)
    except ValueError as err:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(err),
        ) from err
    db.commit()
    return LedgerOperationResponse(
        user=UserResponse.model_validate(user),
        transaction=TransactionResponse.model_validate(record),
    )


@router.get("/transactions/me", response_model=list[TransactionResponse])
def list_my_transactions(
    current_user: CurrentUserDep,
    db: SessionDep,
    limit: int = 100,
) -> list[TransactionResponse]:
    """Return the caller's deposits and withdrawals, newest first."""
    records = BalanceLedger(db).list_transactions(current_user.id, limit=max(1, min(limit, 500)))
    return [TransactionResponse.model_validate(record) for record in records]

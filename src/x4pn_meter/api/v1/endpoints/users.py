"""User lookup endpoints."""

from fastapi import APIRouter, HTTPException, status

from x4pn_meter.api.v1.dependencies import SessionDep
from x4pn_meter.schemas.user import UserResponse
from x4pn_meter.services.ledger import BalanceLedger

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/{address}", response_model=UserResponse)
def get_or_create_user(address: str, db: SessionDep) -> UserResponse:
    """Return the user for a wallet address, creating it on first sight."""
    try:
        user = BalanceLedger(db).get_or_create_user(address)
    except ValueError as err:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(err),
        ) from err
    db.commit()
    return UserResponse.model_validate(user)

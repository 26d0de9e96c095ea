"""Deposit, withdrawal and transaction history schemas."""

import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .user import UserResponse


class DepositRequest(BaseModel):
    """Credit the caller's prepaid USDC balance."""

    amount: Decimal = Field(..., gt=0, description="USDC amount to credit")

    model_config = ConfigDict(extra="forbid")


class WithdrawalRequest(BaseModel):
    """Debit one of the caller's balances."""

    amount: Decimal = Field(..., gt=0, description="Amount to withdraw")
    token: Literal["usdc", "x4pn"] = Field(..., description="Balance to withdraw from")

    model_config = ConfigDict(extra="forbid")

    @field_validator("token", mode="before")
    @classmethod
    def lower_token(cls, v: object) -> object:
        """Accept token kinds in any case (``USDC`` or ``usdc``)."""
        return v.lower() if isinstance(v, str) else v


class TransactionResponse(BaseModel):
    """A recorded deposit or withdrawal."""

    id: str
    type: str
    amount: Decimal
    token: str
    tx_hash: str | None
    status: str
    created_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)


class LedgerOperationResponse(BaseModel):
    """Updated balances together with the transaction that changed them."""

    user: UserResponse
    transaction: TransactionResponse

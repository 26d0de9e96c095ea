"""User and wallet-authentication Pydantic schemas."""

import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from .common import WalletAddress


class NonceResponse(BaseModel):
    """Login challenge the wallet must sign."""

    wallet_address: str = Field(..., description="Normalized wallet address")
    message: str = Field(..., description="Exact text to sign with personal_sign")
    expires_at: datetime.datetime = Field(..., description="Challenge expiry (UTC)")

    model_config = ConfigDict(from_attributes=True)


class LoginRequest(BaseModel):
    """Schema for wallet login submissions."""

    wallet_address: WalletAddress
    signature: str = Field(..., min_length=2, description="Hex signature over the issued challenge")

    model_config = ConfigDict(extra="forbid")


class LoginResponse(BaseModel):
    """Response returned after successful login."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(..., description="Token type (typically 'bearer')")
    wallet_address: str = Field(..., description="Authenticated wallet address")


class UserResponse(BaseModel):
    """Wallet user with balances."""

    id: str
    wallet_address: str
    usdc_balance: Decimal
    x4pn_balance: Decimal
    total_spent: Decimal
    total_earned_x4pn: Decimal
    created_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)

"""Shared Pydantic schemas for common API elements."""
from __future__ import annotations

from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field

from x4pn_meter.core.security import normalize_address

# Wallet address accepted in any case and normalized to lower-case.
WalletAddress = Annotated[str, AfterValidator(normalize_address)]


class ErrorResponse(BaseModel):
    """Body returned for domain errors raised by the service layer."""

    error: str = Field(..., description="Stable machine-readable error code")
    detail: str = Field(..., description="Human readable explanation")


class HealthResponse(BaseModel):
    """Liveness probe response."""

    status: str = Field(..., description="Service status")

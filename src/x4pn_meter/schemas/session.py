"""VPN session lifecycle schemas."""

import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .common import WalletAddress


class SessionStart(BaseModel):
    """Open a session on a node for the authenticated caller."""

    node_id: str = Field(..., min_length=1)
    user_address: WalletAddress | None = Field(
        None, description="Optional; must match the authenticated wallet when given"
    )

    model_config = ConfigDict(extra="forbid")


class SessionSettle(BaseModel):
    """Settle elapsed time, optionally with an owner-signed attestation.

    A signature must be accompanied by both claims, and claims are only
    accepted together with a signature.
    """

    session_id: int = Field(..., ge=1)
    signature: str | None = Field(None, min_length=2)
    claimed_cost: Decimal | None = Field(None, ge=0)
    claimed_duration: int | None = Field(None, ge=0)

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def check_attestation_fields(self) -> "SessionSettle":
        """Require signature and claims to be supplied together."""
        provided = (
            self.signature is not None,
            self.claimed_cost is not None,
            self.claimed_duration is not None,
        )
        if any(provided) and not all(provided):
            raise ValueError("signature, claimed_cost and claimed_duration must be sent together")
        return self


class SessionEnd(BaseModel):
    """Terminate a session."""

    session_id: int = Field(..., ge=1)

    model_config = ConfigDict(extra="forbid")


class SessionResponse(BaseModel):
    """Current state of a metered session."""

    id: int
    user_id: str
    node_id: str
    user_address: str
    node_address: str
    rate_per_second: Decimal
    started_at: datetime.datetime
    last_settled_at: datetime.datetime
    ended_at: datetime.datetime | None
    total_cost: Decimal
    total_duration: int
    x4pn_earned: Decimal
    is_active: bool
    status: str

    model_config = ConfigDict(from_attributes=True)

"""Node registration and marketplace schemas."""

import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from x4pn_meter.models.node import DEFAULT_WIREGUARD_PORT
from x4pn_meter.services.billing import rate_per_second_from_minute


class NodeRegister(BaseModel):
    """Schema for registering a node; the operator is the authenticated caller."""

    name: str = Field(..., min_length=1, max_length=120)
    location: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    country_code: str = Field(..., min_length=2, max_length=8)
    ip_address: str = Field(..., min_length=1)
    port: int = Field(DEFAULT_WIREGUARD_PORT, ge=1, le=65535)
    rate_per_minute: Decimal = Field(..., gt=0, description="USDC charged per minute")

    model_config = ConfigDict(extra="forbid")

    @field_validator("rate_per_minute")
    @classmethod
    def billable_rate(cls, v: Decimal) -> Decimal:
        """Reject rates whose per-second snapshot would round to zero."""
        if rate_per_second_from_minute(v) <= 0:
            raise ValueError("rate_per_minute is too small to bill per second")
        return v


class NodeUpdate(BaseModel):
    """Partial update of node metadata.

    The rate is fixed at registration and cannot be changed here.
    """

    name: str | None = Field(None, min_length=1, max_length=120)
    location: str | None = Field(None, min_length=1)
    country: str | None = Field(None, min_length=1)
    country_code: str | None = Field(None, min_length=2, max_length=8)
    ip_address: str | None = Field(None, min_length=1)
    port: int | None = Field(None, ge=1, le=65535)
    is_active: bool | None = None
    uptime: float | None = Field(None, ge=0, le=100)
    latency: int | None = Field(None, ge=0)

    model_config = ConfigDict(extra="forbid")


class NodeResponse(BaseModel):
    """Public view of a node."""

    id: str
    operator_address: str
    name: str
    location: str
    country: str
    country_code: str
    ip_address: str
    port: int
    rate_per_minute: Decimal
    is_active: bool
    total_earned_usdc: Decimal
    total_earned_x4pn: Decimal
    active_users: int
    uptime: float
    latency: int
    created_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)


class NetworkStats(BaseModel):
    """Marketplace-wide counters."""

    total_nodes: int
    active_nodes: int
    total_users: int
    avg_latency: int

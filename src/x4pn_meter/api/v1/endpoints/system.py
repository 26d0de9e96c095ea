"""System and marketplace statistics endpoints for the X4PN API."""

from __future__ import annotations

from fastapi import APIRouter

from x4pn_meter.api.v1.dependencies import SessionDep
from x4pn_meter.core.settings import settings
from x4pn_meter.schemas.common import HealthResponse
from x4pn_meter.schemas.node import NetworkStats
from x4pn_meter.services.nodes import NodeRegistry

router = APIRouter(tags=["system"])


@router.get("/stats", response_model=NetworkStats)
def get_network_stats(db: SessionDep) -> NetworkStats:
    """Return node totals across the marketplace."""
    return NetworkStats(**NodeRegistry(db).stats())


@router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Liveness probe for the versioned API."""
    return HealthResponse(status="ok")


@router.get("/config")
def get_public_config() -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration.

    Excludes secrets and connection strings.
    """
    return {
        "app": {
            "name": settings.app_name,
            "version": settings.app_version,
            "jwt_algorithm": settings.jwt_algorithm,
            "access_token_expire_minutes": settings.access_token_expire_minutes,
        },
        "settlement": {
            "attestation_domain": settings.attestation_domain,
            "max_retries": settings.settlement_max_retries,
            "login_message_prefix": settings.login_message_prefix,
        },
        "sweep": {
            "enabled": settings.sweep_enabled,
            "interval_seconds": settings.sweep_interval_seconds,
            "stale_after_seconds": settings.sweep_stale_after_seconds,
        },
    }

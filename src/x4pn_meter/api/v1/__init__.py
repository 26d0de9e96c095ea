# src/x4pn_meter/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    auth_router,
    ledger_router,
    nodes_router,
    sessions_router,
    system_router,
    users_router,
)

__all__ = [
    "auth_router",
    "ledger_router",
    "nodes_router",
    "sessions_router",
    "system_router",
    "users_router",
]

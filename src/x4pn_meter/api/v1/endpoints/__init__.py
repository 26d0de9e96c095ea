# src/x4pn_meter/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .auth import router as auth_router
from .ledger import router as ledger_router
from .nodes import router as nodes_router
from .sessions import router as sessions_router
from .system import router as system_router
from .users import router as users_router

__all__ = [
    "auth_router",
    "ledger_router",
    "nodes_router",
    "sessions_router",
    "system_router",
    "users_router",
]

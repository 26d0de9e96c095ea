# src/x4pn_meter/models/__init__.py
"""SQLAlchemy models for the X4PN metering service."""

from .node import Node
from .replay_protection import LoginNonce
from .system import SessionSequence
from .transaction import LedgerTransaction
from .user import User
from .vpn_session import VpnSession

__all__ = [
    "LedgerTransaction",
    "LoginNonce",
    "Node",
    "SessionSequence",
    "User",
    "VpnSession",
]

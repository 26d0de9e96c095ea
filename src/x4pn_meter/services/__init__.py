# src/x4pn_meter/services/__init__.py
"""Business logic services for the X4PN metering service."""

from .billing import Settlement, compute_settlement
from .ledger import BalanceLedger
from .nodes import NodeEarningsAccumulator, NodeRegistry
from .notifications import InMemorySessionNotifier, RedisSessionNotifier, get_session_notifier
from .sessions import SessionLifecycleManager

__all__ = [
    "BalanceLedger",
    "InMemorySessionNotifier",
    "NodeEarningsAccumulator",
    "NodeRegistry",
    "RedisSessionNotifier",
    "SessionLifecycleManager",
    "Settlement",
    "compute_settlement",
    "get_session_notifier",
]

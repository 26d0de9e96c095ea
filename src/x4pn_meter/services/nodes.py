"""Node registry and operator-side earnings accumulation."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Sequence

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session

from x4pn_meter.core.errors import NodeUnavailableError, NotFoundError
from x4pn_meter.core.security import normalize_address
from x4pn_meter.models import Node
from x4pn_meter.services.billing import Amount, rate_per_second_from_minute, to_decimal

logger = logging.getLogger(__name__)

# Fields an operator may change after registration; rate_per_minute is fixed.
MUTABLE_NODE_FIELDS = frozenset(
    {"name", "location", "country", "country_code", "ip_address", "port", "is_active", "uptime", "latency"}
)

__all__ = [
    "MUTABLE_NODE_FIELDS",
    "NodeEarningsAccumulator",
    "NodeRegistry",
]


class NodeEarningsAccumulator:
    """Atomic counter updates on `Node` rows, mirroring each settlement."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _reload(self, node_id: str) -> Node:
        node = self.db.execute(
            select(Node).where(Node.id == node_id).execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if node is None:
            raise NotFoundError("Node not found")
        return node

    def _execute(self, node_id: str, *criteria: Any, **values: Any) -> Node:
        result = self.db.execute(
            update(Node)
            .where(Node.id == node_id, *criteria)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError("Node not found")
        return self._reload(node_id)

    def apply_earnings(self, node_id: str, usdc_delta: Amount, x4pn_delta: Amount) -> Node:
        """Credit a node's cumulative earnings."""
        return self._execute(
            node_id,
            total_earned_usdc=Node.total_earned_usdc + to_decimal(usdc_delta),
            total_earned_x4pn=Node.total_earned_x4pn + to_decimal(x4pn_delta),
        )

    def increment_active_users(self, node_id: str) -> Node:
        """Count a new session on an active node.

        The row is matched on `is_active` so a start racing a deactivation
        cannot attach to a node that has already gone offline.

        Raises:
            NodeUnavailableError: If the node is no longer active.
        """
        try:
            return self._execute(node_id, Node.is_active.is_(True), active_users=Node.active_users + 1)
        except NotFoundError:
            if self.db.get(Node, node_id) is None:
                raise
            raise NodeUnavailableError("Node is not active") from None

    def decrement_active_users(self, node_id: str) -> Node:
        """Decrement the active-user counter, never going below zero."""
        return self._execute(
            node_id,
            active_users=case((Node.active_users > 0, Node.active_users - 1), else_=0),
        )

    def reset_active_users(self, node_id: str) -> Node:
        return self._execute(node_id, active_users=0)


class NodeRegistry:
    """Registration, lookup and metadata updates for nodes."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, node_id: str) -> Node | None:
        return self.db.get(Node, node_id)

    def list_all(self) -> Sequence[Node]:
        return self.db.execute(select(Node).order_by(Node.created_at)).scalars().all()

    def list_active(self) -> Sequence[Node]:
        return self.db.execute(
            select(Node).where(Node.is_active.is_(True)).order_by(Node.created_at)
        ).scalars().all()

    def list_by_operator(self, operator_address: str) -> Sequence[Node]:
        """Return an operator's nodes, matching the address case-insensitively."""
        return self.db.execute(
            select(Node)
            .where(func.lower(Node.operator_address) == operator_address.strip().lower())
            .order_by(Node.created_at)
        ).scalars().all()

    def register(self, operator_address: str, **fields: Any) -> Node:
        """Register a new active node for `operator_address`.

        Raises:
            ValueError: If the operator address or rate is invalid.
        """
        rate = to_decimal(fields.pop("rate_per_minute"))
        if rate <= 0:
            raise ValueError("rate_per_minute must be positive")
        if rate_per_second_from_minute(rate) <= 0:
            raise ValueError("rate_per_minute is too small to bill per second")

        node = Node(
            operator_address=normalize_address(operator_address),
            rate_per_minute=rate,
            is_active=True,
            total_earned_usdc=Decimal("0"),
            total_earned_x4pn=Decimal("0"),
            active_users=0,
            **fields,
        )
        self.db.add(node)
        self.db.flush()
        logger.info("Registered node %s (%s) for operator %s", node.id, node.name, node.operator_address)
        return node

    def update(self, node: Node, changes: dict[str, Any]) -> Node:
        """Apply metadata changes to `node`.

        Raises:
            ValueError: If a change targets a field that is fixed at registration.
        """
        forbidden = set(changes) - MUTABLE_NODE_FIELDS
        if forbidden:
            raise ValueError(f"Fields cannot be updated: {', '.join(sorted(forbidden))}")
        for key, value in changes.items():
            setattr(node, key, value)
        self.db.flush()
        return node

    def stats(self) -> dict[str, int]:
        """Return marketplace-wide node counters."""
        nodes = self.list_all()
        total_latency = sum(int(n.latency) for n in nodes)
        return {
            "total_nodes": len(nodes),
            "active_nodes": sum(1 for n in nodes if n.is_active),
            "total_users": sum(int(n.active_users) for n in nodes),
            "avg_latency": round(total_latency / len(nodes)) if nodes else 0,
        }

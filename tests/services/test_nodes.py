# mypy: ignore-errors
import pytest

from conftest import make_node
from x4pn_meter.core.errors import NodeUnavailableError, NotFoundError
from x4pn_meter.services.nodes import NodeEarningsAccumulator, NodeRegistry

OPERATOR = "0x" + "77" * 20

NODE_FIELDS = {
    "name": "Oslo-1",
    "location": "Oslo",
    "country": "Norway",
    "country_code": "NO",
    "ip_address": "192.0.2.44",
    "port": 51820,
}


def test_register_creates_active_node(db_session) -> None:
    node = NodeRegistry(db_session).register("0x" + "77" * 20, rate_per_minute="0.6", **NODE_FIELDS)

    assert node.operator_address == OPERATOR
    assert node.is_active
    assert node.active_users == 0


@pytest.mark.parametrize("rate", ["0", "-1", "0.00000000000001"])
def test_register_rejects_unbillable_rates(db_session, rate) -> None:
    """Rates must survive the per-second snapshot as a positive amount."""
    with pytest.raises(ValueError):
        NodeRegistry(db_session).register(OPERATOR, rate_per_minute=rate, **NODE_FIELDS)


def test_update_refuses_rate_change(db_session) -> None:
    node = make_node(db_session, OPERATOR)

    with pytest.raises(ValueError, match="rate_per_minute"):
        NodeRegistry(db_session).update(node, {"rate_per_minute": "9"})


def test_increment_refuses_inactive_node(db_session) -> None:
    node = make_node(db_session, OPERATOR, is_active=False)

    with pytest.raises(NodeUnavailableError):
        NodeEarningsAccumulator(db_session).increment_active_users(node.id)

    db_session.refresh(node)
    assert node.active_users == 0


def test_increment_unknown_node(db_session) -> None:
    with pytest.raises(NotFoundError):
        NodeEarningsAccumulator(db_session).increment_active_users("missing")


def test_decrement_is_floored(db_session) -> None:
    node = make_node(db_session, OPERATOR)
    earnings = NodeEarningsAccumulator(db_session)

    earnings.increment_active_users(node.id)
    earnings.decrement_active_users(node.id)

    assert earnings.decrement_active_users(node.id).active_users == 0

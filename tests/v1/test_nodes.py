"""Tests for node marketplace endpoints."""

from typing import Any

from fastapi import status
from fastapi.testclient import TestClient

from conftest import assert_money, make_node

NODE_PAYLOAD = {
    "name": "Tokyo-1",
    "location": "Tokyo",
    "country": "Japan",
    "country_code": "JP",
    "ip_address": "198.51.100.7",
    "rate_per_minute": "0.002",
}


def test_register_node_for_caller(
    client: TestClient, operator_auth_token: dict[str, str], operator_wallet: Any
) -> None:
    """The authenticated wallet becomes the node operator."""
    r = client.post("/api/v1/nodes/register", json=NODE_PAYLOAD, headers=operator_auth_token)

    assert r.status_code == status.HTTP_201_CREATED, r.text
    body = r.json()
    assert body["operator_address"] == operator_wallet.address.lower()
    assert body["port"] == 51820
    assert body["is_active"] is True
    assert body["active_users"] == 0
    assert_money(body["rate_per_minute"], "0.002")


def test_register_requires_positive_rate(client: TestClient, operator_auth_token: dict[str, str]) -> None:
    r = client.post(
        "/api/v1/nodes/register",
        json={**NODE_PAYLOAD, "rate_per_minute": "0"},
        headers=operator_auth_token,
    )
    assert r.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_register_rejects_rate_below_billing_precision(
    client: TestClient, operator_auth_token: dict[str, str]
) -> None:
    r = client.post(
        "/api/v1/nodes/register",
        json={**NODE_PAYLOAD, "rate_per_minute": "0.00000000000001"},
        headers=operator_auth_token,
    )

    assert r.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert client.get("/api/v1/nodes").json() == []


def test_register_requires_authentication(client: TestClient) -> None:
    r = client.post("/api/v1/nodes/register", json=NODE_PAYLOAD)
    assert r.status_code in {status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN}


def test_list_and_get_nodes(
    client: TestClient, db_session: Any, test_node: Any, operator_wallet: Any
) -> None:
    offline = make_node(db_session, operator_wallet.address, name="Offline-1", is_active=False)

    listed = client.get("/api/v1/nodes")
    by_operator = client.get(f"/api/v1/nodes/operator/{operator_wallet.address}")
    single = client.get(f"/api/v1/nodes/{test_node.id}")

    assert [n["id"] for n in listed.json()] == [test_node.id]
    assert {n["id"] for n in by_operator.json()} == {test_node.id, offline.id}
    assert single.status_code == status.HTTP_200_OK
    assert single.json()["name"] == "Frankfurt-1"


def test_get_unknown_node(client: TestClient) -> None:
    r = client.get("/api/v1/nodes/does-not-exist")
    assert r.status_code == status.HTTP_404_NOT_FOUND


def test_operator_updates_metadata(
    client: TestClient, operator_auth_token: dict[str, str], test_node: Any
) -> None:
    r = client.patch(
        f"/api/v1/nodes/{test_node.id}",
        json={"latency": 42, "uptime": 99.5},
        headers=operator_auth_token,
    )

    assert r.status_code == status.HTTP_200_OK
    assert r.json()["latency"] == 42
    assert r.json()["uptime"] == 99.5


def test_rate_cannot_be_changed(
    client: TestClient, operator_auth_token: dict[str, str], test_node: Any
) -> None:
    r = client.patch(
        f"/api/v1/nodes/{test_node.id}",
        json={"rate_per_minute": "5"},
        headers=operator_auth_token,
    )
    assert r.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_only_operator_may_update(
    client: TestClient, auth_token: dict[str, str], test_node: Any
) -> None:
    r = client.patch(f"/api/v1/nodes/{test_node.id}", json={"latency": 1}, headers=auth_token)

    assert r.status_code == status.HTTP_403_FORBIDDEN
    assert r.json()["error"] == "forbidden"


def test_update_unknown_node(client: TestClient, operator_auth_token: dict[str, str]) -> None:
    r = client.patch("/api/v1/nodes/missing", json={"latency": 1}, headers=operator_auth_token)
    assert r.status_code == status.HTTP_404_NOT_FOUND


def test_deactivation_fails_open_sessions(
    client: TestClient,
    auth_token: dict[str, str],
    operator_auth_token: dict[str, str],
    test_node: Any,
    wallet: Any,
) -> None:
    """Taking a node offline closes its sessions as failed."""
    started = client.post("/api/v1/sessions/start", json={"node_id": test_node.id}, headers=auth_token)
    assert started.status_code == status.HTTP_201_CREATED

    r = client.patch(
        f"/api/v1/nodes/{test_node.id}",
        json={"is_active": False},
        headers=operator_auth_token,
    )

    assert r.status_code == status.HTTP_200_OK
    assert r.json()["is_active"] is False
    assert r.json()["active_users"] == 0
    assert client.get(f"/api/v1/sessions/active/{wallet.address}").json() is None
    history = client.get(f"/api/v1/sessions/user/{wallet.address}").json()
    assert history[0]["status"] == "failed"
    assert client.get("/api/v1/nodes").json() == []


def test_reactivation(
    client: TestClient, operator_auth_token: dict[str, str], db_session: Any, operator_wallet: Any
) -> None:
    node = make_node(db_session, operator_wallet.address, is_active=False)

    r = client.patch(f"/api/v1/nodes/{node.id}", json={"is_active": True}, headers=operator_auth_token)

    assert r.status_code == status.HTTP_200_OK
    assert r.json()["is_active"] is True

"""Tests for system and statistics endpoints."""

from typing import Any

from fastapi import status
from fastapi.testclient import TestClient

from conftest import make_node


def test_stats(client: TestClient, db_session: Any, test_node: Any, operator_wallet: Any) -> None:
    make_node(db_session, operator_wallet.address, name="Offline-1", is_active=False)

    r = client.get("/api/v1/stats")

    assert r.status_code == status.HTTP_200_OK
    assert r.json() == {"total_nodes": 2, "active_nodes": 1, "total_users": 0, "avg_latency": 50}


def test_stats_counts_connected_users(
    client: TestClient, auth_token: dict[str, str], test_node: Any
) -> None:
    client.post("/api/v1/sessions/start", json={"node_id": test_node.id}, headers=auth_token)

    assert client.get("/api/v1/stats").json()["total_users"] == 1


def test_health(client: TestClient) -> None:
    r = client.get("/api/v1/health")

    assert r.status_code == status.HTTP_200_OK
    assert r.json() == {"status": "ok"}


def test_config_hides_secrets(client: TestClient) -> None:
    r = client.get("/api/v1/config")

    assert r.status_code == status.HTTP_200_OK
    body = r.json()
    assert set(body) == {"app", "settlement", "sweep"}
    assert "secret_key" not in str(body)
    assert "database_url" not in str(body)

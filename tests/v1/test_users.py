"""Tests for user lookup endpoints."""

from typing import Any

from fastapi import status
from fastapi.testclient import TestClient

from conftest import assert_money


def test_unknown_wallet_is_provisioned(client: TestClient) -> None:
    address = "0x" + "AB" * 20

    first = client.get(f"/api/v1/users/{address}")
    second = client.get(f"/api/v1/users/{address.lower()}")

    assert first.status_code == status.HTTP_200_OK
    assert first.json()["wallet_address"] == address.lower()
    assert second.json()["id"] == first.json()["id"]


def test_existing_user_balances(client: TestClient, test_user: Any) -> None:
    r = client.get(f"/api/v1/users/{test_user.wallet_address}")

    assert r.status_code == status.HTTP_200_OK
    assert_money(r.json()["usdc_balance"], "100")
    assert_money(r.json()["total_spent"], "0")


def test_invalid_address(client: TestClient) -> None:
    r = client.get("/api/v1/users/0x1234")
    assert r.status_code == status.HTTP_400_BAD_REQUEST

# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Generator, Iterator
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-x4pn-meter")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("NOTIFICATION_BACKEND", "memory")

from x4pn_meter.api.v1.dependencies import get_lifecycle_manager, get_notifier  # noqa: E402
from x4pn_meter.api.v1.endpoints.auth import create_access_token  # noqa: E402
from x4pn_meter.db.session import Base, build_engine, enable_sqlite_transactions  # noqa: E402
from x4pn_meter.db.session import get_db as app_get_session  # noqa: E402
from x4pn_meter.main import app as fastapi_app  # noqa: E402
from x4pn_meter.models import Node, User  # noqa: E402
from x4pn_meter.services.notifications import InMemorySessionNotifier  # noqa: E402
from x4pn_meter.services.sessions import SessionLifecycleManager  # noqa: E402

TEST_DB_URL = "sqlite://"
START_TIME = datetime(2025, 1, 1, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Deterministic, manually advanced replacement for `utcnow`."""

    def __init__(self, start: datetime = START_TIME) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


def assert_money(actual: Any, expected: str | Decimal, tolerance: str = "1e-9") -> None:
    """Compare monetary values allowing for SQLite's float storage."""
    assert abs(Decimal(str(actual)) - Decimal(str(expected))) <= Decimal(tolerance), (
        f"{actual} != {expected}"
    )


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_transactions(engine, immediate=False)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    """Session whose commits and rollbacks only touch a savepoint of an outer transaction."""
    connection = engine.connect()
    transaction = connection.begin()
    session = Session(
        bind=connection,
        autoflush=False,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )
    try:
        yield session
    finally:
        session.close()
        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits escaped.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def file_session_factory(tmp_path: Any) -> Iterator[sessionmaker[Session]]:
    """Sessions on a file-backed SQLite database configured like production.

    Each session gets its own connection, so threads contend on real locks.
    """
    file_engine = build_engine(f"sqlite:///{tmp_path / 'x4pn-test.db'}")
    Base.metadata.create_all(bind=file_engine)
    try:
        yield sessionmaker(bind=file_engine, autoflush=False)
    finally:
        file_engine.dispose()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def notifier() -> InMemorySessionNotifier:
    return InMemorySessionNotifier()


@pytest.fixture()
def lifecycle(
    db_session: Session, notifier: InMemorySessionNotifier, clock: FakeClock
) -> SessionLifecycleManager:
    return SessionLifecycleManager(db_session, notifier, clock=clock)


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    notifier: InMemorySessionNotifier,
    clock: FakeClock,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    def _get_lifecycle_override() -> SessionLifecycleManager:
        return SessionLifecycleManager(db_session, notifier, clock=clock)

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_lifecycle_manager] = _get_lifecycle_override
    try:
        yield
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def wallet() -> Any:
    """Return a fresh local EVM account."""
    return Account.create()


@pytest.fixture()
def other_wallet() -> Any:
    return Account.create()


def sign_text(account: Any, text: str) -> str:
    """Produce a personal_sign signature over `text`."""
    signed = account.sign_message(encode_defunct(text=text))
    return signed.signature.hex()


def make_user(db: Session, address: str, usdc: str = "100", x4pn: str = "0") -> User:
    user = User(
        wallet_address=address.lower(),
        usdc_balance=Decimal(usdc),
        x4pn_balance=Decimal(x4pn),
        total_spent=Decimal("0"),
        total_earned_x4pn=Decimal("0"),
    )
    db.add(user)
    db.commit()
    return user


def make_node(
    db: Session,
    operator_address: str,
    rate_per_minute: str = "0.001",
    *,
    name: str = "Frankfurt-1",
    is_active: bool = True,
) -> Node:
    node = Node(
        operator_address=operator_address.lower(),
        name=name,
        location="Frankfurt",
        country="Germany",
        country_code="DE",
        ip_address="203.0.113.10",
        port=51820,
        rate_per_minute=Decimal(rate_per_minute),
        is_active=is_active,
        total_earned_usdc=Decimal("0"),
        total_earned_x4pn=Decimal("0"),
        active_users=0,
    )
    db.add(node)
    db.commit()
    return node


@pytest.fixture()
def test_user(db_session: Session, wallet: Any) -> User:
    """Persisted user with a prepaid balance of 100 USDC."""
    return make_user(db_session, wallet.address)


@pytest.fixture()
def other_user(db_session: Session, other_wallet: Any) -> User:
    return make_user(db_session, other_wallet.address)


@pytest.fixture()
def operator_wallet() -> Any:
    return Account.create()


@pytest.fixture()
def test_node(db_session: Session, operator_wallet: Any) -> Node:
    """Active node charging 0.001 USDC per minute."""
    return make_node(db_session, operator_wallet.address)


@pytest.fixture()
def auth_token(test_user: User) -> dict[str, str]:
    """Return authorization headers for the primary test user."""
    token = create_access_token(test_user.wallet_address)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def other_auth_token(other_user: User) -> dict[str, str]:
    """Return authorization headers for the secondary test user."""
    token = create_access_token(other_user.wallet_address)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def operator_auth_token(db_session: Session, operator_wallet: Any) -> dict[str, str]:
    """Return authorization headers for the node operator."""
    user = make_user(db_session, operator_wallet.address, usdc="0")
    token = create_access_token(user.wallet_address)
    return {"Authorization": f"Bearer {token}"}

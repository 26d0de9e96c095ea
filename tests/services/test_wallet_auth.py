# mypy: ignore-errors
from datetime import timedelta

import pytest

from conftest import sign_text
from x4pn_meter.core.errors import InvalidSignatureError
from x4pn_meter.db.time import utcnow
from x4pn_meter.models import LoginNonce
from x4pn_meter.services.wallet_auth import consume_login_nonce, issue_login_nonce


def test_issue_and_consume_challenge(db_session, wallet) -> None:
    """A signed challenge authenticates once and is then burned."""
    challenge = issue_login_nonce(db_session, wallet.address)
    db_session.commit()

    assert challenge.wallet_address == wallet.address.lower()
    assert wallet.address.lower() in challenge.message

    address = consume_login_nonce(db_session, wallet.address, sign_text(wallet, challenge.message))
    db_session.commit()

    assert address == wallet.address.lower()
    assert db_session.get(LoginNonce, address) is None

    with pytest.raises(InvalidSignatureError):
        consume_login_nonce(db_session, wallet.address, sign_text(wallet, challenge.message))


def test_reissue_replaces_previous_challenge(db_session, wallet) -> None:
    first = issue_login_nonce(db_session, wallet.address).message
    second = issue_login_nonce(db_session, wallet.address).message

    assert first != second
    with pytest.raises(InvalidSignatureError):
        consume_login_nonce(db_session, wallet.address, sign_text(wallet, first))


def test_signature_from_other_wallet_is_rejected(db_session, wallet, other_wallet) -> None:
    challenge = issue_login_nonce(db_session, wallet.address)

    with pytest.raises(InvalidSignatureError):
        consume_login_nonce(db_session, wallet.address, sign_text(other_wallet, challenge.message))


def test_expired_challenge_is_rejected(db_session, wallet) -> None:
    challenge = issue_login_nonce(db_session, wallet.address)
    challenge.expires_at = utcnow() - timedelta(seconds=1)
    db_session.flush()

    with pytest.raises(InvalidSignatureError, match="expired"):
        consume_login_nonce(db_session, wallet.address, sign_text(wallet, challenge.message))


def test_malformed_address_is_rejected(db_session) -> None:
    with pytest.raises(ValueError):
        issue_login_nonce(db_session, "0x123")

"""Sign-in with a wallet: single-use challenges verified against EIP-191 signatures."""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta

from sqlalchemy.orm import Session

from x4pn_meter.core.errors import InvalidSignatureError
from x4pn_meter.core.security import normalize_address, verify_signature
from x4pn_meter.core.settings import settings
from x4pn_meter.db.time import as_utc, utcnow
from x4pn_meter.models import LoginNonce

logger = logging.getLogger(__name__)

__all__ = ["build_login_message", "consume_login_nonce", "issue_login_nonce"]


def build_login_message(wallet_address: str, nonce: str) -> str:
    """Return the text a wallet must sign to redeem `nonce`."""
    return f"{settings.login_message_prefix}\n\nAddress: {wallet_address}\nNonce: {nonce}"


def issue_login_nonce(db: Session, wallet_address: str) -> LoginNonce:
    """Create or replace the outstanding challenge for `wallet_address`.

    Raises:
        ValueError: If the address is malformed.
    """
    address = normalize_address(wallet_address)
    message = build_login_message(address, secrets.token_hex(16))
    expires_at = utcnow() + timedelta(seconds=settings.login_nonce_ttl_seconds)

    challenge = db.get(LoginNonce, address)
    if challenge is None:
        challenge = LoginNonce(wallet_address=address, message=message, expires_at=expires_at)
        db.add(challenge)
    else:
        challenge.message = message
        challenge.expires_at = expires_at
    db.flush()
    return challenge


def consume_login_nonce(db: Session, wallet_address: str, signature: str) -> str:
    """Verify a signed challenge and burn it.

    Returns:
        The normalized wallet address that proved ownership.

    Raises:
        ValueError: If the address is malformed.
        InvalidSignatureError: No live challenge exists or the signature does not match.
    """
    address = normalize_address(wallet_address)
    challenge = db.get(LoginNonce, address)
    if challenge is None:
        raise InvalidSignatureError("No login challenge issued for this address")

    if as_utc(challenge.expires_at) <= utcnow():
        raise InvalidSignatureError("Login challenge expired")

    if not verify_signature(address, challenge.message, signature):
        logger.info("Rejected login signature for %s", address)
        raise InvalidSignatureError()

    db.delete(challenge)
    db.flush()
    return address

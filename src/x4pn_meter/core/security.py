"""Signature utilities built on EIP-191 wallet signatures."""
from __future__ import annotations

import re

from eth_account import Account
from eth_account.messages import encode_defunct

_ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_wallet_address(value: str) -> bool:
    """Return True if `value` looks like a 20-byte hex EVM address."""
    return bool(_ADDRESS_PATTERN.match(value or ""))


def normalize_address(address: str) -> str:
    """Return the canonical lower-case form of a wallet address.

    Raises:
        ValueError: If the value is not a 0x-prefixed 20-byte hex address.
    """
    cleaned = (address or "").strip()
    if not is_wallet_address(cleaned):
        raise ValueError(f"Invalid wallet address: {address!r}")
    return cleaned.lower()


def recover_signer(message: str, signature_hex: str) -> str | None:
    """Recover the address that produced a `personal_sign` signature.

    Args:
        message: Exact text that was signed on the client.
        signature_hex: 65-byte hex signature, with or without the 0x prefix.

    Returns:
        Lower-cased signer address, or None if the signature is malformed.
    """
    try:
        recovered = Account.recover_message(encode_defunct(text=message), signature=signature_hex)
    except Exception:
        return None
    return recovered.lower()


def verify_signature(address: str, message: str, signature_hex: str) -> bool:
    """Verify that `signature_hex` over `message` was produced by `address`."""
    recovered = recover_signer(message, signature_hex)
    if recovered is None:
        return False
    return recovered == (address or "").lower()

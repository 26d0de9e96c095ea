"""Settlement attestations signed by the session owner's wallet.

An attestation binds a session id and the client's claimed cumulative cost
and duration to a `personal_sign` signature. The server still computes and
caps its own charge; the attestation is evidence against disputed charges.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from x4pn_meter.core.security import recover_signer
from x4pn_meter.core.settings import settings
from x4pn_meter.services.billing import Amount, to_decimal

logger = logging.getLogger(__name__)

MESSAGE_HEADER = "x4pn-settlement"

__all__ = [
    "SettlementAttestation",
    "build_attestation_message",
    "verify_attestation",
]


@dataclass(frozen=True)
class SettlementAttestation:
    """Client-supplied claim accompanying a settle request."""

    claimed_cost: Amount
    claimed_duration: int
    signature: str


def _format_amount(value: Amount) -> str:
    """Render an amount canonically so 0.6, 0.60 and "0.600" sign identically."""
    normalized = to_decimal(value).normalize()
    return format(normalized, "f")


def build_attestation_message(
    session_id: int,
    claimed_cost: Amount,
    claimed_duration: int,
    domain: str | None = None,
) -> str:
    """Return the canonical text a wallet signs to attest a settlement.

    Args:
        session_id: Numeric session id.
        claimed_cost: Cumulative cost the client agrees to.
        claimed_duration: Cumulative paid seconds the client agrees to.
        domain: Service identifier; defaults to the configured attestation domain.
    """
    service_id = domain or settings.attestation_domain
    return "\n".join(
        (
            f"{MESSAGE_HEADER}:{service_id}",
            f"session:{int(session_id)}",
            f"cost:{_format_amount(claimed_cost)}",
            f"duration:{int(claimed_duration)}",
        )
    )


def verify_attestation(
    session_id: int,
    claimed_cost: Amount,
    claimed_duration: int,
    signature: str,
    expected_signer_address: str,
) -> bool:
    """Return True if `signature` over the canonical message recovers to the expected signer."""
    message = build_attestation_message(session_id, claimed_cost, claimed_duration)
    recovered = recover_signer(message, signature)
    if recovered is None:
        logger.debug("Malformed attestation signature for session %s", session_id)
        return False
    return recovered == expected_signer_address.strip().lower()

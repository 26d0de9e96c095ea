"""Error taxonomy for session metering and settlement.

Every precondition violation raised by the service layer is a subclass of
:class:`SettlementError`. Each carries a stable ``code`` that API clients can
switch on and the HTTP status the API layer maps it to.
"""

from __future__ import annotations

from fastapi import status


class SettlementError(Exception):
    """Base class for metering and settlement failures."""

    code: str = "settlement_error"
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Settlement request could not be processed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AlreadyActiveError(SettlementError):
    code = "already_active"
    status_code = status.HTTP_409_CONFLICT
    default_message = "User already has an active session"


class NodeUnavailableError(SettlementError):
    code = "node_unavailable"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Node is not available"


class InsufficientBalanceError(SettlementError):
    code = "insufficient_balance"
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    default_message = "Insufficient balance"


class NotFoundError(SettlementError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class NotActiveError(SettlementError):
    code = "not_active"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Session is not active"


class ForbiddenError(SettlementError):
    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Caller does not own this resource"


class InvalidSignatureError(SettlementError):
    code = "invalid_signature"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Attestation signature does not match the session owner"


class NothingToSettleError(SettlementError):
    code = "nothing_to_settle"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Nothing to settle yet"


class ConcurrentModificationError(SettlementError):
    """Optimistic-lock conflict; retried internally and never shown to callers."""

    code = "concurrent_modification"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Session was modified concurrently"


class TransientSettlementError(SettlementError):
    code = "transient_failure"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Settlement could not be completed, please retry"


__all__ = [
    "SettlementError",
    "AlreadyActiveError",
    "NodeUnavailableError",
    "InsufficientBalanceError",
    "NotFoundError",
    "NotActiveError",
    "ForbiddenError",
    "InvalidSignatureError",
    "NothingToSettleError",
    "ConcurrentModificationError",
    "TransientSettlementError",
]

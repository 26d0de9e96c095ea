# src/x4pn_meter/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .common import ErrorResponse, HealthResponse
from .ledger import DepositRequest, LedgerOperationResponse, TransactionResponse, WithdrawalRequest
from .node import NetworkStats, NodeRegister, NodeResponse, NodeUpdate
from .session import SessionEnd, SessionResponse, SessionSettle, SessionStart
from .user import LoginRequest, LoginResponse, NonceResponse, UserResponse

__all__ = [
    "ErrorResponse", "HealthResponse",
    "DepositRequest", "LedgerOperationResponse", "TransactionResponse", "WithdrawalRequest",
    "NetworkStats", "NodeRegister", "NodeResponse", "NodeUpdate",
    "SessionEnd", "SessionResponse", "SessionSettle", "SessionStart",
    "LoginRequest", "LoginResponse", "NonceResponse", "UserResponse",
]

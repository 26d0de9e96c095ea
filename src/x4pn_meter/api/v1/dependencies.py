"""Shared API dependencies for authentication and common functionality."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from x4pn_meter.core.settings import settings
from x4pn_meter.db.session import get_db
from x4pn_meter.models import User
from x4pn_meter.services.ledger import BalanceLedger
from x4pn_meter.services.notifications import SessionNotifier, get_session_notifier
from x4pn_meter.services.sessions import SessionLifecycleManager

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from JWT token.

    The token subject is the wallet address proven at login.

    Raises:
        HTTPException: If token is invalid or user not found
    """
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as err:
        raise _credentials_error() from err

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise _credentials_error()

    user = BalanceLedger(db).get_user_by_address(subject)
    if user is None:
        raise _credentials_error("User not found")
    return user


def get_notifier() -> SessionNotifier:
    """Return the node notification channel."""
    return get_session_notifier()


def get_lifecycle_manager(
    db: SessionDep,
    notifier: Annotated[SessionNotifier, Depends(get_notifier)],
) -> SessionLifecycleManager:
    return SessionLifecycleManager(db, notifier)


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]
LifecycleDep = Annotated[SessionLifecycleManager, Depends(get_lifecycle_manager)]

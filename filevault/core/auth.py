"""Authentication module: FastAPI dependencies that resolve the caller.

Public interface:
    ``require_identity``     returns the signed-in ``Identity`` or raises 401.
    ``optional_identity``    returns an ``Identity`` or ``None``; never raises
                             for a missing or invalid token.
    ``require_confirmation`` guard for destructive endpoints.

The resolved ``Identity`` is handed explicitly to every service call; nothing
in the core reads the current user from ambient state.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import settings
from .token_factory import TokenPayload, decode_token
from ..database import get_db
from ..exceptions import AuthenticationError, ConfirmationRequiredError

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    """The authenticated caller. All ownership checks compare against ``id``."""

    id: str
    email: str
    display_name: str


def require_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    db: Session = Depends(get_db),
) -> Identity:
    """Require a valid bearer token and return the caller's Identity."""
    if credentials is None:
        raise AuthenticationError("Missing authentication token")

    payload = decode_token(
        credentials.credentials, settings.jwt_secret_key, settings.jwt_algorithm
    )
    if payload is None:
        raise AuthenticationError("Invalid or expired token")

    return _load_identity(payload, db)


def optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    db: Session = Depends(get_db),
) -> Optional[Identity]:
    """Resolve the caller when a valid token is present, else ``None``.

    Used by endpoints that anonymous link holders may also call. A token for a
    deleted or deactivated account is treated as no token.
    """
    if credentials is None:
        return None

    payload = decode_token(
        credentials.credentials, settings.jwt_secret_key, settings.jwt_algorithm
    )
    if payload is None:
        return None

    try:
        return _load_identity(payload, db)
    except AuthenticationError:
        logger.info("Ignoring token for unknown or inactive user", extra={"user_id": payload.sub})
        return None


def require_confirmation(confirm: bool, operation: str) -> None:
    """Raise ConfirmationRequiredError unless the caller passed ``confirm=true``."""
    if not confirm:
        raise ConfirmationRequiredError(operation)


def _load_identity(payload: TokenPayload, db: Session) -> Identity:
    from ..repositories.user_repository import UserRepository

    user = UserRepository(db).get_by_id_optional(payload.sub)
    if user is None:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    return Identity(id=user.id, email=user.email, display_name=user.display_name)

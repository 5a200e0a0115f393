"""Authentication service: user registration and credential checks.

All password operations use bcrypt via passlib. Passwords are never stored
or logged in plaintext. The service layer owns user lifecycle; endpoints
are thin wrappers.
"""

import logging
from typing import Optional

import sqlalchemy.exc
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.passwords import hash_password, verify_password
from ..exceptions import AuthenticationError, ExternalStoreFailure, ValidationError
from ..models.user import User
from ..repositories.base import commit_or_raise
from ..repositories.user_repository import UserRepository
from .folder_service import FolderService

logger = logging.getLogger(__name__)

# Minimum password length for user registration.
# NIST SP 800-63B recommends at least 8 characters.
MIN_PASSWORD_LENGTH = 8


def register_user(
    db: Session,
    email: str,
    password: str,
    display_name: str,
    create_default_folders: Optional[bool] = None,
) -> User:
    """Create a new user account.

    New accounts get the default folder set unless disabled (argument, or
    ``settings.create_default_folders`` when the argument is None). Failing to
    seed folders does not undo the registration.

    Raises ValidationError if email is already taken or inputs are invalid.
    """
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("Valid email address required", field="email")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters", field="password"
        )
    display_name = (display_name or "").strip()
    if not display_name:
        raise ValidationError("Display name required", field="display_name")

    if get_user_by_email(db, email) is not None:
        raise ValidationError("Email already registered", field="email")

    user = User(
        email=email,
        display_name=display_name,
        password_hash=hash_password(password),
        is_active=True,
    )
    db.add(user)
    try:
        commit_or_raise(db, what="user registration")
    except ExternalStoreFailure as e:
        # A concurrent registration with the same e-mail loses on the unique index.
        if isinstance(e.__cause__, sqlalchemy.exc.IntegrityError):
            raise ValidationError("Email already registered", field="email") from e
        raise
    db.refresh(user)
    logger.info("Registered user", extra={"user_id": user.id})

    seed = settings.create_default_folders if create_default_folders is None else create_default_folders
    if seed:
        try:
            FolderService(db).create_default_folders(user.id)
        except ExternalStoreFailure as e:
            logger.warning("Could not create default folders for %s: %s", user.id, e.message)

    return user


def authenticate(db: Session, email: str, password: str) -> User:
    """Validate credentials and return the user.

    Raises AuthenticationError on invalid email, wrong password, or inactive account.
    """
    user = get_user_by_email(db, email)

    if user is None or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid email or password")

    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    return user


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return UserRepository(db).get_by_email(email)

"""Share link lifecycle: create, validate, list, revoke, sweep.

A link is either active or gone. Expiry is computed on every read by
comparing ``expires_at`` with the current time; there is no expired flag.
Revocation deletes the row. To a link holder an expired link, a revoked link
and a token that never existed all produce the same InvalidShareLinkError.
"""

import logging
import secrets
import string
from datetime import datetime, timedelta
from typing import Callable, List, Optional

import sqlalchemy.exc
from sqlalchemy.orm import Session

from ..core.clock import as_utc, utcnow
from ..core.config import settings
from ..core.passwords import hash_password, verify_password
from ..exceptions import (
    ExternalStoreFailure,
    InvalidPasswordError,
    InvalidShareLinkError,
    PasswordRequiredError,
    TokenGenerationExhaustedError,
    UnauthorizedError,
    ValidationError,
)
from ..models.activity import ActivityAction, ResourceType
from ..models.share import ShareLink
from ..repositories.base import commit_or_raise
from ..repositories.file_repository import FileRepository
from ..repositories.share_repository import ShareLinkRepository
from . import activity_service
from .permission_service import DOWNLOAD, VIEW, normalize_permissions

logger = logging.getLogger(__name__)

TOKEN_ALPHABET = string.ascii_letters + string.digits
LINK_ACTIONS = (VIEW, DOWNLOAD)


def generate_token(length: int) -> str:
    """Random token drawn from ``[A-Za-z0-9]`` with the ``secrets`` CSPRNG."""
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def is_expired(link: ShareLink, now: Optional[datetime] = None) -> bool:
    if link.expires_at is None:
        return False
    return as_utc(link.expires_at) <= (now or utcnow())


class ShareLinkService:
    """Share link operations.

    Public methods:
        create_link     -- owner issues a link (optional password and expiry)
        validate_access -- token (+ password) to the live ShareLink, or an error
        revoke          -- owner deletes a link
        list_active     -- owner's unexpired links, optionally for one file
        sweep_expired   -- physically delete expired rows (advisory cleanup)
        record_use      -- bump view/download counters; never raises
    """

    def __init__(self, db: Session, token_generator: Optional[Callable[[int], str]] = None):
        self.db = db
        self.link_repo = ShareLinkRepository(db)
        self.file_repo = FileRepository(db)
        self.token_generator = token_generator or generate_token

    def create_link(
        self,
        file_id: str,
        owner_id: str,
        permissions: List[str],
        password: Optional[str] = None,
        expires_in_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ShareLink:
        """Issue a new link on a file the caller owns."""
        stored = self.file_repo.get_by_id(file_id)
        if stored.owner_id != owner_id:
            raise UnauthorizedError("You can only share your own files")

        perms = normalize_permissions(permissions)
        if expires_in_days is not None and expires_in_days <= 0:
            raise ValidationError("expires_in_days must be a positive number of days", field="expires_in_days")

        now = now or utcnow()
        link = ShareLink(
            file_id=file_id,
            owner_id=owner_id,
            token=self._unique_token(),
            password_hash=hash_password(password) if password else None,
            expires_at=now + timedelta(days=expires_in_days) if expires_in_days else None,
            permissions=perms,
            views=0,
            downloads=0,
        )
        self.link_repo.add(link)
        self.link_repo.commit(file_id)

        logger.info("Created share link", extra={"link_id": link.id, "file_id": file_id})
        activity_service.log(
            self.db, owner_id, ActivityAction.LINK_CREATE, ResourceType.SHARE,
            link.id, stored.name,
            {
                "file_id": file_id,
                "permissions": perms,
                "password": link.password_hash is not None,
                "expires_in_days": expires_in_days,
            },
        )
        return link

    def validate_access(
        self,
        token: str,
        password: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ShareLink:
        """Return the live link for *token*.

        Raises:
            InvalidShareLinkError: unknown, revoked or expired token (one
                indistinguishable error for all three).
            PasswordRequiredError: link is protected and no password given.
            InvalidPasswordError: password given but wrong.
        """
        if not token:
            raise InvalidShareLinkError()
        link = self.link_repo.get_by_token(token)
        if link is None or is_expired(link, now):
            raise InvalidShareLinkError()

        if link.password_hash is not None:
            if not password:
                raise PasswordRequiredError()
            if not verify_password(password, link.password_hash):
                raise InvalidPasswordError()
        return link

    def revoke(self, link_id: str, actor_id: str) -> None:
        link = self.link_repo.get_by_id(link_id)
        if link.owner_id != actor_id:
            raise UnauthorizedError("You can only revoke your own share links")

        file_id = link.file_id
        file_name = link.file.name if link.file is not None else ""
        self.link_repo.delete(link)
        self.link_repo.commit(link_id)

        activity_service.log(
            self.db, actor_id, ActivityAction.LINK_REVOKE, ResourceType.SHARE,
            link_id, file_name, {"file_id": file_id},
        )

    def list_active(
        self, owner_id: str, file_id: Optional[str] = None, now: Optional[datetime] = None
    ) -> List[ShareLink]:
        return self.link_repo.list_live(owner_id, now or utcnow(), file_id)

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """Delete expired links. Returns how many rows were removed."""
        try:
            count = self.link_repo.delete_expired(now or utcnow())
        except sqlalchemy.exc.SQLAlchemyError as e:
            self.db.rollback()
            raise ExternalStoreFailure("Database expired link sweep failed", original_error=e) from e
        commit_or_raise(self.db, what="expired link sweep")
        if count:
            logger.info("Swept %d expired share links", count)
        return count

    def record_use(self, link: ShareLink, action: str) -> None:
        """Count a view or download and log it to the owner's activity. Never raises."""
        if action not in LINK_ACTIONS:
            logger.warning("Ignoring unknown share link action: %s", action)
            return

        column = ShareLink.views if action == VIEW else ShareLink.downloads
        try:
            link_id, owner_id, file_id = link.id, link.owner_id, link.file_id
            self.db.query(ShareLink).filter(ShareLink.id == link_id).update(
                {column: column + 1}, synchronize_session=False
            )
            self.db.commit()
        except sqlalchemy.exc.SQLAlchemyError as e:
            logger.warning("Failed to record share link %s: %s", action, e)
            self.db.rollback()
            return

        try:
            stored = self.file_repo.get_by_id_optional(file_id)
        except ExternalStoreFailure as e:
            logger.warning("Share access logged without file name: %s", e.message)
            stored = None
        activity_service.log(
            self.db, owner_id, ActivityAction.SHARE_ACCESS, ResourceType.FILE,
            file_id, stored.name if stored is not None else "",
            {"link_id": link_id, "action": action},
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _unique_token(self) -> str:
        """Bounded retry loop: draw, check for a collision, give up after N attempts."""
        attempts = settings.share_token_max_attempts
        for attempt in range(1, attempts + 1):
            token = self.token_generator(settings.share_token_length)
            if not self.link_repo.token_exists(token):
                return token
            logger.warning("Share token collision", extra={"attempt": attempt})
        raise TokenGenerationExhaustedError(attempts)

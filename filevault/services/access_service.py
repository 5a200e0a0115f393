"""Access resolution: the single authority on who may do what to a file.

Three grant sources are merged into one decision, most specific first:

1. Ownership: the owner gets every permission. Nothing else is consulted.
2. A user share naming the requester: exactly that share's permissions.
3. A share link token: the link's permissions, validated exactly like
   ``ShareLinkService.validate_access``. Authenticated requesters without a
   user share fall through to this step too, so holding a link is never
   worth less than holding nothing.
4. Otherwise access is denied.

A link never widens a user share: when step 2 matches, step 3 is not tried.
HTTP handlers call ``resolve_access`` for every read by someone who is not
the owner; UI-side gating is a convenience only.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import FrozenSet, Optional

from sqlalchemy.orm import Session

from ..exceptions import InvalidShareLinkError, UnauthorizedError
from ..repositories.file_repository import FileRepository
from ..repositories.share_repository import UserShareRepository
from .permission_service import OWNER_PERMISSIONS
from .share_link_service import ShareLinkService

logger = logging.getLogger(__name__)

VIA_OWNER = "owner"
VIA_USER_SHARE = "user_share"
VIA_LINK = "link"


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of ``resolve_access``. Immutable."""

    allowed: bool
    permissions: FrozenSet[str]
    via: Optional[str] = None
    link_id: Optional[str] = None

    def permits(self, permission: str) -> bool:
        return self.allowed and permission in self.permissions


DENIED = AccessDecision(allowed=False, permissions=frozenset())


def resolve_access(
    db: Session,
    file_id: str,
    requester_id: Optional[str] = None,
    link_token: Optional[str] = None,
    link_password: Optional[str] = None,
    now: Optional[datetime] = None,
) -> AccessDecision:
    """Decide what *requester_id* (or a link holder) may do with *file_id*.

    Raises:
        StoredFileNotFoundError: the file does not exist.
        InvalidShareLinkError: a token was supplied but is unknown, expired,
            or belongs to a different file.
        PasswordRequiredError / InvalidPasswordError: from a protected link.
    """
    stored = FileRepository(db).get_by_id(file_id)

    if requester_id is not None and requester_id == stored.owner_id:
        return AccessDecision(allowed=True, permissions=OWNER_PERMISSIONS, via=VIA_OWNER)

    if requester_id is not None:
        share = UserShareRepository(db).find(file_id, requester_id)
        if share is not None:
            return AccessDecision(
                allowed=True, permissions=frozenset(share.permissions), via=VIA_USER_SHARE
            )

    if link_token:
        link = ShareLinkService(db).validate_access(link_token, link_password, now)
        if link.file_id != file_id:
            logger.info("Share link presented for a different file", extra={"file_id": file_id})
            raise InvalidShareLinkError()
        return AccessDecision(
            allowed=True, permissions=frozenset(link.permissions), via=VIA_LINK, link_id=link.id
        )

    return DENIED


def require_permission(decision: AccessDecision, permission: str) -> None:
    """Raise UnauthorizedError unless *decision* grants *permission*."""
    if not decision.permits(permission):
        raise UnauthorizedError(f"You do not have '{permission}' access to this file")

"""Direct user-to-user shares.

At most one share exists per ``(file_id, shared_with_user_id)``; sharing the
same file with the same person again updates that row's permissions and
``shared_at`` instead of adding a second one.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.clock import utcnow
from ..exceptions import (
    InvalidOperationError,
    UnauthorizedError,
    UserNotFoundError,
    ValidationError,
)
from ..models.activity import ActivityAction, ResourceType
from ..models.file import StoredFile
from ..models.share import UserShare
from ..models.user import User
from ..repositories.base import commit_or_raise
from ..repositories.file_repository import FileRepository
from ..repositories.share_repository import UserShareRepository
from ..repositories.user_repository import UserRepository
from . import activity_service
from .permission_service import normalize_permissions

logger = logging.getLogger(__name__)


def share_with_user(
    db: Session,
    file_id: str,
    owner_id: str,
    permissions: List[str],
    shared_with_user_id: Optional[str] = None,
    shared_with_email: Optional[str] = None,
) -> UserShare:
    """Grant another user access to a file the caller owns (upsert).

    The recipient is looked up by id, or by e-mail when no id is given.
    """
    stored = FileRepository(db).get_by_id(file_id)
    if stored.owner_id != owner_id:
        raise UnauthorizedError("You can only share your own files")

    recipient = _resolve_recipient(db, shared_with_user_id, shared_with_email)
    if recipient.id == owner_id:
        raise InvalidOperationError("You cannot share a file with yourself")

    perms = normalize_permissions(permissions)
    repo = UserShareRepository(db)
    share = repo.find(file_id, recipient.id)
    if share is not None:
        share.permissions = perms
        share.shared_at = utcnow()
    else:
        share = UserShare(
            file_id=file_id,
            owner_id=owner_id,
            shared_with_user_id=recipient.id,
            permissions=perms,
        )
        repo.add(share)
    commit_or_raise(db, file_id, what="user share write")

    logger.info("Shared file with user", extra={"file_id": file_id, "share_id": share.id})
    activity_service.log(
        db, owner_id, ActivityAction.FILE_SHARE, ResourceType.FILE,
        file_id, stored.name,
        {"shared_with": recipient.id, "permissions": perms},
    )
    return share


def list_shared_with_me(db: Session, user_id: str) -> List[Tuple[UserShare, StoredFile]]:
    """Shares naming *user_id*, newest first, each with its file."""
    shares = UserShareRepository(db).list_for_recipient(user_id)
    return [(share, share.file) for share in shares if share.file is not None]


def list_file_shares(db: Session, file_id: str, actor_id: str) -> List[UserShare]:
    stored = FileRepository(db).get_by_id(file_id)
    if stored.owner_id != actor_id:
        raise UnauthorizedError("Only the owner can see who a file is shared with")
    return UserShareRepository(db).list_for_file(file_id)


def remove_share(db: Session, share_id: str, actor_id: str) -> None:
    repo = UserShareRepository(db)
    share = repo.get_by_id(share_id)
    if share.owner_id != actor_id:
        raise UnauthorizedError("You can only remove shares you created")

    file_id, recipient_id = share.file_id, share.shared_with_user_id
    file_name = share.file.name if share.file is not None else ""
    repo.delete(share)
    commit_or_raise(db, share_id, what="user share delete")

    activity_service.log(
        db, actor_id, ActivityAction.FILE_UNSHARE, ResourceType.FILE,
        file_id, file_name, {"shared_with": recipient_id},
    )


def _resolve_recipient(
    db: Session, user_id: Optional[str], email: Optional[str]
) -> User:
    users = UserRepository(db)
    if user_id:
        return users.get_by_id(user_id)
    if email:
        user = users.get_by_email(email)
        if user is None:
            raise UserNotFoundError(email.strip().lower())
        return user
    raise ValidationError("A recipient user id or e-mail is required", field="shared_with_user_id")

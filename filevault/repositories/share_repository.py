"""Repositories for share links and direct user shares."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_

from ..exceptions import ShareNotFoundError
from ..models.share import ShareLink, UserShare
from .base import BaseRepository


class ShareLinkRepository(BaseRepository[ShareLink]):
    """Data access layer for share links."""

    model_class = ShareLink
    not_found_error = ShareNotFoundError

    def get_by_token(self, token: str) -> Optional[ShareLink]:
        return self._read(
            lambda: self.db.query(ShareLink).filter(ShareLink.token == token).first(),
            what="share link token lookup",
        )

    def token_exists(self, token: str) -> bool:
        return self.get_by_token(token) is not None

    def list_live(self, owner_id: str, now: datetime, file_id: Optional[str] = None) -> List[ShareLink]:
        """Links that have not expired as of *now*, newest first."""
        def _query():
            query = self.db.query(ShareLink).filter(
                ShareLink.owner_id == owner_id,
                or_(ShareLink.expires_at.is_(None), ShareLink.expires_at > now),
            )
            if file_id is not None:
                query = query.filter(ShareLink.file_id == file_id)
            return query.order_by(ShareLink.created_at.desc(), ShareLink.id.desc()).all()

        return self._read(_query, what="share link listing")

    def delete_expired(self, now: datetime) -> int:
        """Bulk delete of rows whose ``expires_at`` has passed. Caller commits."""
        return (
            self.db.query(ShareLink)
            .filter(ShareLink.expires_at.isnot(None), ShareLink.expires_at <= now)
            .delete(synchronize_session=False)
        )


class UserShareRepository(BaseRepository[UserShare]):
    """Data access layer for user-to-user shares."""

    model_class = UserShare
    not_found_error = ShareNotFoundError

    def find(self, file_id: str, shared_with_user_id: str) -> Optional[UserShare]:
        return self._read(
            lambda: self.db.query(UserShare)
            .filter(
                UserShare.file_id == file_id,
                UserShare.shared_with_user_id == shared_with_user_id,
            )
            .first(),
            what="user share lookup",
        )

    def list_for_recipient(self, user_id: str) -> List[UserShare]:
        return self._read(
            lambda: self.db.query(UserShare)
            .filter(UserShare.shared_with_user_id == user_id)
            .order_by(UserShare.shared_at.desc(), UserShare.id.desc())
            .all(),
            what="shared-with-me listing",
        )

    def list_for_file(self, file_id: str) -> List[UserShare]:
        return self._read(
            lambda: self.db.query(UserShare)
            .filter(UserShare.file_id == file_id)
            .order_by(UserShare.shared_at.desc(), UserShare.id.desc())
            .all(),
            what="file share listing",
        )

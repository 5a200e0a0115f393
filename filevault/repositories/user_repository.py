"""Repository for user lookups."""

from typing import Optional

from ..exceptions import UserNotFoundError
from ..models.user import User
from .base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Data access layer for users. E-mail addresses are stored lower-cased."""

    model_class = User
    not_found_error = UserNotFoundError

    def get_by_email(self, email: str) -> Optional[User]:
        normalized = (email or "").strip().lower()
        return self._read(
            lambda: self.db.query(User).filter(User.email == normalized).first(),
            what="user lookup by email",
        )

"""Data access repositories."""

from .base import BaseRepository, commit_or_raise, read_with_retry
from .file_repository import ALL_FOLDERS, FileRepository
from .folder_repository import FolderRepository
from .share_repository import ShareLinkRepository, UserShareRepository
from .user_repository import UserRepository

__all__ = [
    "ALL_FOLDERS",
    "BaseRepository",
    "FileRepository",
    "FolderRepository",
    "ShareLinkRepository",
    "UserRepository",
    "UserShareRepository",
    "commit_or_raise",
    "read_with_retry",
]

"""Database models."""

from .user import User
from .folder import Folder
from .file import StoredFile
from .share import ShareLink, UserShare
from .activity import Activity, ActivityAction, ResourceType

__all__ = [
    "User", "Folder", "StoredFile",
    "ShareLink", "UserShare",
    "Activity", "ActivityAction", "ResourceType",
]

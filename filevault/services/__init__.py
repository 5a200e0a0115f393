"""Business logic services."""

from .file_service import FileService
from .folder_service import FolderService
from .share_link_service import ShareLinkService

__all__ = ["FileService", "FolderService", "ShareLinkService"]

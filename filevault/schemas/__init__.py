"""Pydantic schemas for API validation."""

from .common import BatchError, BatchResult
from .file import (
    FileResponse,
    FileListResponse,
    FileMove,
    TagsRequest,
)
from .folder import (
    FolderCreate,
    FolderResponse,
    FolderTreeNode,
)
from .share import (
    ShareLinkCreate,
    ShareLinkResponse,
    UserShareCreate,
    UserShareResponse,
)
from .activity import ActivityResponse, ActivityListResponse
from .search import SearchResponse

__all__ = [
    "BatchError",
    "BatchResult",
    "FileResponse",
    "FileListResponse",
    "FileMove",
    "TagsRequest",
    "FolderCreate",
    "FolderResponse",
    "FolderTreeNode",
    "ShareLinkCreate",
    "ShareLinkResponse",
    "UserShareCreate",
    "UserShareResponse",
    "ActivityResponse",
    "ActivityListResponse",
    "SearchResponse",
]

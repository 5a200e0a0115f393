"""Stored file schemas."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

# Upper bound on ids accepted by one bulk request.
MAX_BULK_ITEMS = 500


class FileResponse(BaseModel):
    """Schema for file metadata response. ``object_ref`` is never exposed."""
    id: str
    owner_id: str
    name: str
    size: int
    mime_type: str
    folder_id: Optional[str] = None
    tags: List[str] = []
    created_at: datetime

    class Config:
        from_attributes = True


class FileListResponse(BaseModel):
    """Paginated file listing."""
    files: List[FileResponse]
    total: int
    offset: int
    limit: int


class FileMove(BaseModel):
    """Move a file into ``folder_id``; ``None`` moves it to the root."""
    folder_id: Optional[str] = None


class TagsRequest(BaseModel):
    tags: List[str] = Field(..., min_length=1, max_length=50)


class TagCount(BaseModel):
    name: str
    count: int


class ContentUrlResponse(BaseModel):
    """Signed, short-lived URL for a file's bytes."""
    url: str
    mode: Literal["view", "download"]
    expires_in: int


class BulkDeleteRequest(BaseModel):
    file_ids: List[str] = Field(..., max_length=MAX_BULK_ITEMS)


class BulkMoveRequest(BaseModel):
    file_ids: List[str] = Field(..., max_length=MAX_BULK_ITEMS)
    folder_id: Optional[str] = None


class OrphanPurgeResponse(BaseModel):
    """Records removed because their stored object no longer exists."""
    purged: int
    file_ids: List[str] = []


class SharedFileResponse(BaseModel):
    """A file someone else shared with the caller."""
    share_id: str
    file: FileResponse
    owner_id: str
    permissions: List[str]
    shared_at: datetime

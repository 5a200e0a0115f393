"""Activity model: append-only audit trail of user actions."""

import uuid
from enum import Enum

from sqlalchemy import Column, DateTime, Index, String, Text

from ..core.clock import utcnow
from ..database import Base


class ActivityAction(str, Enum):
    FILE_UPLOAD = "file_upload"
    FILE_DOWNLOAD = "file_download"
    FILE_DELETE = "file_delete"
    FILE_MOVE = "file_move"
    FILE_TAG = "file_tag"
    FILE_UNTAG = "file_untag"
    FILE_SHARE = "file_share"
    FILE_UNSHARE = "file_unshare"
    FOLDER_CREATE = "folder_create"
    FOLDER_RENAME = "folder_rename"
    FOLDER_MOVE = "folder_move"
    FOLDER_UPDATE = "folder_update"
    FOLDER_DELETE = "folder_delete"
    LINK_CREATE = "link_create"
    LINK_REVOKE = "link_revoke"
    SHARE_ACCESS = "share_access"
    BULK_DELETE = "bulk_delete"
    BULK_MOVE = "bulk_move"


class ResourceType(str, Enum):
    FILE = "file"
    FOLDER = "folder"
    SHARE = "share"


class Activity(Base):
    """One entry in a user's activity feed.

    Written by the service layer after each mutation, never updated. Old
    entries are only removed by the retention purge.
    """

    __tablename__ = "activities"
    __table_args__ = (
        Index("ix_activities_user_created", "user_id", "created_at"),
        Index("ix_activities_resource", "resource_type", "resource_id"),
    )

    id = Column(String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    user_id = Column(String(32), nullable=False)
    action = Column(String(50), nullable=False)
    resource_type = Column(String(20), nullable=False)
    resource_id = Column(String(32), nullable=False)
    resource_name = Column(String(255), nullable=False, default="")
    metadata_json = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

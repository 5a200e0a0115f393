"""Stored file model: metadata for a blob held by the object store."""

import uuid

from sqlalchemy import Column, BigInteger, DateTime, ForeignKey, Index, JSON, String
from sqlalchemy.orm import relationship

from ..core.clock import utcnow
from ..database import Base


class StoredFile(Base):
    """An uploaded file.

    ``object_ref`` is the opaque handle returned by the object store and is
    never changed after insert. ``folder_id = NULL`` means the file lives at
    the owner's root.
    """

    __tablename__ = "files"
    __table_args__ = (
        Index("ix_files_owner_folder", "owner_id", "folder_id"),
        Index("ix_files_owner_created", "owner_id", "created_at"),
    )

    id = Column(String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    owner_id = Column(String(32), nullable=False)
    name = Column(String(255), nullable=False)
    size = Column(BigInteger, nullable=False)
    mime_type = Column(String(255), nullable=False, default="application/octet-stream")
    folder_id = Column(String(32), ForeignKey("folders.id"), nullable=True)
    object_ref = Column(String(255), nullable=False, unique=True)

    # Normalized tags: lower-case, [a-z0-9-], no duplicates.
    tags = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    share_links = relationship(
        "ShareLink", back_populates="file", cascade="all, delete-orphan", passive_deletes=True
    )
    user_shares = relationship(
        "UserShare", back_populates="file", cascade="all, delete-orphan", passive_deletes=True
    )

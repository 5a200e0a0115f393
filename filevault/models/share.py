"""Share models: tokenized public links and direct user-to-user grants."""

import uuid

from sqlalchemy import (
    Column, DateTime, ForeignKey, Index, Integer, JSON, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..core.clock import utcnow
from ..database import Base


class ShareLink(Base):
    """Anonymous bearer grant on a single file.

    Anyone holding ``token`` (and the password, when ``password_hash`` is set)
    gets exactly ``permissions`` on ``file_id``. A link past ``expires_at`` is
    treated exactly like a deleted one; revocation deletes the row.
    """

    __tablename__ = "share_links"
    __table_args__ = (
        Index("ix_share_links_owner_file", "owner_id", "file_id"),
        Index("ix_share_links_expires_at", "expires_at"),
    )

    id = Column(String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    file_id = Column(String(32), ForeignKey("files.id", ondelete="CASCADE"), nullable=False)
    owner_id = Column(String(32), nullable=False)
    token = Column(String(128), nullable=False, unique=True)
    password_hash = Column(Text, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    permissions = Column(JSON, nullable=False)

    views = Column(Integer, nullable=False, default=0)
    downloads = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    file = relationship("StoredFile", back_populates="share_links")

    @property
    def has_password(self) -> bool:
        return self.password_hash is not None


class UserShare(Base):
    """Direct grant from a file's owner to another user.

    At most one row per ``(file_id, shared_with_user_id)``; sharing again
    updates ``permissions`` and ``shared_at`` in place.
    """

    __tablename__ = "user_shares"
    __table_args__ = (
        UniqueConstraint("file_id", "shared_with_user_id", name="uq_user_shares_file_user"),
        Index("ix_user_shares_shared_with", "shared_with_user_id"),
    )

    id = Column(String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    file_id = Column(String(32), ForeignKey("files.id", ondelete="CASCADE"), nullable=False)
    owner_id = Column(String(32), nullable=False)
    shared_with_user_id = Column(String(32), nullable=False)
    permissions = Column(JSON, nullable=False)
    shared_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    file = relationship("StoredFile", back_populates="user_shares")

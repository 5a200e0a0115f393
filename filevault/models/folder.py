"""Folder model: one node of a user's folder hierarchy."""

import uuid

from sqlalchemy import Column, ForeignKey, Index, Integer, String, Text, DateTime

from ..core.clock import utcnow
from ..database import Base

ROOT_PATH = "/"


class Folder(Base):
    """A folder owned by a single user.

    ``path`` is materialized: the ``/``-joined names of every ancestor from the
    root down to the immediate parent, always ending in ``/``. Root folders
    have ``parent_id = NULL`` and ``path = "/"``; a child of root folder ``A``
    has ``path = "/A/"``.

    ``version`` is SQLAlchemy's optimistic-lock column. An UPDATE that races
    another writer affects zero rows and raises ``StaleDataError``.
    """

    __tablename__ = "folders"
    __table_args__ = (
        Index("ix_folders_owner_parent", "owner_id", "parent_id"),
        Index("ix_folders_parent_id", "parent_id"),
    )

    id = Column(String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    name = Column(String(255), nullable=False)
    parent_id = Column(String(32), ForeignKey("folders.id"), nullable=True)
    owner_id = Column(String(32), nullable=False)
    path = Column(Text, nullable=False, default=ROOT_PATH)

    color = Column(String(20), nullable=True)
    icon = Column(String(50), nullable=True)

    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def full_path(self) -> str:
        """Path of this folder itself, i.e. what its children store as ``path``."""
        return f"{self.path}{self.name}/"

"""User accounts.

Stands in for the managed identity provider: users register with e-mail and
password and receive bearer tokens. Everything else in the schema refers to
users by their opaque ``id`` only, so swapping in an external provider only
touches this table and ``auth_service``.
"""

import uuid

from sqlalchemy import Column, String, DateTime, Boolean, Text

from ..core.clock import utcnow
from ..database import Base


class User(Base):
    """A person who can own files and folders and receive shares."""

    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    email = Column(String(255), unique=True, nullable=False)
    display_name = Column(String(255), nullable=False)
    password_hash = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

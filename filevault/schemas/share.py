"""Share link and user share schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class ShareLinkCreate(BaseModel):
    """Schema for creating a public share link."""
    file_id: str
    permissions: List[str] = Field(default_factory=lambda: ["view"])
    password: Optional[str] = Field(None, min_length=1, max_length=128)
    expires_in_days: Optional[int] = None


class ShareLinkResponse(BaseModel):
    """Schema for share link response. The password hash never leaves the server."""
    id: str
    file_id: str
    owner_id: str
    token: str
    has_password: bool
    expires_at: Optional[datetime] = None
    permissions: List[str]
    views: int
    downloads: int
    created_at: datetime

    class Config:
        from_attributes = True


class UserShareCreate(BaseModel):
    """Share a file with another user, identified by id or e-mail."""
    file_id: str
    shared_with_user_id: Optional[str] = None
    shared_with_email: Optional[str] = None
    permissions: List[str] = Field(default_factory=lambda: ["view"])

    @model_validator(mode="after")
    def require_target(self) -> "UserShareCreate":
        if not self.shared_with_user_id and not self.shared_with_email:
            raise ValueError("Provide shared_with_user_id or shared_with_email")
        return self


class UserShareResponse(BaseModel):
    id: str
    file_id: str
    owner_id: str
    shared_with_user_id: str
    permissions: List[str]
    shared_at: datetime

    class Config:
        from_attributes = True


class LinkAccessRequest(BaseModel):
    """Body for opening a share link. ``password`` only for protected links."""
    password: Optional[str] = None


class PublicFileInfo(BaseModel):
    """What an anonymous link holder may see about the shared file."""
    name: str
    size: int
    mime_type: str
    created_at: datetime


class LinkAccessResponse(BaseModel):
    file: PublicFileInfo
    permissions: List[str]
    expires_at: Optional[datetime] = None


class AccessDecisionResponse(BaseModel):
    allowed: bool
    permissions: List[str]
    via: Optional[str] = None

"""Folder and tree schemas."""

import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

_COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")


def _validate_color(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    if not _COLOR_PATTERN.match(v):
        raise ValueError("Color must be a hex value like #3B82F6")
    return v.upper()


class FolderCreate(BaseModel):
    """Schema for creating a folder."""
    name: str = Field(..., min_length=1, max_length=255)
    parent_id: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = Field(None, max_length=50)

    @field_validator('color')
    @classmethod
    def validate_color(cls, v: Optional[str]) -> Optional[str]:
        return _validate_color(v)


class FolderRename(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class FolderMove(BaseModel):
    """Move a folder under ``parent_id``; ``None`` moves it to the root."""
    parent_id: Optional[str] = None


class FolderAppearanceUpdate(BaseModel):
    color: Optional[str] = None
    icon: Optional[str] = Field(None, max_length=50)

    @field_validator('color')
    @classmethod
    def validate_color(cls, v: Optional[str]) -> Optional[str]:
        return _validate_color(v)


class FolderResponse(BaseModel):
    """Schema for folder response."""
    id: str
    name: str
    parent_id: Optional[str] = None
    owner_id: str
    path: str
    color: Optional[str] = None
    icon: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class FolderDeleteResponse(BaseModel):
    """Counts of what a folder delete removed."""
    folder_id: str
    folders_deleted: int
    files_deleted: int


class FolderTreeNode(BaseModel):
    """Schema for tree navigation."""
    id: str
    name: str
    path: str
    color: Optional[str] = None
    icon: Optional[str] = None
    children: List['FolderTreeNode'] = []

    class Config:
        from_attributes = True

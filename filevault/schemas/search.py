"""Combined search schemas."""

from typing import List

from pydantic import BaseModel

from .file import FileResponse
from .folder import FolderResponse


class SearchResponse(BaseModel):
    """Files and folders matching one query; ``total`` counts both."""
    files: List[FileResponse]
    folders: List[FolderResponse]
    total: int

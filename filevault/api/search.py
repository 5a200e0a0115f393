"""Quick search across the caller's files and folders."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.auth import Identity, require_identity
from ..core.object_store import ObjectStore, get_object_store
from ..database import get_db
from ..schemas.search import SearchResponse
from ..services.file_service import FileService
from ..services.folder_service import FolderService

router = APIRouter(prefix="/api/search", tags=["search"])


@router.get("", response_model=SearchResponse)
def quick_search(
    q: Optional[str] = Query(None, description="Case-insensitive name substring"),
    limit: int = Query(50, ge=1, le=500, description="Cap per result kind"),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
    store: ObjectStore = Depends(get_object_store),
):
    files = FileService(db, store).search_files(identity.id, query=q, limit=limit)
    folders = FolderService(db).search_folders(identity.id, q, limit=limit)
    return SearchResponse(files=files, folders=folders, total=len(files) + len(folders))

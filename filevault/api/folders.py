"""Folder API: CRUD, move, rename, tree, breadcrumb and delete.

Single router for all folder operations. Delegates to FolderService (deep module).
Every endpoint acts on the caller's own folders only.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.auth import Identity, require_confirmation, require_identity
from ..core.object_store import ObjectStore, get_object_store
from ..database import get_db
from ..schemas.folder import (
    FolderAppearanceUpdate,
    FolderCreate,
    FolderDeleteResponse,
    FolderMove,
    FolderRename,
    FolderResponse,
    FolderTreeNode,
)
from ..services.folder_service import FolderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/folders", tags=["folders"])


@router.post("", response_model=FolderResponse, status_code=201)
def create_folder(
    data: FolderCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
):
    """Create a folder at the root or under one of the caller's folders."""
    return FolderService(db).create_folder(
        data.name, data.parent_id, identity.id, color=data.color, icon=data.icon
    )


@router.get("", response_model=List[FolderResponse])
def list_root_folders(
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
):
    """Root-level folders only."""
    return FolderService(db).list_children(identity.id, None)


@router.get("/tree", response_model=List[FolderTreeNode])
def get_tree(
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
):
    """The caller's whole folder hierarchy as nested nodes."""
    return FolderService(db).get_tree(identity.id)


@router.get("/{folder_id}", response_model=FolderResponse)
def get_folder(
    folder_id: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
):
    return FolderService(db).get_folder(folder_id, identity.id)


@router.get("/{folder_id}/children", response_model=List[FolderResponse])
def list_children(
    folder_id: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
):
    return FolderService(db).list_children(identity.id, folder_id)


@router.get("/{folder_id}/breadcrumb", response_model=List[FolderResponse])
def get_breadcrumb(
    folder_id: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
):
    """Ancestors from the root down to this folder."""
    return FolderService(db).get_breadcrumb(folder_id, identity.id)


@router.put("/{folder_id}/rename", response_model=FolderResponse)
def rename_folder(
    folder_id: str,
    data: FolderRename,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
):
    return FolderService(db).rename_folder(folder_id, data.name, identity.id)


@router.put("/{folder_id}/move", response_model=FolderResponse)
def move_folder(
    folder_id: str,
    data: FolderMove,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
):
    """Move a folder under another folder, or to the root with ``parent_id: null``."""
    return FolderService(db).move_folder(folder_id, data.parent_id, identity.id)


@router.put("/{folder_id}/appearance", response_model=FolderResponse)
def update_appearance(
    folder_id: str,
    data: FolderAppearanceUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
):
    return FolderService(db).update_appearance(folder_id, identity.id, color=data.color, icon=data.icon)


@router.delete("/{folder_id}", response_model=FolderDeleteResponse)
def delete_folder(
    folder_id: str,
    cascade: bool = Query(False, description="Also delete every subfolder and file inside"),
    confirm: bool = Query(False, description="Must be true; deletion cannot be undone"),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
    store: ObjectStore = Depends(get_object_store),
):
    """Delete a folder. Non-empty folders need ``cascade=true``."""
    require_confirmation(confirm, "folder delete")
    result = FolderService(db, store).delete_folder(folder_id, identity.id, cascade=cascade)
    return FolderDeleteResponse(
        folder_id=result.folder_id,
        folders_deleted=result.folders_deleted,
        files_deleted=result.files_deleted,
    )

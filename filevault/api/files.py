"""File API: upload, listing, search, tags, content URLs, move, delete and bulk ops.

Owners act through FileService. Reads by anyone else (user share recipients
or link holders passing ``link``) go through ``access_service.resolve_access``
first; it is the only place access is decided.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Header, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ..core.auth import Identity, optional_identity, require_confirmation, require_identity
from ..core.config import settings
from ..core.object_store import ObjectStore, get_object_store
from ..database import get_db
from ..exceptions import AuthenticationError, ValidationError
from ..repositories.file_repository import ALL_FOLDERS
from ..repositories.share_repository import ShareLinkRepository
from ..schemas.common import BatchResult
from ..schemas.file import (
    BulkDeleteRequest,
    BulkMoveRequest,
    ContentUrlResponse,
    FileListResponse,
    FileMove,
    FileResponse,
    OrphanPurgeResponse,
    SharedFileResponse,
    TagCount,
    TagsRequest,
)
from ..schemas.share import AccessDecisionResponse
from ..services import access_service, user_share_service
from ..services.access_service import AccessDecision
from ..services.file_service import FileService
from ..services.share_link_service import ShareLinkService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/files", tags=["files"])


def _resolve(
    db: Session,
    file_id: str,
    identity: Optional[Identity],
    link: Optional[str],
    password: Optional[str],
) -> AccessDecision:
    if identity is None and not link:
        raise AuthenticationError("Sign in or provide a share link")
    return access_service.resolve_access(
        db,
        file_id,
        requester_id=identity.id if identity is not None else None,
        link_token=link,
        link_password=password,
    )


# -- Create ----------------------------------------------------------------

@router.post("/upload", response_model=FileResponse, status_code=201)
def upload_file(
    file: UploadFile = File(...),
    folder_id: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
    store: ObjectStore = Depends(get_object_store),
):
    """Upload a file into one of the caller's folders (or the root)."""
    # Read one byte past the limit so oversize uploads are detected without buffering them whole.
    content = file.file.read(settings.max_upload_bytes + 1)
    return FileService(db, store).upload(
        identity.id,
        file.filename or "",
        content,
        file.content_type or "application/octet-stream",
        folder_id=folder_id or None,
    )


# -- Collections -----------------------------------------------------------

@router.get("", response_model=FileListResponse)
def list_files(
    folder_id: Optional[str] = Query(None, description="Only files in this folder"),
    root: bool = Query(False, description="Only files at the root (ignores folder_id)"),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    order_by: str = Query("created_at", description="created_at, name or size"),
    descending: bool = Query(True),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
    store: ObjectStore = Depends(get_object_store),
):
    """List the caller's files. Without ``folder_id`` or ``root`` every folder is included."""
    if root:
        scope = None
    elif folder_id:
        scope = folder_id
    else:
        scope = ALL_FOLDERS
    files, total = FileService(db, store).list_files(
        identity.id, scope, offset=offset, limit=limit, order_by=order_by, descending=descending
    )
    return FileListResponse(files=files, total=total, offset=offset, limit=limit)


@router.get("/search", response_model=List[FileResponse])
def search_files(
    q: Optional[str] = Query(None, description="Case-insensitive name substring"),
    types: List[str] = Query([], description="image, video, audio, document"),
    tags: List[str] = Query([], description="Files must carry every tag"),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
    store: ObjectStore = Depends(get_object_store),
):
    return FileService(db, store).search_files(
        identity.id, query=q, types=types, tags=tags,
        date_from=date_from, date_to=date_to, limit=limit,
    )


@router.get("/tags", response_model=List[TagCount])
def list_tags(
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
    store: ObjectStore = Depends(get_object_store),
):
    """Every tag the caller uses, most used first."""
    return [TagCount(name=name, count=count) for name, count in FileService(db, store).list_user_tags(identity.id)]


@router.get("/tags/suggestions", response_model=List[str])
def suggest_tags(
    prefix: str = Query("", max_length=50),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
    store: ObjectStore = Depends(get_object_store),
):
    return FileService(db, store).suggest_tags(identity.id, prefix)


@router.get("/shared-with-me", response_model=List[SharedFileResponse])
def shared_with_me(
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
):
    """Files other users shared directly with the caller."""
    return [
        SharedFileResponse(
            share_id=share.id,
            file=FileResponse.model_validate(stored),
            owner_id=share.owner_id,
            permissions=share.permissions,
            shared_at=share.shared_at,
        )
        for share, stored in user_share_service.list_shared_with_me(db, identity.id)
    ]


@router.post("/bulk/delete", response_model=BatchResult)
def bulk_delete(
    body: BulkDeleteRequest,
    confirm: bool = Query(False),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
    store: ObjectStore = Depends(get_object_store),
):
    require_confirmation(confirm, "bulk delete")
    return FileService(db, store).bulk_delete(body.file_ids, identity.id)


@router.post("/bulk/move", response_model=BatchResult)
def bulk_move(
    body: BulkMoveRequest,
    confirm: bool = Query(False),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
    store: ObjectStore = Depends(get_object_store),
):
    require_confirmation(confirm, "bulk move")
    return FileService(db, store).bulk_move(body.file_ids, body.folder_id, identity.id)


@router.post("/orphans/purge", response_model=OrphanPurgeResponse)
def purge_orphans(
    confirm: bool = Query(False),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
    store: ObjectStore = Depends(get_object_store),
):
    """Remove records whose stored object is missing (left by interrupted deletes)."""
    require_confirmation(confirm, "orphan purge")
    purged = FileService(db, store).purge_orphaned_records(identity.id)
    return OrphanPurgeResponse(purged=len(purged), file_ids=purged)


# -- Single file -----------------------------------------------------------

@router.get("/{file_id}", response_model=FileResponse)
def get_file(
    file_id: str,
    link: Optional[str] = Query(None, description="Share link token"),
    password: Optional[str] = Header(None, alias="X-Share-Password"),
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(optional_identity),
    store: ObjectStore = Depends(get_object_store),
):
    decision = _resolve(db, file_id, identity, link, password)
    access_service.require_permission(decision, "view")
    return FileService(db, store).get_file(file_id)


@router.get("/{file_id}/access", response_model=AccessDecisionResponse)
def get_access(
    file_id: str,
    link: Optional[str] = Query(None, description="Share link token"),
    password: Optional[str] = Header(None, alias="X-Share-Password"),
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(optional_identity),
):
    """What the caller may do with this file. Used by clients to show or hide actions."""
    decision = _resolve(db, file_id, identity, link, password)
    return AccessDecisionResponse(
        allowed=decision.allowed,
        permissions=sorted(decision.permissions),
        via=decision.via,
    )


@router.get("/{file_id}/url", response_model=ContentUrlResponse)
def get_content_url(
    file_id: str,
    mode: str = Query("view", description="view or download"),
    link: Optional[str] = Query(None, description="Share link token"),
    password: Optional[str] = Header(None, alias="X-Share-Password"),
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(optional_identity),
    store: ObjectStore = Depends(get_object_store),
):
    """Signed, short-lived URL for the file's bytes."""
    if mode not in ("view", "download"):
        raise ValidationError("mode must be view or download", field="mode")
    decision = _resolve(db, file_id, identity, link, password)
    access_service.require_permission(decision, mode)

    service = FileService(db, store)
    stored = service.get_file(file_id)
    if decision.via == access_service.VIA_LINK:
        url = service.content_url(stored, mode)
        shared_link = ShareLinkRepository(db).get_by_id_optional(decision.link_id)
        if shared_link is not None:
            ShareLinkService(db).record_use(shared_link, mode)
    else:
        url = service.content_url(stored, mode, actor_id=identity.id)
    return ContentUrlResponse(url=url, mode=mode, expires_in=settings.object_url_ttl_seconds)


@router.put("/{file_id}/move", response_model=FileResponse)
def move_file(
    file_id: str,
    data: FileMove,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
    store: ObjectStore = Depends(get_object_store),
):
    """Move a file into a folder, or to the root with ``folder_id: null``."""
    return FileService(db, store).move_file(file_id, data.folder_id, identity.id)


@router.post("/{file_id}/tags", response_model=FileResponse)
def add_tags(
    file_id: str,
    data: TagsRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
    store: ObjectStore = Depends(get_object_store),
):
    return FileService(db, store).tag(file_id, data.tags, identity.id)


@router.post("/{file_id}/tags/remove", response_model=FileResponse)
def remove_tags(
    file_id: str,
    data: TagsRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
    store: ObjectStore = Depends(get_object_store),
):
    return FileService(db, store).untag(file_id, data.tags, identity.id)


@router.delete("/{file_id}", status_code=204)
def delete_file(
    file_id: str,
    confirm: bool = Query(False),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
    store: ObjectStore = Depends(get_object_store),
):
    require_confirmation(confirm, "file delete")
    FileService(db, store).delete_file(file_id, identity.id)
    return Response(status_code=204)

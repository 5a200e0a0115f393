"""Public share link endpoints. No account needed, only the token.

Every failure for an unknown, expired or revoked token is the same 404, so a
caller cannot tell which case applies. Paths containing tokens are masked in
logs, and these endpoints draw from a smaller rate-limit bucket.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.object_store import ObjectStore, get_object_store
from ..database import get_db
from ..exceptions import UnauthorizedError, ValidationError
from ..schemas.file import ContentUrlResponse
from ..schemas.share import LinkAccessRequest, LinkAccessResponse, PublicFileInfo
from ..services.file_service import FileService
from ..services.share_link_service import ShareLinkService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/public/links", tags=["public"])


@router.post("/{token}", response_model=LinkAccessResponse)
def open_link(
    token: str,
    body: Optional[LinkAccessRequest] = None,
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    """Validate a link (and its password) and describe the shared file."""
    service = ShareLinkService(db)
    link = service.validate_access(token, body.password if body else None)
    stored = FileService(db, store).get_file(link.file_id)
    permissions = list(link.permissions)
    expires_at = link.expires_at
    info = PublicFileInfo(
        name=stored.name, size=stored.size, mime_type=stored.mime_type, created_at=stored.created_at
    )
    service.record_use(link, "view")
    return LinkAccessResponse(file=info, permissions=permissions, expires_at=expires_at)


@router.post("/{token}/url", response_model=ContentUrlResponse)
def link_content_url(
    token: str,
    mode: str = Query("view", description="view or download"),
    body: Optional[LinkAccessRequest] = None,
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    """Signed URL for the shared file, if the link grants *mode*."""
    if mode not in ("view", "download"):
        raise ValidationError("mode must be view or download", field="mode")
    service = ShareLinkService(db)
    link = service.validate_access(token, body.password if body else None)
    if mode not in link.permissions:
        raise UnauthorizedError(f"This link does not allow {mode}")

    file_service = FileService(db, store)
    url = file_service.content_url(file_service.get_file(link.file_id), mode)
    service.record_use(link, mode)
    return ContentUrlResponse(url=url, mode=mode, expires_in=settings.object_url_ttl_seconds)

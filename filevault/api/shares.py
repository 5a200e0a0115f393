"""Sharing API for file owners: public links and direct user shares."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ..core.auth import Identity, require_confirmation, require_identity
from ..database import get_db
from ..schemas.share import (
    ShareLinkCreate,
    ShareLinkResponse,
    UserShareCreate,
    UserShareResponse,
)
from ..services import user_share_service
from ..services.share_link_service import ShareLinkService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/shares", tags=["shares"])


# -- Links -----------------------------------------------------------------

@router.post("/links", response_model=ShareLinkResponse, status_code=201)
def create_link(
    data: ShareLinkCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
):
    """Create a public link to one of the caller's files."""
    return ShareLinkService(db).create_link(
        data.file_id,
        identity.id,
        data.permissions,
        password=data.password,
        expires_in_days=data.expires_in_days,
    )


@router.get("/links", response_model=List[ShareLinkResponse])
def list_links(
    file_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
):
    """The caller's links that have not expired, newest first."""
    return ShareLinkService(db).list_active(identity.id, file_id=file_id)


@router.delete("/links/{link_id}", status_code=204)
def revoke_link(
    link_id: str,
    confirm: bool = Query(False),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
):
    require_confirmation(confirm, "link revoke")
    ShareLinkService(db).revoke(link_id, identity.id)
    return Response(status_code=204)


# -- User shares -----------------------------------------------------------

@router.post("/users", response_model=UserShareResponse, status_code=201)
def share_with_user(
    data: UserShareCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
):
    """Share a file with another user. Sharing again updates the permissions."""
    return user_share_service.share_with_user(
        db,
        data.file_id,
        identity.id,
        data.permissions,
        shared_with_user_id=data.shared_with_user_id,
        shared_with_email=data.shared_with_email,
    )


@router.get("/users", response_model=List[UserShareResponse])
def list_user_shares(
    file_id: str = Query(...),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
):
    return user_share_service.list_file_shares(db, file_id, identity.id)


@router.delete("/users/{share_id}", status_code=204)
def remove_user_share(
    share_id: str,
    confirm: bool = Query(False),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
):
    require_confirmation(confirm, "share removal")
    user_share_service.remove_share(db, share_id, identity.id)
    return Response(status_code=204)

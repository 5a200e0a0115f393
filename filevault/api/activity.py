"""Activity feed API. Callers only ever see their own entries."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.auth import Identity, require_identity
from ..database import get_db
from ..models.activity import Activity
from ..schemas.activity import ActivityListResponse, ActivityResponse
from ..services import activity_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/activity", tags=["activity"])


def _to_response(entry: Activity) -> ActivityResponse:
    return ActivityResponse(
        id=entry.id,
        action=entry.action,
        resource_type=entry.resource_type,
        resource_id=entry.resource_id,
        resource_name=entry.resource_name or "",
        metadata=activity_service.parse_metadata(entry),
        message=activity_service.format_message(entry),
        created_at=entry.created_at,
    )


@router.get("", response_model=ActivityListResponse)
def list_activity(
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
):
    """The caller's activity feed, newest first."""
    entries, total = activity_service.list_for_user(db, identity.id, offset=offset, limit=limit)
    return ActivityListResponse(activities=[_to_response(e) for e in entries], total=total)


@router.get("/recent", response_model=list[ActivityResponse])
def recent_activity(
    hours: int = Query(24, ge=1, le=24 * 30),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
):
    entries = activity_service.list_recent(db, identity.id, hours=hours, limit=limit)
    return [_to_response(e) for e in entries]


@router.get("/resource/{resource_type}/{resource_id}", response_model=list[ActivityResponse])
def resource_activity(
    resource_type: str,
    resource_id: str,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_identity),
):
    """History of one file, folder or link, limited to the caller's own entries."""
    entries = activity_service.list_for_resource(
        db, resource_type, resource_id, limit=limit, user_id=identity.id
    )
    return [_to_response(e) for e in entries]

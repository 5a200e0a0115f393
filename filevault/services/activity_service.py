"""Activity log service: records every state-changing operation.

Entries are append-only. Services write one entry after their primary write
has committed; a failure here is logged and swallowed so the user-visible
operation still succeeds.

Usage in service layer:
    activity_service.log(db, user_id="abc", action=ActivityAction.FILE_UPLOAD,
                         resource_type=ResourceType.FILE, resource_id=f.id,
                         resource_name=f.name, metadata={"size": f.size})
"""

import json
import logging
from datetime import timedelta
from typing import Any, Optional, Tuple

import sqlalchemy.exc
from sqlalchemy.orm import Session

from ..core.clock import utcnow
from ..models.activity import Activity, ActivityAction, ResourceType

logger = logging.getLogger(__name__)

_ACTION_MESSAGES = {
    ActivityAction.FILE_UPLOAD.value: "uploaded file",
    ActivityAction.FILE_DOWNLOAD.value: "downloaded file",
    ActivityAction.FILE_DELETE.value: "deleted file",
    ActivityAction.FILE_MOVE.value: "moved file",
    ActivityAction.FILE_TAG.value: "tagged file",
    ActivityAction.FILE_UNTAG.value: "removed tags from file",
    ActivityAction.FILE_SHARE.value: "shared file",
    ActivityAction.FILE_UNSHARE.value: "stopped sharing file",
    ActivityAction.FOLDER_CREATE.value: "created folder",
    ActivityAction.FOLDER_RENAME.value: "renamed folder",
    ActivityAction.FOLDER_MOVE.value: "moved folder",
    ActivityAction.FOLDER_UPDATE.value: "updated folder",
    ActivityAction.FOLDER_DELETE.value: "deleted folder",
    ActivityAction.LINK_CREATE.value: "created share link for",
    ActivityAction.LINK_REVOKE.value: "revoked share link for",
    ActivityAction.SHARE_ACCESS.value: "accessed shared file",
    ActivityAction.BULK_DELETE.value: "deleted multiple files",
    ActivityAction.BULK_MOVE.value: "moved multiple files",
}


def _value(item: Any) -> str:
    return item.value if isinstance(item, (ActivityAction, ResourceType)) else str(item)


def log(
    db: Session,
    user_id: str,
    action: ActivityAction,
    resource_type: ResourceType,
    resource_id: str,
    resource_name: str = "",
    metadata: Optional[dict] = None,
) -> None:
    """Write an activity entry. Never raises: failures are logged but don't break operations."""
    try:
        entry = Activity(
            user_id=user_id,
            action=_value(action),
            resource_type=_value(resource_type),
            resource_id=resource_id,
            resource_name=resource_name or "",
            metadata_json=json.dumps(metadata) if metadata else None,
        )
        db.add(entry)
        db.commit()
    except (TypeError, ValueError) as e:
        logger.warning("Failed to serialize activity metadata for %s: %s", _value(action), e)
    except sqlalchemy.exc.SQLAlchemyError as e:
        logger.warning("Failed to write activity log: %s", e)
        db.rollback()


def list_for_user(
    db: Session, user_id: str, offset: int = 0, limit: int = 50
) -> Tuple[list[Activity], int]:
    """One page of a user's activity, newest first, plus the total count."""
    query = db.query(Activity).filter(Activity.user_id == user_id)
    total = query.count()
    entries = (
        query.order_by(Activity.created_at.desc(), Activity.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return entries, total


def list_for_resource(
    db: Session,
    resource_type: str,
    resource_id: str,
    limit: int = 100,
    user_id: Optional[str] = None,
) -> list[Activity]:
    """Activity entries for a specific resource, optionally only those written for *user_id*."""
    query = db.query(Activity).filter(
        Activity.resource_type == _value(resource_type),
        Activity.resource_id == resource_id,
    )
    if user_id is not None:
        query = query.filter(Activity.user_id == user_id)
    return (
        query.order_by(Activity.created_at.desc(), Activity.id.desc())
        .limit(limit)
        .all()
    )


def list_recent(db: Session, user_id: str, hours: int = 24, limit: int = 50) -> list[Activity]:
    since = utcnow() - timedelta(hours=hours)
    return (
        db.query(Activity)
        .filter(Activity.user_id == user_id, Activity.created_at >= since)
        .order_by(Activity.created_at.desc(), Activity.id.desc())
        .limit(limit)
        .all()
    )


def purge_old_entries(db: Session, days: int = 365) -> int:
    """Delete activity entries older than `days`. Returns count of deleted rows.

    Skipped when days <= 0 (keep forever). Never raises: logs failures.
    """
    if days <= 0:
        return 0

    cutoff = utcnow() - timedelta(days=days)
    try:
        count = db.query(Activity).filter(Activity.created_at < cutoff).delete()
        db.commit()
        return count
    except sqlalchemy.exc.SQLAlchemyError as e:
        logger.warning("Failed to purge activity log: %s", e)
        db.rollback()
        return 0


def parse_metadata(entry: Activity) -> dict:
    """Decoded metadata, or ``{}`` when absent or unreadable."""
    if not entry.metadata_json:
        return {}
    try:
        value = json.loads(entry.metadata_json)
    except ValueError:
        return {}
    return value if isinstance(value, dict) else {}


def format_message(entry: Activity) -> str:
    """Human-readable line for an activity feed, e.g. ``uploaded file "a.txt"``."""
    message = _ACTION_MESSAGES.get(entry.action, entry.action)
    metadata = parse_metadata(entry)

    if metadata.get("count"):
        return f"{message} ({metadata['count']} items)"
    if metadata.get("destination"):
        return f"{message} to {metadata['destination']}"
    return f'{message} "{entry.resource_name}"'

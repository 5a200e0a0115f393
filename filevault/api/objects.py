"""Serves stored bytes behind signed, expiring URLs.

URLs are minted by the file and public link endpoints after access has been
checked. This endpoint trusts the signature alone, so it needs no session.
"""

import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ..core.object_store import ObjectStore, get_object_store
from ..database import get_db
from ..exceptions import UnauthorizedError
from ..repositories.file_repository import FileRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/objects", tags=["objects"])


def _disposition(filename: str) -> str:
    # Header values are latin-1; non-ASCII names go in the RFC 5987 form.
    fallback = filename.encode("ascii", "replace").decode("ascii")
    fallback = fallback.replace("\\", "_").replace('"', "_")
    if fallback == filename:
        return f'attachment; filename="{fallback}"'
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


@router.get("/{object_ref}")
def get_object(
    object_ref: str,
    mode: str = Query(...),
    expires: int = Query(...),
    sig: str = Query(...),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    if not store.verify_url(object_ref, mode, expires, sig):
        raise UnauthorizedError("This content URL is invalid or has expired")

    data = store.get(object_ref)
    headers = {"Cache-Control": "private, no-store"}
    if mode == "download":
        stored = FileRepository(db).get_by_object_ref(object_ref)
        filename = stored.name if stored is not None else object_ref
        headers["Content-Disposition"] = _disposition(filename)
    return Response(content=data, media_type=store.content_type(object_ref), headers=headers)

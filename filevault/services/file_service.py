"""File service: deep module for stored file records.

Owns the pairing between a file record and its object in the object store.
Callers never touch ``object_ref`` directly: uploads, moves, tagging and
deletes go through here so the record and the stored bytes stay in step.

Delete ordering: the object is removed first, then the record. An
interrupted delete therefore leaves a record without bytes (found and removed
by ``purge_orphaned_records``) rather than bytes nothing points to.
"""

import logging
import re
from collections import Counter
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.clock import as_utc
from ..core.config import settings
from ..core.object_store import URL_MODES, ObjectStore
from ..exceptions import (
    ExternalStoreFailure,
    FileVaultException,
    FolderNotFoundError,
    UnauthorizedError,
    ValidationError,
)
from ..models.activity import ActivityAction, ResourceType
from ..models.file import StoredFile
from ..models.folder import ROOT_PATH
from ..repositories.file_repository import ALL_FOLDERS, ORDER_COLUMNS, FileRepository
from ..repositories.folder_repository import FolderRepository
from ..schemas.common import BatchError, BatchResult
from . import activity_service

logger = logging.getLogger(__name__)

TAG_PATTERN = re.compile(r"^[a-z0-9-]+$")
MAX_TAG_LENGTH = 50
SEARCH_TYPES = ("image", "video", "audio", "document")
MAX_PAGE_SIZE = 200
# Suggestions shown while typing a tag.
SUGGESTION_LIMIT = 10


def normalize_tags(tags: Iterable[str]) -> List[str]:
    """Strip and lower-case *tags*, drop duplicates, keep first-seen order.

    Raises ValidationError for a tag outside ``[a-z0-9-]`` after
    normalization.
    """
    result: List[str] = []
    for raw in tags:
        tag = (raw or "").strip().lower()
        if not tag:
            continue
        if len(tag) > MAX_TAG_LENGTH or not TAG_PATTERN.match(tag):
            raise ValidationError(
                f"Invalid tag '{raw}': use lowercase letters, digits and hyphens only",
                field="tags",
            )
        if tag not in result:
            result.append(tag)
    return result


def _clean_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("File name cannot be empty", field="name")
    if len(name) > 255:
        raise ValidationError("File name is too long (max 255 characters)", field="name")
    return name


class FileService:
    """All file record operations behind a simple interface.

    Public methods:
        record_upload   -- insert metadata for bytes already in the store
        upload          -- store bytes then record them; undoes the store write on failure
        get_file        -- lookup by id (no ownership check)
        get_owned_file  -- lookup that requires the actor to be the owner
        list_files      -- paginated listing, per folder or across all folders
        content_url     -- signed view/download URL for a file's bytes
        move_file       -- change folder (None = root)
        delete_file     -- remove object then record
        tag / untag     -- normalized tag set edits
        search_files    -- name / type / tag / date filters
        list_user_tags  -- tag usage counts
        suggest_tags    -- prefix completion over the owner's tags
        bulk_delete / bulk_move -- per-item results, never raise for one bad id
        find_orphaned_records / purge_orphaned_records -- cleanup sweep
    """

    def __init__(self, db: Session, store: ObjectStore):
        self.db = db
        self.store = store
        self.file_repo = FileRepository(db)
        self.folder_repo = FolderRepository(db)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def record_upload(
        self,
        owner_id: str,
        name: str,
        size: int,
        mime_type: str,
        object_ref: str,
        folder_id: Optional[str] = None,
    ) -> StoredFile:
        """Insert the record for an object already written to the store."""
        name = _clean_name(name)
        if size is None or size <= 0:
            raise ValidationError("File size must be greater than zero", field="size")
        if not object_ref:
            raise ValidationError("Object reference is required", field="object_ref")

        if folder_id is not None:
            folder = self.folder_repo.get_by_id(folder_id)
            if folder.owner_id != owner_id:
                raise UnauthorizedError("You can only upload into your own folders")

        stored = StoredFile(
            owner_id=owner_id,
            name=name,
            size=size,
            mime_type=mime_type or "application/octet-stream",
            folder_id=folder_id,
            object_ref=object_ref,
            tags=[],
        )
        self.file_repo.add(stored)
        self.file_repo.commit(stored.id or "")

        logger.info("Recorded upload", extra={"file_id": stored.id, "size": size})
        activity_service.log(
            self.db, owner_id, ActivityAction.FILE_UPLOAD, ResourceType.FILE,
            stored.id, stored.name, {"size": size, "mime_type": stored.mime_type},
        )
        return stored

    def upload(
        self,
        owner_id: str,
        name: str,
        content: bytes,
        mime_type: str,
        folder_id: Optional[str] = None,
    ) -> StoredFile:
        """Store *content* and record it. A failed record write deletes the object again."""
        if not content:
            raise ValidationError("File is empty", field="file")
        if len(content) > settings.max_upload_bytes:
            raise ValidationError(
                f"File exceeds the {settings.max_upload_bytes} byte upload limit", field="file"
            )

        object_ref = self.store.put(content, mime_type)
        try:
            return self.record_upload(owner_id, name, len(content), mime_type, object_ref, folder_id)
        except Exception:
            self._discard_object(object_ref)
            raise

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_file(self, file_id: str) -> StoredFile:
        return self.file_repo.get_by_id(file_id)

    def get_owned_file(self, file_id: str, actor_id: str) -> StoredFile:
        stored = self.file_repo.get_by_id(file_id)
        if stored.owner_id != actor_id:
            raise UnauthorizedError("You can only modify your own files")
        return stored

    def list_files(
        self,
        owner_id: str,
        folder_id=ALL_FOLDERS,
        offset: int = 0,
        limit: int = 50,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> Tuple[List[StoredFile], int]:
        """List an owner's files.

        ``folder_id=None`` lists root files only; leaving it at ``ALL_FOLDERS``
        lists files in every folder.
        """
        if order_by not in ORDER_COLUMNS:
            raise ValidationError(
                f"Cannot order by '{order_by}'. Use one of: {', '.join(ORDER_COLUMNS)}",
                field="order_by",
            )
        if offset < 0:
            raise ValidationError("offset must be >= 0", field="offset")
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}", field="limit")
        if folder_id is not None and folder_id is not ALL_FOLDERS:
            if self.folder_repo.get_owned(folder_id, owner_id) is None:
                raise FolderNotFoundError(folder_id)

        return self.file_repo.list_page(owner_id, folder_id, offset, limit, order_by, descending)

    def content_url(self, stored: StoredFile, mode: str = "view", actor_id: Optional[str] = None) -> str:
        """Signed URL for the file's bytes. Download requests are logged for *actor_id*."""
        if mode not in URL_MODES:
            raise ValidationError(f"Invalid mode '{mode}'. Use view or download.", field="mode")
        url = self.store.url_for(stored.object_ref, mode)
        if mode == "download" and actor_id is not None:
            activity_service.log(
                self.db, actor_id, ActivityAction.FILE_DOWNLOAD, ResourceType.FILE,
                stored.id, stored.name,
            )
        return url

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def move_file(self, file_id: str, new_folder_id: Optional[str], actor_id: str) -> StoredFile:
        stored = self.get_owned_file(file_id, actor_id)
        destination = self._destination(new_folder_id, actor_id)

        stored.folder_id = new_folder_id
        self.file_repo.commit(file_id)

        activity_service.log(
            self.db, actor_id, ActivityAction.FILE_MOVE, ResourceType.FILE,
            stored.id, stored.name, {"destination": destination},
        )
        return stored

    def tag(self, file_id: str, tags: List[str], actor_id: str) -> StoredFile:
        """Add tags. Existing tags keep their position; new ones are appended."""
        stored = self.get_owned_file(file_id, actor_id)
        new_tags = normalize_tags(tags)
        if not new_tags:
            raise ValidationError("At least one tag is required", field="tags")

        merged = list(stored.tags or [])
        for tag in new_tags:
            if tag not in merged:
                merged.append(tag)
        # JSON columns only notice reassignment, not in-place mutation.
        stored.tags = merged
        self.file_repo.commit(file_id)

        activity_service.log(
            self.db, actor_id, ActivityAction.FILE_TAG, ResourceType.FILE,
            stored.id, stored.name, {"tags": new_tags},
        )
        return stored

    def untag(self, file_id: str, tags: List[str], actor_id: str) -> StoredFile:
        stored = self.get_owned_file(file_id, actor_id)
        removed = set(normalize_tags(tags))
        if not removed:
            raise ValidationError("At least one tag is required", field="tags")

        stored.tags = [t for t in (stored.tags or []) if t not in removed]
        self.file_repo.commit(file_id)

        activity_service.log(
            self.db, actor_id, ActivityAction.FILE_UNTAG, ResourceType.FILE,
            stored.id, stored.name, {"tags": sorted(removed)},
        )
        return stored

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_file(self, file_id: str, actor_id: str) -> None:
        """Delete the stored object, then the record.

        If the object delete fails nothing changes and ExternalStoreFailure is
        raised. If the record delete fails afterwards the inconsistency is
        logged and ExternalStoreFailure is raised; re-submitting completes the
        delete because object deletion is idempotent.
        """
        stored = self.get_owned_file(file_id, actor_id)
        name = stored.name
        self._delete(stored)
        activity_service.log(
            self.db, actor_id, ActivityAction.FILE_DELETE, ResourceType.FILE, file_id, name,
        )

    def bulk_delete(self, file_ids: List[str], actor_id: str) -> BatchResult:
        """Delete several files. Each id succeeds or fails on its own."""
        ids = list(dict.fromkeys(file_ids))
        errors: List[BatchError] = []
        succeeded = 0

        for file_id in ids:
            try:
                stored = self.get_owned_file(file_id, actor_id)
                self._delete(stored)
                succeeded += 1
            except FileVaultException as e:
                logger.warning("Bulk delete failed for %s: %s", file_id, e.message)
                errors.append(BatchError(file_id=file_id, error=e.message, code=e.error_code.value))

        if succeeded:
            activity_service.log(
                self.db, actor_id, ActivityAction.BULK_DELETE, ResourceType.FILE,
                "bulk", f"{succeeded} files", {"count": succeeded},
            )
        return BatchResult(total=len(ids), succeeded=succeeded, failed=len(ids) - succeeded, errors=errors)

    def bulk_move(self, file_ids: List[str], folder_id: Optional[str], actor_id: str) -> BatchResult:
        """Move several files into one folder with a single commit.

        An unknown or foreign target folder fails the whole request; per-file
        problems (missing, not owned) are reported in the result.
        """
        ids = list(dict.fromkeys(file_ids))
        destination = self._destination(folder_id, actor_id)
        errors: List[BatchError] = []
        moved: List[StoredFile] = []

        for file_id in ids:
            try:
                stored = self.get_owned_file(file_id, actor_id)
            except FileVaultException as e:
                errors.append(BatchError(file_id=file_id, error=e.message, code=e.error_code.value))
                continue
            stored.folder_id = folder_id
            moved.append(stored)

        if moved:
            self.file_repo.commit()
            activity_service.log(
                self.db, actor_id, ActivityAction.BULK_MOVE, ResourceType.FILE,
                "bulk", f"{len(moved)} files", {"count": len(moved), "destination": destination},
            )
        return BatchResult(total=len(ids), succeeded=len(moved), failed=len(errors), errors=errors)

    # ------------------------------------------------------------------
    # Search and tags
    # ------------------------------------------------------------------

    def search_files(
        self,
        owner_id: str,
        query: Optional[str] = None,
        types: Optional[List[str]] = None,
        tags: Optional[List[str]] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[StoredFile]:
        """Files matching every given filter. Tags must all be present."""
        types = [t.strip().lower() for t in (types or []) if t.strip()]
        unknown = [t for t in types if t not in SEARCH_TYPES]
        if unknown:
            raise ValidationError(
                f"Unknown file type(s): {', '.join(unknown)}. Use: {', '.join(SEARCH_TYPES)}",
                field="types",
            )
        date_from, date_to = as_utc(date_from), as_utc(date_to)
        if date_from and date_to and date_from > date_to:
            raise ValidationError("date_from must be before date_to", field="date_from")

        wanted_tags = normalize_tags(tags or [])
        if not wanted_tags:
            return self.file_repo.search(owner_id, query, types, date_from, date_to, limit)

        candidates = self.file_repo.search(owner_id, query, types, date_from, date_to, limit=None)
        matches = [f for f in candidates if all(t in (f.tags or []) for t in wanted_tags)]
        return matches[:limit]

    def list_user_tags(self, owner_id: str) -> List[Tuple[str, int]]:
        """``(tag, count)`` pairs, most used first, ties by name."""
        counts: Counter = Counter()
        for stored in self.file_repo.get_all_by_owner(owner_id):
            counts.update(stored.tags or [])
        return sorted(counts.items(), key=lambda item: (-item[1], item[0]))

    def suggest_tags(self, owner_id: str, prefix: str = "", limit: int = SUGGESTION_LIMIT) -> List[str]:
        prefix = (prefix or "").strip().lower()
        names = [name for name, _ in self.list_user_tags(owner_id) if name.startswith(prefix)]
        return names[:limit]

    # ------------------------------------------------------------------
    # Orphan cleanup
    # ------------------------------------------------------------------

    def find_orphaned_records(self, owner_id: str) -> List[StoredFile]:
        """Records whose object is gone from the store (left by an interrupted delete)."""
        return [
            f for f in self.file_repo.get_all_by_owner(owner_id)
            if not self.store.exists(f.object_ref)
        ]

    def purge_orphaned_records(self, owner_id: str) -> List[str]:
        """Delete orphaned records. Returns their ids."""
        orphans = self.find_orphaned_records(owner_id)
        if not orphans:
            return []

        purged = [f.id for f in orphans]
        for stored in orphans:
            self.file_repo.delete(stored)
        self.file_repo.commit()

        logger.info("Purged %d orphaned file records", len(purged), extra={"owner_id": owner_id})
        activity_service.log(
            self.db, owner_id, ActivityAction.BULK_DELETE, ResourceType.FILE,
            "orphans", f"{len(purged)} files", {"count": len(purged), "reason": "orphaned"},
        )
        return purged

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _destination(self, folder_id: Optional[str], actor_id: str) -> str:
        """Display path of a target folder owned by *actor_id*. Raises FolderNotFoundError."""
        if folder_id is None:
            return ROOT_PATH
        folder = self.folder_repo.get_owned(folder_id, actor_id)
        if folder is None:
            raise FolderNotFoundError(folder_id)
        return folder.full_path

    def _delete(self, stored: StoredFile) -> None:
        file_id, object_ref = stored.id, stored.object_ref

        # Fatal: the record is kept and nothing has changed.
        self.store.delete(object_ref)

        self.file_repo.delete(stored)
        try:
            self.file_repo.commit(file_id)
        except ExternalStoreFailure:
            logger.error(
                "Inconsistency: object deleted but file record remains; "
                "re-submit the delete or run the orphan purge",
                extra={"file_id": file_id, "object_ref": object_ref},
            )
            raise

    def _discard_object(self, object_ref: str) -> None:
        try:
            self.store.delete(object_ref)
        except ExternalStoreFailure as e:
            logger.error(
                "Could not remove object after failed upload: %s", e.message,
                extra={"object_ref": object_ref},
            )

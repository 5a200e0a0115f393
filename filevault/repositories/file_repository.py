"""Repository for stored file records."""

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, or_

from ..exceptions import StoredFileNotFoundError
from ..models.file import StoredFile
from .base import BaseRepository

# Sentinel for "no folder filter": distinct from None, which means root.
ALL_FOLDERS = object()

ORDER_COLUMNS = {
    "created_at": StoredFile.created_at,
    "name": StoredFile.name,
    "size": StoredFile.size,
}

# Search type categories and how they match mime types.
TYPE_PREFIXES = {
    "image": ("image/",),
    "video": ("video/",),
    "audio": ("audio/",),
}
DOCUMENT_MARKERS = ("pdf", "document", "msword", "spreadsheet", "presentation")


class FileRepository(BaseRepository[StoredFile]):
    """Data access layer for stored files."""

    model_class = StoredFile
    not_found_error = StoredFileNotFoundError

    def list_page(
        self,
        owner_id: str,
        folder_id=ALL_FOLDERS,
        offset: int = 0,
        limit: int = 50,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> Tuple[List[StoredFile], int]:
        """One page of an owner's files plus the total matching count.

        Ties on the ordering column are broken by id in the same direction so
        pages never overlap or skip rows.
        """
        column = ORDER_COLUMNS[order_by]

        def _query():
            query = self.db.query(StoredFile).filter(StoredFile.owner_id == owner_id)
            if folder_id is None:
                query = query.filter(StoredFile.folder_id.is_(None))
            elif folder_id is not ALL_FOLDERS:
                query = query.filter(StoredFile.folder_id == folder_id)

            total = query.count()
            if descending:
                ordering = (column.desc(), StoredFile.id.desc())
            else:
                ordering = (column.asc(), StoredFile.id.asc())
            rows = query.order_by(*ordering).offset(offset).limit(limit).all()
            return rows, total

        return self._read(_query, what="file listing")

    def get_all_by_owner(self, owner_id: str) -> List[StoredFile]:
        return self._read(
            lambda: self.db.query(StoredFile)
            .filter(StoredFile.owner_id == owner_id)
            .order_by(StoredFile.created_at.desc(), StoredFile.id.desc())
            .all(),
            what="file listing",
        )

    def search(
        self,
        owner_id: str,
        query: Optional[str] = None,
        types: Optional[List[str]] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: Optional[int] = 100,
    ) -> List[StoredFile]:
        """Filter an owner's files by name, type category and creation date.

        Tag filtering happens in the service; tags live in a JSON column that
        SQLite and PostgreSQL query differently.
        """
        def _query():
            q = self.db.query(StoredFile).filter(StoredFile.owner_id == owner_id)
            if query:
                q = q.filter(func.lower(StoredFile.name).contains(query.lower()))
            if types:
                clauses = []
                for type_name in types:
                    if type_name == "document":
                        clauses.extend(StoredFile.mime_type.contains(m) for m in DOCUMENT_MARKERS)
                        clauses.append(StoredFile.mime_type.startswith("text/"))
                    else:
                        clauses.extend(
                            StoredFile.mime_type.startswith(p) for p in TYPE_PREFIXES.get(type_name, ())
                        )
                if clauses:
                    q = q.filter(or_(*clauses))
            if date_from is not None:
                q = q.filter(StoredFile.created_at >= date_from)
            if date_to is not None:
                q = q.filter(StoredFile.created_at <= date_to)
            q = q.order_by(StoredFile.created_at.desc(), StoredFile.id.desc())
            if limit is not None:
                q = q.limit(limit)
            return q.all()

        return self._read(_query, what="file search")

    def get_by_object_ref(self, object_ref: str) -> Optional[StoredFile]:
        return self._read(
            lambda: self.db.query(StoredFile).filter(StoredFile.object_ref == object_ref).first(),
            what="file lookup by object",
        )

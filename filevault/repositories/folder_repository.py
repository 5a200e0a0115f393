"""Repository for folder database operations."""

from typing import List, Optional

from sqlalchemy import func

from ..exceptions import FolderNotFoundError
from ..models.file import StoredFile
from ..models.folder import Folder
from .base import BaseRepository


class FolderRepository(BaseRepository[Folder]):
    """Data access layer for folders."""

    model_class = Folder
    not_found_error = FolderNotFoundError

    def get_owned(self, folder_id: str, owner_id: str) -> Optional[Folder]:
        """Folder with this id owned by *owner_id*, or None."""
        return self._read(
            lambda: self.db.query(Folder)
            .filter(Folder.id == folder_id, Folder.owner_id == owner_id)
            .first(),
            what="folder lookup",
        )

    def get_children(self, parent_id: Optional[str], owner_id: Optional[str] = None) -> List[Folder]:
        """Direct children of *parent_id*. ``None`` means root-level folders.

        Root listing requires *owner_id*, otherwise every user's root folders
        would match ``parent_id IS NULL``.
        """
        def _query():
            query = self.db.query(Folder)
            if parent_id is None:
                query = query.filter(Folder.parent_id.is_(None))
            else:
                query = query.filter(Folder.parent_id == parent_id)
            if owner_id is not None:
                query = query.filter(Folder.owner_id == owner_id)
            return query.order_by(Folder.name, Folder.id).all()

        return self._read(_query, what="folder children")

    def get_all_by_owner(self, owner_id: str) -> List[Folder]:
        return self._read(
            lambda: self.db.query(Folder)
            .filter(Folder.owner_id == owner_id)
            .order_by(Folder.name, Folder.id)
            .all(),
            what="folder listing",
        )

    def search(self, owner_id: str, query: Optional[str] = None, limit: int = 100) -> List[Folder]:
        """Owner's folders whose name contains *query*, case-insensitively."""
        def _query():
            q = self.db.query(Folder).filter(Folder.owner_id == owner_id)
            if query:
                q = q.filter(func.lower(Folder.name).contains(query.lower()))
            return q.order_by(Folder.name, Folder.id).limit(limit).all()

        return self._read(_query, what="folder search")

    def count_children(self, folder_id: str) -> int:
        return self._read(
            lambda: self.db.query(Folder).filter(Folder.parent_id == folder_id).count(),
            what="folder child count",
        )

    def count_files(self, folder_id: str) -> int:
        return self._read(
            lambda: self.db.query(StoredFile).filter(StoredFile.folder_id == folder_id).count(),
            what="folder file count",
        )

    def get_files(self, folder_id: str) -> List[StoredFile]:
        """Files whose ``folder_id`` is exactly *folder_id*."""
        return self._read(
            lambda: self.db.query(StoredFile)
            .filter(StoredFile.folder_id == folder_id)
            .order_by(StoredFile.id)
            .all(),
            what="folder files",
        )

"""Deep module for all folder operations: CRUD, move, delete, and tree building.

Folders keep a materialized ``path`` (see ``models.folder``). Every operation
that changes a folder's name or parent rewrites the paths of its whole
subtree before committing, so readers never have to walk ancestors.

Subtree walks use explicit worklists instead of recursion, so tree depth is
bounded only by the database.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.object_store import ObjectStore
from ..exceptions import (
    FolderNotEmptyError,
    FolderNotFoundError,
    InvalidOperationError,
    UnauthorizedError,
    ValidationError,
)
from ..models.activity import ActivityAction, ResourceType
from ..models.folder import ROOT_PATH, Folder
from ..repositories.folder_repository import FolderRepository
from ..schemas.folder import FolderTreeNode
from . import activity_service
from .file_service import FileService

logger = logging.getLogger(__name__)

# Seeded for new accounts: (name, icon, color).
DEFAULT_FOLDERS = (
    ("Documents", "📄", "#3B82F6"),
    ("Images", "🖼️", "#8B5CF6"),
    ("Videos", "🎥", "#EF4444"),
    ("Music", "🎵", "#10B981"),
)


@dataclass
class FolderDeleteResult:
    folder_id: str
    folders_deleted: int
    files_deleted: int


def _clean_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Folder name cannot be empty", field="name")
    if "/" in name:
        raise ValidationError("Folder name cannot contain '/'", field="name")
    if len(name) > 255:
        raise ValidationError("Folder name is too long (max 255 characters)", field="name")
    return name


class FolderService:
    """All folder and tree operations behind a simple interface.

    Public methods:
        create_folder          -- new folder at root or under an owned parent
        get_folder             -- ownership-checked lookup
        list_children          -- direct children (None = root level)
        get_breadcrumb         -- ancestors from the root down to the folder
        get_tree               -- owner's full tree as nested FolderTreeNode
        rename_folder          -- rename and re-path descendants
        move_folder            -- re-parent with cycle check, re-path subtree
        update_appearance      -- color / icon
        delete_folder          -- empty folders, or whole subtree with cascade
        create_default_folders -- seed folders for a new account
    """

    def __init__(self, db: Session, store: Optional[ObjectStore] = None):
        self.db = db
        self.store = store
        self.folder_repo = FolderRepository(db)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_folder(
        self,
        name: str,
        parent_id: Optional[str],
        owner_id: str,
        color: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> Folder:
        """Create a folder. The parent, when given, must be owned by *owner_id*."""
        name = _clean_name(name)
        path = ROOT_PATH
        if parent_id is not None:
            parent = self.folder_repo.get_owned(parent_id, owner_id)
            if parent is None:
                raise FolderNotFoundError(parent_id)
            path = parent.full_path

        folder = Folder(
            name=name,
            parent_id=parent_id,
            owner_id=owner_id,
            path=path,
            color=color,
            icon=icon,
        )
        self.folder_repo.add(folder)
        self.folder_repo.commit()

        activity_service.log(
            self.db, owner_id, ActivityAction.FOLDER_CREATE, ResourceType.FOLDER,
            folder.id, folder.name, {"path": path},
        )
        return folder

    def get_folder(self, folder_id: str, actor_id: str) -> Folder:
        return self._get_owned_for_write(folder_id, actor_id)

    def list_children(self, owner_id: str, parent_id: Optional[str] = None) -> List[Folder]:
        """Direct children of *parent_id*; ``None`` lists root-level folders only."""
        if parent_id is not None and self.folder_repo.get_owned(parent_id, owner_id) is None:
            raise FolderNotFoundError(parent_id)
        return self.folder_repo.get_children(parent_id, owner_id=owner_id)

    def search_folders(self, owner_id: str, query: Optional[str] = None, limit: int = 100) -> List[Folder]:
        """Name-substring match over the owner's folders. A blank query lists them all."""
        return self.folder_repo.search(owner_id, (query or "").strip() or None, limit)

    def get_breadcrumb(self, folder_id: str, actor_id: str) -> List[Folder]:
        """Folders from the root down to *folder_id* inclusive."""
        folder = self._get_owned_for_write(folder_id, actor_id)
        chain = [folder]
        seen = {folder.id}
        current = folder
        while current.parent_id is not None:
            parent = self.folder_repo.get_by_id_optional(current.parent_id)
            if parent is None or parent.id in seen:
                logger.error("Broken ancestor chain", extra={"folder_id": folder_id})
                break
            seen.add(parent.id)
            chain.append(parent)
            current = parent
        chain.reverse()
        return chain

    def get_tree(self, owner_id: str) -> List[FolderTreeNode]:
        """The owner's folders as nested nodes, siblings sorted by name."""
        folders = self.folder_repo.get_all_by_owner(owner_id)
        nodes: Dict[str, FolderTreeNode] = {
            f.id: FolderTreeNode(id=f.id, name=f.name, path=f.full_path, color=f.color, icon=f.icon)
            for f in folders
        }
        roots: List[FolderTreeNode] = []
        # get_all_by_owner is name-ordered, so appending keeps siblings sorted.
        for f in folders:
            parent = nodes.get(f.parent_id) if f.parent_id else None
            if parent is None:
                roots.append(nodes[f.id])
            else:
                parent.children.append(nodes[f.id])
        return roots

    def rename_folder(self, folder_id: str, new_name: str, actor_id: str) -> Folder:
        """Rename a folder and recompute the path of every descendant.

        The rename and all path rewrites are committed together.
        """
        folder = self._get_owned_for_write(folder_id, actor_id)
        new_name = _clean_name(new_name)
        old_name = folder.name

        folder.name = new_name
        updated = self._repath_descendants(folder)
        self.folder_repo.commit(folder_id)

        logger.info(
            "Renamed folder",
            extra={"folder_id": folder_id, "descendants_updated": updated},
        )
        activity_service.log(
            self.db, actor_id, ActivityAction.FOLDER_RENAME, ResourceType.FOLDER,
            folder.id, new_name, {"old_name": old_name, "new_name": new_name},
        )
        return folder

    def move_folder(self, folder_id: str, new_parent_id: Optional[str], actor_id: str) -> Folder:
        """Move a folder under *new_parent_id* (``None`` = root).

        Raises InvalidOperationError when the target is the folder itself or
        one of its descendants. The tree is left unchanged in that case.
        """
        folder = self._get_owned_for_write(folder_id, actor_id)

        new_path = ROOT_PATH
        if new_parent_id is not None:
            new_parent = self.folder_repo.get_owned(new_parent_id, actor_id)
            if new_parent is None:
                raise FolderNotFoundError(new_parent_id)
            self._check_not_descendant(folder_id, new_parent)
            new_path = new_parent.full_path

        folder.parent_id = new_parent_id
        folder.path = new_path
        updated = self._repath_descendants(folder)
        self.folder_repo.commit(folder_id)

        logger.info(
            "Moved folder",
            extra={"folder_id": folder_id, "descendants_updated": updated},
        )
        activity_service.log(
            self.db, actor_id, ActivityAction.FOLDER_MOVE, ResourceType.FOLDER,
            folder.id, folder.name, {"destination": new_path},
        )
        return folder

    def update_appearance(
        self,
        folder_id: str,
        actor_id: str,
        color: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> Folder:
        """Set color and/or icon. Arguments left as ``None`` are unchanged."""
        folder = self._get_owned_for_write(folder_id, actor_id)
        if color is not None:
            folder.color = color
        if icon is not None:
            folder.icon = icon
        self.folder_repo.commit(folder_id)

        activity_service.log(
            self.db, actor_id, ActivityAction.FOLDER_UPDATE, ResourceType.FOLDER,
            folder.id, folder.name, {"color": folder.color, "icon": folder.icon},
        )
        return folder

    def delete_folder(self, folder_id: str, actor_id: str, cascade: bool = False) -> FolderDeleteResult:
        """Delete a folder.

        Without *cascade* the folder must have no child folders and no files.
        With *cascade* the subtree is deleted deepest folder first; for each
        folder its files go (object, then record) and then the folder row.

        Each folder is committed on its own. A failure partway leaves the
        folders already processed deleted and the rest intact.
        """
        folder = self._get_owned_for_write(folder_id, actor_id)
        folder_name = folder.name

        if not cascade:
            child_count = self.folder_repo.count_children(folder_id)
            file_count = self.folder_repo.count_files(folder_id)
            if child_count or file_count:
                raise FolderNotEmptyError(folder_id, child_count, file_count)
            self.folder_repo.delete(folder)
            self.folder_repo.commit(folder_id)
            result = FolderDeleteResult(folder_id=folder_id, folders_deleted=1, files_deleted=0)
        else:
            result = self._delete_subtree(folder, actor_id)

        logger.info(
            "Deleted folder",
            extra={
                "folder_id": folder_id,
                "folders_deleted": result.folders_deleted,
                "files_deleted": result.files_deleted,
            },
        )
        activity_service.log(
            self.db, actor_id, ActivityAction.FOLDER_DELETE, ResourceType.FOLDER,
            folder_id, folder_name,
            {"cascade": cascade, "folders": result.folders_deleted, "files": result.files_deleted},
        )
        return result

    def create_default_folders(self, owner_id: str) -> List[Folder]:
        return [
            self.create_folder(name, None, owner_id, color=color, icon=icon)
            for name, icon, color in DEFAULT_FOLDERS
        ]

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _get_owned_for_write(self, folder_id: str, actor_id: str) -> Folder:
        folder = self.folder_repo.get_by_id(folder_id)
        if folder.owner_id != actor_id:
            raise UnauthorizedError("You can only modify your own folders")
        return folder

    def _check_not_descendant(self, folder_id: str, new_parent: Folder) -> None:
        """Walk from *new_parent* up to the root; meeting *folder_id* means a cycle."""
        visited = set()
        current: Optional[Folder] = new_parent
        while current is not None:
            if current.id == folder_id:
                raise InvalidOperationError(
                    "Cannot move a folder into itself or one of its descendants",
                    details={"folder_id": folder_id, "target_id": new_parent.id},
                )
            if current.id in visited:
                raise InvalidOperationError(
                    "Folder hierarchy contains a cycle",
                    details={"folder_id": current.id},
                )
            visited.add(current.id)
            current = self.folder_repo.get_by_id_optional(current.parent_id)

    def _repath_descendants(self, folder: Folder) -> int:
        """Breadth-first rewrite of ``path`` below *folder*. Returns nodes touched.

        Each child's path depends only on its parent's already-updated values.
        Changes are left pending in the session for the caller to commit.
        """
        queue = deque([folder])
        updated = 0
        while queue:
            node = queue.popleft()
            for child in self.folder_repo.get_children(node.id):
                child.path = node.full_path
                queue.append(child)
                updated += 1
        return updated

    def _delete_subtree(self, root: Folder, actor_id: str) -> FolderDeleteResult:
        # Pre-order collection from an explicit stack; reversed, every folder
        # comes after all of its descendants.
        order: List[Folder] = []
        stack = [root]
        while stack:
            node = stack.pop()
            order.append(node)
            stack.extend(self.folder_repo.get_children(node.id))

        file_service = self._file_service()
        files_deleted = 0
        folders_deleted = 0
        for node in reversed(order):
            for stored in self.folder_repo.get_files(node.id):
                file_service.delete_file(stored.id, actor_id)
                files_deleted += 1
            self.folder_repo.delete(node)
            self.folder_repo.commit(node.id)
            folders_deleted += 1

        return FolderDeleteResult(
            folder_id=root.id, folders_deleted=folders_deleted, files_deleted=files_deleted
        )

    def _file_service(self) -> FileService:
        if self.store is None:
            raise RuntimeError("FolderService needs an object store to delete files")
        return FileService(self.db, self.store)

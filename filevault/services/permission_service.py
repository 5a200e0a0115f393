"""Permission vocabulary: pure functions, no database access.

This is the ONE place where permission names are defined. Owners hold every
permission; grants to anyone else (links and user shares) are limited to
``SHAREABLE_PERMISSIONS``. ``access_service`` decides who holds what; this
module only validates and compares permission sets.
"""

from typing import FrozenSet, Iterable, List

from ..exceptions import InvalidOperationError

VIEW = "view"
DOWNLOAD = "download"
DELETE = "delete"
SHARE = "share"

# Canonical order, used when storing and returning permission lists.
SHAREABLE_PERMISSIONS = (VIEW, DOWNLOAD)
OWNER_PERMISSIONS: FrozenSet[str] = frozenset({VIEW, DOWNLOAD, DELETE, SHARE})


def normalize_permissions(permissions: Iterable[str]) -> List[str]:
    """Validate a grant's permission set and return it in canonical order.

    Raises:
        InvalidOperationError: if the set is empty or names anything other
            than ``view`` / ``download``.
    """
    requested = {(p or "").strip().lower() for p in permissions}
    requested.discard("")
    if not requested:
        raise InvalidOperationError("A share needs at least one permission")

    unknown = sorted(requested - set(SHAREABLE_PERMISSIONS))
    if unknown:
        raise InvalidOperationError(
            f"Permissions not grantable by sharing: {', '.join(unknown)}",
            details={"allowed": list(SHAREABLE_PERMISSIONS), "rejected": unknown},
        )
    return [p for p in SHAREABLE_PERMISSIONS if p in requested]


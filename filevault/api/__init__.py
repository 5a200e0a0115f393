"""API routes."""

from .activity import router as activity_router
from .auth_routes import router as auth_router
from .files import router as files_router
from .folders import router as folders_router
from .objects import router as objects_router
from .public import router as public_router
from .search import router as search_router
from .shares import router as shares_router

__all__ = [
    "activity_router",
    "auth_router",
    "files_router",
    "folders_router",
    "objects_router",
    "public_router",
    "search_router",
    "shares_router",
]

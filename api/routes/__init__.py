"""API route handlers organized by domain."""

from .admins import router as admins_router
from .attachments import router as attachments_router
from .auth import router as auth_router
from .comments import router as comments_router
from .groups import router as groups_router
from .health import router as health_router
from .notebooks import router as notebooks_router
from .notes import router as notes_router
from .tags import router as tags_router
from .users import router as users_router

__all__ = [
    "admins_router",
    "attachments_router",
    "auth_router",
    "comments_router",
    "groups_router",
    "health_router",
    "notebooks_router",
    "notes_router",
    "tags_router",
    "users_router",
]

"""HTTP routers."""

from aiunk.api.admin import router as admin_router
from aiunk.api.auth import router as auth_router
from aiunk.api.conversations import router as conversations_router
from aiunk.api.health import router as health_router
from aiunk.api.progress import router as progress_router

__all__ = [
    "admin_router",
    "auth_router",
    "conversations_router",
    "health_router",
    "progress_router",
]

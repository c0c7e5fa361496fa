"""API routes."""

from .auth import router as auth_router
from .marketplace import admin_router, jobs_router, writer_router

__all__ = [
    "auth_router",
    "jobs_router",
    "writer_router",
    "admin_router",
]

"""Marketplace API routes for Inkwell."""

from .admin import router as admin_router
from .jobs import router as jobs_router
from .writer import router as writer_router

__all__ = ["jobs_router", "writer_router", "admin_router"]

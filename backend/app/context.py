"""Application context.

Every long-lived collaborator (settings, stores, identity provider, job
service) is built once in the FastAPI lifespan and kept on
``app.state.context``. Routes reach it through the ``Context`` dependency.
"""

from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, Request

from inkwell.marketplace.blobs import BlobStore, InMemoryBlobStore
from inkwell.marketplace.errors import DuplicateUserError
from inkwell.marketplace.identity import Role
from inkwell.marketplace.jobs.service import JobService
from inkwell.marketplace.jobs.storage import InMemoryJobStorage, JobStorage
from inkwell.marketplace.users import InMemoryUserStorage, User, UserStorage

from .auth import JWTIdentityProvider, generate_user_id, hash_password
from .config import Settings
from .logging_config import get_logger

logger = get_logger("context")

STORAGE_BACKENDS = ("supabase", "memory")


@dataclass
class AppContext:
    """Long-lived collaborators shared by every request."""

    settings: Settings
    identity: JWTIdentityProvider
    users: UserStorage
    jobs: JobStorage
    blobs: BlobStore
    service: JobService
    db: Optional[object] = None  # Supabase client when storage_backend == "supabase"

    @classmethod
    def create(cls, settings: Settings) -> "AppContext":
        """Build the context for the configured storage backend.

        Raises ValueError for an unknown backend, missing Supabase settings
        or invalid marketplace tunables.
        """
        config = settings.marketplace_config()

        if settings.storage_backend == "memory":
            db = None
            users: UserStorage = InMemoryUserStorage()
            jobs: JobStorage = InMemoryJobStorage()
            blobs: BlobStore = InMemoryBlobStore()
        elif settings.storage_backend == "supabase":
            from supabase import create_client

            from .storage import SupabaseBlobStore, SupabaseJobStorage, SupabaseUserStorage

            if not (settings.supabase_url and settings.supabase_secret_key):
                raise ValueError("SUPABASE_URL and SUPABASE_SECRET_KEY must be set")
            db = create_client(settings.supabase_url, settings.supabase_secret_key)
            users = SupabaseUserStorage(db)
            jobs = SupabaseJobStorage(db)
            blobs = SupabaseBlobStore(db, settings.supabase_url, settings.supabase_publishable_key)
        else:
            raise ValueError(
                f"Invalid storage backend: {settings.storage_backend}. Must be one of {STORAGE_BACKENDS}"
            )

        return cls(
            settings=settings,
            identity=JWTIdentityProvider(settings),
            users=users,
            jobs=jobs,
            blobs=blobs,
            service=JobService(jobs, blobs, config=config),
            db=db,
        )

    def startup(self) -> None:
        """Bootstrap the superadmin account if configured and missing."""
        email = self.settings.superadmin_email
        password = self.settings.superadmin_password
        if not (email and password):
            logger.warning("No superadmin configured (SUPERADMIN_EMAIL / SUPERADMIN_PASSWORD)")
            return
        if self.users.get_user_by_email(email) is not None:
            logger.debug("Superadmin already exists")
            return
        admin = User(
            id=generate_user_id(),
            email=email,
            password_hash=hash_password(password),
            role=Role.ADMIN,
            name=self.settings.superadmin_name,
        )
        try:
            self.users.save_user(admin)
        except DuplicateUserError:
            # Another worker bootstrapped it first
            return
        logger.info(f"Superadmin created | email={admin.email}")

    def shutdown(self) -> None:
        logger.info("Application context closed")


def get_context(request: Request) -> AppContext:
    """FastAPI dependency for the application context."""
    return request.app.state.context


# Type alias for dependency injection
Context = Annotated[AppContext, Depends(get_context)]

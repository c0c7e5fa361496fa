"""Configuration settings for Inkwell backend."""

from functools import lru_cache

from pydantic_settings import BaseSettings

from inkwell.marketplace.config import MarketplaceConfig


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Storage: "supabase" in deployment, "memory" for local development and tests
    storage_backend: str = "supabase"

    # Supabase
    supabase_url: str | None = None
    supabase_secret_key: str | None = None  # Backend/admin access
    supabase_publishable_key: str | None = None  # Client/public access, used for scoped signing

    # JWT
    jwt_secret_key: str  # Required - no default for security
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60

    # Superadmin bootstrapped at startup
    superadmin_email: str | None = None
    superadmin_password: str | None = None
    superadmin_name: str = "Administrator"

    # Marketplace
    matching_mode: str = "bidding"
    due_warning_days: int = 2
    duplicate_window_minutes: int = 5
    signed_url_ttl_seconds: int = 3600
    job_files_bucket: str = "job-files"
    submission_files_bucket: str = "submissions"
    max_upload_mb: int = 10
    scope_signed_urls_to_requester: bool = False

    # App
    debug: bool = False
    log_level: str = "INFO"
    # CORS: Allowed origins for cross-origin requests
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars not in model

    def marketplace_config(self) -> MarketplaceConfig:
        """Build the lifecycle engine config. Raises ValueError for bad values."""
        return MarketplaceConfig(
            due_warning_days=self.due_warning_days,
            duplicate_window_minutes=self.duplicate_window_minutes,
            signed_url_ttl_seconds=self.signed_url_ttl_seconds,
            matching_mode=self.matching_mode,
            job_files_bucket=self.job_files_bucket,
            submission_files_bucket=self.submission_files_bucket,
            max_upload_bytes=self.max_upload_mb * 1024 * 1024,
            sign_as_requester=self.scope_signed_urls_to_requester,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

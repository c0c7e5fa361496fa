"""Marketplace configuration."""

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import FrozenSet

MATCHING_BIDDING = "bidding"
MATCHING_APPLY = "apply"
MATCHING_MODES = frozenset({MATCHING_BIDDING, MATCHING_APPLY})

DEFAULT_CONTENT_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    }
)


@dataclass
class MarketplaceConfig:
    """Tunables for the job lifecycle engine.

    Attributes:
        due_warning_days: An assigned job becomes ``due`` this many days
            before its writer deadline.
        duplicate_window_minutes: Identical job posts from one client inside
            this window are rejected.
        writer_share_ratio: Fraction of the client budget paid to the writer.
        signed_url_ttl_seconds: Lifetime of download links.
        matching_mode: ``bidding`` (admin reference amount, writers bid an
            amount) or ``apply`` (writers apply, no amount).
        job_files_bucket: Bucket for client briefs.
        submission_files_bucket: Bucket for writer deliverables.
        allowed_content_types: MIME types accepted for uploads.
        max_upload_bytes: Upload size limit.
        sign_as_requester: Sign download links with the caller's token
            instead of the service credentials.
    """

    due_warning_days: int = 2
    duplicate_window_minutes: int = 5
    writer_share_ratio: Decimal = Decimal(1) / Decimal(3)
    signed_url_ttl_seconds: int = 3600
    matching_mode: str = MATCHING_BIDDING
    job_files_bucket: str = "job-files"
    submission_files_bucket: str = "submissions"
    allowed_content_types: FrozenSet[str] = field(default_factory=lambda: DEFAULT_CONTENT_TYPES)
    max_upload_bytes: int = 10 * 1024 * 1024
    sign_as_requester: bool = False

    def __post_init__(self):
        if self.matching_mode not in MATCHING_MODES:
            raise ValueError(
                f"Invalid matching mode: {self.matching_mode}. "
                f"Must be one of {sorted(MATCHING_MODES)}"
            )
        self.writer_share_ratio = Decimal(str(self.writer_share_ratio))
        if not (Decimal(0) < self.writer_share_ratio <= Decimal(1)):
            raise ValueError("Writer share ratio must be in (0, 1]")
        if self.due_warning_days < 0:
            raise ValueError("Due warning days cannot be negative")
        if self.duplicate_window_minutes < 0:
            raise ValueError("Duplicate window cannot be negative")
        if self.signed_url_ttl_seconds <= 0:
            raise ValueError("Signed URL TTL must be positive")
        if self.max_upload_bytes <= 0:
            raise ValueError("Max upload size must be positive")
        self.allowed_content_types = frozenset(self.allowed_content_types)

    @property
    def due_warning(self) -> timedelta:
        return timedelta(days=self.due_warning_days)

    @property
    def duplicate_window(self) -> timedelta:
        return timedelta(minutes=self.duplicate_window_minutes)

    @property
    def is_bidding(self) -> bool:
        return self.matching_mode == MATCHING_BIDDING

"""Pydantic models for API requests and responses."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

Role = Literal["client", "writer", "admin"]
JobStatus = Literal["posted", "assigned", "due", "late", "pending_approval", "completed", "cancelled"]
BidStatus = Literal["pending", "accepted", "rejected"]
SubmissionStatus = Literal["pending", "approved", "rejected"]

# =============================================================================
# Auth Models
# =============================================================================

class SignupRequest(BaseModel):
    """Client self-registration."""
    name: str = Field(..., min_length=1, max_length=120)
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=8, max_length=128)
    phone: str | None = Field(None, max_length=32)


class LoginRequest(BaseModel):
    """Email/password login."""
    email: str
    password: str


class WriterCreate(BaseModel):
    """Admin request to provision a writer account."""
    name: str = Field(..., min_length=1, max_length=120)
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=8, max_length=128)
    phone: str | None = Field(None, max_length=32)


class TokenResponse(BaseModel):
    """JWT token response."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user_id: str
    role: Role


class UserInfo(BaseModel):
    """Public user information."""
    id: str
    email: str
    role: Role
    name: str | None = None
    phone: str | None = None
    created_at: datetime | None = None


class RoleResponse(BaseModel):
    """Role of the authenticated caller."""
    user_id: str
    role: Role


# =============================================================================
# Job Models
# =============================================================================

class JobResponse(BaseModel):
    """Job as seen by the caller.

    Writers do not see the client budget or client deadline; clients do
    not see the writer share or writer-facing terms.
    """
    id: str
    client_id: str
    writer_id: str | None = None
    description: str
    status: JobStatus
    assignment_type: str
    quantity: Decimal
    language: str
    urgency: str
    subject: str | None = None
    spacing: str
    level: str
    citation_style: str
    number_of_sources: int
    file_url: str | None = None
    file_extension: str | None = None
    budget: Decimal | None = None
    deadline: datetime | None = None
    writer_share: Decimal | None = None
    reference_amount: Decimal | None = None
    expected_return_date: datetime | None = None
    pending_submission_id: str | None = None
    approved_submission_id: str | None = None
    approved_submission_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    assigned_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None


class JobListResponse(BaseModel):
    """List of jobs."""
    jobs: list[JobResponse]
    total: int


class BidTermsRequest(BaseModel):
    """Admin request to open a job to bids."""
    reference_amount: Decimal = Field(..., gt=0)
    expected_return_date: datetime


class BidCreate(BaseModel):
    """Writer bid. ``amount`` is required in bidding mode and omitted in apply mode."""
    amount: Decimal | None = None


class BidResponse(BaseModel):
    """Bid details response."""
    id: str
    job_id: str
    writer_id: str
    amount: Decimal | None = None
    status: BidStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BidListResponse(BaseModel):
    """List of bids for a job."""
    bids: list[BidResponse]
    total: int


class TransitionResponse(BaseModel):
    """One entry of a job's status history."""
    id: str
    job_id: str
    from_status: JobStatus | None = None
    to_status: JobStatus
    actor_id: str
    reason: str | None = None
    metadata: dict = Field(default_factory=dict)
    created_at: datetime | None = None


class JobHistoryResponse(BaseModel):
    """Status history of a job."""
    job_id: str
    transitions: list[TransitionResponse]


# =============================================================================
# Submission Models
# =============================================================================

class SubmissionResponse(BaseModel):
    """Submission details with a signed download link."""
    id: str
    job_id: str
    writer_id: str
    file_url: str | None = None
    file_extension: str | None = None
    status: SubmissionStatus
    feedback: str | None = None
    submitted_at: datetime | None = None
    reviewed_at: datetime | None = None
    reviewed_by: str | None = None


class SubmissionListResponse(BaseModel):
    """List of submissions."""
    submissions: list[SubmissionResponse]
    total: int


class ReviewRequest(BaseModel):
    """Admin decision on a pending submission."""
    decision: Literal["approve", "reject"]
    feedback: str | None = Field(None, max_length=5000)


class ReviewResponse(BaseModel):
    """Outcome of a review: the updated job and submission."""
    job: JobResponse
    submission: SubmissionResponse

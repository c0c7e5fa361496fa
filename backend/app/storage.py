"""Supabase-backed storage for the marketplace.

Single-row writes go through PostgREST. Compound state changes call the
Postgres functions in ``supabase/migrations/001_marketplace.sql`` via
``rpc()`` so each one runs in one database transaction.
"""

from datetime import datetime
from typing import Any, List, Optional, Sequence, Tuple

from postgrest.exceptions import APIError
from supabase import Client, ClientOptions, create_client

from inkwell.marketplace.errors import (
    AlreadyAppliedError,
    BidNotFoundError,
    BidNotPendingError,
    DuplicateUserError,
    InvalidTransitionError,
    JobNotFoundError,
    JobNotOpenError,
    MarketplaceError,
    PreconditionViolation,
    SigningError,
    StorageError,
    SubmissionNotFoundError,
)
from inkwell.marketplace.identity import Role
from inkwell.marketplace.jobs.models import (
    WORKING_STATUSES,
    Bid,
    BidStatus,
    Job,
    JobStateTransition,
    JobStatus,
    Submission,
    SubmissionStatus,
    check_transition,
)
from inkwell.marketplace.jobs.storage import normalize_description
from inkwell.marketplace.users import User

from .logging_config import get_logger

logger = get_logger("storage")

# =============================================================================
# Table Names
# =============================================================================

USERS_TABLE = "users"
JOBS_TABLE = "jobs"
BIDS_TABLE = "bids"
SUBMISSIONS_TABLE = "submissions"
JOB_TRANSITIONS_TABLE = "job_state_transitions"

UNIQUE_VIOLATION = "23505"

# Error keys raised by the marketplace Postgres functions
RPC_ERRORS = {
    "bid_not_found": BidNotFoundError,
    "job_not_found": JobNotFoundError,
    "submission_not_found": SubmissionNotFoundError,
    "bid_not_pending": BidNotPendingError,
    "job_not_open": JobNotOpenError,
    "submission_not_pending": PreconditionViolation,
    "invalid_transition": InvalidTransitionError,
}


def _values(statuses) -> list[str]:
    if isinstance(statuses, (str, JobStatus, BidStatus, SubmissionStatus)):
        statuses = [statuses]
    return [s.value if hasattr(s, "value") else s for s in statuses]


def _rpc_error(e: APIError) -> MarketplaceError:
    message = e.message or ""
    for key, error_cls in RPC_ERRORS.items():
        if key in message:
            return error_cls(key.replace("_", " ").capitalize())
    return StorageError(f"Database error: {message}")


def _first(result) -> Optional[dict]:
    return result.data[0] if result.data else None


def _execute(query, what: str, conflict: Optional[MarketplaceError] = None):
    """Run a PostgREST query, mapping APIError to marketplace errors."""
    try:
        return query.execute()
    except APIError as e:
        if conflict is not None and e.code == UNIQUE_VIOLATION:
            raise conflict from e
        logger.warning(f"{what} failed | code={e.code} | message={e.message}")
        raise _rpc_error(e) from e


class SupabaseJobStorage:
    """JobStorage backed by Supabase (PostgREST + Postgres functions)."""

    def __init__(self, db: Client):
        self.db = db

    def _rpc(self, fn: str, params: dict) -> Any:
        return _execute(self.db.rpc(fn, params), f"RPC {fn}").data

    # === Jobs ===

    def save_job(self, job: Job) -> str:
        _execute(self.db.table(JOBS_TABLE).insert(job.to_dict()), "save_job")
        return job.id

    def get_job(self, job_id: str) -> Optional[Job]:
        row = _first(_execute(self.db.table(JOBS_TABLE).select("*").eq("id", job_id), "get_job"))
        return Job.from_dict(row) if row else None

    def list_jobs(
        self,
        statuses: Optional[Sequence[JobStatus]] = None,
        client_id: Optional[str] = None,
        writer_id: Optional[str] = None,
        has_reference_amount: Optional[bool] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Job]:
        query = self.db.table(JOBS_TABLE).select("*")

        if statuses is not None:
            query = query.in_("status", _values(statuses))
        if client_id is not None:
            query = query.eq("client_id", client_id)
        if writer_id is not None:
            query = query.eq("writer_id", writer_id)
        if has_reference_amount is True:
            query = query.not_.is_("reference_amount", "null")
        elif has_reference_amount is False:
            query = query.is_("reference_amount", "null")

        query = query.order("created_at", desc=True).range(offset, offset + limit - 1)
        return [Job.from_dict(row) for row in _execute(query, "list_jobs").data or []]

    def find_recent_job(self, client_id: str, description: str, since: datetime) -> Optional[Job]:
        result = _execute(
            self.db.table(JOBS_TABLE)
            .select("*")
            .eq("client_id", client_id)
            .gte("created_at", since.isoformat()),
            "find_recent_job",
        )
        wanted = normalize_description(description)
        for row in result.data or []:
            if normalize_description(row["description"]) == wanted:
                return Job.from_dict(row)
        return None

    def update_job(self, job: Job, expected_status: Optional[str] = None) -> bool:
        if expected_status is not None and job.status != expected_status:
            check_transition(expected_status, job.status)
        data = job.to_dict()
        data.pop("id")
        query = self.db.table(JOBS_TABLE).update(data).eq("id", job.id)
        # Atomic update: only succeeds if status matches expected
        if expected_status is not None:
            query = query.eq("status", expected_status)
        result = _execute(query, "update_job")
        if not result.data and expected_status is not None:
            logger.warning(f"Job CAS miss | id={job.id} | expected={expected_status}")
        return bool(result.data)

    # === Bids ===

    def save_bid(self, bid: Bid) -> str:
        _execute(
            self.db.table(BIDS_TABLE).insert(bid.to_dict()),
            "save_bid",
            conflict=AlreadyAppliedError("Writer has already bid on this job"),
        )
        return bid.id

    def get_bid(self, bid_id: str) -> Optional[Bid]:
        row = _first(_execute(self.db.table(BIDS_TABLE).select("*").eq("id", bid_id), "get_bid"))
        return Bid.from_dict(row) if row else None

    def list_bids(
        self,
        job_id: Optional[str] = None,
        writer_id: Optional[str] = None,
        status: Optional[BidStatus] = None,
        limit: int = 100,
    ) -> List[Bid]:
        query = self.db.table(BIDS_TABLE).select("*")
        if job_id is not None:
            query = query.eq("job_id", job_id)
        if writer_id is not None:
            query = query.eq("writer_id", writer_id)
        if status is not None:
            query = query.in_("status", _values(status))
        result = _execute(query.order("created_at").limit(limit), "list_bids")
        return [Bid.from_dict(row) for row in result.data or []]

    def assign_bid(self, bid_id: str, now: datetime) -> Job:
        row = self._rpc("assign_bid", {"p_bid_id": bid_id, "p_now": now.isoformat()})
        return Job.from_dict(row)

    # === Submissions ===

    def get_submission(self, submission_id: str) -> Optional[Submission]:
        row = _first(_execute(self.db.table(SUBMISSIONS_TABLE).select("*").eq("id", submission_id), "get_submission"))
        return Submission.from_dict(row) if row else None

    def list_submissions(
        self,
        job_id: Optional[str] = None,
        writer_id: Optional[str] = None,
        status: Optional[SubmissionStatus] = None,
        limit: int = 100,
    ) -> List[Submission]:
        query = self.db.table(SUBMISSIONS_TABLE).select("*")
        if job_id is not None:
            query = query.eq("job_id", job_id)
        if writer_id is not None:
            query = query.eq("writer_id", writer_id)
        if status is not None:
            query = query.in_("status", _values(status))
        result = _execute(query.order("submitted_at").limit(limit), "list_submissions")
        return [Submission.from_dict(row) for row in result.data or []]

    def record_submission(
        self,
        submission: Submission,
        expected_statuses: Sequence[str],
        now: datetime,
    ) -> Job:
        row = self._rpc(
            "record_submission",
            {
                "p_submission": submission.to_dict(),
                "p_expected_statuses": _values(expected_statuses),
                "p_now": now.isoformat(),
            },
        )
        return Job.from_dict(row)

    def resolve_submission(
        self,
        submission_id: str,
        approve: bool,
        feedback: Optional[str],
        resume_status: str,
        reviewer_id: str,
        now: datetime,
    ) -> Tuple[Job, Submission]:
        if not approve and resume_status not in WORKING_STATUSES:
            raise InvalidTransitionError(
                f"Cannot resume a rejected job as {resume_status}", to_status=resume_status
            )
        data = self._rpc(
            "resolve_submission",
            {
                "p_submission_id": submission_id,
                "p_approve": approve,
                "p_feedback": feedback,
                "p_resume_status": resume_status,
                "p_reviewer_id": reviewer_id,
                "p_now": now.isoformat(),
            },
        )
        return Job.from_dict(data["job"]), Submission.from_dict(data["submission"])

    # === Transitions ===

    def save_transition(self, transition: JobStateTransition) -> str:
        _execute(self.db.table(JOB_TRANSITIONS_TABLE).insert(transition.to_dict()), "save_transition")
        return transition.id

    def get_transitions(self, job_id: str) -> List[JobStateTransition]:
        result = _execute(
            self.db.table(JOB_TRANSITIONS_TABLE).select("*").eq("job_id", job_id).order("created_at"),
            "get_transitions",
        )
        return [JobStateTransition.from_dict(row) for row in result.data or []]


class SupabaseUserStorage:
    """UserStorage backed by the Supabase ``users`` table."""

    def __init__(self, db: Client):
        self.db = db

    def save_user(self, user: User) -> str:
        _execute(
            self.db.table(USERS_TABLE).insert(user.to_dict()),
            "save_user",
            conflict=DuplicateUserError("Email already exists"),
        )
        return user.id

    def get_user(self, user_id: str) -> Optional[User]:
        row = _first(_execute(self.db.table(USERS_TABLE).select("*").eq("id", user_id), "get_user"))
        return User.from_dict(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        row = _first(
            _execute(
                self.db.table(USERS_TABLE).select("*").eq("email", email.strip().lower()),
                "get_user_by_email",
            )
        )
        return User.from_dict(row) if row else None

    def list_users(self, role: Optional[Role] = None, limit: int = 100) -> List[User]:
        query = self.db.table(USERS_TABLE).select("*")
        if role is not None:
            query = query.eq("role", role.value if isinstance(role, Role) else role)
        result = _execute(query.order("created_at").limit(limit), "list_users")
        return [User.from_dict(row) for row in result.data or []]


class SupabaseBlobStore:
    """BlobStore backed by Supabase Storage buckets.

    ``sign`` with an ``access_token`` builds a short-lived client carrying
    the caller's bearer token, so bucket policies apply to the requester.
    """

    def __init__(self, db: Client, url: Optional[str] = None, publishable_key: Optional[str] = None):
        self.db = db
        self.url = url
        self.publishable_key = publishable_key

    def _scoped_client(self, access_token: str) -> Client:
        if not (self.url and self.publishable_key):
            raise SigningError("Scoped signing requires SUPABASE_URL and SUPABASE_PUBLISHABLE_KEY")
        options = ClientOptions(headers={"Authorization": f"Bearer {access_token}"})
        return create_client(self.url, self.publishable_key, options=options)

    def upload(self, bucket: str, name: str, data: bytes, content_type: str) -> str:
        try:
            self.db.storage.from_(bucket).upload(name, data, {"content-type": content_type})
        except Exception as e:
            raise StorageError(f"Upload to {bucket} failed: {e}") from e
        return f"{bucket}/{name}"

    def sign(
        self,
        bucket: str,
        name: str,
        ttl_seconds: int,
        access_token: Optional[str] = None,
    ) -> str:
        try:
            client = self._scoped_client(access_token) if access_token else self.db
            result = client.storage.from_(bucket).create_signed_url(name, ttl_seconds)
        except SigningError:
            raise
        except Exception as e:
            raise SigningError(f"Signing {bucket}/{name} failed: {e}") from e
        url = (result.get("signedURL") or result.get("signedUrl")) if result else None
        if not url:
            raise SigningError(f"No signed URL returned for {bucket}/{name}")
        return url

    def delete(self, bucket: str, name: str) -> None:
        try:
            self.db.storage.from_(bucket).remove([name])
        except Exception as e:
            raise StorageError(f"Delete from {bucket} failed: {e}") from e

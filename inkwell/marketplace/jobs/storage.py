"""
Jobs storage layer.

Provides persistence for jobs, bids, submissions and the transition audit
log. Compound state changes (assigning a bid, recording a submission,
resolving a submission) are single storage operations so that a backend
can run each one as one transaction.
"""

import copy
import dataclasses
import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional, Protocol, Sequence, Tuple

from inkwell.marketplace.errors import (
    AlreadyAppliedError,
    BidNotFoundError,
    BidNotPendingError,
    InvalidTransitionError,
    JobNotFoundError,
    JobNotOpenError,
    PreconditionViolation,
    SubmissionNotFoundError,
)
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
from inkwell.types import utc_now

logger = logging.getLogger(__name__)


def _status_values(statuses) -> Optional[set]:
    if statuses is None:
        return None
    if isinstance(statuses, (str, JobStatus, BidStatus, SubmissionStatus)):
        statuses = [statuses]
    return {s.value if hasattr(s, "value") else s for s in statuses}


def normalize_description(text: str) -> str:
    """Collapse whitespace so trivially different posts compare equal."""
    return " ".join(text.split())


class JobStorage(Protocol):
    """Protocol for job persistence backends."""

    # Jobs
    def save_job(self, job: Job) -> str:
        """Save a new job. Returns the job ID."""
        ...

    def get_job(self, job_id: str) -> Optional[Job]:
        """Get a job by ID."""
        ...

    def list_jobs(
        self,
        statuses: Optional[Sequence[JobStatus]] = None,
        client_id: Optional[str] = None,
        writer_id: Optional[str] = None,
        has_reference_amount: Optional[bool] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Job]:
        """List jobs with optional filters, newest first."""
        ...

    def find_recent_job(self, client_id: str, description: str, since: datetime) -> Optional[Job]:
        """Find a job by the same client with the same description created after ``since``."""
        ...

    def update_job(self, job: Job, expected_status: Optional[str] = None) -> bool:
        """Update a job.

        With ``expected_status`` the write only happens if the stored status
        still equals it (compare-and-set). Returns False when the job is
        missing or the stored status moved on.

        A changed status must be an edge of VALID_JOB_TRANSITIONS, otherwise
        InvalidTransitionError.
        """
        ...

    # Bids
    def save_bid(self, bid: Bid) -> str:
        """Save a bid. Raises AlreadyAppliedError for a second bid by the same writer."""
        ...

    def get_bid(self, bid_id: str) -> Optional[Bid]:
        ...

    def list_bids(
        self,
        job_id: Optional[str] = None,
        writer_id: Optional[str] = None,
        status: Optional[BidStatus] = None,
        limit: int = 100,
    ) -> List[Bid]:
        ...

    def assign_bid(self, bid_id: str, now: datetime) -> Job:
        """Accept a bid, assign its writer and reject every sibling bid, atomically.

        Raises BidNotFoundError, JobNotFoundError, BidNotPendingError or
        JobNotOpenError. Returns the updated job.
        """
        ...

    # Submissions
    def get_submission(self, submission_id: str) -> Optional[Submission]:
        ...

    def list_submissions(
        self,
        job_id: Optional[str] = None,
        writer_id: Optional[str] = None,
        status: Optional[SubmissionStatus] = None,
        limit: int = 100,
    ) -> List[Submission]:
        ...

    def record_submission(
        self,
        submission: Submission,
        expected_statuses: Sequence[str],
        now: datetime,
    ) -> Job:
        """Insert a pending submission and move its job to pending_approval, atomically.

        The job must hold one of ``expected_statuses`` and have no pending
        submission, otherwise InvalidTransitionError.
        """
        ...

    def resolve_submission(
        self,
        submission_id: str,
        approve: bool,
        feedback: Optional[str],
        resume_status: str,
        reviewer_id: str,
        now: datetime,
    ) -> Tuple[Job, Submission]:
        """Approve or reject the pending submission of a job, atomically.

        The job must be awaiting review of this submission, either
        pending_approval or derived late since. Approval completes the job.
        Rejection returns it to ``resume_status``, which must be a legal edge
        from the current status; InvalidTransitionError otherwise.
        """
        ...

    # Transitions (audit log)
    def save_transition(self, transition: JobStateTransition) -> str:
        """Save a state transition record. Returns the transition ID."""
        ...

    def get_transitions(self, job_id: str) -> List[JobStateTransition]:
        """Get all state transitions for a job, oldest first."""
        ...


class InMemoryJobStorage:
    """In-memory job storage for testing and local development.

    Records are copied on the way in and out, so callers mutating a
    returned object never change stored state behind the store's back.
    """

    def __init__(self):
        self._jobs: dict[str, Job] = {}
        self._bids: dict[str, Bid] = {}
        self._submissions: dict[str, Submission] = {}
        self._transitions: dict[str, list[JobStateTransition]] = {}  # job_id -> list
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Hold the store lock; restore the previous state if the block raises."""
        with self._lock:
            snapshot = copy.deepcopy((self._jobs, self._bids, self._submissions, self._transitions))
            try:
                yield
            except BaseException:
                self._jobs, self._bids, self._submissions, self._transitions = snapshot
                raise

    # === Jobs ===

    def save_job(self, job: Job) -> str:
        with self._lock:
            self._jobs[job.id] = copy.deepcopy(job)
            self._transitions.setdefault(job.id, [])
        return job.id

    def get_job(self, job_id: str) -> Optional[Job]:
        job = self._jobs.get(job_id)
        return copy.deepcopy(job) if job else None

    def list_jobs(
        self,
        statuses: Optional[Sequence[JobStatus]] = None,
        client_id: Optional[str] = None,
        writer_id: Optional[str] = None,
        has_reference_amount: Optional[bool] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Job]:
        with self._lock:
            jobs = list(self._jobs.values())

        status_vals = _status_values(statuses)
        if status_vals is not None:
            jobs = [j for j in jobs if j.status in status_vals]
        if client_id is not None:
            jobs = [j for j in jobs if j.client_id == client_id]
        if writer_id is not None:
            jobs = [j for j in jobs if j.writer_id == writer_id]
        if has_reference_amount is not None:
            jobs = [j for j in jobs if (j.reference_amount is not None) == has_reference_amount]

        # Sort by created_at desc
        jobs.sort(key=lambda j: j.created_at or utc_now(), reverse=True)

        return [copy.deepcopy(j) for j in jobs[offset : offset + limit]]

    def find_recent_job(self, client_id: str, description: str, since: datetime) -> Optional[Job]:
        wanted = normalize_description(description)
        with self._lock:
            for job in self._jobs.values():
                if (
                    job.client_id == client_id
                    and job.created_at is not None
                    and job.created_at >= since
                    and normalize_description(job.description) == wanted
                ):
                    return copy.deepcopy(job)
        return None

    def update_job(self, job: Job, expected_status: Optional[str] = None) -> bool:
        with self._lock:
            current = self._jobs.get(job.id)
            if current is None:
                return False
            if expected_status is not None and current.status != expected_status:
                logger.debug(
                    f"Job CAS miss | id={job.id} | expected={expected_status} | actual={current.status}"
                )
                return False
            if job.status != current.status:
                check_transition(current.status, job.status)
            self._jobs[job.id] = copy.deepcopy(job)
        return True

    # === Bids ===

    def save_bid(self, bid: Bid) -> str:
        with self._lock:
            if any(
                b.job_id == bid.job_id and b.writer_id == bid.writer_id
                for b in self._bids.values()
            ):
                raise AlreadyAppliedError("Writer has already bid on this job")
            self._bids[bid.id] = copy.deepcopy(bid)
        return bid.id

    def get_bid(self, bid_id: str) -> Optional[Bid]:
        bid = self._bids.get(bid_id)
        return copy.deepcopy(bid) if bid else None

    def list_bids(
        self,
        job_id: Optional[str] = None,
        writer_id: Optional[str] = None,
        status: Optional[BidStatus] = None,
        limit: int = 100,
    ) -> List[Bid]:
        with self._lock:
            bids = list(self._bids.values())

        if job_id is not None:
            bids = [b for b in bids if b.job_id == job_id]
        if writer_id is not None:
            bids = [b for b in bids if b.writer_id == writer_id]
        status_vals = _status_values(status)
        if status_vals is not None:
            bids = [b for b in bids if b.status in status_vals]

        bids.sort(key=lambda b: b.created_at or utc_now())

        return [copy.deepcopy(b) for b in bids[:limit]]

    def assign_bid(self, bid_id: str, now: datetime) -> Job:
        with self.transaction():
            bid = self._bids.get(bid_id)
            if bid is None:
                raise BidNotFoundError(f"Bid {bid_id} not found")
            job = self._jobs.get(bid.job_id)
            if job is None:
                raise JobNotFoundError(f"Job {bid.job_id} not found")
            if not bid.is_pending:
                raise BidNotPendingError(f"Bid is already {bid.status}")
            if not job.is_open:
                raise JobNotOpenError(f"Job is {job.status}, cannot assign a writer")

            bid.status = BidStatus.ACCEPTED.value
            bid.updated_at = now
            for other in self._bids.values():
                if other.job_id == job.id and other.id != bid.id and other.is_pending:
                    other.status = BidStatus.REJECTED.value
                    other.updated_at = now

            job = job.transition_to(
                JobStatus.ASSIGNED, writer_id=bid.writer_id, assigned_at=now, updated_at=now
            )
            self._jobs[job.id] = job
            return copy.deepcopy(job)

    # === Submissions ===

    def get_submission(self, submission_id: str) -> Optional[Submission]:
        submission = self._submissions.get(submission_id)
        return copy.deepcopy(submission) if submission else None

    def list_submissions(
        self,
        job_id: Optional[str] = None,
        writer_id: Optional[str] = None,
        status: Optional[SubmissionStatus] = None,
        limit: int = 100,
    ) -> List[Submission]:
        with self._lock:
            subs = list(self._submissions.values())

        if job_id is not None:
            subs = [s for s in subs if s.job_id == job_id]
        if writer_id is not None:
            subs = [s for s in subs if s.writer_id == writer_id]
        status_vals = _status_values(status)
        if status_vals is not None:
            subs = [s for s in subs if s.status in status_vals]

        subs.sort(key=lambda s: s.submitted_at or utc_now())

        return [copy.deepcopy(s) for s in subs[:limit]]

    def record_submission(
        self,
        submission: Submission,
        expected_statuses: Sequence[str],
        now: datetime,
    ) -> Job:
        with self.transaction():
            job = self._jobs.get(submission.job_id)
            if job is None:
                raise JobNotFoundError(f"Job {submission.job_id} not found")
            if job.status not in _status_values(expected_statuses):
                raise InvalidTransitionError(
                    f"Cannot submit work for a job that is {job.status}",
                    from_status=job.status,
                    to_status=JobStatus.PENDING_APPROVAL.value,
                )
            if job.pending_submission_id is not None:
                raise InvalidTransitionError(
                    "A submission is already awaiting review",
                    from_status=job.status,
                    to_status=JobStatus.PENDING_APPROVAL.value,
                )

            stored = copy.deepcopy(submission)
            if stored.submitted_at is None:
                stored.submitted_at = now
            job = job.transition_to(
                JobStatus.PENDING_APPROVAL, pending_submission_id=stored.id, updated_at=now
            )
            self._submissions[stored.id] = stored
            self._jobs[job.id] = job
            return copy.deepcopy(job)

    def resolve_submission(
        self,
        submission_id: str,
        approve: bool,
        feedback: Optional[str],
        resume_status: str,
        reviewer_id: str,
        now: datetime,
    ) -> Tuple[Job, Submission]:
        with self.transaction():
            submission = self._submissions.get(submission_id)
            if submission is None:
                raise SubmissionNotFoundError(f"Submission {submission_id} not found")
            if not submission.is_pending:
                raise PreconditionViolation(f"Submission is already {submission.status}")
            job = self._jobs.get(submission.job_id)
            if job is None:
                raise JobNotFoundError(f"Job {submission.job_id} not found")
            if not job.awaiting_review or job.pending_submission_id != submission.id:
                raise InvalidTransitionError(
                    "Submission is not the one awaiting review for this job",
                    from_status=job.status,
                )

            if not approve and resume_status not in WORKING_STATUSES:
                raise InvalidTransitionError(
                    f"Cannot resume a rejected job as {resume_status}",
                    from_status=job.status,
                    to_status=resume_status,
                )

            if approve:
                job = job.transition_to(
                    JobStatus.COMPLETED,
                    approved_submission_id=submission.id,
                    pending_submission_id=None,
                    completed_at=now,
                    updated_at=now,
                )
            elif job.status == JobStatus.LATE.value and resume_status == job.status:
                # Already late: rejection keeps the status, only the submission clears
                job = dataclasses.replace(job, pending_submission_id=None, updated_at=now)
            else:
                job = job.transition_to(resume_status, pending_submission_id=None, updated_at=now)

            submission.reviewed_at = now
            submission.reviewed_by = reviewer_id
            submission.feedback = feedback
            submission.status = (
                SubmissionStatus.APPROVED.value if approve else SubmissionStatus.REJECTED.value
            )
            self._jobs[job.id] = job
            return copy.deepcopy(job), copy.deepcopy(submission)

    # === Transitions ===

    def save_transition(self, transition: JobStateTransition) -> str:
        with self._lock:
            self._transitions.setdefault(transition.job_id, []).append(copy.deepcopy(transition))
        return transition.id

    def get_transitions(self, job_id: str) -> List[JobStateTransition]:
        with self._lock:
            transitions = list(self._transitions.get(job_id, []))
        transitions.sort(key=lambda t: t.created_at or utc_now())
        return [copy.deepcopy(t) for t in transitions]

"""
Job service.

Business logic for the job lifecycle: posting, editing and cancelling
jobs, bid terms, bidding and assignment, work submission and review, and
lazy time-based status derivation. Every status change is checked against
``VALID_JOB_TRANSITIONS`` and appended to the transition audit log.
"""

import dataclasses
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from inkwell.logging_config import log_marketplace_event, log_transition
from inkwell.marketplace.blobs import BlobStore
from inkwell.marketplace.config import MarketplaceConfig
from inkwell.marketplace.errors import (
    DuplicateJobError,
    InvalidTransitionError,
    JobNotFoundError,
    PreconditionViolation,
    StorageError,
    SubmissionNotFoundError,
    UnauthorizedError,
    ValidationError,
)
from inkwell.marketplace.identity import SYSTEM_ACTOR, Identity, Role, require_role
from inkwell.marketplace.jobs.arbitration import BidArbitrator
from inkwell.marketplace.jobs.files import FileBinder, FileUpload
from inkwell.marketplace.jobs.models import (
    WORKING_STATUSES,
    Bid,
    BidStatus,
    Job,
    JobStateTransition,
    JobStatus,
    Submission,
    SubmissionStatus,
    compute_writer_share,
)
from inkwell.marketplace.jobs.status import derive_status, resume_status
from inkwell.marketplace.jobs.storage import JobStorage
from inkwell.types import parse_datetime, to_money, utc_now

logger = logging.getLogger(__name__)

# A lost compare-and-set re-reads and re-derives at most this many times
MAX_DERIVE_ATTEMPTS = 3

ACTIVE_CLIENT_STATUSES = (
    JobStatus.POSTED,
    JobStatus.ASSIGNED,
    JobStatus.DUE,
    JobStatus.LATE,
    JobStatus.PENDING_APPROVAL,
)
ACTIVE_WRITER_STATUSES = (
    JobStatus.ASSIGNED,
    JobStatus.DUE,
    JobStatus.LATE,
    JobStatus.PENDING_APPROVAL,
)

# Classification fields a client may change while the job is posted
EDITABLE_FIELDS = frozenset(
    {
        "description",
        "assignment_type",
        "quantity",
        "language",
        "urgency",
        "subject",
        "spacing",
        "level",
        "citation_style",
        "number_of_sources",
    }
)

# Hidden from writers: what the client pays and when the client expects it
CLIENT_ONLY_FIELDS = ("budget", "deadline")
# Hidden from clients: what the writer is paid and the writer-facing terms
WRITER_ONLY_FIELDS = ("writer_share", "reference_amount", "expected_return_date")


class JobService:
    """Service for job marketplace operations.

    Ownership and role checks use the caller's ``Identity``. Time comes
    from ``clock`` so derivation is deterministic under test.
    """

    def __init__(
        self,
        storage: JobStorage,
        blobs: BlobStore,
        config: Optional[MarketplaceConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.storage = storage
        self.config = config or MarketplaceConfig()
        self.clock = clock or utc_now
        self.files = FileBinder(blobs, self.config)
        self.arbitrator = BidArbitrator(storage, self.config, self.clock)

    # =========================================================================
    # Internals
    # =========================================================================

    def _record_transition(
        self,
        job_id: str,
        from_status: Optional[str],
        to_status: str,
        actor_id: str,
        reason: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> JobStateTransition:
        transition = JobStateTransition(
            id=str(uuid.uuid4()),
            job_id=job_id,
            from_status=from_status,
            to_status=to_status,
            actor_id=actor_id,
            reason=reason,
            metadata=metadata or {},
            created_at=self.clock(),
        )
        self.storage.save_transition(transition)
        log_transition(job_id, from_status, to_status, actor=actor_id, reason=reason)
        return transition

    def _load_job(self, job_id: str) -> Job:
        job = self.storage.get_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        return job

    def _refresh(self, job: Job) -> Job:
        """Apply status derivation to a loaded job and persist any change."""
        for _ in range(MAX_DERIVE_ATTEMPTS):
            now = self.clock()
            target = derive_status(job.status, job.expected_return_date, now, self.config.due_warning)
            if target == job.status:
                return job

            previous = job.status
            updated = job.transition_to(target, updated_at=now)
            if self.storage.update_job(updated, expected_status=previous):
                self._record_transition(
                    job.id,
                    previous,
                    target,
                    SYSTEM_ACTOR,
                    reason="deadline reached" if target == JobStatus.LATE.value else "deadline approaching",
                )
                logger.info(f"Status derived | job={job.id} | {previous} -> {target}")
                return updated

            # Someone else moved the job; re-read and derive again
            job = self._load_job(job.id)
        return job

    def _require_owner(self, job: Job, actor: Identity, action: str) -> None:
        if job.client_id != actor.user_id:
            raise UnauthorizedError(f"Only the client can {action} this job")

    def _require_posted(self, job: Job, action: str, to_status: Optional[JobStatus] = None) -> None:
        if not job.is_open:
            raise InvalidTransitionError(
                f"Cannot {action} a job that is {job.status}",
                from_status=job.status,
                to_status=to_status.value if to_status else None,
            )

    def _to_validation(self, build: Callable[[], Job]) -> Job:
        try:
            return build()
        except ValueError as e:
            raise ValidationError(str(e)) from e

    def _check_deadline(self, deadline: datetime, now: datetime, label: str = "Deadline") -> datetime:
        """Return the deadline as aware UTC (naive means UTC). Rejects past dates."""
        if deadline is None:
            raise ValidationError(f"{label} is required")
        try:
            deadline = parse_datetime(deadline)
        except ValueError as e:
            raise ValidationError(f"{label} is not a valid date") from e
        if deadline < now:
            raise ValidationError(f"{label} must be in the future")
        return deadline

    # =========================================================================
    # Job Creation and Editing
    # =========================================================================

    def create_job(
        self,
        actor: Identity,
        description: str,
        budget: Any,
        deadline: datetime,
        assignment_type: str,
        quantity: Any,
        language: str,
        urgency: Optional[str] = None,
        subject: Optional[str] = None,
        spacing: Optional[str] = None,
        level: Optional[str] = None,
        citation_style: Optional[str] = None,
        number_of_sources: Optional[int] = None,
        file: Optional[FileUpload] = None,
    ) -> Job:
        """Post a new job.

        Raises:
            UnauthorizedError: Caller is not a client
            ValidationError: Invalid fields or file
            DuplicateJobError: Same description posted moments ago
            StorageError: File could not be stored
        """
        require_role(actor, Role.CLIENT)
        now = self.clock()
        deadline = self._check_deadline(deadline, now)

        optional = {
            "urgency": urgency,
            "subject": subject,
            "spacing": spacing,
            "level": level,
            "citation_style": citation_style,
            "number_of_sources": number_of_sources,
        }

        def build() -> Job:
            amount = to_money(budget)
            return Job(
                id=str(uuid.uuid4()),
                client_id=actor.user_id,
                description=description,
                budget=amount,
                writer_share=compute_writer_share(amount, self.config.writer_share_ratio),
                deadline=deadline,
                assignment_type=assignment_type,
                quantity=quantity,
                language=language,
                created_at=now,
                updated_at=now,
                **{k: v for k, v in optional.items() if v is not None},
            )

        job = self._to_validation(build)

        recent = self.storage.find_recent_job(
            actor.user_id, job.description, now - self.config.duplicate_window
        )
        if recent is not None:
            raise DuplicateJobError("An identical job was posted moments ago")

        stored = None
        if file is not None:
            self.files.validate(file)
            stored = self.files.store(self.config.job_files_bucket, file, now, actor.user_id)
            job.file_name = stored.name
            job.file_extension = stored.extension

        try:
            self.storage.save_job(job)
        except Exception:
            if stored is not None:
                self.files.discard_quietly(stored)
            raise

        self._record_transition(job.id, None, JobStatus.POSTED.value, actor.user_id, reason="posted")
        logger.info(f"Job created | id={job.id} | client={actor.user_id} | budget={job.budget}")
        return job

    def edit_job(
        self,
        actor: Identity,
        job_id: str,
        deadline: Optional[datetime] = None,
        file: Optional[FileUpload] = None,
        **changes: Any,
    ) -> Job:
        """Edit a posted job.

        ``changes`` may hold any of ``EDITABLE_FIELDS``. A replacement file
        is stored first, the record updated, and the old object deleted
        last; if that delete fails the record and new object are rolled
        back and StorageError is raised.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot edit fields: {sorted(unknown)}")
        changes = {k: v for k, v in changes.items() if v is not None}

        job = self._load_job(job_id)
        self._require_owner(job, actor, "edit")
        self._require_posted(job, "edit")

        now = self.clock()
        if deadline is not None:
            deadline = self._check_deadline(deadline, now)
            changes["deadline"] = deadline
            if job.expected_return_date == job.deadline or job.expected_return_date > deadline:
                # Writer deadline follows the client deadline unless the admin set an earlier one
                changes["expected_return_date"] = deadline

        updated = self._to_validation(lambda: dataclasses.replace(job, updated_at=now, **changes))

        new_file = None
        if file is not None:
            self.files.validate(file)
            new_file = self.files.store(self.config.job_files_bucket, file, now, actor.user_id)
            updated.file_name = new_file.name
            updated.file_extension = new_file.extension

        try:
            saved = self.storage.update_job(updated, expected_status=JobStatus.POSTED.value)
        except Exception:
            if new_file is not None:
                self.files.discard_quietly(new_file)
            raise
        if not saved:
            if new_file is not None:
                self.files.discard_quietly(new_file)
            current = self._load_job(job_id)
            raise InvalidTransitionError(
                f"Cannot edit a job that is {current.status}", from_status=current.status
            )

        if new_file is not None and job.file_name:
            try:
                self.files.discard(self.config.job_files_bucket, job.file_name)
            except StorageError:
                logger.error(f"Edit rolled back, old file not deleted | job={job_id}")
                self.storage.update_job(job, expected_status=JobStatus.POSTED.value)
                self.files.discard_quietly(new_file)
                raise

        log_marketplace_event("job_edited", f"job={job_id[:8]}... | fields={sorted(changes)}", actor=actor.user_id)
        logger.info(f"Job edited | id={job_id} | fields={sorted(changes)} | file={'yes' if file else 'no'}")
        return updated

    def cancel_job(self, actor: Identity, job_id: str) -> Job:
        """Cancel a posted job and delete its file.

        The owning client or an admin may cancel. A failed file delete
        aborts the cancel. If the job moves on between the delete and the
        status write, its reference to the deleted file is cleared.
        """
        job = self._load_job(job_id)
        if not actor.is_admin:
            self._require_owner(job, actor, "cancel")
        self._require_posted(job, "cancel", JobStatus.CANCELLED)

        if job.file_name:
            self.files.discard(self.config.job_files_bucket, job.file_name)

        now = self.clock()
        previous = job.status
        cancelled = job.transition_to(
            JobStatus.CANCELLED,
            file_name=None,
            file_extension=None,
            cancelled_at=now,
            updated_at=now,
        )
        if not self.storage.update_job(cancelled, expected_status=previous):
            current = self._load_job(job_id)
            logger.warning(f"Cancel lost race after file delete | job={job_id} | status={current.status}")
            if job.file_name and current.file_name == job.file_name:
                detached = dataclasses.replace(current, file_name=None, file_extension=None, updated_at=now)
                if not self.storage.update_job(detached, expected_status=current.status):
                    logger.error(f"Dangling file reference | job={job_id} | file={job.file_name}")
            raise InvalidTransitionError(
                f"Cannot cancel a job that is {current.status}",
                from_status=current.status,
                to_status=JobStatus.CANCELLED.value,
            )

        self._record_transition(job_id, previous, cancelled.status, actor.user_id, reason="cancelled")
        logger.info(f"Job cancelled | id={job_id} | by={actor.user_id}")
        return cancelled

    # =========================================================================
    # Bid Terms, Bids and Assignment
    # =========================================================================

    def set_bid_terms(
        self,
        actor: Identity,
        job_id: str,
        reference_amount: Any,
        expected_return_date: datetime,
    ) -> Job:
        """Set the reference amount and writer deadline, opening the job to bids."""
        require_role(actor, Role.ADMIN)
        if not self.config.is_bidding:
            raise PreconditionViolation("Bid terms are only used in bidding mode")

        job = self._load_job(job_id)
        self._require_posted(job, "set terms for")

        now = self.clock()
        try:
            amount = to_money(reference_amount)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if amount <= 0:
            raise ValidationError("Reference amount must be positive")
        expected_return_date = self._check_deadline(expected_return_date, now, label="Writer deadline")
        if expected_return_date > job.deadline:
            raise ValidationError("Writer deadline cannot be after the client deadline")

        updated = dataclasses.replace(
            job,
            reference_amount=amount,
            expected_return_date=expected_return_date,
            updated_at=now,
        )
        if not self.storage.update_job(updated, expected_status=JobStatus.POSTED.value):
            current = self._load_job(job_id)
            raise InvalidTransitionError(
                f"Cannot set terms for a job that is {current.status}", from_status=current.status
            )

        log_marketplace_event(
            "bid_terms", f"job={job_id[:8]}... | amount={amount}", actor=actor.user_id
        )
        logger.info(f"Bid terms set | job={job_id} | amount={amount}")
        return updated

    def place_bid(self, actor: Identity, job_id: str, amount: Any = None) -> Bid:
        """Bid on (or apply for) a posted job as a writer."""
        require_role(actor, Role.WRITER)
        bid = self.arbitrator.place_bid(job_id, actor.user_id, amount)
        log_marketplace_event("bid", f"job={job_id[:8]}... | amount={bid.amount}", actor=actor.user_id)
        return bid

    def assign_writer(self, actor: Identity, bid_id: str) -> Job:
        """Accept a bid, assigning its writer and rejecting the rest."""
        require_role(actor, Role.ADMIN)
        job = self.arbitrator.assign_writer(bid_id)
        self._record_transition(
            job.id,
            JobStatus.POSTED.value,
            JobStatus.ASSIGNED.value,
            actor.user_id,
            reason="bid accepted",
            metadata={"bid_id": bid_id, "writer_id": job.writer_id},
        )
        return self._refresh(job)

    # =========================================================================
    # Submissions
    # =========================================================================

    def submit_work(self, actor: Identity, job_id: str, file: Optional[FileUpload]) -> Submission:
        """Submit completed work for review.

        The file is stored first; the submission and the job's move to
        pending_approval are recorded together. If recording fails the
        stored object is deleted.
        """
        require_role(actor, Role.WRITER)
        if file is None:
            raise ValidationError("A file is required to submit work")

        job = self.get_job(job_id)
        if job.writer_id != actor.user_id:
            raise UnauthorizedError("Only the assigned writer can submit work")
        accepted = self.storage.list_bids(job_id=job_id, writer_id=actor.user_id, status=BidStatus.ACCEPTED)
        if not accepted:
            raise UnauthorizedError("Only the assigned writer can submit work")
        if not job.accepts_submissions:
            raise InvalidTransitionError(
                f"Cannot submit work for a job that is {job.status}"
                + (" with a submission awaiting review" if job.pending_submission_id else ""),
                from_status=job.status,
                to_status=JobStatus.PENDING_APPROVAL.value,
            )
        self.files.validate(file)

        now = self.clock()
        stored = self.files.store(self.config.submission_files_bucket, file, now, actor.user_id)
        submission = Submission(
            id=str(uuid.uuid4()),
            job_id=job_id,
            writer_id=actor.user_id,
            file_name=stored.name,
            file_extension=stored.extension,
            submitted_at=now,
        )
        try:
            updated = self.storage.record_submission(submission, sorted(WORKING_STATUSES), now)
        except Exception:
            self.files.discard_quietly(stored)
            raise

        self._record_transition(
            job_id,
            job.status,
            updated.status,
            actor.user_id,
            reason="work submitted",
            metadata={"submission_id": submission.id},
        )
        logger.info(f"Work submitted | job={job_id} | submission={submission.id}")
        return submission

    def review_submission(
        self,
        actor: Identity,
        submission_id: str,
        approve: bool,
        feedback: Optional[str] = None,
    ) -> Tuple[Job, Submission]:
        """Approve or reject a pending submission.

        Approval completes the job. Rejection records the feedback and puts
        the job back to assigned, due or late depending on its deadline, so
        the writer can resubmit. A job that went late while awaiting review
        is reviewed from late.
        """
        require_role(actor, Role.ADMIN)
        submission = self.storage.get_submission(submission_id)
        if submission is None:
            raise SubmissionNotFoundError(f"Submission {submission_id} not found")
        if not submission.is_pending:
            raise PreconditionViolation(f"Submission is already {submission.status}")
        if not approve and not (feedback or "").strip():
            raise ValidationError("Feedback is required when rejecting a submission")

        job = self._refresh(self._load_job(submission.job_id))
        previous = job.status
        now = self.clock()
        back_to = resume_status(job.expected_return_date, now, self.config.due_warning)
        job, submission = self.storage.resolve_submission(
            submission_id,
            approve=approve,
            feedback=feedback,
            resume_status=back_to,
            reviewer_id=actor.user_id,
            now=now,
        )

        if job.status != previous:
            self._record_transition(
                job.id,
                previous,
                job.status,
                actor.user_id,
                reason="submission approved" if approve else feedback,
                metadata={"submission_id": submission_id},
            )
        else:
            log_marketplace_event(
                "submission_rejected", f"job={job.id[:8]}... | status={job.status}", actor=actor.user_id
            )
        logger.info(f"Submission reviewed | job={job.id} | submission={submission_id} | approved={approve}")
        return job, submission

    # =========================================================================
    # Queries
    # =========================================================================

    def derive_status(self, job_id: str) -> Job:
        """Bring a job's status up to date with the clock and return it."""
        return self._refresh(self._load_job(job_id))

    def get_job(self, job_id: str, actor: Optional[Identity] = None) -> Job:
        """Get a job by ID, derived to the current time.

        With ``actor`` the job must be visible to them: admins see all,
        clients their own jobs, writers jobs assigned to them or open ones.
        """
        job = self.derive_status(job_id)
        if actor is None or actor.is_admin:
            return job
        if actor.is_client and job.client_id == actor.user_id:
            return job
        if actor.is_writer and (job.writer_id == actor.user_id or job.is_open):
            return job
        raise UnauthorizedError("Not allowed to view this job")

    def _refreshed(self, jobs: List[Job], statuses: Optional[Sequence[JobStatus]] = None) -> List[Job]:
        jobs = [self._refresh(j) for j in jobs]
        if statuses is not None:
            wanted = {s.value for s in statuses}
            jobs = [j for j in jobs if j.status in wanted]
        return jobs

    def get_jobs_for_client(self, client_id: str, completed: bool = False, limit: int = 100) -> List[Job]:
        """A client's jobs: in progress (default) or completed."""
        statuses = (JobStatus.COMPLETED,) if completed else ACTIVE_CLIENT_STATUSES
        return self._refreshed(self.storage.list_jobs(statuses=statuses, client_id=client_id, limit=limit))

    def get_jobs_for_writer(self, writer_id: str, completed: bool = False, limit: int = 100) -> List[Job]:
        """A writer's assigned jobs: in progress (default) or completed."""
        statuses = (JobStatus.COMPLETED,) if completed else ACTIVE_WRITER_STATUSES
        return self._refreshed(self.storage.list_jobs(statuses=statuses, writer_id=writer_id, limit=limit))

    def get_available_jobs(self, writer_id: str, limit: int = 100) -> List[Job]:
        """Posted jobs open to bids that the writer has not bid on yet."""
        jobs = self.storage.list_jobs(
            statuses=[JobStatus.POSTED],
            has_reference_amount=True if self.config.is_bidding else None,
            limit=limit,
        )
        already = {b.job_id for b in self.storage.list_bids(writer_id=writer_id, limit=10000)}
        return [j for j in jobs if j.id not in already]

    def get_jobs_awaiting_terms(self, limit: int = 100) -> List[Job]:
        """Posted jobs the admin has not opened to bids yet."""
        if not self.config.is_bidding:
            return []
        return self.storage.list_jobs(statuses=[JobStatus.POSTED], has_reference_amount=False, limit=limit)

    def get_jobs_with_pending_bids(self, limit: int = 100) -> List[Job]:
        """Posted jobs with at least one pending bid."""
        job_ids = {b.job_id for b in self.storage.list_bids(status=BidStatus.PENDING, limit=10000)}
        jobs = self.storage.list_jobs(statuses=[JobStatus.POSTED], limit=10000)
        return [j for j in jobs if j.id in job_ids][:limit]

    def get_bids_for_job(self, job_id: str) -> List[Bid]:
        self._load_job(job_id)
        return self.storage.list_bids(job_id=job_id)

    def get_pending_submissions(self, limit: int = 100) -> List[Submission]:
        return self.storage.list_submissions(status=SubmissionStatus.PENDING, limit=limit)

    def get_submissions_for_job(self, actor: Identity, job_id: str) -> List[Submission]:
        """Every submission for a job, oldest first, with review feedback.

        Admins see all of them; the assigned writer sees their own.
        """
        job = self._load_job(job_id)
        if actor.is_admin:
            return self.storage.list_submissions(job_id=job_id)
        if actor.is_writer and job.writer_id == actor.user_id:
            return self.storage.list_submissions(job_id=job_id, writer_id=actor.user_id)
        raise UnauthorizedError("Not allowed to view submissions for this job")

    def get_job_history(self, job_id: str) -> List[JobStateTransition]:
        """Get the status history of a job, oldest first."""
        self._load_job(job_id)
        return self.storage.get_transitions(job_id)

    # =========================================================================
    # Presentation
    # =========================================================================

    def _access_token(self, actor: Optional[Identity]) -> Optional[str]:
        if actor is not None and self.config.sign_as_requester:
            return actor.token
        return None

    def present_job(self, job: Job, actor: Optional[Identity] = None) -> Dict[str, Any]:
        """Serialize a job for a caller, replacing the object name with a signed URL.

        The owning client and admins also get ``approved_submission_url``,
        a signed link to the delivered work of a completed job.
        """
        data = job.to_dict()
        data.pop("file_name")
        data["file_url"] = self.files.signed_url(
            self.config.job_files_bucket, job.file_name, self._access_token(actor)
        )
        data["approved_submission_url"] = None
        if job.approved_submission_id and (
            actor is None or actor.is_admin or actor.user_id == job.client_id
        ):
            approved = self.storage.get_submission(job.approved_submission_id)
            if approved is not None:
                data["approved_submission_url"] = self.files.signed_url(
                    self.config.submission_files_bucket, approved.file_name, self._access_token(actor)
                )
        if actor is not None and actor.is_writer:
            for key in CLIENT_ONLY_FIELDS:
                data.pop(key, None)
        elif actor is not None and actor.is_client:
            for key in WRITER_ONLY_FIELDS:
                data.pop(key, None)
        return data

    def present_submission(self, submission: Submission, actor: Optional[Identity] = None) -> Dict[str, Any]:
        """Serialize a submission with a signed URL for its file."""
        data = submission.to_dict()
        data.pop("file_name")
        data["file_url"] = self.files.signed_url(
            self.config.submission_files_bucket, submission.file_name, self._access_token(actor)
        )
        return data

"""Job marketplace data models.

Jobs move through a closed set of statuses. The allowed edges live in
``VALID_JOB_TRANSITIONS``; nothing outside that table is a legal move, and
every status write goes through ``check_transition``.

    posted -> assigned -> due -> late -> pending_approval -> completed
       \\-> cancelled                    (rejection returns to assigned/due/late)

A job awaiting review whose deadline passes becomes ``late`` with its
submission still pending; approving that submission completes it.

Monetary values are Decimal, quantized to cents.
"""

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional, Set

from inkwell.marketplace.errors import InvalidTransitionError
from inkwell.types import format_datetime, parse_datetime, to_money

MAX_DESCRIPTION_LENGTH = 20000
MAX_FEEDBACK_LENGTH = 5000


class JobStatus(str, Enum):
    """Job lifecycle status."""

    POSTED = "posted"  # Awaiting admin terms / bids
    ASSIGNED = "assigned"  # Writer confirmed
    DUE = "due"  # Assigned, deadline inside the warning window
    LATE = "late"  # Deadline passed
    PENDING_APPROVAL = "pending_approval"  # Work submitted, awaiting review
    COMPLETED = "completed"  # Terminal
    CANCELLED = "cancelled"  # Terminal


class BidStatus(str, Enum):
    """Bid/application status."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class SubmissionStatus(str, Enum):
    """Submission review status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Urgency(str, Enum):
    NORMAL = "Normal"
    URGENT = "Urgent"


class Spacing(str, Enum):
    SINGLE = "Single"
    DOUBLE = "Double"


class AcademicLevel(str, Enum):
    HIGH_SCHOOL = "High School"
    UNDERGRADUATE = "Undergraduate"
    MASTERS = "Masters"
    PHD = "PhD"


class Language(str, Enum):
    ENGLISH_US = "English (US)"
    ENGLISH_UK = "English (UK)"


class CitationStyle(str, Enum):
    APA = "APA"
    MLA = "MLA"
    CHICAGO = "Chicago"
    HARVARD = "Harvard"


VALID_JOB_TRANSITIONS: Dict[JobStatus, Set[JobStatus]] = {
    JobStatus.POSTED: {JobStatus.ASSIGNED, JobStatus.CANCELLED},
    JobStatus.ASSIGNED: {JobStatus.DUE, JobStatus.LATE, JobStatus.PENDING_APPROVAL},
    JobStatus.DUE: {JobStatus.LATE, JobStatus.PENDING_APPROVAL},
    # late -> completed only while a submission is pending review
    JobStatus.LATE: {JobStatus.PENDING_APPROVAL, JobStatus.COMPLETED},
    JobStatus.PENDING_APPROVAL: {
        JobStatus.COMPLETED,
        JobStatus.ASSIGNED,
        JobStatus.DUE,
        JobStatus.LATE,
    },
    JobStatus.COMPLETED: set(),
    JobStatus.CANCELLED: set(),
}

TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED.value, JobStatus.CANCELLED.value})

# Statuses in which the assigned writer may submit work
WORKING_STATUSES = frozenset(
    {JobStatus.ASSIGNED.value, JobStatus.DUE.value, JobStatus.LATE.value}
)


def _enum_value(value: Any, enum_cls: type, label: str) -> str:
    """Normalize an enum member or raw string, rejecting unknown values."""
    if isinstance(value, enum_cls):
        return value.value
    valid = [e.value for e in enum_cls]
    if value not in valid:
        raise ValueError(f"Invalid {label}: {value}. Must be one of {valid}")
    return value


def compute_writer_share(budget: Any, ratio: Any = Decimal(1) / Decimal(3)) -> Decimal:
    """Writer payout for a client budget, rounded to cents."""
    return to_money(to_money(budget) * Decimal(str(ratio)))


# Statuses a job with a pending submission can be reviewed from
REVIEWABLE_STATUSES = frozenset({JobStatus.PENDING_APPROVAL.value, JobStatus.LATE.value})


def _status_value(status: Any) -> str:
    return status.value if isinstance(status, JobStatus) else str(status)


def can_transition(from_status: str, to_status: str) -> bool:
    """Check if a status transition is valid."""
    try:
        return JobStatus(to_status) in VALID_JOB_TRANSITIONS[JobStatus(from_status)]
    except ValueError:
        return False


def check_transition(from_status: Any, to_status: Any) -> JobStatus:
    """Return ``to_status`` as a JobStatus.

    Raises:
        InvalidTransitionError: The edge is not in VALID_JOB_TRANSITIONS
    """
    from_value, to_value = _status_value(from_status), _status_value(to_status)
    if not can_transition(from_value, to_value):
        raise InvalidTransitionError(
            f"Cannot move a job from {from_value} to {to_value}",
            from_status=from_value,
            to_status=to_value,
        )
    return JobStatus(to_value)


@dataclass
class Job:
    """A writing job posted by a client.

    ``deadline`` is the client's expected-return date. ``expected_return_date``
    is the writer-facing deadline; it starts equal to ``deadline`` and the
    admin may move it earlier while the job is posted. Status derivation runs
    against the writer-facing deadline.

    ``writer_share`` is fixed when the job is created.
    """

    id: str
    client_id: str
    description: str
    budget: Decimal
    deadline: datetime
    assignment_type: str
    quantity: Decimal
    language: str
    writer_id: Optional[str] = None
    expected_return_date: Optional[datetime] = None
    writer_share: Optional[Decimal] = None
    reference_amount: Optional[Decimal] = None
    urgency: str = Urgency.NORMAL.value
    subject: Optional[str] = None
    spacing: str = Spacing.DOUBLE.value
    level: str = AcademicLevel.UNDERGRADUATE.value
    citation_style: str = CitationStyle.APA.value
    number_of_sources: int = 0
    file_name: Optional[str] = None
    file_extension: Optional[str] = None
    status: str = JobStatus.POSTED.value
    pending_submission_id: Optional[str] = None
    approved_submission_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    def __post_init__(self):
        self.description = (self.description or "").strip()
        if not self.description:
            raise ValueError("Description cannot be empty")
        if len(self.description) > MAX_DESCRIPTION_LENGTH:
            raise ValueError(f"Description too long (max {MAX_DESCRIPTION_LENGTH} chars)")

        self.budget = to_money(self.budget)
        if self.budget <= 0:
            raise ValueError("Budget must be positive")
        if self.writer_share is None:
            self.writer_share = compute_writer_share(self.budget)
        else:
            self.writer_share = to_money(self.writer_share)
        if self.reference_amount is not None:
            self.reference_amount = to_money(self.reference_amount)
            if self.reference_amount <= 0:
                raise ValueError("Reference amount must be positive")

        self.assignment_type = (self.assignment_type or "").strip()
        if not self.assignment_type:
            raise ValueError("Assignment type is required")
        try:
            self.quantity = Decimal(str(self.quantity))
        except InvalidOperation as e:
            raise ValueError(f"Invalid quantity: {self.quantity!r}") from e
        if not self.quantity.is_finite() or self.quantity <= 0:
            raise ValueError("Quantity must be positive")
        if self.number_of_sources is None:
            self.number_of_sources = 0
        if self.number_of_sources < 0:
            raise ValueError("Number of sources cannot be negative")

        self.language = _enum_value(self.language, Language, "language")
        self.urgency = _enum_value(self.urgency, Urgency, "urgency")
        self.spacing = _enum_value(self.spacing, Spacing, "spacing")
        self.level = _enum_value(self.level, AcademicLevel, "level")
        self.citation_style = _enum_value(self.citation_style, CitationStyle, "citation style")
        self.status = _enum_value(self.status, JobStatus, "status")

        if self.deadline is None:
            raise ValueError("Deadline is required")
        if self.expected_return_date is None:
            self.expected_return_date = self.deadline
        if self.expected_return_date > self.deadline:
            raise ValueError("Writer deadline cannot be after the client deadline")

    @property
    def status_enum(self) -> JobStatus:
        return JobStatus(self.status)

    @property
    def is_open(self) -> bool:
        """Check if the job is still posted (editable, cancellable, biddable)."""
        return self.status_enum is JobStatus.POSTED

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return not self.is_terminal

    @property
    def accepts_submissions(self) -> bool:
        return self.status in WORKING_STATUSES and self.pending_submission_id is None

    @property
    def awaiting_review(self) -> bool:
        return self.pending_submission_id is not None and self.status in REVIEWABLE_STATUSES

    def can_transition_to(self, new_status: JobStatus) -> bool:
        """Check if transition to new status is valid."""
        return new_status in VALID_JOB_TRANSITIONS.get(self.status_enum, set())

    def transition_to(self, new_status: Any, **changes: Any) -> "Job":
        """Return a copy of the job moved to ``new_status``.

        Raises InvalidTransitionError for an edge outside the table.
        """
        target = check_transition(self.status, new_status)
        return dataclasses.replace(self, status=target.value, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "client_id": self.client_id,
            "writer_id": self.writer_id,
            "description": self.description,
            "budget": str(self.budget),
            "writer_share": str(self.writer_share),
            "reference_amount": str(self.reference_amount) if self.reference_amount is not None else None,
            "deadline": format_datetime(self.deadline),
            "expected_return_date": format_datetime(self.expected_return_date),
            "assignment_type": self.assignment_type,
            "quantity": str(self.quantity),
            "language": self.language,
            "urgency": self.urgency,
            "subject": self.subject,
            "spacing": self.spacing,
            "level": self.level,
            "citation_style": self.citation_style,
            "number_of_sources": self.number_of_sources,
            "file_name": self.file_name,
            "file_extension": self.file_extension,
            "status": self.status,
            "pending_submission_id": self.pending_submission_id,
            "approved_submission_id": self.approved_submission_id,
            "created_at": format_datetime(self.created_at),
            "updated_at": format_datetime(self.updated_at),
            "assigned_at": format_datetime(self.assigned_at),
            "completed_at": format_datetime(self.completed_at),
            "cancelled_at": format_datetime(self.cancelled_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Job":
        return cls(
            id=data["id"],
            client_id=data["client_id"],
            writer_id=data.get("writer_id"),
            description=data["description"],
            budget=data["budget"],
            writer_share=data.get("writer_share"),
            reference_amount=data.get("reference_amount"),
            deadline=parse_datetime(data["deadline"]),
            expected_return_date=parse_datetime(data.get("expected_return_date")),
            assignment_type=data["assignment_type"],
            quantity=data["quantity"],
            language=data["language"],
            urgency=data.get("urgency") or Urgency.NORMAL.value,
            subject=data.get("subject"),
            spacing=data.get("spacing") or Spacing.DOUBLE.value,
            level=data.get("level") or AcademicLevel.UNDERGRADUATE.value,
            citation_style=data.get("citation_style") or CitationStyle.APA.value,
            number_of_sources=data.get("number_of_sources") or 0,
            file_name=data.get("file_name"),
            file_extension=data.get("file_extension"),
            status=data.get("status", JobStatus.POSTED.value),
            pending_submission_id=data.get("pending_submission_id"),
            approved_submission_id=data.get("approved_submission_id"),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
            assigned_at=parse_datetime(data.get("assigned_at")),
            completed_at=parse_datetime(data.get("completed_at")),
            cancelled_at=parse_datetime(data.get("cancelled_at")),
        )


@dataclass
class Bid:
    """A writer's bid (or plain application) for a job."""

    id: str
    job_id: str
    writer_id: str
    amount: Optional[Decimal] = None
    status: str = BidStatus.PENDING.value
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.status = _enum_value(self.status, BidStatus, "status")
        if self.amount is not None:
            self.amount = to_money(self.amount)
            if self.amount <= 0:
                raise ValueError("Bid amount must be positive")

    @property
    def is_pending(self) -> bool:
        return self.status == BidStatus.PENDING.value

    @property
    def is_accepted(self) -> bool:
        return self.status == BidStatus.ACCEPTED.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "writer_id": self.writer_id,
            "amount": str(self.amount) if self.amount is not None else None,
            "status": self.status,
            "created_at": format_datetime(self.created_at),
            "updated_at": format_datetime(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Bid":
        return cls(
            id=data["id"],
            job_id=data["job_id"],
            writer_id=data["writer_id"],
            amount=data.get("amount"),
            status=data.get("status", BidStatus.PENDING.value),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
        )


@dataclass
class Submission:
    """A writer's delivered work for a job."""

    id: str
    job_id: str
    writer_id: str
    file_name: str
    file_extension: Optional[str] = None
    status: str = SubmissionStatus.PENDING.value
    feedback: Optional[str] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None

    def __post_init__(self):
        if not self.file_name:
            raise ValueError("Submission requires a stored file")
        self.status = _enum_value(self.status, SubmissionStatus, "status")
        if self.feedback is not None:
            self.feedback = self.feedback.strip() or None
        if self.feedback and len(self.feedback) > MAX_FEEDBACK_LENGTH:
            raise ValueError(f"Feedback too long (max {MAX_FEEDBACK_LENGTH} chars)")

    @property
    def is_pending(self) -> bool:
        return self.status == SubmissionStatus.PENDING.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "writer_id": self.writer_id,
            "file_name": self.file_name,
            "file_extension": self.file_extension,
            "status": self.status,
            "feedback": self.feedback,
            "submitted_at": format_datetime(self.submitted_at),
            "reviewed_at": format_datetime(self.reviewed_at),
            "reviewed_by": self.reviewed_by,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Submission":
        return cls(
            id=data["id"],
            job_id=data["job_id"],
            writer_id=data["writer_id"],
            file_name=data["file_name"],
            file_extension=data.get("file_extension"),
            status=data.get("status", SubmissionStatus.PENDING.value),
            feedback=data.get("feedback"),
            submitted_at=parse_datetime(data.get("submitted_at")),
            reviewed_at=parse_datetime(data.get("reviewed_at")),
            reviewed_by=data.get("reviewed_by"),
        )


@dataclass
class JobStateTransition:
    """Audit log entry for a job status change.

    ``from_status`` is None for the creation entry. Automatic transitions
    carry the ``system`` actor.
    """

    id: str
    job_id: str
    to_status: str
    actor_id: str
    from_status: Optional[str] = None
    reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "actor_id": self.actor_id,
            "reason": self.reason,
            "metadata": self.metadata,
            "created_at": format_datetime(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobStateTransition":
        return cls(
            id=data["id"],
            job_id=data["job_id"],
            from_status=data.get("from_status"),
            to_status=data["to_status"],
            actor_id=data["actor_id"],
            reason=data.get("reason"),
            metadata=data.get("metadata") or {},
            created_at=parse_datetime(data.get("created_at")),
        )

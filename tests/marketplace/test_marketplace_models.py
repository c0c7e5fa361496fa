"""Tests for marketplace data models."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from inkwell.marketplace.errors import InvalidTransitionError
from inkwell.marketplace.jobs.models import (
    VALID_JOB_TRANSITIONS,
    Bid,
    BidStatus,
    Job,
    JobStateTransition,
    JobStatus,
    Submission,
    can_transition,
    check_transition,
    compute_writer_share,
)

DEADLINE = datetime(2026, 4, 1, 17, 0, tzinfo=timezone.utc)


def make_job(**overrides):
    fields = {
        "id": "job-1",
        "client_id": "client-1",
        "description": "Compare two sorting algorithms",
        "budget": "90",
        "deadline": DEADLINE,
        "assignment_type": "Essay",
        "quantity": 3,
        "language": "English (US)",
    }
    fields.update(overrides)
    return Job(**fields)


class TestJob:
    """Tests for Job dataclass."""

    def test_create_basic_job(self):
        """Minimal fields fill in sensible defaults."""
        job = make_job()

        assert job.status == "posted"
        assert job.budget == Decimal("90.00")
        assert job.writer_share == Decimal("30.00")
        assert job.expected_return_date == DEADLINE
        assert job.writer_id is None
        assert job.urgency == "Normal"
        assert job.spacing == "Double"
        assert job.level == "Undergraduate"
        assert job.citation_style == "APA"
        assert job.number_of_sources == 0
        assert job.quantity == Decimal("3")

    def test_writer_share_rounds_to_cents(self):
        """A third of 100 is 33.33, not 33.333..."""
        assert make_job(budget="100").writer_share == Decimal("33.33")

    def test_explicit_writer_share_is_kept(self):
        assert make_job(writer_share="45").writer_share == Decimal("45.00")

    def test_float_budget_is_not_lossy(self):
        assert make_job(budget=10.1).budget == Decimal("10.10")

    @pytest.mark.parametrize("budget", [0, "-5", "0.00"])
    def test_invalid_budget(self, budget):
        """Non-positive budgets are rejected."""
        with pytest.raises(ValueError, match="Budget must be positive"):
            make_job(budget=budget)

    def test_non_numeric_budget(self):
        with pytest.raises(ValueError, match="Invalid amount"):
            make_job(budget="lots")

    def test_empty_description(self):
        with pytest.raises(ValueError, match="Description cannot be empty"):
            make_job(description="   ")

    def test_description_is_stripped(self):
        assert make_job(description="  hello  ").description == "hello"

    def test_missing_assignment_type(self):
        with pytest.raises(ValueError, match="Assignment type is required"):
            make_job(assignment_type="")

    @pytest.mark.parametrize("quantity", [0, -1, "NaN", "Infinity"])
    def test_invalid_quantity(self, quantity):
        with pytest.raises(ValueError, match="Quantity must be positive"):
            make_job(quantity=quantity)

    def test_unparseable_quantity(self):
        with pytest.raises(ValueError, match="Invalid quantity"):
            make_job(quantity="three")

    def test_fractional_quantity(self):
        assert make_job(quantity="2.5").quantity == Decimal("2.5")

    def test_invalid_language(self):
        with pytest.raises(ValueError, match="Invalid language"):
            make_job(language="Klingon")

    def test_invalid_status(self):
        with pytest.raises(ValueError, match="Invalid status"):
            make_job(status="archived")

    def test_enum_members_are_accepted(self):
        job = make_job(status=JobStatus.ASSIGNED)
        assert job.status == "assigned"

    def test_negative_sources(self):
        with pytest.raises(ValueError, match="Number of sources cannot be negative"):
            make_job(number_of_sources=-1)

    def test_writer_deadline_after_client_deadline(self):
        with pytest.raises(ValueError, match="Writer deadline cannot be after the client deadline"):
            make_job(expected_return_date=DEADLINE + timedelta(hours=1))

    def test_non_positive_reference_amount(self):
        with pytest.raises(ValueError, match="Reference amount must be positive"):
            make_job(reference_amount="0")

    def test_status_properties(self):
        posted = make_job()
        assert posted.is_open
        assert posted.is_active
        assert not posted.is_terminal
        assert not posted.accepts_submissions

        done = make_job(status="completed")
        assert done.is_terminal
        assert not done.is_active

    def test_accepts_submissions(self):
        """Working statuses accept work unless a submission is pending."""
        for status in ("assigned", "due", "late"):
            assert make_job(status=status).accepts_submissions
        assert not make_job(status="due", pending_submission_id="sub-1").accepts_submissions
        assert not make_job(status="pending_approval", pending_submission_id="sub-1").accepts_submissions

    def test_can_transition_to(self):
        job = make_job()
        assert job.can_transition_to(JobStatus.ASSIGNED)
        assert job.can_transition_to(JobStatus.CANCELLED)
        assert not job.can_transition_to(JobStatus.COMPLETED)

    def test_to_dict(self):
        """Money and quantity serialize as strings, dates as ISO."""
        data = make_job(reference_amount=25).to_dict()

        assert data["budget"] == "90.00"
        assert data["writer_share"] == "30.00"
        assert data["reference_amount"] == "25.00"
        assert data["quantity"] == "3"
        assert data["deadline"] == DEADLINE.isoformat()
        assert data["status"] == "posted"

    def test_from_dict_accepts_postgrest_row(self):
        """Rows come back with numerics and Z-suffixed timestamps."""
        job = Job.from_dict(
            {
                "id": "job-9",
                "client_id": "client-1",
                "description": "Lab report",
                "budget": 60,
                "writer_share": 20,
                "deadline": "2026-04-01T17:00:00.123456Z",
                "expected_return_date": "2026-03-30T17:00:00Z",
                "assignment_type": "Report",
                "quantity": "4.0",
                "language": "English (UK)",
                "urgency": None,
                "number_of_sources": None,
                "status": "assigned",
                "writer_id": "writer-1",
            }
        )

        assert job.budget == Decimal("60.00")
        assert job.deadline.tzinfo is not None
        assert job.expected_return_date < job.deadline
        assert job.urgency == "Normal"
        assert job.number_of_sources == 0
        assert job.status == "assigned"


class TestTransitions:
    """Tests for the transition table."""

    def test_terminal_statuses_have_no_exits(self):
        assert VALID_JOB_TRANSITIONS[JobStatus.COMPLETED] == set()
        assert VALID_JOB_TRANSITIONS[JobStatus.CANCELLED] == set()

    def test_every_status_has_an_entry(self):
        assert set(VALID_JOB_TRANSITIONS) == set(JobStatus)

    def test_derivation_never_goes_backwards(self):
        assert not can_transition("late", "due")
        assert not can_transition("due", "assigned")
        assert not can_transition("late", "assigned")

    def test_rejection_edges(self):
        for status in ("assigned", "due", "late", "completed"):
            assert can_transition("pending_approval", status)

    def test_cancel_only_from_posted(self):
        assert can_transition("posted", "cancelled")
        for status in ("assigned", "due", "late", "pending_approval"):
            assert not can_transition(status, "cancelled")

    def test_unknown_status(self):
        assert not can_transition("posted", "archived")
        assert not can_transition("archived", "posted")

    def test_late_work_can_still_be_approved(self):
        assert can_transition("late", "completed")
        assert can_transition("pending_approval", "late")

    def test_check_transition_returns_target(self):
        assert check_transition(JobStatus.POSTED, "assigned") is JobStatus.ASSIGNED

    def test_check_transition_rejects_illegal_edge(self):
        """Illegal edges raise instead of returning False."""
        with pytest.raises(InvalidTransitionError, match="from pending_approval to posted") as exc:
            check_transition("pending_approval", "posted")
        assert exc.value.from_status == "pending_approval"
        assert exc.value.to_status == "posted"

    def test_check_transition_rejects_unknown_target(self):
        with pytest.raises(InvalidTransitionError):
            check_transition("posted", "archived")

    def test_transition_to_returns_updated_copy(self):
        job = make_job()
        moved = job.transition_to(JobStatus.ASSIGNED, writer_id="writer-1")

        assert moved.status == "assigned"
        assert moved.writer_id == "writer-1"
        assert job.status == "posted"
        assert job.writer_id is None

    def test_transition_to_refuses_illegal_edge(self):
        with pytest.raises(InvalidTransitionError, match="from posted to completed"):
            make_job().transition_to(JobStatus.COMPLETED)


class TestWriterShare:
    def test_default_ratio(self):
        assert compute_writer_share("30") == Decimal("10.00")

    def test_custom_ratio(self):
        assert compute_writer_share("80", Decimal("0.5")) == Decimal("40.00")

    def test_half_up_rounding(self):
        assert compute_writer_share("0.05", Decimal("0.5")) == Decimal("0.03")


class TestBid:
    """Tests for Bid dataclass."""

    def test_create_bid(self):
        bid = Bid(id="bid-1", job_id="job-1", writer_id="writer-1", amount="25")
        assert bid.amount == Decimal("25.00")
        assert bid.is_pending
        assert not bid.is_accepted

    def test_application_without_amount(self):
        bid = Bid(id="bid-1", job_id="job-1", writer_id="writer-1")
        assert bid.amount is None
        assert bid.to_dict()["amount"] is None

    def test_non_positive_amount(self):
        with pytest.raises(ValueError, match="Bid amount must be positive"):
            Bid(id="bid-1", job_id="job-1", writer_id="writer-1", amount=0)

    def test_invalid_status(self):
        with pytest.raises(ValueError, match="Invalid status"):
            Bid(id="bid-1", job_id="job-1", writer_id="writer-1", status="withdrawn")

    def test_round_trip(self):
        bid = Bid(id="bid-1", job_id="job-1", writer_id="writer-1", amount="12.5", status=BidStatus.ACCEPTED)
        restored = Bid.from_dict(bid.to_dict())
        assert restored == bid


class TestSubmission:
    """Tests for Submission dataclass."""

    def test_requires_file(self):
        with pytest.raises(ValueError, match="requires a stored file"):
            Submission(id="sub-1", job_id="job-1", writer_id="writer-1", file_name="")

    def test_blank_feedback_becomes_none(self):
        sub = Submission(id="sub-1", job_id="job-1", writer_id="writer-1", file_name="f.pdf", feedback="  ")
        assert sub.feedback is None

    def test_feedback_too_long(self):
        with pytest.raises(ValueError, match="Feedback too long"):
            Submission(
                id="sub-1", job_id="job-1", writer_id="writer-1", file_name="f.pdf", feedback="x" * 5001
            )

    def test_defaults(self):
        sub = Submission(id="sub-1", job_id="job-1", writer_id="writer-1", file_name="f.pdf")
        assert sub.is_pending
        assert sub.reviewed_by is None


class TestJobStateTransition:
    def test_creation_entry_has_no_from_status(self):
        t = JobStateTransition(id="t-1", job_id="job-1", to_status="posted", actor_id="client-1")
        data = t.to_dict()
        assert data["from_status"] is None
        assert data["metadata"] == {}

    def test_from_dict_defaults_metadata(self):
        t = JobStateTransition.from_dict(
            {"id": "t-1", "job_id": "job-1", "to_status": "late", "actor_id": "system", "metadata": None}
        )
        assert t.metadata == {}
        assert t.created_at is None

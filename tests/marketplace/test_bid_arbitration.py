"""Tests for bid terms, bidding, applications and writer assignment."""

import threading
from datetime import timedelta
from decimal import Decimal

import pytest

from inkwell.marketplace.errors import (
    AlreadyAppliedError,
    BidNotFoundError,
    BidNotPendingError,
    InvalidTransitionError,
    JobNotFoundError,
    JobNotOpenError,
    PreconditionViolation,
    UnauthorizedError,
    ValidationError,
)


@pytest.fixture
def open_job(service, post_job, admin, clock):
    """A posted job with bid terms set."""
    job = post_job()
    return service.set_bid_terms(admin, job.id, "30", clock() + timedelta(days=8))


class TestBidTerms:
    """Tests for admin bid terms (bidding mode)."""

    def test_set_terms(self, service, post_job, admin, clock):
        job = post_job()
        writer_deadline = clock() + timedelta(days=7)

        updated = service.set_bid_terms(admin, job.id, "25.5", writer_deadline)

        assert updated.reference_amount == Decimal("25.50")
        assert updated.expected_return_date == writer_deadline
        assert updated.status == "posted"
        assert service.storage.get_job(job.id).reference_amount == Decimal("25.50")

    def test_admin_only(self, service, post_job, client, clock):
        job = post_job()
        with pytest.raises(UnauthorizedError, match="Admin access required"):
            service.set_bid_terms(client, job.id, "25", clock() + timedelta(days=2))

    def test_writer_deadline_after_client_deadline(self, service, post_job, admin, clock):
        job = post_job(deadline=clock() + timedelta(days=3))
        with pytest.raises(ValidationError, match="cannot be after the client deadline"):
            service.set_bid_terms(admin, job.id, "25", clock() + timedelta(days=4))

    def test_writer_deadline_in_past(self, service, post_job, admin, clock):
        job = post_job()
        with pytest.raises(ValidationError, match="Writer deadline must be in the future"):
            service.set_bid_terms(admin, job.id, "25", clock() - timedelta(hours=1))

    @pytest.mark.parametrize("amount", ["0", "-3", "free"])
    def test_invalid_amount(self, service, post_job, admin, clock, amount):
        job = post_job()
        with pytest.raises(ValidationError):
            service.set_bid_terms(admin, job.id, amount, clock() + timedelta(days=2))

    def test_not_after_assignment(self, service, assigned_job, admin, clock):
        with pytest.raises(InvalidTransitionError):
            service.set_bid_terms(admin, assigned_job.id, "25", clock() + timedelta(days=2))

    def test_apply_mode_has_no_terms(self, apply_service, admin, client, clock):
        job = apply_service.create_job(
            client,
            description="Speech",
            budget="30",
            deadline=clock() + timedelta(days=4),
            assignment_type="Speech",
            quantity=1,
            language="English (US)",
        )
        with pytest.raises(PreconditionViolation, match="only used in bidding mode"):
            apply_service.set_bid_terms(admin, job.id, "10", clock() + timedelta(days=2))
        assert apply_service.get_jobs_awaiting_terms() == []


class TestPlaceBid:
    """Tests for writers bidding in bidding mode."""

    def test_place_bid(self, service, open_job, writer, clock):
        bid = service.place_bid(writer, open_job.id, "27.50")

        assert bid.amount == Decimal("27.50")
        assert bid.status == "pending"
        assert bid.writer_id == writer.user_id
        assert bid.created_at == clock()

    def test_bid_before_terms(self, service, post_job, writer):
        job = post_job()
        with pytest.raises(JobNotOpenError, match="not open for bids yet"):
            service.place_bid(writer, job.id, "20")

    def test_amount_required(self, service, open_job, writer):
        with pytest.raises(ValidationError, match="Bid amount is required"):
            service.place_bid(writer, open_job.id)

    @pytest.mark.parametrize("amount", ["0", "-1"])
    def test_amount_positive(self, service, open_job, writer, amount):
        with pytest.raises(ValidationError, match="Bid amount must be positive"):
            service.place_bid(writer, open_job.id, amount)

    def test_one_bid_per_writer(self, service, open_job, writer):
        service.place_bid(writer, open_job.id, "20")
        with pytest.raises(AlreadyAppliedError, match="already bid"):
            service.place_bid(writer, open_job.id, "19")

    def test_writers_only(self, service, open_job, client, admin):
        with pytest.raises(UnauthorizedError):
            service.place_bid(client, open_job.id, "20")
        with pytest.raises(UnauthorizedError):
            service.place_bid(admin, open_job.id, "20")

    def test_missing_job(self, service, writer):
        with pytest.raises(JobNotFoundError):
            service.place_bid(writer, "nope", "20")

    def test_cancelled_job(self, service, open_job, writer, client):
        service.cancel_job(client, open_job.id)
        with pytest.raises(JobNotOpenError):
            service.place_bid(writer, open_job.id, "20")


class TestApplyMode:
    """Tests for the apply variant: no amounts, no terms."""

    @pytest.fixture
    def job(self, apply_service, client, clock):
        return apply_service.create_job(
            client,
            description="Reflective journal",
            budget="45",
            deadline=clock() + timedelta(days=6),
            assignment_type="Journal",
            quantity=2,
            language="English (UK)",
        )

    def test_apply_without_terms(self, apply_service, job, writer):
        bid = apply_service.place_bid(writer, job.id)
        assert bid.amount is None
        assert bid.is_pending

    def test_amount_not_allowed(self, apply_service, job, writer):
        with pytest.raises(ValidationError, match="Applications do not carry an amount"):
            apply_service.place_bid(writer, job.id, "10")

    def test_available_without_terms(self, apply_service, job, writer):
        assert [j.id for j in apply_service.get_available_jobs(writer.user_id)] == [job.id]

    def test_assign_application(self, apply_service, job, writer, admin):
        bid = apply_service.place_bid(writer, job.id)
        assigned = apply_service.assign_writer(admin, bid.id)
        assert assigned.status == "assigned"
        assert assigned.writer_id == writer.user_id


class TestAssignWriter:
    """Tests for accepting a bid."""

    def test_assign(self, service, open_job, writer, other_writer, admin, clock):
        first = service.place_bid(writer, open_job.id, "28")
        second = service.place_bid(other_writer, open_job.id, "26")

        job = service.assign_writer(admin, second.id)

        assert job.status == "assigned"
        assert job.writer_id == other_writer.user_id
        assert job.assigned_at == clock()
        bids = {b.id: b.status for b in service.get_bids_for_job(open_job.id)}
        assert bids == {first.id: "rejected", second.id: "accepted"}

    def test_assignment_recorded(self, service, open_job, writer, admin):
        bid = service.place_bid(writer, open_job.id, "28")
        service.assign_writer(admin, bid.id)

        last = service.get_job_history(open_job.id)[-1]
        assert (last.from_status, last.to_status) == ("posted", "assigned")
        assert last.actor_id == admin.user_id
        assert last.metadata == {"bid_id": bid.id, "writer_id": writer.user_id}

    def test_assign_near_deadline_derives_due(self, service, post_job, admin, writer, clock):
        job = post_job(deadline=clock() + timedelta(days=1))
        service.set_bid_terms(admin, job.id, "20", clock() + timedelta(days=1))
        bid = service.place_bid(writer, job.id, "20")

        assigned = service.assign_writer(admin, bid.id)

        assert assigned.status == "due"
        history = [(t.from_status, t.to_status, t.actor_id) for t in service.get_job_history(job.id)]
        assert history[-2:] == [("posted", "assigned", admin.user_id), ("assigned", "due", "system")]

    def test_admin_only(self, service, open_job, writer, client):
        bid = service.place_bid(writer, open_job.id, "28")
        with pytest.raises(UnauthorizedError):
            service.assign_writer(client, bid.id)

    def test_missing_bid(self, service, admin):
        with pytest.raises(BidNotFoundError):
            service.assign_writer(admin, "nope")

    def test_rejected_sibling_cannot_be_accepted(self, service, open_job, writer, other_writer, admin):
        first = service.place_bid(writer, open_job.id, "28")
        second = service.place_bid(other_writer, open_job.id, "26")
        service.assign_writer(admin, first.id)

        with pytest.raises(BidNotPendingError):
            service.assign_writer(admin, second.id)

    def test_cancelled_job(self, service, open_job, writer, admin, client):
        bid = service.place_bid(writer, open_job.id, "28")
        service.cancel_job(client, open_job.id)
        with pytest.raises(JobNotOpenError):
            service.assign_writer(admin, bid.id)

    def test_concurrent_admins(self, service, open_job, admin):
        """Two admins accepting different bids at once: one wins, one gets a precondition error."""
        from inkwell.marketplace.identity import Identity, Role

        writers = [Identity(user_id=f"w{i}", role=Role.WRITER) for i in range(2)]
        bids = [service.place_bid(w, open_job.id, "25") for w in writers]
        second_admin = Identity(user_id="admin-2", role=Role.ADMIN)

        barrier = threading.Barrier(2)
        outcomes = {}

        def accept(actor, bid):
            barrier.wait()
            try:
                outcomes[bid.id] = service.assign_writer(actor, bid.id).writer_id
            except (BidNotPendingError, JobNotOpenError) as e:
                outcomes[bid.id] = e

        threads = [
            threading.Thread(target=accept, args=(admin, bids[0])),
            threading.Thread(target=accept, args=(second_admin, bids[1])),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        won = [v for v in outcomes.values() if isinstance(v, str)]
        lost = [v for v in outcomes.values() if not isinstance(v, str)]
        assert len(won) == 1
        assert len(lost) == 1
        assert service.storage.get_job(open_job.id).writer_id == won[0]
        accepted = [b for b in service.get_bids_for_job(open_job.id) if b.is_accepted]
        assert len(accepted) == 1


class TestAdminQueues:
    """Tests for the admin and writer job queues."""

    def test_awaiting_terms(self, service, post_job, open_job):
        waiting = post_job()
        assert [j.id for j in service.get_jobs_awaiting_terms()] == [waiting.id]

    def test_available_excludes_own_bids(self, service, post_job, open_job, writer, other_writer):
        post_job()  # no terms yet
        service.place_bid(writer, open_job.id, "20")

        assert service.get_available_jobs(writer.user_id) == []
        assert [j.id for j in service.get_available_jobs(other_writer.user_id)] == [open_job.id]

    def test_jobs_with_pending_bids(self, service, open_job, post_job, admin, writer, clock):
        other = service.set_bid_terms(admin, post_job().id, "30", clock() + timedelta(days=5))
        service.place_bid(writer, open_job.id, "20")

        assert [j.id for j in service.get_jobs_with_pending_bids()] == [open_job.id]
        assert other.id not in {j.id for j in service.get_jobs_with_pending_bids()}

    def test_assigned_job_leaves_queue(self, service, open_job, admin, writer):
        bid = service.place_bid(writer, open_job.id, "20")
        service.assign_writer(admin, bid.id)
        assert service.get_jobs_with_pending_bids() == []

    def test_bids_for_missing_job(self, service):
        with pytest.raises(JobNotFoundError):
            service.get_bids_for_job("nope")

"""Tests for time-based status derivation."""

from datetime import datetime, timedelta, timezone

import pytest

from inkwell.marketplace.jobs.status import derive_status, resume_status

DEADLINE = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
WARNING = timedelta(days=2)


class TestDeriveStatus:
    """Tests for derive_status."""

    def test_assigned_well_before_deadline(self):
        now = DEADLINE - timedelta(days=5)
        assert derive_status("assigned", DEADLINE, now, WARNING) == "assigned"

    def test_assigned_inside_warning_window(self):
        now = DEADLINE - timedelta(days=1)
        assert derive_status("assigned", DEADLINE, now, WARNING) == "due"

    def test_warning_boundary_is_due(self):
        """Exactly at deadline - warning the job becomes due."""
        assert derive_status("assigned", DEADLINE, DEADLINE - WARNING, WARNING) == "due"

    def test_at_deadline_is_not_late(self):
        assert derive_status("assigned", DEADLINE, DEADLINE, WARNING) == "due"
        assert derive_status("due", DEADLINE, DEADLINE, WARNING) == "due"

    def test_past_deadline_is_late(self):
        now = DEADLINE + timedelta(seconds=1)
        assert derive_status("assigned", DEADLINE, now, WARNING) == "late"
        assert derive_status("due", DEADLINE, now, WARNING) == "late"

    def test_late_stays_late(self):
        """Derivation never moves backwards, even if the clock does."""
        now = DEADLINE - timedelta(days=5)
        assert derive_status("late", DEADLINE, now, WARNING) == "late"

    def test_due_stays_due_outside_window(self):
        now = DEADLINE - timedelta(days=5)
        assert derive_status("due", DEADLINE, now, WARNING) == "due"

    @pytest.mark.parametrize("status", ["posted", "completed", "cancelled"])
    def test_non_working_statuses_untouched(self, status):
        now = DEADLINE + timedelta(days=30)
        assert derive_status(status, DEADLINE, now, WARNING) == status

    def test_awaiting_review_goes_late_past_deadline(self):
        """A submission under review does not stop the clock."""
        now = DEADLINE + timedelta(seconds=1)
        assert derive_status("pending_approval", DEADLINE, now, WARNING) == "late"

    def test_awaiting_review_is_never_due(self):
        now = DEADLINE - timedelta(hours=1)
        assert derive_status("pending_approval", DEADLINE, now, WARNING) == "pending_approval"
        assert derive_status("pending_approval", DEADLINE, DEADLINE, WARNING) == "pending_approval"

    def test_idempotent(self):
        now = DEADLINE - timedelta(hours=6)
        once = derive_status("assigned", DEADLINE, now, WARNING)
        assert derive_status(once, DEADLINE, now, WARNING) == once

    def test_zero_warning_skips_due(self):
        now = DEADLINE - timedelta(minutes=1)
        assert derive_status("assigned", DEADLINE, now, timedelta(0)) == "assigned"


class TestResumeStatus:
    """Tests for the status a rejected job returns to."""

    def test_resume_before_window(self):
        assert resume_status(DEADLINE, DEADLINE - timedelta(days=4), WARNING) == "assigned"

    def test_resume_inside_window(self):
        assert resume_status(DEADLINE, DEADLINE - timedelta(days=1), WARNING) == "due"

    def test_resume_after_deadline(self):
        assert resume_status(DEADLINE, DEADLINE + timedelta(days=1), WARNING) == "late"

"""Time-based status derivation.

An assigned job drifts to ``due`` when its writer deadline is inside the
warning window and to ``late`` once the deadline has passed. A job awaiting
review also goes ``late`` past the deadline; its submission stays pending.
Derivation never moves a job backwards and never touches jobs that are
posted or finished.
"""

from datetime import datetime, timedelta

from inkwell.marketplace.jobs.models import JobStatus

DERIVABLE_STATUSES = frozenset(
    {
        JobStatus.ASSIGNED.value,
        JobStatus.DUE.value,
        JobStatus.LATE.value,
        JobStatus.PENDING_APPROVAL.value,
    }
)


def derive_status(status: str, deadline: datetime, now: datetime, warning: timedelta) -> str:
    """Return the status a job should hold at ``now``.

    Pure function; the caller persists any change. Returns ``status``
    unchanged when no derivation applies, so applying it twice is a no-op.
    """
    if status not in DERIVABLE_STATUSES:
        return status
    if now > deadline:
        return JobStatus.LATE.value
    if status == JobStatus.ASSIGNED.value and now >= deadline - warning:
        return JobStatus.DUE.value
    return status


def resume_status(deadline: datetime, now: datetime, warning: timedelta) -> str:
    """Status a job returns to after its pending submission is rejected."""
    return derive_status(JobStatus.ASSIGNED.value, deadline, now, warning)

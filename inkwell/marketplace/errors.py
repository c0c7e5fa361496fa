"""Error taxonomy for the marketplace.

Every error carries a ``kind`` so the HTTP layer can map it to a status
code without knowing the concrete class:

- validation: bad or missing input
- precondition: wrong state for the requested transition
- not_found: job, bid, submission or user absent
- conflict: duplicate bid, duplicate job within the guard window
- storage: blob upload/delete/sign failure
- auth: missing/invalid token, wrong role, not the owner

Nothing is retried internally; callers get the error as raised.
"""

from typing import Optional


class MarketplaceError(Exception):
    """Base error for marketplace operations."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MarketplaceError):
    """Input failed validation."""

    kind = "validation"


class PreconditionViolation(MarketplaceError):
    """Operation not allowed in the current state."""

    kind = "precondition"


class InvalidTransitionError(PreconditionViolation):
    """Job status transition not allowed."""

    def __init__(self, message: str, from_status: Optional[str] = None, to_status: Optional[str] = None):
        super().__init__(message)
        self.from_status = from_status
        self.to_status = to_status


class JobNotOpenError(PreconditionViolation):
    """Job is not accepting bids or assignment."""


class BidNotPendingError(PreconditionViolation):
    """Bid has already been accepted or rejected."""


class NotFoundError(MarketplaceError):
    """Requested record does not exist."""

    kind = "not_found"


class JobNotFoundError(NotFoundError):
    """Job not found."""


class BidNotFoundError(NotFoundError):
    """Bid not found."""


class SubmissionNotFoundError(NotFoundError):
    """Submission not found."""


class UserNotFoundError(NotFoundError):
    """User not found."""


class ConflictError(MarketplaceError):
    """Request conflicts with an existing record."""

    kind = "conflict"


class AlreadyAppliedError(ConflictError):
    """Writer already has a bid on this job."""


class DuplicateJobError(ConflictError):
    """Same client posted the same job moments ago."""


class DuplicateUserError(ConflictError):
    """Email already registered."""


class StorageError(MarketplaceError):
    """Blob store operation failed."""

    kind = "storage"


class SigningError(StorageError):
    """Signed URL could not be produced."""


class AuthError(MarketplaceError):
    """Caller is not authenticated or not allowed."""

    kind = "auth"


class InvalidTokenError(AuthError):
    """Token missing, malformed or expired."""


class UnauthorizedError(AuthError):
    """Authenticated, but not allowed to do this."""

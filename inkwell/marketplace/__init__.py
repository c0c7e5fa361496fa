"""Inkwell marketplace.

Clients post writing jobs, writers bid, an admin assigns and reviews.

Submodules:
- jobs: Job lifecycle state machine, bids, submissions, file binding
- users: Accounts and user storage
- identity: Identity/role contract for token providers
- blobs: Blob store contract and in-memory backend
- errors: Error taxonomy shared by every layer
- config: Lifecycle tunables
"""

from inkwell.marketplace.blobs import BlobStore, InMemoryBlobStore
from inkwell.marketplace.config import MATCHING_APPLY, MATCHING_BIDDING, MarketplaceConfig
from inkwell.marketplace.errors import (
    AlreadyAppliedError,
    AuthError,
    BidNotFoundError,
    BidNotPendingError,
    ConflictError,
    DuplicateJobError,
    DuplicateUserError,
    InvalidTokenError,
    InvalidTransitionError,
    JobNotFoundError,
    JobNotOpenError,
    MarketplaceError,
    NotFoundError,
    PreconditionViolation,
    SigningError,
    StorageError,
    SubmissionNotFoundError,
    UnauthorizedError,
    UserNotFoundError,
    ValidationError,
)
from inkwell.marketplace.identity import SYSTEM_ACTOR, Identity, IdentityProvider, Role
from inkwell.marketplace.jobs import JobService
from inkwell.marketplace.users import InMemoryUserStorage, User, UserStorage

__all__ = [
    "JobService",
    "MarketplaceConfig",
    "MATCHING_BIDDING",
    "MATCHING_APPLY",
    # Identity
    "Identity",
    "IdentityProvider",
    "Role",
    "SYSTEM_ACTOR",
    # Users
    "User",
    "UserStorage",
    "InMemoryUserStorage",
    # Blobs
    "BlobStore",
    "InMemoryBlobStore",
    # Errors
    "MarketplaceError",
    "ValidationError",
    "PreconditionViolation",
    "InvalidTransitionError",
    "JobNotOpenError",
    "BidNotPendingError",
    "NotFoundError",
    "JobNotFoundError",
    "BidNotFoundError",
    "SubmissionNotFoundError",
    "UserNotFoundError",
    "ConflictError",
    "AlreadyAppliedError",
    "DuplicateJobError",
    "DuplicateUserError",
    "StorageError",
    "SigningError",
    "AuthError",
    "InvalidTokenError",
    "UnauthorizedError",
]

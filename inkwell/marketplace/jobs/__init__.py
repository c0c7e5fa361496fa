"""Job lifecycle subsystem for Inkwell.

Models:
- Job: A writing job posted by a client
- Bid: A writer's bid or application for a job
- Submission: Work delivered by the assigned writer
- JobStatus / BidStatus / SubmissionStatus: Lifecycle statuses
- JobStateTransition: Audit log entry for status changes

Service:
- JobService: Job operations (create, edit, cancel, bid, assign, submit, review)
- BidArbitrator: Bid placement and atomic writer assignment
- FileBinder: Upload, replace, discard and sign job files
"""

from inkwell.marketplace.jobs.arbitration import BidArbitrator
from inkwell.marketplace.jobs.files import FileBinder, FileUpload, StoredFile
from inkwell.marketplace.jobs.models import (
    VALID_JOB_TRANSITIONS,
    AcademicLevel,
    Bid,
    BidStatus,
    CitationStyle,
    Job,
    JobStateTransition,
    JobStatus,
    Language,
    Spacing,
    Submission,
    SubmissionStatus,
    Urgency,
    compute_writer_share,
)
from inkwell.marketplace.jobs.service import JobService
from inkwell.marketplace.jobs.status import derive_status, resume_status
from inkwell.marketplace.jobs.storage import InMemoryJobStorage, JobStorage

__all__ = [
    # Models
    "Job",
    "Bid",
    "Submission",
    "JobStatus",
    "BidStatus",
    "SubmissionStatus",
    "JobStateTransition",
    "VALID_JOB_TRANSITIONS",
    "Urgency",
    "Spacing",
    "AcademicLevel",
    "Language",
    "CitationStyle",
    "compute_writer_share",
    # Status derivation
    "derive_status",
    "resume_status",
    # Storage
    "JobStorage",
    "InMemoryJobStorage",
    # Service
    "JobService",
    "BidArbitrator",
    "FileBinder",
    "FileUpload",
    "StoredFile",
]

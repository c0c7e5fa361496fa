"""Helpers shared by the marketplace routers."""

from fastapi import UploadFile

from inkwell.marketplace.identity import Identity
from inkwell.marketplace.jobs.files import FileUpload
from inkwell.marketplace.jobs.models import Bid, Job, JobStateTransition, Submission
from inkwell.marketplace.jobs.service import JobService

from ...models import BidResponse, JobListResponse, JobResponse, SubmissionResponse, TransitionResponse


async def read_upload(upload: UploadFile | None) -> FileUpload | None:
    """Read a multipart file into a FileUpload. Empty file fields count as absent."""
    if upload is None or not upload.filename:
        return None
    content = await upload.read()
    return FileUpload(
        filename=upload.filename,
        content=content,
        content_type=upload.content_type or "application/octet-stream",
    )


def to_job_response(service: JobService, job: Job, identity: Identity) -> JobResponse:
    """Convert a job to the caller's view, with a signed file URL."""
    return JobResponse(**service.present_job(job, identity))


def to_job_list(service: JobService, jobs: list[Job], identity: Identity) -> JobListResponse:
    return JobListResponse(
        jobs=[to_job_response(service, j, identity) for j in jobs],
        total=len(jobs),
    )


def to_bid_response(bid: Bid) -> BidResponse:
    return BidResponse(**bid.to_dict())


def to_submission_response(service: JobService, submission: Submission, identity: Identity) -> SubmissionResponse:
    return SubmissionResponse(**service.present_submission(submission, identity))


def to_transition_response(transition: JobStateTransition) -> TransitionResponse:
    return TransitionResponse(**transition.to_dict())

"""Writer dashboard routes."""

from fastapi import APIRouter, Request

from ...auth import WriterUser
from ...context import Context
from ...logging_config import get_logger
from ...models import JobListResponse, SubmissionListResponse
from ...rate_limit import limiter
from .common import to_job_list, to_submission_response

logger = get_logger("writer")
router = APIRouter(prefix="/writer", tags=["writer"])


@router.get("/jobs/assigned", response_model=JobListResponse)
@limiter.limit("60/minute")
async def list_assigned_jobs(request: Request, writer: WriterUser, ctx: Context):
    """Jobs assigned to the caller that are not completed yet."""
    logger.info(f"GET /writer/jobs/assigned | writer={writer.user_id}")
    jobs = ctx.service.get_jobs_for_writer(writer.user_id)
    return to_job_list(ctx.service, jobs, writer)


@router.get("/jobs/completed", response_model=JobListResponse)
@limiter.limit("60/minute")
async def list_completed_jobs(request: Request, writer: WriterUser, ctx: Context):
    """Jobs the caller has completed."""
    logger.info(f"GET /writer/jobs/completed | writer={writer.user_id}")
    jobs = ctx.service.get_jobs_for_writer(writer.user_id, completed=True)
    return to_job_list(ctx.service, jobs, writer)


@router.get("/jobs/{job_id}/submissions", response_model=SubmissionListResponse)
@limiter.limit("60/minute")
async def list_job_submissions(request: Request, job_id: str, writer: WriterUser, ctx: Context):
    """The caller's submissions on an assigned job, oldest first, with review feedback."""
    logger.info(f"GET /writer/jobs/{job_id}/submissions | writer={writer.user_id}")
    submissions = ctx.service.get_submissions_for_job(writer, job_id)
    return SubmissionListResponse(
        submissions=[to_submission_response(ctx.service, s, writer) for s in submissions],
        total=len(submissions),
    )

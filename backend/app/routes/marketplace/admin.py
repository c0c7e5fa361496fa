"""Admin routes.

The admin opens posted jobs to bids, assigns writers, cancels jobs and
reviews submitted work.
"""

from fastapi import APIRouter, Request

from ...auth import AdminUser
from ...context import Context
from ...logging_config import get_logger
from ...models import (
    BidListResponse,
    BidTermsRequest,
    JobListResponse,
    JobResponse,
    ReviewRequest,
    ReviewResponse,
    SubmissionListResponse,
)
from ...rate_limit import limiter
from .common import to_bid_response, to_job_list, to_job_response, to_submission_response

logger = get_logger("admin")
router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/jobs/pending", response_model=JobListResponse)
@limiter.limit("60/minute")
async def list_jobs_awaiting_terms(request: Request, admin: AdminUser, ctx: Context):
    """Posted jobs without bid terms yet."""
    logger.info(f"GET /admin/jobs/pending | admin={admin.user_id}")
    jobs = ctx.service.get_jobs_awaiting_terms()
    return to_job_list(ctx.service, jobs, admin)


@router.get("/jobs/with-bids", response_model=JobListResponse)
@limiter.limit("60/minute")
async def list_jobs_with_bids(request: Request, admin: AdminUser, ctx: Context):
    """Posted jobs that have at least one pending bid."""
    logger.info(f"GET /admin/jobs/with-bids | admin={admin.user_id}")
    jobs = ctx.service.get_jobs_with_pending_bids()
    return to_job_list(ctx.service, jobs, admin)


@router.patch("/jobs/{job_id}/terms", response_model=JobResponse)
@limiter.limit("30/minute")
async def set_bid_terms(
    request: Request,
    job_id: str,
    terms: BidTermsRequest,
    admin: AdminUser,
    ctx: Context,
):
    """
    Set the reference amount and writer deadline for a posted job.

    The writer deadline may not be later than the client deadline.
    Once set, writers can bid.
    """
    logger.info(f"PATCH /admin/jobs/{job_id}/terms | admin={admin.user_id} | amount={terms.reference_amount}")
    job = ctx.service.set_bid_terms(
        admin,
        job_id,
        reference_amount=terms.reference_amount,
        expected_return_date=terms.expected_return_date,
    )
    return to_job_response(ctx.service, job, admin)


@router.get("/jobs/{job_id}/bids", response_model=BidListResponse)
@limiter.limit("60/minute")
async def list_bids(request: Request, job_id: str, admin: AdminUser, ctx: Context):
    """All bids on a job."""
    logger.info(f"GET /admin/jobs/{job_id}/bids | admin={admin.user_id}")
    bids = ctx.service.get_bids_for_job(job_id)
    return BidListResponse(bids=[to_bid_response(b) for b in bids], total=len(bids))


@router.patch("/bids/{bid_id}/assign", response_model=JobResponse)
@limiter.limit("30/minute")
async def assign_writer(request: Request, bid_id: str, admin: AdminUser, ctx: Context):
    """Accept a bid. The job is assigned to its writer and other bids are rejected."""
    logger.info(f"PATCH /admin/bids/{bid_id}/assign | admin={admin.user_id}")
    job = ctx.service.assign_writer(admin, bid_id)
    return to_job_response(ctx.service, job, admin)


@router.delete("/jobs/{job_id}", response_model=JobResponse)
@limiter.limit("20/minute")
async def cancel_job(request: Request, job_id: str, admin: AdminUser, ctx: Context):
    """Cancel any posted job."""
    logger.info(f"DELETE /admin/jobs/{job_id} | admin={admin.user_id}")
    job = ctx.service.cancel_job(admin, job_id)
    return to_job_response(ctx.service, job, admin)


@router.get("/submissions", response_model=SubmissionListResponse)
@limiter.limit("60/minute")
async def list_pending_submissions(request: Request, admin: AdminUser, ctx: Context):
    """Submissions awaiting review."""
    logger.info(f"GET /admin/submissions | admin={admin.user_id}")
    submissions = ctx.service.get_pending_submissions()
    return SubmissionListResponse(
        submissions=[to_submission_response(ctx.service, s, admin) for s in submissions],
        total=len(submissions),
    )


@router.get("/jobs/{job_id}/submissions", response_model=SubmissionListResponse)
@limiter.limit("60/minute")
async def list_job_submissions(request: Request, job_id: str, admin: AdminUser, ctx: Context):
    """Every submission made on a job, oldest first."""
    logger.info(f"GET /admin/jobs/{job_id}/submissions | admin={admin.user_id}")
    submissions = ctx.service.get_submissions_for_job(admin, job_id)
    return SubmissionListResponse(
        submissions=[to_submission_response(ctx.service, s, admin) for s in submissions],
        total=len(submissions),
    )


@router.patch("/submissions/{submission_id}/review", response_model=ReviewResponse)
@limiter.limit("30/minute")
async def review_submission(
    request: Request,
    submission_id: str,
    review: ReviewRequest,
    admin: AdminUser,
    ctx: Context,
):
    """
    Approve or reject a submission.

    Approval completes the job. Rejection requires feedback and sends the
    job back to the writer.
    """
    logger.info(
        f"PATCH /admin/submissions/{submission_id}/review | admin={admin.user_id} | decision={review.decision}"
    )
    job, submission = ctx.service.review_submission(
        admin,
        submission_id,
        approve=review.decision == "approve",
        feedback=review.feedback,
    )
    return ReviewResponse(
        job=to_job_response(ctx.service, job, admin),
        submission=to_submission_response(ctx.service, submission, admin),
    )

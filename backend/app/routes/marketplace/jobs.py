"""Job routes for clients and writers.

Clients post, edit and cancel jobs. Writers browse open jobs, bid on
them and submit work for jobs assigned to them.
"""

from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, File, Form, Request, UploadFile, status

from ...auth import ClientUser, CurrentUser, WriterUser
from ...context import Context
from ...logging_config import get_logger
from ...models import (
    BidCreate,
    BidResponse,
    JobHistoryResponse,
    JobListResponse,
    JobResponse,
    SubmissionResponse,
)
from ...rate_limit import limiter
from .common import (
    read_upload,
    to_bid_response,
    to_job_list,
    to_job_response,
    to_submission_response,
    to_transition_response,
)

logger = get_logger("jobs")
router = APIRouter(prefix="/jobs", tags=["jobs"])


# =============================================================================
# Client Routes
# =============================================================================


@router.post("", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
async def create_job(
    request: Request,
    client: ClientUser,
    ctx: Context,
    description: str = Form(...),
    budget: Decimal = Form(...),
    deadline: datetime = Form(...),
    assignment_type: str = Form(...),
    quantity: Decimal = Form(...),
    language: str = Form(...),
    urgency: str | None = Form(None),
    subject: str | None = Form(None),
    spacing: str | None = Form(None),
    level: str | None = Form(None),
    citation_style: str | None = Form(None),
    number_of_sources: int | None = Form(None),
    file: UploadFile | None = File(None),
):
    """
    Post a new job.

    Multipart form: job fields plus an optional brief (PDF/DOC/DOCX).
    The job starts in 'posted' status.
    """
    logger.info(f"POST /jobs | client={client.user_id} | type={assignment_type[:40]}")

    job = ctx.service.create_job(
        client,
        description=description,
        budget=budget,
        deadline=deadline,
        assignment_type=assignment_type,
        quantity=quantity,
        language=language,
        urgency=urgency,
        subject=subject,
        spacing=spacing,
        level=level,
        citation_style=citation_style,
        number_of_sources=number_of_sources,
        file=await read_upload(file),
    )
    return to_job_response(ctx.service, job, client)


@router.get("/posted", response_model=JobListResponse)
@limiter.limit("60/minute")
async def list_posted_jobs(request: Request, client: ClientUser, ctx: Context):
    """The caller's jobs that are not completed or cancelled."""
    logger.info(f"GET /jobs/posted | client={client.user_id}")
    jobs = ctx.service.get_jobs_for_client(client.user_id)
    return to_job_list(ctx.service, jobs, client)


@router.get("/completed", response_model=JobListResponse)
@limiter.limit("60/minute")
async def list_completed_jobs(request: Request, client: ClientUser, ctx: Context):
    """The caller's completed jobs, each with a signed link to the approved work."""
    logger.info(f"GET /jobs/completed | client={client.user_id}")
    jobs = ctx.service.get_jobs_for_client(client.user_id, completed=True)
    return to_job_list(ctx.service, jobs, client)


# =============================================================================
# Writer Browsing
# =============================================================================


@router.get("/available", response_model=JobListResponse)
@limiter.limit("60/minute")
async def list_available_jobs(request: Request, writer: WriterUser, ctx: Context):
    """Posted jobs open to bids that the caller has not bid on."""
    logger.info(f"GET /jobs/available | writer={writer.user_id}")
    jobs = ctx.service.get_available_jobs(writer.user_id)
    return to_job_list(ctx.service, jobs, writer)


# =============================================================================
# Single Job
# =============================================================================


@router.get("/{job_id}", response_model=JobResponse)
@limiter.limit("60/minute")
async def get_job_details(request: Request, job_id: str, identity: CurrentUser, ctx: Context):
    """Get a job. Its status is brought up to date before it is returned."""
    logger.info(f"GET /jobs/{job_id} | user={identity.user_id}")
    job = ctx.service.get_job(job_id, identity)
    return to_job_response(ctx.service, job, identity)


@router.patch("/{job_id}", response_model=JobResponse)
@limiter.limit("20/minute")
async def edit_job(
    request: Request,
    job_id: str,
    client: ClientUser,
    ctx: Context,
    description: str | None = Form(None),
    deadline: datetime | None = Form(None),
    assignment_type: str | None = Form(None),
    quantity: Decimal | None = Form(None),
    language: str | None = Form(None),
    urgency: str | None = Form(None),
    subject: str | None = Form(None),
    spacing: str | None = Form(None),
    level: str | None = Form(None),
    citation_style: str | None = Form(None),
    number_of_sources: int | None = Form(None),
    file: UploadFile | None = File(None),
):
    """
    Edit a posted job.

    Only the owning client may edit, and only while the job is 'posted'.
    A new file replaces the old one.
    """
    logger.info(f"PATCH /jobs/{job_id} | client={client.user_id}")

    job = ctx.service.edit_job(
        client,
        job_id,
        deadline=deadline,
        file=await read_upload(file),
        description=description,
        assignment_type=assignment_type,
        quantity=quantity,
        language=language,
        urgency=urgency,
        subject=subject,
        spacing=spacing,
        level=level,
        citation_style=citation_style,
        number_of_sources=number_of_sources,
    )
    return to_job_response(ctx.service, job, client)


@router.delete("/{job_id}", response_model=JobResponse)
@limiter.limit("20/minute")
async def cancel_job(request: Request, job_id: str, client: ClientUser, ctx: Context):
    """Cancel a posted job. Its file is deleted."""
    logger.info(f"DELETE /jobs/{job_id} | client={client.user_id}")
    job = ctx.service.cancel_job(client, job_id)
    return to_job_response(ctx.service, job, client)


@router.get("/{job_id}/history", response_model=JobHistoryResponse)
@limiter.limit("60/minute")
async def get_job_history(request: Request, job_id: str, identity: CurrentUser, ctx: Context):
    """Status history of a job, oldest first."""
    logger.info(f"GET /jobs/{job_id}/history | user={identity.user_id}")
    ctx.service.get_job(job_id, identity)
    transitions = ctx.service.get_job_history(job_id)
    return JobHistoryResponse(
        job_id=job_id,
        transitions=[to_transition_response(t) for t in transitions],
    )


# =============================================================================
# Writer Actions
# =============================================================================


@router.post("/{job_id}/bids", response_model=BidResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def place_bid(
    request: Request,
    job_id: str,
    writer: WriterUser,
    ctx: Context,
    bid: BidCreate | None = None,
):
    """
    Bid on a posted job.

    In bidding mode an amount is required and the admin must have set bid
    terms first. In apply mode the body is empty.
    """
    logger.info(f"POST /jobs/{job_id}/bids | writer={writer.user_id}")
    placed = ctx.service.place_bid(writer, job_id, bid.amount if bid else None)
    return to_bid_response(placed)


@router.post(
    "/{job_id}/submissions",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("10/minute")
async def submit_work(
    request: Request,
    job_id: str,
    writer: WriterUser,
    ctx: Context,
    file: UploadFile | None = File(None),
):
    """Submit completed work for an assigned job. A file is required."""
    logger.info(f"POST /jobs/{job_id}/submissions | writer={writer.user_id}")
    submission = ctx.service.submit_work(writer, job_id, await read_upload(file))
    return to_submission_response(ctx.service, submission, writer)

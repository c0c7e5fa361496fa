"""Bid arbitration.

Writers bid on posted jobs; an admin picks one bid. Accepting a bid is a
single storage operation that also rejects every sibling, so two admins
accepting different bids on the same job cannot both win.

Two matching variants exist, chosen per deployment:

- ``bidding``: the admin sets a reference amount first, then writers bid
  an amount
- ``apply``: writers apply without an amount as soon as the job is posted
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Optional

from inkwell.marketplace.config import MarketplaceConfig
from inkwell.marketplace.errors import JobNotFoundError, JobNotOpenError, ValidationError
from inkwell.marketplace.jobs.models import Bid, Job
from inkwell.marketplace.jobs.storage import JobStorage
from inkwell.types import to_money, utc_now

logger = logging.getLogger(__name__)


class BidArbitrator:
    """Places bids and assigns writers."""

    def __init__(
        self,
        storage: JobStorage,
        config: Optional[MarketplaceConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.storage = storage
        self.config = config or MarketplaceConfig()
        self.clock = clock or utc_now

    def _check_amount(self, amount: Any) -> Optional[Any]:
        if self.config.is_bidding:
            if amount is None:
                raise ValidationError("Bid amount is required")
            try:
                value = to_money(amount)
            except ValueError as e:
                raise ValidationError(str(e)) from e
            if value <= 0:
                raise ValidationError("Bid amount must be positive")
            return value
        if amount is not None:
            raise ValidationError("Applications do not carry an amount")
        return None

    def place_bid(self, job_id: str, writer_id: str, amount: Any = None) -> Bid:
        """Place a bid (or application) for a posted job.

        Raises:
            JobNotFoundError: Job does not exist
            JobNotOpenError: Job is not posted, or has no terms yet (bidding)
            ValidationError: Amount missing/invalid (bidding) or present (apply)
            AlreadyAppliedError: Writer already bid on this job
        """
        value = self._check_amount(amount)

        job = self.storage.get_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        if not job.is_open:
            raise JobNotOpenError(f"Job is {job.status}, not accepting bids")
        if self.config.is_bidding and job.reference_amount is None:
            raise JobNotOpenError("Job is not open for bids yet")

        now = self.clock()
        bid = Bid(
            id=str(uuid.uuid4()),
            job_id=job_id,
            writer_id=writer_id,
            amount=value,
            created_at=now,
            updated_at=now,
        )
        self.storage.save_bid(bid)

        logger.info(f"Bid placed | job={job_id} | writer={writer_id} | amount={value}")
        return bid

    def assign_writer(self, bid_id: str) -> Job:
        """Accept a bid and assign its writer.

        Raises:
            BidNotFoundError / JobNotFoundError: Records missing
            BidNotPendingError: Bid already accepted or rejected
            JobNotOpenError: Job no longer posted
        """
        job = self.storage.assign_bid(bid_id, self.clock())
        logger.info(f"Writer assigned | job={job.id} | writer={job.writer_id} | bid={bid_id}")
        return job

"""
Pytest fixtures and test configuration for Inkwell tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from inkwell.marketplace.blobs import InMemoryBlobStore
from inkwell.marketplace.config import MATCHING_APPLY, MarketplaceConfig
from inkwell.marketplace.identity import Identity, Role
from inkwell.marketplace.jobs.files import FileUpload
from inkwell.marketplace.jobs.service import JobService
from inkwell.marketplace.jobs.storage import InMemoryJobStorage

PDF = "application/pdf"
START = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def pdf():
    """Factory for small valid PDF uploads."""

    def _pdf(name: str = "brief.pdf", content: bytes = b"%PDF-1.4 test") -> FileUpload:
        return FileUpload(filename=name, content=content, content_type=PDF)

    return _pdf


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path, monkeypatch):
    """Keep log files out of the real home directory."""
    monkeypatch.setenv("INKWELL_DATA_DIR", str(tmp_path / "inkwell-data"))
    return tmp_path / "inkwell-data"


@pytest.fixture
def clock():
    return FrozenClock(START)


@pytest.fixture
def config():
    return MarketplaceConfig()


@pytest.fixture
def storage():
    """Create in-memory storage for testing."""
    return InMemoryJobStorage()


@pytest.fixture
def blobs():
    return InMemoryBlobStore()


@pytest.fixture
def service(storage, blobs, config, clock):
    """Create job service for testing (bidding mode)."""
    return JobService(storage=storage, blobs=blobs, config=config, clock=clock)


@pytest.fixture
def apply_service(storage, blobs, clock):
    """Job service in apply mode (no bid amounts, no terms)."""
    return JobService(
        storage=storage,
        blobs=blobs,
        config=MarketplaceConfig(matching_mode=MATCHING_APPLY),
        clock=clock,
    )


@pytest.fixture
def client():
    return Identity(user_id="client-1", role=Role.CLIENT, token="client-token")


@pytest.fixture
def other_client():
    return Identity(user_id="client-2", role=Role.CLIENT)


@pytest.fixture
def writer():
    return Identity(user_id="writer-1", role=Role.WRITER, token="writer-token")


@pytest.fixture
def other_writer():
    return Identity(user_id="writer-2", role=Role.WRITER)


@pytest.fixture
def admin():
    return Identity(user_id="admin-1", role=Role.ADMIN)


@pytest.fixture
def post_job(service, client, clock):
    """Post a job with sensible defaults; keyword arguments override them."""
    counter = {"n": 0}

    def _post(actor=None, **overrides):
        counter["n"] += 1
        fields = {
            "description": f"Essay on the industrial revolution #{counter['n']}",
            "budget": "90.00",
            "deadline": clock() + timedelta(days=10),
            "assignment_type": "Essay",
            "quantity": 3,
            "language": "English (US)",
        }
        fields.update(overrides)
        return service.create_job(actor or client, **fields)

    return _post


@pytest.fixture
def assigned_job(service, post_job, writer, admin, clock):
    """A job opened to bids, bid on by ``writer`` and assigned to them."""
    job = post_job(deadline=clock() + timedelta(days=10))
    service.set_bid_terms(admin, job.id, "30.00", clock() + timedelta(days=8))
    bid = service.place_bid(writer, job.id, "28.00")
    return service.assign_writer(admin, bid.id)

"""File binding for jobs and submissions.

Uploads happen only after every other check has passed, and a stored
object is never left behind by a failed write:

- store first, record second; if recording fails the object is deleted
- on replace, the old object is deleted last
- read paths never expose object names, only short-lived signed URLs
"""

import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from inkwell.logging_config import log_upload
from inkwell.marketplace.blobs import BlobStore
from inkwell.marketplace.config import MarketplaceConfig
from inkwell.marketplace.errors import SigningError, StorageError, ValidationError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
MAX_FILENAME_LENGTH = 120


def sanitize_filename(filename: str) -> str:
    """Reduce a client-supplied filename to a safe object-name suffix."""
    base = os.path.basename(filename.replace("\\", "/")).strip()
    base = _UNSAFE_CHARS.sub("_", base).strip("._")
    if not base:
        base = "file"
    return base[-MAX_FILENAME_LENGTH:]


def file_extension(filename: str) -> Optional[str]:
    """Lower-case extension without the dot, or None."""
    ext = os.path.splitext(filename)[1].lower().lstrip(".")
    return ext or None


@dataclass
class FileUpload:
    """An uploaded file as received from the caller."""

    filename: str
    content: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> Optional[str]:
        return file_extension(self.filename)


@dataclass
class StoredFile:
    """Reference to an object written by ``FileBinder.store``."""

    bucket: str
    name: str
    extension: Optional[str]


class FileBinder:
    """Stores, replaces, discards and signs job and submission files."""

    def __init__(self, blobs: BlobStore, config: MarketplaceConfig):
        self.blobs = blobs
        self.config = config

    def validate(self, upload: FileUpload) -> None:
        """Check content type and size. Raises ValidationError before any blob call."""
        if not upload.filename:
            raise ValidationError("File name is required")
        if upload.content_type not in self.config.allowed_content_types:
            raise ValidationError(f"Unsupported file type: {upload.content_type}")
        if upload.size == 0:
            raise ValidationError("File is empty")
        if upload.size > self.config.max_upload_bytes:
            limit_mb = self.config.max_upload_bytes // (1024 * 1024)
            raise ValidationError(f"File too large (max {limit_mb} MB)")

    def object_name(self, upload: FileUpload, now: datetime) -> str:
        millis = int(now.timestamp() * 1000)
        return f"{millis}-{sanitize_filename(upload.filename)}"

    def store(self, bucket: str, upload: FileUpload, now: datetime, actor: str) -> StoredFile:
        """Upload a validated file. Raises StorageError."""
        name = self.object_name(upload, now)
        try:
            self.blobs.upload(bucket, name, upload.content, upload.content_type)
        except StorageError:
            raise
        except Exception as e:
            logger.error(f"Upload failed | bucket={bucket} | name={name} | error={e}")
            raise StorageError(f"Failed to store file: {e}") from e
        log_upload(bucket, name, upload.size, actor)
        return StoredFile(bucket=bucket, name=name, extension=upload.extension)

    def discard(self, bucket: str, name: str) -> None:
        """Delete a stored object. Raises StorageError."""
        try:
            self.blobs.delete(bucket, name)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete file: {e}") from e
        logger.debug(f"Deleted object | bucket={bucket} | name={name}")

    def discard_quietly(self, stored: StoredFile) -> None:
        """Best-effort delete used when undoing a failed write."""
        try:
            self.discard(stored.bucket, stored.name)
        except StorageError as e:
            logger.warning(f"Orphaned object | bucket={stored.bucket} | name={stored.name} | error={e}")

    def signed_url(
        self,
        bucket: str,
        name: Optional[str],
        access_token: Optional[str] = None,
    ) -> Optional[str]:
        """Signed URL for an object, or None if there is no object or signing fails."""
        if not name:
            return None
        try:
            return self.blobs.sign(
                bucket,
                name,
                self.config.signed_url_ttl_seconds,
                access_token=access_token,
            )
        except SigningError as e:
            logger.warning(f"Signing failed | bucket={bucket} | name={name} | error={e}")
            return None

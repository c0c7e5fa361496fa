"""Blob store contract.

Files live under named buckets. The marketplace only needs three
operations: upload, produce a short-lived signed URL, delete.
"""

import secrets
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Protocol, Tuple

from inkwell.marketplace.errors import SigningError, StorageError


class BlobStore(Protocol):
    """Protocol for blob store backends."""

    def upload(self, bucket: str, name: str, data: bytes, content_type: str) -> str:
        """Store an object. Returns a reference. Raises StorageError."""
        ...

    def sign(
        self,
        bucket: str,
        name: str,
        ttl_seconds: int,
        access_token: Optional[str] = None,
    ) -> str:
        """Create a time-limited URL for an object. Raises SigningError.

        When ``access_token`` is given the URL is signed with the caller's
        credentials instead of the service credentials.
        """
        ...

    def delete(self, bucket: str, name: str) -> None:
        """Delete an object. Deleting a missing object is not an error."""
        ...


@dataclass
class StoredBlob:
    data: bytes
    content_type: str


class InMemoryBlobStore:
    """In-memory blob store for testing and local development."""

    def __init__(self, base_url: str = "memory://blobs"):
        self.base_url = base_url.rstrip("/")
        self._objects: Dict[Tuple[str, str], StoredBlob] = {}
        self._lock = threading.Lock()

    def upload(self, bucket: str, name: str, data: bytes, content_type: str) -> str:
        with self._lock:
            if (bucket, name) in self._objects:
                raise StorageError(f"Object already exists: {bucket}/{name}")
            self._objects[(bucket, name)] = StoredBlob(data=bytes(data), content_type=content_type)
        return f"{bucket}/{name}"

    def sign(
        self,
        bucket: str,
        name: str,
        ttl_seconds: int,
        access_token: Optional[str] = None,
    ) -> str:
        if (bucket, name) not in self._objects:
            raise SigningError(f"Object not found: {bucket}/{name}")
        signature = secrets.token_urlsafe(16)
        return f"{self.base_url}/{bucket}/{name}?expires_in={ttl_seconds}&sig={signature}"

    def delete(self, bucket: str, name: str) -> None:
        with self._lock:
            self._objects.pop((bucket, name), None)

    # === Inspection helpers ===

    def exists(self, bucket: str, name: str) -> bool:
        return (bucket, name) in self._objects

    def get(self, bucket: str, name: str) -> Optional[StoredBlob]:
        return self._objects.get((bucket, name))

    def names(self, bucket: str) -> list[str]:
        return sorted(n for b, n in self._objects if b == bucket)

"""
Storage abstraction for Google Cloud Storage and in-memory testing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol, Union
from urllib.parse import quote

from google.api_core import exceptions as google_exceptions
from google.cloud import storage as gcs_storage

from relay.errors import ContentFetchError, StorageError

GCS_PUBLIC_BASE_URL = "https://storage.googleapis.com"

Payload = Union[bytes, str]


def public_object_url(bucket: str, name: str) -> str:
    return f"{GCS_PUBLIC_BASE_URL}/{bucket}/{quote(name, safe='/')}"


class StorageClient(Protocol):
    """Defines the operations the relay needs from object storage."""

    bucket_name: str

    def put_object(
        self,
        name: str,
        data: Payload,
        content_type: str,
        metadata: Optional[dict] = None,
    ) -> None:
        ...

    def public_url(self, name: str) -> str:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    bucket_name: str = "test-bucket"
    stored_objects: dict = field(default_factory=dict)
    content_types: dict = field(default_factory=dict)
    object_metadata: dict = field(default_factory=dict)

    def reset(self) -> None:
        self.stored_objects.clear()
        self.content_types.clear()
        self.object_metadata.clear()

    def put_object(
        self,
        name: str,
        data: Payload,
        content_type: str,
        metadata: Optional[dict] = None,
    ) -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.stored_objects[name] = data
        self.content_types[name] = content_type
        self.object_metadata[name] = dict(metadata or {})

    def public_url(self, name: str) -> str:
        return public_object_url(self.bucket_name, name)

    def read_url(self, url: str) -> str:
        """Serve a public URL back from memory, as the bucket would over HTTP."""
        for name, data in self.stored_objects.items():
            if self.public_url(name) == url:
                return data.decode("utf-8")
        raise ContentFetchError(f"No stored object at {url}")


@dataclass
class GcsStorageClient:
    """
    Google Cloud Storage client for a publicly readable bucket.
    """

    bucket_name: str

    def __post_init__(self):
        self._client = gcs_storage.Client()
        self._bucket = self._client.bucket(self.bucket_name)

    def put_object(
        self,
        name: str,
        data: Payload,
        content_type: str,
        metadata: Optional[dict] = None,
    ) -> None:
        blob = self._bucket.blob(name)
        if metadata:
            blob.metadata = metadata
        try:
            blob.upload_from_string(data, content_type=content_type)
        except google_exceptions.GoogleAPIError as exc:
            raise StorageError(f"GCS upload of {name} failed: {exc}") from exc

    def public_url(self, name: str) -> str:
        return public_object_url(self.bucket_name, name)

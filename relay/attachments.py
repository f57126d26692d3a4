"""
Attachment Relay: puts bytes in the bucket and links them into record fields.

Two conventions live here:

* User uploads are stored as ``<epoch millis>-<original name>`` and appended
  to (or replace) an attachment field.
* Structured content (page bodies, notes) is stored out-of-band under a
  deterministic ``content-<table>-<record>-<field>.json`` name and referenced
  from a single-entry attachment field, so saving again overwrites the same
  object.

Appending is read-then-write: two concurrent appends to the same field can
lose one of the attachments.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Callable, Optional

import requests

from relay.errors import ContentFetchError
from relay.record_store import RecordStore
from relay.storage import StorageClient
from shared.records import AttachmentRef, attachments_from_field, is_attachment_list

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30  # seconds
JSON_CONTENT_TYPE = "application/json"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Plain fields that held content before it moved into attachments.
HYBRID_FALLBACK_FIELDS = {
    "Notes": "Notes",
    "description": "description",
    "pageContent": "pageContent",
}


class AttachMode(StrEnum):
    APPEND = "append"
    REPLACE = "replace"


@dataclass
class NamedContent:
    content: Any
    source: str
    filename: Optional[str] = None
    url: Optional[str] = None


def content_object_name(logical_table: str, record_id: str, field_name: str) -> str:
    return f"content-{logical_table}-{record_id}-{field_name}.json"


def http_fetch_text(url: str) -> str:
    """
    Fetches the body of a public attachment URL.

    Raises:
        ContentFetchError: If the request fails or returns a non-2xx status.
    """
    try:
        response = requests.get(url, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as exc:
        raise ContentFetchError(f"Failed to fetch attachment: {exc}") from exc
    if not response.ok:
        raise ContentFetchError(
            f"Failed to fetch attachment: {response.status_code} {response.reason}"
        )
    return response.text


class AttachmentRelay:
    def __init__(
        self,
        records: RecordStore,
        storage: StorageClient,
        fetch_text: Callable[[str], str] = http_fetch_text,
        clock: Callable[[], float] = time.time,
    ):
        self.records = records
        self.storage = storage
        self.fetch_text = fetch_text
        self.clock = clock

    def upload_object_name(self, suggested_name: str) -> str:
        return f"{int(self.clock() * 1000)}-{suggested_name}"

    def store(
        self,
        content: bytes,
        suggested_name: str,
        content_type: Optional[str] = None,
    ) -> AttachmentRef:
        """Write an upload to the bucket and return a reference to it."""
        name = self.upload_object_name(suggested_name)
        self.storage.put_object(name, content, content_type or DEFAULT_CONTENT_TYPE)
        return AttachmentRef(url=self.storage.public_url(name), filename=suggested_name)

    def attach(
        self,
        record_id: str,
        field_name: str,
        logical_table: str,
        ref: AttachmentRef,
        mode: AttachMode = AttachMode.APPEND,
    ) -> list:
        """Link ``ref`` into ``field_name`` and return the field's new value."""
        if mode == AttachMode.APPEND:
            current = self.records.get_one(logical_table, record_id)
            existing = current.fields.get(field_name)
            attachments = list(existing) if isinstance(existing, list) else []
            attachments.append(ref.as_dict())
        else:
            attachments = [ref.as_dict()]

        updated = self.records.update_one(
            record_id, {field_name: attachments}, logical_table
        )
        return updated.fields.get(field_name) or []

    def upload(
        self,
        content: bytes,
        filename: str,
        content_type: Optional[str],
        record_id: str,
        field_name: str,
        logical_table: str,
        mode: AttachMode = AttachMode.APPEND,
    ) -> list:
        ref = self.store(content, filename, content_type)
        return self.attach(record_id, field_name, logical_table, ref, mode)

    def write_named_content(
        self, logical_table: str, record_id: str, field_name: str, body: str
    ) -> AttachmentRef:
        """Write structured content to its deterministic object; no record update."""
        name = content_object_name(logical_table, record_id, field_name)
        self.storage.put_object(
            name,
            body,
            JSON_CONTENT_TYPE,
            metadata={
                "recordId": record_id,
                "tableName": logical_table,
                "fieldName": field_name,
                "uploadedAt": datetime.now(timezone.utc).isoformat(),
            },
        )
        return AttachmentRef(url=self.storage.public_url(name), filename=name)

    def store_named_content(
        self, logical_table: str, record_id: str, field_name: str, body: str
    ) -> AttachmentRef:
        logger.info(
            "Saving content attachment for %s.%s, record: %s",
            logical_table,
            field_name,
            record_id,
        )
        ref = self.write_named_content(logical_table, record_id, field_name, body)
        self.records.update_one(record_id, {field_name: [ref.as_dict()]}, logical_table)
        return ref

    def fetch_named_content(
        self, logical_table: str, record_id: str, field_name: str
    ) -> Optional[NamedContent]:
        """Dereference the first attachment in ``field_name``; None if empty."""
        record = self.records.get_one(logical_table, record_id)
        refs = attachments_from_field(record.fields.get(field_name))
        if not refs:
            logger.info(
                "No attachment found for %s.%s, record: %s",
                logical_table,
                field_name,
                record_id,
            )
            return None
        ref = refs[0]
        return NamedContent(
            content=self.fetch_text(ref.url),
            source="attachment",
            filename=ref.filename,
            url=ref.url,
        )

    def fetch_hybrid_content(
        self, logical_table: str, record_id: str, field_name: str
    ) -> Optional[NamedContent]:
        """
        Like fetch_named_content, but falls back to a plain text field for
        records written before content moved into attachments.
        """
        record = self.records.get_one(logical_table, record_id)
        refs = attachments_from_field(record.fields.get(field_name))
        if refs:
            ref = refs[0]
            try:
                return NamedContent(
                    content=self.fetch_text(ref.url),
                    source="attachment",
                    filename=ref.filename,
                    url=ref.url,
                )
            except ContentFetchError as exc:
                logger.warning(
                    "Attachment fetch failed for %s.%s: %s",
                    logical_table,
                    field_name,
                    exc,
                )

        fallback_field = HYBRID_FALLBACK_FIELDS.get(field_name, field_name)
        fallback = record.fields.get(fallback_field)
        if fallback and not is_attachment_list(fallback):
            logger.info(
                "Found fallback content for %s.%s", logical_table, fallback_field
            )
            return NamedContent(content=fallback, source="fallback")
        return None

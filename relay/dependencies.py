"""
Dependency wiring for the FastAPI app.

Clients are built once per app from its Settings and kept on
``app.state.services``; request handlers pull them through the getters below.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi.requests import HTTPConnection

from relay.airtable import AirtableTableClient, InMemoryTableClient, TableClient
from relay.attachments import AttachmentRelay
from relay.config import Settings
from relay.realtime import ChatHub
from relay.recaptcha import AbuseScorer, RecaptchaEnterpriseScorer, StaticScorer
from relay.record_store import RecordStore
from relay.storage import GcsStorageClient, InMemoryStorageClient, StorageClient

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    table_client: TableClient
    storage: StorageClient
    records: RecordStore
    attachments: AttachmentRelay
    scorer: Optional[AbuseScorer]
    chat: ChatHub


def build_table_client(settings: Settings) -> TableClient:
    if settings.use_in_memory_backends:
        return InMemoryTableClient()
    return AirtableTableClient(
        api_key=settings.airtable_api_key or "",
        base_id=settings.airtable_base_id or "",
        timeout=settings.request_timeout_seconds,
    )


def build_storage_client(settings: Settings) -> StorageClient:
    if settings.use_in_memory_backends:
        return InMemoryStorageClient(bucket_name=settings.gcs_bucket_name or "test-bucket")
    return GcsStorageClient(bucket_name=settings.gcs_bucket_name or "")


def build_scorer(settings: Settings) -> Optional[AbuseScorer]:
    if settings.use_in_memory_backends:
        return StaticScorer()
    if not settings.gcp_project_id:
        logger.warning("GCP_PROJECT_ID is not set; recaptcha checks will fail")
        return None
    return RecaptchaEnterpriseScorer(project_id=settings.gcp_project_id)


def build_services(settings: Settings) -> Services:
    table_client = build_table_client(settings)
    storage = build_storage_client(settings)
    records = RecordStore(table_client)
    attachments = AttachmentRelay(records, storage)
    if isinstance(storage, InMemoryStorageClient):
        attachments.fetch_text = storage.read_url
    logger.info(
        "Services ready (tables=%s, storage=%s)",
        table_client.__class__.__name__,
        storage.__class__.__name__,
    )
    return Services(
        settings=settings,
        table_client=table_client,
        storage=storage,
        records=records,
        attachments=attachments,
        scorer=build_scorer(settings),
        chat=ChatHub(records),
    )


def get_services(conn: HTTPConnection) -> Services:
    return conn.app.state.services


def get_settings(conn: HTTPConnection) -> Settings:
    return conn.app.state.services.settings


def get_record_store(conn: HTTPConnection) -> RecordStore:
    return conn.app.state.services.records


def get_attachment_relay(conn: HTTPConnection) -> AttachmentRelay:
    return conn.app.state.services.attachments


def get_scorer(conn: HTTPConnection) -> Optional[AbuseScorer]:
    return conn.app.state.services.scorer


def get_chat_hub(conn: HTTPConnection) -> ChatHub:
    return conn.app.state.services.chat

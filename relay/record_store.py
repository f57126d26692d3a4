"""
Record Store Adapter: logical-table operations over a TableClient.

Logical table names are resolved to Airtable ids, writes are paged ten at a
time, and main-table currency fields are coerced to numbers before create.
Nothing here retries or rolls back: a failing page leaves earlier pages
committed.
"""

from __future__ import annotations

import logging
from typing import Optional

from relay import tables
from relay.airtable import TableClient
from relay.batching import apply_in_pages
from relay.errors import InvalidFieldValueError
from shared.records import Fields, Record

logger = logging.getLogger(__name__)

ATTACHMENT_COUNTER_FIELD = "task_attachment_id_counter"


def _to_number(field_name: str, value):
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError as exc:
        raise InvalidFieldValueError(field_name, value) from exc


def coerce_main_fields(fields: Fields) -> Fields:
    """Convert the main table's currency columns to numbers."""
    return {
        name: _to_number(name, value) if name in tables.NUMERIC_MAIN_FIELDS else value
        for name, value in fields.items()
    }


class RecordStore:
    """Logical operations on the external tabular store."""

    def __init__(self, client: TableClient):
        self.client = client

    def get_all(self, logical_name: str) -> list[Record]:
        table = tables.resolve_table(logical_name)
        return [Record.from_api(r) for r in self.client.list_records(table)]

    def get_one(self, logical_name: str, record_id: Optional[str]) -> Record:
        table = tables.resolve_table(logical_name)
        record_id = tables.resolve_record_id(logical_name, record_id)
        return Record.from_api(self.client.get_record(table, record_id))

    def get_filtered(self, anchor_id: str, logical_name: str) -> list[Record]:
        table = tables.resolve_table(logical_name)
        formula = tables.filter_formula(anchor_id, logical_name)
        return [Record.from_api(r) for r in self.client.list_records(table, formula)]

    def get_by_ids(self, record_ids: list[str], logical_name: str) -> list[Record]:
        if not record_ids:
            return []
        table = tables.resolve_table(logical_name)
        formula = tables.record_ids_formula(record_ids)
        return [Record.from_api(r) for r in self.client.list_records(table, formula)]

    def find_task_record_id(self, display_id: str) -> Optional[str]:
        """Record id of the task whose display id (e.g. ``T-001``) matches."""
        table = tables.resolve_table(tables.TASKS)
        matches = self.client.list_records(
            table, tables.display_id_formula(display_id)
        )
        return matches[0]["id"] if matches else None

    def authenticate_client(self, project_name: str, project_id: str) -> list[Record]:
        table = tables.resolve_table(tables.MAIN_TABLE)
        formula = tables.client_login_formula(project_name, project_id)
        return [Record.from_api(r) for r in self.client.list_records(table, formula)]

    def create_many(self, records: list[dict], logical_name: str) -> list[Record]:
        table = tables.resolve_table(logical_name)
        payload = [{"fields": dict(r.get("fields") or {})} for r in records]
        if tables.is_main_table(logical_name):
            payload = [{"fields": coerce_main_fields(r["fields"])} for r in payload]

        created = apply_in_pages(
            payload, lambda page: self.client.create_records(table, page)
        )
        return [Record.from_api(r) for r in created]

    def update_many(self, records: list[dict], logical_name: str) -> list[Record]:
        table = tables.resolve_table(logical_name)
        payload = [
            {"id": r["id"], "fields": dict(r.get("fields") or {})} for r in records
        ]
        updated = apply_in_pages(
            payload, lambda page: self.client.update_records(table, page)
        )
        return [Record.from_api(r) for r in updated]

    def delete_many(self, record_ids: list[str], logical_name: str) -> list[str]:
        table = tables.resolve_table(logical_name)
        deleted = apply_in_pages(
            list(record_ids), lambda page: self.client.delete_records(table, page)
        )
        return [r["id"] for r in deleted]

    def update_one(
        self, record_id: Optional[str], fields: Fields, logical_name: str
    ) -> Record:
        table = tables.resolve_table(logical_name)
        record_id = tables.resolve_record_id(logical_name, record_id)
        return Record.from_api(self.client.update_record(table, record_id, fields))

    def next_attachment_id(self) -> int:
        """
        Increment the attachment id counter and return the new value.

        This is a plain read-then-write against the counter record. Two
        concurrent callers can read the same value and both write value + 1,
        losing one increment.
        """
        counter = self.get_one(tables.COUNTER, None)
        next_id = int(counter.fields.get(ATTACHMENT_COUNTER_FIELD) or 0) + 1
        self.update_one(None, {ATTACHMENT_COUNTER_FIELD: next_id}, tables.COUNTER)
        logger.info("Issued attachment id %s", next_id)
        return next_id

"""
Tabular store clients: Airtable's REST API and an in-memory stand-in.

Clients speak raw Airtable JSON (``{"id", "createdTime", "fields"}``) and
never page writes themselves; callers send at most ten records per call.
"""

from __future__ import annotations

import copy
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol

import requests

from relay.errors import RecordNotFoundError, TableStoreError

AIRTABLE_API_URL = "https://api.airtable.com/v0"
REQUEST_TIMEOUT = 30  # seconds
LIST_PAGE_SIZE = 100


class TableClient(Protocol):
    """Operations the relay needs from the tabular store."""

    def list_records(self, table: str, formula: Optional[str] = None) -> list[dict]:
        ...

    def get_record(self, table: str, record_id: str) -> dict:
        ...

    def create_records(self, table: str, records: list[dict]) -> list[dict]:
        ...

    def update_records(self, table: str, records: list[dict]) -> list[dict]:
        ...

    def update_record(self, table: str, record_id: str, fields: dict) -> dict:
        ...

    def delete_records(self, table: str, record_ids: list[str]) -> list[dict]:
        ...


@dataclass
class AirtableTableClient:
    """Airtable REST client authenticated with a personal access token."""

    api_key: str
    base_id: str
    timeout: float = REQUEST_TIMEOUT
    api_url: str = AIRTABLE_API_URL

    def __post_init__(self):
        self._session = requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            }
        )

    def _url(self, table: str, record_id: Optional[str] = None) -> str:
        url = f"{self.api_url}/{self.base_id}/{table}"
        return f"{url}/{record_id}" if record_id else url

    def _request(self, method: str, url: str, **kwargs) -> dict:
        try:
            response = self._session.request(
                method, url, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as exc:
            raise TableStoreError(f"Airtable {method} {url} failed: {exc}") from exc
        if not response.ok:
            raise TableStoreError(
                f"Airtable {method} {url} returned {response.status_code}: "
                f"{response.text}",
                status_code=response.status_code,
            )
        return response.json()

    def list_records(self, table: str, formula: Optional[str] = None) -> list[dict]:
        params: dict = {"pageSize": LIST_PAGE_SIZE}
        if formula:
            params["filterByFormula"] = formula

        records: list[dict] = []
        while True:
            payload = self._request("GET", self._url(table), params=params)
            records.extend(payload.get("records", []))
            offset = payload.get("offset")
            if not offset:
                return records
            params = {**params, "offset": offset}

    def get_record(self, table: str, record_id: str) -> dict:
        try:
            return self._request("GET", self._url(table, record_id))
        except TableStoreError as exc:
            if exc.status_code == 404:
                raise RecordNotFoundError(table, record_id) from exc
            raise

    def create_records(self, table: str, records: list[dict]) -> list[dict]:
        body = {"records": [{"fields": r.get("fields", {})} for r in records]}
        return self._request("POST", self._url(table), json=body)["records"]

    def update_records(self, table: str, records: list[dict]) -> list[dict]:
        body = {
            "records": [
                {"id": r["id"], "fields": r.get("fields", {})} for r in records
            ]
        }
        return self._request("PATCH", self._url(table), json=body)["records"]

    def update_record(self, table: str, record_id: str, fields: dict) -> dict:
        try:
            return self._request(
                "PATCH", self._url(table, record_id), json={"fields": fields}
            )
        except TableStoreError as exc:
            if exc.status_code == 404:
                raise RecordNotFoundError(table, record_id) from exc
            raise

    def delete_records(self, table: str, record_ids: list[str]) -> list[dict]:
        params = [("records[]", record_id) for record_id in record_ids]
        return self._request("DELETE", self._url(table), params=params)["records"]


_EQUALS = re.compile(r'\{([^}]+)\}\s*=\s*"((?:[^"\\]|\\.)*)"')
_FIND = re.compile(r'FIND\("((?:[^"\\]|\\.)*)",\s*ARRAYJOIN\(\{([^}]+)\}\)\)')
_RECORD_ID = re.compile(r'RECORD_ID\(\)\s*=\s*"((?:[^"\\]|\\.)*)"')


def _unescape(value: str) -> str:
    return re.sub(r"\\(.)", r"\1", value)


def _as_strings(value) -> list[str]:
    if value is None:
        return [""]
    if isinstance(value, list):
        return [str(v) for v in value]
    return [str(value)]


def formula_matches(record: dict, formula: Optional[str]) -> bool:
    """
    Evaluate the formula shapes the relay generates against a raw record.

    Supports ``{Field} = "v"``, ``FIND("v", ARRAYJOIN({Field}))`` and
    ``RECORD_ID() = "id"`` clauses combined by ``AND(...)`` or ``OR(...)``.
    """
    if not formula:
        return True
    fields = record.get("fields", {})
    results = []
    for name, expected in _EQUALS.findall(formula):
        results.append(_unescape(expected) in _as_strings(fields.get(name)))
    for needle, name in _FIND.findall(formula):
        joined = ", ".join(_as_strings(fields.get(name)))
        results.append(_unescape(needle) in joined)
    for record_id in _RECORD_ID.findall(formula):
        results.append(record.get("id") == _unescape(record_id))
    if not results:
        raise ValueError(f"Unsupported formula: {formula}")
    if formula.lstrip().startswith("OR("):
        return any(results)
    return all(results)


@dataclass
class InMemoryTableClient:
    """Dictionary-backed stand-in for Airtable used in development and tests."""

    tables: dict[str, dict[str, dict]] = field(default_factory=dict)
    calls: list[tuple[str, str, int]] = field(default_factory=list)

    def reset(self) -> None:
        self.tables.clear()
        self.calls.clear()

    def seed(self, table: str, fields: dict, record_id: Optional[str] = None) -> dict:
        record = {
            "id": record_id or f"rec{uuid.uuid4().hex[:14]}",
            "createdTime": datetime.now(timezone.utc).strftime(
                "%Y-%m-%dT%H:%M:%S.000Z"
            ),
            "fields": copy.deepcopy(fields),
        }
        self.tables.setdefault(table, {})[record["id"]] = record
        return copy.deepcopy(record)

    def _table(self, table: str) -> dict[str, dict]:
        return self.tables.setdefault(table, {})

    def list_records(self, table: str, formula: Optional[str] = None) -> list[dict]:
        self.calls.append(("list", table, 0))
        return [
            copy.deepcopy(record)
            for record in self._table(table).values()
            if formula_matches(record, formula)
        ]

    def get_record(self, table: str, record_id: str) -> dict:
        self.calls.append(("get", table, 1))
        record = self._table(table).get(record_id)
        if record is None:
            raise RecordNotFoundError(table, record_id)
        return copy.deepcopy(record)

    def create_records(self, table: str, records: list[dict]) -> list[dict]:
        self.calls.append(("create", table, len(records)))
        return [self.seed(table, r.get("fields", {})) for r in records]

    def update_records(self, table: str, records: list[dict]) -> list[dict]:
        self.calls.append(("update", table, len(records)))
        stored = self._table(table)
        missing = [r["id"] for r in records if r["id"] not in stored]
        if missing:
            raise TableStoreError(
                f"Unknown records in {table}: {', '.join(missing)}", status_code=422
            )
        for r in records:
            stored[r["id"]]["fields"].update(copy.deepcopy(r.get("fields", {})))
        return [copy.deepcopy(stored[r["id"]]) for r in records]

    def update_record(self, table: str, record_id: str, fields: dict) -> dict:
        self.calls.append(("update_one", table, 1))
        record = self._table(table).get(record_id)
        if record is None:
            raise RecordNotFoundError(table, record_id)
        record["fields"].update(copy.deepcopy(fields))
        return copy.deepcopy(record)

    def delete_records(self, table: str, record_ids: list[str]) -> list[dict]:
        self.calls.append(("delete", table, len(record_ids)))
        stored = self._table(table)
        deleted = []
        for record_id in record_ids:
            if stored.pop(record_id, None) is None:
                raise TableStoreError(
                    f"Unknown record in {table}: {record_id}", status_code=404
                )
            deleted.append({"id": record_id, "deleted": True})
        return deleted

"""
Logical table names, their Airtable table ids, and per-table filter formulas.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

MAIN_TABLE_ID = "tblpIHBsPfZXu8IFs"
COUNTER_RECORD_ID = "recVvoLbScv02b54S"

COUNTER = "counter"
ACTIONS = "actions"
ACTIVITIES = "activities"
TASKS = "tasks"
COLLABORATORS = "collaborators"
TASK_ATTACHMENTS = "task_attachments"
TASK_CHECKLISTS = "task_checklists"
TASK_CHAT = "task_chat"
TASK_FORMS = "task_forms"
TASK_FORMS_FIELDS = "task_forms_fields"
TASK_FORMS_SUBMISSIONS = "task_forms_submissions"
TASK_GROUPS = "task_groups"
INFORMATIONAL_PAGES = "informational_pages"
IMAGE_ASSETS = "image_assets"

# Names without an entry of their own live in the main table.
MAIN_TABLE = "main_table"
PROJECTS = "projects"
PROJECT_MESSAGES = "project_messages"
INTRO_SUBMISSIONS = "intro_submissions"

TABLE_IDS = {
    COUNTER: "tblS3ijjC5fBGTuPR",
    ACTIONS: "tblKQ8MMZMirJduk7",
    ACTIVITIES: "tblNQFudN16AwUKBM",
    TASKS: "tbl9D8m3mF2RVptEc",
    COLLABORATORS: "tblev0ek2lTzgxIMQ",
    TASK_ATTACHMENTS: "tblwPb1smWrdFtTfE",
    TASK_CHECKLISTS: "tblbOAaUlFZvPzTTJ",
    TASK_CHAT: "tblmByy6LcRAYyf0y",
    TASK_FORMS: "tblLxZdNHFCq8ETVL",
    TASK_FORMS_FIELDS: "tbl91WJ2yjJX6ndAs",
    TASK_FORMS_SUBMISSIONS: "tbllxpBCIdShL5Mih",
    TASK_GROUPS: "tblCD3xEADjeAG3d4",
    INFORMATIONAL_PAGES: "tblM7936jKJeBdw36",
    IMAGE_ASSETS: "tblTP0vUb0aMMTpIr",
}

# Currency columns on the main table that Airtable stores as numbers.
NUMERIC_MAIN_FIELDS = ("Full Cost", "Paid", "Balance")


def resolve_table(logical_name: str | None) -> str:
    """Map a logical table name to its Airtable id; unknown names get the main table."""
    return TABLE_IDS.get(logical_name or "", MAIN_TABLE_ID)


def is_main_table(logical_name: str | None) -> bool:
    return resolve_table(logical_name) == MAIN_TABLE_ID


def resolve_record_id(logical_name: str | None, record_id: str | None) -> str | None:
    """The counter table has a single record; any caller-supplied id is ignored."""
    if logical_name == COUNTER:
        return COUNTER_RECORD_ID
    return record_id


def quote(value: str) -> str:
    """Airtable formula string literal."""
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


@dataclass(frozen=True)
class FieldEquals:
    field: str

    def formula(self, anchor: str) -> str:
        return f"{{{self.field}}} = {quote(anchor)}"


@dataclass(frozen=True)
class EmailOrFieldEquals:
    """Email-looking anchors match ``email_field``, anything else ``field``."""

    email_field: str
    field: str

    def formula(self, anchor: str) -> str:
        target = self.email_field if "@" in anchor else self.field
        return f"{{{target}}} = {quote(anchor)}"


@dataclass(frozen=True)
class ArrayContains:
    field: str

    def formula(self, anchor: str) -> str:
        return f"FIND({quote(anchor)}, ARRAYJOIN({{{self.field}}}))"


FilterStrategy = Union[FieldEquals, EmailOrFieldEquals, ArrayContains]

PROJECT_LINK = FieldEquals("Project ID (from Project ID)")
TASK_LINK = FieldEquals("id (from task_id)")

FILTER_STRATEGIES: dict[str, FilterStrategy] = {
    ACTIONS: FieldEquals("Project ID"),
    MAIN_TABLE: FieldEquals("Project ID"),
    TASKS: EmailOrFieldEquals("assigned_to", "Project ID (from Project ID)"),
    TASK_GROUPS: FieldEquals("Project ID (from projectID)"),
    TASK_ATTACHMENTS: TASK_LINK,
    TASK_CHECKLISTS: TASK_LINK,
    TASK_FORMS_SUBMISSIONS: TASK_LINK,
    TASK_CHAT: TASK_LINK,
    TASK_FORMS_FIELDS: ArrayContains("task_form"),
}


def filter_strategy(logical_name: str | None) -> FilterStrategy:
    return FILTER_STRATEGIES.get(logical_name or "", PROJECT_LINK)


def filter_formula(anchor: str, logical_name: str | None) -> str:
    return filter_strategy(logical_name).formula(anchor)


def record_ids_formula(record_ids: list[str]) -> str:
    clauses = ", ".join(
        f"RECORD_ID() = {quote(record_id)}" for record_id in record_ids
    )
    return f"OR({clauses})"


def display_id_formula(display_id: str) -> str:
    return f"{{id}} = {quote(display_id)}"


def client_login_formula(project_name: str, project_id: str) -> str:
    return (
        f"AND({{Project Name}} = {quote(project_name)}, "
        f"{{Project ID}} = {quote(project_id)})"
    )

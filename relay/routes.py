"""
HTTP routes for the relay API.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool

from relay import tables
from relay.attachments import AttachMode, AttachmentRelay
from relay.dependencies import (
    get_attachment_relay,
    get_record_store,
    get_scorer,
    get_settings,
)
from relay.config import Settings
from relay.errors import (
    ExternalServiceError,
    InvalidFieldValueError,
    RecordNotFoundError,
)
from relay.recaptcha import AbuseScorer, Verdict, evaluate
from relay.record_store import RecordStore
from relay.schemas import (
    AttachmentIdResponse,
    AttachmentResponse,
    ContentResponse,
    CreateInfoPageRequest,
    CreateRecordsRequest,
    DeleteRecordsRequest,
    DeleteRecordsResponse,
    HybridContentResponse,
    InfoPage,
    InfoPageSummary,
    IntroFormRequest,
    RecaptchaRequest,
    RecaptchaResponse,
    RecordsByIdsRequest,
    SaveContentRequest,
    SaveContentResponse,
    UpdateInfoPageRequest,
    UpdateRecordRequest,
    UpdateRecordsRequest,
)
from shared import board
from shared.records import Record, as_number

logger = logging.getLogger(__name__)

router = APIRouter()

PAGE_CONTENT_FIELD = "pageContent"
IMAGE_FILE_FIELD = "imageFile"


@contextmanager
def external_call(failure_message: str, *, with_details: bool = False) -> Iterator[None]:
    """Translate adapter errors into HTTP errors for the enclosed block."""
    try:
        yield
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Record not found") from exc
    except InvalidFieldValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ExternalServiceError as exc:
        logger.exception("%s: %s", failure_message, exc)
        detail = failure_message
        if with_details:
            detail = {"error": failure_message, "details": str(exc)}
        raise HTTPException(status_code=500, detail=detail) from exc


def _records_payload(records: list[Record]) -> dict:
    return {"records": [record.as_dict() for record in records]}


def _info_page_summary(record: Record) -> InfoPageSummary:
    return InfoPageSummary(
        id=record.id,
        title=record.fields.get("pageTitle"),
        order=as_number(record.fields.get("order"), default=None),
        icon=record.fields.get("icon"),
    )


def format_meeting_date(value: str) -> str:
    """Render the intake form's meeting date the way the Airtable column expects."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed.strftime("%Y-%m-%dT%H:%M:%S")


# ----- Records -----


@router.get("/records")
def list_main_records(store: RecordStore = Depends(get_record_store)):
    with external_call("Failed to fetch records"):
        records = store.get_all(tables.MAIN_TABLE)
    return [record.as_dict() for record in records]


@router.get("/records/filter/{record_id}/{table_name}")
def filter_records(
    record_id: str, table_name: str, store: RecordStore = Depends(get_record_store)
):
    with external_call("Failed to fetch filtered records"):
        records = store.get_filtered(record_id, table_name)
    return _records_payload(records)


@router.get("/records/board/{project_id}/{table_name}")
def get_board(
    project_id: str, table_name: str, store: RecordStore = Depends(get_record_store)
):
    with external_call("Failed to fetch board"):
        records = store.get_filtered(project_id, table_name)
    return board.transform(records).as_dict()


@router.get("/records/{table_name}/{record_id}")
def get_record(
    table_name: str, record_id: str, store: RecordStore = Depends(get_record_store)
):
    with external_call("Failed to fetch record"):
        record = store.get_one(table_name, record_id)
    return record.as_dict()


@router.patch("/records/{table_name}/{record_id}")
def update_record(
    table_name: str,
    record_id: str,
    payload: UpdateRecordRequest,
    store: RecordStore = Depends(get_record_store),
):
    with external_call("Failed to update record"):
        record = store.update_one(record_id, payload.fields, table_name)
    return record.as_dict()


@router.post("/records", status_code=201)
def create_records(
    payload: CreateRecordsRequest, store: RecordStore = Depends(get_record_store)
):
    with external_call("Failed to create records"):
        created = store.create_many(
            [r.model_dump() for r in payload.recordsToCreate], payload.tableName
        )
    return _records_payload(created)


@router.patch("/records")
def update_records(
    payload: UpdateRecordsRequest, store: RecordStore = Depends(get_record_store)
):
    with external_call("Failed to update records"):
        updated = store.update_many(
            [r.model_dump() for r in payload.recordsToUpdate], payload.tableName
        )
    return _records_payload(updated)


@router.delete("/records/{table_name}", response_model=DeleteRecordsResponse)
def delete_records(
    table_name: str,
    payload: Optional[DeleteRecordsRequest] = None,
    store: RecordStore = Depends(get_record_store),
):
    if payload is None or not payload.recordIds:
        raise HTTPException(
            status_code=400, detail="Record IDs must be a non-empty array."
        )
    with external_call("Failed to delete records"):
        deleted = store.delete_many(payload.recordIds, table_name)
    return DeleteRecordsResponse(
        message="Records deleted successfully", deletedRecords=deleted
    )


@router.post("/records/by-ids")
def records_by_ids(
    payload: RecordsByIdsRequest, store: RecordStore = Depends(get_record_store)
):
    if payload.recordIds is None:
        raise HTTPException(status_code=400, detail="recordIds must be an array.")
    with external_call("Failed to fetch records by IDs"):
        records = store.get_by_ids(payload.recordIds, payload.tableName)
    return _records_payload(records)


@router.get("/all/{table_name}")
def list_table(table_name: str, store: RecordStore = Depends(get_record_store)):
    with external_call(f"Failed to fetch records from {table_name}"):
        records = store.get_all(table_name)
    return [record.as_dict() for record in records]


@router.get("/actions/incomplete")
def incomplete_actions(store: RecordStore = Depends(get_record_store)):
    with external_call("Failed to fetch incomplete actions"):
        actions = store.get_all(tables.ACTIONS)
        projects = store.get_all(tables.PROJECTS)

    projects_by_id = {project.id: project.fields for project in projects}
    results = []
    for action in actions:
        linked = action.fields.get("Project ID")
        if action.fields.get("completed") or not linked:
            continue
        project = projects_by_id.get(linked[0] if isinstance(linked, list) else linked)
        fields = dict(action.fields)
        fields["ProjectName"] = project.get("Project Name") if project else "N/A"
        fields["ProjectCustomID"] = project.get("Project ID") if project else "N/A"
        results.append(Record(action.id, fields, action.created_time).as_dict())
    return results


@router.get("/tasks/incomplete/{email}")
def tasks_for_assignee(email: str, store: RecordStore = Depends(get_record_store)):
    with external_call("Failed to fetch tasks"):
        records = store.get_filtered(email, tables.TASKS)
    return _records_payload(records)


@router.get("/collaborators")
def list_collaborators(store: RecordStore = Depends(get_record_store)):
    with external_call("Failed to fetch collaborators"):
        records = store.get_all(tables.COLLABORATORS)
    return [record.as_dict() for record in records]


@router.get("/messages/{project_id}/project_messages")
def project_messages(project_id: str, store: RecordStore = Depends(get_record_store)):
    with external_call("Failed to fetch project messages"):
        records = store.get_filtered(project_id, tables.PROJECT_MESSAGES)
    return _records_payload(records)


@router.get("/authenticate/{project_name}/{project_id}")
def authenticate_client(
    project_name: str, project_id: str, store: RecordStore = Depends(get_record_store)
):
    with external_call("Failed to authenticate client"):
        records = store.authenticate_client(project_name, project_id)
    return _records_payload(records)


@router.post("/counters/attachment-id", response_model=AttachmentIdResponse)
def next_attachment_id(store: RecordStore = Depends(get_record_store)):
    with external_call("Failed to issue attachment id"):
        next_id = store.next_attachment_id()
    return AttachmentIdResponse(id=next_id)


# ----- Uploads -----


async def _upload(
    mode: AttachMode,
    table_name: str,
    record_id: str,
    field_name: str,
    file: Optional[UploadFile],
    relay: AttachmentRelay,
):
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded.")
    content = await file.read()
    with external_call("Failed to upload file", with_details=True):
        return await run_in_threadpool(
            relay.upload,
            content,
            file.filename,
            file.content_type,
            record_id,
            field_name,
            table_name,
            mode,
        )


@router.post("/upload/{table_name}/{record_id}/{field_name}")
async def upload_attachment(
    table_name: str,
    record_id: str,
    field_name: str,
    file: Optional[UploadFile] = File(None),
    relay: AttachmentRelay = Depends(get_attachment_relay),
):
    """Append an uploaded file to an attachment field."""
    return await _upload(
        AttachMode.APPEND, table_name, record_id, field_name, file, relay
    )


@router.post("/replace/{table_name}/{record_id}/{field_name}")
async def replace_attachment(
    table_name: str,
    record_id: str,
    field_name: str,
    file: Optional[UploadFile] = File(None),
    relay: AttachmentRelay = Depends(get_attachment_relay),
):
    """Overwrite an attachment field with a single uploaded file."""
    return await _upload(
        AttachMode.REPLACE, table_name, record_id, field_name, file, relay
    )


@router.post("/upload-image", response_model=AttachmentResponse)
async def upload_image(
    file: Optional[UploadFile] = File(None),
    sourceTable: Optional[str] = Form(None),
    sourceRecordId: Optional[str] = Form(None),
    store: RecordStore = Depends(get_record_store),
    relay: AttachmentRelay = Depends(get_attachment_relay),
):
    if file is None or not file.filename or not sourceTable or not sourceRecordId:
        raise HTTPException(
            status_code=400,
            detail="File, sourceTable, and sourceRecordId are required.",
        )
    content = await file.read()
    filename = file.filename

    def create_asset() -> str:
        asset = store.create_many(
            [
                {
                    "fields": {
                        "assetName": filename,
                        "sourceTable": sourceTable,
                        "sourceRecordID": sourceRecordId,
                    }
                }
            ],
            tables.IMAGE_ASSETS,
        )[0]
        ref = relay.store(content, filename, file.content_type)
        relay.attach(
            asset.id, IMAGE_FILE_FIELD, tables.IMAGE_ASSETS, ref, AttachMode.REPLACE
        )
        return ref.url

    with external_call("Failed to upload image"):
        url = await run_in_threadpool(create_asset)
    return AttachmentResponse(url=url)


# ----- Content stored as attachments -----


@router.post("/save-content-attachment", response_model=SaveContentResponse)
def save_content_attachment(
    payload: SaveContentRequest,
    relay: AttachmentRelay = Depends(get_attachment_relay),
):
    if not (
        payload.recordId and payload.tableName and payload.fieldName and payload.content
    ):
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: recordId, tableName, fieldName, content",
        )
    with external_call("Failed to save content attachment", with_details=True):
        ref = relay.store_named_content(
            payload.tableName,
            payload.recordId,
            payload.fieldName,
            json.dumps(payload.content),
        )
    return SaveContentResponse(success=True, url=ref.url, filename=ref.filename)


@router.get(
    "/get-content-attachment/{table_name}/{record_id}/{field_name}",
    response_model=ContentResponse,
)
def get_content_attachment(
    table_name: str,
    record_id: str,
    field_name: str,
    relay: AttachmentRelay = Depends(get_attachment_relay),
):
    with external_call("Failed to fetch content attachment", with_details=True):
        found = relay.fetch_named_content(table_name, record_id, field_name)
    if found is None:
        return ContentResponse(content=None)
    return ContentResponse(content=found.content, filename=found.filename, url=found.url)


@router.get(
    "/get-content-hybrid/{table_name}/{record_id}/{field_name}",
    response_model=HybridContentResponse,
)
def get_content_hybrid(
    table_name: str,
    record_id: str,
    field_name: str,
    relay: AttachmentRelay = Depends(get_attachment_relay),
):
    with external_call("Failed to fetch hybrid content", with_details=True):
        found = relay.fetch_hybrid_content(table_name, record_id, field_name)
    if found is None:
        return HybridContentResponse(content=None, source="none")
    return HybridContentResponse(
        content=found.content, source=found.source, filename=found.filename
    )


# ----- Informational pages -----


@router.get("/info-pages", response_model=list[InfoPageSummary])
def list_info_pages(store: RecordStore = Depends(get_record_store)):
    with external_call("Failed to fetch info pages"):
        records = store.get_all(tables.INFORMATIONAL_PAGES)
    pages = [_info_page_summary(record) for record in records]
    return sorted(pages, key=lambda page: as_number(page.order))


@router.get("/info-pages/{page_id}", response_model=InfoPage)
def get_info_page(page_id: str, store: RecordStore = Depends(get_record_store)):
    with external_call("Failed to fetch info page"):
        record = store.get_one(tables.INFORMATIONAL_PAGES, page_id)
    summary = _info_page_summary(record)
    return InfoPage(**summary.model_dump(), content=record.fields.get(PAGE_CONTENT_FIELD))


@router.post("/info-pages", status_code=201, response_model=InfoPageSummary)
def create_info_page(
    payload: CreateInfoPageRequest, store: RecordStore = Depends(get_record_store)
):
    if not payload.title or not payload.title.strip():
        raise HTTPException(status_code=400, detail="Title is required")
    with external_call("Failed to create info page"):
        existing = store.get_all(tables.INFORMATIONAL_PAGES)
        max_order = max(
            (as_number(page.fields.get("order")) for page in existing), default=0
        )
        created = store.create_many(
            [
                {
                    "fields": {
                        "pageTitle": payload.title.strip(),
                        "pageContent": "",
                        "order": max_order + 1,
                        "icon": payload.icon,
                    }
                }
            ],
            tables.INFORMATIONAL_PAGES,
        )[0]
    return _info_page_summary(created)


@router.patch("/info-pages/{page_id}")
def update_info_page(
    page_id: str,
    payload: UpdateInfoPageRequest,
    store: RecordStore = Depends(get_record_store),
    relay: AttachmentRelay = Depends(get_attachment_relay),
):
    provided = payload.model_fields_set
    fields: dict = {}
    if "title" in provided:
        fields["pageTitle"] = payload.title
    if "icon" in provided:
        fields["icon"] = payload.icon
    if not fields and "content" not in provided:
        raise HTTPException(
            status_code=400, detail="No valid fields to update were provided."
        )

    with external_call("Failed to update info page"):
        if "content" in provided:
            ref = relay.write_named_content(
                tables.INFORMATIONAL_PAGES,
                page_id,
                PAGE_CONTENT_FIELD,
                payload.content or "",
            )
            fields[PAGE_CONTENT_FIELD] = [ref.as_dict()]
        record = store.update_one(page_id, fields, tables.INFORMATIONAL_PAGES)
    return record.as_dict()


@router.delete("/info-pages/{page_id}")
def delete_info_page(page_id: str, store: RecordStore = Depends(get_record_store)):
    with external_call("Failed to delete info page"):
        deleted = store.delete_many([page_id], tables.INFORMATIONAL_PAGES)
    return [{"id": record_id, "deleted": True} for record_id in deleted]


# ----- Public forms -----


@router.post("/check-recaptcha", response_model=RecaptchaResponse)
def check_recaptcha(
    payload: RecaptchaRequest,
    scorer: Optional[AbuseScorer] = Depends(get_scorer),
    settings: Settings = Depends(get_settings),
):
    if not (payload.token and payload.recaptchaKey and payload.recaptchaAction):
        raise HTTPException(
            status_code=400,
            detail="Recaptcha token, key, and action are required.",
        )
    if scorer is None:
        logger.error("GCP_PROJECT_ID secret is not set.")
        raise HTTPException(status_code=500, detail="Server configuration error.")

    with external_call("An unexpected error occurred during recaptcha check."):
        assessment = scorer.assess(
            payload.token, payload.recaptchaKey, payload.recaptchaAction
        )

    verdict = evaluate(assessment, payload.recaptchaAction, settings.recaptcha_min_score)
    if verdict == Verdict.INVALID_TOKEN:
        raise HTTPException(status_code=400, detail="Invalid Recaptcha token.")
    if verdict == Verdict.ACTION_MISMATCH:
        raise HTTPException(status_code=400, detail="Recaptcha action mismatch.")
    if verdict == Verdict.LOW_SCORE:
        raise HTTPException(
            status_code=403,
            detail="Recaptcha verification failed. Your request was considered suspicious.",
        )
    return RecaptchaResponse(success=True, message="Form submitted successfully.")


@router.post("/submit-intro-form", status_code=201)
def submit_intro_form(
    payload: IntroFormRequest, store: RecordStore = Depends(get_record_store)
):
    form = payload.formData
    try:
        meeting_time = format_meeting_date(form.meetingDate)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid meetingDate") from exc

    record = {
        "fields": {
            "PROGRAM/SERVICE NAME": form.programService,
            "Email": form.yourEmail,
            "STATE": form.stateOfProgram,
            "TYPE OF HELP ARE YOU LOOKING FOR": form.typeOfHelp,
            "PROGRAM OR SERVICES WILL YOUR AGENCY OFFER": form.agencyServices,
            "PLAN TO SERVE POPULATION": form.populationToServe,
            "Agency Name (Registered Or Proposed)": form.agencyName,
            "Agency Registration": form.agencyStatus == "registered",
            "Information": form.agencyPlans,
            "SCENARIOS": form.scenario,
            "FIRST & LAST NAME": form.fullName,
            "PHONE #": form.phone,
            "Initial Google Meet/Zoom Timing": meeting_time,
            "Time Zone": form.meetingTimePreference,
            "Start time": form.howSoon,
            "consentName": form.consentName,
        }
    }
    with external_call("An unexpected error occurred during intro form submission."):
        created = store.create_many([record], tables.INTRO_SUBMISSIONS)[0]
    logger.info("Intro form submitted successfully: %s", created.id)
    return created.as_dict()

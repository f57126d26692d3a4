"""
Pydantic schemas for the relay's HTTP API.

Field names follow the front-end's camelCase payloads.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class RecordPayload(BaseModel):
    fields: dict = Field(default_factory=dict)


class RecordUpdatePayload(BaseModel):
    id: str
    fields: dict = Field(default_factory=dict)


class CreateRecordsRequest(BaseModel):
    recordsToCreate: list[RecordPayload]
    tableName: Optional[str] = None


class UpdateRecordsRequest(BaseModel):
    recordsToUpdate: list[RecordUpdatePayload]
    tableName: Optional[str] = None


class UpdateRecordRequest(BaseModel):
    fields: dict


class DeleteRecordsRequest(BaseModel):
    recordIds: Optional[list[str]] = None


class DeleteRecordsResponse(BaseModel):
    message: str
    deletedRecords: list[str]


class RecordsByIdsRequest(BaseModel):
    recordIds: Optional[list[str]] = None
    tableName: Optional[str] = None


class AttachmentIdResponse(BaseModel):
    id: int


class AttachmentResponse(BaseModel):
    url: str


class SaveContentRequest(BaseModel):
    recordId: Optional[str] = None
    tableName: Optional[str] = None
    fieldName: Optional[str] = None
    content: Any = None


class SaveContentResponse(BaseModel):
    success: bool
    url: str
    filename: str


class ContentResponse(BaseModel):
    content: Any = None
    filename: Optional[str] = None
    url: Optional[str] = None


class HybridContentResponse(BaseModel):
    content: Any = None
    source: Literal["attachment", "fallback", "none"]
    filename: Optional[str] = None


class InfoPageSummary(BaseModel):
    id: str
    title: Optional[str] = None
    order: Optional[int | float] = None
    icon: Optional[str] = None


class InfoPage(InfoPageSummary):
    content: Any = None


class CreateInfoPageRequest(BaseModel):
    title: Optional[str] = None
    icon: Optional[str] = None


class UpdateInfoPageRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    icon: Optional[str] = None


class RecaptchaRequest(BaseModel):
    recaptchaKey: Optional[str] = None
    token: Optional[str] = None
    recaptchaAction: Optional[str] = None


class RecaptchaResponse(BaseModel):
    success: bool
    message: str


class IntroFormData(BaseModel):
    programService: Optional[str] = None
    yourEmail: Optional[str] = None
    stateOfProgram: Optional[str] = None
    typeOfHelp: Any = None
    agencyServices: Any = None
    populationToServe: Any = None
    agencyName: Optional[str] = None
    agencyStatus: Optional[str] = None
    agencyPlans: Optional[str] = None
    scenario: Any = None
    fullName: Optional[str] = None
    phone: Optional[str] = None
    meetingDate: str
    meetingTimePreference: Optional[str] = None
    howSoon: Optional[str] = None
    consentName: Optional[str] = None


class IntroFormRequest(BaseModel):
    formData: IntroFormData

"""Request and response models for the HTTP API.

Request bodies accept both snake_case names and the camelCase keys the
browser client sends (``studentId``, ``htmlContent``, ``cleanContent``).
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from piano_crm.models import Message, Student, StudentStatus


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class StudentCreateRequest(_Request):
    full_name: str = Field(alias="fullName")
    email: str
    country_code: str | None = Field(default=None, alias="countryCode")
    status: StudentStatus = StudentStatus.LEAD
    tags: list[str] = Field(default_factory=list)
    instructor_strategy: str | None = Field(default=None, alias="instructorStrategy")
    instructor_notes: str | None = Field(default=None, alias="instructorNotes")
    # The student's original inquiry, stored as the first thread message.
    seed_message: str | None = Field(default=None, alias="seedMessage")


class StudentUpdateRequest(_Request):
    full_name: str | None = Field(default=None, alias="fullName")
    email: str | None = None
    country_code: str | None = Field(default=None, alias="countryCode")
    status: StudentStatus | None = None
    is_unread: bool | None = Field(default=None, alias="isUnread")
    tags: list[str] | None = None
    instructor_strategy: str | None = Field(default=None, alias="instructorStrategy")
    instructor_notes: str | None = Field(default=None, alias="instructorNotes")


class StudentSummary(Student):
    """A student row as the sidebar lists it."""

    flag: str = Field(description="Country flag emoji")
    last_active: str = Field(description="Relative time of the latest message")


class MessageView(Message):
    """A thread message with its clock time for the conversation view."""

    time: str = Field(description="Clock time the message was written, e.g. 3:05 PM")


class StudentDetail(StudentSummary):
    messages: list[MessageView] = Field(default_factory=list)


class SeedMessageRequest(_Request):
    body_text: str = Field(alias="bodyText")


class DraftRequest(_Request):
    subject: str = ""
    body_html: str = Field(default="", alias="bodyHtml")
    cc: str = ""
    bcc: str = ""


class AttachmentPayload(_Request):
    file_name: str = Field(alias="fileName")
    file_type: str = Field(default="application/octet-stream", alias="fileType")
    storage_path: str | None = Field(default=None, alias="storagePath")


class SendEmailRequest(_Request):
    to: str
    subject: str = ""
    html_content: str = Field(alias="htmlContent")
    clean_content: str | None = Field(default=None, alias="cleanContent")
    student_id: str | None = Field(default=None, alias="studentId")
    attachments: list[AttachmentPayload] = Field(default_factory=list)
    cc: str | None = None
    bcc: str | None = None
    include_reply_chain: bool = Field(default=False, alias="includeReplyChain")


class SendEmailResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message_id: str = Field(alias="messageId")


class StudentSyncRequest(_Request):
    student_id: str = Field(alias="studentId")
    student_email: str | None = Field(default=None, alias="studentEmail")


class StudentSyncResponse(BaseModel):
    success: bool = True
    count: int


class CronSyncResponse(BaseModel):
    success: bool = True
    processed: int


class AIChatRequest(_Request):
    message: str | None = None
    student_id: str | None = Field(default=None, alias="studentId")
    provider: str | None = None


class AIChatResponse(BaseModel):
    reply: str
    provider: str | None = None


class GreetingResponse(BaseModel):
    greeting: str


class FileResponseBase(BaseModel):
    id: str
    file_name: str
    file_type: str
    file_size: int
    size_label: str
    storage_path: str
    created_at: datetime


class AssetResponse(FileResponseBase):
    public_url: str


class AttachmentResponse(FileResponseBase):
    student_id: str


class SettingsRequest(_Request):
    instructor_profile: str = Field(default="", alias="instructorProfile")
    writing_style: str = Field(default="", alias="writingStyle")


class SettingsResponse(BaseModel):
    instructor_profile: str = ""
    writing_style: str = ""
    updated_at: datetime | None = None

"""Data models for Piano CRM.

This module contains Pydantic models for the CRM records. Each model mirrors
one database table row.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from piano_crm.models.inbound_email import InboundEmail

_GLOBE = "\U0001F30D"

# Codes people type that are not ISO 3166 alpha-2.
_COUNTRY_ALIASES = {"UK": "GB"}


def country_flag(country_code: Optional[str]) -> str:
    """Return the flag emoji for a two-letter country code.

    Unknown or missing codes map to a globe.
    """
    if not country_code:
        return _GLOBE
    code = country_code.strip().upper()
    code = _COUNTRY_ALIASES.get(code, code)
    if len(code) != 2 or not code.isascii() or not code.isalpha():
        return _GLOBE
    return "".join(chr(0x1F1E6 + ord(c) - ord("A")) for c in code)


class StudentStatus(str, Enum):
    """Where a student sits in the studio pipeline."""

    LEAD = "lead"
    ACTIVE = "active"
    INACTIVE = "inactive"


class SenderRole(str, Enum):
    """Author of a conversation message."""

    STUDENT = "student"
    INSTRUCTOR = "instructor"


class Student(BaseModel):
    """A CRM contact: a prospective or current piano student."""

    id: str = Field(description="Student ID")
    full_name: str = Field(description="Display name")
    email: str = Field(description="Email address (lower-cased)")
    country_code: Optional[str] = Field(default=None, description="Two-letter country code")
    status: StudentStatus = Field(default=StudentStatus.LEAD, description="Pipeline status")
    is_unread: bool = Field(default=True, description="Whether the thread has unseen messages")
    tags: list[str] = Field(default_factory=list, description="Free-form labels")
    instructor_strategy: Optional[str] = Field(
        default=None,
        description="How the instructor wants replies to this student framed",
    )
    instructor_notes: Optional[str] = Field(default=None, description="Private notes")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Last update timestamp")
    last_message_at: Optional[datetime] = Field(
        default=None,
        description="Timestamp of the most recent message in the thread",
    )

    @property
    def country_flag(self) -> str:
        return country_flag(self.country_code)


class Message(BaseModel):
    """One entry in a student's conversation thread."""

    id: str = Field(description="Message ID")
    student_id: str = Field(description="Owning student ID")
    sender_role: SenderRole = Field(description="Who wrote the message")
    body_text: str = Field(description="Message body (plain text or HTML)")
    subject: Optional[str] = Field(default=None, description="Email subject, if any")
    gmail_message_id: Optional[str] = Field(
        default=None,
        description="Gmail message ID (inbound) or SMTP Message-ID (outbound)",
    )
    created_at: datetime = Field(description="When the message was written")


class Draft(BaseModel):
    """An autosaved, unsent composed email associated with a student."""

    id: str = Field(description="Draft ID")
    student_id: str = Field(description="Owning student ID")
    subject: str = Field(default="", description="Subject line")
    body_html: str = Field(default="", description="Editor HTML")
    cc: str = Field(default="", description="Raw Cc field")
    bcc: str = Field(default="", description="Raw Bcc field")
    updated_at: datetime = Field(description="Last autosave timestamp")


class Attachment(BaseModel):
    """A file uploaded for one outgoing email."""

    id: str = Field(description="Attachment ID")
    student_id: str = Field(description="Student the email is addressed to")
    file_name: str = Field(description="Original file name")
    file_type: str = Field(description="MIME type")
    file_size: int = Field(ge=0, description="Size in bytes")
    storage_path: str = Field(description="Object path inside the storage bucket")
    created_at: datetime = Field(description="Upload timestamp")


class Asset(BaseModel):
    """A reusable library file (sheet music, images, PDFs)."""

    id: str = Field(description="Asset ID")
    file_name: str = Field(description="Original file name")
    file_type: str = Field(description="MIME type")
    file_size: int = Field(ge=0, description="Size in bytes")
    storage_path: str = Field(description="Object path inside the storage bucket")
    public_url: str = Field(description="Public URL of the stored object")
    created_at: datetime = Field(description="Upload timestamp")


class InstructorSettings(BaseModel):
    """The instructor persona the co-pilot writes as."""

    id: str = Field(description="Settings row ID")
    instructor_profile: str = Field(default="", description="Who the instructor is")
    writing_style: str = Field(default="", description="How the instructor writes")
    updated_at: datetime = Field(description="Last update timestamp")


__all__ = [
    "Asset",
    "Attachment",
    "Draft",
    "InboundEmail",
    "InstructorSettings",
    "Message",
    "SenderRole",
    "Student",
    "StudentStatus",
    "country_flag",
]

"""Inbound email model.

Only the fields the CRM stores are kept: who sent it, when, the subject and
the visible reply text with quoted history removed.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class InboundEmail(BaseModel):
    """A Gmail message reduced to what a conversation thread needs."""

    gmail_id: str = Field(description="Gmail message ID")
    thread_id: str | None = Field(default=None, description="Gmail thread ID")

    # Keep both raw and parsed forms. Raw is useful for display (includes name).
    from_raw: str = Field(default="", description="Raw From header")
    from_email: str | None = Field(default=None, description="Parsed sender email address")

    subject: str = Field(default="", description="Subject header")
    date: datetime = Field(description="Parsed Date header, or receipt time when missing")
    body: str = Field(default="", description="Visible reply text without quoted history")

"""Table definitions and runtime schema bootstrap.

The CRM tables live in Supabase's Postgres in production. Definitions use
portable SQLAlchemy Core types so the same code runs against SQLite in tests.

Tables:
- students (CRM contacts)
- messages (conversation threads, deduped on gmail_message_id)
- drafts (one autosaved draft per student)
- attachments (files uploaded for one outgoing email)
- assets (reusable library files)
- settings (single-row instructor persona)
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)
from sqlalchemy.engine import Engine

metadata = MetaData()

students = Table(
    "students",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("full_name", Text, nullable=False),
    Column("email", Text, nullable=False, unique=True),
    Column("country_code", String(8)),
    Column("status", String(16), nullable=False, default="lead"),
    Column("is_unread", Boolean, nullable=False, default=True),
    Column("tags", JSON, nullable=False),
    Column("instructor_strategy", Text),
    Column("instructor_notes", Text),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Column("last_message_at", DateTime(timezone=True)),
)

messages = Table(
    "messages",
    metadata,
    Column("id", String(36), primary_key=True),
    Column(
        "student_id",
        String(36),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("sender_role", String(16), nullable=False),
    Column("body_text", Text, nullable=False, default=""),
    Column("subject", Text),
    # Inbound: Gmail message id. Outbound: SMTP Message-ID.
    Column("gmail_message_id", Text, unique=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

Index("idx_messages_student_created", messages.c.student_id, messages.c.created_at)

drafts = Table(
    "drafts",
    metadata,
    Column("id", String(36), primary_key=True),
    Column(
        "student_id",
        String(36),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    ),
    Column("subject", Text, nullable=False, default=""),
    Column("body_html", Text, nullable=False, default=""),
    Column("cc", Text, nullable=False, default=""),
    Column("bcc", Text, nullable=False, default=""),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

attachments = Table(
    "attachments",
    metadata,
    Column("id", String(36), primary_key=True),
    Column(
        "student_id",
        String(36),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("file_name", Text, nullable=False),
    Column("file_type", Text, nullable=False),
    Column("file_size", Integer, nullable=False),
    Column("storage_path", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

Index("idx_attachments_student", attachments.c.student_id)

assets = Table(
    "assets",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("file_name", Text, nullable=False),
    Column("file_type", Text, nullable=False),
    Column("file_size", Integer, nullable=False),
    Column("storage_path", Text, nullable=False, unique=True),
    Column("public_url", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

settings = Table(
    "settings",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("instructor_profile", Text, nullable=False, default=""),
    Column("writing_style", Text, nullable=False, default=""),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)


def ensure_core_schema(engine: Engine) -> None:
    """Ensure required tables and indexes exist (idempotent).

    Args:
        engine: SQLAlchemy engine bound to the CRM database.
    """

    metadata.create_all(engine, checkfirst=True)

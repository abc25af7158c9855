"""Student repository.

Postgres (Supabase) is the source of truth for CRM contacts.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.engine import Engine, Row
from sqlalchemy.exc import IntegrityError

from piano_crm.db.schema import students
from piano_crm.exceptions import ValidationError
from piano_crm.models import Student, StudentStatus
from piano_crm.repository._common import aware, new_id, now

_UPDATABLE = {
    "full_name",
    "email",
    "country_code",
    "status",
    "is_unread",
    "tags",
    "instructor_strategy",
    "instructor_notes",
}


def normalize_tags(tags: Iterable[str] | None) -> list[str]:
    """Trim tags and drop blanks and duplicates, keeping first-seen order."""

    out: list[str] = []
    for tag in tags or []:
        cleaned = str(tag).strip()
        if cleaned and cleaned not in out:
            out.append(cleaned)
    return out


def _row_to_student(r: Row) -> Student:
    return Student(
        id=r.id,
        full_name=r.full_name,
        email=r.email,
        country_code=r.country_code,
        status=StudentStatus(r.status),
        is_unread=bool(r.is_unread),
        tags=list(r.tags or []),
        instructor_strategy=r.instructor_strategy,
        instructor_notes=r.instructor_notes,
        created_at=aware(r.created_at),
        updated_at=aware(r.updated_at),
        last_message_at=aware(r.last_message_at),
    )


def _clean_email(email: str) -> str:
    cleaned = (email or "").strip().lower()
    if "@" not in cleaned:
        raise ValidationError(f"Invalid email address: {email!r}")
    return cleaned


def create_student(
    engine: Engine,
    *,
    full_name: str,
    email: str,
    country_code: str | None = None,
    status: StudentStatus = StudentStatus.LEAD,
    tags: Iterable[str] | None = None,
    instructor_strategy: str | None = None,
    instructor_notes: str | None = None,
) -> Student:
    name = (full_name or "").strip()
    if not name:
        raise ValidationError("Student name is required")

    ts = now()
    values = {
        "id": new_id(),
        "full_name": name,
        "email": _clean_email(email),
        "country_code": (country_code or "").strip().upper() or None,
        "status": StudentStatus(status).value,
        "is_unread": True,
        "tags": normalize_tags(tags),
        "instructor_strategy": instructor_strategy,
        "instructor_notes": instructor_notes,
        "created_at": ts,
        "updated_at": ts,
        "last_message_at": None,
    }

    try:
        with engine.begin() as conn:
            conn.execute(insert(students).values(**values))
    except IntegrityError as exc:
        raise ValidationError(f"A student with email {values['email']} already exists") from exc

    student = get_student(engine, values["id"])
    assert student is not None
    return student


def get_student(engine: Engine, student_id: str) -> Student | None:
    with engine.begin() as conn:
        row = conn.execute(select(students).where(students.c.id == student_id)).fetchone()
    return _row_to_student(row) if row else None


def get_student_by_email(engine: Engine, email: str) -> Student | None:
    cleaned = (email or "").strip().lower()
    if not cleaned:
        return None
    q = select(students).where(func.lower(students.c.email) == cleaned)
    with engine.begin() as conn:
        row = conn.execute(q).fetchone()
    return _row_to_student(row) if row else None


def list_students(engine: Engine, search: str | None = None) -> list[Student]:
    """List students, most recent conversation first.

    Args:
        engine: SQLAlchemy engine.
        search: Optional case-insensitive substring of the student's name.
    """

    q = select(students)
    if search and search.strip():
        q = q.where(func.lower(students.c.full_name).contains(search.strip().lower(), autoescape=True))
    q = q.order_by(
        students.c.last_message_at.is_(None),
        students.c.last_message_at.desc(),
        students.c.created_at.desc(),
    )

    with engine.begin() as conn:
        rows = conn.execute(q).fetchall()
    return [_row_to_student(r) for r in rows]


def update_student(engine: Engine, student_id: str, **fields: Any) -> Student | None:
    """Apply a partial update. Unknown field names are rejected."""

    unknown = set(fields) - _UPDATABLE
    if unknown:
        raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    values = dict(fields)
    if "full_name" in values:
        values["full_name"] = (values["full_name"] or "").strip()
        if not values["full_name"]:
            raise ValidationError("Student name is required")
    if "email" in values:
        values["email"] = _clean_email(values["email"])
    if "country_code" in values:
        values["country_code"] = (values["country_code"] or "").strip().upper() or None
    if "status" in values:
        values["status"] = StudentStatus(values["status"]).value
    if "tags" in values:
        values["tags"] = normalize_tags(values["tags"])
    values["updated_at"] = now()

    try:
        with engine.begin() as conn:
            result = conn.execute(update(students).where(students.c.id == student_id).values(**values))
    except IntegrityError as exc:
        raise ValidationError(f"A student with email {values.get('email')} already exists") from exc

    if result.rowcount == 0:
        return None
    return get_student(engine, student_id)


def _set_unread(engine: Engine, student_id: str, unread: bool) -> bool:
    q = update(students).where(students.c.id == student_id).values(is_unread=unread)
    with engine.begin() as conn:
        return conn.execute(q).rowcount > 0


def mark_read(engine: Engine, student_id: str) -> bool:
    """Clear the unread flag. Returns False when the student does not exist."""

    return _set_unread(engine, student_id, False)


def mark_unread(engine: Engine, student_id: str) -> bool:
    return _set_unread(engine, student_id, True)


def delete_student(engine: Engine, student_id: str) -> bool:
    """Delete a student. Messages, drafts and attachments cascade."""

    with engine.begin() as conn:
        return conn.execute(delete(students).where(students.c.id == student_id)).rowcount > 0

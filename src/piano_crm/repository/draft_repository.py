"""Draft repository: one autosaved compose window per student."""

from __future__ import annotations

from sqlalchemy import delete, insert, select, update
from sqlalchemy.engine import Engine, Row

from piano_crm.db.schema import drafts, students
from piano_crm.exceptions import NotFoundError
from piano_crm.models import Draft
from piano_crm.repository._common import aware, new_id, now


def _row_to_draft(r: Row) -> Draft:
    return Draft(
        id=r.id,
        student_id=r.student_id,
        subject=r.subject or "",
        body_html=r.body_html or "",
        cc=r.cc or "",
        bcc=r.bcc or "",
        updated_at=aware(r.updated_at),
    )


def get_draft(engine: Engine, student_id: str) -> Draft | None:
    with engine.begin() as conn:
        row = conn.execute(select(drafts).where(drafts.c.student_id == student_id)).fetchone()
    return _row_to_draft(row) if row else None


def save_draft(
    engine: Engine,
    *,
    student_id: str,
    subject: str = "",
    body_html: str = "",
    cc: str = "",
    bcc: str = "",
) -> Draft:
    """Create or overwrite the student's draft."""

    values = {
        "subject": subject or "",
        "body_html": body_html or "",
        "cc": cc or "",
        "bcc": bcc or "",
        "updated_at": now(),
    }

    with engine.begin() as conn:
        if not conn.execute(select(students.c.id).where(students.c.id == student_id)).fetchone():
            raise NotFoundError(f"Unknown student_id: {student_id}")

        result = conn.execute(update(drafts).where(drafts.c.student_id == student_id).values(**values))
        if result.rowcount == 0:
            conn.execute(insert(drafts).values(id=new_id(), student_id=student_id, **values))

    draft = get_draft(engine, student_id)
    assert draft is not None
    return draft


def delete_draft(engine: Engine, student_id: str) -> bool:
    with engine.begin() as conn:
        return conn.execute(delete(drafts).where(drafts.c.student_id == student_id)).rowcount > 0

"""Instructor persona repository.

The settings table holds a single row; the first row found is the persona.
"""

from __future__ import annotations

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Engine

from piano_crm.db.schema import settings
from piano_crm.models import InstructorSettings
from piano_crm.repository._common import aware, new_id, now


def get_instructor_settings(engine: Engine) -> InstructorSettings | None:
    q = select(settings).order_by(settings.c.updated_at.asc()).limit(1)
    with engine.begin() as conn:
        row = conn.execute(q).fetchone()
    if not row:
        return None
    return InstructorSettings(
        id=row.id,
        instructor_profile=row.instructor_profile or "",
        writing_style=row.writing_style or "",
        updated_at=aware(row.updated_at),
    )


def save_instructor_settings(
    engine: Engine,
    *,
    instructor_profile: str,
    writing_style: str,
) -> InstructorSettings:
    """Update the persona row, creating it on first save."""

    existing = get_instructor_settings(engine)
    values = {
        "instructor_profile": instructor_profile or "",
        "writing_style": writing_style or "",
        "updated_at": now(),
    }

    with engine.begin() as conn:
        if existing:
            conn.execute(update(settings).where(settings.c.id == existing.id).values(**values))
            settings_id = existing.id
        else:
            settings_id = new_id()
            conn.execute(insert(settings).values(id=settings_id, **values))

    return InstructorSettings(id=settings_id, **values)

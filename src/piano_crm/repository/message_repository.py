"""Conversation message repository."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import and_, case, func, insert, or_, select, update
from sqlalchemy.engine import Engine, Row
from sqlalchemy.exc import IntegrityError

from piano_crm.db.schema import messages, students
from piano_crm.exceptions import NotFoundError, ValidationError
from piano_crm.models import Message, SenderRole
from piano_crm.repository._common import aware, new_id, now, to_utc


def _row_to_message(r: Row) -> Message:
    return Message(
        id=r.id,
        student_id=r.student_id,
        sender_role=SenderRole(r.sender_role),
        body_text=r.body_text or "",
        subject=r.subject,
        gmail_message_id=r.gmail_message_id,
        created_at=aware(r.created_at),
    )


def list_messages(engine: Engine, student_id: str) -> list[Message]:
    """Return a student's thread, oldest first."""

    q = (
        select(messages)
        .where(messages.c.student_id == student_id)
        .order_by(messages.c.created_at.asc(), messages.c.id.asc())
    )
    with engine.begin() as conn:
        rows = conn.execute(q).fetchall()
    return [_row_to_message(r) for r in rows]


def insert_message(
    engine: Engine,
    *,
    student_id: str,
    sender_role: SenderRole,
    body_text: str,
    subject: str | None = None,
    gmail_message_id: str | None = None,
    created_at: datetime | None = None,
) -> Message:
    """Append a message to a student's thread.

    The student's ``last_message_at`` moves forward to the message time, and
    a message from the student marks the thread unread.

    Raises:
        NotFoundError: If the student does not exist.
        ValidationError: If ``gmail_message_id`` is already stored.
    """

    role = SenderRole(sender_role)
    ts = to_utc(created_at) if created_at else now()
    msg_id = new_id()

    with engine.begin() as conn:
        exists = conn.execute(select(students.c.id).where(students.c.id == student_id)).fetchone()
        if not exists:
            raise NotFoundError(f"Unknown student_id: {student_id}")

        try:
            conn.execute(
                insert(messages).values(
                    id=msg_id,
                    student_id=student_id,
                    sender_role=role.value,
                    body_text=body_text or "",
                    subject=subject,
                    gmail_message_id=gmail_message_id,
                    created_at=ts,
                )
            )
        except IntegrityError as exc:
            raise ValidationError(f"Message already stored: {gmail_message_id}") from exc

        conn.execute(
            update(students)
            .where(
                and_(
                    students.c.id == student_id,
                    or_(students.c.last_message_at.is_(None), students.c.last_message_at < ts),
                )
            )
            .values(last_message_at=ts)
        )
        if role == SenderRole.STUDENT:
            conn.execute(update(students).where(students.c.id == student_id).values(is_unread=True))

    return Message(
        id=msg_id,
        student_id=student_id,
        sender_role=role,
        body_text=body_text or "",
        subject=subject,
        gmail_message_id=gmail_message_id,
        created_at=aware(ts),
    )


def exists_gmail_message(engine: Engine, gmail_message_id: str) -> bool:
    q = select(messages.c.id).where(messages.c.gmail_message_id == gmail_message_id).limit(1)
    with engine.begin() as conn:
        return conn.execute(q).fetchone() is not None


def last_message_from(engine: Engine, student_id: str, sender_role: SenderRole) -> Message | None:
    q = (
        select(messages)
        .where(
            and_(
                messages.c.student_id == student_id,
                messages.c.sender_role == SenderRole(sender_role).value,
            )
        )
        .order_by(messages.c.created_at.desc())
        .limit(1)
    )
    with engine.begin() as conn:
        row = conn.execute(q).fetchone()
    return _row_to_message(row) if row else None


def latest_messages(engine: Engine) -> dict[str, Message]:
    """Most recent message per student, keyed by student id."""

    latest = (
        select(messages.c.student_id, func.max(messages.c.created_at).label("latest_at"))
        .group_by(messages.c.student_id)
        .subquery()
    )
    # On a timestamp tie the instructor row sorts last and wins, so the thread counts as answered.
    q = (
        select(messages)
        .join(
            latest,
            and_(
                messages.c.student_id == latest.c.student_id,
                messages.c.created_at == latest.c.latest_at,
            ),
        )
        .order_by(
            case((messages.c.sender_role == SenderRole.INSTRUCTOR.value, 1), else_=0),
            messages.c.id,
        )
    )
    with engine.begin() as conn:
        rows = conn.execute(q).fetchall()
    return {r.student_id: _row_to_message(r) for r in rows}

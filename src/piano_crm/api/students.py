"""Student, thread and draft APIs."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.engine import Engine

from piano_crm.api.deps import get_db
from piano_crm.api.models import (
    DraftRequest,
    GreetingResponse,
    MessageView,
    SeedMessageRequest,
    StudentCreateRequest,
    StudentDetail,
    StudentSummary,
    StudentUpdateRequest,
)
from piano_crm.ai.copilot import copilot_greeting
from piano_crm.dates import format_relative_time, format_time
from piano_crm.exceptions import NotFoundError, ValidationError
from piano_crm.models import Draft, Message, SenderRole, Student
from piano_crm.repository import draft_repository, message_repository, student_repository

router = APIRouter(prefix="/api/students", tags=["students"])

# Fields a PATCH may set to null.
_CLEARABLE = {"country_code", "instructor_strategy", "instructor_notes"}


def _summary(student: Student) -> StudentSummary:
    return StudentSummary(
        **student.model_dump(),
        flag=student.country_flag,
        last_active=format_relative_time(student.last_message_at or student.created_at),
    )


def _message_view(message: Message) -> MessageView:
    return MessageView(**message.model_dump(), time=format_time(message.created_at))


def _thread(engine: Engine, student_id: str) -> list[MessageView]:
    return [_message_view(m) for m in message_repository.list_messages(engine, student_id)]


def _require_student(engine: Engine, student_id: str) -> Student:
    student = student_repository.get_student(engine, student_id)
    if student is None:
        raise NotFoundError(f"Student not found: {student_id}")
    return student


@router.get("", response_model=list[StudentSummary])
def list_students(search: str | None = None, engine: Engine = Depends(get_db)) -> list[StudentSummary]:
    return [_summary(s) for s in student_repository.list_students(engine, search=search)]


@router.post("", response_model=StudentDetail, status_code=201)
def create_student(body: StudentCreateRequest, engine: Engine = Depends(get_db)) -> StudentDetail:
    student = student_repository.create_student(
        engine,
        full_name=body.full_name,
        email=body.email,
        country_code=body.country_code,
        status=body.status,
        tags=body.tags,
        instructor_strategy=body.instructor_strategy,
        instructor_notes=body.instructor_notes,
    )
    if body.seed_message and body.seed_message.strip():
        message_repository.insert_message(
            engine,
            student_id=student.id,
            sender_role=SenderRole.STUDENT,
            body_text=body.seed_message,
        )
        student = _require_student(engine, student.id)

    return StudentDetail(**_summary(student).model_dump(), messages=_thread(engine, student.id))


@router.get("/{student_id}", response_model=StudentDetail)
def get_student(student_id: str, engine: Engine = Depends(get_db)) -> StudentDetail:
    student = _require_student(engine, student_id)
    return StudentDetail(**_summary(student).model_dump(), messages=_thread(engine, student_id))


@router.patch("/{student_id}", response_model=StudentSummary)
def update_student(
    student_id: str,
    body: StudentUpdateRequest,
    engine: Engine = Depends(get_db),
) -> StudentSummary:
    fields = {
        k: v
        for k, v in body.model_dump(exclude_unset=True).items()
        if v is not None or k in _CLEARABLE
    }
    if not fields:
        return _summary(_require_student(engine, student_id))
    student = student_repository.update_student(engine, student_id, **fields)
    if student is None:
        raise NotFoundError(f"Student not found: {student_id}")
    return _summary(student)


@router.delete("/{student_id}", status_code=204)
def delete_student(student_id: str, engine: Engine = Depends(get_db)) -> Response:
    if not student_repository.delete_student(engine, student_id):
        raise NotFoundError(f"Student not found: {student_id}")
    return Response(status_code=204)


@router.post("/{student_id}/read", response_model=StudentSummary)
def mark_read(student_id: str, engine: Engine = Depends(get_db)) -> StudentSummary:
    if not student_repository.mark_read(engine, student_id):
        raise NotFoundError(f"Student not found: {student_id}")
    return _summary(_require_student(engine, student_id))


@router.post("/{student_id}/unread", response_model=StudentSummary)
def mark_unread(student_id: str, engine: Engine = Depends(get_db)) -> StudentSummary:
    if not student_repository.mark_unread(engine, student_id):
        raise NotFoundError(f"Student not found: {student_id}")
    return _summary(_require_student(engine, student_id))


@router.get("/{student_id}/messages", response_model=list[MessageView])
def list_messages(student_id: str, engine: Engine = Depends(get_db)) -> list[MessageView]:
    _require_student(engine, student_id)
    return _thread(engine, student_id)


@router.post("/{student_id}/messages/seed", response_model=MessageView, status_code=201)
def seed_message(student_id: str, body: SeedMessageRequest, engine: Engine = Depends(get_db)) -> MessageView:
    if not body.body_text.strip():
        raise ValidationError("Message text is required")
    message = message_repository.insert_message(
        engine,
        student_id=student_id,
        sender_role=SenderRole.STUDENT,
        body_text=body.body_text,
    )
    return _message_view(message)


@router.get("/{student_id}/draft", response_model=Draft | None)
def get_draft(student_id: str, engine: Engine = Depends(get_db)) -> Draft | None:
    _require_student(engine, student_id)
    return draft_repository.get_draft(engine, student_id)


@router.put("/{student_id}/draft", response_model=Draft)
def save_draft(student_id: str, body: DraftRequest, engine: Engine = Depends(get_db)) -> Draft:
    return draft_repository.save_draft(
        engine,
        student_id=student_id,
        subject=body.subject,
        body_html=body.body_html,
        cc=body.cc,
        bcc=body.bcc,
    )


@router.delete("/{student_id}/draft", status_code=204)
def delete_draft(student_id: str, engine: Engine = Depends(get_db)) -> Response:
    draft_repository.delete_draft(engine, student_id)
    return Response(status_code=204)


@router.get("/{student_id}/copilot-greeting", response_model=GreetingResponse)
def get_copilot_greeting(student_id: str, engine: Engine = Depends(get_db)) -> GreetingResponse:
    return GreetingResponse(greeting=copilot_greeting(_require_student(engine, student_id)))

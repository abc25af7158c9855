"""Studio dashboard: headline counts and the threads waiting on the instructor."""

from __future__ import annotations

from pydantic import BaseModel, Field
from sqlalchemy.engine import Engine

from piano_crm.models import Message, SenderRole, Student, StudentStatus
from piano_crm.repository.message_repository import latest_messages
from piano_crm.repository.student_repository import list_students

RECENT_LEADS_LIMIT = 5


class DashboardStats(BaseModel):
    total_students: int = Field(description="All students")
    active_count: int = Field(description="Students with status active")
    lead_count: int = Field(description="Students with status lead")


class PendingThread(BaseModel):
    """A student whose latest message has no reply yet."""

    student: Student
    last_message: Message


class Dashboard(BaseModel):
    stats: DashboardStats
    needs_reply: list[PendingThread] = Field(default_factory=list)
    recent_leads: list[Student] = Field(default_factory=list)


def build_dashboard(engine: Engine) -> Dashboard:
    students = list_students(engine)
    latest = latest_messages(engine)

    needs_reply = []
    for student in students:
        if student.status == StudentStatus.INACTIVE:
            continue
        last = latest.get(student.id)
        if last is not None and last.sender_role == SenderRole.STUDENT:
            needs_reply.append(PendingThread(student=student, last_message=last))

    leads = [s for s in students if s.status == StudentStatus.LEAD]

    return Dashboard(
        stats=DashboardStats(
            total_students=len(students),
            active_count=sum(1 for s in students if s.status == StudentStatus.ACTIVE),
            lead_count=len(leads),
        ),
        needs_reply=needs_reply,
        recent_leads=leads[:RECENT_LEADS_LIMIT],
    )

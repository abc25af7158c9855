"""Unit tests for the dashboard summary."""

from datetime import datetime, timedelta, timezone

from piano_crm.dashboard import RECENT_LEADS_LIMIT, build_dashboard
from piano_crm.models import SenderRole
from piano_crm.repository import message_repository, student_repository


def _message(engine, student_id, role, text, at):
    message_repository.insert_message(
        engine, student_id=student_id, sender_role=role, body_text=text, created_at=at
    )


def test_empty_studio(engine) -> None:
    dashboard = build_dashboard(engine)

    assert dashboard.stats.total_students == 0
    assert dashboard.needs_reply == []
    assert dashboard.recent_leads == []


def test_counts_and_pending_threads(engine, student) -> None:
    base = datetime(2024, 3, 1, tzinfo=timezone.utc)
    active = student_repository.create_student(
        engine, full_name="Ben", email="ben@example.com", status="active"
    )
    gone = student_repository.create_student(
        engine, full_name="Cleo", email="cleo@example.com", status="inactive"
    )
    _message(engine, student.id, SenderRole.STUDENT, "Any slots?", base)
    _message(engine, active.id, SenderRole.STUDENT, "Running late", base)
    _message(engine, active.id, SenderRole.INSTRUCTOR, "No problem", base + timedelta(minutes=1))
    _message(engine, gone.id, SenderRole.STUDENT, "Pausing lessons", base)

    dashboard = build_dashboard(engine)

    assert dashboard.stats.total_students == 3
    assert dashboard.stats.active_count == 1
    assert dashboard.stats.lead_count == 1
    assert [p.student.id for p in dashboard.needs_reply] == [student.id]
    assert dashboard.needs_reply[0].last_message.body_text == "Any slots?"
    assert [s.id for s in dashboard.recent_leads] == [student.id]


def test_recent_leads_are_capped(engine) -> None:
    for i in range(RECENT_LEADS_LIMIT + 2):
        student_repository.create_student(engine, full_name=f"Lead {i}", email=f"lead{i}@example.com")

    dashboard = build_dashboard(engine)

    assert dashboard.stats.lead_count == RECENT_LEADS_LIMIT + 2
    assert len(dashboard.recent_leads) == RECENT_LEADS_LIMIT

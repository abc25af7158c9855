"""Gmail inbox sync into conversation threads.

Two passes share the same parsing:

- ``sync_recent``: the periodic global pass. Looks at the last few minutes of
  the inbox and files each message under the student who sent it.
- ``sync_student``: pulls the last month of mail from one student, used when
  the instructor opens a thread.

Gmail message ids are stored on every inbound message so repeated passes
never duplicate a thread entry.
"""

from __future__ import annotations

import structlog
from sqlalchemy.engine import Engine

from piano_crm.config import Settings
from piano_crm.exceptions import NotFoundError, ValidationError
from piano_crm.gmail.client import GmailClient
from piano_crm.gmail.parsing import message_to_inbound
from piano_crm.models import InboundEmail, SenderRole
from piano_crm.repository.message_repository import exists_gmail_message, insert_message
from piano_crm.repository.student_repository import get_student, get_student_by_email

logger = structlog.get_logger()

EMPTY_BODY_PLACEHOLDER = "(Could not parse email body)"


async def _fetch_new(client: GmailClient, engine: Engine, stub: dict) -> InboundEmail | None:
    gmail_id = stub.get("id")
    if not gmail_id or exists_gmail_message(engine, gmail_id):
        return None
    message = await client.get_message(gmail_id, format="full")
    if not message.get("payload"):
        return None
    return message_to_inbound(message)


def _store(engine: Engine, student_id: str, email: InboundEmail, body: str) -> bool:
    try:
        insert_message(
            engine,
            student_id=student_id,
            sender_role=SenderRole.STUDENT,
            body_text=body,
            subject=email.subject or None,
            gmail_message_id=email.gmail_id,
            created_at=email.date,
        )
    except ValidationError:
        # Stored by a concurrent pass between the dedupe check and the insert.
        logger.info("gmail_message_already_stored", gmail_id=email.gmail_id)
        return False
    return True


async def sync_recent(engine: Engine, client: GmailClient, settings: Settings) -> int:
    """Store recent inbox messages from known students.

    Returns:
        Number of messages stored.
    """

    logger.info("gmail_sync_started", query=settings.sync_recent_query)
    await client.authenticate()

    stubs = await client.list_messages(
        query=settings.sync_recent_query,
        max_results=settings.sync_recent_max_results,
    )
    logger.info("gmail_sync_candidates", count=len(stubs))

    processed = 0
    for stub in stubs:
        email = await _fetch_new(client, engine, stub)
        if email is None:
            continue
        if not email.from_email:
            continue

        student = get_student_by_email(engine, email.from_email)
        if student is None:
            logger.info("gmail_sync_unknown_sender", sender=email.from_email)
            continue

        if _store(engine, student.id, email, email.body):
            logger.info("gmail_sync_message_saved", sender=email.from_email, student_id=student.id)
            processed += 1

    logger.info("gmail_sync_completed", processed=processed)
    return processed


async def sync_student(
    engine: Engine,
    client: GmailClient,
    settings: Settings,
    student_id: str,
    student_email: str | None = None,
) -> int:
    """Store the student's recent messages.

    Args:
        student_id: Student whose thread receives the messages.
        student_email: Sender address to search for. Looked up from the
            student record when omitted.

    Returns:
        Number of new messages stored.

    Raises:
        NotFoundError: If the student does not exist.
    """

    student = get_student(engine, student_id)
    if student is None:
        raise NotFoundError(f"Student not found: {student_id}")
    address = (student_email or student.email).strip()

    query = f"from:{address} {settings.sync_student_window}"
    logger.info("student_sync_started", student_id=student_id, query=query)
    await client.authenticate()

    stubs = await client.list_messages(query=query, max_results=settings.sync_student_max_results)

    count = 0
    for stub in stubs:
        email = await _fetch_new(client, engine, stub)
        if email is None:
            continue
        if _store(engine, student_id, email, email.body or EMPTY_BODY_PLACEHOLDER):
            count += 1

    logger.info("student_sync_completed", student_id=student_id, count=count)
    return count

"""Reply sending workflow: attachments, SMTP delivery, thread bookkeeping."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import structlog
from sqlalchemy.engine import Engine

from piano_crm.config import Settings
from piano_crm.exceptions import StorageError
from piano_crm.mail.sender import GmailSender, OutgoingAttachment
from piano_crm.models import Message, SenderRole
from piano_crm.reply import ReplyChainOptions, generate_reply_chain_html
from piano_crm.repository.draft_repository import delete_draft
from piano_crm.repository.message_repository import insert_message, list_messages
from piano_crm.repository.student_repository import get_student
from piano_crm.storage import StorageBucket

logger = structlog.get_logger()


@dataclass
class AttachmentRef:
    """An uploaded file to attach, as the compose window refers to it."""

    file_name: str
    file_type: str = "application/octet-stream"
    storage_path: str | None = None


@dataclass
class SendResult:
    message_id: str
    stored_message: Message | None = None


def resolve_attachments(
    storage: StorageBucket, refs: Sequence[AttachmentRef]
) -> list[OutgoingAttachment]:
    """Download attachment bytes from storage.

    References without a storage path are ignored. A failed download is logged
    and that file is left off the email.
    """

    resolved: list[OutgoingAttachment] = []
    for ref in refs:
        if not ref.storage_path:
            continue
        try:
            content = storage.download(ref.storage_path)
        except StorageError as exc:
            logger.warning(
                "attachment_download_skipped",
                file_name=ref.file_name,
                storage_path=ref.storage_path,
                error=str(exc),
            )
            continue
        resolved.append(
            OutgoingAttachment(filename=ref.file_name, content=content, content_type=ref.file_type)
        )
    return resolved


def build_reply_chain(engine: Engine, student_id: str, settings: Settings) -> str:
    """Quoted thread HTML for the student, or an empty string."""

    student = get_student(engine, student_id)
    if student is None:
        return ""
    options = ReplyChainOptions(
        student_name=student.full_name,
        student_email=student.email,
        instructor_name=settings.instructor_name,
        instructor_email=settings.instructor_email,
        max_messages=settings.reply_chain_max_messages,
    )
    return generate_reply_chain_html(list_messages(engine, student_id), options)


async def send_reply(
    engine: Engine,
    sender: GmailSender,
    storage: StorageBucket,
    *,
    to: str,
    subject: str,
    html_content: str,
    clean_content: str | None = None,
    student_id: str | None = None,
    attachments: Sequence[AttachmentRef] = (),
    cc: str | None = None,
    bcc: str | None = None,
    include_reply_chain: bool = False,
) -> SendResult:
    """Send an email and record it in the student's thread.

    The stored body is ``clean_content`` when given, otherwise the HTML that
    was sent minus any appended reply chain. Once SMTP has accepted the
    message, a failure to record it is logged rather than raised.
    """

    html = html_content or ""
    stored_body = clean_content or html

    if include_reply_chain and student_id:
        chain = build_reply_chain(engine, student_id, sender.settings)
        if chain:
            html = html + chain

    files = resolve_attachments(storage, attachments)
    message_id = await sender.send(to=to, subject=subject, html=html, attachments=files, cc=cc, bcc=bcc)

    result = SendResult(message_id=message_id)
    if not student_id:
        return result

    try:
        result.stored_message = insert_message(
            engine,
            student_id=student_id,
            sender_role=SenderRole.INSTRUCTOR,
            body_text=stored_body,
            subject=subject,
            gmail_message_id=message_id,
        )
        delete_draft(engine, student_id)
    except Exception as exc:  # noqa: BLE001
        logger.error("sent_message_store_failed", student_id=student_id, message_id=message_id, error=str(exc))

    return result

"""Email send and inbox sync APIs."""

from __future__ import annotations

import hmac

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.engine import Engine

from piano_crm.api.deps import get_app_settings, get_db, get_gmail_client, get_sender, get_storage
from piano_crm.api.models import (
    CronSyncResponse,
    SendEmailRequest,
    SendEmailResponse,
    StudentSyncRequest,
    StudentSyncResponse,
)
from piano_crm.config import Settings
from piano_crm.exceptions import AuthenticationError
from piano_crm.gmail.client import GmailClient
from piano_crm.mail.sender import GmailSender
from piano_crm.mail.service import AttachmentRef, send_reply
from piano_crm.storage import StorageBucket
from piano_crm.sync.inbox import sync_recent, sync_student

logger = structlog.get_logger()

router = APIRouter(prefix="/api/email", tags=["email"])
cron_router = APIRouter(prefix="/api/cron", tags=["cron"])


@router.post("/send", response_model=SendEmailResponse)
async def send_email(
    body: SendEmailRequest,
    engine: Engine = Depends(get_db),
    sender: GmailSender = Depends(get_sender),
    storage: StorageBucket = Depends(get_storage),
) -> SendEmailResponse:
    logger.info(
        "email_send_requested",
        to=body.to,
        student_id=body.student_id,
        attachments=len(body.attachments),
    )
    result = await send_reply(
        engine,
        sender,
        storage,
        to=body.to,
        subject=body.subject,
        html_content=body.html_content,
        clean_content=body.clean_content,
        student_id=body.student_id,
        attachments=[
            AttachmentRef(file_name=a.file_name, file_type=a.file_type, storage_path=a.storage_path)
            for a in body.attachments
        ],
        cc=body.cc,
        bcc=body.bcc,
        include_reply_chain=body.include_reply_chain,
    )
    return SendEmailResponse(message_id=result.message_id)


@router.post("/sync", response_model=StudentSyncResponse)
async def sync_student_inbox(
    body: StudentSyncRequest,
    engine: Engine = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    gmail: GmailClient = Depends(get_gmail_client),
) -> StudentSyncResponse:
    count = await sync_student(engine, gmail, settings, body.student_id, body.student_email)
    return StudentSyncResponse(count=count)


@cron_router.get("/sync", response_model=CronSyncResponse)
async def cron_sync(
    key: str | None = None,
    engine: Engine = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    gmail: GmailClient = Depends(get_gmail_client),
) -> CronSyncResponse:
    secret = settings.cron_secret
    if not secret or not key or not hmac.compare_digest(key.encode("utf-8"), secret.encode("utf-8")):
        logger.warning("cron_sync_unauthorized")
        raise AuthenticationError("Unauthorized")

    processed = await sync_recent(engine, gmail, settings)
    return CronSyncResponse(processed=processed)

"""Outgoing mail through Gmail SMTP.

Gmail accepts OAuth2 bearer tokens over SMTP via the XOAUTH2 SASL mechanism,
so the same refresh-token credentials used for inbox sync also send mail.
"""

from __future__ import annotations

import asyncio
import re
import smtplib
import ssl
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from typing import Any

import structlog

from piano_crm.config import Settings
from piano_crm.exceptions import ConfigurationError, EmailSendError
from piano_crm.gmail.client import GmailClient

logger = structlog.get_logger()

_ADDRESS_SPLIT_RE = re.compile(r"[,;]")


@dataclass
class OutgoingAttachment:
    """File bytes to attach to an outgoing email."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


def split_addresses(raw: str | Sequence[str] | None) -> list[str]:
    """Split a comma or semicolon separated address field."""

    if not raw:
        return []
    parts = _ADDRESS_SPLIT_RE.split(raw) if isinstance(raw, str) else list(raw)
    return [p.strip() for p in parts if p and p.strip()]


def xoauth2_authobject(user: str, access_token: str) -> Callable[..., str]:
    """Build an ``smtplib.SMTP.auth`` callback for the XOAUTH2 mechanism.

    On failure Gmail answers with a 334 challenge carrying a JSON error; the
    client must reply with an empty line to get the final status code.
    """

    auth_string = f"user={user}\x01auth=Bearer {access_token}\x01\x01"

    def authobject(challenge: bytes | None = None) -> str:
        return auth_string if challenge is None else ""

    return authobject


class GmailSender:
    """Send HTML email from the instructor's Gmail account."""

    def __init__(
        self,
        settings: Settings | None = None,
        gmail: GmailClient | None = None,
        smtp_factory: Callable[..., Any] | None = None,
    ) -> None:
        """Initialize the sender.

        Args:
            settings: Application settings. If None, uses default settings.
            gmail: Client used to mint access tokens. Built from settings when None.
            smtp_factory: Callable returning an SMTP connection. Defaults to
                ``smtplib.SMTP_SSL``.
        """
        from piano_crm.config import get_settings

        self.settings = settings or get_settings()
        self.gmail = gmail or GmailClient(self.settings)
        self.smtp_factory = smtp_factory or smtplib.SMTP_SSL

    def build_message(
        self,
        *,
        to: str | Sequence[str],
        subject: str,
        html: str,
        attachments: Sequence[OutgoingAttachment] = (),
        cc: str | Sequence[str] | None = None,
        bcc: str | Sequence[str] | None = None,
    ) -> MIMEMultipart:
        """Assemble the MIME message, including a fresh Message-ID header."""

        user = self.settings.gmail_user
        if not user:
            raise ConfigurationError("PIANO_CRM_GMAIL_USER is required to send email.")

        recipients = split_addresses(to)
        if not recipients:
            raise EmailSendError("No recipient address given")

        msg = MIMEMultipart("mixed")
        msg["From"] = formataddr((self.settings.sender_name, user))
        msg["To"] = ", ".join(recipients)
        cc_list = split_addresses(cc)
        if cc_list:
            msg["Cc"] = ", ".join(cc_list)
        bcc_list = split_addresses(bcc)
        if bcc_list:
            msg["Bcc"] = ", ".join(bcc_list)
        msg["Subject"] = subject or ""
        msg["Message-ID"] = make_msgid(domain=user.rsplit("@", 1)[-1])

        msg.attach(MIMEText(html or "", "html", "utf-8"))

        for item in attachments:
            maintype, _, subtype = (item.content_type or "application/octet-stream").partition("/")
            part = MIMEApplication(item.content, _subtype=subtype or "octet-stream")
            if maintype != "application":
                part.replace_header("Content-Type", item.content_type)
            part.add_header("Content-Disposition", "attachment", filename=item.filename)
            msg.attach(part)

        return msg

    async def send(
        self,
        *,
        to: str | Sequence[str],
        subject: str,
        html: str,
        attachments: Sequence[OutgoingAttachment] = (),
        cc: str | Sequence[str] | None = None,
        bcc: str | Sequence[str] | None = None,
    ) -> str:
        """Send an email and return its Message-ID.

        Raises:
            ConfigurationError: If the Gmail user or OAuth credentials are missing.
            EmailSendError: If SMTP rejects the login or the message.
        """

        msg = self.build_message(
            to=to, subject=subject, html=html, attachments=attachments, cc=cc, bcc=bcc
        )
        access_token = await self.gmail.get_access_token()

        await asyncio.to_thread(self._deliver, msg, access_token)

        message_id = msg["Message-ID"]
        logger.info(
            "email_sent",
            to=msg["To"],
            subject=msg["Subject"],
            attachments=len(attachments),
            message_id=message_id,
        )
        return message_id

    def _deliver(self, msg: MIMEMultipart, access_token: str) -> None:
        try:
            with self.smtp_factory(
                self.settings.smtp_host,
                self.settings.smtp_port,
                timeout=self.settings.smtp_timeout,
                context=ssl.create_default_context(),
            ) as smtp:
                smtp.ehlo()
                smtp.auth("XOAUTH2", xoauth2_authobject(self.settings.gmail_user, access_token))
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("email_send_failed", to=msg["To"], error=str(exc))
            raise EmailSendError(f"Failed to send email: {exc}") from exc

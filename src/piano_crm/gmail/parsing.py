"""Helpers for turning Gmail API messages (format=full) into CRM data."""

from __future__ import annotations

import base64
import binascii
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from piano_crm.models import InboundEmail
from piano_crm.reply.text import clean_reply_body, strip_html

_ANGLE_ADDR_RE = re.compile(r"<(.+)>")


def header_value(payload: dict[str, Any] | None, name: str) -> str | None:
    """Case-insensitive lookup of the first header called ``name``."""

    headers = (payload or {}).get("headers") or []
    wanted = name.lower()
    for h in headers:
        if (h.get("name") or "").lower() == wanted:
            value = h.get("value")
            return value if isinstance(value, str) else None
    return None


def extract_email_address(header: str | None) -> str | None:
    """Pull the address out of a From header.

    ``"Name <a@b.com>"`` gives ``a@b.com``; a bare address is returned as-is.
    """

    if not header:
        return None
    match = _ANGLE_ADDR_RE.search(header)
    if match and match.group(1):
        return match.group(1).strip()
    if "@" in header:
        return header.strip()
    return None


def parse_date_header(value: str | None, default: datetime | None = None) -> datetime:
    """Parse an RFC 2822 Date header into an aware datetime.

    Falls back to ``default`` (or now, UTC) when the header is missing or
    unparseable.
    """

    fallback = default or datetime.now(timezone.utc)
    if not value:
        return fallback
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, OverflowError):
        return fallback
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def decode_body_data(data: str) -> str:
    """Decode Gmail's base64url body data into text."""

    padded = data + "=" * (-len(data) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError):
        return ""
    return raw.decode("utf-8", errors="replace")


def _find_text_plain(part: dict[str, Any]) -> str:
    for child in part.get("parts") or []:
        mime = (child.get("mimeType") or "").lower()
        data = (child.get("body") or {}).get("data")
        if mime == "text/plain" and data:
            return decode_body_data(data)
        if mime.startswith("multipart/"):
            found = _find_text_plain(child)
            if found:
                return found
    return ""


def _find_html(part: dict[str, Any]) -> str:
    for child in part.get("parts") or []:
        mime = (child.get("mimeType") or "").lower()
        data = (child.get("body") or {}).get("data")
        if mime == "text/html" and data:
            return decode_body_data(data)
        if mime.startswith("multipart/"):
            found = _find_html(child)
            if found:
                return found
    return ""


def extract_body(payload: dict[str, Any] | None) -> str:
    """Extract a best-effort plain-text body from a message payload.

    Order of preference: a ``text/plain`` part (searching nested multiparts),
    the payload's own body, then a ``text/html`` part converted to text.
    The result is raw: quoted history is still present.
    """

    if not payload:
        return ""

    text = _find_text_plain(payload)

    if not text:
        data = (payload.get("body") or {}).get("data")
        if data:
            text = decode_body_data(data)
            if (payload.get("mimeType") or "").lower() == "text/html":
                text = strip_html(text)

    if not text:
        markup = _find_html(payload)
        if markup:
            text = strip_html(markup)

    return text


def message_to_inbound(message: dict[str, Any]) -> InboundEmail:
    """Convert a Gmail API message (format=full) to InboundEmail.

    Args:
        message: Gmail API message dict.

    Returns:
        InboundEmail: Parsed message with quoted history removed from the body.
    """

    payload = message.get("payload") or {}
    from_raw = header_value(payload, "From") or ""

    return InboundEmail(
        gmail_id=str(message.get("id") or ""),
        thread_id=str(message.get("threadId") or "") or None,
        from_raw=from_raw,
        from_email=extract_email_address(from_raw),
        subject=header_value(payload, "Subject") or "",
        date=parse_date_header(header_value(payload, "Date")),
        body=clean_reply_body(extract_body(payload)),
    )

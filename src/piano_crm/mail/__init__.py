"""Outgoing email."""

from .sender import GmailSender, OutgoingAttachment, split_addresses
from .service import AttachmentRef, SendResult, send_reply

__all__ = ["AttachmentRef", "GmailSender", "OutgoingAttachment", "SendResult", "send_reply", "split_addresses"]

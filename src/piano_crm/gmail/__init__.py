"""Gmail inbox access and message parsing."""

from .client import GmailClient, build_credentials, run_local_auth
from .parsing import extract_body, extract_email_address, message_to_inbound

__all__ = [
    "GmailClient",
    "build_credentials",
    "extract_body",
    "extract_email_address",
    "message_to_inbound",
    "run_local_auth",
]

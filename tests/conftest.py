"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import base64
from typing import Any

import pytest

from piano_crm.exceptions import StorageError


def encode_body(text: str) -> str:
    """Encode text the way the Gmail API returns body data (base64url, unpadded)."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def make_gmail_message(
    message_id: str,
    *,
    sender: str = "Ana Pianist <ana@example.com>",
    subject: str = "Re: Lessons",
    body: str = "Hello!",
    date: str | None = "Tue, 02 Jan 2024 09:00:00 +0000",
    mime_type: str = "multipart/alternative",
) -> dict[str, Any]:
    """Build a Gmail API message (format=full) with a text/plain part."""
    headers = [
        {"name": "From", "value": sender},
        {"name": "Subject", "value": subject},
    ]
    if date:
        headers.append({"name": "Date", "value": date})
    return {
        "id": message_id,
        "threadId": f"thread-{message_id}",
        "payload": {
            "mimeType": mime_type,
            "headers": headers,
            "body": {"size": 0},
            "parts": [
                {"mimeType": "text/plain", "body": {"data": encode_body(body)}},
                {"mimeType": "text/html", "body": {"data": encode_body(f"<p>{body}</p>")}},
            ],
        },
    }


class FakeGmailClient:
    """In-memory stand-in for GmailClient."""

    def __init__(self, messages: list[dict[str, Any]] | None = None) -> None:
        self.messages = {m["id"]: m for m in messages or []}
        self.queries: list[tuple[str | None, int | None]] = []
        self.fetched: list[str] = []
        self.authenticated = False

    async def authenticate(self) -> None:
        self.authenticated = True

    async def list_messages(self, query: str | None = None, max_results: int | None = None) -> list[dict[str, Any]]:
        self.queries.append((query, max_results))
        stubs = [{"id": mid, "threadId": m.get("threadId")} for mid, m in self.messages.items()]
        return stubs if max_results is None else stubs[:max_results]

    async def get_message(self, message_id: str, *, format: str = "full") -> dict[str, Any]:
        self.fetched.append(message_id)
        return self.messages[message_id]

    async def get_access_token(self) -> str:
        return "access-token"


class FakeStorage:
    """Dict-backed stand-in for StorageBucket."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.removed: list[str] = []
        self.fail_remove = False

    def upload(self, path: str, data: bytes, content_type: str | None = None) -> str:
        self.objects[path] = data
        return path

    def download(self, path: str) -> bytes:
        if path not in self.objects:
            raise StorageError(f"Object not found: {path}")
        return self.objects[path]

    def remove(self, paths: list[str]) -> None:
        if self.fail_remove:
            raise StorageError("remove failed")
        for path in paths:
            self.objects.pop(path, None)
            self.removed.append(path)

    def public_url(self, path: str) -> str:
        return f"https://storage.test/attachments/{path}"


class FakeSMTP:
    """Records what GmailSender does with an SMTP connection."""

    instances: list["FakeSMTP"] = []

    def __init__(self, host: str, port: int, **kwargs: Any) -> None:
        self.host = host
        self.port = port
        self.kwargs = kwargs
        self.auth_calls: list[tuple[str, str]] = []
        self.sent: list[Any] = []
        FakeSMTP.instances.append(self)

    def __enter__(self) -> "FakeSMTP":
        return self

    def __exit__(self, *exc: Any) -> None:
        return None

    def ehlo(self) -> None:
        return None

    def auth(self, mechanism: str, authobject: Any) -> tuple[int, bytes]:
        self.auth_calls.append((mechanism, authobject()))
        return (235, b"Accepted")

    def send_message(self, msg: Any) -> dict:
        self.sent.append(msg)
        return {}


@pytest.fixture
def mock_settings():
    """Provide settings for testing without touching real services."""
    from piano_crm.config import Settings

    return Settings(
        database_url="sqlite://",
        gmail_user="studio@example.com",
        cron_secret="cron-secret",
        gemini_api_key="gemini-key",
        openai_api_key="openai-key",
        anthropic_api_key="anthropic-key",
        max_retries=0,
        log_level="DEBUG",
        debug=True,
    )


@pytest.fixture
def engine():
    """Provide an in-memory SQLite database with the CRM schema."""
    from piano_crm.db import ensure_core_schema, make_engine

    eng = make_engine("sqlite://")
    ensure_core_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def student(engine):
    """Provide a stored student."""
    from piano_crm.repository.student_repository import create_student

    return create_student(
        engine,
        full_name="Ana Pianist",
        email="Ana@Example.com",
        country_code="pt",
        tags=["Exam Prep"],
        instructor_strategy="Push for weekly lessons",
    )


@pytest.fixture
def fake_storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def fake_smtp():
    FakeSMTP.instances.clear()
    yield FakeSMTP
    FakeSMTP.instances.clear()


@pytest.fixture
def gmail_message():
    """Factory for Gmail API message dicts."""
    return make_gmail_message


@pytest.fixture
def fake_gmail():
    """Factory for FakeGmailClient instances."""
    return FakeGmailClient

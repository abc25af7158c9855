"""FastAPI dependencies.

The engine and settings hang off ``app.state`` (set by ``create_app``).
External clients are built per request from settings; tests replace them
through ``app.dependency_overrides``.
"""

from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.engine import Engine

from piano_crm.ai.providers import get_backend
from piano_crm.config import Settings
from piano_crm.gmail.client import GmailClient
from piano_crm.mail.sender import GmailSender
from piano_crm.storage import StorageBucket


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Engine:
    return request.app.state.engine


def get_gmail_client(settings: Settings = Depends(get_app_settings)) -> GmailClient:
    return GmailClient(settings)


def get_sender(
    settings: Settings = Depends(get_app_settings),
    gmail: GmailClient = Depends(get_gmail_client),
) -> GmailSender:
    return GmailSender(settings, gmail=gmail)


def get_storage(settings: Settings = Depends(get_app_settings)) -> StorageBucket:
    return StorageBucket(settings)


def get_backend_factory():
    """Factory used to build the co-pilot backend for a request."""

    return get_backend

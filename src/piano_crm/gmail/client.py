"""Gmail API client implementation.

This module provides a client for reading the instructor's Gmail inbox and
for minting the OAuth access tokens SMTP sending needs.

Notes:
    The Google API client is synchronous. This project wraps those calls using
    `asyncio.to_thread` so the FastAPI handlers and sync jobs stay async.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import structlog

from piano_crm.config import Settings
from piano_crm.exceptions import AuthenticationError, ConfigurationError, GmailAPIError
from piano_crm.utils import retry_on_failure

logger = structlog.get_logger()


def build_credentials(settings: Settings) -> Any:
    """Build OAuth credentials from settings.

    A configured refresh token wins (the usual server deployment). Otherwise
    a token file written by ``piano-crm gmail-auth`` is used.

    Raises:
        ConfigurationError: If neither source is configured.
    """
    # Imported lazily to keep import-time cost low and tests fast.
    from google.oauth2.credentials import Credentials

    if settings.gmail_refresh_token:
        if not settings.gmail_client_id or not settings.gmail_client_secret:
            raise ConfigurationError(
                "PIANO_CRM_GMAIL_CLIENT_ID and PIANO_CRM_GMAIL_CLIENT_SECRET are required "
                "alongside PIANO_CRM_GMAIL_REFRESH_TOKEN."
            )
        return Credentials(
            token=None,
            refresh_token=settings.gmail_refresh_token,
            client_id=settings.gmail_client_id,
            client_secret=settings.gmail_client_secret,
            token_uri=settings.gmail_token_uri,
            scopes=list(settings.gmail_scopes),
        )

    token_path = Path(settings.gmail_token_path)
    if token_path.exists():
        return Credentials.from_authorized_user_file(str(token_path), scopes=list(settings.gmail_scopes))

    raise ConfigurationError(
        "No Gmail credentials configured. Set PIANO_CRM_GMAIL_REFRESH_TOKEN "
        "or run `piano-crm gmail-auth` to create a token file."
    )


def run_local_auth(settings: Settings) -> Any:
    """Run the interactive OAuth consent flow and write the token file.

    Intended for one-time local setup; servers use the stored refresh token.
    """
    from google_auth_oauthlib.flow import InstalledAppFlow

    credentials_path = Path(settings.gmail_credentials_path)
    if not credentials_path.exists():
        raise ConfigurationError(f"Gmail client secrets file not found: {credentials_path}")

    flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), scopes=list(settings.gmail_scopes))
    creds = flow.run_local_server(port=0)

    token_path = Path(settings.gmail_token_path)
    token_path.parent.mkdir(parents=True, exist_ok=True)
    token_path.write_text(creds.to_json(), encoding="utf-8")
    logger.info("gmail_token_written", token_path=str(token_path), has_refresh_token=bool(creds.refresh_token))
    return creds


class GmailClient:
    """Gmail API client for inbox reads.

    This client handles authentication, message listing and retrieval,
    and access-token refresh for SMTP.
    """

    def __init__(self, settings: Settings | None = None, service: Any | None = None) -> None:
        """Initialize Gmail client.

        Args:
            settings: Application settings. If None, uses default settings.
            service: Prebuilt Gmail API resource. Skips OAuth when given.
        """
        from piano_crm.config import get_settings

        self.settings = settings or get_settings()
        self._service: Any | None = service
        self._credentials: Any | None = None
        logger.info("gmail_client_initialized")

    async def authenticate(self) -> None:
        """Authenticate with Gmail API using OAuth2.

        Raises:
            ConfigurationError: If no credentials are configured.
            AuthenticationError: If authentication fails.
        """

        if self._service is not None:
            return

        logger.info("gmail_authentication_started", user=self.settings.gmail_user)

        credentials = build_credentials(self.settings)
        try:
            self._service = await asyncio.to_thread(self._build_service, credentials)
        except Exception as exc:  # noqa: BLE001
            logger.exception("gmail_authentication_failed", error=str(exc))
            raise AuthenticationError(str(exc)) from exc

        self._credentials = credentials
        logger.info("gmail_authentication_completed")

    async def list_messages(
        self,
        query: str | None = None,
        max_results: int | None = None,
    ) -> list[dict[str, Any]]:
        """List messages from Gmail.

        Args:
            query: Gmail search query string.
            max_results: Maximum number of messages to return.

        Returns:
            List of message stubs (``{"id", "threadId"}``).

        Raises:
            GmailAPIError: If the API request fails.
        """

        await self._ensure_authenticated()

        logger.info("listing_messages", max_results=max_results or "all", query=query)

        list_sync = retry_on_failure(max_retries=self.settings.max_retries)(self._list_messages_sync)
        try:
            return await asyncio.to_thread(list_sync, max_results, query)
        except Exception as exc:  # noqa: BLE001
            logger.exception("gmail_list_messages_failed", error=str(exc))
            raise GmailAPIError(str(exc)) from exc

    async def get_message(self, message_id: str, *, format: str = "full") -> dict[str, Any]:
        """Get a specific message by ID.

        Args:
            message_id: The Gmail message ID.
            format: Gmail response format.

        Returns:
            Message data dictionary.

        Raises:
            GmailAPIError: If the API request fails.
        """

        await self._ensure_authenticated()

        logger.debug("getting_message", message_id=message_id, format=format)

        get_sync = retry_on_failure(max_retries=self.settings.max_retries)(self._get_message_sync)
        try:
            return await asyncio.to_thread(get_sync, message_id, format)
        except Exception as exc:  # noqa: BLE001
            logger.exception("gmail_get_message_failed", message_id=message_id, error=str(exc))
            raise GmailAPIError(str(exc)) from exc

    async def get_access_token(self) -> str:
        """Return a fresh OAuth access token for SMTP XOAUTH2.

        Raises:
            AuthenticationError: If the token cannot be refreshed.
        """

        credentials = self._credentials or build_credentials(self.settings)
        try:
            token = await asyncio.to_thread(self._refresh_sync, credentials)
        except Exception as exc:  # noqa: BLE001
            logger.exception("gmail_token_refresh_failed", error=str(exc))
            raise AuthenticationError(str(exc)) from exc

        self._credentials = credentials
        return token

    async def _ensure_authenticated(self) -> None:
        if self._service is None:
            raise AuthenticationError(
                "Gmail client is not authenticated. Call await GmailClient.authenticate() first."
            )

    def _build_service(self, credentials: Any) -> Any:
        from google.auth.transport.requests import Request
        from googleapiclient.discovery import build

        if not credentials.valid:
            credentials.refresh(Request())

        # cache_discovery=False prevents writing discovery docs to disk.
        return build("gmail", "v1", credentials=credentials, cache_discovery=False)

    def _refresh_sync(self, credentials: Any) -> str:
        from google.auth.transport.requests import Request

        if not credentials.valid:
            credentials.refresh(Request())
        return str(credentials.token)

    def _list_messages_sync(self, max_results: int | None, query: str | None) -> list[dict[str, Any]]:
        assert self._service is not None
        messages: list[dict[str, Any]] = []

        page_token: str | None = None
        while True:
            if max_results is not None and len(messages) >= max_results:
                break

            remaining = None if max_results is None else max_results - len(messages)
            per_page = 500 if remaining is None else min(500, remaining)

            request = (
                self._service.users()
                .messages()
                .list(userId="me", maxResults=per_page, q=query, pageToken=page_token)
            )
            response = request.execute()
            messages.extend(response.get("messages", []) or [])
            page_token = response.get("nextPageToken")
            if page_token is None:
                break

        return messages if max_results is None else messages[:max_results]

    def _get_message_sync(self, message_id: str, format: str) -> dict[str, Any]:
        assert self._service is not None
        request = self._service.users().messages().get(userId="me", id=message_id, format=format)
        return request.execute()

"""Supabase Storage bucket wrapper.

Attachments and library assets are stored in one bucket; the database rows
only keep the object path.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

import structlog

from piano_crm.config import Settings
from piano_crm.exceptions import ConfigurationError, StorageError

logger = structlog.get_logger()

_UNSAFE_CHARS_RE = re.compile(r"[^a-zA-Z0-9.-]")


def sanitize_file_name(file_name: str) -> str:
    """Replace everything outside ``[a-zA-Z0-9.-]`` with underscores."""

    return _UNSAFE_CHARS_RE.sub("_", file_name or "file")


def _stamp(now: datetime | None) -> int:
    return int((now or datetime.now(timezone.utc)).timestamp() * 1000)


def library_path(file_name: str, now: datetime | None = None) -> str:
    """Object path for an asset library upload: ``library/<ms>_<name>``."""

    return f"library/{_stamp(now)}_{sanitize_file_name(file_name)}"


def attachment_path(student_id: str, file_name: str, now: datetime | None = None) -> str:
    """Object path for a compose-window upload."""

    return f"attachments/{student_id}/{_stamp(now)}_{sanitize_file_name(file_name)}"


def format_size(num_bytes: int) -> str:
    """Human-readable size: ``512 B``, ``1.5 KB``, ``2.0 MB``."""

    if num_bytes < 1024:
        return f"{num_bytes} B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KB"
    return f"{num_bytes / (1024 * 1024):.1f} MB"


class StorageBucket:
    """Thin wrapper around one Supabase Storage bucket."""

    def __init__(self, settings: Settings | None = None, client: Any | None = None) -> None:
        """Initialize the bucket.

        Args:
            settings: Application settings. If None, uses default settings.
            client: Prebuilt ``supabase.Client``. Created from settings when None.
        """
        from piano_crm.config import get_settings

        self.settings = settings or get_settings()
        self._client = client
        self.bucket_name = self.settings.storage_bucket

    def _bucket(self) -> Any:
        if self._client is None:
            if not self.settings.supabase_url or not self.settings.supabase_key:
                raise ConfigurationError(
                    "PIANO_CRM_SUPABASE_URL and PIANO_CRM_SUPABASE_KEY are required for file storage."
                )
            from supabase import create_client

            self._client = create_client(self.settings.supabase_url, self.settings.supabase_key)
        return self._client.storage.from_(self.bucket_name)

    def upload(self, path: str, data: bytes, content_type: str | None = None) -> str:
        """Upload ``data`` to ``path`` and return the path.

        Raises:
            StorageError: If the upload fails.
        """

        logger.info("storage_upload", bucket=self.bucket_name, path=path, size=len(data))
        try:
            self._bucket().upload(
                path,
                data,
                {"content-type": content_type or "application/octet-stream"},
            )
        except ConfigurationError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("storage_upload_failed", path=path, error=str(exc))
            raise StorageError(f"Failed to upload {path}: {exc}") from exc
        return path

    def download(self, path: str) -> bytes:
        """Download the object at ``path``.

        Raises:
            StorageError: If the download fails.
        """

        try:
            return bytes(self._bucket().download(path))
        except ConfigurationError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("storage_download_failed", path=path, error=str(exc))
            raise StorageError(f"Failed to download {path}: {exc}") from exc

    def remove(self, paths: list[str]) -> None:
        """Delete objects.

        Raises:
            StorageError: If the delete call fails.
        """

        if not paths:
            return
        try:
            self._bucket().remove(paths)
        except ConfigurationError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("storage_remove_failed", paths=paths, error=str(exc))
            raise StorageError(f"Failed to remove {paths}: {exc}") from exc
        logger.info("storage_removed", bucket=self.bucket_name, count=len(paths))

    def public_url(self, path: str) -> str:
        return str(self._bucket().get_public_url(path))

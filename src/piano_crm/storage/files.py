"""Upload and delete workflows that keep storage objects and rows in step."""

from __future__ import annotations

import structlog
from sqlalchemy.engine import Engine

from piano_crm.exceptions import StorageError, ValidationError
from piano_crm.models import Asset, Attachment
from piano_crm.repository import file_repository
from piano_crm.storage.bucket import StorageBucket, attachment_path, library_path

logger = structlog.get_logger()


def _check_upload(file_name: str, data: bytes) -> None:
    if not file_name:
        raise ValidationError("File name is required")
    if not data:
        raise ValidationError(f"File is empty: {file_name}")


def upload_asset(
    engine: Engine,
    storage: StorageBucket,
    *,
    file_name: str,
    content_type: str | None,
    data: bytes,
) -> Asset:
    """Store a library file and register it."""

    _check_upload(file_name, data)
    path = storage.upload(library_path(file_name), data, content_type)
    asset = file_repository.create_asset(
        engine,
        file_name=file_name,
        file_type=content_type or "application/octet-stream",
        file_size=len(data),
        storage_path=path,
        public_url=storage.public_url(path),
    )
    logger.info("asset_uploaded", asset_id=asset.id, file_name=file_name, size=asset.file_size)
    return asset


def delete_asset(engine: Engine, storage: StorageBucket, asset_id: str) -> bool:
    """Delete the row first, then the stored object.

    A storage failure after the row is gone is logged; the file is already
    unreachable from the library.
    """

    asset = file_repository.delete_asset(engine, asset_id)
    if asset is None:
        return False
    try:
        storage.remove([asset.storage_path])
    except StorageError as exc:
        logger.warning("asset_object_orphaned", asset_id=asset_id, storage_path=asset.storage_path, error=str(exc))
    return True


def upload_attachment(
    engine: Engine,
    storage: StorageBucket,
    *,
    student_id: str,
    file_name: str,
    content_type: str | None,
    data: bytes,
) -> Attachment:
    _check_upload(file_name, data)
    path = storage.upload(attachment_path(student_id, file_name), data, content_type)
    return file_repository.create_attachment(
        engine,
        student_id=student_id,
        file_name=file_name,
        file_type=content_type or "application/octet-stream",
        file_size=len(data),
        storage_path=path,
    )


def delete_attachment(engine: Engine, storage: StorageBucket, attachment_id: str) -> bool:
    attachment = file_repository.delete_attachment(engine, attachment_id)
    if attachment is None:
        return False
    try:
        storage.remove([attachment.storage_path])
    except StorageError as exc:
        logger.warning(
            "attachment_object_orphaned",
            attachment_id=attachment_id,
            storage_path=attachment.storage_path,
            error=str(exc),
        )
    return True

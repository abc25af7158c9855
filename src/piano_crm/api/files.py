"""Asset library and compose-window attachment APIs."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Response, UploadFile
from sqlalchemy.engine import Engine

from piano_crm.api.deps import get_db, get_storage
from piano_crm.api.models import AssetResponse, AttachmentResponse
from piano_crm.exceptions import NotFoundError
from piano_crm.models import Asset, Attachment
from piano_crm.repository import file_repository
from piano_crm.storage import StorageBucket, format_size
from piano_crm.storage import files as file_service

router = APIRouter(prefix="/api", tags=["files"])


def _asset(asset: Asset) -> AssetResponse:
    return AssetResponse(**asset.model_dump(), size_label=format_size(asset.file_size))


def _attachment(attachment: Attachment) -> AttachmentResponse:
    return AttachmentResponse(**attachment.model_dump(), size_label=format_size(attachment.file_size))


@router.get("/assets", response_model=list[AssetResponse])
def list_assets(search: str | None = None, engine: Engine = Depends(get_db)) -> list[AssetResponse]:
    return [_asset(a) for a in file_repository.list_assets(engine, search=search)]


@router.post("/assets", response_model=AssetResponse, status_code=201)
async def upload_asset(
    file: UploadFile = File(...),
    engine: Engine = Depends(get_db),
    storage: StorageBucket = Depends(get_storage),
) -> AssetResponse:
    data = await file.read()
    asset = file_service.upload_asset(
        engine,
        storage,
        file_name=file.filename or "",
        content_type=file.content_type,
        data=data,
    )
    return _asset(asset)


@router.get("/assets/{asset_id}", response_model=AssetResponse)
def get_asset(asset_id: str, engine: Engine = Depends(get_db)) -> AssetResponse:
    asset = file_repository.get_asset(engine, asset_id)
    if asset is None:
        raise NotFoundError(f"Asset not found: {asset_id}")
    return _asset(asset)


@router.delete("/assets/{asset_id}", status_code=204)
def delete_asset(
    asset_id: str,
    engine: Engine = Depends(get_db),
    storage: StorageBucket = Depends(get_storage),
) -> Response:
    if not file_service.delete_asset(engine, storage, asset_id):
        raise NotFoundError(f"Asset not found: {asset_id}")
    return Response(status_code=204)


@router.post("/students/{student_id}/attachments", response_model=AttachmentResponse, status_code=201)
async def upload_attachment(
    student_id: str,
    file: UploadFile = File(...),
    engine: Engine = Depends(get_db),
    storage: StorageBucket = Depends(get_storage),
) -> AttachmentResponse:
    data = await file.read()
    attachment = file_service.upload_attachment(
        engine,
        storage,
        student_id=student_id,
        file_name=file.filename or "",
        content_type=file.content_type,
        data=data,
    )
    return _attachment(attachment)


@router.get("/students/{student_id}/attachments", response_model=list[AttachmentResponse])
def list_attachments(student_id: str, engine: Engine = Depends(get_db)) -> list[AttachmentResponse]:
    return [_attachment(a) for a in file_repository.list_attachments(engine, student_id)]


@router.delete("/attachments/{attachment_id}", status_code=204)
def delete_attachment(
    attachment_id: str,
    engine: Engine = Depends(get_db),
    storage: StorageBucket = Depends(get_storage),
) -> Response:
    if not file_service.delete_attachment(engine, storage, attachment_id):
        raise NotFoundError(f"Attachment not found: {attachment_id}")
    return Response(status_code=204)

"""Instructor persona API."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.engine import Engine

from piano_crm.api.deps import get_db
from piano_crm.api.models import SettingsRequest, SettingsResponse
from piano_crm.repository import settings_repository

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("", response_model=SettingsResponse)
def get_settings(engine: Engine = Depends(get_db)) -> SettingsResponse:
    current = settings_repository.get_instructor_settings(engine)
    if current is None:
        return SettingsResponse()
    return SettingsResponse(
        instructor_profile=current.instructor_profile,
        writing_style=current.writing_style,
        updated_at=current.updated_at,
    )


@router.put("", response_model=SettingsResponse)
def save_settings(body: SettingsRequest, engine: Engine = Depends(get_db)) -> SettingsResponse:
    saved = settings_repository.save_instructor_settings(
        engine,
        instructor_profile=body.instructor_profile,
        writing_style=body.writing_style,
    )
    return SettingsResponse(
        instructor_profile=saved.instructor_profile,
        writing_style=saved.writing_style,
        updated_at=saved.updated_at,
    )

"""Dashboard API."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.engine import Engine

from piano_crm.api.deps import get_db
from piano_crm.dashboard import Dashboard, build_dashboard

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("", response_model=Dashboard)
def get_dashboard(engine: Engine = Depends(get_db)) -> Dashboard:
    return build_dashboard(engine)

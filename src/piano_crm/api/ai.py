"""Co-pilot APIs."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.engine import Engine

from piano_crm.ai.copilot import BackendFactory, draft_reply, strategy_chat
from piano_crm.ai.providers import AIProvider, parse_provider
from piano_crm.api.deps import get_app_settings, get_backend_factory, get_db
from piano_crm.api.models import AIChatRequest, AIChatResponse
from piano_crm.config import Settings

router = APIRouter(prefix="/api", tags=["ai"])


@router.post("/ai-chat", response_model=AIChatResponse)
async def ai_chat(
    body: AIChatRequest,
    engine: Engine = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    backend_factory: BackendFactory = Depends(get_backend_factory),
) -> AIChatResponse:
    provider = parse_provider(body.provider, default=settings.default_ai_provider)
    result = await draft_reply(
        engine,
        settings,
        student_id=body.student_id,
        message=body.message,
        provider=provider,
        backend_factory=backend_factory,
    )
    return AIChatResponse(reply=result.reply, provider=result.provider.value)


@router.post("/gemini", response_model=AIChatResponse, response_model_exclude_none=True)
async def gemini_chat(
    body: AIChatRequest,
    engine: Engine = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    backend_factory: BackendFactory = Depends(get_backend_factory),
) -> AIChatResponse:
    backend = backend_factory(AIProvider.GEMINI, settings)
    reply = await strategy_chat(
        engine,
        settings,
        student_id=body.student_id,
        message=body.message,
        backend=backend,
    )
    return AIChatResponse(reply=reply)

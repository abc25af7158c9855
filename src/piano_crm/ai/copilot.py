"""Co-pilot operations: drafting replies and strategy chat."""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass

import structlog
from sqlalchemy.engine import Engine

from piano_crm.ai.prompt import (
    STRATEGY_ACKNOWLEDGEMENT,
    build_copilot_prompt,
    build_strategy_prompt,
    humanize,
    persona_parts,
)
from piano_crm.ai.providers import AIProvider, GeminiBackend, ReplyBackend, get_backend
from piano_crm.config import Settings
from piano_crm.exceptions import NotFoundError, ValidationError
from piano_crm.models import SenderRole, Student
from piano_crm.repository.message_repository import last_message_from
from piano_crm.repository.settings_repository import get_instructor_settings
from piano_crm.repository.student_repository import get_student

logger = structlog.get_logger()

BackendFactory = Callable[[AIProvider, Settings], ReplyBackend]


@dataclass
class DraftReply:
    reply: str
    provider: AIProvider


def _load_student(engine: Engine, student_id: str | None, message: str | None) -> Student:
    if not message or not student_id:
        raise ValidationError("Missing message or studentId")
    student = get_student(engine, student_id)
    if student is None:
        raise NotFoundError("Student not found")
    return student


async def draft_reply(
    engine: Engine,
    settings: Settings,
    *,
    student_id: str | None,
    message: str | None,
    provider: AIProvider = AIProvider.GEMINI,
    backend_factory: BackendFactory = get_backend,
    rng: Callable[[], float] = random.random,
) -> DraftReply:
    """Draft a reply to the student's latest message in the instructor's voice.

    Raises:
        ValidationError: If the message or student id is missing.
        NotFoundError: If the student does not exist.
        AIProviderError: If the model call fails.
    """

    student = _load_student(engine, student_id, message)
    assert message is not None

    last = last_message_from(engine, student.id, SenderRole.STUDENT)
    persona = get_instructor_settings(engine)
    prompt = build_copilot_prompt(student, last.body_text if last else None, persona, message)

    backend = backend_factory(provider, settings)
    text = await backend.draft(prompt, message)

    _, style = persona_parts(persona)
    return DraftReply(reply=humanize(text, style, rng), provider=provider)


async def strategy_chat(
    engine: Engine,
    settings: Settings,
    *,
    student_id: str | None,
    message: str | None,
    backend: GeminiBackend | None = None,
) -> str:
    """Answer the instructor with a Gemini chat briefed on the student's strategy."""

    student = _load_student(engine, student_id, message)
    assert message is not None

    gemini = backend or GeminiBackend(settings)
    history = [
        {"role": "user", "parts": [build_strategy_prompt(student)]},
        {"role": "model", "parts": [STRATEGY_ACKNOWLEDGEMENT]},
    ]
    logger.info("strategy_chat_started", student_id=student.id)
    return await gemini.chat(history, message)


def copilot_greeting(student: Student) -> str:
    """Opening line for the co-pilot panel, chosen by the student's tags."""

    notes = (student.instructor_notes or "").strip()
    notes_context = ""
    if notes:
        excerpt = notes[:50] + ("..." if len(notes) > 50 else "")
        notes_context = f' Based on your notes, I\'ll keep in mind: "{excerpt}"'

    name = student.full_name
    if "Performance Anxiety" in student.tags:
        greeting = (
            f"I've analyzed {name}'s history. They seem anxious about their recital. "
            "Shall I draft a reassuring reply?"
        )
    elif "Parent" in student.tags:
        greeting = (
            f"{name} is inquiring about lessons for their children. I can help you draft a "
            "response about your teaching approach for young students."
        )
    elif "Exam Prep" in student.tags:
        greeting = (
            f"{name} is preparing for their Trinity exam. I can help you create a study plan "
            "or draft encouraging messages about exam preparation."
        )
    else:
        greeting = f"I've reviewed {name}'s conversation history. How can I help you craft the perfect response?"

    return greeting + notes_context

"""Unit tests for co-pilot prompts and operations."""

from datetime import datetime, timezone

import pytest

from piano_crm.ai.copilot import copilot_greeting, draft_reply, strategy_chat
from piano_crm.ai.prompt import (
    STRATEGY_ACKNOWLEDGEMENT,
    build_copilot_prompt,
    build_strategy_prompt,
    humanize,
)
from piano_crm.ai.providers import AIProvider
from piano_crm.exceptions import NotFoundError, ValidationError
from piano_crm.models import InstructorSettings, SenderRole, Student
from piano_crm.repository import message_repository, settings_repository


def _student(**overrides) -> Student:
    now = datetime.now(timezone.utc)
    data = {
        "id": "s1",
        "full_name": "Ana Pianist",
        "email": "ana@example.com",
        "created_at": now,
        "updated_at": now,
    }
    data.update(overrides)
    return Student(**data)


def _persona(profile: str = "", style: str = "") -> InstructorSettings:
    return InstructorSettings(
        id="p1",
        instructor_profile=profile,
        writing_style=style,
        updated_at=datetime.now(timezone.utc),
    )


class _RecordingBackend:
    def __init__(self, reply: str = "Sure, Tuesday works.") -> None:
        self.reply = reply
        self.calls: list[tuple[str, str]] = []
        self.chats: list[tuple[list, str]] = []

    async def draft(self, system_prompt: str, instruction: str) -> str:
        self.calls.append((system_prompt, instruction))
        return self.reply

    async def chat(self, history, message):
        self.chats.append((history, message))
        return self.reply


class TestBuildCopilotPrompt:
    """Test suite for the instructor-voice prompt."""

    def test_defaults(self) -> None:
        prompt = build_copilot_prompt(_student(), None, None, "Say yes")

        assert prompt.startswith("You are speaking AS ME, the instructor. I am: A piano teacher")
        assert "Professional and friendly" in prompt
        assert "2. Use perfect grammar." in prompt
        assert "I am replying to a student named Ana Pianist (Unknown)." in prompt
        assert 'My Strategy for them: "None"' in prompt
        assert "Student Tags: None" in prompt
        assert '"(No previous message found)"' in prompt
        assert prompt.endswith("Just the body text.")
        assert "MY INSTRUCTION TO YOU:\nSay yes" in prompt

    def test_student_and_persona_context(self) -> None:
        student = _student(country_code="JP", instructor_strategy="Upsell", tags=["Parent", "Beginner"])
        persona = _persona("Concert pianist", "Casual! with the odd typo")

        prompt = build_copilot_prompt(student, "When is the recital?", persona, "Answer")

        assert "I am: Concert pianist" in prompt
        assert "2. Make occasional small grammar slips." in prompt
        assert "3. Use exclamation marks sparingly." in prompt
        assert "(JP)" in prompt
        assert 'My Strategy for them: "Upsell"' in prompt
        assert "Student Tags: Parent, Beginner" in prompt
        assert '"When is the recital?"' in prompt


def test_strategy_prompt_defaults() -> None:
    prompt = build_strategy_prompt(_student())

    assert prompt.startswith("You are an expert piano teaching assistant.")
    assert '"No specific strategy set. Be helpful and encouraging."' in prompt
    assert "Context Tags: None" in prompt


class TestHumanize:
    """Test suite for the lowercase humanizer."""

    def test_lowercases_when_style_asks_and_roll_passes(self) -> None:
        assert humanize("Sure thing", "all lowercase", rng=lambda: 0.9) == "sure thing"

    def test_roll_fails(self) -> None:
        assert humanize("Sure thing", "all lowercase", rng=lambda: 0.6) == "Sure thing"

    def test_style_without_lowercase(self) -> None:
        assert humanize("Sure thing", "formal", rng=lambda: 0.99) == "Sure thing"


class TestDraftReply:
    """Test suite for draft_reply."""

    @pytest.mark.asyncio
    async def test_uses_last_student_message_and_persona(self, engine, student, mock_settings) -> None:
        message_repository.insert_message(
            engine, student_id=student.id, sender_role=SenderRole.STUDENT, body_text="Is Tuesday ok?"
        )
        message_repository.insert_message(
            engine, student_id=student.id, sender_role=SenderRole.INSTRUCTOR, body_text="Let me check"
        )
        settings_repository.save_instructor_settings(
            engine, instructor_profile="Concert pianist", writing_style="lowercase always"
        )
        backend = _RecordingBackend()
        requested = []

        def factory(provider, settings):
            requested.append(provider)
            return backend

        result = await draft_reply(
            engine,
            mock_settings,
            student_id=student.id,
            message="Confirm Tuesday",
            provider=AIProvider.CLAUDE,
            backend_factory=factory,
            rng=lambda: 0.99,
        )

        assert requested == [AIProvider.CLAUDE]
        assert result.provider is AIProvider.CLAUDE
        assert result.reply == "sure, Tuesday works."
        prompt, instruction = backend.calls[0]
        assert instruction == "Confirm Tuesday"
        assert '"Is Tuesday ok?"' in prompt
        assert "I am: Concert pianist" in prompt

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("student_id", "message"), [(None, "hi"), ("s1", None), ("s1", "")])
    async def test_missing_input(self, engine, mock_settings, student_id, message) -> None:
        with pytest.raises(ValidationError):
            await draft_reply(engine, mock_settings, student_id=student_id, message=message)

    @pytest.mark.asyncio
    async def test_unknown_student(self, engine, mock_settings) -> None:
        with pytest.raises(NotFoundError):
            await draft_reply(engine, mock_settings, student_id="missing", message="hi")


@pytest.mark.asyncio
async def test_strategy_chat_primes_history(engine, student, mock_settings) -> None:
    backend = _RecordingBackend(reply="Offer a trial lesson.")

    reply = await strategy_chat(
        engine, mock_settings, student_id=student.id, message="How do I answer?", backend=backend
    )

    assert reply == "Offer a trial lesson."
    history, message = backend.chats[0]
    assert message == "How do I answer?"
    assert history[0]["role"] == "user"
    assert "Push for weekly lessons" in history[0]["parts"][0]
    assert history[1] == {"role": "model", "parts": [STRATEGY_ACKNOWLEDGEMENT]}


class TestCopilotGreeting:
    """Test suite for the tag-driven greeting."""

    @pytest.mark.parametrize(
        ("tags", "fragment"),
        [
            (["Performance Anxiety"], "anxious about their recital"),
            (["Parent"], "lessons for their children"),
            (["Exam Prep"], "preparing for their Trinity exam"),
            ([], "How can I help you craft the perfect response?"),
        ],
    )
    def test_tag_specific_text(self, tags, fragment) -> None:
        greeting = copilot_greeting(_student(tags=tags))

        assert fragment in greeting
        assert "Ana Pianist" in greeting
        assert "Based on your notes" not in greeting

    def test_notes_excerpt_is_truncated(self) -> None:
        notes = "x" * 60

        greeting = copilot_greeting(_student(instructor_notes=notes))

        assert greeting.endswith(f' Based on your notes, I\'ll keep in mind: "{"x" * 50}..."')

    def test_short_notes_are_quoted_whole(self) -> None:
        greeting = copilot_greeting(_student(instructor_notes="Loves Chopin"))

        assert greeting.endswith(' Based on your notes, I\'ll keep in mind: "Loves Chopin"')

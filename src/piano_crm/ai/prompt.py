"""Prompt construction for the reply co-pilot."""

from __future__ import annotations

import random
from collections.abc import Callable

from piano_crm.models import InstructorSettings, Student

DEFAULT_PROFILE = "A piano teacher"
DEFAULT_STYLE = "Professional and friendly"
NO_PREVIOUS_MESSAGE = "(No previous message found)"
DEFAULT_STRATEGY_HINT = "No specific strategy set. Be helpful and encouraging."

STRATEGY_ACKNOWLEDGEMENT = (
    "Understood. I have internalized the strategy for this student and am ready "
    "to help you craft the perfect response."
)


def persona_parts(persona: InstructorSettings | None) -> tuple[str, str]:
    """Instructor profile and writing style, with defaults for blanks."""

    profile = (persona.instructor_profile if persona else "") or DEFAULT_PROFILE
    style = (persona.writing_style if persona else "") or DEFAULT_STYLE
    return profile, style


def _tags_line(student: Student) -> str:
    return ", ".join(student.tags) or "None"


def build_copilot_prompt(
    student: Student,
    last_student_message: str | None,
    persona: InstructorSettings | None,
    instruction: str,
) -> str:
    """System prompt that makes the model write as the instructor.

    The instruction is embedded at the end, so a backend that only takes a
    single prompt still sees it.
    """

    profile, style = persona_parts(persona)
    lowered = style.lower()
    grammar_rule = "Make occasional small grammar slips." if "typo" in lowered else "Use perfect grammar."
    exclamation_rule = "Use exclamation marks sparingly." if "!" in lowered else ""

    prompt = f"""
You are speaking AS ME, the instructor. I am: {profile}

MY WRITING STYLE (CRITICAL):
{style}

RULES:
1. NO sales-y fluff ("I'd love to!", "Great to hear!"). Be direct.
2. {grammar_rule}
3. {exclamation_rule}

CONTEXT:
I am replying to a student named {student.full_name} ({student.country_code or "Unknown"}).
My Strategy for them: "{student.instructor_strategy or "None"}"
Student Tags: {_tags_line(student)}

---
THEIR LAST MESSAGE TO ME:
"{last_student_message or NO_PREVIOUS_MESSAGE}"
---

MY INSTRUCTION TO YOU:
{instruction}

Write the response AS ME. Do not include subject lines or placeholders like [Name]. Just the body text.
"""
    return prompt.strip()


def build_strategy_prompt(student: Student) -> str:
    """Assistant briefing used to prime the strategy chat."""

    prompt = f"""
You are an expert piano teaching assistant.
You are helping the instructor reply to a student named: {student.full_name} ({student.country_code or "Unknown"}).

CRITICAL INSTRUCTION FROM TEACHER (The "Strategy"):
"{student.instructor_strategy or DEFAULT_STRATEGY_HINT}"

Context Tags: {_tags_line(student)}

Task: Answer the instructor's question or draft a reply based on the strategy above.
Keep it concise and helpful. Format your response in a conversational way.
"""
    return prompt.strip()


def humanize(text: str, writing_style: str, rng: Callable[[], float] = random.random) -> str:
    """Occasionally lower-case the first letter for a "lowercase" style.

    Applies to roughly 40% of replies.
    """

    if text and "lowercase" in writing_style.lower() and rng() > 0.6:
        return text[:1].lower() + text[1:]
    return text

"""LLM backends for the reply co-pilot.

Each backend wraps one vendor SDK. The SDKs are synchronous, so calls run in
a worker thread via ``asyncio.to_thread``. Vendor errors are translated into
the ``AIProviderError`` family so HTTP handlers can map them to status codes.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any

import structlog

from piano_crm.config import Settings
from piano_crm.exceptions import (
    AIModelUnavailableError,
    AIProviderError,
    AIRateLimitError,
    ConfigurationError,
)

logger = structlog.get_logger()

RATE_LIMIT_MESSAGE = "Rate limit reached. Please wait a minute and try again."
MODEL_UNAVAILABLE_MESSAGE = "AI model not available. Please check API configuration."


class AIProvider(str, Enum):
    """Selectable co-pilot backend."""

    GEMINI = "gemini"
    OPENAI = "openai"
    CLAUDE = "claude"


def _status_code(exc: BaseException) -> int | None:
    # openai/anthropic expose status_code; google.api_core exposes code.
    for attr in ("status_code", "code"):
        value = getattr(exc, attr, None)
        if value is None:
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            continue
    return None


def map_provider_error(exc: BaseException) -> AIProviderError:
    """Translate a vendor SDK exception into the CRM error family."""

    if isinstance(exc, AIProviderError):
        return exc

    status = _status_code(exc)
    message = str(exc)
    lowered = message.lower()
    if status == 429 or "429" in message or "quota" in lowered:
        return AIRateLimitError(RATE_LIMIT_MESSAGE)
    if status == 404 or "not found" in lowered:
        return AIModelUnavailableError(MODEL_UNAVAILABLE_MESSAGE)
    return AIProviderError(message or "Failed to process request")


class ReplyBackend:
    """Base class for co-pilot backends."""

    provider: AIProvider

    def __init__(self, settings: Settings, client: Any | None = None) -> None:
        self.settings = settings
        self._client = client

    async def draft(self, system_prompt: str, instruction: str) -> str:
        """Generate reply text.

        Args:
            system_prompt: Prompt from ``build_copilot_prompt``.
            instruction: The instructor's request on its own.

        Raises:
            AIProviderError: If the vendor call fails.
        """

        logger.info("ai_draft_started", provider=self.provider.value)
        try:
            text = await asyncio.to_thread(self._draft_sync, system_prompt, instruction)
        except ConfigurationError:
            raise
        except Exception as exc:  # noqa: BLE001
            mapped = map_provider_error(exc)
            logger.error("ai_draft_failed", provider=self.provider.value, error=str(exc))
            raise mapped from exc
        logger.info("ai_draft_completed", provider=self.provider.value, length=len(text))
        return text

    def _draft_sync(self, system_prompt: str, instruction: str) -> str:
        raise NotImplementedError


class GeminiBackend(ReplyBackend):
    provider = AIProvider.GEMINI

    def _model(self) -> Any:
        if self._client is None:
            if not self.settings.gemini_api_key:
                raise ConfigurationError("PIANO_CRM_GEMINI_API_KEY is not set.")
            import google.generativeai as genai

            genai.configure(api_key=self.settings.gemini_api_key)
            self._client = genai.GenerativeModel(self.settings.gemini_model)
        return self._client

    def _draft_sync(self, system_prompt: str, instruction: str) -> str:
        # Gemini gets the whole prompt in one go; it already ends with the instruction.
        response = self._model().generate_content(system_prompt)
        return response.text or ""

    async def chat(self, history: list[dict[str, Any]], message: str) -> str:
        """Send ``message`` in a chat primed with ``history``.

        Raises:
            AIProviderError: If the vendor call fails.
        """

        def _send() -> str:
            session = self._model().start_chat(history=history)
            return session.send_message(message).text or ""

        try:
            return await asyncio.to_thread(_send)
        except ConfigurationError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error("ai_chat_failed", provider=self.provider.value, error=str(exc))
            raise map_provider_error(exc) from exc


class OpenAIBackend(ReplyBackend):
    provider = AIProvider.OPENAI

    def _draft_sync(self, system_prompt: str, instruction: str) -> str:
        if self._client is None:
            if not self.settings.openai_api_key:
                raise ConfigurationError("PIANO_CRM_OPENAI_API_KEY is not set.")
            from openai import OpenAI

            self._client = OpenAI(api_key=self.settings.openai_api_key)

        completion = self._client.chat.completions.create(
            model=self.settings.openai_model,
            max_tokens=self.settings.ai_max_tokens,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": instruction},
            ],
        )
        return completion.choices[0].message.content or ""


class ClaudeBackend(ReplyBackend):
    provider = AIProvider.CLAUDE

    def _draft_sync(self, system_prompt: str, instruction: str) -> str:
        if self._client is None:
            if not self.settings.anthropic_api_key:
                raise ConfigurationError("PIANO_CRM_ANTHROPIC_API_KEY is not set.")
            from anthropic import Anthropic

            self._client = Anthropic(api_key=self.settings.anthropic_api_key)

        response = self._client.messages.create(
            model=self.settings.anthropic_model,
            max_tokens=self.settings.ai_max_tokens,
            system=system_prompt,
            messages=[{"role": "user", "content": instruction}],
        )
        return "".join(getattr(block, "text", "") for block in response.content)


_BACKENDS: dict[AIProvider, type[ReplyBackend]] = {
    AIProvider.GEMINI: GeminiBackend,
    AIProvider.OPENAI: OpenAIBackend,
    AIProvider.CLAUDE: ClaudeBackend,
}


def parse_provider(value: str | AIProvider | None, default: str = AIProvider.GEMINI.value) -> AIProvider:
    """Resolve a provider name. Unknown names fall back to Gemini."""

    if isinstance(value, AIProvider):
        return value
    try:
        return AIProvider((value or default).strip().lower())
    except ValueError:
        return AIProvider.GEMINI


def get_backend(provider: AIProvider, settings: Settings) -> ReplyBackend:
    return _BACKENDS[provider](settings)

"""AI reply co-pilot."""

from .copilot import DraftReply, copilot_greeting, draft_reply, strategy_chat
from .prompt import build_copilot_prompt, build_strategy_prompt, humanize
from .providers import (
    AIProvider,
    ClaudeBackend,
    GeminiBackend,
    OpenAIBackend,
    ReplyBackend,
    get_backend,
    map_provider_error,
    parse_provider,
)

__all__ = [
    "AIProvider",
    "ClaudeBackend",
    "DraftReply",
    "GeminiBackend",
    "OpenAIBackend",
    "ReplyBackend",
    "build_copilot_prompt",
    "build_strategy_prompt",
    "copilot_greeting",
    "draft_reply",
    "get_backend",
    "humanize",
    "map_provider_error",
    "parse_provider",
    "strategy_chat",
]

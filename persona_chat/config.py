"""Connection settings: environment defaults and per-call config resolution.

Precedence for a single generation:

    persona.model  →  session config  →  global settings  →  FALLBACK_MODEL

The persona step is applied by the reply generator; everything else is
resolved here. Session overrides win field by field, and only when the field
is non-empty. `moderator_model` follows the same chain.
"""

from __future__ import annotations

import os

from persona_chat.models import AIConfig, Settings

FALLBACK_MODEL = "gpt-3.5-turbo"
DEFAULT_BASE_URL = "https://api.openai.com/v1"


def default_settings() -> Settings:
    """Build global settings from the environment (.env is loaded by the app)."""
    return Settings(
        api_key=os.getenv("PERSONA_CHAT_API_KEY", ""),
        base_url=os.getenv("PERSONA_CHAT_BASE_URL", DEFAULT_BASE_URL),
        model=os.getenv("PERSONA_CHAT_MODEL", FALLBACK_MODEL),
    )


def resolve_config(global_config: AIConfig, session_config: AIConfig | None) -> AIConfig:
    """Merge a session override on top of the global config."""
    override = session_config or AIConfig()
    return AIConfig(
        api_key=override.api_key or global_config.api_key,
        base_url=override.base_url or global_config.base_url,
        model=override.model or global_config.model,
        moderator_model=override.moderator_model or global_config.moderator_model or None,
    )

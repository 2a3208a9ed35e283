"""Reply generator — produces one persona-voiced message.

Model resolution:
  primary   persona.model → config.model → FALLBACK_MODEL
  fallback  config.model → FALLBACK_MODEL

If the primary request fails and the fallback is a different model, the
request is retried exactly once with the fallback. When the primary already
is the fallback the error propagates immediately. Successful replies are
cleaned with sanitize.clean_reply().
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from persona_chat.config import FALLBACK_MODEL
from persona_chat.llm import ApiError, CompletionClient
from persona_chat.models import AIConfig, Message, Persona
from persona_chat.prompts import build_reply_request
from persona_chat.sanitize import clean_reply

logger = logging.getLogger(__name__)


def resolve_models(config: AIConfig, persona: Persona) -> tuple[str, str]:
    """Return (primary, fallback) model names for a persona."""
    fallback = config.model or FALLBACK_MODEL
    return persona.model or fallback, fallback


class ReplyGenerator:
    def __init__(self, client: CompletionClient) -> None:
        self.client = client

    async def generate(
        self,
        config: AIConfig,
        persona: Persona,
        personas: Mapping[str, Persona],
        history: Iterable[Message],
        participant_ids: Iterable[str] | None = None,
    ) -> str:
        """Generate the next line for `persona`.

        Raises ApiError only when neither the primary nor the fallback model
        could produce a response.
        """
        if not config.api_key:
            raise ApiError("API key is missing")

        human = next((p for p in personas.values() if p.is_human), None)
        human_label = human.name if human else "Me"
        history = list(history)
        participant_ids = list(participant_ids) if participant_ids is not None else None

        primary, fallback = resolve_models(config, persona)

        def _request(model: str):
            return build_reply_request(
                persona, personas, history, model,
                participant_ids=participant_ids,
                human_label=human_label,
            )

        try:
            raw = await self.client.complete(config, _request(primary))
        except ApiError as e:
            if primary == fallback:
                raise
            logger.warning(
                "Reply failed with model %s, retrying with fallback %s: %s",
                primary, fallback, e,
            )
            raw = await self.client.complete(config, _request(fallback))

        return clean_reply(raw, persona.name, extra_labels=[human_label])

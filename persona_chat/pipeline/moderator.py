"""Moderator — asks the model who should speak next.

The answer is free-form model text that should contain
{"nextSpeakerId": "<id>"}. Small models wrap it in code fences or emit
near-JSON (unquoted keys, single quotes), so parsing tries strict JSON first
and falls back to a tolerant pattern. Any failure means "no opinion" (None);
the scheduler then picks at random.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping

from persona_chat.config import FALLBACK_MODEL
from persona_chat.llm import CompletionClient
from persona_chat.models import AIConfig, Message, Persona
from persona_chat.prompts import build_moderator_request

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
_SPEAKER_RE = re.compile(
    r"""["']?nextSpeakerId["']?\s*[:=]\s*["']?([^"'\s,}]+)["']?""", re.IGNORECASE
)


def parse_next_speaker(text: str) -> str | None:
    """Pull the nextSpeakerId value out of a moderator reply."""
    cleaned = _FENCE_RE.sub("", text or "").strip()
    if not cleaned:
        return None
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        match = _SPEAKER_RE.search(cleaned)
        return match.group(1) if match else None
    if isinstance(data, dict):
        speaker = data.get("nextSpeakerId")
        return str(speaker) if speaker else None
    return None


class ModeratorSelector:
    def __init__(self, client: CompletionClient) -> None:
        self.client = client

    async def select_next_speaker(
        self,
        config: AIConfig,
        recent_history: Iterable[Message],
        candidates: list[Persona],
        personas: Mapping[str, Persona] | None = None,
    ) -> str | None:
        """Return a candidate id, or None when the model gives no usable answer."""
        if not candidates:
            return None
        if len(candidates) == 1:
            return candidates[0].id
        if not config.api_key:
            return None

        roster = dict(personas or {})
        roster.update({p.id: p for p in candidates})
        model = config.moderator_model or config.model or FALLBACK_MODEL
        request = build_moderator_request(recent_history, candidates, roster, model)

        try:
            text = await self.client.complete(config, request)
        except Exception as e:
            logger.warning("Moderator call failed (model=%s): %s", model, e)
            return None

        speaker = parse_next_speaker(text)
        valid_ids = {p.id for p in candidates}
        if speaker not in valid_ids:
            logger.info("Moderator answer %r is not a candidate — ignored", speaker)
            return None
        logger.info("Moderator picked %s", speaker)
        return speaker

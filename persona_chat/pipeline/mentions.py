"""Mention detection in the last message of a session."""

from __future__ import annotations

from collections.abc import Iterable

from persona_chat.models import Persona


def is_mentioned(content: str, persona: Persona) -> bool:
    """Full name anywhere (case-insensitive), or "@" + first name."""
    text = content.lower()
    name = persona.name.lower().strip()
    if not name:
        return False
    if name in text:
        return True
    return f"@{persona.first_name.lower()}" in text


def find_mentioned(content: str, personas: Iterable[Persona]) -> list[Persona]:
    """Return every persona the message addresses, in roster order."""
    return [p for p in personas if is_mentioned(content, p)]

"""Plain-text export of a session's history."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime

from persona_chat.models import ChatSession, Persona
from persona_chat.prompts import sender_name


def format_timestamp(ts_ms: int) -> str:
    return datetime.fromtimestamp(ts_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def export_history_text(session: ChatSession, personas: Mapping[str, Persona]) -> str:
    """One line per message: "[YYYY-MM-DD HH:MM:SS] Name: content"."""
    return "\n".join(
        f"[{format_timestamp(m.timestamp)}] {sender_name(personas, m.sender_id)}: {m.content}"
        for m in session.messages
    )


def export_filename(session: ChatSession) -> str:
    return f"{session.name}_history.txt"

"""JSON file storage.

All persistent state is stored in flat JSON files under a configurable base
directory. There is no database or ORM — reads and writes go through plain
helper methods that load and dump JSON.

Directory layout:

    {base}/
      personas.json           ← list of Persona objects (the persona registry)
      settings.json           ← global Settings (merged over env defaults)
      sessions/
        {session_id}.json     ← ChatSession with its full message history

Auto-chat flags are process state, not data: they live in memory only and
are cleared whenever a session's history is cleared.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from persona_chat.config import default_settings, resolve_config
from persona_chat.models import (
    HUMAN_ID,
    SYSTEM_SENDER_ID,
    AIConfig,
    ChatSession,
    Message,
    Persona,
    Settings,
    new_id,
    now_ms,
)

logger = logging.getLogger(__name__)

DEFAULT_HUMAN = Persona(id=HUMAN_ID, name="Me", description="You", is_human=True)


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._sessions_root = base_path / "sessions"
        self._sessions_root.mkdir(parents=True, exist_ok=True)
        self._auto_flags: dict[str, bool] = {}

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    def _session_file(self, session_id: str) -> Path:
        return self._sessions_root / f"{session_id}.json"

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text())

    def _write_json(self, path: Path, data: Any) -> None:
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False))

    # ------------------------------------------------------------------
    # Personas (the registry)
    # ------------------------------------------------------------------

    def list_personas(self) -> list[Persona]:
        path = self._base / "personas.json"
        if not path.exists():
            return [DEFAULT_HUMAN.model_copy()]
        return [Persona.model_validate(p) for p in self._read_json(path)]

    def get_persona(self, persona_id: str) -> Persona | None:
        for persona in self.list_personas():
            if persona.id == persona_id:
                return persona
        return None

    def human_persona(self) -> Persona:
        for persona in self.list_personas():
            if persona.is_human:
                return persona
        return DEFAULT_HUMAN.model_copy()

    def save_persona(self, persona: Persona) -> None:
        """Upsert a persona by id."""
        personas = self.list_personas()
        for i, p in enumerate(personas):
            if p.id == persona.id:
                personas[i] = persona
                break
        else:
            personas.append(persona)
        self._write_personas(personas)

    def delete_persona(self, persona_id: str) -> bool:
        personas = self.list_personas()
        remaining = [p for p in personas if p.id != persona_id]
        if len(remaining) == len(personas):
            return False
        self._write_personas(remaining)
        return True

    def _write_personas(self, personas: list[Persona]) -> None:
        self._write_json(self._base / "personas.json", [p.model_dump() for p in personas])

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def list_sessions(self) -> list[ChatSession]:
        """All sessions, most recent activity first."""
        sessions = [
            ChatSession.model_validate_json(path.read_text())
            for path in self._sessions_root.glob("*.json")
        ]
        sessions.sort(key=lambda s: s.last_message_at, reverse=True)
        return sessions

    def get_session(self, session_id: str) -> ChatSession | None:
        path = self._session_file(session_id)
        if not path.exists():
            return None
        return ChatSession.model_validate_json(path.read_text())

    def save_session(self, session: ChatSession) -> None:
        self._session_file(session.id).write_text(session.model_dump_json(indent=2))

    def create_session(self, name: str, persona_ids: list[str]) -> ChatSession:
        """Create a group chat with the human plus the given AI personas."""
        human_id = self.human_persona().id
        now = now_ms()
        session = ChatSession(
            name=name,
            participant_ids=[human_id, *[pid for pid in persona_ids if pid != human_id]],
            messages=[
                Message(
                    id=new_id("sys"),
                    sender_id=SYSTEM_SENDER_ID,
                    content="Group created",
                    timestamp=now,
                    is_system=True,
                )
            ],
            is_group=True,
            last_message_at=now,
        )
        self.save_session(session)
        return session

    def start_direct_chat(self, persona_id: str) -> ChatSession | None:
        """Return the 1:1 chat with a persona, creating it on first use."""
        target = self.get_persona(persona_id)
        if target is None or target.is_human:
            return None
        human_id = self.human_persona().id
        for session in self.list_sessions():
            if (
                not session.is_group
                and persona_id in session.participant_ids
                and human_id in session.participant_ids
            ):
                return session
        session = ChatSession(
            id=f"chat-dm-{persona_id}",
            name=target.name,
            participant_ids=[human_id, persona_id],
            is_group=False,
        )
        self.save_session(session)
        return session

    def invite(self, session_id: str, persona_id: str) -> ChatSession | None:
        """Add a persona to a session and announce it with a system message."""
        session = self.get_session(session_id)
        persona = self.get_persona(persona_id)
        if session is None or persona is None:
            return None
        if persona_id in session.participant_ids:
            return session
        session.participant_ids.append(persona_id)
        self._append(session, Message(
            id=new_id("sys-inv"),
            sender_id=SYSTEM_SENDER_ID,
            content=f"Invited {persona.name} to the group",
            is_system=True,
        ))
        self.save_session(session)
        return session

    def append_message(self, session_id: str, message: Message) -> ChatSession | None:
        """Append a message; returns the updated session or None if it is gone."""
        session = self.get_session(session_id)
        if session is None:
            logger.warning("append to missing session %s dropped", session_id)
            return None
        self._append(session, message)
        self.save_session(session)
        return session

    def _append(self, session: ChatSession, message: Message) -> None:
        last = session.last_message
        if last is not None and message.timestamp < last.timestamp:
            message = message.model_copy(update={"timestamp": last.timestamp})
        session.messages.append(message)
        session.last_message_at = message.timestamp

    def set_session_config(self, session_id: str, config: AIConfig | None) -> ChatSession | None:
        session = self.get_session(session_id)
        if session is None:
            return None
        session.config = config
        self.save_session(session)
        return session

    def clear_history(self, session_id: str) -> ChatSession | None:
        """Wipe a session's messages and force its auto mode off."""
        session = self.get_session(session_id)
        if session is None:
            return None
        session.messages = []
        session.history_epoch += 1
        self.save_session(session)
        self.set_auto_flag(session_id, False)
        return session

    def reset(self) -> None:
        """Delete every persona, session and setting, and switch all auto modes off."""
        for path in (self._base / "personas.json", self._base / "settings.json"):
            path.unlink(missing_ok=True)
        for path in self._sessions_root.glob("*.json"):
            path.unlink()
        self._auto_flags.clear()
        logger.info("Storage at %s reset", self._base)

    # ------------------------------------------------------------------
    # Auto-chat flags (memory only)
    # ------------------------------------------------------------------

    def set_auto_flag(self, session_id: str, enabled: bool) -> None:
        self._auto_flags[session_id] = enabled

    def is_auto(self, session_id: str) -> bool:
        return self._auto_flags.get(session_id, False)

    def auto_session_ids(self) -> list[str]:
        return [sid for sid, enabled in self._auto_flags.items() if enabled]

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_settings(self) -> Settings:
        """Read settings, returning env defaults merged with stored values."""
        settings = default_settings()
        path = self._base / "settings.json"
        if path.exists():
            stored = self._read_json(path)
            settings = settings.model_copy(update={
                k: v for k, v in stored.items() if k in Settings.model_fields
            })
        return settings

    def update_settings(self, fields: dict[str, Any]) -> Settings:
        """Merge fields into settings and persist. Returns full settings."""
        settings = self.get_settings().model_copy(update={
            k: v for k, v in fields.items() if k in Settings.model_fields
        })
        settings = Settings.model_validate(settings.model_dump())
        self._write_json(self._base / "settings.json", settings.model_dump())
        return settings

    def global_config(self) -> AIConfig:
        return self.get_settings().ai_config()

    def effective_config(self, session: ChatSession) -> AIConfig:
        return resolve_config(self.global_config(), session.config)

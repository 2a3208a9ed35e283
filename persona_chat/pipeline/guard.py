"""Single-flight guard and the "who is typing" indicator.

At most one generation pipeline (moderator query + reply generation) runs at
any instant, across all sessions. The guard is a single slot holding the
session being served and, once chosen, the persona that is typing:

    None                              idle
    TypingSlot(session_id, None)      deciding who speaks
    TypingSlot(session_id, persona)   persona is typing in that session

Everything runs on one asyncio loop, so the check-then-set in try_acquire()
cannot interleave with another acquire as long as no await sits between them.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass


class GuardBusy(RuntimeError):
    """Raised by GenerationGuard.hold() when another pipeline owns the slot."""


@dataclass
class TypingSlot:
    session_id: str
    persona_id: str | None = None


class GenerationGuard:
    def __init__(self) -> None:
        self._slot: TypingSlot | None = None

    @property
    def busy(self) -> bool:
        return self._slot is not None

    @property
    def current(self) -> TypingSlot | None:
        return self._slot

    def typing_persona(self, session_id: str) -> str | None:
        """Persona typing in `session_id`; never reports another session's state."""
        if self._slot is None or self._slot.session_id != session_id:
            return None
        return self._slot.persona_id

    def try_acquire(self, session_id: str) -> TypingSlot | None:
        if self._slot is not None:
            return None
        self._slot = TypingSlot(session_id=session_id)
        return self._slot

    def release(self, slot: TypingSlot) -> None:
        # A stale handle must not clear a slot that belongs to someone else.
        if self._slot is slot:
            self._slot = None

    @contextmanager
    def hold(self, session_id: str) -> Iterator[TypingSlot]:
        slot = self.try_acquire(session_id)
        if slot is None:
            raise GuardBusy(f"generation already in flight for {self._slot.session_id}")
        try:
            yield slot
        finally:
            self.release(slot)

"""Turn scheduler — decides whether and which persona speaks next, then runs it.

Turn flow for try_advance(session_id, is_manual_trigger):
  1. Preconditions: guard idle, session exists with messages, API key set.
  2. Acquire the guard for the whole pipeline.
  3. Without auto mode or a manual trigger, AI never answers AI.
  4. Candidates = participants − human − last sender.
  5. Pick the responder:
       exactly one mentioned candidate → mention
       a single candidate              → single
       moderator answer (auto/manual)  → moderator
       otherwise                       → random
  6. Mark the persona as typing, wait the pacing delay, re-read the session
     and generate the reply from that fresh history.
  7. Append the reply unless the history was cleared meanwhile.
  8. Release the guard on every exit path. Failures are logged, never raised.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal, Protocol

from persona_chat.models import HUMAN_ID, AIConfig, ChatSession, Message, Persona
from persona_chat.prompts import MODERATOR_HISTORY_LIMIT, conversational

from .generator import ReplyGenerator
from .guard import GenerationGuard, TypingSlot
from .mentions import find_mentioned
from .moderator import ModeratorSelector

logger = logging.getLogger(__name__)

TurnStatus = Literal[
    "busy",
    "missing_session",
    "empty",
    "config_missing",
    "not_needed",
    "no_candidates",
    "generated",
    "discarded",
    "failed",
]
SelectedBy = Literal["mention", "single", "moderator", "random"]


class ChatStore(Protocol):
    """What the scheduler needs from storage (see persona_chat.storage.Storage)."""

    def get_session(self, session_id: str) -> ChatSession | None: ...

    def get_persona(self, persona_id: str) -> Persona | None: ...

    def append_message(self, session_id: str, message: Message) -> ChatSession | None: ...

    def is_auto(self, session_id: str) -> bool: ...

    def effective_config(self, session: ChatSession) -> AIConfig: ...


@dataclass
class TurnOutcome:
    status: TurnStatus
    session_id: str
    persona_id: str | None = None
    selected_by: SelectedBy | None = None
    message: Message | None = None


class TurnScheduler:
    def __init__(
        self,
        store: ChatStore,
        moderator: ModeratorSelector,
        generator: ReplyGenerator,
        guard: GenerationGuard | None = None,
        rng: random.Random | None = None,
        reaction_delay: float = 0.8,
        paced_delay: tuple[float, float] = (1.5, 2.5),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.store = store
        self.moderator = moderator
        self.generator = generator
        self.guard = guard or GenerationGuard()
        self._rng = rng or random.Random()
        self.reaction_delay = reaction_delay
        self.paced_delay = paced_delay
        self._sleep = sleep

    async def try_advance(self, session_id: str, is_manual_trigger: bool = False) -> TurnOutcome:
        """Run at most one turn for a session. Never raises on generation failure."""
        if self.guard.busy:
            return TurnOutcome("busy", session_id)

        session = self.store.get_session(session_id)
        if session is None:
            return TurnOutcome("missing_session", session_id)
        if not session.messages:
            return TurnOutcome("empty", session_id)

        config = self.store.effective_config(session)
        if not config.api_key:
            logger.info("No API key configured, skipping turn for %s", session_id)
            return TurnOutcome("config_missing", session_id)

        # No await between the busy check above and this acquire.
        with self.guard.hold(session_id) as slot:
            try:
                return await self._advance(slot, session, config, is_manual_trigger)
            except Exception:
                logger.exception("Turn generation failed for session %s", session_id)
                return TurnOutcome("failed", session_id, persona_id=slot.persona_id)

    async def _advance(
        self,
        slot: TypingSlot,
        session: ChatSession,
        config: AIConfig,
        is_manual_trigger: bool,
    ) -> TurnOutcome:
        last = session.messages[-1]
        is_auto = self.store.is_auto(session.id)
        personas = self._snapshot_personas(session)
        human_id = next((pid for pid, p in personas.items() if p.is_human), HUMAN_ID)

        if not is_manual_trigger and not is_auto and last.sender_id != human_id:
            return TurnOutcome("not_needed", session.id)

        candidates = [
            personas[pid] for pid in session.participant_ids
            if pid != human_id
            and pid != last.sender_id
            and pid in personas
            and not personas[pid].is_human
        ]
        if not candidates:
            return TurnOutcome("no_candidates", session.id)

        persona, selected_by = await self._select_responder(
            session, config, last, candidates, personas,
            consult_moderator=is_auto or is_manual_trigger,
        )
        slot.persona_id = persona.id
        logger.info(
            "Session %s: %s speaks next (selected by %s)", session.id, persona.id, selected_by
        )

        if is_auto or is_manual_trigger:
            delay = self._rng.uniform(*self.paced_delay)
        else:
            delay = self.reaction_delay
        await self._sleep(delay)

        # The human may have typed during the delay; build on the latest history.
        epoch = session.history_epoch
        fresh = self.store.get_session(session.id)
        if fresh is None or fresh.history_epoch != epoch:
            logger.info("Session %s was cleared before generation, turn dropped", session.id)
            return TurnOutcome("discarded", session.id, persona_id=persona.id, selected_by=selected_by)

        content = await self.generator.generate(
            config, persona, personas, fresh.messages,
            participant_ids=fresh.participant_ids,
        )

        current = self.store.get_session(session.id)
        if current is None or current.history_epoch != epoch:
            logger.info("Session %s was cleared during generation, reply discarded", session.id)
            return TurnOutcome("discarded", session.id, persona_id=persona.id, selected_by=selected_by)

        message = Message(sender_id=persona.id, content=content)
        self.store.append_message(session.id, message)
        return TurnOutcome(
            "generated", session.id,
            persona_id=persona.id, selected_by=selected_by, message=message,
        )

    async def _select_responder(
        self,
        session: ChatSession,
        config: AIConfig,
        last: Message,
        candidates: list[Persona],
        personas: dict[str, Persona],
        consult_moderator: bool,
    ) -> tuple[Persona, SelectedBy]:
        mentioned = [] if last.is_system else find_mentioned(last.content, candidates)
        if len(mentioned) == 1:
            return mentioned[0], "mention"

        if len(candidates) == 1:
            return candidates[0], "single"

        if consult_moderator:
            recent = conversational(session.messages)[-MODERATOR_HISTORY_LIMIT:]
            chosen = await self.moderator.select_next_speaker(config, recent, candidates, personas)
            for persona in candidates:
                if persona.id == chosen:
                    return persona, "moderator"

        return self._rng.choice(candidates), "random"

    def _snapshot_personas(self, session: ChatSession) -> dict[str, Persona]:
        """Read-only persona snapshot for everyone on the roster or in the history."""
        ids = dict.fromkeys([*session.participant_ids, *(m.sender_id for m in session.messages)])
        snapshot: dict[str, Persona] = {}
        for pid in ids:
            persona = self.store.get_persona(pid)
            if persona is not None:
                snapshot[pid] = persona
        return snapshot

"""Auto-continuation poller.

Every `interval` seconds, picks at most one auto-flagged session that has
messages and asks the scheduler to advance it. The poller does no locking
of its own: while a generation is in flight the scheduler's guard turns the
call into a no-op, and the next tick simply tries again.

Sessions are served round-robin, starting after the one served last, so one
busy auto session cannot starve another.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from persona_chat.models import ChatSession

from .scheduler import TurnOutcome, TurnScheduler

logger = logging.getLogger(__name__)


class AutoFlagStore(Protocol):
    def auto_session_ids(self) -> list[str]: ...

    def get_session(self, session_id: str) -> ChatSession | None: ...


class AutoContinuationPoller:
    def __init__(self, store: AutoFlagStore, scheduler: TurnScheduler, interval: float = 1.0) -> None:
        self.store = store
        self.scheduler = scheduler
        self.interval = interval
        self._task: asyncio.Task | None = None
        self._pending: set[asyncio.Task] = set()
        self._last_served: str | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def pick_session(self) -> str | None:
        ids = self.store.auto_session_ids()
        if self._last_served in ids:
            start = ids.index(self._last_served) + 1
            ids = ids[start:] + ids[:start]
        for session_id in ids:
            session = self.store.get_session(session_id)
            if session is not None and session.messages:
                return session_id
        return None

    def tick(self) -> asyncio.Task[TurnOutcome] | None:
        """Spawn one scheduler call for the next eligible auto session."""
        session_id = self.pick_session()
        if session_id is None:
            return None
        self._last_served = session_id
        task = asyncio.create_task(
            self.scheduler.try_advance(session_id, is_manual_trigger=False)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _run(self) -> None:
        while True:
            try:
                self.tick()
            except Exception:
                logger.exception("Auto-continuation tick failed")
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self.running:
            return
        logger.info("Auto-continuation poller started (interval=%.1fs)", self.interval)
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        tasks = [t for t in (self._task, *self._pending) if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._task = None
        logger.info("Auto-continuation poller stopped")

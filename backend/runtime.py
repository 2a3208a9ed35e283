"""Process-wide chat runtime: one storage, one client, one guard, one scheduler.

The app keeps a single ChatRuntime on `app.state.runtime`; routes reach it
through the `get_runtime` dependency.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from pathlib import Path

from fastapi import Request

from persona_chat.llm import CompletionClient, HttpCompletionClient
from persona_chat.pipeline import (
    AutoContinuationPoller,
    GenerationGuard,
    ModeratorSelector,
    ReplyGenerator,
    TurnScheduler,
)
from persona_chat.storage import Storage


@dataclass
class ChatRuntime:
    storage: Storage
    client: CompletionClient
    guard: GenerationGuard
    scheduler: TurnScheduler
    poller: AutoContinuationPoller


def build_runtime(
    data_dir: Path,
    client: CompletionClient | None = None,
    poll_interval: float = 1.0,
    reaction_delay: float = 0.8,
    paced_delay: tuple[float, float] = (1.5, 2.5),
    rng: random.Random | None = None,
) -> ChatRuntime:
    storage = Storage(data_dir)
    client = client or HttpCompletionClient()
    guard = GenerationGuard()
    scheduler = TurnScheduler(
        storage,
        ModeratorSelector(client),
        ReplyGenerator(client),
        guard=guard,
        rng=rng,
        reaction_delay=reaction_delay,
        paced_delay=paced_delay,
    )
    poller = AutoContinuationPoller(storage, scheduler, interval=poll_interval)
    return ChatRuntime(storage, client, guard, scheduler, poller)


def get_runtime(request: Request) -> ChatRuntime:
    return request.app.state.runtime

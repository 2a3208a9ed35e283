"""Core domain models.

Storage, the HTTP API and every pipeline stage operate on these types.
Pydantic is used for validation and serialisation at every data boundary.
"""

from __future__ import annotations

import time
import uuid
from typing import Literal

from pydantic import BaseModel, Field

HUMAN_ID = "user-me"
SYSTEM_SENDER_ID = "system"


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class Persona(BaseModel):
    """A conversational identity: the human user or an AI character."""

    id: str
    name: str
    avatar: str = ""
    description: str = ""  # role blurb shown in rosters
    system_instruction: str = ""  # behavioural prompt sent to the model
    is_human: bool = False
    model: str | None = None  # per-persona model override

    @property
    def first_name(self) -> str:
        return self.name.split(" ")[0] if self.name else ""


class Message(BaseModel):
    """A single entry in a session's append-only message stream."""

    id: str = Field(default_factory=lambda: new_id("msg"))
    sender_id: str  # persona id or "system"
    content: str
    timestamp: int = Field(default_factory=now_ms)
    is_system: bool = False  # meta messages never count as turns


class AIConfig(BaseModel):
    """Connection settings for an OpenAI-compatible endpoint."""

    api_key: str = ""
    base_url: str = ""
    model: str = ""
    moderator_model: str | None = None


class Settings(AIConfig):
    """Global settings: the default AIConfig plus the cached model list."""

    available_models: list[str] = Field(default_factory=list)

    def ai_config(self) -> AIConfig:
        return AIConfig(
            api_key=self.api_key,
            base_url=self.base_url,
            model=self.model,
            moderator_model=self.moderator_model,
        )


class ChatSession(BaseModel):
    """One conversation: roster, ordered history and optional config override."""

    id: str = Field(default_factory=lambda: new_id("chat"))
    name: str
    participant_ids: list[str] = Field(default_factory=list)
    messages: list[Message] = Field(default_factory=list)
    is_group: bool = True
    last_message_at: int = Field(default_factory=now_ms)
    config: AIConfig | None = None
    history_epoch: int = 0  # bumped whenever the history is cleared

    @property
    def last_message(self) -> Message | None:
        return self.messages[-1] if self.messages else None


# ---------------------------------------------------------------------------
# Wire request for /chat/completions
# ---------------------------------------------------------------------------

ChatRole = Literal["system", "user", "assistant"]


class ChatTurn(BaseModel):
    role: ChatRole
    content: str


class ChatRequest(BaseModel):
    model: str
    messages: list[ChatTurn]
    temperature: float = 0.9
    max_tokens: int = 500
    stream: bool = False

import random
from dataclasses import dataclass, field

import pytest

from persona_chat.llm import ModelListing
from persona_chat.models import HUMAN_ID, AIConfig, ChatRequest, ChatSession, Message, Persona
from persona_chat.pipeline import GenerationGuard, ModeratorSelector, ReplyGenerator, TurnScheduler
from persona_chat.storage import Storage

TEST_PERSONAS = [
    Persona(id=HUMAN_ID, name="Me", description="You", is_human=True),
    Persona(id="ai-a", name="Alice Smith", description="Historian",
            system_instruction="You are a careful historian."),
    Persona(id="ai-b", name="Bob Jones", description="Engineer",
            system_instruction="You are a blunt engineer."),
    Persona(id="ai-c", name="Carol", description="Poet",
            system_instruction="You answer in verse.", model="poet-model"),
]


@dataclass
class ScriptedClient:
    """Stub completion client: pops scripted replies (or errors) in call order.

    Every request is recorded in `calls`; moderator requests are the
    low-temperature ones.
    """

    responses: list = field(default_factory=list)
    calls: list[ChatRequest] = field(default_factory=list)
    listing: ModelListing | Exception = field(default_factory=ModelListing)

    async def complete(self, config: AIConfig, request: ChatRequest) -> str:
        self.calls.append(request)
        if not self.responses:
            return ""
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def list_models(self, base_url: str, api_key: str) -> ModelListing:
        if isinstance(self.listing, Exception):
            raise self.listing
        return self.listing

    @property
    def moderator_calls(self) -> list[ChatRequest]:
        return [c for c in self.calls if c.temperature < 0.5]

    @property
    def reply_calls(self) -> list[ChatRequest]:
        return [c for c in self.calls if c.temperature >= 0.5]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep a developer's .env / shell settings out of the tests."""
    for var in ("PERSONA_CHAT_API_KEY", "PERSONA_CHAT_BASE_URL", "PERSONA_CHAT_MODEL"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def client() -> ScriptedClient:
    return ScriptedClient()


@pytest.fixture
def storage(tmp_path) -> Storage:
    """Storage seeded with the human, three AI personas and a global API key."""
    store = Storage(tmp_path / "data")
    for persona in TEST_PERSONAS:
        store.save_persona(persona)
    store.update_settings({
        "api_key": "sk-test",
        "base_url": "http://llm.local/v1",
        "model": "base-model",
    })
    return store


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def guard() -> GenerationGuard:
    return GenerationGuard()


@pytest.fixture
def scheduler(storage, client, guard, rng) -> TurnScheduler:
    """Scheduler over the seeded storage with all pacing delays removed."""
    return TurnScheduler(
        storage,
        ModeratorSelector(client),
        ReplyGenerator(client),
        guard=guard,
        rng=rng,
        reaction_delay=0,
        paced_delay=(0, 0),
    )


@pytest.fixture
def make_session(storage):
    """Factory: save a session whose history is the given (sender_id, content) lines."""

    def _make(
        participants: list[str],
        lines: list[tuple[str, str]],
        session_id: str = "chat-test",
    ) -> ChatSession:
        session = ChatSession(
            id=session_id,
            name="Test chat",
            participant_ids=participants,
            messages=[
                Message(id=f"m{i}", sender_id=sender, content=content, timestamp=1000 + i)
                for i, (sender, content) in enumerate(lines)
            ],
            last_message_at=1000 + len(lines),
        )
        storage.save_session(session)
        return session

    return _make

"""Tests for the moderator: answer parsing and speaker selection."""

import pytest

from persona_chat.llm import ApiError
from persona_chat.models import AIConfig, Message, Persona
from persona_chat.pipeline import ModeratorSelector, parse_next_speaker

CONFIG = AIConfig(api_key="sk-test", base_url="http://llm.local/v1", model="base-model")
ALICE = Persona(id="ai-a", name="Alice Smith", description="Historian")
BOB = Persona(id="ai-b", name="Bob Jones", description="Engineer")
HISTORY = [Message(sender_id="user-me", content="Who knows rockets?")]


# ---------------------------------------------------------------------------
# parse_next_speaker
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("text, expected", [
    ('{"nextSpeakerId": "ai-b"}', "ai-b"),
    ('```json\n{"nextSpeakerId": "ai-b"}\n```', "ai-b"),
    ('Sure! {"nextSpeakerId": "ai-b"} is my pick', "ai-b"),
    ("{nextSpeakerId: 'ai-b'}", "ai-b"),
    ('{"nextSpeakerId": ""}', None),
    ('{"speaker": "ai-b"}', None),
    ('["ai-b"]', None),
    ("no idea", None),
    ("", None),
])
def test_parse_next_speaker(text: str, expected) -> None:
    assert parse_next_speaker(text) == expected


# ---------------------------------------------------------------------------
# select_next_speaker
# ---------------------------------------------------------------------------

class TestSelectNextSpeaker:
    async def test_no_candidates(self, client) -> None:
        assert await ModeratorSelector(client).select_next_speaker(CONFIG, HISTORY, []) is None
        assert client.calls == []

    async def test_single_candidate_skips_the_model(self, client) -> None:
        result = await ModeratorSelector(client).select_next_speaker(CONFIG, HISTORY, [ALICE])
        assert result == "ai-a"
        assert client.calls == []

    async def test_valid_answer(self, client) -> None:
        client.responses = ['{"nextSpeakerId": "ai-b"}']
        result = await ModeratorSelector(client).select_next_speaker(CONFIG, HISTORY, [ALICE, BOB])
        assert result == "ai-b"
        assert client.calls[0].model == "base-model"
        assert client.calls[0].temperature == 0.1

    async def test_moderator_model_preferred(self, client) -> None:
        client.responses = ['{"nextSpeakerId": "ai-a"}']
        config = CONFIG.model_copy(update={"moderator_model": "cheap-model"})
        await ModeratorSelector(client).select_next_speaker(config, HISTORY, [ALICE, BOB])
        assert client.calls[0].model == "cheap-model"

    async def test_non_candidate_answer_is_ignored(self, client) -> None:
        client.responses = ['{"nextSpeakerId": "user-me"}']
        assert await ModeratorSelector(client).select_next_speaker(CONFIG, HISTORY, [ALICE, BOB]) is None

    async def test_garbage_answer(self, client) -> None:
        client.responses = ["I think Bob should talk."]
        assert await ModeratorSelector(client).select_next_speaker(CONFIG, HISTORY, [ALICE, BOB]) is None

    async def test_api_error_is_swallowed(self, client) -> None:
        client.responses = [ApiError("boom", status_code=500)]
        assert await ModeratorSelector(client).select_next_speaker(CONFIG, HISTORY, [ALICE, BOB]) is None

    async def test_missing_key(self, client) -> None:
        config = CONFIG.model_copy(update={"api_key": ""})
        assert await ModeratorSelector(client).select_next_speaker(config, HISTORY, [ALICE, BOB]) is None
        assert client.calls == []

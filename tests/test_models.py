"""Tests for persona_chat.models and persona_chat.config."""

from persona_chat.config import DEFAULT_BASE_URL, FALLBACK_MODEL, default_settings, resolve_config
from persona_chat.models import AIConfig, ChatSession, Message, Persona, Settings, new_id


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class TestModels:
    def test_first_name(self) -> None:
        assert Persona(id="p", name="Elon Musk").first_name == "Elon"
        assert Persona(id="p", name="Carol").first_name == "Carol"
        assert Persona(id="p", name="").first_name == ""

    def test_new_id_prefix_and_uniqueness(self) -> None:
        a, b = new_id("ai"), new_id("ai")
        assert a.startswith("ai-")
        assert a != b

    def test_message_defaults(self) -> None:
        msg = Message(sender_id="ai-a", content="hi")
        assert msg.id.startswith("msg-")
        assert msg.timestamp > 0
        assert msg.is_system is False

    def test_session_last_message(self) -> None:
        session = ChatSession(name="x")
        assert session.last_message is None
        session.messages.append(Message(sender_id="a", content="one"))
        session.messages.append(Message(sender_id="b", content="two"))
        assert session.last_message.content == "two"

    def test_session_round_trips_through_json(self) -> None:
        session = ChatSession(
            name="x",
            participant_ids=["user-me", "ai-a"],
            config=AIConfig(model="m", moderator_model="mod"),
            messages=[Message(sender_id="ai-a", content="hello")],
        )
        restored = ChatSession.model_validate_json(session.model_dump_json())
        assert restored == session

    def test_settings_ai_config_drops_model_list(self) -> None:
        settings = Settings(api_key="k", base_url="u", model="m", available_models=["a"])
        config = settings.ai_config()
        assert isinstance(config, AIConfig)
        assert not isinstance(config, Settings)
        assert config.model == "m"


# ---------------------------------------------------------------------------
# Config resolution
# ---------------------------------------------------------------------------

class TestDefaultSettings:
    def test_built_in_defaults(self) -> None:
        settings = default_settings()
        assert settings.api_key == ""
        assert settings.base_url == DEFAULT_BASE_URL
        assert settings.model == FALLBACK_MODEL

    def test_reads_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("PERSONA_CHAT_API_KEY", "sk-env")
        monkeypatch.setenv("PERSONA_CHAT_BASE_URL", "http://local/v1")
        monkeypatch.setenv("PERSONA_CHAT_MODEL", "llama")
        settings = default_settings()
        assert (settings.api_key, settings.base_url, settings.model) == (
            "sk-env", "http://local/v1", "llama",
        )


class TestResolveConfig:
    GLOBAL = AIConfig(api_key="g-key", base_url="http://g/v1", model="g-model")

    def test_no_override_uses_global(self) -> None:
        resolved = resolve_config(self.GLOBAL, None)
        assert resolved.api_key == "g-key"
        assert resolved.model == "g-model"
        assert resolved.moderator_model is None

    def test_override_wins_field_by_field(self) -> None:
        override = AIConfig(model="s-model")
        resolved = resolve_config(self.GLOBAL, override)
        assert resolved.model == "s-model"
        assert resolved.api_key == "g-key"
        assert resolved.base_url == "http://g/v1"

    def test_global_moderator_model_is_inherited(self) -> None:
        global_with_mod = self.GLOBAL.model_copy(update={"moderator_model": "judge-model"})
        assert resolve_config(global_with_mod, None).moderator_model == "judge-model"
        assert resolve_config(global_with_mod, AIConfig(model="s-model")).moderator_model == "judge-model"

    def test_session_moderator_model_wins(self) -> None:
        global_with_mod = self.GLOBAL.model_copy(update={"moderator_model": "judge-model"})
        override = AIConfig(moderator_model="mod")
        assert resolve_config(global_with_mod, override).moderator_model == "mod"

    def test_empty_moderator_model_is_none(self) -> None:
        assert resolve_config(self.GLOBAL, AIConfig(moderator_model="")).moderator_model is None

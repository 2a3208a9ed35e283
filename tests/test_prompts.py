"""Tests for persona_chat.prompts — Handlebars rendering and request assembly."""

from persona_chat.models import HUMAN_ID, Message, Persona
from persona_chat.prompts import (
    build_moderator_request,
    build_reply_request,
    render_prompt,
    roster_names,
)

HUMAN = Persona(id=HUMAN_ID, name="Me", is_human=True)
ALICE = Persona(id="ai-a", name="Alice Smith", description="Historian",
                system_instruction="You are a careful historian.")
BOB = Persona(id="ai-b", name="Bob Jones", description="Engineer",
              system_instruction="You are a blunt engineer.")
PERSONAS = {p.id: p for p in (HUMAN, ALICE, BOB)}


def _msg(sender: str, content: str, is_system: bool = False) -> Message:
    return Message(sender_id=sender, content=content, is_system=is_system)


# ---------------------------------------------------------------------------
# render_prompt
# ---------------------------------------------------------------------------

class TestRenderPrompt:
    def test_triple_stash_is_not_escaped(self) -> None:
        assert render_prompt("{{{x}}}", {"x": "<b>&"}) == "<b>&"

    def test_each_block(self) -> None:
        out = render_prompt("{{#each items}}[{{{this}}}]{{/each}}", {"items": ["a", "b"]})
        assert out == "[a][b]"


# ---------------------------------------------------------------------------
# Reply request
# ---------------------------------------------------------------------------

class TestReplyRequest:
    def test_system_prompt_describes_persona_and_roster(self) -> None:
        req = build_reply_request(ALICE, PERSONAS, [], "m")
        system = req.messages[0]
        assert system.role == "system"
        assert "You are Alice Smith." in system.content
        assert "Role: Historian" in system.content
        assert "You are a careful historian." in system.content
        assert "Participants: Alice Smith, Bob Jones" in system.content
        assert '"Me"' in system.content

    def test_roles_and_sender_prefixes(self) -> None:
        history = [
            _msg(HUMAN_ID, "Hi all"),
            _msg("ai-a", "Hello"),
            _msg("ai-b", "Yo"),
            _msg("ghost", "boo"),
        ]
        req = build_reply_request(ALICE, PERSONAS, history, "m")
        turns = [(t.role, t.content) for t in req.messages[1:]]
        assert turns == [
            ("user", "Me: Hi all"),
            ("assistant", "Hello"),
            ("user", "Bob Jones: Yo"),
            ("user", "Unknown: boo"),
        ]

    def test_system_messages_are_skipped(self) -> None:
        history = [_msg("system", "Group created", is_system=True), _msg(HUMAN_ID, "Hi")]
        req = build_reply_request(ALICE, PERSONAS, history, "m")
        assert [t.content for t in req.messages[1:]] == ["Me: Hi"]

    def test_history_is_limited_to_the_most_recent(self) -> None:
        history = [_msg(HUMAN_ID, f"line {i}") for i in range(30)]
        req = build_reply_request(ALICE, PERSONAS, history, "m")
        assert len(req.messages) == 21
        assert req.messages[1].content == "Me: line 10"
        assert req.messages[-1].content == "Me: line 29"

    def test_sampling_parameters(self) -> None:
        req = build_reply_request(ALICE, PERSONAS, [], "persona-model")
        assert req.model == "persona-model"
        assert req.temperature == 0.9
        assert req.max_tokens == 500
        assert req.stream is False

    def test_roster_respects_participants(self) -> None:
        assert roster_names(PERSONAS, [HUMAN_ID, "ai-b", "missing"]) == ["Bob Jones"]
        assert roster_names(PERSONAS) == ["Alice Smith", "Bob Jones"]


# ---------------------------------------------------------------------------
# Moderator request
# ---------------------------------------------------------------------------

class TestModeratorRequest:
    def test_lists_recent_lines_and_candidates(self) -> None:
        history = [_msg(HUMAN_ID, f"line {i}") for i in range(5)]
        req = build_moderator_request(history, [ALICE, BOB], PERSONAS, "mod")
        assert len(req.messages) == 1
        prompt = req.messages[0].content
        assert "line 1" not in prompt
        assert "Me: line 2" in prompt
        assert "Me: line 4" in prompt
        assert '- ID: "ai-a", Name: "Alice Smith", Role: "Historian"' in prompt
        assert '- ID: "ai-b", Name: "Bob Jones", Role: "Engineer"' in prompt
        assert "nextSpeakerId" in prompt

    def test_sampling_parameters(self) -> None:
        req = build_moderator_request([], [ALICE, BOB], PERSONAS, "mod")
        assert req.model == "mod"
        assert req.temperature == 0.1
        assert req.max_tokens == 100

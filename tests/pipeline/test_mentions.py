"""Tests for mention detection."""

import pytest

from persona_chat.models import Persona
from persona_chat.pipeline import find_mentioned, is_mentioned

ELON = Persona(id="ai-musk", name="Elon Musk")
LI_BAI = Persona(id="ai-libai", name="Li Bai")


@pytest.mark.parametrize("content, expected", [
    ("What do you think, Elon Musk?", True),
    ("what do you think, elon musk?", True),
    ("@Elon thoughts?", True),
    ("hey @elon", True),
    ("Elon thoughts?", False),
    ("Musk is a strange word", False),
    ("", False),
])
def test_is_mentioned(content: str, expected: bool) -> None:
    assert is_mentioned(content, ELON) is expected


def test_blank_name_never_matches() -> None:
    assert is_mentioned("anything", Persona(id="x", name="  ")) is False


def test_find_mentioned_keeps_roster_order() -> None:
    found = find_mentioned("@Elon and Li Bai, settle this", [LI_BAI, ELON])
    assert [p.id for p in found] == ["ai-libai", "ai-musk"]


def test_find_mentioned_none() -> None:
    assert find_mentioned("nobody here", [LI_BAI, ELON]) == []

"""Post-processing of raw model replies.

Models often leak scaffolding into persona lines: reasoning blocks, a
"Name:" speaker prefix, or quotes around the whole message. `clean_reply`
removes these and is idempotent: passes are repeated until the text stops
changing, so cleaning an already-clean reply returns it unchanged.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

PLACEHOLDER = "..."

# Generic self-references, including the localized human label.
SELF_LABELS: tuple[str, ...] = ("Me", "I", "我", "System", "Role", "Assistant")

_THINK_RE = re.compile(r"<think>.*?</think>", re.IGNORECASE | re.DOTALL)

_QUOTE_PAIRS = {
    '"': '"',
    "'": "'",
    "“": "”",
    "‘": "’",
    "「": "」",
}


def _prefix_pattern(labels: Iterable[str]) -> re.Pattern[str]:
    names = sorted({label for label in labels if label}, key=len, reverse=True)
    alternation = "|".join(re.escape(name) for name in names)
    return re.compile(rf"^(?:{alternation})\s*[:：]\s*", re.IGNORECASE)


def _strip_wrapping_quotes(text: str) -> str:
    if len(text) >= 2 and _QUOTE_PAIRS.get(text[0]) == text[-1]:
        return text[1:-1]
    return text


def clean_reply(text: str, persona_name: str = "", extra_labels: Iterable[str] = ()) -> str:
    """Strip think blocks, speaker prefixes and wrapping quotes.

    An empty result is replaced with PLACEHOLDER so a turn is never silently
    dropped.
    """
    pattern = _prefix_pattern([persona_name, *extra_labels, *SELF_LABELS])

    previous = None
    cleaned = text or ""
    while cleaned != previous:
        previous = cleaned
        cleaned = _THINK_RE.sub("", cleaned).strip()
        cleaned = pattern.sub("", cleaned).strip()
        cleaned = _strip_wrapping_quotes(cleaned).strip()

    return cleaned or PLACEHOLDER

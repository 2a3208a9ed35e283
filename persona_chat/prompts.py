"""Handlebars prompt rendering and chat request assembly.

Two requests are built here, both pure functions of their inputs:

  reply      — system instruction for one persona + the recent history as
               role-tagged turns (the persona's own lines are assistant turns,
               everyone else's are user turns prefixed with the sender name).
  moderator  — a compact "who speaks next" question over the last few lines
               and the candidate roster, answered as {"nextSpeakerId": "..."}.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

import pybars

from persona_chat.models import ChatRequest, ChatTurn, Message, Persona

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}

REPLY_HISTORY_LIMIT = 20
MODERATOR_HISTORY_LIMIT = 3
UNKNOWN_SENDER = "Unknown"


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


REPLY_SYSTEM_TEMPLATE = """\
You are {{{persona.name}}}.
Role: {{{persona.description}}}
Description: {{{persona.instruction}}}

CONTEXT:
- You are chatting in a group chat.
- Participants: {{{participants}}}
- The human user appears as "{{{human_label}}}".

INSTRUCTIONS:
- Speak strictly as {{{persona.name}}}.
- Keep messages SHORT, casual, and colloquial.
- Do NOT use formal letter formats.
- NEVER start the message with your name (e.g. "{{{persona.name}}}: ...").
- NEVER write lines for other participants or pretend to be them.
- NEVER output "{{{human_label}}}:" or "System:".
- Reply directly to the context.
"""

MODERATOR_TEMPLATE = """\
Task: Decide who speaks next in this group chat.
Context:
{{#each recent}}{{{sender}}}: {{{content}}}
{{/each}}
Candidates:
{{#each candidates}}- ID: "{{{id}}}", Name: "{{{name}}}", Role: "{{{role}}}"
{{/each}}
Rules:
1. If someone was asked a question, pick them.
2. Otherwise, pick the most relevant character to the topic.
3. Output JSON ONLY: { "nextSpeakerId": "ID" }
"""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


def sender_name(personas: Mapping[str, Persona], sender_id: str) -> str:
    persona = personas.get(sender_id)
    return persona.name if persona else UNKNOWN_SENDER


def conversational(history: Iterable[Message]) -> list[Message]:
    """Drop system/meta messages; they never count as turns."""
    return [m for m in history if not m.is_system]


def roster_names(personas: Mapping[str, Persona], participant_ids: Iterable[str] | None = None) -> list[str]:
    """Names of the non-human participants (all known AI personas if no roster given)."""
    if participant_ids is None:
        pool = list(personas.values())
    else:
        pool = [personas[pid] for pid in participant_ids if pid in personas]
    return [p.name for p in pool if not p.is_human]


def build_reply_system_prompt(
    persona: Persona,
    participants: list[str],
    human_label: str = "Me",
) -> str:
    return render_prompt(REPLY_SYSTEM_TEMPLATE, {
        "persona": {
            "name": persona.name,
            "description": persona.description,
            "instruction": persona.system_instruction,
        },
        "participants": ", ".join(participants),
        "human_label": human_label,
    })


def build_reply_request(
    persona: Persona,
    personas: Mapping[str, Persona],
    history: Iterable[Message],
    model: str,
    participant_ids: Iterable[str] | None = None,
    human_label: str = "Me",
    limit: int = REPLY_HISTORY_LIMIT,
) -> ChatRequest:
    """Assemble the chat request that makes `persona` speak next."""
    system_prompt = build_reply_system_prompt(
        persona, roster_names(personas, participant_ids), human_label
    )
    turns = [ChatTurn(role="system", content=system_prompt)]

    for msg in conversational(history)[-limit:]:
        if msg.sender_id == persona.id:
            turns.append(ChatTurn(role="assistant", content=msg.content))
        else:
            name = sender_name(personas, msg.sender_id)
            turns.append(ChatTurn(role="user", content=f"{name}: {msg.content}"))

    return ChatRequest(
        model=model,
        messages=turns,
        temperature=0.9,
        max_tokens=500,
        stream=False,
    )


def build_moderator_request(
    recent: Iterable[Message],
    candidates: list[Persona],
    personas: Mapping[str, Persona],
    model: str,
) -> ChatRequest:
    """Assemble the low-temperature "who speaks next" request."""
    lines = conversational(recent)[-MODERATOR_HISTORY_LIMIT:]
    prompt = render_prompt(MODERATOR_TEMPLATE, {
        "recent": [
            {"sender": sender_name(personas, m.sender_id), "content": m.content}
            for m in lines
        ],
        "candidates": [
            {"id": p.id, "name": p.name, "role": p.description}
            for p in candidates
        ],
    })
    return ChatRequest(
        model=model,
        messages=[ChatTurn(role="user", content=prompt)],
        temperature=0.1,
        max_tokens=100,
        stream=False,
    )

"""Create demo personas and a demo group chat for development/testing."""

from persona_chat.models import HUMAN_ID, ChatSession, Message, Persona, now_ms
from persona_chat.storage import Storage

DEMO_PERSONAS = [
    Persona(
        id=HUMAN_ID,
        name="Me",
        description="You",
        is_human=True,
    ),
    Persona(
        id="ai-luxun",
        name="Lu Xun",
        avatar="https://picsum.photos/seed/luxun/200/200",
        description="Writer and essayist",
        system_instruction=(
            "You are Lu Xun, the sharp-tongued essayist. You are sardonic, "
            "skeptical of empty talk and care deeply about the young generation."
        ),
    ),
    Persona(
        id="ai-libai",
        name="Li Bai",
        avatar="https://picsum.photos/seed/libai/200/200",
        description="Tang dynasty poet",
        system_instruction=(
            "You are Li Bai, the carefree poet. You love wine, the moon and "
            "grand gestures, and you often answer with a line of verse."
        ),
    ),
    Persona(
        id="ai-musk",
        name="Elon Musk",
        avatar="https://picsum.photos/seed/musk/200/200",
        description="Entrepreneur",
        system_instruction=(
            "You are Elon Musk. You talk about rockets, first principles and "
            "memes, and you are blunt and fast-moving."
        ),
    ),
]

DEMO_CHAT_ID = "chat-demo"


def create_demo_data(storage: Storage) -> ChatSession:
    """Wipe the persona registry and (re)create the demo chat."""
    for persona in storage.list_personas():
        storage.delete_persona(persona.id)
    for persona in DEMO_PERSONAS:
        storage.save_persona(persona)

    now = now_ms()
    session = ChatSession(
        id=DEMO_CHAT_ID,
        name="Across Time",
        participant_ids=[p.id for p in DEMO_PERSONAS],
        messages=[
            Message(
                id="m1",
                sender_id="ai-luxun",
                content="May the young shake off the chill and simply keep climbing.",
                timestamp=now - 100_000,
            ),
            Message(
                id="m2",
                sender_id="ai-libai",
                content="Seize the joy while it lasts! Why so serious, sir?",
                timestamp=now - 90_000,
            ),
        ],
        is_group=True,
        last_message_at=now,
    )
    storage.save_session(session)
    return session

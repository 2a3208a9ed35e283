"""Chat session endpoints: CRUD, messages, manual trigger, auto mode, export."""

from urllib.parse import quote

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from fastapi.responses import PlainTextResponse

from backend.runtime import ChatRuntime, get_runtime
from persona_chat.export import export_filename, export_history_text
from persona_chat.models import AIConfig, ChatSession, Message

from .models import (
    AutoModeBody,
    CreateSession,
    InviteBody,
    SendMessageBody,
    SessionConfigBody,
)

router = APIRouter()

CONFIGURE_HINT = "API key is not configured. Set it in Settings first"


def _session_or_404(rt: ChatRuntime, session_id: str) -> ChatSession:
    session = rt.storage.get_session(session_id)
    if not session:
        raise HTTPException(404, "Session not found")
    return session


def _session_view(rt: ChatRuntime, session: ChatSession) -> dict:
    data = session.model_dump()
    data["auto"] = rt.storage.is_auto(session.id)
    data["typing_persona_id"] = rt.guard.typing_persona(session.id)
    return data


@router.get("/sessions")
async def list_sessions(rt: ChatRuntime = Depends(get_runtime)):
    """List sessions, most recent activity first."""
    return [_session_view(rt, s) for s in rt.storage.list_sessions()]


@router.post("/sessions", status_code=201)
async def create_session(body: CreateSession, rt: ChatRuntime = Depends(get_runtime)):
    """Start a group chat. Without a name, one is built from the first members."""
    personas = [rt.storage.get_persona(pid) for pid in body.participant_ids]
    members = [p for p in personas if p and not p.is_human]
    if not members:
        raise HTTPException(400, "Select at least one AI participant")
    name = body.name.strip()
    if not name:
        name = ", ".join(p.name for p in members[:3]) + ("..." if len(members) > 3 else "")
    session = rt.storage.create_session(name, [p.id for p in members])
    return _session_view(rt, session)


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, rt: ChatRuntime = Depends(get_runtime)):
    """Get one session with its messages, auto flag and typing indicator."""
    return _session_view(rt, _session_or_404(rt, session_id))


@router.put("/sessions/{session_id}/config")
async def set_session_config(
    session_id: str,
    body: SessionConfigBody | None = None,
    rt: ChatRuntime = Depends(get_runtime),
):
    """Set a per-session AI config override; an empty body reverts to global."""
    config = AIConfig(**body.model_dump()) if body else None
    session = rt.storage.set_session_config(session_id, config)
    if not session:
        raise HTTPException(404, "Session not found")
    return _session_view(rt, session)


@router.post("/sessions/{session_id}/members")
async def invite_member(session_id: str, body: InviteBody, rt: ChatRuntime = Depends(get_runtime)):
    """Invite a persona into the session."""
    _session_or_404(rt, session_id)
    session = rt.storage.invite(session_id, body.persona_id)
    if not session:
        raise HTTPException(404, "Persona not found")
    return _session_view(rt, session)


@router.post("/sessions/{session_id}/messages", status_code=201)
async def send_message(
    session_id: str,
    body: SendMessageBody,
    background: BackgroundTasks,
    rt: ChatRuntime = Depends(get_runtime),
):
    """Append a human message and let the scheduler react to it."""
    session = _session_or_404(rt, session_id)
    if not rt.storage.effective_config(session).api_key:
        raise HTTPException(409, CONFIGURE_HINT)
    if not body.content.strip():
        raise HTTPException(400, "Message is empty")

    message = Message(sender_id=rt.storage.human_persona().id, content=body.content)
    rt.storage.append_message(session_id, message)
    background.add_task(rt.scheduler.try_advance, session_id)
    return message


@router.delete("/sessions/{session_id}/messages")
async def clear_history(session_id: str, rt: ChatRuntime = Depends(get_runtime)):
    """Clear a session's history; this also switches auto mode off."""
    session = rt.storage.clear_history(session_id)
    if not session:
        raise HTTPException(404, "Session not found")
    return _session_view(rt, session)


@router.post("/sessions/{session_id}/trigger", status_code=202)
async def trigger_turn(
    session_id: str,
    background: BackgroundTasks,
    rt: ChatRuntime = Depends(get_runtime),
):
    """Manually ask a persona to speak, even if the last line was an AI's."""
    session = _session_or_404(rt, session_id)
    if not rt.storage.effective_config(session).api_key:
        raise HTTPException(409, CONFIGURE_HINT)
    background.add_task(rt.scheduler.try_advance, session_id, True)
    return {"scheduled": True, "busy": rt.guard.busy}


@router.put("/sessions/{session_id}/auto")
async def set_auto_mode(session_id: str, body: AutoModeBody, rt: ChatRuntime = Depends(get_runtime)):
    """Turn autonomous conversation on or off for a session."""
    session = _session_or_404(rt, session_id)
    if body.enabled and not rt.storage.effective_config(session).api_key:
        raise HTTPException(409, CONFIGURE_HINT)
    rt.storage.set_auto_flag(session_id, body.enabled)
    return {"auto": rt.storage.is_auto(session_id)}


@router.get("/sessions/{session_id}/typing")
async def typing_status(session_id: str, rt: ChatRuntime = Depends(get_runtime)):
    """Which persona is typing in this session (null when none)."""
    _session_or_404(rt, session_id)
    return {"persona_id": rt.guard.typing_persona(session_id)}


@router.get("/sessions/{session_id}/export")
async def export_history(session_id: str, rt: ChatRuntime = Depends(get_runtime)):
    """Download the history as plain text."""
    session = _session_or_404(rt, session_id)
    personas = {p.id: p for p in rt.storage.list_personas()}
    filename = export_filename(session)
    return PlainTextResponse(
        export_history_text(session, personas),
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )

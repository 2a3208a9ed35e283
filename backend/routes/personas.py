"""Persona registry endpoints (including starting a direct chat)."""

from fastapi import APIRouter, Depends, HTTPException

from backend.runtime import ChatRuntime, get_runtime
from persona_chat.models import Persona, new_id

from .models import CreatePersona, UpdatePersona

router = APIRouter()


@router.get("/personas")
async def list_personas(rt: ChatRuntime = Depends(get_runtime)):
    """List all personas, the human included."""
    return rt.storage.list_personas()


@router.post("/personas", status_code=201)
async def create_persona(body: CreatePersona, rt: ChatRuntime = Depends(get_runtime)):
    """Create a new AI persona."""
    if not body.name.strip() or not body.system_instruction.strip():
        raise HTTPException(400, "Name and instruction are required")
    persona = Persona(
        id=new_id("ai"),
        name=body.name.strip(),
        avatar=body.avatar or f"https://picsum.photos/seed/{body.name.strip()}/200/200",
        description=body.description or "AI Character",
        system_instruction=body.system_instruction,
        model=body.model or None,
    )
    rt.storage.save_persona(persona)
    return persona


@router.patch("/personas/{persona_id}")
async def update_persona(persona_id: str, body: UpdatePersona, rt: ChatRuntime = Depends(get_runtime)):
    """Edit a persona's name, role, instruction, avatar or model."""
    persona = rt.storage.get_persona(persona_id)
    if not persona:
        raise HTTPException(404, "Persona not found")
    fields = body.model_dump(exclude_unset=True)
    if "model" in fields:
        fields["model"] = fields["model"] or None
    updated = persona.model_copy(update=fields)
    rt.storage.save_persona(updated)
    return updated


@router.delete("/personas/{persona_id}")
async def delete_persona(persona_id: str, rt: ChatRuntime = Depends(get_runtime)):
    """Delete an AI persona. The human persona cannot be deleted."""
    persona = rt.storage.get_persona(persona_id)
    if not persona:
        raise HTTPException(404, "Persona not found")
    if persona.is_human:
        raise HTTPException(400, "The human persona cannot be deleted")
    rt.storage.delete_persona(persona_id)
    return {"ok": True}


@router.post("/personas/{persona_id}/direct-chat")
async def start_direct_chat(persona_id: str, rt: ChatRuntime = Depends(get_runtime)):
    """Open (or create) the 1:1 chat with a persona."""
    session = rt.storage.start_direct_chat(persona_id)
    if not session:
        raise HTTPException(404, "Persona not found")
    return session

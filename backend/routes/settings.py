"""Health check, settings, model discovery and data reset endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from backend.runtime import ChatRuntime, get_runtime
from persona_chat.llm import ApiError, UnauthorizedError

from .models import FetchModelsBody

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings(rt: ChatRuntime = Depends(get_runtime)):
    """Get global connection settings."""
    return rt.storage.get_settings()


@router.patch("/settings")
async def update_settings(body: dict, rt: ChatRuntime = Depends(get_runtime)):
    """Update global connection settings (partial merge)."""
    return rt.storage.update_settings(body)


@router.post("/models")
async def fetch_models(body: FetchModelsBody, rt: ChatRuntime = Depends(get_runtime)):
    """Discover available models at a base URL (defaults to the global settings).

    When the global settings are used, the discovered list is cached in them.
    """
    settings = rt.storage.get_settings()
    use_global = body.base_url is None and body.api_key is None
    base_url = body.base_url or settings.base_url
    api_key = body.api_key if body.api_key is not None else settings.api_key
    if not base_url or not api_key:
        raise HTTPException(400, "Base URL and API key are required")

    try:
        listing = await rt.client.list_models(base_url, api_key)
    except UnauthorizedError as e:
        raise HTTPException(401, str(e))
    except ApiError as e:
        logger.warning("Model discovery failed for %s: %s", base_url, e)
        raise HTTPException(502, str(e))

    if use_global:
        rt.storage.update_settings({"available_models": listing.models})
    return {"models": listing.models, "active_base_url": listing.active_base_url}


@router.post("/reset")
async def reset_data(rt: ChatRuntime = Depends(get_runtime)):
    """Wipe all personas, sessions and settings back to a fresh install.

    A reply still being generated is discarded because its session is gone.
    """
    rt.storage.reset()
    return {"ok": True}

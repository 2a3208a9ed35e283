"""FastAPI API endpoints under /api.

Endpoint groups: settings (health, global connection settings, model
discovery), personas (registry CRUD + direct chat), sessions (CRUD, messages,
manual trigger, auto mode, typing indicator, export). Each session's
child resources are nested under /api/sessions/{session_id}/.
"""

from fastapi import APIRouter

from .personas import router as personas_router
from .sessions import router as sessions_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(personas_router)
router.include_router(sessions_router)

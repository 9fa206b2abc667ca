"""FastAPI API endpoints under /api.

Endpoint groups: staged content (items, perks, enemies + effects), assets,
expedition and quest graphs, world catalogues (talents, concept,
settlements, NPCs), management (banned words, servers) and the
generative-text proxy. Everything except /api/health requires a bearer
access token.
"""

from fastapi import APIRouter, Depends

from rpg_admin.auth import require_user

from .assets import router as assets_router
from .content import router as content_router
from .expeditions import router as expeditions_router
from .generate import router as generate_router
from .management import router as management_router
from .world import router as world_router

protected = APIRouter(dependencies=[Depends(require_user)])
protected.include_router(content_router)
protected.include_router(assets_router)
protected.include_router(expeditions_router)
protected.include_router(world_router)
protected.include_router(management_router)
protected.include_router(generate_router)

router = APIRouter()


@router.get("/health")
async def health():
    return {"status": "ok"}


router.include_router(protected)

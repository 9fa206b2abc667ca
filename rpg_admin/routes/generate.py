"""Generative-text proxy used by the quest designer."""

import logging

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from rpg_admin.llm import proxy_generate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/generateQuestAi")
async def generate_quest_ai(body: dict, request: Request):
    """Forward to the upstream and return its status and body verbatim."""
    settings = request.app.state.settings
    if not settings.openai_api_key:
        logger.error("generateQuestAi called without OPENAI_API_KEY")
        return JSONResponse(
            {"success": False, "message": "Generation backend is not configured"}, status_code=500
        )

    status, content, media_type = await proxy_generate(
        body, api_key=settings.openai_api_key, url=settings.openai_url
    )
    if status >= 400:
        logger.warning(f"Generation backend answered {status}")
    return Response(content=content, status_code=status, media_type=media_type)

"""Game-server management: banned words and server instances.

Writes here also NOTIFY the game servers listening on the management
channels.
"""

from fastapi import APIRouter

from rpg_admin import storage

from .models import BannedWordBody, BannedWordIdBody, CreateServerBody

router = APIRouter()


# ── Banned words ─────────────────────────────────────────


@router.get("/getBannedWords")
async def get_banned_words():
    return {"success": True, "words": await storage.get_banned_words()}


@router.post("/addBannedWord")
async def add_banned_word(body: BannedWordBody):
    word = await storage.add_banned_word(body.word, body.severity)
    return {"success": True, "word": word}


@router.post("/deleteBannedWord")
async def delete_banned_word(body: BannedWordIdBody):
    word = await storage.delete_banned_word(body.id)
    return {"success": True, "word": word}


# ── Servers ──────────────────────────────────────────────


@router.get("/getServers")
async def get_servers():
    """Server instances with population counts and settlement plan."""
    return {"success": True, "servers": await storage.get_servers()}


@router.post("/createServer")
async def create_server(body: CreateServerBody):
    server = await storage.create_server(body.name, body.starts_at)
    return {"success": True, "server": server}

"""Game server instances (management.servers) and their world plans."""

import logging
from datetime import datetime, timedelta

import asyncpg

from .core import ValidationFailed, connection, notify, transaction

logger = logging.getLogger(__name__)

CHANNEL = "management_servers"
SEASON = timedelta(days=70)


async def _world_plan(conn, server_id: int) -> list[dict]:
    rows = await conn.fetch(
        "SELECT w.server_day, w.faction, w.settlement_id, wi.settlement_name, "
        "w.blacksmith, w.alchemist, w.enchanter, w.trainer, w.church, "
        "w.blessing1, w.blessing2, w.blessing3 "
        "FROM public.world w "
        "LEFT JOIN game.world_info wi ON wi.settlement_id = w.settlement_id "
        "WHERE w.server_id = $1 ORDER BY w.server_day, w.settlement_id",
        server_id,
    )
    return [dict(r) for r in rows]


def _server(row) -> dict:
    return {
        "id": row["id"],
        "name": row["name"],
        "created_at": row["created_at"].isoformat(),
        "ends_at": row["ends_at"].isoformat(),
    }


async def get_servers() -> list[dict]:
    async with connection() as conn:
        rows = await conn.fetch(
            "SELECT s.id, s.name, s.created_at, s.ends_at, "
            "COUNT(c.character_id) AS character_count, "
            "COUNT(DISTINCT c.player_id) AS player_count "
            "FROM management.servers s "
            "LEFT JOIN public.characters c ON c.server_id = s.id "
            "GROUP BY s.id ORDER BY s.id DESC"
        )
        servers = []
        for row in rows:
            server = _server(row)
            server["character_count"] = row["character_count"]
            server["player_count"] = row["player_count"]
            try:
                server["plan"] = await _world_plan(conn, row["id"])
            except asyncpg.PostgresError as e:
                logger.warning(f"Could not load world plan for server {row['id']}: {e}")
                server["plan"] = []
            servers.append(server)
    return servers


def parse_start(value: str | None) -> datetime:
    """Designer timestamps look like 2025-03-01T18:30; empty means now."""
    if not value:
        return datetime.now()
    try:
        return datetime.strptime(value, "%Y-%m-%dT%H:%M")
    except ValueError:
        raise ValidationFailed("startsAt", "Invalid startsAt")


async def create_server(name: str | None = None, starts_at: str | None = None) -> dict:
    start = parse_start(starts_at)
    async with transaction() as conn:
        row = await conn.fetchrow(
            "INSERT INTO management.servers (name, created_at, ends_at) VALUES ($1, $2, $3) "
            "RETURNING id, name, created_at, ends_at",
            name,
            start,
            start + SEASON,
        )
        await notify(conn, CHANNEL, "created")
    logger.info(f"Created server {row['id']} ending {row['ends_at']}")
    return _server(row)

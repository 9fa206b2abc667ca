"""NPC records (game.npc)."""

import logging

from .core import NotFound, ValidationFailed, connection, transaction

logger = logging.getLogger(__name__)

_SELECT = (
    "SELECT n.npc_id, n.name, n.context, n.role, n.personality, n.goals, n.settlement_id, "
    "w.settlement_name FROM game.npc n "
    "LEFT JOIN game.world_info w ON w.settlement_id = n.settlement_id"
)


def _npc(row) -> dict:
    return {
        "npc_id": row["npc_id"],
        "name": row["name"],
        "context": row["context"],
        "role": row["role"],
        "personality": list(row["personality"] or []),
        "goals": list(row["goals"] or []),
        "settlement_id": row["settlement_id"],
        "settlement_name": row["settlement_name"],
    }


def _clean(fields: dict) -> list:
    name = (fields.get("name") or "").strip()
    if not name:
        raise ValidationFailed("name", "Missing required field: name")
    # personality and goals are ordered lists of short strings; blanks dropped
    personality = [p.strip() for p in fields.get("personality") or [] if p and p.strip()]
    goals = [g.strip() for g in fields.get("goals") or [] if g and g.strip()]
    return [name, fields.get("context"), fields.get("role"), personality, goals, fields.get("settlementId")]


async def get_npcs() -> list[dict]:
    async with connection() as conn:
        rows = await conn.fetch(f"{_SELECT} ORDER BY n.npc_id DESC")
    return [_npc(r) for r in rows]


async def _fetch(conn, npc_id: int) -> dict:
    row = await conn.fetchrow(f"{_SELECT} WHERE n.npc_id = $1", npc_id)
    if row is None:
        raise NotFound(f"NPC {npc_id} not found")
    return _npc(row)


async def create_npc(fields: dict) -> dict:
    values = _clean(fields)
    async with transaction() as conn:
        npc_id = await conn.fetchval(
            "INSERT INTO game.npc (name, context, role, personality, goals, settlement_id) "
            "VALUES ($1, $2, $3, $4, $5, $6) RETURNING npc_id",
            *values,
        )
        npc = await _fetch(conn, npc_id)
    logger.info(f"Created npc {npc_id} ({npc['name']})")
    return npc


async def update_npc(npc_id: int, fields: dict) -> dict:
    if not npc_id or npc_id <= 0:
        raise ValidationFailed("npcId", "Missing npcId")
    values = _clean(fields)
    async with transaction() as conn:
        found = await conn.fetchval(
            "UPDATE game.npc SET name = $1, context = $2, role = $3, personality = $4, "
            "goals = $5, settlement_id = $6 WHERE npc_id = $7 RETURNING npc_id",
            *values,
            npc_id,
        )
        if found is None:
            raise NotFound(f"NPC {npc_id} not found")
        npc = await _fetch(conn, npc_id)
    return npc


async def delete_npc(npc_id: int) -> None:
    if not npc_id or npc_id <= 0:
        raise ValidationFailed("npcId", "Missing npcId")
    async with transaction() as conn:
        found = await conn.fetchval("DELETE FROM game.npc WHERE npc_id = $1 RETURNING npc_id", npc_id)
    if found is None:
        raise NotFound(f"NPC {npc_id} not found")
    logger.info(f"Deleted npc {npc_id}")

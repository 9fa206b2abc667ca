"""Talent tree catalogue, edited directly on game.talents_info."""

import logging

from rpg_admin import assets

from .core import NotFound, ValidationFailed, connection, transaction

logger = logging.getLogger(__name__)

_SELECT = (
    "talent_id, talent_name, asset_id, max_points, perk_slot, effect_id, factor, "
    "description, row, col, COALESCE(version, 1) AS version"
)


def _talent(row) -> dict:
    return {
        "talentId": row["talent_id"],
        "talentName": row["talent_name"],
        "assetId": row["asset_id"],
        "maxPoints": row["max_points"],
        "perkSlot": row["perk_slot"],
        "effectId": row["effect_id"],
        "factor": row["factor"],
        "description": row["description"],
        "row": row["row"],
        "col": row["col"],
        "version": row["version"],
        "icon": assets.sign("talents", row["asset_id"]),
    }


async def get_talents() -> list[dict]:
    async with connection() as conn:
        rows = await conn.fetch(f"SELECT {_SELECT} FROM game.talents_info ORDER BY talent_id")
    return [_talent(r) for r in rows]


async def update_talent(fields: dict) -> dict:
    """Overwrite one talent's editable columns and bump its version."""
    talent_id = fields.get("talentId") or 0
    if talent_id <= 0:
        raise ValidationFailed("talentId", "Missing talentId")
    name = (fields.get("talentName") or "").strip()
    if not name:
        raise ValidationFailed("talentName", "Missing required field: talentName")
    description = (fields.get("description") or "").strip() or None

    async with transaction() as conn:
        row = await conn.fetchrow(
            "UPDATE game.talents_info SET talent_name = $1, asset_id = $2, max_points = $3, "
            "perk_slot = $4, effect_id = $5, factor = $6, description = $7, "
            "version = COALESCE(version, 1) + 1 "
            f"WHERE talent_id = $8 RETURNING {_SELECT}",
            name,
            fields.get("assetId") or 0,
            fields.get("maxPoints") or 0,
            fields.get("perkSlot"),
            fields.get("effectId"),
            fields.get("factor"),
            description,
            talent_id,
        )
    if row is None:
        raise NotFound(f"Talent {talent_id} not found")
    logger.info(f"Updated talent {talent_id}")
    return _talent(row)

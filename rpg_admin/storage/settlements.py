"""Settlements (game.world_info) with vendor/enchanter inventories and locations."""

import logging

from .core import NotFound, ValidationFailed, connection, from_json, to_json, transaction

logger = logging.getLogger(__name__)

FLAG_COLUMNS = ("blacksmith", "alchemist", "enchanter", "trainer", "church")
JSON_COLUMNS = (
    "vendor_on_entered", "vendor_on_sold", "vendor_on_bought",
    "utility_on_entered", "utility_on_placed", "utility_on_action",
)
COLUMNS = (
    "settlement_name", "faction",
    *FLAG_COLUMNS,
    "blessing1", "blessing2", "blessing3",
    "settlement_asset_id", "vendor_asset_id", "blacksmith_asset_id", "alchemist_asset_id",
    "enchanter_asset_id", "trainer_asset_id", "church_asset_id",
    "description", "key_issues", "recent_events", "context",
    "expedition_asset_id", "expedition_description", "arena_asset_id",
    *JSON_COLUMNS,
)


def _row_values(fields: dict) -> list:
    values = []
    for column in COLUMNS:
        value = fields.get(column)
        if column in FLAG_COLUMNS:
            value = bool(value)
        elif column in JSON_COLUMNS:
            value = to_json(value)
        values.append(value)
    return values


async def get_settlements() -> list[dict]:
    async with connection() as conn:
        rows = await conn.fetch(
            f"SELECT settlement_id, version, {', '.join(COLUMNS)} FROM game.world_info ORDER BY settlement_id"
        )
        vendor = await conn.fetch(
            "SELECT settlement_id, item_id FROM game.vendor_inventory ORDER BY settlement_id, item_id"
        )
        enchanter = await conn.fetch(
            "SELECT settlement_id, effect_id FROM game.enchanter_inventory ORDER BY settlement_id, effect_id"
        )
        locations = await conn.fetch(
            "SELECT location_id, settlement_id, name, description, asset_id "
            "FROM game.locations ORDER BY location_id"
        )

    vendor_items: dict[int, list[int]] = {}
    for r in vendor:
        vendor_items.setdefault(r["settlement_id"], []).append(r["item_id"])
    enchanter_effects: dict[int, list[int]] = {}
    for r in enchanter:
        enchanter_effects.setdefault(r["settlement_id"], []).append(r["effect_id"])
    settlement_locations: dict[int, list[dict]] = {}
    for r in locations:
        settlement_locations.setdefault(r["settlement_id"], []).append({
            "location_id": r["location_id"],
            "name": r["name"],
            "description": r["description"] or "",
            "texture_id": r["asset_id"],
        })

    settlements = []
    for r in rows:
        settlement = {"settlement_id": r["settlement_id"], "version": r["version"] or 1}
        for column in COLUMNS:
            value = r[column]
            if column in FLAG_COLUMNS:
                value = bool(value)
            elif column in JSON_COLUMNS:
                value = from_json(value)
            settlement[column] = value
        settlement["settlement_name"] = settlement["settlement_name"] or ""
        sid = r["settlement_id"]
        settlement["vendor_items"] = vendor_items.get(sid, [])
        settlement["enchanter_effects"] = enchanter_effects.get(sid, [])
        settlement["locations"] = settlement_locations.get(sid, [])
        settlements.append(settlement)
    return settlements


async def save_settlement(fields: dict) -> int:
    """Insert or update a settlement with its inventories and locations.

    Inventories are replaced wholesale. Locations are diffed: rows whose id
    is not sent any more are deleted, known ids updated, new ones inserted.
    Every save stamps the settlement with the next global version.
    """
    name = (fields.get("settlement_name") or "").strip()
    if not name:
        raise ValidationFailed("settlement_name", "Missing required field: settlement_name")
    fields = {**fields, "settlement_name": name}
    settlement_id = fields.get("settlement_id") or 0
    values = _row_values(fields)
    next_version = "(SELECT COALESCE(MAX(version), 0) + 1 FROM game.world_info)"

    async with transaction() as conn:
        if settlement_id > 0:
            assignments = ", ".join(f"{c} = ${i}" for i, c in enumerate(COLUMNS, start=1))
            found = await conn.fetchval(
                f"UPDATE game.world_info SET {assignments}, version = {next_version} "
                f"WHERE settlement_id = ${len(COLUMNS) + 1} RETURNING settlement_id",
                *values,
                settlement_id,
            )
            if found is None:
                raise NotFound(f"Settlement {settlement_id} not found")
        else:
            params = ", ".join(f"${i}" for i in range(1, len(COLUMNS) + 1))
            settlement_id = await conn.fetchval(
                f"INSERT INTO game.world_info ({', '.join(COLUMNS)}, version) "
                f"VALUES ({params}, {next_version}) RETURNING settlement_id",
                *values,
            )

        await conn.execute("DELETE FROM game.vendor_inventory WHERE settlement_id = $1", settlement_id)
        for item_id in fields.get("vendor_items") or []:
            await conn.execute(
                "INSERT INTO game.vendor_inventory (settlement_id, item_id) VALUES ($1, $2)",
                settlement_id,
                item_id,
            )
        await conn.execute("DELETE FROM game.enchanter_inventory WHERE settlement_id = $1", settlement_id)
        for effect_id in fields.get("enchanter_effects") or []:
            await conn.execute(
                "INSERT INTO game.enchanter_inventory (settlement_id, effect_id) VALUES ($1, $2)",
                settlement_id,
                effect_id,
            )

        locations = fields.get("locations") or []
        keep = [loc["location_id"] for loc in locations if (loc.get("location_id") or 0) > 0]
        await conn.execute(
            "DELETE FROM game.locations WHERE settlement_id = $1 AND NOT (location_id = ANY($2::bigint[]))",
            settlement_id,
            keep,
        )
        for loc in locations:
            if (loc.get("location_id") or 0) > 0:
                await conn.execute(
                    "UPDATE game.locations SET name = $1, description = $2, asset_id = $3 "
                    "WHERE location_id = $4 AND settlement_id = $5",
                    loc.get("name") or "",
                    loc.get("description") or "",
                    loc.get("texture_id"),
                    loc["location_id"],
                    settlement_id,
                )
            else:
                await conn.execute(
                    "INSERT INTO game.locations (settlement_id, name, description, asset_id) "
                    "VALUES ($1, $2, $3, $4)",
                    settlement_id,
                    loc.get("name") or "",
                    loc.get("description") or "",
                    loc.get("texture_id"),
                )

    logger.info(f"Saved settlement {settlement_id} ({name})")
    return settlement_id


async def delete_settlement(settlement_id: int) -> None:
    if not settlement_id or settlement_id <= 0:
        raise ValidationFailed("settlementId", "Missing settlementId")
    async with transaction() as conn:
        await conn.execute("DELETE FROM game.vendor_inventory WHERE settlement_id = $1", settlement_id)
        await conn.execute("DELETE FROM game.enchanter_inventory WHERE settlement_id = $1", settlement_id)
        await conn.execute("DELETE FROM game.locations WHERE settlement_id = $1", settlement_id)
        found = await conn.fetchval(
            "DELETE FROM game.world_info WHERE settlement_id = $1 RETURNING settlement_id", settlement_id
        )
        if found is None:
            raise NotFound(f"Settlement {settlement_id} not found")
    logger.info(f"Deleted settlement {settlement_id}")

"""The single game-concept document (game.concept, id 1)."""

from .core import ValidationFailed, connection, from_json, to_json, transaction

FIELDS = {
    "payload": "payload",
    "systemPrompt": "system_prompt",
    "wildsPrompt": "wilds_prompt",
    "expeditionClusterPrompt": "expedition_cluster_prompt",
    "expeditionJsonSchema": "expedition_json_schema",
}


def _concept(row) -> dict:
    if row is None:
        return {key: {} for key in FIELDS}
    return {key: from_json(row[column], {}) for key, column in FIELDS.items()}


async def get_concept() -> dict:
    async with connection() as conn:
        row = await conn.fetchrow(
            f"SELECT {', '.join(FIELDS.values())} FROM game.concept ORDER BY id LIMIT 1"
        )
    return _concept(row)


async def save_concept(fields: dict) -> dict:
    if fields.get("payload") in (None, ""):
        raise ValidationFailed("payload", "Payload required")
    values = [to_json(fields.get(key) if fields.get(key) is not None else {}) for key in FIELDS]
    columns = ", ".join(FIELDS.values())
    excluded = ", ".join(f"{c} = EXCLUDED.{c}" for c in FIELDS.values())

    async with transaction() as conn:
        row = await conn.fetchrow(
            f"INSERT INTO game.concept (id, {columns}, updated_at) "
            "VALUES (1, $1, $2, $3, $4, $5, NOW()) "
            f"ON CONFLICT (id) DO UPDATE SET {excluded}, updated_at = NOW() "
            f"RETURNING {columns}",
            *values,
        )
    return _concept(row)

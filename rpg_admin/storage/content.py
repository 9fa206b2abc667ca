"""Staged content types: one definition drives both live and pending tables.

Every staged entity has a live table in the `game` schema and a pending
table in the `tooling` schema with the same attribute columns. The pending
table adds tooling_id, game_id, action, version and approved.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable

from rpg_admin import assets

from .core import ValidationFailed, connection, from_json, to_json, transaction

logger = logging.getLogger(__name__)

ITEM_TYPES = frozenset({
    "head", "chest", "hands", "feet", "belt", "legs", "back", "amulet",
    "weapon", "hammer", "gem", "scroll", "potion", "ration", "ingredient",
})
STAT_TYPES = frozenset({"strength", "stamina", "agility", "luck", "armor"})
ENEMY_MESSAGE_TYPES = frozenset({"onWin", "onLose", "onStart"})


@dataclass(frozen=True)
class Field:
    key: str  # JSON key on the wire
    column: str
    kind: str = "int"  # "int" | "str" | "bool" | "json"
    required: bool = False
    default: Any = None
    choices: frozenset[str] | None = None
    normalize: Callable[[Any], Any] | None = None


@dataclass(frozen=True)
class ContentType:
    name: str
    label: str
    plural: str
    live_table: str
    pending_table: str
    id_column: str
    fields: tuple[Field, ...]
    asset_category: str
    asset_key: str = "assetID"
    derive: Callable[[dict], dict] | None = None

    @property
    def columns(self) -> list[str]:
        return [f.column for f in self.fields]

    @property
    def pending_label(self) -> str:
        return "pending" + self.plural[0].upper() + self.plural[1:]

    def parse(self, payload: dict) -> dict[str, Any]:
        """Validate a wire payload and return {column: value} for storage."""
        values: dict[str, Any] = {}
        for f in self.fields:
            values[f.column] = _coerce(f, payload.get(f.key))
        return values

    def to_wire(self, row: Any) -> dict:
        """Map a row's attribute columns back to wire keys."""
        out: dict[str, Any] = {}
        for f in self.fields:
            value = row[f.column]
            if f.kind == "json":
                value = from_json(value, [])
            out[f.key] = value
        return out


_TRUE = {"true", "1"}
_FALSE = {"false", "0"}


def _boolean(f: Field, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
    raise ValidationFailed(f.key, f"Invalid {f.key}: expected true or false")


def _coerce(f: Field, value: Any) -> Any:
    if value is None or value == "":
        if f.required:
            raise ValidationFailed(f.key, f"Missing required field: {f.key}")
        value = f.default
        if value is None:
            return None

    if f.kind == "int":
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise ValidationFailed(f.key, f"Invalid {f.key}: expected a number")
        try:
            value = int(value)
        except (ValueError, OverflowError):
            raise ValidationFailed(f.key, f"Invalid {f.key}: expected a number")
    elif f.kind == "str":
        value = str(value)
    elif f.kind == "bool":
        value = _boolean(f, value)
    elif f.kind == "json":
        if f.normalize is not None:
            value = f.normalize(value)
        return to_json(value)

    if f.choices is not None and value not in f.choices:
        raise ValidationFailed(f.key, f"Invalid {f.key}: {value}")
    return value


# ---------------------------------------------------------------------------
# Type definitions
# ---------------------------------------------------------------------------

def _stat_fields() -> tuple[Field, ...]:
    return tuple(Field(stat, stat) for stat in ("strength", "stamina", "agility", "luck", "armor"))


ITEM = ContentType(
    name="item",
    label="Item",
    plural="items",
    live_table="game.items",
    pending_table="tooling.items",
    id_column="item_id",
    asset_category="items",
    fields=(
        Field("name", "item_name", "str", required=True),
        Field("assetID", "asset_id", default=0),
        Field("type", "type", "str", required=True, choices=ITEM_TYPES),
        *_stat_fields(),
        Field("effectID", "effect_id"),
        Field("effectFactor", "effect_factor"),
        Field("socket", "socket", "bool", default=False),
        Field("silver", "silver", default=0),
        Field("minDamage", "min_damage"),
        Field("maxDamage", "max_damage"),
    ),
)


def _perk_effects(perk: dict) -> dict:
    perk["effects"] = [
        {"type": perk.get("effect1_id") or 0, "factor": perk.get("factor1") or 1},
        {"type": perk.get("effect2_id") or 0, "factor": perk.get("factor2") or 1},
    ]
    return perk


PERK = ContentType(
    name="perk",
    label="Perk",
    plural="perks",
    live_table="game.perks_info",
    pending_table="tooling.perks_info",
    id_column="perk_id",
    asset_category="perks",
    derive=_perk_effects,
    fields=(
        Field("name", "perk_name", "str", required=True),
        Field("assetID", "asset_id", default=0),
        Field("effect1_id", "effect_id_1"),
        Field("factor1", "factor_1"),
        Field("effect2_id", "effect_id_2"),
        Field("factor2", "factor_2"),
        Field("description", "description", "str"),
    ),
)


def _enemy_effects(value: Any) -> list[dict]:
    if not isinstance(value, list):
        raise ValidationFailed("effects", "Invalid effects: expected a list")
    if len(value) > 10:
        raise ValidationFailed("effects", "Invalid effects: at most 10 allowed")
    effects = []
    for entry in value:
        if not isinstance(entry, dict):
            raise ValidationFailed("effects", "Invalid effects: expected objects")
        try:
            effects.append({"type": int(entry.get("type") or 0), "factor": int(entry.get("factor") or 1)})
        except (TypeError, ValueError, OverflowError):
            raise ValidationFailed("effects", "Invalid effects: type and factor must be numbers")
    return effects


def _enemy_messages(value: Any) -> list[dict]:
    if not isinstance(value, list):
        raise ValidationFailed("messages", "Invalid messages: expected a list")
    messages = []
    for entry in value:
        if not isinstance(entry, dict) or entry.get("type") not in ENEMY_MESSAGE_TYPES:
            raise ValidationFailed("messages", f"Invalid messages: type must be one of {sorted(ENEMY_MESSAGE_TYPES)}")
        text = str(entry.get("message") or "").strip()
        if text:
            messages.append({"type": entry["type"], "message": text})
    return messages


ENEMY = ContentType(
    name="enemy",
    label="Enemy",
    plural="enemies",
    live_table="game.enemies",
    pending_table="tooling.enemies",
    id_column="enemy_id",
    asset_category="enemies",
    fields=(
        Field("name", "enemy_name", "str", required=True),
        Field("description", "description", "str"),
        Field("assetID", "asset_id", default=0),
        *_stat_fields(),
        Field("effects", "effects", "json", default=[], normalize=_enemy_effects),
        Field("messages", "messages", "json", default=[], normalize=_enemy_messages),
    ),
)

CONTENT_TYPES = {ct.name: ct for ct in (ITEM, PERK, ENEMY)}


# ---------------------------------------------------------------------------
# Repository operations
# ---------------------------------------------------------------------------

async def get_effects() -> list[dict]:
    """Effect catalogue, ordered by id."""
    async with connection() as conn:
        rows = await conn.fetch(
            "SELECT effect_id, name, slot, factor, description FROM game.effects ORDER BY effect_id"
        )
    return [
        {
            "id": r["effect_id"],
            "name": r["name"],
            "slot": r["slot"],
            "factor": r["factor"],
            "description": r["description"],
        }
        for r in rows
    ]


async def list_live(ct: ContentType) -> list[dict]:
    """All live rows in ascending id order, icons freshly signed."""
    sql = (
        f"SELECT {ct.id_column}, version, {', '.join(ct.columns)} "
        f"FROM {ct.live_table} ORDER BY {ct.id_column}"
    )
    async with connection() as conn:
        rows = await conn.fetch(sql)

    records = []
    for row in rows:
        record = {"id": row[ct.id_column], "version": row["version"], **ct.to_wire(row)}
        record["icon"] = assets.sign(ct.asset_category, record.get(ct.asset_key))
        if ct.derive:
            record = ct.derive(record)
        records.append(record)
    return records


async def list_pending(ct: ContentType) -> list[dict]:
    """All pending rows, newest first."""
    sql = (
        f"SELECT tooling_id, game_id, action, version, approved, {', '.join(ct.columns)} "
        f"FROM {ct.pending_table} ORDER BY tooling_id DESC"
    )
    async with connection() as conn:
        rows = await conn.fetch(sql)

    return [
        {
            "toolingId": row["tooling_id"],
            "gameId": row["game_id"],
            "action": row["action"],
            "version": row["version"],
            "approved": row["approved"],
            **ct.to_wire(row),
        }
        for row in rows
    ]


async def create_or_update(ct: ContentType, payload: dict, target_id: int | None = None) -> tuple[int, str]:
    """Write a pending row. Returns (tooling_id, action).

    With a target id the row is an update of that live record and carries
    the live version it was authored against.
    """
    values = ct.parse(payload)
    action = "update" if target_id and target_id > 0 else "insert"
    columns = ct.columns
    placeholders = ", ".join(f"${i}" for i in range(4, len(columns) + 4))

    async with transaction() as conn:
        version = 0
        game_id = None
        if action == "update":
            version = await conn.fetchval(
                f"SELECT version FROM {ct.live_table} WHERE {ct.id_column} = $1", target_id
            )
            if version is None:
                raise ValidationFailed("id", f"{ct.label} {target_id} does not exist")
            game_id = target_id

        tooling_id = await conn.fetchval(
            f"INSERT INTO {ct.pending_table} (game_id, action, version, approved, {', '.join(columns)}) "
            f"VALUES ($1, $2, $3, false, {placeholders}) RETURNING tooling_id",
            game_id,
            action,
            version,
            *values.values(),
        )

    logger.info(f"{ct.name} {action} pending as tooling_id={tooling_id}")
    return tooling_id, action


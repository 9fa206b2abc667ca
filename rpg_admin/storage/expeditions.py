"""Expedition graphs: staged slides, options and weighted outcomes.

The designer edits the `tooling.expedition_*` tables. Slides carry a
slide_state (insert, update, delete, unchanged) so merge_expeditions() can
copy exactly the changed part of the graph into `game.expedition_*`.
"""

import logging

from rpg_admin.graph import (
    ExpeditionConnection,
    ExpeditionOption,
    ExpeditionSave,
    ExpeditionSlide,
    IdMapping,
    LocalId,
    parse_id,
)

from .content import STAT_TYPES
from .core import NotFound, ValidationFailed, connection, transaction

logger = logging.getLogger(__name__)

SLIDE_COLUMNS = (
    "slide_text", "asset_id", "effect_id", "effect_factor", "is_start", "settlement_id",
    "reward_stat_type", "reward_stat_amount", "reward_talent", "reward_item", "reward_perk",
    "reward_blessing", "reward_potion", "reward_silver", "pos_x", "pos_y",
)
OPTION_COLUMNS = (
    "slide_id", "option_text", "stat_type", "stat_required", "effect_id", "effect_amount",
    "enemy_id", "faction_required", "silver_required",
)


def _slide_values(slide: ExpeditionSlide, settlement_id: int | None) -> list:
    return [
        slide.text, slide.asset_id, slide.effect_id, slide.effect_factor, slide.is_start,
        settlement_id, slide.reward_stat_type, slide.reward_stat_amount, slide.reward_talent,
        slide.reward_item, slide.reward_perk, slide.reward_blessing, slide.reward_potion,
        slide.reward_silver, slide.pos_x, slide.pos_y,
    ]


def _check_stat(value: str | None, field: str) -> None:
    if value and value not in STAT_TYPES:
        raise ValidationFailed(field, f"Invalid {field}: {value}")


def weight_of(conn: ExpeditionConnection) -> int:
    """Connection weights are at least 1."""
    if conn.weight is None or conn.weight < 1:
        return 1
    return conn.weight


# ---------------------------------------------------------------------------
# Save
# ---------------------------------------------------------------------------

async def _clear_options(conn, slide_id: int) -> None:
    await conn.execute(
        "DELETE FROM tooling.expedition_outcomes WHERE option_id IN "
        "(SELECT option_id FROM tooling.expedition_options WHERE slide_id = $1)",
        slide_id,
    )
    await conn.execute("DELETE FROM tooling.expedition_options WHERE slide_id = $1", slide_id)


async def _mark_updated(conn, slide_id: int) -> None:
    await conn.execute(
        "UPDATE tooling.expedition_slides SET slide_state = 'update' "
        "WHERE slide_id = $1 AND slide_state = 'unchanged'",
        slide_id,
    )


async def _remove_slide(conn, slide_id: int) -> bool:
    exists = await conn.fetchval(
        "SELECT slide_id FROM tooling.expedition_slides WHERE slide_id = $1 AND slide_state <> 'delete'",
        slide_id,
    )
    if exists is None:
        return False
    await conn.execute(
        "DELETE FROM tooling.expedition_outcomes WHERE target_slide_id = $1", slide_id
    )
    await _clear_options(conn, slide_id)
    await conn.execute(
        "UPDATE tooling.expedition_slides SET slide_state = 'delete' WHERE slide_id = $1", slide_id
    )
    return True


async def _remove_option(conn, option_id: int) -> bool:
    await conn.execute("DELETE FROM tooling.expedition_outcomes WHERE option_id = $1", option_id)
    slide_id = await conn.fetchval(
        "DELETE FROM tooling.expedition_options WHERE option_id = $1 RETURNING slide_id", option_id
    )
    if slide_id is None:
        return False
    await _mark_updated(conn, slide_id)
    return True


async def save_expedition(body: ExpeditionSave) -> tuple[dict[str, int], dict[str, int]]:
    """Apply a designer save in one transaction.

    Order: deletions, slide inserts/updates (plus slides auto-created for
    dangling local connection targets), then options and their outcomes.
    Returns (slide mapping, option mapping); option keys are
    "<slide wire id>-<option index>".
    """
    for slide in body.slides:
        if slide.id == 0:
            raise ValidationFailed("slides", "Slide id 0 is not allowed")
        for option in slide.options:
            _check_stat(option.stat_type, "statType")
        _check_stat(slide.reward_stat_type, "rewardStatType")

    slides = IdMapping()
    option_mapping: dict[str, int] = {}
    slide_cols = ", ".join(SLIDE_COLUMNS)
    slide_params = ", ".join(f"${i}" for i in range(1, len(SLIDE_COLUMNS) + 1))
    option_cols = ", ".join(OPTION_COLUMNS)
    option_params = ", ".join(f"${i}" for i in range(1, len(OPTION_COLUMNS) + 1))

    async with transaction() as conn:
        # 1. Deletions
        for option_id in body.deleted_options:
            if not await _remove_option(conn, option_id):
                logger.warning(f"Deleted option {option_id} was already gone")
        for dc in body.deleted_connections:
            await conn.execute(
                "DELETE FROM tooling.expedition_outcomes WHERE option_id = $1 AND target_slide_id = $2",
                dc.option_id,
                dc.target_slide_id,
            )
            slide_id = await conn.fetchval(
                "SELECT slide_id FROM tooling.expedition_options WHERE option_id = $1", dc.option_id
            )
            if slide_id is not None:
                await _mark_updated(conn, slide_id)
        for slide_id in body.deleted_slides:
            if slide_id > 0 and not await _remove_slide(conn, slide_id):
                logger.warning(f"Deleted slide {slide_id} was already gone")

        # 2. Nodes
        for slide in body.slides:
            ref = parse_id(slide.id)
            values = _slide_values(slide, body.settlement_id)
            if isinstance(ref, LocalId):
                server_id = await conn.fetchval(
                    f"INSERT INTO tooling.expedition_slides ({slide_cols}, slide_state) "
                    f"VALUES ({slide_params}, 'insert') RETURNING slide_id",
                    *values,
                )
                slides.bind(ref, server_id)
            else:
                assignments = ", ".join(
                    f"{c} = COALESCE(${i}, {c})" if c == "settlement_id" else f"{c} = ${i}"
                    for i, c in enumerate(SLIDE_COLUMNS, start=1)
                )
                updated = await conn.fetchval(
                    f"UPDATE tooling.expedition_slides SET {assignments}, "
                    "slide_state = CASE WHEN slide_state = 'insert' THEN 'insert' ELSE 'update' END "
                    f"WHERE slide_id = ${len(SLIDE_COLUMNS) + 1} AND slide_state <> 'delete' "
                    "RETURNING slide_id",
                    *values,
                    ref.n,
                )
                if updated is None:
                    raise NotFound(f"Slide {ref.n} not found")
                await _clear_options(conn, ref.n)

        listed = {slide.id for slide in body.slides}
        for slide in body.slides:
            for option in slide.options:
                for target in option.connections:
                    if target.target_slide_id < 0 and target.target_slide_id not in listed:
                        local = LocalId(n=target.target_slide_id)
                        if local in slides:
                            continue
                        server_id = await conn.fetchval(
                            "INSERT INTO tooling.expedition_slides (slide_text, is_start, settlement_id, slide_state) "
                            "VALUES ('', false, $1, 'insert') RETURNING slide_id",
                            body.settlement_id,
                        )
                        slides.bind(local, server_id)
                        logger.info(f"Auto-created slide {server_id} for dangling target {local.n}")

        server_targets = sorted({
            t.target_slide_id
            for slide in body.slides
            for option in slide.options
            for t in option.connections
            if t.target_slide_id > 0
        })
        known: set[int] = set()
        if server_targets:
            rows = await conn.fetch(
                "SELECT slide_id FROM tooling.expedition_slides "
                "WHERE slide_id = ANY($1::int[]) AND slide_state <> 'delete'",
                server_targets,
            )
            known = {r["slide_id"] for r in rows}

        # 3. Options and outcomes
        for slide in body.slides:
            slide_id = slides.resolve(parse_id(slide.id))
            for index, option in enumerate(slide.options):
                option_id = await conn.fetchval(
                    f"INSERT INTO tooling.expedition_options ({option_cols}) "
                    f"VALUES ({option_params}) RETURNING option_id",
                    slide_id, option.text, option.stat_type, option.stat_required,
                    option.effect_id, option.effect_amount, option.enemy_id,
                    option.faction_required, option.silver_required,
                )
                option_mapping[f"{slide.id}-{index}"] = option_id

                for target in option.connections:
                    target_id = slides.resolve_wire(target.target_slide_id)
                    if target_id is None or (target.target_slide_id > 0 and target_id not in known):
                        logger.warning(
                            f"Skipping connection from option {option_id} to unknown slide {target.target_slide_id}"
                        )
                        continue
                    await conn.execute(
                        "INSERT INTO tooling.expedition_outcomes (option_id, target_slide_id, weight) "
                        "VALUES ($1, $2, $3)",
                        option_id,
                        target_id,
                        weight_of(target),
                    )

    logger.info(
        f"Saved expedition: {len(body.slides)} slides, {len(option_mapping)} options, "
        f"{len(body.deleted_slides)} deleted slides"
    )
    return slides.to_wire(), option_mapping


# ---------------------------------------------------------------------------
# Load / delete
# ---------------------------------------------------------------------------

async def get_expedition(settlement_id: int | None = None) -> list[dict]:
    """Current staged graph, in the same shape the designer saves."""
    async with connection() as conn:
        slide_rows = await conn.fetch(
            f"SELECT slide_id, {', '.join(SLIDE_COLUMNS)} FROM tooling.expedition_slides "
            "WHERE slide_state <> 'delete' AND ($1::int IS NULL OR settlement_id = $1) "
            "ORDER BY slide_id",
            settlement_id,
        )
        slide_ids = [r["slide_id"] for r in slide_rows]
        option_rows = await conn.fetch(
            f"SELECT option_id, {', '.join(OPTION_COLUMNS)} FROM tooling.expedition_options "
            "WHERE slide_id = ANY($1::int[]) ORDER BY option_id",
            slide_ids,
        )
        outcome_rows = await conn.fetch(
            "SELECT option_id, target_slide_id, weight FROM tooling.expedition_outcomes "
            "WHERE option_id = ANY($1::int[]) ORDER BY outcome_id",
            [r["option_id"] for r in option_rows],
        )

    connections: dict[int, list[ExpeditionConnection]] = {}
    for r in outcome_rows:
        connections.setdefault(r["option_id"], []).append(
            ExpeditionConnection(target_slide_id=r["target_slide_id"], weight=r["weight"])
        )

    options: dict[int, list[ExpeditionOption]] = {}
    for r in option_rows:
        options.setdefault(r["slide_id"], []).append(ExpeditionOption(
            id=r["option_id"],
            text=r["option_text"] or "",
            stat_type=r["stat_type"],
            stat_required=r["stat_required"],
            effect_id=r["effect_id"],
            effect_amount=r["effect_amount"],
            enemy_id=r["enemy_id"],
            faction_required=r["faction_required"],
            silver_required=r["silver_required"],
            connections=connections.get(r["option_id"], []),
        ))

    slides = []
    for r in slide_rows:
        slide = ExpeditionSlide(
            id=r["slide_id"],
            text=r["slide_text"] or "",
            asset_id=r["asset_id"],
            effect_id=r["effect_id"],
            effect_factor=r["effect_factor"],
            is_start=bool(r["is_start"]),
            reward_stat_type=r["reward_stat_type"],
            reward_stat_amount=r["reward_stat_amount"],
            reward_talent=r["reward_talent"],
            reward_item=r["reward_item"],
            reward_perk=r["reward_perk"],
            reward_blessing=r["reward_blessing"],
            reward_potion=r["reward_potion"],
            reward_silver=r["reward_silver"],
            pos_x=r["pos_x"],
            pos_y=r["pos_y"],
            options=options.get(r["slide_id"], []),
        )
        slides.append(slide.model_dump(by_alias=True))
    return slides


async def delete_expedition_slide(slide_id: int) -> None:
    async with transaction() as conn:
        if not await _remove_slide(conn, slide_id):
            raise NotFound(f"Slide {slide_id} not found")
    logger.info(f"Marked expedition slide {slide_id} deleted")


async def delete_expedition_option(option_id: int) -> None:
    async with transaction() as conn:
        if not await _remove_option(conn, option_id):
            raise NotFound(f"Option {option_id} not found")
    logger.info(f"Deleted expedition option {option_id}")


# ---------------------------------------------------------------------------
# Merge staged graph into the live game tables
# ---------------------------------------------------------------------------

async def merge_expeditions() -> dict:
    """Copy changed slides (with their options/outcomes) into game.* atomically."""
    cols = ", ".join(SLIDE_COLUMNS)
    excluded = ", ".join(f"{c} = EXCLUDED.{c}" for c in SLIDE_COLUMNS)

    async with transaction() as conn:
        version = await conn.fetchval(
            "SELECT COALESCE(MAX(version), 0) + 1 FROM game.expedition_slides"
        )
        state_rows = await conn.fetch(
            "SELECT slide_id, slide_state FROM tooling.expedition_slides "
            "WHERE slide_state <> 'unchanged' ORDER BY slide_id FOR UPDATE"
        )
        deleted = [r["slide_id"] for r in state_rows if r["slide_state"] == "delete"]
        inserted = [r["slide_id"] for r in state_rows if r["slide_state"] == "insert"]
        updated = [r["slide_id"] for r in state_rows if r["slide_state"] == "update"]
        changed = inserted + updated

        if deleted:
            await conn.execute(
                "DELETE FROM game.expedition_outcomes WHERE target_slide_id = ANY($1::int[]) "
                "OR option_id IN (SELECT option_id FROM game.expedition_options WHERE slide_id = ANY($1::int[]))",
                deleted,
            )
            await conn.execute(
                "DELETE FROM game.expedition_options WHERE slide_id = ANY($1::int[])", deleted
            )
            await conn.execute(
                "DELETE FROM game.expedition_slides WHERE slide_id = ANY($1::int[])", deleted
            )
            await conn.execute(
                "DELETE FROM tooling.expedition_slides WHERE slide_id = ANY($1::int[])", deleted
            )

        if changed:
            await conn.execute(
                f"INSERT INTO game.expedition_slides (slide_id, {cols}, version, is_deleted) "
                f"SELECT slide_id, {cols}, $2, false FROM tooling.expedition_slides "
                "WHERE slide_id = ANY($1::int[]) "
                f"ON CONFLICT (slide_id) DO UPDATE SET {excluded}, "
                "version = EXCLUDED.version, is_deleted = false",
                changed,
                version,
            )
            await conn.execute(
                "DELETE FROM game.expedition_outcomes WHERE option_id IN "
                "(SELECT option_id FROM game.expedition_options WHERE slide_id = ANY($1::int[]))",
                changed,
            )
            await conn.execute(
                "DELETE FROM game.expedition_options WHERE slide_id = ANY($1::int[])", changed
            )
            option_cols = ", ".join(OPTION_COLUMNS)
            await conn.execute(
                f"INSERT INTO game.expedition_options (option_id, {option_cols}) "
                f"SELECT option_id, {option_cols} FROM tooling.expedition_options "
                "WHERE slide_id = ANY($1::int[])",
                changed,
            )
            await conn.execute(
                "INSERT INTO game.expedition_outcomes (outcome_id, option_id, target_slide_id, weight) "
                "SELECT o.outcome_id, o.option_id, o.target_slide_id, o.weight "
                "FROM tooling.expedition_outcomes o "
                "JOIN tooling.expedition_options p ON p.option_id = o.option_id "
                "WHERE p.slide_id = ANY($1::int[])",
                changed,
            )
            await conn.execute(
                "UPDATE tooling.expedition_slides SET slide_state = 'unchanged' "
                "WHERE slide_id = ANY($1::int[])",
                changed,
            )

    logger.info(
        f"Merged expeditions v{version}: {len(inserted)} inserted, "
        f"{len(updated)} updated, {len(deleted)} deleted"
    )
    return {
        "version": version,
        "slidesInserted": len(inserted),
        "slidesUpdated": len(updated),
        "slidesDeleted": len(deleted),
    }

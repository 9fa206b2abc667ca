"""Quest chains: quests, their options, option requirements and requisites.

A quest chain holds quests; a quest holds options. An option may require
another option to have been chosen earlier (game.quest_option_requirements)
and may be the requisite that unlocks a quest (game.quests.requisite_option_id).
Quests and options are edited directly on the live game tables.
"""

import logging

from rpg_admin.graph import IdMapping, LocalId, QuestNode, QuestOption, QuestSave, parse_id

from .content import STAT_TYPES
from .core import NotFound, ValidationFailed, connection, transaction

logger = logging.getLogger(__name__)

QUEST_COLUMNS = (
    "quest_name", "ending", "default_entry", "asset_id", "pos_x", "pos_y", "sort_order",
)
OPTION_COLUMNS = (
    "node_text", "option_text", "start", "stat_type", "stat_required", "effect_id",
    "effect_amount", "enemy_id", "reward_stat_type", "reward_stat_amount", "reward_talent",
    "reward_item", "reward_perk", "reward_blessing", "reward_potion", "reward_silver",
    "pos_x", "pos_y",
)


def _quest_values(quest: QuestNode) -> list:
    return [
        quest.quest_name, quest.ending, quest.is_start, quest.asset_id,
        quest.pos_x, quest.pos_y, quest.sort_order,
    ]


def _option_values(option: QuestOption) -> list:
    return [
        option.node_text, option.option_text, option.is_start, option.stat_type,
        option.stat_required, option.effect_id, option.effect_amount, option.enemy_id,
        option.reward_stat_type, option.reward_stat_amount, option.reward_talent,
        option.reward_item, option.reward_perk, option.reward_blessing,
        option.reward_potion, option.reward_silver, option.pos_x, option.pos_y,
    ]


def _params(count: int, start: int = 1) -> str:
    return ", ".join(f"${i}" for i in range(start, start + count))


def _assignments(columns: tuple[str, ...]) -> str:
    return ", ".join(f"{c} = ${i}" for i, c in enumerate(columns, start=1))


# ---------------------------------------------------------------------------
# Cascading deletes
# ---------------------------------------------------------------------------

async def _delete_option(conn, option_id: int) -> bool:
    """Drop an option with every requirement naming it and any requisite pointer to it."""
    await conn.execute(
        "DELETE FROM game.quest_option_requirements WHERE option_id = $1 OR required_option_id = $1",
        option_id,
    )
    await conn.execute(
        "UPDATE game.quests SET requisite_option_id = NULL WHERE requisite_option_id = $1",
        option_id,
    )
    deleted = await conn.fetchval(
        "DELETE FROM game.quest_options WHERE option_id = $1 RETURNING option_id", option_id
    )
    return deleted is not None


async def _delete_quest(conn, quest_id: int) -> bool:
    rows = await conn.fetch("SELECT option_id FROM game.quest_options WHERE quest_id = $1", quest_id)
    for row in rows:
        await _delete_option(conn, row["option_id"])
    deleted = await conn.fetchval(
        "DELETE FROM game.quests WHERE quest_id = $1 RETURNING quest_id", quest_id
    )
    return deleted is not None


async def delete_quest_option(option_id: int) -> None:
    async with transaction() as conn:
        if not await _delete_option(conn, option_id):
            raise NotFound(f"Option {option_id} not found")
    logger.info(f"Deleted quest option {option_id}")


async def delete_quest(quest_id: int) -> None:
    async with transaction() as conn:
        if not await _delete_quest(conn, quest_id):
            raise NotFound(f"Quest {quest_id} not found")
    logger.info(f"Deleted quest {quest_id}")


# ---------------------------------------------------------------------------
# Create / load
# ---------------------------------------------------------------------------

async def create_quest(name: str, settlement_id: int | None) -> tuple[int, int]:
    """New quest chain with its default-entry quest. Returns (quest_id, questchain_id)."""
    if not name or not name.strip():
        raise ValidationFailed("questName", "Missing required field: questName")

    async with transaction() as conn:
        questchain_id = await conn.fetchval(
            "INSERT INTO game.questchain (name, settlement_id) VALUES ($1, $2) RETURNING questchain_id",
            name.strip(),
            settlement_id,
        )
        quest_id = await conn.fetchval(
            "INSERT INTO game.quests (questchain_id, quest_name, default_entry, settlement_id) "
            "VALUES ($1, $2, true, $3) RETURNING quest_id",
            questchain_id,
            name.strip(),
            settlement_id,
        )
    logger.info(f"Created quest chain {questchain_id} with quest {quest_id}")
    return quest_id, questchain_id


async def get_quests(settlement_id: int | None = None) -> dict:
    async with connection() as conn:
        chains = await conn.fetch(
            "SELECT questchain_id, name, description, settlement_id FROM game.questchain "
            "WHERE ($1::int IS NULL OR settlement_id = $1) ORDER BY questchain_id",
            settlement_id,
        )
        chain_ids = [r["questchain_id"] for r in chains]
        quests = await conn.fetch(
            f"SELECT quest_id, questchain_id, requisite_option_id, {', '.join(QUEST_COLUMNS)} "
            "FROM game.quests WHERE questchain_id = ANY($1::int[]) ORDER BY quest_id",
            chain_ids,
        )
        quest_ids = [r["quest_id"] for r in quests]
        options = await conn.fetch(
            f"SELECT option_id, quest_id, {', '.join(OPTION_COLUMNS)} "
            "FROM game.quest_options WHERE quest_id = ANY($1::int[]) ORDER BY option_id",
            quest_ids,
        )
        requirements = await conn.fetch(
            "SELECT option_id, required_option_id FROM game.quest_option_requirements "
            "WHERE option_id = ANY($1::int[]) ORDER BY option_id, required_option_id",
            [r["option_id"] for r in options],
        )

    return {
        "questchains": [
            {
                "questchainId": r["questchain_id"],
                "name": r["name"],
                "description": r["description"],
                "settlementId": r["settlement_id"],
            }
            for r in chains
        ],
        "quests": [
            QuestNode(
                id=r["quest_id"],
                questchain_id=r["questchain_id"],
                quest_name=r["quest_name"] or "",
                is_start=bool(r["default_entry"]),
                ending=r["ending"],
                asset_id=r["asset_id"],
                pos_x=r["pos_x"],
                pos_y=r["pos_y"],
                sort_order=r["sort_order"],
                requisite_option_id=r["requisite_option_id"],
            ).model_dump(by_alias=True)
            for r in quests
        ],
        "options": [
            QuestOption(
                id=r["option_id"],
                quest_id=r["quest_id"],
                is_start=bool(r["start"]),
                **{c: r[c] for c in OPTION_COLUMNS if c not in ("start", "node_text", "option_text")},
                node_text=r["node_text"] or "",
                option_text=r["option_text"] or "",
            ).model_dump(by_alias=True)
            for r in options
        ],
        "requirements": [
            {"optionId": r["option_id"], "requiredOptionId": r["required_option_id"]}
            for r in requirements
        ],
    }


# ---------------------------------------------------------------------------
# Save
# ---------------------------------------------------------------------------

async def save_quest(body: QuestSave) -> dict:
    """Apply a quest-designer save in one transaction.

    Order: quest chain, deletions, quests (new local ids are negative),
    options (auto-creating quests that only appear as an option's parent),
    then requisites and requirements.
    """
    for option in body.options:
        if option.stat_type and option.stat_type not in STAT_TYPES:
            raise ValidationFailed("statType", f"Invalid statType: {option.stat_type}")
        if option.id == 0 or option.quest_id == 0:
            raise ValidationFailed("options", "Option and quest ids must be non-zero")
    for quest in body.quests:
        if quest.id == 0:
            raise ValidationFailed("quests", "Quest id 0 is not allowed")

    quests = IdMapping()
    options = IdMapping()

    async with transaction() as conn:
        questchain_id = body.questchain_id
        if not questchain_id:
            if not body.questchain_name or not body.questchain_name.strip():
                raise ValidationFailed("questchainName", "Missing required field: questchainName")
            questchain_id = await conn.fetchval(
                "INSERT INTO game.questchain (name, settlement_id) VALUES ($1, $2) RETURNING questchain_id",
                body.questchain_name.strip(),
                body.settlement_id,
            )
        elif body.questchain_name:
            found = await conn.fetchval(
                "UPDATE game.questchain SET name = $1 WHERE questchain_id = $2 RETURNING questchain_id",
                body.questchain_name.strip(),
                questchain_id,
            )
            if found is None:
                raise NotFound(f"Quest chain {questchain_id} not found")

        for option_id in body.deleted_options:
            await _delete_option(conn, option_id)
        for quest_id in body.deleted_quests:
            await _delete_quest(conn, quest_id)

        quest_insert = (
            f"INSERT INTO game.quests (questchain_id, settlement_id, {', '.join(QUEST_COLUMNS)}) "
            f"VALUES ($1, $2, {_params(len(QUEST_COLUMNS), 3)}) RETURNING quest_id"
        )
        for quest in body.quests:
            ref = parse_id(quest.id)
            if isinstance(ref, LocalId):
                server_id = await conn.fetchval(
                    quest_insert, questchain_id, body.settlement_id, *_quest_values(quest)
                )
                quests.bind(ref, server_id)
            else:
                found = await conn.fetchval(
                    f"UPDATE game.quests SET {_assignments(QUEST_COLUMNS)} "
                    f"WHERE quest_id = ${len(QUEST_COLUMNS) + 1} RETURNING quest_id",
                    *_quest_values(quest),
                    ref.n,
                )
                if found is None:
                    raise NotFound(f"Quest {ref.n} not found")

        for option in body.options:
            parent = parse_id(option.quest_id)
            if isinstance(parent, LocalId) and parent not in quests:
                server_id = await conn.fetchval(
                    quest_insert, questchain_id, body.settlement_id,
                    *_quest_values(QuestNode(id=parent.n, quest_name="New quest")),
                )
                quests.bind(parent, server_id)
                logger.info(f"Auto-created quest {server_id} for local id {parent.n}")

        for option in body.options:
            ref = parse_id(option.id)
            quest_id = quests.resolve(parse_id(option.quest_id))
            if isinstance(ref, LocalId):
                server_id = await conn.fetchval(
                    f"INSERT INTO game.quest_options (quest_id, {', '.join(OPTION_COLUMNS)}) "
                    f"VALUES ($1, {_params(len(OPTION_COLUMNS), 2)}) RETURNING option_id",
                    quest_id,
                    *_option_values(option),
                )
                options.bind(ref, server_id)
            else:
                found = await conn.fetchval(
                    f"UPDATE game.quest_options SET {_assignments(OPTION_COLUMNS)}, "
                    f"quest_id = ${len(OPTION_COLUMNS) + 1} "
                    f"WHERE option_id = ${len(OPTION_COLUMNS) + 2} RETURNING option_id",
                    *_option_values(option),
                    quest_id,
                    ref.n,
                )
                if found is None:
                    raise NotFound(f"Option {ref.n} not found")

        for quest in body.quests:
            if quest.requisite_option_id is None:
                continue
            quest_id = quests.resolve(parse_id(quest.id))
            requisite = options.resolve_wire(quest.requisite_option_id)
            if quest.requisite_option_id and requisite is None:
                logger.warning(f"Quest {quest_id}: requisite option {quest.requisite_option_id} unknown, cleared")
            await conn.execute(
                "UPDATE game.quests SET requisite_option_id = $1 WHERE quest_id = $2",
                requisite,
                quest_id,
            )

        for req in body.requirements:
            option_id = _resolve_either(options, req.local_option_id, req.option_id)
            required_id = _resolve_either(options, req.local_required_option_id, req.required_option_id)
            if option_id is None or required_id is None:
                logger.warning(
                    f"Skipping requirement {req.local_option_id or req.option_id} -> "
                    f"{req.local_required_option_id or req.required_option_id}: unresolved option"
                )
                continue
            await conn.execute(
                "INSERT INTO game.quest_option_requirements (option_id, required_option_id) "
                "VALUES ($1, $2) ON CONFLICT DO NOTHING",
                option_id,
                required_id,
            )

    logger.info(
        f"Saved quest chain {questchain_id}: {len(body.quests)} quests, "
        f"{len(body.options)} options, {len(body.requirements)} requirements"
    )
    return {
        "questchainId": questchain_id,
        "questMapping": quests.to_wire(),
        "optionMapping": options.to_wire(),
    }


def _resolve_either(mapping: IdMapping, local: int | None, server: int | None) -> int | None:
    """Prefer the local id when it resolves, else fall back to the known server id."""
    for candidate in (local, server):
        resolved = mapping.resolve_wire(candidate)
        if resolved is not None:
            return resolved
    return None

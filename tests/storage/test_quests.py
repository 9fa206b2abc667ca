"""Tests for quest chains: create, load, graph save and cascading deletes."""

import pytest

from rpg_admin import storage
from rpg_admin.graph import QuestSave
from rpg_admin.storage import NotFound, ValidationFailed


def _save(payload: dict) -> QuestSave:
    return QuestSave.model_validate(payload)


# ---------------------------------------------------------------------------
# create_quest
# ---------------------------------------------------------------------------

async def test_create_quest_makes_chain_and_entry(db):
    db.on("INSERT INTO game.questchain", 3)
    db.on("INSERT INTO game.quests", 40)
    assert await storage.create_quest(" The Lost Ring ", 2) == (40, 3)
    _, args = db.statements("INSERT INTO game.quests")[0]
    assert args == (3, "The Lost Ring", 2)
    assert "default_entry" in db.statements("INSERT INTO game.quests")[0][0]


async def test_create_quest_needs_name(db):
    with pytest.raises(ValidationFailed) as exc:
        await storage.create_quest("  ", None)
    assert exc.value.field == "questName"
    assert db.calls == []


# ---------------------------------------------------------------------------
# save_quest
# ---------------------------------------------------------------------------

NEW_CHAIN = {
    "questchainName": "Ring",
    "settlementId": 2,
    "quests": [
        {"id": -1, "questName": "Start", "isStart": True},
        {"id": -2, "questName": "Finale", "requisiteOptionId": -11},
    ],
    "options": [
        {"id": -10, "questId": -1, "nodeText": "A stranger waves", "optionText": "Approach"},
        {"id": -11, "questId": -1, "optionText": "Take the ring"},
    ],
    "requirements": [{"local_option_id": -11, "local_required_option_id": -10}],
}


async def test_save_new_chain(db):
    db.on("INSERT INTO game.questchain", 5)
    db.on("INSERT INTO game.quests", 60, 61)
    db.on("INSERT INTO game.quest_options", 700, 701)

    result = await storage.save_quest(_save(NEW_CHAIN))

    assert result == {
        "questchainId": 5,
        "questMapping": {"-1": 60, "-2": 61},
        "optionMapping": {"-10": 700, "-11": 701},
    }
    _, first_option = db.statements("INSERT INTO game.quest_options")[0]
    assert first_option[:3] == (60, "A stranger waves", "Approach")
    requisites = [args for _, args in db.statements("SET requisite_option_id = $1")]
    assert requisites == [(701, 61)]
    reqs = [args for _, args in db.statements("INSERT INTO game.quest_option_requirements")]
    assert reqs == [(701, 700)]
    assert db.events == ["begin", "commit"]


async def test_save_needs_chain_name_for_new_chain(db):
    with pytest.raises(ValidationFailed) as exc:
        await storage.save_quest(_save({"quests": [{"id": -1}]}))
    assert exc.value.field == "questchainName"
    assert db.events == ["begin", "rollback"]


async def test_option_parent_auto_created(db):
    payload = {"questchainId": 5, "options": [{"id": -3, "questId": -8, "optionText": "go"}]}
    db.on("INSERT INTO game.quests", 90)
    db.on("INSERT INTO game.quest_options", 900)

    result = await storage.save_quest(_save(payload))

    assert result["questMapping"] == {"-8": 90}
    _, quest_args = db.statements("INSERT INTO game.quests")[0]
    assert quest_args[:3] == (5, None, "New quest")
    assert db.statements("INSERT INTO game.quest_options")[0][1][0] == 90


async def test_existing_nodes_updated(db):
    payload = {
        "questchainId": 5,
        "questchainName": "Renamed",
        "quests": [{"id": 60, "questName": "Start v2"}],
        "options": [{"id": 700, "questId": 60, "optionText": "Approach carefully"}],
    }
    db.on("UPDATE game.questchain", 5)
    db.on("UPDATE game.quests SET quest_name", 60)
    db.on("UPDATE game.quest_options SET node_text", 700)

    result = await storage.save_quest(_save(payload))

    assert result == {"questchainId": 5, "questMapping": {}, "optionMapping": {}}
    _, option_args = db.statements("UPDATE game.quest_options SET node_text")[0]
    assert option_args[1] == "Approach carefully"
    assert option_args[-2:] == (60, 700)


async def test_missing_existing_quest(db):
    db.on("UPDATE game.questchain", 5)
    with pytest.raises(NotFound):
        await storage.save_quest(_save({"questchainId": 5, "quests": [{"id": 61}]}))
    assert db.events == ["begin", "rollback"]


async def test_requirement_with_server_ids(db):
    payload = {"questchainId": 5, "requirements": [{"optionId": 14, "requiredOptionId": 12}]}
    await storage.save_quest(_save(payload))
    assert db.statements("INSERT INTO game.quest_option_requirements")[0][1] == (14, 12)


async def test_unresolved_requirement_skipped(db):
    payload = {"questchainId": 5, "requirements": [{"local_option_id": -4, "local_required_option_id": -5}]}
    await storage.save_quest(_save(payload))
    assert not db.ran("INSERT INTO game.quest_option_requirements")


async def test_deletions_cascade(db):
    payload = {"questchainId": 5, "deletedOptions": [700], "deletedQuests": [61]}
    db.on("SELECT option_id FROM game.quest_options WHERE quest_id = $1", [{"option_id": 710}])
    await storage.save_quest(_save(payload))
    deleted_options = [args for _, args in db.statements("DELETE FROM game.quest_options")]
    assert deleted_options == [(700,), (710,)]
    assert db.statements("DELETE FROM game.quests")[0][1] == (61,)
    assert db.ran("WHERE option_id = $1 OR required_option_id = $1")


async def test_bad_stat_type(db):
    payload = {"questchainId": 5, "options": [{"id": -1, "questId": 60, "statType": "wisdom"}]}
    with pytest.raises(ValidationFailed):
        await storage.save_quest(_save(payload))
    assert db.calls == []


# ---------------------------------------------------------------------------
# Deletes
# ---------------------------------------------------------------------------

async def test_delete_option_clears_references(db):
    db.on("DELETE FROM game.quest_options", 700)
    await storage.delete_quest_option(700)
    assert db.statements("DELETE FROM game.quest_option_requirements")[0][1] == (700,)
    assert db.statements("SET requisite_option_id = NULL")[0][1] == (700,)


async def test_delete_missing_option(db):
    with pytest.raises(NotFound):
        await storage.delete_quest_option(700)


async def test_delete_quest_removes_its_options_first(db):
    db.on("SELECT option_id FROM game.quest_options", [{"option_id": 1}, {"option_id": 2}])
    db.on("DELETE FROM game.quests", 61)
    await storage.delete_quest(61)
    sqls = [sql for _, sql, _ in db.calls]
    last_option_delete = max(i for i, s in enumerate(sqls) if s.startswith("DELETE FROM game.quest_options"))
    quest_delete = next(i for i, s in enumerate(sqls) if s.startswith("DELETE FROM game.quests"))
    assert last_option_delete < quest_delete


async def test_delete_missing_quest(db):
    with pytest.raises(NotFound):
        await storage.delete_quest(61)


# ---------------------------------------------------------------------------
# get_quests
# ---------------------------------------------------------------------------

async def test_get_quests_shape(db):
    db.on("FROM game.questchain", [{"questchain_id": 5, "name": "Ring", "description": None, "settlement_id": 2}])
    db.on("FROM game.quests", [{
        "quest_id": 60, "questchain_id": 5, "requisite_option_id": None, "quest_name": "Start",
        "ending": None, "default_entry": True, "asset_id": None, "pos_x": 1.0, "pos_y": 2.0, "sort_order": 0,
    }])
    option = {c: None for c in (
        "stat_type", "stat_required", "effect_id", "effect_amount", "enemy_id", "reward_stat_type",
        "reward_stat_amount", "reward_talent", "reward_item", "reward_perk", "reward_blessing",
        "reward_potion", "reward_silver", "pos_x", "pos_y",
    )}
    option.update({"option_id": 700, "quest_id": 60, "node_text": None, "option_text": "Approach", "start": True})
    db.on("FROM game.quest_options", [option])
    db.on("FROM game.quest_option_requirements", [{"option_id": 700, "required_option_id": 699}])

    result = await storage.get_quests(2)

    assert result["questchains"] == [{"questchainId": 5, "name": "Ring", "description": None, "settlementId": 2}]
    assert result["quests"][0]["id"] == 60
    assert result["quests"][0]["isStart"] is True
    assert result["options"][0]["optionText"] == "Approach"
    assert result["options"][0]["nodeText"] == ""
    assert result["options"][0]["isStart"] is True
    assert result["requirements"] == [{"optionId": 700, "requiredOptionId": 699}]

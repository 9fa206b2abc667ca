"""Staged content endpoints, including the full create -> approve -> merge flow."""

import pytest

from rpg_admin.storage import ITEM


@pytest.fixture
def tables(db):
    """Tiny in-memory game.items / tooling.items behind the fake connection."""
    state = {"live": [], "pending": [], "next_tooling": 1}
    columns = ITEM.columns

    def insert_pending(*args):
        row = dict(zip(["game_id", "action", "version", *columns], args))
        row.update(tooling_id=state["next_tooling"], approved=False)
        state["next_tooling"] += 1
        state["pending"].append(row)
        return row["tooling_id"]

    def toggle(tooling_id):
        for row in state["pending"]:
            if row["tooling_id"] == tooling_id:
                row["approved"] = not row["approved"]
                return row["approved"]
        return None

    def approved():
        return sorted((r for r in state["pending"] if r["approved"]), key=lambda r: r["tooling_id"])

    def insert_live(*args):
        row = dict(zip(columns, args[:-1]))
        row.update(item_id=len(state["live"]) + 1, version=args[-1])
        state["live"].append(row)
        return row["item_id"]

    def drop_pending(tooling_id):
        state["pending"] = [r for r in state["pending"] if r["tooling_id"] != tooling_id]
        return "DELETE 1"

    db.on("INSERT INTO tooling.items", insert_pending)
    db.on("FROM tooling.items ORDER BY tooling_id DESC", lambda: sorted(
        state["pending"], key=lambda r: -r["tooling_id"]))
    db.on("SET approved = NOT approved", toggle)
    db.on("WHERE approved ORDER BY tooling_id FOR UPDATE", approved)
    db.on("INSERT INTO game.items", insert_live)
    db.on("DELETE FROM tooling.items WHERE tooling_id = $1", drop_pending)
    db.on("FROM game.items ORDER BY item_id", lambda: list(state["live"]))
    return state


def test_create_approve_merge_flow(api, tables):
    resp = api.post("/api/createItem", json={
        "name": "Iron Helm", "type": "head", "assetID": 12, "silver": 10, "socket": False,
    })
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["action"] == "insert"
    tooling_id = body["toolingId"]

    listing = api.get("/api/getItems").json()
    assert listing["items"] == []
    assert [(p["toolingId"], p["approved"]) for p in listing["pendingItems"]] == [(tooling_id, False)]

    resp = api.post("/api/toggleApproveItem", json={"toolingId": tooling_id})
    assert resp.json()["approved"] is True

    resp = api.post("/api/mergeItems")
    assert resp.json() == {
        "success": True, "message": "Items merged successfully",
        "inserted": 1, "updated": 0, "skipped": [],
    }

    listing = api.get("/api/getItems").json()
    assert [i["name"] for i in listing["items"]] == ["Iron Helm"]
    assert listing["items"][0]["version"] == 1
    assert listing["pendingItems"] == []


def test_unapproved_rows_are_not_merged(api, tables):
    api.post("/api/createItem", json={"name": "Rag", "type": "chest"})
    resp = api.post("/api/mergeItems")
    assert resp.json()["inserted"] == 0
    assert len(tables["pending"]) == 1
    assert tables["live"] == []


def test_toggle_twice_unapproves(api, tables):
    tooling_id = api.post("/api/createItem", json={"name": "Rag", "type": "chest"}).json()["toolingId"]
    api.post("/api/toggleApproveItem", json={"toolingId": tooling_id})
    resp = api.post("/api/toggleApproveItem", json={"toolingId": tooling_id})
    assert resp.json()["approved"] is False


def test_create_update_form(api, db):
    db.on("SELECT version FROM game.items", 3)
    db.on("INSERT INTO tooling.items", 9)
    resp = api.post("/api/createItem", json={"id": 7, "name": "Iron Helm", "type": "head"})
    assert resp.json() == {
        "success": True, "message": "Item update successfully", "toolingId": 9, "action": "update",
    }


def test_create_missing_name(api, db):
    resp = api.post("/api/createItem", json={"type": "head"})
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Missing required field: name"}


def test_create_non_numeric_id(api, db):
    resp = api.post("/api/createItem", json={"id": "seven", "name": "x", "type": "head"})
    assert resp.status_code == 400


def test_update_of_unknown_item(api, db):
    resp = api.post("/api/createItem", json={"id": 77, "name": "x", "type": "head"})
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_remove_pending(api, tables):
    tooling_id = api.post("/api/createItem", json={"name": "Rag", "type": "chest"}).json()["toolingId"]
    resp = api.post("/api/removePendingItem", json={"toolingId": tooling_id})
    assert resp.json()["success"] is True
    assert tables["pending"] == []
    assert tables["live"] == []


def test_remove_pending_missing(api, db):
    resp = api.post("/api/removePendingItem", json={"toolingId": 5})
    assert resp.status_code == 404


def test_perk_and_enemy_listings(api, db):
    perks = api.get("/api/getPerks").json()
    assert set(perks) == {"success", "effects", "perks", "pendingPerks"}
    enemies = api.get("/api/getEnemies").json()
    assert set(enemies) == {"success", "effects", "enemies", "pendingEnemies"}


def test_create_enemy(api, db):
    db.on("INSERT INTO tooling.enemies", 3)
    resp = api.post("/api/createEnemy", json={
        "name": "Wolf", "messages": [{"type": "onStart", "message": "Grr"}],
    })
    assert resp.json()["message"] == "Enemy insert successfully"


def test_get_effects(api, db):
    db.on("FROM game.effects", [{"effect_id": 1, "name": "Burn", "slot": "weapon", "factor": 2, "description": ""}])
    resp = api.get("/api/getEffects")
    assert resp.json()["effects"][0]["name"] == "Burn"

"""Live-edited world catalogues: talents, concept, settlements, NPCs."""

from fastapi import APIRouter

from rpg_admin import storage

from .models import ConceptBody, NpcBody, SettlementBody, SettlementIdBody, TalentUpdate

router = APIRouter()


# ── Talents ──────────────────────────────────────────────


@router.get("/getTalentsInfo")
async def get_talents():
    return {"success": True, "talents": await storage.get_talents()}


@router.post("/updateTalentInfo")
async def update_talent(body: TalentUpdate):
    """Edit a talent in place (version is bumped)."""
    talent = await storage.update_talent(body.model_dump(by_alias=True))
    return {"success": True, "talent": talent}


# ── Concept ──────────────────────────────────────────────


@router.get("/getConcept")
async def get_concept():
    return {"success": True, **await storage.get_concept()}


@router.post("/saveConcept")
async def save_concept(body: ConceptBody):
    concept = await storage.save_concept(body.model_dump(by_alias=True))
    return {"success": True, "message": "Concept saved successfully", **concept}


# ── Settlements ──────────────────────────────────────────


@router.get("/getSettlements")
async def get_settlements():
    return {"success": True, "settlements": await storage.get_settlements()}


@router.post("/saveSettlement")
async def save_settlement(body: SettlementBody):
    """Insert or update a settlement with its inventories and locations."""
    settlement_id = await storage.save_settlement(body.model_dump())
    return {"success": True, "message": "Settlement saved successfully", "settlementId": settlement_id}


@router.post("/deleteSettlement")
async def delete_settlement(body: SettlementIdBody):
    await storage.delete_settlement(body.settlement_id)
    return {"success": True, "message": "Settlement deleted successfully"}


# ── NPCs ─────────────────────────────────────────────────


@router.get("/getNpcs")
async def get_npcs():
    return {"success": True, "npcs": await storage.get_npcs()}


@router.post("/createNpc")
async def create_npc(body: NpcBody):
    npc = await storage.create_npc(body.model_dump(by_alias=True))
    return {"success": True, "npc": npc}


@router.put("/updateNpc")
async def update_npc(body: NpcBody):
    if not body.npc_id:
        raise storage.ValidationFailed("npcId", "Missing required field: npcId")
    npc = await storage.update_npc(body.npc_id, body.model_dump(by_alias=True))
    return {"success": True, "npc": npc}


@router.delete("/deleteNpc")
async def delete_npc(npcId: int = 0):
    if npcId <= 0:
        raise storage.ValidationFailed("npcId", "Missing required field: npcId")
    await storage.delete_npc(npcId)
    return {"success": True}

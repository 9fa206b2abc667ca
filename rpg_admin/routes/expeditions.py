"""Expedition and quest graph endpoints.

Both designers save whole graphs with client-local (negative) ids and get
back a local -> server id mapping.
"""

from fastapi import APIRouter

from rpg_admin import storage
from rpg_admin.graph import ExpeditionSave, QuestSave

from .models import CreateQuestBody, OptionIdBody, QuestIdBody, SlideIdBody

router = APIRouter()


# ── Expeditions ──────────────────────────────────────────


@router.post("/saveExpedition")
async def save_expedition(body: ExpeditionSave):
    """Persist an expedition graph; returns slide and option id mappings."""
    slide_mapping, option_mapping = await storage.save_expedition(body)
    return {
        "success": True,
        "message": "Expedition saved successfully",
        "slideMapping": slide_mapping,
        "optionMapping": option_mapping,
    }


@router.get("/getExpedition")
async def get_expedition(settlementId: int | None = None):
    """Staged slides with nested options and connections."""
    return {"success": True, "slides": await storage.get_expedition(settlementId)}


@router.post("/deleteExpeditionSlide")
async def delete_expedition_slide(body: SlideIdBody):
    await storage.delete_expedition_slide(body.slide_id)
    return {"success": True, "message": "Slide deleted successfully"}


@router.post("/deleteExpeditionOption")
async def delete_expedition_option(body: OptionIdBody):
    await storage.delete_expedition_option(body.option_id)
    return {"success": True, "message": "Option deleted successfully"}


@router.post("/mergeExpeditions")
async def merge_expeditions():
    """Copy the staged expedition graph into the live tables."""
    result = await storage.merge_expeditions()
    return {"success": True, "message": "Expeditions merged successfully", **result}


# ── Quests ───────────────────────────────────────────────


@router.get("/getQuests")
async def get_quests(settlementId: int | None = None):
    """Quest chains with their quests, options and requirements."""
    return {"success": True, **await storage.get_quests(settlementId)}


@router.post("/createQuest")
async def create_quest(body: CreateQuestBody):
    quest_id, questchain_id = await storage.create_quest(body.quest_name, body.settlement_id)
    return {"success": True, "questId": quest_id, "questchainId": questchain_id}


@router.post("/saveQuest")
async def save_quest(body: QuestSave):
    """Persist a quest graph; returns quest and option id mappings."""
    return {"success": True, **await storage.save_quest(body)}


@router.post("/deleteQuestOption")
async def delete_quest_option(body: OptionIdBody):
    await storage.delete_quest_option(body.option_id)
    return {"success": True, "message": "Option deleted successfully"}


@router.post("/deleteQuest")
async def delete_quest(body: QuestIdBody):
    await storage.delete_quest(body.quest_id)
    return {"success": True, "message": "Quest deleted successfully"}

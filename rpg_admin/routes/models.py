"""Pydantic request models for API endpoints.

Wire keys are camelCase unless noted; settlements keep the snake_case keys
of their table columns.
"""

from typing import Any

from pydantic import AliasChoices, BaseModel, Field

from rpg_admin.graph import WireModel


class ToolingIdBody(WireModel):
    tooling_id: int


class AssetUpload(BaseModel):
    asset_id: int | None = Field(None, validation_alias=AliasChoices("assetID", "assetId", "asset_id"))
    image_data: str | None = Field(None, validation_alias=AliasChoices("imageData", "data", "image_data"))
    content_type: str = Field("image/webp", validation_alias=AliasChoices("contentType", "content_type"))
    filename: str | None = None


class SignedUrlBody(BaseModel):
    key: str


class SlideIdBody(WireModel):
    slide_id: int


class OptionIdBody(WireModel):
    option_id: int


class QuestIdBody(WireModel):
    quest_id: int


class CreateQuestBody(WireModel):
    quest_name: str = ""
    settlement_id: int | None = None


class TalentUpdate(WireModel):
    talent_id: int
    talent_name: str = ""
    asset_id: int = 0
    max_points: int = 0
    perk_slot: bool | None = None
    effect_id: int | None = None
    factor: int | None = None
    description: str | None = None


class ConceptBody(WireModel):
    payload: Any = None
    system_prompt: Any = None
    wilds_prompt: Any = None
    expedition_cluster_prompt: Any = None
    expedition_json_schema: Any = None


class LocationBody(BaseModel):
    location_id: int | None = None
    name: str = ""
    description: str = ""
    texture_id: int | None = None


class SettlementBody(BaseModel):
    settlement_id: int | None = None
    settlement_name: str = ""
    faction: int | None = None
    blacksmith: bool = False
    alchemist: bool = False
    enchanter: bool = False
    trainer: bool = False
    church: bool = False
    blessing1: int | None = None
    blessing2: int | None = None
    blessing3: int | None = None
    settlement_asset_id: int | None = None
    vendor_asset_id: int | None = None
    blacksmith_asset_id: int | None = None
    alchemist_asset_id: int | None = None
    enchanter_asset_id: int | None = None
    trainer_asset_id: int | None = None
    church_asset_id: int | None = None
    description: str | None = None
    key_issues: str | None = None
    recent_events: str | None = None
    context: str | None = None
    expedition_asset_id: int | None = None
    expedition_description: str | None = None
    arena_asset_id: int | None = None
    vendor_on_entered: Any = None
    vendor_on_sold: Any = None
    vendor_on_bought: Any = None
    utility_on_entered: Any = None
    utility_on_placed: Any = None
    utility_on_action: Any = None
    vendor_items: list[int] = []
    enchanter_effects: list[int] = []
    locations: list[LocationBody] = []


class SettlementIdBody(WireModel):
    settlement_id: int


class NpcBody(WireModel):
    npc_id: int | None = None
    name: str = ""
    context: str | None = None
    role: str | None = None
    personality: list[str] = []
    goals: list[str] = []
    settlement_id: int | None = None


class BannedWordBody(BaseModel):
    word: str = ""
    severity: int | None = None


class BannedWordIdBody(BaseModel):
    id: int = 0


class CreateServerBody(WireModel):
    name: str | None = None
    starts_at: str | None = None

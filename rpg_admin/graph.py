"""Graph-authoring payloads and client/server node identities.

The designer canvases (expeditions, quests) number nodes they have not
saved yet with negative integers. On the way in every wire id becomes
either a LocalId or a ServerId; storage only ever sees server ids after
an IdMapping has resolved them.
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class LocalId(BaseModel):
    """A node the client created but the server has not stored yet."""

    model_config = ConfigDict(frozen=True)
    n: int


class ServerId(BaseModel):
    """A node that already has a row."""

    model_config = ConfigDict(frozen=True)
    n: int


NodeId = LocalId | ServerId


def parse_id(value: int) -> NodeId:
    """Negative wire ids are client-local, positive ones are server ids."""
    if value < 0:
        return LocalId(n=value)
    if value > 0:
        return ServerId(n=value)
    raise ValueError("node id 0 is neither local nor server")


class IdMapping:
    """Accumulates local -> server ids while a save runs."""

    def __init__(self) -> None:
        self._server: dict[int, int] = {}

    def bind(self, local: LocalId, server_id: int) -> None:
        self._server[local.n] = server_id

    def __contains__(self, local: LocalId) -> bool:
        return local.n in self._server

    def resolve(self, ref: NodeId) -> int | None:
        if isinstance(ref, ServerId):
            return ref.n
        return self._server.get(ref.n)

    def resolve_wire(self, value: int | None) -> int | None:
        """Resolve a raw wire id; None or 0 resolves to None."""
        if not value:
            return None
        return self.resolve(parse_id(value))

    def to_wire(self) -> dict[str, int]:
        return {str(local): server for local, server in self._server.items()}


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Expeditions
# ---------------------------------------------------------------------------

class ExpeditionConnection(WireModel):
    target_slide_id: int
    weight: int | None = 1


class ExpeditionOption(WireModel):
    id: int | None = None
    text: str = ""
    stat_type: str | None = None
    stat_required: int | None = None
    effect_id: int | None = None
    effect_amount: int | None = None
    enemy_id: int | None = None
    faction_required: int | None = None
    silver_required: int | None = None
    connections: list[ExpeditionConnection] = []


class ExpeditionSlide(WireModel):
    id: int
    text: str = ""
    asset_id: int | None = None
    effect_id: int | None = None
    effect_factor: int | None = None
    is_start: bool = False
    reward_stat_type: str | None = None
    reward_stat_amount: int | None = None
    reward_talent: int | None = None
    reward_item: int | None = None
    reward_perk: int | None = None
    reward_blessing: int | None = None
    reward_potion: int | None = None
    reward_silver: int | None = None
    pos_x: float | None = None
    pos_y: float | None = None
    options: list[ExpeditionOption] = []


class DeletedConnection(WireModel):
    option_id: int
    target_slide_id: int


class ExpeditionSave(WireModel):
    slides: list[ExpeditionSlide] = []
    deleted_slides: list[int] = []
    deleted_options: list[int] = []
    deleted_connections: list[DeletedConnection] = []
    settlement_id: int | None = None


# ---------------------------------------------------------------------------
# Quests
# ---------------------------------------------------------------------------

class QuestNode(WireModel):
    id: int
    questchain_id: int | None = None
    quest_name: str = ""
    is_start: bool = False
    ending: str | None = None
    asset_id: int | None = None
    pos_x: float | None = None
    pos_y: float | None = None
    sort_order: int | None = None
    requisite_option_id: int | None = None


class QuestOption(WireModel):
    id: int
    quest_id: int
    node_text: str = ""
    option_text: str = ""
    is_start: bool = False
    stat_type: str | None = None
    stat_required: int | None = None
    effect_id: int | None = None
    effect_amount: int | None = None
    enemy_id: int | None = None
    reward_stat_type: str | None = None
    reward_stat_amount: int | None = None
    reward_talent: int | None = None
    reward_item: int | None = None
    reward_perk: int | None = None
    reward_blessing: int | None = None
    reward_potion: int | None = None
    reward_silver: int | None = None
    pos_x: float | None = None
    pos_y: float | None = None


class QuestRequirement(BaseModel):
    """`option` can only be chosen once `required option` was chosen earlier.

    Unsaved options are named by local ids; options the client already
    knows the server id of may be named either way.
    """

    local_option_id: int | None = Field(
        None, validation_alias=AliasChoices("local_option_id", "localOptionId", "optionLocalId")
    )
    local_required_option_id: int | None = Field(
        None,
        validation_alias=AliasChoices(
            "local_required_option_id", "localRequiredOptionId", "requiredOptionLocalId"
        ),
    )
    option_id: int | None = Field(None, validation_alias=AliasChoices("option_id", "optionId"))
    required_option_id: int | None = Field(
        None, validation_alias=AliasChoices("required_option_id", "requiredOptionId")
    )


class QuestSave(WireModel):
    questchain_id: int | None = None
    questchain_name: str | None = None
    settlement_id: int | None = None
    quests: list[QuestNode] = []
    options: list[QuestOption] = []
    requirements: list[QuestRequirement] = []
    deleted_quests: list[int] = []
    deleted_options: list[int] = []

"""Tests for rpg_admin.graph: node identities and wire payloads."""

import pytest

from rpg_admin.graph import (
    ExpeditionSave,
    IdMapping,
    LocalId,
    QuestSave,
    ServerId,
    parse_id,
)


def test_parse_id():
    assert parse_id(-3) == LocalId(n=-3)
    assert parse_id(7) == ServerId(n=7)
    with pytest.raises(ValueError):
        parse_id(0)


def test_mapping_resolves_local_and_server():
    mapping = IdMapping()
    mapping.bind(LocalId(n=-1), 101)
    assert LocalId(n=-1) in mapping
    assert LocalId(n=-2) not in mapping
    assert mapping.resolve(LocalId(n=-1)) == 101
    assert mapping.resolve(LocalId(n=-2)) is None
    assert mapping.resolve(ServerId(n=55)) == 55


def test_resolve_wire_treats_zero_as_absent():
    mapping = IdMapping()
    mapping.bind(LocalId(n=-4), 9)
    assert mapping.resolve_wire(None) is None
    assert mapping.resolve_wire(0) is None
    assert mapping.resolve_wire(-4) == 9
    assert mapping.resolve_wire(12) == 12


def test_mapping_wire_keys_are_strings():
    mapping = IdMapping()
    mapping.bind(LocalId(n=-1), 101)
    mapping.bind(LocalId(n=-2), 102)
    assert mapping.to_wire() == {"-1": 101, "-2": 102}


def test_expedition_payload_camel_case():
    body = ExpeditionSave.model_validate({
        "slides": [{
            "id": -1,
            "text": "start",
            "isStart": True,
            "posX": 10,
            "options": [{"text": "flee", "statType": "luck", "connections": [{"targetSlideId": -2, "weight": 0}]}],
        }],
        "deletedSlides": [4],
        "deletedConnections": [{"optionId": 3, "targetSlideId": 8}],
        "settlementId": 2,
    })
    slide = body.slides[0]
    assert slide.is_start is True
    assert slide.options[0].stat_type == "luck"
    assert slide.options[0].connections[0].target_slide_id == -2
    assert body.deleted_connections[0].option_id == 3
    assert body.settlement_id == 2


def test_quest_requirement_key_variants():
    body = QuestSave.model_validate({
        "requirements": [
            {"local_option_id": -2, "local_required_option_id": -1},
            {"optionId": 14, "requiredOptionId": 12},
        ],
    })
    first, second = body.requirements
    assert (first.local_option_id, first.local_required_option_id) == (-2, -1)
    assert (second.option_id, second.required_option_id) == (14, 12)

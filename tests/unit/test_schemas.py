from typing import Any

import pytest
from pydantic import ValidationError

from crusade.schemas import UnitRecord


@pytest.fixture
def sample_unit_data() -> dict[str, Any]:
    return {
        "name": "  Assault Intercessors ",
        "unit_type": "Assault Intercessor Squad",
        "battlefield_role": "Troops",
        "points_cost": 75,
        "keywords": "infantry, battleline, , grenades",
        "equipment": ["Heavy bolt pistol", "Astartes chainsword"],
    }


def test_unit_record(sample_unit_data):
    record = UnitRecord(**sample_unit_data)

    assert record.name == "Assault Intercessors"
    assert record.keywords == ["INFANTRY", "BATTLELINE", "GRENADES"]
    assert record.is_character is None
    assert record.can_gain_xp is True
    assert record.experience_points == 0


def test_unit_record_keyword_list_kept(sample_unit_data):
    sample_unit_data["keywords"] = ["Infantry", "Character"]

    record = UnitRecord(**sample_unit_data)

    assert record.keywords == ["Infantry", "Character"]


def test_unit_record_ignores_unknown_fields(sample_unit_data):
    sample_unit_data["wahapedia_id"] = "000000123"

    record = UnitRecord(**sample_unit_data)

    assert "wahapedia_id" not in record.model_dump()


@pytest.mark.parametrize(
    ("field", "value"),
    [("name", "   "), ("points_cost", -10), ("experience_points", -1), ("points_cost", "many")],
)
def test_unit_record_validation(sample_unit_data, field, value):
    sample_unit_data[field] = value

    with pytest.raises(ValidationError):
        UnitRecord(**sample_unit_data)


def test_unit_record_explicit_flags(sample_unit_data):
    record = UnitRecord(**sample_unit_data, is_character=True, can_gain_xp=False)

    assert record.is_character is True
    assert record.can_gain_xp is False

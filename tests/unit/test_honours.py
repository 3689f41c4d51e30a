"""Tests for the Battle Honour and Battle Scar ledger."""

from __future__ import annotations

from crusade.domain import models as dm
from crusade.domain.enums import HonourCategory, RelicTier
from crusade.domain.honours import (
    add_honour,
    add_scar,
    add_weapon_modifications,
    available_scars,
    can_gain_honour,
    honour_cap,
    make_relic,
    make_trait,
    remove_honour,
    remove_scar,
    remove_weapon_modifications,
    roll_scar,
    roll_weapon_modifications,
)
from crusade.domain.results import ErrorKind


def _unit(**kwargs) -> dm.Unit:
    defaults = {"id": dm.UnitID("u1"), "owner_id": dm.PlayerID("p1"), "name": "Sergeant Kaine"}
    defaults.update(kwargs)
    return dm.Unit(**defaults)


class TestHonourCaps:
    def test_cap_exceeded_leaves_list_unchanged(self):
        unit = _unit()
        for name in ("Indomitable", "Deadly Marksmen", "Hardened Veterans"):
            assert add_honour(unit, make_trait(name))

        result = add_honour(unit, make_trait("Swift"))

        assert not result
        assert result.error == ErrorKind.CAP_EXCEEDED
        assert "3" in result.message
        assert len(unit.battle_honours) == 3

    def test_characters_have_a_higher_cap(self):
        hero = _unit(is_character=True)
        veterans = _unit(has_legendary_veterans=True)

        assert honour_cap(hero) == 6
        assert honour_cap(veterans) == 6
        assert honour_cap(_unit()) == 3
        assert can_gain_honour(hero)

    def test_duplicate_trait_rejected(self):
        unit = _unit()
        add_honour(unit, make_trait("Indomitable"))

        result = add_honour(unit, make_trait("Indomitable"))

        assert result.error == ErrorKind.VALIDATION
        assert len(unit.battle_honours) == 1

    def test_honour_clears_pending_selection_and_updates_cp(self):
        unit = _unit(experience_points=6, rank=2, pending_honour_selection=True)

        result = add_honour(unit, make_trait("Indomitable"))

        assert result
        assert not unit.pending_honour_selection
        assert unit.crusade_points == 2


class TestRelics:
    def test_relic_requires_character(self):
        unit = _unit()

        result = add_honour(unit, make_relic("Auspex of Foresight", RelicTier.ARTIFICER))

        assert result.error == ErrorKind.CATEGORY_VIOLATION
        assert unit.battle_honours == []

    def test_relic_tier_requires_rank(self):
        hero = _unit(is_character=True, experience_points=12, rank=3)

        result = add_honour(hero, make_relic("Blade of Ages", RelicTier.ANTIQUITY))

        assert result.error == ErrorKind.VALIDATION
        assert "Heroic" in result.message

    def test_relic_value_follows_tier(self):
        hero = _unit(is_character=True, experience_points=24, rank=5)
        relic = make_relic("Crown of Legends", RelicTier.LEGENDARY)

        result = add_honour(hero, relic)

        assert result
        assert relic.crusade_points == 3
        assert hero.crusade_points == 4 + 3


class TestWeaponModifications:
    def test_two_distinct_modifications(self):
        unit = _unit()

        result = add_weapon_modifications(unit, "Bolt rifle", [1, 2])

        assert result
        honour = unit.battle_honours[0]
        assert honour.category == HonourCategory.WEAPON_MOD
        assert honour.weapon_name == "Bolt rifle"
        assert honour.modifications == [1, 2]

    def test_same_modification_twice_rejected(self):
        unit = _unit()

        result = add_weapon_modifications(unit, "Bolt rifle", [3, 3])

        assert result.error == ErrorKind.VALIDATION
        assert unit.battle_honours == []

    def test_unknown_modification_rejected(self):
        result = add_weapon_modifications(_unit(), "Bolt rifle", [1, 9])

        assert result.error == ErrorKind.VALIDATION

    def test_weapon_modified_once(self):
        unit = _unit()
        add_weapon_modifications(unit, "Bolt rifle", [1, 2])

        result = add_weapon_modifications(unit, "Bolt rifle", [3, 4])

        assert not result
        assert len(unit.battle_honours) == 1

    def test_remove_weapon_modifications(self):
        unit = _unit()
        add_weapon_modifications(unit, "Bolt rifle", [1, 2])
        add_honour(unit, make_trait("Indomitable"))

        removed = remove_weapon_modifications(unit, "Bolt rifle")

        assert len(removed) == 1
        assert [h.name for h in unit.battle_honours] == ["Indomitable"]
        assert unit.crusade_points == 1

    def test_rolled_modifications_are_deterministic_and_distinct(self):
        first = roll_weapon_modifications("c1:battle:b1:weapon:u1")
        second = roll_weapon_modifications("c1:battle:b1:weapon:u1")

        assert first == second
        assert len(set(first)) == 2


def test_remove_honour_by_id():
    unit = _unit()
    add_honour(unit, make_trait("Indomitable"))
    honour_id = unit.battle_honours[0].id

    assert remove_honour(unit, honour_id)
    assert unit.battle_honours == []
    assert remove_honour(unit, honour_id).error == ErrorKind.NOT_FOUND


class TestScars:
    def test_scar_cap(self):
        unit = _unit()
        for name in ("Fatigued", "Disgraced", "Deep Scars"):
            assert add_scar(unit, name)

        result = add_scar(unit, "Battle-Weary")

        assert result.error == ErrorKind.CAP_EXCEEDED
        assert len(unit.battle_scars) == 3
        assert unit.crusade_points == -3

    def test_duplicate_and_unknown_scars(self):
        unit = _unit()
        add_scar(unit, "Fatigued")

        assert add_scar(unit, "Fatigued").error == ErrorKind.VALIDATION
        assert add_scar(unit, "Stubbed Toe").error == ErrorKind.VALIDATION
        assert "Fatigued" not in available_scars(unit)

    def test_remove_scar_by_name_or_id(self):
        unit = _unit()
        add_scar(unit, "Fatigued")
        add_scar(unit, "Disgraced")
        scar_id = unit.battle_scars[1].id

        assert remove_scar(unit, "Fatigued")
        assert remove_scar(unit, scar_id)
        assert unit.battle_scars == []
        assert remove_scar(unit, "Fatigued").error == ErrorKind.NOT_FOUND

    def test_roll_scar_skips_held_scars(self):
        unit = _unit()
        for name in ("Crippling Damage", "Battle-Weary", "Fatigued", "Disgraced", "Mark of Shame"):
            unit.battle_scars.append(dm.Scar(id=dm.ScarID(name), name=name))

        assert roll_scar(unit, "seed") == "Deep Scars"

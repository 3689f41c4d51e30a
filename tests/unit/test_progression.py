"""Tests for experience, rank and Crusade Point calculations."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from crusade.domain import models as dm
from crusade.domain.enums import HonourCategory
from crusade.domain.progression import (
    add_experience,
    award_battle_experience,
    award_every_third_kill,
    award_marked_for_greatness,
    calculate_crusade_points,
    calculate_rank,
    crusade_points_breakdown,
    next_third_kill_threshold,
    rank_name,
    refresh_derived,
    xp_cap,
    xp_for_next_rank,
)
from crusade.domain.rules_config import resolve_rules


def _unit(**kwargs) -> dm.Unit:
    defaults = {"id": dm.UnitID("u1"), "owner_id": dm.PlayerID("p1"), "name": "Intercessors"}
    defaults.update(kwargs)
    return dm.Unit(**defaults)


def _trait(name: str = "Indomitable", points: int = 1) -> dm.Honour:
    return dm.Honour(
        id=dm.HonourID(dm.new_id()), name=name, category=HonourCategory.TRAIT, crusade_points=points
    )


def _scar(name: str = "Fatigued") -> dm.Scar:
    return dm.Scar(id=dm.ScarID(dm.new_id()), name=name)


class TestCrusadePoints:
    def test_scenario_seven_xp_two_traits_one_scar(self):
        unit = _unit(
            experience_points=7,
            battle_honours=[_trait("Indomitable"), _trait("Deadly Marksmen")],
            battle_scars=[_scar()],
        )

        assert calculate_rank(unit.experience_points) == 2
        assert rank_name(2) == "Blooded"
        assert calculate_crusade_points(unit) == 2

    def test_three_scars_without_xp_is_negative(self):
        unit = _unit(battle_scars=[_scar("Fatigued"), _scar("Disgraced"), _scar("Deep Scars")])

        assert calculate_crusade_points(unit) == -3

    def test_titanic_doubles_every_honour(self):
        relic = dm.Honour(
            id=dm.HonourID("h2"), name="Relic", category=HonourCategory.RELIC, crusade_points=2
        )
        unit = _unit(is_titanic=True, battle_honours=[_trait(), relic])

        breakdown = crusade_points_breakdown(unit)

        assert breakdown.from_honours == 6
        assert breakdown.total == 6

    @given(
        xp=st.integers(min_value=0, max_value=200),
        honours=st.integers(min_value=0, max_value=6),
        scars=st.integers(min_value=0, max_value=3),
        titanic=st.booleans(),
    )
    def test_formula_holds_for_any_unit(self, xp, honours, scars, titanic):
        unit = _unit(
            experience_points=xp,
            is_titanic=titanic,
            battle_honours=[_trait(f"T{i}") for i in range(honours)],
            battle_scars=[_scar(f"S{i}") for i in range(scars)],
        )

        multiplier = 2 if titanic else 1
        assert calculate_crusade_points(unit) == xp // 5 + honours * multiplier - scars


class TestRank:
    @pytest.mark.parametrize(
        ("xp", "rank"),
        [(0, 1), (5, 1), (6, 2), (11, 2), (12, 3), (18, 4), (23, 4), (24, 5), (99, 5)],
    )
    def test_thresholds(self, xp, rank):
        assert calculate_rank(xp) == rank

    def test_rank_names(self):
        assert [rank_name(r) for r in range(1, 6)] == [
            "Battle-Ready",
            "Blooded",
            "Battle-Hardened",
            "Heroic",
            "Legendary",
        ]
        assert rank_name(9) == "Unknown"

    def test_xp_for_next_rank(self):
        assert xp_for_next_rank(_unit(experience_points=4)) == 2
        assert xp_for_next_rank(_unit(experience_points=30, is_character=True)) is None

    def test_next_third_kill_threshold(self):
        assert next_third_kill_threshold(0) == 3
        assert next_third_kill_threshold(3) == 6
        assert next_third_kill_threshold(7) == 9

    def test_overridden_thresholds_are_used(self):
        rules = resolve_rules("10th", {"progression": {"xp_per_crusade_point": 2}})
        unit = _unit(experience_points=7)

        assert calculate_crusade_points(unit, rules=rules) == 3


class TestExperience:
    def test_rank_up_flags_pending_honour(self):
        unit = _unit(experience_points=5)

        award = add_experience(unit, 1)

        assert award.ranked_up
        assert unit.rank == 2
        assert unit.pending_honour_selection

    def test_non_character_cap(self):
        unit = _unit(experience_points=29)

        award = add_experience(unit, 3)

        assert unit.experience_points == 30
        assert award.gained == 1
        assert award.capped
        assert xp_cap(unit) == 30

    def test_character_and_legendary_veterans_are_uncapped(self):
        hero = _unit(experience_points=30, is_character=True)
        veterans = _unit(experience_points=30, has_legendary_veterans=True)

        add_experience(hero, 5)
        add_experience(veterans, 5)

        assert hero.experience_points == 35
        assert veterans.experience_points == 35

    def test_units_that_cannot_gain_xp(self):
        unit = _unit(can_gain_xp=False)

        award = add_experience(unit, 3)

        assert unit.experience_points == 0
        assert award.gained == 0
        assert not award.capped

    def test_negative_amounts_are_ignored(self):
        unit = _unit(experience_points=4)

        add_experience(unit, -3)

        assert unit.experience_points == 4

    def test_battle_awards(self):
        first = _unit(id=dm.UnitID("a"))
        second = _unit(id=dm.UnitID("b"))

        awards = award_battle_experience([first, second])
        kill_award = award_every_third_kill(first, 7)
        marked = award_marked_for_greatness(second)

        assert [a.gained for a in awards] == [1, 1]
        assert kill_award.gained == 2
        assert marked.gained == 3
        assert first.experience_points == 3
        assert second.experience_points == 4


def test_refresh_derived_recomputes_everything():
    campaign = dm.Campaign(
        id=dm.CampaignID("c1"), name="Test", created_at=dm.utcnow(), modified_at=dm.utcnow()
    )
    player = dm.Player(id=dm.PlayerID("p1"), name="Alice", order_of_battle=[dm.UnitID("u1")])
    unit = _unit(experience_points=13, points_cost=150, rank=1, crusade_points=0)
    campaign.players[player.id] = player
    campaign.units[unit.id] = unit

    refresh_derived(campaign)

    assert unit.rank == 3
    assert unit.crusade_points == 2
    assert player.supply_used == 150

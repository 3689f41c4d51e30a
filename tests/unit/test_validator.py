"""Tests for whole-campaign validation."""

from __future__ import annotations

import copy

from crusade.domain import models as dm
from crusade.domain.battle import (
    OutOfActionChoice,
    complete_battle,
    deploy_unit,
    mark_destroyed,
    start_battle,
)
from crusade.domain.enums import EventType, HonourCategory, OutOfActionConsequence
from crusade.domain.events import events_of_type
from crusade.domain.honours import make_trait
from crusade.domain.roster import add_player, add_unit, create_campaign
from crusade.domain.validator import render_report, validate_campaign


def _campaign():
    campaign = create_campaign("Validation").entity
    player = add_player(campaign, "Alice").entity
    unit = add_unit(campaign, player.id, {"name": "Intercessors", "points_cost": 90}).entity
    return campaign, player, unit


def _codes(issues) -> set[str]:
    return {issue.code for issue in issues}


def test_clean_campaign_is_valid():
    campaign, *_ = _campaign()

    report = validate_campaign(campaign)

    assert report.is_valid
    assert report.warnings == []
    assert report.auto_fixed == []


def test_validation_is_idempotent_and_read_only():
    campaign, player, unit = _campaign()
    player.requisition_points = -2
    unit.rank = 4
    before = copy.deepcopy(campaign)

    first = validate_campaign(campaign)
    second = validate_campaign(campaign)

    assert first == second
    assert campaign == before


def test_dangling_references_are_errors():
    campaign, player, unit = _campaign()
    player.order_of_battle.append(dm.UnitID("ghost"))
    campaign.units[unit.id].owner_id = dm.PlayerID("nobody")

    report = validate_campaign(campaign)

    assert not report.is_valid
    assert {"dangling_unit", "dangling_owner", "roster_owner_mismatch"} <= _codes(report.errors)


def test_negative_counters_are_errors():
    campaign, player, unit = _campaign()
    unit.experience_points = -1
    player.victories = -3

    report = validate_campaign(campaign)

    assert "negative_counter" in _codes(report.errors)


def test_auto_fix_clamps_negative_resources():
    campaign, player, _ = _campaign()
    player.requisition_points = -2
    player.resources["territory"] = -1
    campaign.resources["glory"] = -4

    report = validate_campaign(campaign, auto_fix=True)

    assert report.is_valid
    assert len(report.auto_fixed) == 3
    assert player.requisition_points == 0
    assert player.resources["territory"] == 0
    assert campaign.resources["glory"] == 0
    assert events_of_type(campaign, EventType.AUTO_FIX)


def test_soft_limits_are_warnings():
    campaign, player, unit = _campaign()
    unit.points_cost = 1500
    player.supply_used = 1500
    unit.battle_honours = [make_trait(f"Trait {i}") for i in range(4)]
    unit.battle_honours.append(
        dm.Honour(id=dm.HonourID("relic"), name="Relic", category=HonourCategory.RELIC)
    )
    unit.experience_points = 35
    player.requisition_points = 7

    report = validate_campaign(campaign)

    assert report.is_valid
    assert {
        "supply_limit_exceeded",
        "honour_cap_exceeded",
        "relic_on_non_character",
        "xp_over_cap",
        "rp_over_max",
        "rank_drift",
        "crusade_points_drift",
    } <= _codes(report.warnings)


def test_scar_cap_is_an_error():
    campaign, _, unit = _campaign()
    unit.battle_scars = [dm.Scar(id=dm.ScarID(str(i)), name=f"Scar {i}") for i in range(4)]

    report = validate_campaign(campaign)

    assert "scar_cap_exceeded" in _codes(report.errors)


def test_battle_references_fallen_units():
    campaign, player, unit = _campaign()
    battle = start_battle(campaign, participants=[player.id]).entity
    deploy_unit(campaign, battle.id, unit.id)
    mark_destroyed(campaign, battle.id, unit.id)
    complete_battle(
        campaign,
        battle.id,
        rolls={unit.id: 1},
        choices={unit.id: OutOfActionChoice(consequence=OutOfActionConsequence.DEVASTATING_BLOW)},
    )

    assert unit.id in campaign.fallen_units
    assert validate_campaign(campaign).is_valid


def test_battle_winner_must_participate():
    campaign, player, _ = _campaign()
    other = add_player(campaign, "Bob").entity
    battle = start_battle(campaign, participants=[player.id]).entity
    battle.winner_id = other.id

    report = validate_campaign(campaign)

    assert "winner_not_participant" in _codes(report.errors)


def test_event_log_overflow_warning():
    campaign, *_ = _campaign()
    entry = campaign.event_log[0]
    campaign.event_log = [entry] * 1001

    report = validate_campaign(campaign)

    assert "event_log_overflow" in _codes(report.warnings)


def test_render_report():
    campaign, player, _ = _campaign()
    player.order_of_battle.append(dm.UnitID("ghost"))

    text = render_report(validate_campaign(campaign))

    assert text.startswith("Campaign has errors")
    assert "[dangling_unit]" in text

"""Tests for the Out of Action state machine."""

from __future__ import annotations

from crusade.domain import models as dm
from crusade.domain.enums import EventType, OutOfActionConsequence, OutOfActionState
from crusade.domain.events import events_of_type
from crusade.domain.honours import add_scar, make_trait
from crusade.domain.out_of_action import (
    battle_scar_allowed,
    begin_test,
    choose_consequence,
    resolve_out_of_action,
    take_test,
)
from crusade.domain.results import ErrorKind


def _campaign(**unit_kwargs) -> tuple[dm.Campaign, dm.Unit]:
    now = dm.utcnow()
    campaign = dm.Campaign(id=dm.CampaignID("c1"), name="Test", created_at=now, modified_at=now)
    player = dm.Player(id=dm.PlayerID("p1"), name="Alice")
    unit = dm.Unit(id=dm.UnitID("u1"), owner_id=player.id, name="Hellblasters", points_cost=115, **unit_kwargs)
    player.order_of_battle.append(unit.id)
    player.supply_used = unit.points_cost
    campaign.players[player.id] = player
    campaign.units[unit.id] = unit
    return campaign, unit


def test_passing_roll_survives():
    campaign, unit = _campaign()
    test = begin_test(unit.id)

    result = take_test(campaign, test, roll=4)

    assert result
    assert test.state == OutOfActionState.SURVIVED
    assert test.roll == 4
    assert events_of_type(campaign, EventType.OUT_OF_ACTION_PASS)


def test_failed_roll_is_pending():
    campaign, unit = _campaign()
    test = begin_test(unit.id)

    take_test(campaign, test, roll=1)

    assert test.state == OutOfActionState.TEST_PENDING
    assert take_test(campaign, test, roll=3).error == ErrorKind.VALIDATION


def test_impossible_roll_rejected():
    campaign, unit = _campaign()
    test = begin_test(unit.id)

    result = take_test(campaign, test, roll=7)

    assert result.error == ErrorKind.VALIDATION
    assert test.state == OutOfActionState.DESTROYED


def test_seeded_roll_is_reproducible():
    first_campaign, unit = _campaign()
    second_campaign, _ = _campaign()
    first, second = begin_test(unit.id), begin_test(unit.id)

    take_test(first_campaign, first, battle_id=dm.BattleID("b1"))
    take_test(second_campaign, second, battle_id=dm.BattleID("b1"))

    assert first.roll == second.roll
    assert 1 <= first.roll <= 6


def test_units_that_cannot_gain_xp_auto_pass():
    campaign, unit = _campaign(can_gain_xp=False)
    test = begin_test(unit.id)

    take_test(campaign, test, roll=1)

    assert test.auto_passed
    assert test.state == OutOfActionState.SURVIVED


def test_battle_scar_applied():
    campaign, unit = _campaign()

    result = resolve_out_of_action(campaign, unit.id, roll=1, scar_name="Fatigued")

    test = result.entity
    assert test.state == OutOfActionState.CONSEQUENCE_CHOSEN
    assert test.applied == OutOfActionConsequence.BATTLE_SCAR
    assert test.scar_gained == "Fatigued"
    assert [s.name for s in unit.battle_scars] == ["Fatigued"]
    assert unit.crusade_points == -1


def test_scar_at_cap_escalates_to_devastating_blow():
    campaign, unit = _campaign()
    for name in ("Fatigued", "Disgraced", "Deep Scars"):
        add_scar(unit, name)
    unit.battle_honours.append(make_trait("Indomitable"))
    assert not battle_scar_allowed(campaign, unit.id)

    result = resolve_out_of_action(
        campaign, unit.id, roll=1, consequence=OutOfActionConsequence.BATTLE_SCAR
    )

    test = result.entity
    assert result.data["escalated"] is True
    assert test.escalated
    assert test.requested == OutOfActionConsequence.BATTLE_SCAR
    assert test.applied == OutOfActionConsequence.DEVASTATING_BLOW
    assert len(unit.battle_scars) == 3
    assert unit.battle_honours == []
    assert test.honour_removed == "Indomitable"


def test_devastating_blow_removes_chosen_honour():
    campaign, unit = _campaign()
    keep, lose = make_trait("Indomitable"), make_trait("Swift")
    unit.battle_honours.extend([lose, keep])
    test = begin_test(unit.id)
    take_test(campaign, test, roll=1)

    choose_consequence(
        campaign, test, OutOfActionConsequence.DEVASTATING_BLOW, honour_id=lose.id
    )

    assert [h.name for h in unit.battle_honours] == ["Indomitable"]


def test_devastating_blow_without_honours_destroys_unit():
    campaign, unit = _campaign()

    result = resolve_out_of_action(
        campaign,
        unit.id,
        roll=1,
        consequence=OutOfActionConsequence.DEVASTATING_BLOW,
        battle_id=dm.BattleID("b1"),
    )

    assert result.entity.permanently_destroyed
    assert unit.id not in campaign.units
    assert campaign.players["p1"].order_of_battle == []
    assert campaign.players["p1"].supply_used == 0
    fallen = campaign.fallen_units[unit.id]
    assert fallen.name == "Hellblasters"
    assert fallen.battle_id == "b1"
    assert events_of_type(campaign, EventType.UNIT_PERMANENTLY_DESTROYED)


def test_consequence_rejected_when_not_pending():
    campaign, unit = _campaign()
    test = begin_test(unit.id)

    result = choose_consequence(campaign, test, OutOfActionConsequence.BATTLE_SCAR)

    assert result.error == ErrorKind.VALIDATION
    assert unit.battle_scars == []


def test_unknown_honour_rejected_before_changes():
    campaign, unit = _campaign()
    unit.battle_honours.append(make_trait("Indomitable"))
    test = begin_test(unit.id)
    take_test(campaign, test, roll=1)

    result = choose_consequence(
        campaign, test, OutOfActionConsequence.DEVASTATING_BLOW, honour_id=dm.HonourID("missing")
    )

    assert result.error == ErrorKind.NOT_FOUND
    assert test.state == OutOfActionState.TEST_PENDING
    assert len(unit.battle_honours) == 1

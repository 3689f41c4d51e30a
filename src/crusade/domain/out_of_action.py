"""Out of Action tests for units destroyed during a battle.

State machine::

    DESTROYED --take_test--> SURVIVED                (roll above the fail value)
    DESTROYED --take_test--> TEST_PENDING            (roll failed, consequence owed)
    TEST_PENDING --choose_consequence--> CONSEQUENCE_CHOSEN

A Battle Scar requested by a unit already at the scar cap escalates to a
Devastating Blow.  A Devastating Blow on a unit without honours destroys the
unit permanently: it leaves the roster and is recorded in
``campaign.fallen_units``.
"""

from __future__ import annotations

import logging

from crusade.domain.enums import BattleStatus, EventType, OutOfActionConsequence, OutOfActionState
from crusade.domain.events import record_event
from crusade.domain.honours import add_scar, available_scars, remove_honour, roll_scar
from crusade.domain.models import (
    BattleID,
    Campaign,
    FallenUnit,
    HonourID,
    OutOfActionTest,
    UnitID,
    utcnow,
)
from crusade.domain.progression import supply_used
from crusade.domain.results import ErrorKind, OperationResult
from crusade.domain.rules_config import DEFAULT_RULES, RulesConfig
from crusade.utils.rng import dice_range, generate_seed, roll_dice

logger = logging.getLogger(__name__)


def _seed_for(campaign: Campaign, unit_id: UnitID, battle_id: BattleID | None, purpose: str) -> str:
    scope = f"battle:{battle_id}" if battle_id else "manual"
    return generate_seed(campaign.id, scope, f"{purpose}:{unit_id}")


def begin_test(unit_id: UnitID) -> OutOfActionTest:
    return OutOfActionTest(unit_id=unit_id)


def battle_scar_allowed(campaign: Campaign, unit_id: UnitID, *, rules: RulesConfig = DEFAULT_RULES) -> bool:
    """``False`` when a failed test must be resolved as a Devastating Blow."""

    unit = campaign.units.get(unit_id)
    return unit is not None and len(unit.battle_scars) < rules.honours.max_scars


def take_test(
    campaign: Campaign,
    test: OutOfActionTest,
    *,
    roll: int | None = None,
    battle_id: BattleID | None = None,
    rules: RulesConfig = DEFAULT_RULES,
) -> OperationResult[OutOfActionTest]:
    """Roll the Out of Action test; ``roll`` overrides the seeded die."""

    if test.state != OutOfActionState.DESTROYED:
        return OperationResult.fail(
            ErrorKind.VALIDATION, f"Out of Action test already taken ({test.state})", test
        )
    unit = campaign.units.get(test.unit_id)
    if unit is None:
        return OperationResult.fail(ErrorKind.NOT_FOUND, f"Unit {test.unit_id} not found", test)

    if not unit.can_gain_xp:
        test.auto_passed = True
        test.state = OutOfActionState.SURVIVED
        record_event(
            campaign,
            EventType.OUT_OF_ACTION_PASS,
            f"{unit.name} automatically passed its Out of Action test",
            rules=rules,
            unit_id=unit.id,
            battle_id=battle_id,
            roll=None,
            auto_passed=True,
        )
        return OperationResult.ok(f"{unit.name} automatically passes", test)

    lowest, highest = dice_range(rules.out_of_action.dice)
    seed = None
    if roll is None:
        seed = _seed_for(campaign, unit.id, battle_id, "out_of_action")
        roll = roll_dice(seed, rules.out_of_action.dice)["total"]
    elif not lowest <= roll <= highest:
        return OperationResult.fail(
            ErrorKind.VALIDATION,
            f"Roll {roll} is impossible on {rules.out_of_action.dice}",
            test,
        )

    test.roll = roll
    if roll <= rules.out_of_action.fail_on_or_below:
        test.state = OutOfActionState.TEST_PENDING
        logger.warning("Unit %s failed its Out of Action test (rolled %d)", unit.name, roll)
        record_event(
            campaign,
            EventType.OUT_OF_ACTION_FAIL,
            f"{unit.name} failed its Out of Action test (rolled {roll})",
            rules=rules,
            unit_id=unit.id,
            battle_id=battle_id,
            roll=roll,
            seed=seed,
        )
        return OperationResult.ok(f"{unit.name} failed (rolled {roll})", test, roll=roll)

    test.state = OutOfActionState.SURVIVED
    record_event(
        campaign,
        EventType.OUT_OF_ACTION_PASS,
        f"{unit.name} passed its Out of Action test (rolled {roll})",
        rules=rules,
        unit_id=unit.id,
        battle_id=battle_id,
        roll=roll,
        seed=seed,
    )
    return OperationResult.ok(f"{unit.name} passed (rolled {roll})", test, roll=roll)


def destroy_unit_permanently(
    campaign: Campaign,
    unit_id: UnitID,
    *,
    battle_id: BattleID | None = None,
    reason: str = "Devastating Blow with no Battle Honours",
    rules: RulesConfig = DEFAULT_RULES,
) -> OperationResult[FallenUnit]:
    """Remove a unit from its roster and record it among the fallen."""

    unit = campaign.units.pop(unit_id, None)
    if unit is None:
        return OperationResult.fail(ErrorKind.NOT_FOUND, f"Unit {unit_id} not found")

    owner = campaign.players.get(unit.owner_id)
    if owner is not None:
        owner.order_of_battle = [uid for uid in owner.order_of_battle if uid != unit_id]
        owner.supply_used = supply_used(campaign, owner.id)

    for battle in campaign.battles.values():
        if battle.id != battle_id and battle.status == BattleStatus.DRAFT:
            battle.drop_unit(unit_id)

    fallen = FallenUnit(
        unit_id=unit.id,
        name=unit.name,
        owner_id=unit.owner_id,
        destroyed_at=utcnow(),
        battle_id=battle_id,
    )
    campaign.fallen_units[unit.id] = fallen
    logger.warning("Unit %s permanently destroyed: %s", unit.name, reason)
    record_event(
        campaign,
        EventType.UNIT_PERMANENTLY_DESTROYED,
        f"{unit.name} was permanently destroyed",
        rules=rules,
        unit_id=unit.id,
        owner_id=unit.owner_id,
        battle_id=battle_id,
        reason=reason,
    )
    return OperationResult.ok(f"{unit.name} was permanently destroyed", fallen)


def choose_consequence(
    campaign: Campaign,
    test: OutOfActionTest,
    consequence: OutOfActionConsequence,
    *,
    honour_id: HonourID | None = None,
    scar_name: str | None = None,
    battle_id: BattleID | None = None,
    rules: RulesConfig = DEFAULT_RULES,
) -> OperationResult[OutOfActionTest]:
    """Apply the consequence of a failed test.

    ``honour_id`` picks the honour lost to a Devastating Blow (default: the
    most recent).  ``scar_name`` picks the Battle Scar (default: a seeded roll
    among scars the unit does not already have).
    """

    if test.state != OutOfActionState.TEST_PENDING:
        return OperationResult.fail(
            ErrorKind.VALIDATION, f"No consequence is owed in state {test.state}", test
        )
    unit = campaign.units.get(test.unit_id)
    if unit is None:
        return OperationResult.fail(ErrorKind.NOT_FOUND, f"Unit {test.unit_id} not found", test)

    if honour_id is not None and not any(h.id == honour_id for h in unit.battle_honours):
        return OperationResult.fail(
            ErrorKind.NOT_FOUND, f"{unit.name} has no Battle Honour with id {honour_id}", test
        )
    scar_options = available_scars(unit, rules=rules)
    at_scar_cap = len(unit.battle_scars) >= rules.honours.max_scars or not scar_options
    if scar_name is not None and not at_scar_cap and scar_name not in scar_options:
        return OperationResult.fail(
            ErrorKind.VALIDATION, f"{unit.name} cannot gain the {scar_name} Battle Scar", test
        )

    test.requested = consequence
    applied = consequence
    if consequence == OutOfActionConsequence.BATTLE_SCAR and at_scar_cap:
        applied = OutOfActionConsequence.DEVASTATING_BLOW
    test.escalated = applied != consequence
    if test.escalated:
        logger.warning("Unit %s is at the Battle Scar cap; escalating to Devastating Blow", unit.name)

    if applied == OutOfActionConsequence.BATTLE_SCAR:
        name = scar_name or roll_scar(
            unit, _seed_for(campaign, unit.id, battle_id, "battle_scar"), rules=rules
        )
        result = add_scar(unit, name or "", rules=rules)
        if not result:
            return OperationResult.fail(result.error or ErrorKind.VALIDATION, result.message, test)
        test.scar_gained = name
        record_event(
            campaign,
            EventType.BATTLE_SCAR_GAINED,
            f"{unit.name} gained the {name} Battle Scar",
            rules=rules,
            unit_id=unit.id,
            battle_id=battle_id,
            scar=name,
            roll=test.roll,
        )
    elif unit.battle_honours:
        target = honour_id or unit.battle_honours[-1].id
        result = remove_honour(unit, target, rules=rules)
        test.honour_removed = result.data.get("honour_name")
        record_event(
            campaign,
            EventType.DEVASTATING_BLOW,
            f"{unit.name} suffered a Devastating Blow and lost {test.honour_removed}",
            rules=rules,
            unit_id=unit.id,
            battle_id=battle_id,
            honour=test.honour_removed,
            escalated=test.escalated,
            roll=test.roll,
        )
    else:
        record_event(
            campaign,
            EventType.DEVASTATING_BLOW,
            f"{unit.name} suffered a Devastating Blow with no Battle Honours to lose",
            rules=rules,
            unit_id=unit.id,
            battle_id=battle_id,
            escalated=test.escalated,
            roll=test.roll,
        )
        destroy_unit_permanently(campaign, unit.id, battle_id=battle_id, rules=rules)
        test.permanently_destroyed = True

    test.applied = applied
    test.state = OutOfActionState.CONSEQUENCE_CHOSEN
    message = f"{unit.name}: {applied.value.replace('_', ' ')}"
    if test.escalated:
        message += " (escalated from battle scar)"
    return OperationResult.ok(message, test, escalated=test.escalated)


def resolve_out_of_action(
    campaign: Campaign,
    unit_id: UnitID,
    *,
    roll: int | None = None,
    consequence: OutOfActionConsequence = OutOfActionConsequence.BATTLE_SCAR,
    honour_id: HonourID | None = None,
    scar_name: str | None = None,
    battle_id: BattleID | None = None,
    rules: RulesConfig = DEFAULT_RULES,
) -> OperationResult[OutOfActionTest]:
    """Run a full test for one unit: roll and, on a failure, apply ``consequence``."""

    test = begin_test(unit_id)
    result = take_test(campaign, test, roll=roll, battle_id=battle_id, rules=rules)
    if not result or test.state != OutOfActionState.TEST_PENDING:
        return result
    return choose_consequence(
        campaign,
        test,
        consequence,
        honour_id=honour_id,
        scar_name=scar_name,
        battle_id=battle_id,
        rules=rules,
    )

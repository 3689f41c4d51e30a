"""Battle records and post-battle processing.

A battle starts as a draft stored in ``campaign.battles``.  While it is a
draft, participants, deployed units, destroyed units, kills, Marked for
Greatness and the result can be edited, or the whole draft discarded.
:func:`complete_battle` then applies the post-battle sequence in a fixed
order and seals the record; a completed record rejects any further change.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from crusade.domain.enums import BattleStatus, EventType, OutOfActionConsequence, OutOfActionState
from crusade.domain.events import record_event
from crusade.domain.models import (
    BattleID,
    BattleParticipant,
    BattleRecord,
    Campaign,
    HonourID,
    PlayerID,
    Unit,
    UnitID,
    new_id,
    utcnow,
)
from crusade.domain.out_of_action import begin_test, choose_consequence, take_test
from crusade.domain.progression import (
    ExperienceAward,
    award_battle_experience,
    award_every_third_kill,
    award_marked_for_greatness,
    rank_name,
    refresh_crusade_points,
)
from crusade.domain.results import ErrorKind, OperationResult
from crusade.domain.rules_config import DEFAULT_RULES, RulesConfig
from crusade.utils.rng import dice_range

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class OutOfActionChoice:
    """Consequence picked for a unit that fails its Out of Action test."""

    consequence: OutOfActionConsequence = OutOfActionConsequence.BATTLE_SCAR
    honour_id: HonourID | None = None
    scar_name: str | None = None


def _draft(campaign: Campaign, battle_id: BattleID) -> BattleRecord | OperationResult[BattleRecord]:
    """Return the editable draft, or the rejection explaining why it is not."""

    battle = campaign.battles.get(battle_id)
    if battle is None:
        return OperationResult.fail(ErrorKind.NOT_FOUND, f"Battle {battle_id} not found")
    if battle.status != BattleStatus.DRAFT:
        return OperationResult.fail(
            ErrorKind.VALIDATION, "Battle has been completed and can no longer be changed", battle
        )
    return battle


def _deployed_unit(
    campaign: Campaign, battle: BattleRecord, unit_id: UnitID
) -> OperationResult[BattleRecord] | None:
    if unit_id not in campaign.units:
        return OperationResult.fail(ErrorKind.NOT_FOUND, f"Unit {unit_id} not found", battle)
    if unit_id not in battle.deployed_unit_ids():
        return OperationResult.fail(
            ErrorKind.VALIDATION, f"{campaign.units[unit_id].name} was not deployed in this battle", battle
        )
    return None


def start_battle(
    campaign: Campaign,
    *,
    participants: list[PlayerID] | None = None,
    battle_size: str = "",
    mission_type: str = "",
    hex_location: str | None = None,
    rules: RulesConfig = DEFAULT_RULES,
) -> OperationResult[BattleRecord]:
    missing = [pid for pid in participants or [] if pid not in campaign.players]
    if missing:
        return OperationResult.fail(ErrorKind.NOT_FOUND, f"Unknown players: {missing}")

    battle = BattleRecord(
        id=BattleID(new_id()),
        created_at=utcnow(),
        battle_size=battle_size,
        mission_type=mission_type,
        hex_location=hex_location,
        participants=[BattleParticipant(player_id=pid) for pid in dict.fromkeys(participants or [])],
    )
    campaign.battles[battle.id] = battle
    record_event(
        campaign,
        EventType.BATTLE_STARTED,
        f"Battle recording started ({mission_type or 'unnamed mission'})",
        rules=rules,
        battle_id=battle.id,
    )
    return OperationResult.ok("Battle started", battle)


def add_participant(
    campaign: Campaign, battle_id: BattleID, player_id: PlayerID
) -> OperationResult[BattleRecord]:
    battle = _draft(campaign, battle_id)
    if isinstance(battle, OperationResult):
        return battle
    if player_id not in campaign.players:
        return OperationResult.fail(ErrorKind.NOT_FOUND, f"Player {player_id} not found", battle)
    if battle.participant(player_id) is None:
        battle.participants.append(BattleParticipant(player_id=player_id))
    return OperationResult.ok(f"{campaign.players[player_id].name} joined the battle", battle)


def deploy_unit(campaign: Campaign, battle_id: BattleID, unit_id: UnitID) -> OperationResult[BattleRecord]:
    battle = _draft(campaign, battle_id)
    if isinstance(battle, OperationResult):
        return battle
    unit = campaign.units.get(unit_id)
    if unit is None:
        return OperationResult.fail(ErrorKind.NOT_FOUND, f"Unit {unit_id} not found", battle)
    participant = battle.participant(unit.owner_id)
    if participant is None:
        return OperationResult.fail(
            ErrorKind.VALIDATION, f"{unit.name}'s owner is not taking part in this battle", battle
        )
    if unit_id not in participant.units_deployed:
        participant.units_deployed.append(unit_id)
    return OperationResult.ok(f"{unit.name} deployed", battle)


def mark_destroyed(
    campaign: Campaign, battle_id: BattleID, unit_id: UnitID
) -> OperationResult[BattleRecord]:
    battle = _draft(campaign, battle_id)
    if isinstance(battle, OperationResult):
        return battle
    rejection = _deployed_unit(campaign, battle, unit_id)
    if rejection is not None:
        return rejection
    if unit_id not in battle.destroyed_units:
        battle.destroyed_units.append(unit_id)
    return OperationResult.ok(f"{campaign.units[unit_id].name} marked as destroyed", battle)


def record_kills(
    campaign: Campaign, battle_id: BattleID, unit_id: UnitID, kills: int
) -> OperationResult[BattleRecord]:
    """Set the number of enemy units ``unit_id`` destroyed in this battle."""

    battle = _draft(campaign, battle_id)
    if isinstance(battle, OperationResult):
        return battle
    if kills < 0:
        return OperationResult.fail(ErrorKind.VALIDATION, "Kills cannot be negative", battle)
    rejection = _deployed_unit(campaign, battle, unit_id)
    if rejection is not None:
        return rejection
    battle.kills[unit_id] = kills
    return OperationResult.ok(f"{campaign.units[unit_id].name} destroyed {kills} unit(s)", battle)


def marked_for_greatness_blocker(unit: Unit, *, rules: RulesConfig = DEFAULT_RULES) -> str | None:
    """Name of the scar preventing the unit from being Marked for Greatness."""

    for scar in unit.battle_scars:
        if scar.name in rules.progression.marked_for_greatness_blocking_scars:
            return scar.name
    return None


def mark_for_greatness(
    campaign: Campaign,
    battle_id: BattleID,
    player_id: PlayerID,
    unit_id: UnitID,
    *,
    rules: RulesConfig = DEFAULT_RULES,
) -> OperationResult[BattleRecord]:
    """Choose the player's Marked for Greatness unit, replacing any earlier pick."""

    battle = _draft(campaign, battle_id)
    if isinstance(battle, OperationResult):
        return battle
    rejection = _deployed_unit(campaign, battle, unit_id)
    if rejection is not None:
        return rejection
    unit = campaign.units[unit_id]
    if unit.owner_id != player_id:
        return OperationResult.fail(
            ErrorKind.VALIDATION, f"{unit.name} does not belong to this player", battle
        )
    blocker = marked_for_greatness_blocker(unit, rules=rules)
    if blocker is not None:
        return OperationResult.fail(
            ErrorKind.VALIDATION,
            f"{unit.name} cannot be Marked for Greatness while it has the {blocker} Battle Scar",
            battle,
        )
    battle.marked_for_greatness[player_id] = unit_id
    return OperationResult.ok(f"{unit.name} Marked for Greatness", battle)


def set_victory_points(
    campaign: Campaign, battle_id: BattleID, player_id: PlayerID, victory_points: int
) -> OperationResult[BattleRecord]:
    battle = _draft(campaign, battle_id)
    if isinstance(battle, OperationResult):
        return battle
    participant = battle.participant(player_id)
    if participant is None:
        return OperationResult.fail(ErrorKind.NOT_FOUND, "Player is not a participant", battle)
    if victory_points < 0:
        return OperationResult.fail(ErrorKind.VALIDATION, "Victory points cannot be negative", battle)
    participant.victory_points = victory_points
    return OperationResult.ok("Victory points recorded", battle)


def set_result(
    campaign: Campaign,
    battle_id: BattleID,
    *,
    winner_id: PlayerID | None = None,
    is_draw: bool = False,
) -> OperationResult[BattleRecord]:
    battle = _draft(campaign, battle_id)
    if isinstance(battle, OperationResult):
        return battle
    if is_draw and winner_id is not None:
        return OperationResult.fail(ErrorKind.VALIDATION, "A draw cannot have a winner", battle)
    if winner_id is not None and battle.participant(winner_id) is None:
        return OperationResult.fail(ErrorKind.VALIDATION, "The winner must be a participant", battle)
    battle.winner_id = winner_id
    battle.is_draw = is_draw
    return OperationResult.ok("Result recorded", battle)


def discard_battle(
    campaign: Campaign, battle_id: BattleID, *, rules: RulesConfig = DEFAULT_RULES
) -> OperationResult[BattleRecord]:
    rejection = _draft(campaign, battle_id)
    if isinstance(rejection, OperationResult):
        return rejection
    battle = campaign.battles.pop(battle_id)
    record_event(
        campaign, EventType.BATTLE_DISCARDED, "Battle draft discarded", rules=rules, battle_id=battle_id
    )
    return OperationResult.ok("Battle discarded", battle)


# --- Completion -----------------------------------------------------------------


def _validate_completion(
    campaign: Campaign,
    battle: BattleRecord,
    rolls: Mapping[UnitID, int],
    choices: Mapping[UnitID, OutOfActionChoice],
    rules: RulesConfig,
) -> OperationResult[BattleRecord] | None:
    if not battle.participants:
        return OperationResult.fail(ErrorKind.VALIDATION, "A battle needs at least one participant", battle)
    if battle.winner_id is not None and battle.participant(battle.winner_id) is None:
        return OperationResult.fail(ErrorKind.VALIDATION, "The winner must be a participant", battle)
    gone = [p.player_id for p in battle.participants if p.player_id not in campaign.players]
    if gone:
        return OperationResult.fail(ErrorKind.NOT_FOUND, f"Participants no longer exist: {gone}", battle)
    referenced = [
        *battle.deployed_unit_ids(),
        *battle.destroyed_units,
        *battle.marked_for_greatness.values(),
    ]
    missing = sorted({uid for uid in referenced if uid not in campaign.units})
    if missing:
        return OperationResult.fail(ErrorKind.NOT_FOUND, f"Battle units no longer exist: {missing}", battle)

    lowest, highest = dice_range(rules.out_of_action.dice)
    for unit_id, roll in rolls.items():
        if unit_id not in battle.destroyed_units:
            return OperationResult.fail(
                ErrorKind.VALIDATION, f"Roll given for unit {unit_id} which was not destroyed", battle
            )
        if not lowest <= roll <= highest:
            return OperationResult.fail(
                ErrorKind.VALIDATION, f"Roll {roll} is impossible on {rules.out_of_action.dice}", battle
            )
    for unit_id, choice in choices.items():
        if unit_id not in battle.destroyed_units:
            return OperationResult.fail(
                ErrorKind.VALIDATION, f"Consequence given for unit {unit_id} which was not destroyed", battle
            )
        if choice.honour_id is not None and not any(
            h.id == choice.honour_id for h in campaign.units[unit_id].battle_honours
        ):
            return OperationResult.fail(
                ErrorKind.NOT_FOUND, f"Unit {unit_id} has no Battle Honour {choice.honour_id}", battle
            )
    return None


def _log_awards(
    campaign: Campaign, battle: BattleRecord, awards: list[ExperienceAward], rules: RulesConfig
) -> None:
    totals: dict[UnitID, int] = {}
    for award in awards:
        totals[award.unit_id] = totals.get(award.unit_id, 0) + award.gained
        unit = campaign.units[award.unit_id]
        if award.capped:
            record_event(
                campaign,
                EventType.XP_CAPPED,
                f"{unit.name} is at its XP cap",
                rules=rules,
                unit_id=unit.id,
                battle_id=battle.id,
                source=award.source,
                lost=award.requested - award.gained,
            )
        if award.ranked_up:
            record_event(
                campaign,
                EventType.RANK_UP,
                f"{unit.name} reached rank {rank_name(award.new_rank, rules=rules)}",
                rules=rules,
                unit_id=unit.id,
                battle_id=battle.id,
                old_rank=award.old_rank,
                new_rank=award.new_rank,
            )
    for unit_id, gained in totals.items():
        if gained:
            record_event(
                campaign,
                EventType.XP_GAINED,
                f"{campaign.units[unit_id].name} gained {gained} XP",
                rules=rules,
                unit_id=unit_id,
                battle_id=battle.id,
                xp=gained,
                total=campaign.units[unit_id].experience_points,
            )


def complete_battle(
    campaign: Campaign,
    battle_id: BattleID,
    *,
    rolls: Mapping[UnitID, int] | None = None,
    choices: Mapping[UnitID, OutOfActionChoice] | None = None,
    rules: RulesConfig = DEFAULT_RULES,
) -> OperationResult[BattleRecord]:
    """Apply post-battle processing and seal the record.

    Order: battle tallies, XP awards (battle experience, every third kill,
    Marked for Greatness) with rank recomputation, Out of Action tests,
    Crusade Points freeze, RP for the winner, player tallies, seal.

    ``rolls`` fixes Out of Action dice per destroyed unit (otherwise seeded
    rolls are used); ``choices`` picks the consequence of a failed test
    (default: Battle Scar).  Inputs are validated before anything changes.
    """

    battle = _draft(campaign, battle_id)
    if isinstance(battle, OperationResult):
        return battle
    rolls = rolls or {}
    choices = choices or {}
    rejection = _validate_completion(campaign, battle, rolls, choices, rules)
    if rejection is not None:
        return rejection

    deployed = [campaign.units[uid] for uid in battle.deployed_unit_ids()]

    for unit in deployed:
        unit.combat_tallies.battles_participated += 1
        unit.combat_tallies.units_destroyed += battle.kills.get(unit.id, 0)

    awards = award_battle_experience(deployed, rules=rules)
    for award in awards:
        battle.xp_awards.battle_experience[award.unit_id] = award.gained
    for unit in deployed:
        kills = battle.kills.get(unit.id, 0)
        if kills:
            award = award_every_third_kill(unit, kills, rules=rules)
            battle.xp_awards.every_third_kill[unit.id] = award.gained
            awards.append(award)
    for unit_id in battle.marked_for_greatness.values():
        award = award_marked_for_greatness(campaign.units[unit_id], rules=rules)
        battle.xp_awards.marked_for_greatness[unit_id] = award.gained
        awards.append(award)
    _log_awards(campaign, battle, awards, rules)

    for unit_id in battle.destroyed_units:
        test = begin_test(unit_id)
        battle.out_of_action[unit_id] = test
        take_test(campaign, test, roll=rolls.get(unit_id), battle_id=battle.id, rules=rules)
        if test.state == OutOfActionState.TEST_PENDING:
            choice = choices.get(unit_id, OutOfActionChoice())
            choose_consequence(
                campaign,
                test,
                choice.consequence,
                honour_id=choice.honour_id,
                scar_name=choice.scar_name,
                battle_id=battle.id,
                rules=rules,
            )

    for unit_id in battle.deployed_unit_ids():
        unit = campaign.units.get(unit_id)
        if unit is not None:
            refresh_crusade_points(unit, rules=rules)

    if battle.winner_id is not None and not battle.is_draw:
        winner = campaign.players[battle.winner_id]
        cap = rules.requisitions.max_requisition_points
        before = winner.requisition_points
        winner.requisition_points = min(cap, before + rules.requisitions.rp_per_battle_victory)
        battle.rp_awarded[winner.id] = winner.requisition_points - before
        if winner.requisition_points > before:
            record_event(
                campaign,
                EventType.RP_AWARDED,
                f"{winner.name} gained {winner.requisition_points - before} RP for the victory",
                rules=rules,
                player_id=winner.id,
                battle_id=battle.id,
                rp=winner.requisition_points,
            )
        else:
            record_event(
                campaign,
                EventType.RP_CAP_REACHED,
                f"{winner.name} is already at the maximum of {cap} RP",
                rules=rules,
                player_id=winner.id,
                battle_id=battle.id,
            )

    for participant in battle.participants:
        player = campaign.players[participant.player_id]
        player.battle_tally += 1
        if participant.player_id == battle.winner_id and not battle.is_draw:
            player.victories += 1

    battle.status = BattleStatus.COMPLETED
    battle.completed_at = utcnow()
    record_event(
        campaign,
        EventType.BATTLE_COMPLETED,
        f"Battle completed ({'draw' if battle.is_draw else 'decisive'})",
        rules=rules,
        battle_id=battle.id,
        winner_id=battle.winner_id,
        destroyed=len(battle.destroyed_units),
    )
    logger.info(
        "Battle %s completed: %d units deployed, %d destroyed",
        battle.id,
        len(deployed),
        len(battle.destroyed_units),
    )
    return OperationResult.ok("Battle completed", battle)

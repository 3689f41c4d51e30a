"""Whole-campaign consistency checks.

:func:`validate_campaign` walks the entity graph and returns a report of
errors (dangling references, negative counters, broken caps), warnings
(soft limits, derived-value drift) and automatic fixes.  Without
``auto_fix`` the campaign is never touched, so repeated runs produce the
same report.  With ``auto_fix`` negative resource values are clamped to
zero and each correction is listed under ``auto_fixed``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from crusade.domain.enums import BattleStatus, EventType, HonourCategory
from crusade.domain.events import record_event
from crusade.domain.honours import honour_cap
from crusade.domain.models import BattleRecord, Campaign, Player, Unit
from crusade.domain.progression import calculate_crusade_points, calculate_rank, supply_used, xp_cap
from crusade.domain.rules_config import DEFAULT_RULES, RulesConfig

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ValidationIssue:
    code: str
    message: str
    entity_id: str | None = None


@dataclass(slots=True)
class ValidationReport:
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)
    auto_fixed: list[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def error(self, code: str, message: str, entity_id: str | None = None) -> None:
        self.errors.append(ValidationIssue(code, message, entity_id))

    def warn(self, code: str, message: str, entity_id: str | None = None) -> None:
        self.warnings.append(ValidationIssue(code, message, entity_id))

    def fixed(self, code: str, message: str, entity_id: str | None = None) -> None:
        self.auto_fixed.append(ValidationIssue(code, message, entity_id))


def _check_negative(
    report: ValidationReport, owner: str, entity_id: str, counters: dict[str, int]
) -> None:
    for name, value in counters.items():
        if value < 0:
            report.error("negative_counter", f"{owner}: {name} is negative ({value})", entity_id)


def _check_players(
    campaign: Campaign, report: ValidationReport, rules: RulesConfig, auto_fix: bool
) -> None:
    for key, player in campaign.players.items():
        if key != player.id:
            report.error("id_mismatch", f"Player stored under {key} has id {player.id}", key)
        _check_negative(
            report,
            player.name,
            player.id,
            {
                "supply_limit": player.supply_limit,
                "battle_tally": player.battle_tally,
                "victories": player.victories,
            },
        )
        _check_player_resources(player, report, rules, auto_fix)

        for unit_id in player.order_of_battle:
            unit = campaign.units.get(unit_id)
            if unit is None:
                report.error("dangling_unit", f"{player.name}'s roster lists unknown unit {unit_id}", player.id)
            elif unit.owner_id != player.id:
                report.error(
                    "roster_owner_mismatch",
                    f"{player.name}'s roster lists {unit.name}, owned by {unit.owner_id}",
                    unit.id,
                )

        used = supply_used(campaign, player.id)
        if used > player.supply_limit:
            report.warn(
                "supply_limit_exceeded",
                f"{player.name} uses {used} of {player.supply_limit} supply",
                player.id,
            )
        if player.supply_used != used:
            report.warn(
                "supply_drift", f"{player.name}: stored supply {player.supply_used}, expected {used}", player.id
            )
        if player.alliance_id is not None and player.alliance_id not in campaign.alliances:
            report.error("dangling_alliance", f"{player.name} references unknown alliance", player.id)


def _check_player_resources(
    player: Player, report: ValidationReport, rules: RulesConfig, auto_fix: bool
) -> None:
    if player.requisition_points < 0:
        if auto_fix:
            report.fixed(
                "negative_rp",
                f"{player.name}: requisition points {player.requisition_points} clamped to 0",
                player.id,
            )
            player.requisition_points = 0
        else:
            report.error(
                "negative_counter",
                f"{player.name}: requisition_points is negative ({player.requisition_points})",
                player.id,
            )
    elif player.requisition_points > rules.requisitions.max_requisition_points:
        report.warn(
            "rp_over_max",
            f"{player.name} has {player.requisition_points} RP "
            f"(maximum {rules.requisitions.max_requisition_points})",
            player.id,
        )
    for resource, amount in player.resources.items():
        if amount >= 0:
            continue
        if auto_fix:
            report.fixed("negative_resource", f"{player.name}: {resource} {amount} clamped to 0", player.id)
            player.resources[resource] = 0
        else:
            report.error("negative_counter", f"{player.name}: {resource} is negative ({amount})", player.id)


def _check_unit(campaign: Campaign, unit: Unit, report: ValidationReport, rules: RulesConfig) -> None:
    owner = campaign.players.get(unit.owner_id)
    if owner is None:
        report.error("dangling_owner", f"{unit.name} is owned by unknown player {unit.owner_id}", unit.id)
    elif unit.id not in owner.order_of_battle:
        report.error("roster_owner_mismatch", f"{unit.name} is missing from {owner.name}'s roster", unit.id)

    _check_negative(
        report,
        unit.name,
        unit.id,
        {
            "experience_points": unit.experience_points,
            "points_cost": unit.points_cost,
            "battles_participated": unit.combat_tallies.battles_participated,
            "units_destroyed": unit.combat_tallies.units_destroyed,
        },
    )

    if len(unit.battle_scars) > rules.honours.max_scars:
        report.error(
            "scar_cap_exceeded",
            f"{unit.name} has {len(unit.battle_scars)} Battle Scars (maximum {rules.honours.max_scars})",
            unit.id,
        )
    scar_names = [scar.name for scar in unit.battle_scars]
    if len(set(scar_names)) != len(scar_names):
        report.warn("duplicate_scar", f"{unit.name} carries the same Battle Scar twice", unit.id)

    cap = honour_cap(unit, rules=rules)
    if len(unit.battle_honours) > cap:
        report.warn(
            "honour_cap_exceeded",
            f"{unit.name} has {len(unit.battle_honours)} Battle Honours (maximum {cap})",
            unit.id,
        )
    if not unit.is_character and any(h.category == HonourCategory.RELIC for h in unit.battle_honours):
        report.warn("relic_on_non_character", f"{unit.name} carries a Crusade Relic but is not a CHARACTER", unit.id)

    limit = xp_cap(unit, rules=rules)
    if limit is not None and unit.experience_points > limit:
        report.warn("xp_over_cap", f"{unit.name} has {unit.experience_points} XP (cap {limit})", unit.id)

    expected_rank = calculate_rank(unit.experience_points, rules=rules)
    if unit.rank != expected_rank:
        report.warn("rank_drift", f"{unit.name}: stored rank {unit.rank}, expected {expected_rank}", unit.id)
    expected_cp = calculate_crusade_points(unit, rules=rules)
    if unit.crusade_points != expected_cp:
        report.warn(
            "crusade_points_drift",
            f"{unit.name}: stored Crusade Points {unit.crusade_points}, expected {expected_cp}",
            unit.id,
        )


def _check_battle(campaign: Campaign, battle: BattleRecord, report: ValidationReport) -> None:
    # completed records may name units and players that have since left
    completed = battle.status == BattleStatus.COMPLETED

    def known_unit(unit_id: str) -> bool:
        if unit_id in campaign.units:
            return True
        return completed and (unit_id in campaign.fallen_units or unit_id in campaign.retired_units)

    def known_player(player_id: str) -> bool:
        return player_id in campaign.players or (completed and player_id in campaign.retired_players)

    participant_ids = {p.player_id for p in battle.participants}
    for player_id in participant_ids:
        if not known_player(player_id):
            report.error("dangling_participant", f"Battle {battle.id} references unknown player {player_id}", battle.id)
    referenced = (
        set(battle.deployed_unit_ids())
        | set(battle.destroyed_units)
        | set(battle.kills)
        | set(battle.marked_for_greatness.values())
        | set(battle.out_of_action)
    )
    for unit_id in sorted(referenced):
        if not known_unit(unit_id):
            report.error("dangling_unit", f"Battle {battle.id} references unknown unit {unit_id}", battle.id)
    if battle.winner_id is not None and battle.winner_id not in participant_ids:
        report.error("winner_not_participant", f"Battle {battle.id} winner is not a participant", battle.id)
    for player_id in battle.marked_for_greatness:
        if player_id not in participant_ids:
            report.error(
                "dangling_participant",
                f"Battle {battle.id} Marked for Greatness by non-participant {player_id}",
                battle.id,
            )
    for unit_id, kills in battle.kills.items():
        if kills < 0:
            report.error("negative_counter", f"Battle {battle.id}: kills for {unit_id} are negative", battle.id)


def validate_campaign(
    campaign: Campaign, *, rules: RulesConfig = DEFAULT_RULES, auto_fix: bool = False
) -> ValidationReport:
    report = ValidationReport()

    _check_players(campaign, report, rules, auto_fix)
    for key, unit in campaign.units.items():
        if key != unit.id:
            report.error("id_mismatch", f"Unit stored under {key} has id {unit.id}", key)
        _check_unit(campaign, unit, report, rules)
    for key, battle in campaign.battles.items():
        if key != battle.id:
            report.error("id_mismatch", f"Battle stored under {key} has id {battle.id}", key)
        _check_battle(campaign, battle, report)
    for key, alliance in campaign.alliances.items():
        if key != alliance.id:
            report.error("id_mismatch", f"Alliance stored under {key} has id {alliance.id}", key)
        for member in alliance.members:
            if member not in campaign.players:
                report.error("dangling_member", f"Alliance {alliance.name} lists unknown player {member}", key)
    for resource, amount in campaign.resources.items():
        if amount >= 0:
            continue
        if auto_fix:
            report.fixed("negative_resource", f"Campaign {resource} {amount} clamped to 0", campaign.id)
            campaign.resources[resource] = 0
        else:
            report.error("negative_counter", f"Campaign {resource} is negative ({amount})", campaign.id)

    if len(campaign.event_log) > rules.campaign.max_event_log_size:
        report.warn(
            "event_log_overflow",
            f"Event log holds {len(campaign.event_log)} entries (maximum {rules.campaign.max_event_log_size})",
            campaign.id,
        )

    if report.auto_fixed:
        record_event(
            campaign,
            EventType.AUTO_FIX,
            f"Validator applied {len(report.auto_fixed)} automatic fix(es)",
            rules=rules,
            fixes=[issue.message for issue in report.auto_fixed],
        )
    if report.errors:
        logger.warning("Campaign %s failed validation with %d error(s)", campaign.id, len(report.errors))
    return report


def render_report(report: ValidationReport) -> str:
    """Plain-text summary of a validation report."""

    lines = [
        "Campaign is valid" if report.is_valid else "Campaign has errors",
        f"{len(report.errors)} error(s), {len(report.warnings)} warning(s), "
        f"{len(report.auto_fixed)} automatic fix(es)",
    ]
    for title, issues in (
        ("Errors", report.errors),
        ("Warnings", report.warnings),
        ("Auto-fixed", report.auto_fixed),
    ):
        if issues:
            lines.append(f"{title}:")
            lines.extend(f"  - [{issue.code}] {issue.message}" for issue in issues)
    return "\n".join(lines)

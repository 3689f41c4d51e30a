"""Experience, rank and Crusade Point calculations.

Every function here is synchronous and operates on in-memory dataclasses.
The award helpers mutate ``experience_points`` and recompute ``rank``
immediately; Crusade Points are left to the caller so that honour selection
can be batched before the battle's final CP freeze.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from crusade.domain.models import Campaign, PlayerID, Unit, UnitID
from crusade.domain.rules_config import DEFAULT_RULES, RulesConfig


@dataclass(slots=True)
class ExperienceAward:
    """Outcome of a single XP award to a unit."""

    unit_id: UnitID
    source: str
    requested: int
    gained: int
    capped: bool
    old_rank: int
    new_rank: int

    @property
    def ranked_up(self) -> bool:
        return self.new_rank > self.old_rank


@dataclass(slots=True)
class CrusadePointsBreakdown:
    """Components of a unit's Crusade Points total."""

    from_experience: int
    from_honours: int
    from_scars: int

    @property
    def total(self) -> int:
        return self.from_experience + self.from_honours - self.from_scars


# --- Crusade Points -------------------------------------------------------------


def honour_points(unit: Unit, *, rules: RulesConfig = DEFAULT_RULES) -> int:
    """Return the CP contributed by the unit's honours.

    TITANIC units count every honour at ``titanic_honour_multiplier`` times its
    base value.
    """

    multiplier = rules.honours.titanic_honour_multiplier if unit.is_titanic else 1
    return sum(honour.crusade_points * multiplier for honour in unit.battle_honours)


def scar_points(unit: Unit, *, rules: RulesConfig = DEFAULT_RULES) -> int:
    return len(unit.battle_scars) * rules.honours.scar_crusade_points


def crusade_points_breakdown(
    unit: Unit, *, rules: RulesConfig = DEFAULT_RULES
) -> CrusadePointsBreakdown:
    return CrusadePointsBreakdown(
        from_experience=unit.experience_points // rules.progression.xp_per_crusade_point,
        from_honours=honour_points(unit, rules=rules),
        from_scars=scar_points(unit, rules=rules),
    )


def calculate_crusade_points(unit: Unit, *, rules: RulesConfig = DEFAULT_RULES) -> int:
    """Return ``floor(xp / 5) + honour points - scar points`` (may be negative)."""

    return crusade_points_breakdown(unit, rules=rules).total


def refresh_crusade_points(unit: Unit, *, rules: RulesConfig = DEFAULT_RULES) -> int:
    unit.crusade_points = calculate_crusade_points(unit, rules=rules)
    return unit.crusade_points


# --- Rank -----------------------------------------------------------------------


def calculate_rank(xp: int, *, rules: RulesConfig = DEFAULT_RULES) -> int:
    """Return the rank (1-5) reached with ``xp`` experience points."""

    rank = 1
    for threshold in rules.progression.rank_thresholds:
        if xp >= threshold.min_xp:
            rank = max(rank, threshold.rank)
    return max(1, min(rank, len(rules.progression.rank_thresholds)))


def rank_name(rank: int, *, rules: RulesConfig = DEFAULT_RULES) -> str:
    for threshold in rules.progression.rank_thresholds:
        if threshold.rank == rank:
            return threshold.name
    return "Unknown"


def xp_for_next_rank(unit: Unit, *, rules: RulesConfig = DEFAULT_RULES) -> int | None:
    """XP still needed to reach the next rank, or ``None`` at the top rank."""

    current = calculate_rank(unit.experience_points, rules=rules)
    for threshold in rules.progression.rank_thresholds:
        if threshold.rank == current + 1:
            return max(0, threshold.min_xp - unit.experience_points)
    return None


def next_third_kill_threshold(kills: int, *, rules: RulesConfig = DEFAULT_RULES) -> int:
    """Kill count at which the next Every Third Kill XP is earned."""

    step = rules.progression.kills_per_bonus_xp
    return (max(0, kills) // step + 1) * step


# --- Experience -----------------------------------------------------------------


def xp_cap(unit: Unit, *, rules: RulesConfig = DEFAULT_RULES) -> int | None:
    """Maximum XP for the unit, or ``None`` when uncapped."""

    if unit.is_character or unit.has_legendary_veterans:
        return None
    return rules.progression.non_character_xp_cap


def add_experience(
    unit: Unit,
    amount: int,
    *,
    source: str = "manual",
    rules: RulesConfig = DEFAULT_RULES,
) -> ExperienceAward:
    """Add XP to a unit, honouring its cap, and recompute its rank.

    A rank increase flags the unit with ``pending_honour_selection``.
    """

    old_rank = unit.rank
    requested = max(0, amount)
    gained = requested if unit.can_gain_xp else 0
    cap = xp_cap(unit, rules=rules)
    if cap is not None:
        gained = min(gained, max(0, cap - unit.experience_points))

    unit.experience_points += gained
    unit.rank = calculate_rank(unit.experience_points, rules=rules)
    if unit.rank > old_rank:
        unit.pending_honour_selection = True

    return ExperienceAward(
        unit_id=unit.id,
        source=source,
        requested=requested,
        gained=gained,
        capped=unit.can_gain_xp and gained < requested,
        old_rank=old_rank,
        new_rank=unit.rank,
    )


def award_battle_experience(
    units: Iterable[Unit], *, rules: RulesConfig = DEFAULT_RULES
) -> list[ExperienceAward]:
    """Participation XP for every unit that took part in a battle."""

    return [
        add_experience(
            unit, rules.progression.battle_experience_xp, source="battle_experience", rules=rules
        )
        for unit in units
    ]


def award_every_third_kill(
    unit: Unit, kills_this_battle: int, *, rules: RulesConfig = DEFAULT_RULES
) -> ExperienceAward:
    """One XP for every third enemy unit destroyed in this battle."""

    amount = max(0, kills_this_battle) // rules.progression.kills_per_bonus_xp
    return add_experience(unit, amount, source="every_third_kill", rules=rules)


def award_marked_for_greatness(
    unit: Unit, *, rules: RulesConfig = DEFAULT_RULES
) -> ExperienceAward:
    """Marked for Greatness bonus; the one-per-player limit is enforced by the battle."""

    return add_experience(
        unit, rules.progression.marked_for_greatness_xp, source="marked_for_greatness", rules=rules
    )


# --- Derived state --------------------------------------------------------------


def supply_used(campaign: Campaign, player_id: PlayerID) -> int:
    return sum(unit.points_cost for unit in campaign.units.values() if unit.owner_id == player_id)


def refresh_derived(campaign: Campaign, *, rules: RulesConfig = DEFAULT_RULES) -> None:
    """Recompute rank, Crusade Points and supply used across the campaign."""

    for unit in campaign.units.values():
        unit.rank = calculate_rank(unit.experience_points, rules=rules)
        refresh_crusade_points(unit, rules=rules)
    for player in campaign.players.values():
        player.supply_used = supply_used(campaign, player.id)

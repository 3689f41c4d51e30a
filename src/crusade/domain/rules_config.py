"""Declarative rule configuration for the crusade engine.

Rules are resolved in layers: the built-in defaults below, then an edition
preset, then any per-campaign overrides.  The result is frozen and is
passed explicitly to every calculator.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from typing import Any

from crusade.domain.enums import RelicTier, RequisitionType


@dataclass(frozen=True, slots=True)
class RankThreshold:
    """Minimum XP for a rank."""

    rank: int
    name: str
    min_xp: int


@dataclass(frozen=True, slots=True)
class ProgressionRules:
    """XP, rank and Crusade Point constants."""

    rank_thresholds: tuple[RankThreshold, ...] = (
        RankThreshold(1, "Battle-Ready", 0),
        RankThreshold(2, "Blooded", 6),
        RankThreshold(3, "Battle-Hardened", 12),
        RankThreshold(4, "Heroic", 18),
        RankThreshold(5, "Legendary", 24),
    )
    xp_per_crusade_point: int = 5
    non_character_xp_cap: int = 30
    battle_experience_xp: int = 1
    kills_per_bonus_xp: int = 3
    marked_for_greatness_xp: int = 3
    marked_for_greatness_blocking_scars: tuple[str, ...] = ("Disgraced", "Mark of Shame")


@dataclass(frozen=True, slots=True)
class RelicTierRules:
    """Rank requirement and Crusade Point value of a relic tier."""

    rank_required: int
    crusade_points: int


@dataclass(frozen=True, slots=True)
class HonourRules:
    """Battle Honour and Battle Scar limits and catalogues."""

    max_honours: int = 3
    max_honours_character: int = 6
    max_scars: int = 3
    honour_crusade_points: int = 1
    scar_crusade_points: int = 1
    titanic_honour_multiplier: int = 2
    modifications_per_weapon: int = 2
    weapon_modifications: tuple[tuple[int, str], ...] = (
        (1, "Finely Balanced"),
        (2, "Brutal"),
        (3, "Armour Piercing"),
        (4, "Master-Worked"),
        (5, "Heirloom"),
        (6, "Precise"),
    )
    battle_scars: tuple[str, ...] = (
        "Crippling Damage",
        "Battle-Weary",
        "Fatigued",
        "Disgraced",
        "Mark of Shame",
        "Deep Scars",
    )
    relic_tiers: tuple[tuple[RelicTier, RelicTierRules], ...] = (
        (RelicTier.ARTIFICER, RelicTierRules(rank_required=1, crusade_points=1)),
        (RelicTier.ANTIQUITY, RelicTierRules(rank_required=4, crusade_points=2)),
        (RelicTier.LEGENDARY, RelicTierRules(rank_required=5, crusade_points=3)),
    )

    def weapon_modification_name(self, modification_id: int) -> str | None:
        for mod_id, name in self.weapon_modifications:
            if mod_id == modification_id:
                return name
        return None

    def relic_tier(self, tier: RelicTier) -> RelicTierRules:
        for key, value in self.relic_tiers:
            if key == tier:
                return value
        raise ValueError(f"unknown relic tier: {tier}")


@dataclass(frozen=True, slots=True)
class OutOfActionRules:
    """Out of Action test parameters."""

    dice: str = "1d6"
    fail_on_or_below: int = 1


@dataclass(frozen=True, slots=True)
class RequisitionRules:
    """Requisition costs, caps and effects."""

    max_requisition_points: int = 5
    starting_requisition_points: int = 5
    rp_per_battle_victory: int = 1
    default_supply_limit: int = 1000
    supply_limit_increase: int = 200
    increase_supply_limit_cost: int = 1
    legendary_veterans_cost: int = 3
    rearm_and_resupply_cost: int = 1
    renowned_heroes_max_cost: int = 3
    repair_and_recuperate_max_cost: int = 5
    fresh_recruits_max_cost: int = 4
    max_enhancements_per_unit: int = 1

    def fixed_cost(self, requisition: RequisitionType) -> int | None:
        costs = {
            RequisitionType.INCREASE_SUPPLY_LIMIT: self.increase_supply_limit_cost,
            RequisitionType.LEGENDARY_VETERANS: self.legendary_veterans_cost,
            RequisitionType.REARM_AND_RESUPPLY: self.rearm_and_resupply_cost,
        }
        return costs.get(requisition)


@dataclass(frozen=True, slots=True)
class CampaignRules:
    """Campaign-wide limits."""

    max_event_log_size: int = 1000
    backup_ring_size: int = 10
    autosave_interval_seconds: float = 300.0


@dataclass(frozen=True, slots=True)
class RulesConfig:
    """Top-level configuration container for all subsystems."""

    edition: str = "10th"
    progression: ProgressionRules = ProgressionRules()
    honours: HonourRules = HonourRules()
    out_of_action: OutOfActionRules = OutOfActionRules()
    requisitions: RequisitionRules = RequisitionRules()
    campaign: CampaignRules = CampaignRules()


DEFAULT_RULES = RulesConfig()

EDITION_PRESETS: dict[str, RulesConfig] = {
    "10th": DEFAULT_RULES,
}


def resolve_rules(
    edition: str = "10th",
    overrides: Mapping[str, Mapping[str, Any]] | None = None,
) -> RulesConfig:
    """Layer per-campaign overrides on top of an edition preset.

    ``overrides`` maps a section name (``"progression"``, ``"honours"``, ...)
    to the fields to replace in that section.  Unknown editions, sections or
    fields raise ``ValueError`` so typos never silently fall back to defaults.
    """

    try:
        rules = EDITION_PRESETS[edition]
    except KeyError as exc:
        raise ValueError(f"unknown edition: {edition!r}") from exc

    for section_name, values in (overrides or {}).items():
        section_names = {f.name for f in fields(RulesConfig)} - {"edition"}
        if section_name not in section_names:
            raise ValueError(f"unknown rules section: {section_name!r}")
        section = getattr(rules, section_name)
        allowed = {f.name for f in fields(section)}
        unknown = set(values) - allowed
        if unknown:
            raise ValueError(
                f"unknown fields for rules section {section_name!r}: {sorted(unknown)}"
            )
        rules = replace(rules, **{section_name: replace(section, **dict(values))})
    return rules

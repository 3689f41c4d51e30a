"""Dataclasses describing every crusade campaign entity.

The campaign is a single aggregate: players, units and battle records are
owned by :class:`Campaign` and reference each other only by identifier.
Rule functions operate on these dataclasses in memory; persistence adapters
translate them to and from JSON snapshots.

Every entity carries an ``extras`` mapping that holds fields the current
version does not understand, so snapshots written by newer versions keep
their data when re-saved.  Units and players that leave the campaign after
appearing in a battle record stay resolvable through ``fallen_units``,
``retired_units`` and ``retired_players``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import NewType
from uuid import uuid4

from crusade.domain.enums import (
    BattleStatus,
    EventType,
    HonourCategory,
    OutOfActionConsequence,
    OutOfActionState,
    RelicTier,
)

# --- Strongly typed identifiers -------------------------------------------------

CampaignID = NewType("CampaignID", str)
PlayerID = NewType("PlayerID", str)
UnitID = NewType("UnitID", str)
BattleID = NewType("BattleID", str)
HonourID = NewType("HonourID", str)
ScarID = NewType("ScarID", str)
EnhancementID = NewType("EnhancementID", str)
AllianceID = NewType("AllianceID", str)


def new_id() -> str:
    """Return a fresh opaque identifier."""

    return uuid4().hex


def utcnow() -> datetime:
    return datetime.now(UTC)


# --- Unit components ------------------------------------------------------------


@dataclass(slots=True)
class Honour:
    """Battle Honour held by a unit (trait, weapon modification or relic).

    ``crusade_points`` is the base value before the TITANIC multiplier.
    Weapon modifications store the two modification ids in
    ``modifications``; relics store their ``tier``.
    """

    id: HonourID
    name: str
    category: HonourCategory
    description: str = ""
    crusade_points: int = 1
    tier: RelicTier | None = None
    weapon_name: str | None = None
    modifications: list[int] = field(default_factory=list)
    acquired_by: str = "choice"
    extras: dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class Scar:
    """Battle Scar held by a unit."""

    id: ScarID
    name: str
    description: str = ""
    acquired_by: str = "out_of_action"
    extras: dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class Enhancement:
    """Enhancement granted to a CHARACTER (Renowned Heroes)."""

    id: EnhancementID
    name: str
    description: str = ""
    points_cost: int = 0
    extras: dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class CombatTallies:
    """Lifetime combat statistics of a unit."""

    battles_participated: int = 0
    units_destroyed: int = 0
    custom: dict[str, int] = field(default_factory=dict)
    extras: dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class Unit:
    """Unit on a player's Order of Battle."""

    id: UnitID
    owner_id: PlayerID
    name: str
    unit_type: str = ""
    points_cost: int = 0
    battlefield_role: str = ""
    is_character: bool = False
    is_titanic: bool = False
    is_epic_hero: bool = False
    is_battleline: bool = False
    is_dedicated_transport: bool = False
    can_gain_xp: bool = True
    experience_points: int = 0
    rank: int = 1
    crusade_points: int = 0
    has_legendary_veterans: bool = False
    pending_honour_selection: bool = False
    battle_honours: list[Honour] = field(default_factory=list)
    battle_scars: list[Scar] = field(default_factory=list)
    enhancements: list[Enhancement] = field(default_factory=list)
    combat_tallies: CombatTallies = field(default_factory=CombatTallies)
    keywords: list[str] = field(default_factory=list)
    equipment: list[str] = field(default_factory=list)
    notes: str = ""
    extras: dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class FallenUnit:
    """Record of a unit permanently destroyed by a Devastating Blow."""

    unit_id: UnitID
    name: str
    owner_id: PlayerID
    destroyed_at: datetime
    battle_id: BattleID | None = None
    extras: dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class RetiredUnit:
    """Unit deleted from its roster after it appeared in a battle record."""

    unit_id: UnitID
    name: str
    owner_id: PlayerID
    removed_at: datetime
    extras: dict[str, object] = field(default_factory=dict)


# --- Players --------------------------------------------------------------------


@dataclass(slots=True)
class Player:
    """Player and their Order of Battle.

    ``order_of_battle`` is display order only.  ``supply_used`` is derived
    from the owned units' points costs and refreshed by the roster helpers.
    """

    id: PlayerID
    name: str
    faction: str = ""
    color: str = ""
    requisition_points: int = 5
    supply_limit: int = 1000
    supply_used: int = 0
    order_of_battle: list[UnitID] = field(default_factory=list)
    battle_tally: int = 0
    victories: int = 0
    alliance_id: AllianceID | None = None
    resources: dict[str, int] = field(default_factory=dict)
    extras: dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class RetiredPlayer:
    """Player removed from the campaign after taking part in a battle."""

    player_id: PlayerID
    name: str
    removed_at: datetime
    faction: str = ""
    extras: dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class Alliance:
    """Group of players sharing territory or resources."""

    id: AllianceID
    name: str
    members: list[PlayerID] = field(default_factory=list)
    share_territory: bool = False
    share_resources: bool = False
    extras: dict[str, object] = field(default_factory=dict)


# --- Battles --------------------------------------------------------------------


@dataclass(slots=True)
class BattleParticipant:
    """A player's side of a battle."""

    player_id: PlayerID
    units_deployed: list[UnitID] = field(default_factory=list)
    victory_points: int = 0
    extras: dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class OutOfActionTest:
    """Resolved (or in-progress) Out of Action test for a destroyed unit."""

    unit_id: UnitID
    state: OutOfActionState = OutOfActionState.DESTROYED
    roll: int | None = None
    auto_passed: bool = False
    requested: OutOfActionConsequence | None = None
    applied: OutOfActionConsequence | None = None
    escalated: bool = False
    honour_removed: str | None = None
    scar_gained: str | None = None
    permanently_destroyed: bool = False
    extras: dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class ExperienceBreakdown:
    """XP awarded by a battle, split into its three disjoint sources."""

    battle_experience: dict[UnitID, int] = field(default_factory=dict)
    every_third_kill: dict[UnitID, int] = field(default_factory=dict)
    marked_for_greatness: dict[UnitID, int] = field(default_factory=dict)
    extras: dict[str, object] = field(default_factory=dict)

    def total_for(self, unit_id: UnitID) -> int:
        return (
            self.battle_experience.get(unit_id, 0)
            + self.every_third_kill.get(unit_id, 0)
            + self.marked_for_greatness.get(unit_id, 0)
        )


@dataclass(slots=True)
class BattleRecord:
    """Battle record; mutable while a draft, sealed once completed."""

    id: BattleID
    created_at: datetime
    status: BattleStatus = BattleStatus.DRAFT
    completed_at: datetime | None = None
    battle_size: str = ""
    mission_type: str = ""
    hex_location: str | None = None
    participants: list[BattleParticipant] = field(default_factory=list)
    winner_id: PlayerID | None = None
    is_draw: bool = False
    destroyed_units: list[UnitID] = field(default_factory=list)
    kills: dict[UnitID, int] = field(default_factory=dict)
    marked_for_greatness: dict[PlayerID, UnitID] = field(default_factory=dict)
    out_of_action: dict[UnitID, OutOfActionTest] = field(default_factory=dict)
    xp_awards: ExperienceBreakdown = field(default_factory=ExperienceBreakdown)
    rp_awarded: dict[PlayerID, int] = field(default_factory=dict)
    narrative_notes: str = ""
    extras: dict[str, object] = field(default_factory=dict)

    def participant(self, player_id: PlayerID) -> BattleParticipant | None:
        for participant in self.participants:
            if participant.player_id == player_id:
                return participant
        return None

    def deployed_unit_ids(self) -> list[UnitID]:
        return [unit_id for p in self.participants for unit_id in p.units_deployed]

    def references_unit(self, unit_id: UnitID) -> bool:
        return (
            unit_id in self.deployed_unit_ids()
            or unit_id in self.destroyed_units
            or unit_id in self.kills
            or unit_id in self.marked_for_greatness.values()
            or unit_id in self.out_of_action
        )

    def drop_unit(self, unit_id: UnitID) -> None:
        """Forget every mention of a unit; only valid on drafts."""

        for participant in self.participants:
            participant.units_deployed = [uid for uid in participant.units_deployed if uid != unit_id]
        self.destroyed_units = [uid for uid in self.destroyed_units if uid != unit_id]
        self.kills.pop(unit_id, None)
        self.marked_for_greatness = {
            pid: uid for pid, uid in self.marked_for_greatness.items() if uid != unit_id
        }


# --- Campaign -------------------------------------------------------------------


@dataclass(slots=True)
class EventLogEntry:
    """Append-only event log entry."""

    timestamp: datetime
    type: EventType
    description: str
    data: dict[str, object] = field(default_factory=dict)
    extras: dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class CampaignConfig:
    """Per-campaign settings resolved at creation time."""

    edition: str = "10th"
    supply_limit: int = 1000
    autosave_interval_seconds: float = 300.0
    description: str = ""
    rules_overrides: dict[str, dict[str, object]] = field(default_factory=dict)
    extras: dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class Campaign:
    """Root aggregate representing an entire crusade campaign."""

    id: CampaignID
    name: str
    created_at: datetime
    modified_at: datetime
    config: CampaignConfig = field(default_factory=CampaignConfig)
    players: dict[PlayerID, Player] = field(default_factory=dict)
    units: dict[UnitID, Unit] = field(default_factory=dict)
    battles: dict[BattleID, BattleRecord] = field(default_factory=dict)
    event_log: list[EventLogEntry] = field(default_factory=list)
    fallen_units: dict[UnitID, FallenUnit] = field(default_factory=dict)
    retired_units: dict[UnitID, RetiredUnit] = field(default_factory=dict)
    retired_players: dict[PlayerID, RetiredPlayer] = field(default_factory=dict)
    alliances: dict[AllianceID, Alliance] = field(default_factory=dict)
    resources: dict[str, int] = field(default_factory=dict)
    map_config: dict[str, object] | None = None
    extras: dict[str, object] = field(default_factory=dict)

    def player_units(self, player_id: PlayerID) -> list[Unit]:
        """Return a player's units in roster order, skipping dangling ids."""

        player = self.players.get(player_id)
        if player is None:
            return []
        return [self.units[uid] for uid in player.order_of_battle if uid in self.units]

"""Enumerations shared by the crusade domain."""

from __future__ import annotations

from enum import StrEnum


class HonourCategory(StrEnum):
    """The three Battle Honour categories."""

    TRAIT = "trait"
    WEAPON_MOD = "weapon_mod"
    RELIC = "relic"


class RelicTier(StrEnum):
    """Crusade Relic tiers."""

    ARTIFICER = "artificer"
    ANTIQUITY = "antiquity"
    LEGENDARY = "legendary"


class BattleStatus(StrEnum):
    """Lifecycle of a battle record."""

    DRAFT = "draft"
    COMPLETED = "completed"


class OutOfActionState(StrEnum):
    """States of the Out of Action resolver."""

    DESTROYED = "destroyed"
    TEST_PENDING = "test_pending"
    SURVIVED = "survived"
    CONSEQUENCE_CHOSEN = "consequence_chosen"


class OutOfActionConsequence(StrEnum):
    """Consequences a unit may suffer after failing an Out of Action test."""

    DEVASTATING_BLOW = "devastating_blow"
    BATTLE_SCAR = "battle_scar"


class RequisitionType(StrEnum):
    """Requisitions a player may purchase with RP."""

    INCREASE_SUPPLY_LIMIT = "increase_supply_limit"
    RENOWNED_HEROES = "renowned_heroes"
    LEGENDARY_VETERANS = "legendary_veterans"
    REARM_AND_RESUPPLY = "rearm_and_resupply"
    REPAIR_AND_RECUPERATE = "repair_and_recuperate"
    FRESH_RECRUITS = "fresh_recruits"


class EventType(StrEnum):
    """Event log entry types."""

    CAMPAIGN_CREATED = "campaign_created"
    CAMPAIGN_LOADED = "campaign_loaded"
    CAMPAIGN_SAVED = "campaign_saved"
    CAMPAIGN_IMPORTED = "campaign_imported"
    PLAYER_ADDED = "player_added"
    PLAYER_REMOVED = "player_removed"
    UNIT_ADDED = "unit_added"
    UNIT_DELETED = "unit_deleted"
    UNIT_PERMANENTLY_DESTROYED = "unit_permanently_destroyed"
    XP_GAINED = "xp_gained"
    XP_CAPPED = "xp_capped"
    RANK_UP = "rank_up"
    BATTLE_HONOUR_GAINED = "battle_honour_gained"
    BATTLE_HONOUR_REMOVED = "battle_honour_removed"
    BATTLE_SCAR_GAINED = "battle_scar_gained"
    BATTLE_SCAR_REMOVED = "battle_scar_removed"
    DEVASTATING_BLOW = "devastating_blow"
    OUT_OF_ACTION_PASS = "out_of_action_pass"
    OUT_OF_ACTION_FAIL = "out_of_action_fail"
    BATTLE_STARTED = "battle_started"
    BATTLE_DISCARDED = "battle_discarded"
    BATTLE_COMPLETED = "battle_completed"
    RP_AWARDED = "rp_awarded"
    RP_CAP_REACHED = "rp_cap_reached"
    REQUISITION_PURCHASED = "requisition_purchased"
    LEGENDARY_VETERANS = "legendary_veterans"
    ALLIANCE_CREATED = "alliance_created"
    AUTO_FIX = "auto_fix"
    WARNING = "warning"

"""Campaign, player and unit management, including the import boundary."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from crusade.domain.enums import BattleStatus, EventType
from crusade.domain.events import record_event
from crusade.domain.models import (
    Alliance,
    AllianceID,
    Campaign,
    CampaignConfig,
    CampaignID,
    Player,
    PlayerID,
    RetiredPlayer,
    RetiredUnit,
    Unit,
    UnitID,
    new_id,
    utcnow,
)
from crusade.domain.progression import calculate_rank, refresh_crusade_points, supply_used
from crusade.domain.results import ErrorKind, OperationResult
from crusade.domain.rules_config import DEFAULT_RULES, RulesConfig, resolve_rules
from crusade.schemas.unit import UnitRecord

logger = logging.getLogger(__name__)

CHARACTER_KEYWORDS = ("CHARACTER", "WARLORD", "OFFICER", "LEADER", "HQ")
TITANIC_KEYWORDS = ("TITANIC", "SUPER-HEAVY")
EPIC_HERO_KEYWORDS = ("EPIC HERO", "EPIC_HERO", "NAMED CHARACTER")
BATTLELINE_KEYWORDS = ("BATTLELINE", "BATTLE LINE", "TROOPS")
TRANSPORT_KEYWORDS = ("DEDICATED TRANSPORT", "TRANSPORT")
CHARACTER_ROLES = ("HQ", "CHARACTER", "LEADER")


@dataclass(slots=True)
class UnitFlags:
    is_character: bool = False
    is_titanic: bool = False
    is_epic_hero: bool = False
    is_battleline: bool = False
    is_dedicated_transport: bool = False


@dataclass(slots=True)
class ImportReport:
    """Units created by an import and the per-record rejections."""

    imported: list[Unit] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


# --- Campaign -------------------------------------------------------------------


def campaign_rules(campaign: Campaign) -> RulesConfig:
    """Resolve the rules a campaign was created with."""

    return resolve_rules(campaign.config.edition, campaign.config.rules_overrides)


def create_campaign(
    name: str,
    *,
    edition: str = "10th",
    supply_limit: int | None = None,
    autosave_interval_seconds: float | None = None,
    rules_overrides: Mapping[str, Mapping[str, Any]] | None = None,
    description: str = "",
) -> OperationResult[Campaign]:
    if not name.strip():
        return OperationResult.fail(ErrorKind.VALIDATION, "Campaign name cannot be empty")
    overrides = {section: dict(values) for section, values in (rules_overrides or {}).items()}
    try:
        rules = resolve_rules(edition, overrides)
    except (TypeError, ValueError) as exc:
        return OperationResult.fail(ErrorKind.VALIDATION, str(exc))

    now = utcnow()
    campaign = Campaign(
        id=CampaignID(new_id()),
        name=name.strip(),
        created_at=now,
        modified_at=now,
        config=CampaignConfig(
            edition=edition,
            supply_limit=(
                supply_limit if supply_limit is not None else rules.requisitions.default_supply_limit
            ),
            autosave_interval_seconds=(
                autosave_interval_seconds
                if autosave_interval_seconds is not None
                else rules.campaign.autosave_interval_seconds
            ),
            description=description,
            rules_overrides=overrides,
        ),
    )
    record_event(campaign, EventType.CAMPAIGN_CREATED, f"Campaign {campaign.name} created", rules=rules)
    return OperationResult.ok(f"Campaign {campaign.name} created", campaign)


# --- Players --------------------------------------------------------------------


def add_player(
    campaign: Campaign,
    name: str,
    *,
    faction: str = "",
    color: str = "",
    rules: RulesConfig = DEFAULT_RULES,
) -> OperationResult[Player]:
    name = name.strip()
    if not name:
        return OperationResult.fail(ErrorKind.VALIDATION, "Player name cannot be empty")
    if any(p.name.lower() == name.lower() for p in campaign.players.values()):
        return OperationResult.fail(ErrorKind.VALIDATION, f"A player named {name} already exists")

    player = Player(
        id=PlayerID(new_id()),
        name=name,
        faction=faction,
        color=color,
        requisition_points=rules.requisitions.starting_requisition_points,
        supply_limit=campaign.config.supply_limit,
    )
    campaign.players[player.id] = player
    record_event(
        campaign, EventType.PLAYER_ADDED, f"{name} joined the campaign", rules=rules, player_id=player.id
    )
    return OperationResult.ok(f"{name} joined the campaign", player)


def remove_player(
    campaign: Campaign,
    player_id: PlayerID,
    *,
    cascade: bool = False,
    rules: RulesConfig = DEFAULT_RULES,
) -> OperationResult[Player]:
    """Remove a player; their units must be deleted first unless ``cascade``.

    A player taking part in a draft battle cannot leave until the draft is
    completed or discarded.  Players named by completed battles are kept in
    ``campaign.retired_players``.
    """

    player = campaign.players.get(player_id)
    if player is None:
        return OperationResult.fail(ErrorKind.NOT_FOUND, f"Player {player_id} not found")
    drafts = [
        battle.id
        for battle in campaign.battles.values()
        if battle.status == BattleStatus.DRAFT and battle.participant(player_id) is not None
    ]
    if drafts:
        return OperationResult.fail(
            ErrorKind.VALIDATION,
            f"{player.name} is taking part in {len(drafts)} unfinished battle(s); "
            "complete or discard them first",
            player,
            battles=drafts,
        )
    owned = [unit.id for unit in campaign.units.values() if unit.owner_id == player_id]
    if owned and not cascade:
        return OperationResult.fail(
            ErrorKind.VALIDATION,
            f"{player.name} still owns {len(owned)} unit(s); delete them or remove with cascade",
            player,
        )
    for unit_id in owned:
        remove_unit(campaign, unit_id, rules=rules)
    for alliance in campaign.alliances.values():
        if player_id in alliance.members:
            alliance.members.remove(player_id)
    if any(
        battle.participant(player_id) is not None or battle.winner_id == player_id
        for battle in campaign.battles.values()
    ):
        campaign.retired_players[player_id] = RetiredPlayer(
            player_id=player_id, name=player.name, faction=player.faction, removed_at=utcnow()
        )
    del campaign.players[player_id]
    record_event(
        campaign,
        EventType.PLAYER_REMOVED,
        f"{player.name} left the campaign",
        rules=rules,
        player_id=player_id,
        units_removed=len(owned),
    )
    return OperationResult.ok(f"{player.name} removed", player, units_removed=len(owned))


# --- Units ----------------------------------------------------------------------


def detect_unit_flags(keywords: Iterable[str], battlefield_role: str = "") -> UnitFlags:
    """Derive unit flags from datasheet keywords and battlefield role."""

    flags = UnitFlags()
    for keyword in keywords:
        upper = keyword.upper()
        if any(k in upper for k in CHARACTER_KEYWORDS):
            flags.is_character = True
        if any(k in upper for k in TITANIC_KEYWORDS):
            flags.is_titanic = True
        if any(k in upper for k in EPIC_HERO_KEYWORDS):
            flags.is_epic_hero = True
            flags.is_character = True
        if any(k in upper for k in BATTLELINE_KEYWORDS):
            flags.is_battleline = True
        if any(k in upper for k in TRANSPORT_KEYWORDS):
            flags.is_dedicated_transport = True

    role = battlefield_role.upper()
    if any(r in role for r in CHARACTER_ROLES):
        flags.is_character = True
    if "TRANSPORT" in role:
        flags.is_dedicated_transport = True
    return flags


def _override(value: bool | None, detected: bool) -> bool:
    return detected if value is None else value


def add_unit(
    campaign: Campaign,
    player_id: PlayerID,
    record: UnitRecord | Mapping[str, Any],
    *,
    rules: RulesConfig = DEFAULT_RULES,
) -> OperationResult[Unit]:
    """Create a unit from a normalized record and add it to the player's roster.

    Exceeding the supply limit is allowed; the result carries
    ``supply_warning`` and a warning is logged.
    """

    player = campaign.players.get(player_id)
    if player is None:
        return OperationResult.fail(ErrorKind.NOT_FOUND, f"Player {player_id} not found")
    if not isinstance(record, UnitRecord):
        try:
            record = UnitRecord.model_validate(record)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'record'}: {err['msg']}" for err in exc.errors()
            )
            return OperationResult.fail(ErrorKind.VALIDATION, f"Invalid unit record: {problems}")

    detected = detect_unit_flags(record.keywords, record.battlefield_role)
    is_epic_hero = _override(record.is_epic_hero, detected.is_epic_hero)
    unit = Unit(
        id=UnitID(new_id()),
        owner_id=player_id,
        name=record.name,
        unit_type=record.unit_type,
        points_cost=record.points_cost,
        battlefield_role=record.battlefield_role,
        is_character=_override(record.is_character, detected.is_character) or is_epic_hero,
        is_titanic=_override(record.is_titanic, detected.is_titanic),
        is_epic_hero=is_epic_hero,
        is_battleline=_override(record.is_battleline, detected.is_battleline),
        is_dedicated_transport=_override(record.is_dedicated_transport, detected.is_dedicated_transport),
        can_gain_xp=record.can_gain_xp,
        keywords=list(record.keywords),
        equipment=list(record.equipment),
        notes=record.notes,
    )
    cap = rules.progression.non_character_xp_cap
    unit.experience_points = record.experience_points if unit.is_character else min(record.experience_points, cap)
    unit.rank = calculate_rank(unit.experience_points, rules=rules)
    refresh_crusade_points(unit, rules=rules)

    campaign.units[unit.id] = unit
    player.order_of_battle.append(unit.id)
    player.supply_used = supply_used(campaign, player_id)
    record_event(
        campaign,
        EventType.UNIT_ADDED,
        f"{unit.name} added to {player.name}'s Order of Battle",
        rules=rules,
        unit_id=unit.id,
        player_id=player_id,
        points=unit.points_cost,
    )

    over = player.supply_used > player.supply_limit
    if over:
        logger.warning(
            "%s exceeds supply limit: %d / %d", player.name, player.supply_used, player.supply_limit
        )
        record_event(
            campaign,
            EventType.WARNING,
            f"{player.name} exceeds the supply limit ({player.supply_used} / {player.supply_limit})",
            rules=rules,
            player_id=player_id,
        )
    return OperationResult.ok(f"{unit.name} added", unit, supply_warning=over)


def import_units(
    campaign: Campaign,
    player_id: PlayerID,
    records: Iterable[UnitRecord | Mapping[str, Any]],
    *,
    rules: RulesConfig = DEFAULT_RULES,
) -> OperationResult[ImportReport]:
    """Add every valid record; invalid ones are reported, not fatal."""

    if player_id not in campaign.players:
        return OperationResult.fail(ErrorKind.NOT_FOUND, f"Player {player_id} not found")

    report = ImportReport()
    for index, record in enumerate(records, start=1):
        result = add_unit(campaign, player_id, record, rules=rules)
        if result and result.entity is not None:
            report.imported.append(result.entity)
        else:
            report.errors.append(f"Unit {index}: {result.message}")

    if report.imported:
        record_event(
            campaign,
            EventType.CAMPAIGN_IMPORTED,
            f"Imported {len(report.imported)} unit(s) for {campaign.players[player_id].name}",
            rules=rules,
            player_id=player_id,
            imported=len(report.imported),
            rejected=len(report.errors),
        )
    if report.errors and not report.imported:
        return OperationResult.fail(ErrorKind.VALIDATION, "No units could be imported", report)
    message = f"Imported {len(report.imported)} unit(s)"
    if report.errors:
        message += f", {len(report.errors)} rejected"
    return OperationResult.ok(message, report)


def remove_unit(
    campaign: Campaign, unit_id: UnitID, *, rules: RulesConfig = DEFAULT_RULES
) -> OperationResult[Unit]:
    """Delete a unit from its roster.

    Draft battles forget the unit.  If a completed battle still references
    it, the unit is kept in ``campaign.retired_units`` so the record resolves.
    """

    unit = campaign.units.pop(unit_id, None)
    if unit is None:
        return OperationResult.fail(ErrorKind.NOT_FOUND, f"Unit {unit_id} not found")
    owner = campaign.players.get(unit.owner_id)
    if owner is not None:
        owner.order_of_battle = [uid for uid in owner.order_of_battle if uid != unit_id]
        owner.supply_used = supply_used(campaign, owner.id)

    retired = False
    for battle in campaign.battles.values():
        if battle.status == BattleStatus.DRAFT:
            battle.drop_unit(unit_id)
        elif not retired and battle.references_unit(unit_id):
            campaign.retired_units[unit_id] = RetiredUnit(
                unit_id=unit_id, name=unit.name, owner_id=unit.owner_id, removed_at=utcnow()
            )
            retired = True
    record_event(
        campaign,
        EventType.UNIT_DELETED,
        f"{unit.name} deleted",
        rules=rules,
        unit_id=unit_id,
        retired=retired,
    )
    return OperationResult.ok(f"{unit.name} deleted", unit, retired=retired)


# --- Alliances ------------------------------------------------------------------


def create_alliance(
    campaign: Campaign,
    name: str,
    members: list[PlayerID],
    *,
    share_territory: bool = False,
    share_resources: bool = False,
    rules: RulesConfig = DEFAULT_RULES,
) -> OperationResult[Alliance]:
    unknown = [pid for pid in members if pid not in campaign.players]
    if unknown:
        return OperationResult.fail(ErrorKind.NOT_FOUND, f"Invalid player ids: {unknown}")
    taken = [campaign.players[pid].name for pid in members if campaign.players[pid].alliance_id]
    if taken:
        return OperationResult.fail(ErrorKind.VALIDATION, f"Already allied: {', '.join(taken)}")

    alliance = Alliance(
        id=AllianceID(new_id()),
        name=name,
        members=list(dict.fromkeys(members)),
        share_territory=share_territory,
        share_resources=share_resources,
    )
    campaign.alliances[alliance.id] = alliance
    for pid in alliance.members:
        campaign.players[pid].alliance_id = alliance.id
    record_event(
        campaign,
        EventType.ALLIANCE_CREATED,
        f"Alliance {name} formed",
        rules=rules,
        alliance_id=alliance.id,
        members=list(alliance.members),
    )
    logger.info("Alliance created: %s", name)
    return OperationResult.ok(f"Alliance {name} formed", alliance)


def are_allied(campaign: Campaign, first: PlayerID, second: PlayerID) -> bool:
    return any(
        first in alliance.members and second in alliance.members
        for alliance in campaign.alliances.values()
    )

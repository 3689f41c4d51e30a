"""Requisition purchases paid for with Requisition Points (RP).

Purchase protocol:

1. resolve the cost from the current roster (never cached),
2. check the player can afford it,
3. check the requisition's eligibility rules,
4. apply the effect,
5. deduct the cost,
6. append an event log entry.

Steps 1-3 never mutate the campaign, so a rejected purchase leaves it exactly
as it was.  :func:`can_purchase` runs only those three steps.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from crusade.domain.enums import EventType, RequisitionType
from crusade.domain.events import record_event
from crusade.domain.honours import remove_scar, remove_weapon_modifications
from crusade.domain.models import (
    Campaign,
    Enhancement,
    EnhancementID,
    Player,
    PlayerID,
    Unit,
    UnitID,
    new_id,
)
from crusade.domain.progression import supply_used
from crusade.domain.results import ErrorKind, OperationResult
from crusade.domain.rules_config import DEFAULT_RULES, RulesConfig

logger = logging.getLogger(__name__)

UNIT_REQUISITIONS = frozenset(
    {
        RequisitionType.RENOWNED_HEROES,
        RequisitionType.LEGENDARY_VETERANS,
        RequisitionType.REARM_AND_RESUPPLY,
        RequisitionType.REPAIR_AND_RECUPERATE,
        RequisitionType.FRESH_RECRUITS,
    }
)


@dataclass(slots=True)
class PurchaseRequest:
    """Parameters of a requisition purchase.

    Only the fields relevant to ``requisition`` are read: ``enhancement_*``
    for Renowned Heroes, ``scar`` (id or name) for Repair and Recuperate,
    ``old_weapon``/``new_weapon`` for Rearm and Resupply and ``points_added``
    for Fresh Recruits.
    """

    player_id: PlayerID
    requisition: RequisitionType
    unit_id: UnitID | None = None
    enhancement_name: str | None = None
    enhancement_points: int = 0
    scar: str | None = None
    old_weapon: str | None = None
    new_weapon: str | None = None
    points_added: int = 0


# --- Costs ----------------------------------------------------------------------


def renowned_heroes_cost(
    campaign: Campaign, player_id: PlayerID, *, rules: RulesConfig = DEFAULT_RULES
) -> int:
    enhancements = sum(len(unit.enhancements) for unit in campaign.player_units(player_id))
    return min(1 + enhancements, rules.requisitions.renowned_heroes_max_cost)


def repair_and_recuperate_cost(unit: Unit, *, rules: RulesConfig = DEFAULT_RULES) -> int:
    return min(1 + len(unit.battle_honours), rules.requisitions.repair_and_recuperate_max_cost)


def fresh_recruits_cost(unit: Unit, *, rules: RulesConfig = DEFAULT_RULES) -> int:
    return min(
        1 + math.ceil(len(unit.battle_honours) / 2), rules.requisitions.fresh_recruits_max_cost
    )


def _resolve_cost(
    campaign: Campaign, request: PurchaseRequest, rules: RulesConfig
) -> OperationResult[int]:
    if request.player_id not in campaign.players:
        return OperationResult.fail(ErrorKind.NOT_FOUND, f"Player {request.player_id} not found")

    fixed = rules.requisitions.fixed_cost(request.requisition)
    if fixed is not None:
        return OperationResult.ok("fixed cost", fixed)
    if request.requisition == RequisitionType.RENOWNED_HEROES:
        return OperationResult.ok(
            "roster cost", renowned_heroes_cost(campaign, request.player_id, rules=rules)
        )

    unit = campaign.units.get(request.unit_id) if request.unit_id else None
    if unit is None:
        return OperationResult.fail(
            ErrorKind.NOT_FOUND, f"{request.requisition.value} needs an existing unit"
        )
    if request.requisition == RequisitionType.REPAIR_AND_RECUPERATE:
        return OperationResult.ok("unit cost", repair_and_recuperate_cost(unit, rules=rules))
    return OperationResult.ok("unit cost", fresh_recruits_cost(unit, rules=rules))


def requisition_cost(
    campaign: Campaign,
    player_id: PlayerID,
    requisition: RequisitionType,
    unit_id: UnitID | None = None,
    *,
    rules: RulesConfig = DEFAULT_RULES,
) -> int | None:
    """Current cost of a requisition, or ``None`` if it cannot be priced."""

    result = _resolve_cost(campaign, PurchaseRequest(player_id, requisition, unit_id), rules)
    return result.entity if result else None


# --- Eligibility ----------------------------------------------------------------


def _check_eligibility(
    campaign: Campaign, player: Player, request: PurchaseRequest, rules: RulesConfig
) -> OperationResult[Player] | None:
    if request.requisition not in UNIT_REQUISITIONS:
        return None

    unit = campaign.units.get(request.unit_id) if request.unit_id else None
    if unit is None:
        return OperationResult.fail(ErrorKind.NOT_FOUND, "Unit not found", player)
    if unit.owner_id != player.id:
        return OperationResult.fail(
            ErrorKind.VALIDATION, f"{unit.name} is not on {player.name}'s Order of Battle", player
        )

    match request.requisition:
        case RequisitionType.RENOWNED_HEROES:
            if not unit.is_character:
                return OperationResult.fail(
                    ErrorKind.CATEGORY_VIOLATION, "Renowned Heroes requires a CHARACTER unit", player
                )
            if not request.enhancement_name:
                return OperationResult.fail(
                    ErrorKind.VALIDATION, "Renowned Heroes requires an Enhancement name", player
                )
            limit = rules.requisitions.max_enhancements_per_unit
            if len(unit.enhancements) >= limit:
                return OperationResult.fail(
                    ErrorKind.CAP_EXCEEDED,
                    f"{unit.name} already has the maximum of {limit} Enhancement(s)",
                    player,
                )
        case RequisitionType.LEGENDARY_VETERANS:
            threshold = rules.progression.non_character_xp_cap
            if unit.is_character:
                return OperationResult.fail(
                    ErrorKind.CATEGORY_VIOLATION,
                    "Legendary Veterans cannot be given to CHARACTER units",
                    player,
                )
            if unit.has_legendary_veterans:
                return OperationResult.fail(
                    ErrorKind.VALIDATION, f"{unit.name} already has Legendary Veterans", player
                )
            if unit.experience_points < threshold:
                return OperationResult.fail(
                    ErrorKind.VALIDATION,
                    f"Legendary Veterans requires {threshold} XP ({unit.name} has {unit.experience_points})",
                    player,
                )
        case RequisitionType.REPAIR_AND_RECUPERATE:
            if not unit.battle_scars:
                return OperationResult.fail(
                    ErrorKind.VALIDATION, f"{unit.name} has no Battle Scars", player
                )
            if request.scar is None:
                return OperationResult.fail(
                    ErrorKind.VALIDATION, "Choose the Battle Scar to remove", player
                )
            if not any(request.scar in (s.id, s.name) for s in unit.battle_scars):
                return OperationResult.fail(
                    ErrorKind.NOT_FOUND, f"{unit.name} has no Battle Scar {request.scar}", player
                )
        case RequisitionType.FRESH_RECRUITS:
            if request.points_added < 0:
                return OperationResult.fail(
                    ErrorKind.VALIDATION, "Fresh Recruits cannot remove points", player
                )
    return None


def can_purchase(
    campaign: Campaign, request: PurchaseRequest, *, rules: RulesConfig = DEFAULT_RULES
) -> OperationResult[Player]:
    """Check a purchase without applying it; ``data['cost']`` holds the price."""

    cost_result = _resolve_cost(campaign, request, rules)
    player = campaign.players.get(request.player_id)
    if not cost_result or player is None:
        return OperationResult.fail(cost_result.error or ErrorKind.NOT_FOUND, cost_result.message, player)

    cost = cost_result.entity or 0
    if player.requisition_points < cost:
        return OperationResult.fail(
            ErrorKind.INSUFFICIENT_RESOURCES,
            f"Insufficient RP: {cost} required, {player.requisition_points} available",
            player,
            cost=cost,
        )

    rejection = _check_eligibility(campaign, player, request, rules)
    if rejection is not None:
        rejection.data["cost"] = cost
        return rejection
    return OperationResult.ok(f"{request.requisition.value} costs {cost} RP", player, cost=cost)


# --- Effects --------------------------------------------------------------------


def _apply_effect(
    campaign: Campaign, player: Player, request: PurchaseRequest, rules: RulesConfig
) -> str:
    if request.requisition == RequisitionType.INCREASE_SUPPLY_LIMIT:
        player.supply_limit += rules.requisitions.supply_limit_increase
        return f"Supply Limit increased to {player.supply_limit}"

    unit = campaign.units.get(request.unit_id) if request.unit_id else None
    if unit is None:
        raise ValueError(f"{request.requisition.value} requires a unit on the Order of Battle")

    match request.requisition:
        case RequisitionType.RENOWNED_HEROES:
            unit.enhancements.append(
                Enhancement(
                    id=EnhancementID(new_id()),
                    name=request.enhancement_name or "",
                    points_cost=request.enhancement_points,
                )
            )
            unit.points_cost += request.enhancement_points
            player.supply_used = supply_used(campaign, player.id)
            return f"{unit.name} gained the {request.enhancement_name} Enhancement"
        case RequisitionType.LEGENDARY_VETERANS:
            unit.has_legendary_veterans = True
            record_event(
                campaign,
                EventType.LEGENDARY_VETERANS,
                f"{unit.name} became Legendary Veterans",
                rules=rules,
                unit_id=unit.id,
            )
            return f"{unit.name} can now exceed {rules.progression.non_character_xp_cap} XP"
        case RequisitionType.REARM_AND_RESUPPLY:
            lost: list[str] = []
            if request.old_weapon and request.old_weapon != request.new_weapon:
                lost = [h.name for h in remove_weapon_modifications(unit, request.old_weapon, rules=rules)]
                if request.old_weapon in unit.equipment:
                    unit.equipment.remove(request.old_weapon)
                if request.new_weapon:
                    unit.equipment.append(request.new_weapon)
            if lost:
                return f"{unit.name} rearmed and lost {', '.join(lost)}"
            return f"{unit.name} rearmed"
        case RequisitionType.REPAIR_AND_RECUPERATE:
            result = remove_scar(unit, request.scar or "", rules=rules)
            scar_name = result.data.get("scar_name", request.scar)
            record_event(
                campaign,
                EventType.BATTLE_SCAR_REMOVED,
                f"{unit.name} recovered from {scar_name}",
                rules=rules,
                unit_id=unit.id,
                scar=scar_name,
            )
            return result.message
        case RequisitionType.FRESH_RECRUITS:
            unit.points_cost += request.points_added
            player.supply_used = supply_used(campaign, player.id)
            return f"{unit.name} reinforced (+{request.points_added} points)"
    raise ValueError(f"unsupported requisition: {request.requisition}")


def purchase_requisition(
    campaign: Campaign, request: PurchaseRequest, *, rules: RulesConfig = DEFAULT_RULES
) -> OperationResult[Player]:
    """Validate, apply and pay for a requisition."""

    check = can_purchase(campaign, request, rules=rules)
    if not check:
        return check

    player = campaign.players[request.player_id]
    cost = check.data["cost"]
    detail = _apply_effect(campaign, player, request, rules)
    player.requisition_points -= cost

    record_event(
        campaign,
        EventType.REQUISITION_PURCHASED,
        f"{player.name} purchased {request.requisition.value} for {cost} RP",
        rules=rules,
        player_id=player.id,
        requisition=request.requisition.value,
        unit_id=request.unit_id,
        cost=cost,
        remaining_rp=player.requisition_points,
    )
    logger.info(
        "%s purchased %s for %d RP (%d remaining)",
        player.name,
        request.requisition.value,
        cost,
        player.requisition_points,
    )
    return OperationResult.ok(
        f"{player.name} purchased {request.requisition.value} for {cost} RP. {detail}",
        player,
        cost=cost,
        remaining_rp=player.requisition_points,
    )

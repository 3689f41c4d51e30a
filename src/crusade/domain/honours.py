"""Battle Honour and Battle Scar ledger.

Honours come in three categories (Battle Traits, Weapon Modifications and
Crusade Relics) and share one per-unit cap.  Scars have their own cap and
may not repeat.  Every accepted change recomputes the unit's Crusade Points;
every rejection leaves the unit untouched.
"""

from __future__ import annotations

from crusade.domain import honours_data
from crusade.domain.enums import HonourCategory, RelicTier
from crusade.domain.models import Honour, HonourID, Scar, ScarID, Unit, new_id
from crusade.domain.progression import rank_name, refresh_crusade_points
from crusade.domain.results import ErrorKind, OperationResult
from crusade.domain.rules_config import DEFAULT_RULES, RulesConfig
from crusade.utils.rng import random_choice, random_sample

# --- Caps -----------------------------------------------------------------------


def honour_cap(unit: Unit, *, rules: RulesConfig = DEFAULT_RULES) -> int:
    if unit.is_character or unit.has_legendary_veterans:
        return rules.honours.max_honours_character
    return rules.honours.max_honours


def can_gain_honour(unit: Unit, *, rules: RulesConfig = DEFAULT_RULES) -> bool:
    return len(unit.battle_honours) < honour_cap(unit, rules=rules)


# --- Honour factories -----------------------------------------------------------


def make_trait(name: str, description: str | None = None) -> Honour:
    """Build a Battle Trait honour, filling the description from the catalogue."""

    if description is None:
        definition = honours_data.find_trait(name)
        description = definition.description if definition else ""
    return Honour(id=HonourID(new_id()), name=name, category=HonourCategory.TRAIT, description=description)


def make_relic(
    name: str,
    tier: RelicTier | None = None,
    *,
    description: str | None = None,
    rules: RulesConfig = DEFAULT_RULES,
) -> Honour:
    """Build a Crusade Relic honour valued at its tier's Crusade Points.

    The tier defaults to the catalogue entry for ``name``, then to Artificer.
    """

    definition = honours_data.find_relic(name)
    if tier is None:
        tier = definition.tier if definition else RelicTier.ARTIFICER
    if description is None:
        description = definition.description if definition else ""
    return Honour(
        id=HonourID(new_id()),
        name=name,
        category=HonourCategory.RELIC,
        description=description,
        crusade_points=rules.honours.relic_tier(tier).crusade_points,
        tier=tier,
    )


def make_weapon_modification(
    weapon_name: str, modification_ids: list[int], *, rules: RulesConfig = DEFAULT_RULES
) -> Honour:
    names = [rules.honours.weapon_modification_name(mod) or f"#{mod}" for mod in modification_ids]
    return Honour(
        id=HonourID(new_id()),
        name=f"{weapon_name} ({' / '.join(names)})",
        category=HonourCategory.WEAPON_MOD,
        description="; ".join(
            honours_data.WEAPON_MODIFICATION_EFFECTS.get(mod, "") for mod in modification_ids
        ),
        weapon_name=weapon_name,
        modifications=list(modification_ids),
    )


def roll_weapon_modifications(seed: str, *, rules: RulesConfig = DEFAULT_RULES) -> list[int]:
    """Roll the required number of distinct modification ids."""

    ids = [mod_id for mod_id, _ in rules.honours.weapon_modifications]
    return sorted(random_sample(seed, ids, rules.honours.modifications_per_weapon)["choices"])


# --- Honours --------------------------------------------------------------------


def _check_weapon_modification(
    unit: Unit, honour: Honour, rules: RulesConfig
) -> OperationResult[Unit] | None:
    if not honour.weapon_name:
        return OperationResult.fail(
            ErrorKind.VALIDATION, "A Weapon Modification must name the weapon it applies to", unit
        )
    required = rules.honours.modifications_per_weapon
    mods = honour.modifications
    if len(mods) != required or len(set(mods)) != required:
        return OperationResult.fail(
            ErrorKind.VALIDATION,
            f"A Weapon Modification needs exactly {required} different modifications",
            unit,
        )
    invalid = [mod for mod in mods if rules.honours.weapon_modification_name(mod) is None]
    if invalid:
        return OperationResult.fail(
            ErrorKind.VALIDATION, f"Unknown weapon modification ids: {invalid}", unit
        )
    for existing in unit.battle_honours:
        if existing.category == HonourCategory.WEAPON_MOD and existing.weapon_name == honour.weapon_name:
            return OperationResult.fail(
                ErrorKind.VALIDATION, f"{honour.weapon_name} is already modified", unit
            )
    return None


def _check_relic(unit: Unit, honour: Honour, rules: RulesConfig) -> OperationResult[Unit] | None:
    if not unit.is_character:
        return OperationResult.fail(
            ErrorKind.CATEGORY_VIOLATION, "Crusade Relics can only be given to CHARACTER units", unit
        )
    tier = honour.tier or RelicTier.ARTIFICER
    required_rank = rules.honours.relic_tier(tier).rank_required
    if unit.rank < required_rank:
        return OperationResult.fail(
            ErrorKind.VALIDATION,
            f"{tier.value.title()} relics require rank {rank_name(required_rank, rules=rules)} or higher",
            unit,
        )
    return None


def add_honour(
    unit: Unit, honour: Honour, *, rules: RulesConfig = DEFAULT_RULES
) -> OperationResult[Unit]:
    """Append a Battle Honour after checking cap and category rules."""

    cap = honour_cap(unit, rules=rules)
    if len(unit.battle_honours) >= cap:
        return OperationResult.fail(
            ErrorKind.CAP_EXCEEDED,
            f"{unit.name} already has the maximum of {cap} Battle Honours",
            unit,
            cap=cap,
        )

    if honour.category == HonourCategory.RELIC:
        rejection = _check_relic(unit, honour, rules)
    elif honour.category == HonourCategory.WEAPON_MOD:
        rejection = _check_weapon_modification(unit, honour, rules)
    else:
        rejection = None
    if rejection is not None:
        return rejection

    if honour.category != HonourCategory.WEAPON_MOD and any(
        existing.category == honour.category and existing.name == honour.name
        for existing in unit.battle_honours
    ):
        return OperationResult.fail(
            ErrorKind.VALIDATION, f"{unit.name} already has {honour.name}", unit
        )

    unit.battle_honours.append(honour)
    unit.pending_honour_selection = False
    refresh_crusade_points(unit, rules=rules)
    return OperationResult.ok(
        f"{unit.name} gained {honour.name}", unit, honour_id=honour.id, crusade_points=unit.crusade_points
    )


def add_weapon_modifications(
    unit: Unit,
    weapon_name: str,
    modification_ids: list[int],
    *,
    rules: RulesConfig = DEFAULT_RULES,
) -> OperationResult[Unit]:
    """Apply both modifications to one weapon, or neither."""

    honour = make_weapon_modification(weapon_name, modification_ids, rules=rules)
    return add_honour(unit, honour, rules=rules)


def remove_honour(
    unit: Unit, honour_id: HonourID, *, rules: RulesConfig = DEFAULT_RULES
) -> OperationResult[Unit]:
    for index, honour in enumerate(unit.battle_honours):
        if honour.id == honour_id:
            del unit.battle_honours[index]
            refresh_crusade_points(unit, rules=rules)
            return OperationResult.ok(
                f"{unit.name} lost {honour.name}", unit, honour_name=honour.name
            )
    return OperationResult.fail(
        ErrorKind.NOT_FOUND, f"{unit.name} has no Battle Honour with id {honour_id}", unit
    )


def remove_weapon_modifications(
    unit: Unit, weapon_name: str, *, rules: RulesConfig = DEFAULT_RULES
) -> list[Honour]:
    """Drop every Weapon Modification on ``weapon_name`` and return them."""

    removed = [
        h
        for h in unit.battle_honours
        if h.category == HonourCategory.WEAPON_MOD and h.weapon_name == weapon_name
    ]
    if removed:
        unit.battle_honours = [h for h in unit.battle_honours if h not in removed]
        refresh_crusade_points(unit, rules=rules)
    return removed


# --- Scars ----------------------------------------------------------------------


def available_scars(unit: Unit, *, rules: RulesConfig = DEFAULT_RULES) -> list[str]:
    held = {scar.name for scar in unit.battle_scars}
    return [name for name in rules.honours.battle_scars if name not in held]


def add_scar(
    unit: Unit,
    scar_name: str,
    *,
    acquired_by: str = "out_of_action",
    rules: RulesConfig = DEFAULT_RULES,
) -> OperationResult[Unit]:
    cap = rules.honours.max_scars
    if len(unit.battle_scars) >= cap:
        return OperationResult.fail(
            ErrorKind.CAP_EXCEEDED,
            f"{unit.name} already has the maximum of {cap} Battle Scars",
            unit,
            cap=cap,
        )
    if scar_name not in rules.honours.battle_scars:
        return OperationResult.fail(ErrorKind.VALIDATION, f"Unknown Battle Scar: {scar_name}", unit)
    if any(scar.name == scar_name for scar in unit.battle_scars):
        return OperationResult.fail(
            ErrorKind.VALIDATION, f"{unit.name} already has the {scar_name} Battle Scar", unit
        )

    scar = Scar(
        id=ScarID(new_id()),
        name=scar_name,
        description=honours_data.SCAR_EFFECTS.get(scar_name, ""),
        acquired_by=acquired_by,
    )
    unit.battle_scars.append(scar)
    refresh_crusade_points(unit, rules=rules)
    return OperationResult.ok(
        f"{unit.name} gained the {scar_name} Battle Scar", unit, scar_id=scar.id
    )


def remove_scar(
    unit: Unit, scar: ScarID | str, *, rules: RulesConfig = DEFAULT_RULES
) -> OperationResult[Unit]:
    """Remove a scar by id or by name."""

    for index, existing in enumerate(unit.battle_scars):
        if scar in (existing.id, existing.name):
            del unit.battle_scars[index]
            refresh_crusade_points(unit, rules=rules)
            return OperationResult.ok(
                f"{unit.name} recovered from {existing.name}", unit, scar_name=existing.name
            )
    return OperationResult.fail(ErrorKind.NOT_FOUND, f"{unit.name} has no Battle Scar {scar}", unit)


def roll_scar(unit: Unit, seed: str, *, rules: RulesConfig = DEFAULT_RULES) -> str | None:
    """Randomly pick a scar the unit does not already carry."""

    options = available_scars(unit, rules=rules)
    if not options:
        return None
    return random_choice(seed, options)["choice"]

"""Catalogue data for Battle Honours and Battle Scars.

Names used for rule checks (scar names, weapon modification ids, relic tier
values) live in :mod:`crusade.domain.rules_config`; this module only carries
the descriptive text shown alongside them.
"""

from dataclasses import dataclass

from crusade.domain.enums import RelicTier


@dataclass(frozen=True)
class TraitDefinition:
    name: str
    category: str
    description: str


@dataclass(frozen=True)
class RelicDefinition:
    name: str
    tier: RelicTier
    description: str


SCAR_EFFECTS: dict[str, str] = {
    "Crippling Damage": "Cannot Advance, -1\" Move",
    "Battle-Weary": "-1 to Battle-shock, Leadership, Desperate Escape and Out of Action tests",
    "Fatigued": "-1 OC, no Charge bonus",
    "Disgraced": "Cannot use Stratagems, cannot be Marked for Greatness",
    "Mark of Shame": "Cannot attach, unaffected by Auras, cannot be Marked for Greatness",
    "Deep Scars": "Critical Hits auto-wound",
}

WEAPON_MODIFICATION_EFFECTS: dict[int, str] = {
    1: "Improve the BS or WS characteristic by 1",
    2: "Add 1 to the Strength characteristic",
    3: "Improve the AP characteristic by 1",
    4: "Add 1 to the Damage characteristic",
    5: "Add 1 to the Attacks characteristic",
    6: "Critical Wounds gain [PRECISION]",
}

BATTLE_TRAITS: tuple[TraitDefinition, ...] = (
    TraitDefinition("Inspiring Leader", "Leadership", "Nearby units may use this unit's Leadership"),
    TraitDefinition("Lethal Sharpshooter", "Shooting", "Ranged weapons gain [LETHAL HITS]"),
    TraitDefinition("Melee Expert", "Melee", "Melee weapons gain [LETHAL HITS]"),
    TraitDefinition("Tank Hunter", "Anti-Vehicle", "+1 to Wound against VEHICLE or MONSTER units"),
    TraitDefinition("Fortified Position", "Defensive", "5+ invulnerable save while on a held objective"),
    TraitDefinition("Rapid Deployment", "Movement", "6\" Normal move before the first turn"),
    TraitDefinition("Devastating Charge", "Melee", "Melee weapons gain [DEVASTATING WOUNDS] after charging"),
    TraitDefinition("Marked for Death", "Special", "Re-roll Wound rolls of 1 against a marked unit"),
    TraitDefinition("Stealth Specialist", "Defensive", "-1 to Hit against this unit while in terrain"),
    TraitDefinition("Never Give Up", "Movement", "Eligible to shoot after Falling Back"),
    TraitDefinition("Chem-enhanced", "Enhancement", "+1 Strength to this unit's weapons"),
    TraitDefinition("Tenacious Survivor", "Defensive", "Ignore a lost wound on a 6"),
)

CRUSADE_RELICS: tuple[RelicDefinition, ...] = (
    RelicDefinition("Blade of Valor", RelicTier.ARTIFICER, "Ancient power sword with a storied history"),
    RelicDefinition("Mastercrafted Bolter", RelicTier.ARTIFICER, "Perfectly engineered ranged weapon"),
    RelicDefinition("Armour of Defiance", RelicTier.ARTIFICER, "Well-crafted protective armour"),
    RelicDefinition("Talisman of Warding", RelicTier.ARTIFICER, "Protective charm against psychic assault"),
    RelicDefinition("Icon of Leadership", RelicTier.ARTIFICER, "Banner that inspires nearby warriors"),
    RelicDefinition("Relic Blade of Heroes", RelicTier.ANTIQUITY, "Legendary weapon from a bygone age"),
    RelicDefinition("Plasma Gun of Antiquity", RelicTier.ANTIQUITY, "Ancient plasma technology"),
    RelicDefinition("Aegis Eternal", RelicTier.ANTIQUITY, "Ancient armour of legendary protection"),
    RelicDefinition("Banner of Ancient Glory", RelicTier.ANTIQUITY, "Revered standard of countless battles"),
    RelicDefinition("Sword of the Imperium", RelicTier.LEGENDARY, "One of the most legendary weapons in existence"),
    RelicDefinition("Hellfire Arquebus of Legend", RelicTier.LEGENDARY, "Mythical firearm of immense power"),
    RelicDefinition("Eternal Aegis", RelicTier.LEGENDARY, "The ultimate protection, blessed through eons"),
)


def find_trait(name: str) -> TraitDefinition | None:
    return next((t for t in BATTLE_TRAITS if t.name.lower() == name.lower()), None)


def find_relic(name: str) -> RelicDefinition | None:
    return next((r for r in CRUSADE_RELICS if r.name.lower() == name.lower()), None)

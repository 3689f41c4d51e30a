"""Deterministic random number generation for crusade campaigns.

Every roll is seeded from campaign state (campaign id, scope and context) so
that the same inputs always produce the same result.  This keeps Out of
Action tests and random honour/scar rolls reproducible and auditable: the
seed is stored alongside the outcome in the event log.

Examples:
    >>> seed = generate_seed("c0ffee", "battle:42", "out_of_action:unit_7")
    >>> result = roll_dice(seed, "1d6")
    >>> result["notation"], len(result["rolls"])
    ('1d6', 1)
"""

import hashlib
import random
import re
from typing import Any

_DICE_RE = re.compile(r"(?P<count>\d+)d(?P<sides>\d+)", re.IGNORECASE)


def generate_seed(campaign_id: str, scope: str, context: str) -> str:
    """Generate a deterministic seed from campaign state.

    Format: ``"campaign_id:scope:context"``

    Args:
        campaign_id: Identifier of the campaign the roll belongs to
        scope: Where in the campaign the roll happens (e.g. ``"battle:<id>"``)
        context: What the roll is for (e.g. ``"out_of_action:<unit id>"``)

    Raises:
        ValueError: If campaign_id is empty
    """
    if not campaign_id:
        raise ValueError("campaign_id must be a non-empty string")

    return f"{campaign_id}:{scope}:{context}"


def _seeded_random(seed: str) -> random.Random:
    # first 8 bytes of the sha256 digest seed the generator
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    return random.Random(int.from_bytes(digest[:8], "big"))


def parse_dice(notation: str) -> tuple[int, int]:
    """Split ``NdM`` notation into ``(count, sides)``.

    >>> parse_dice("2d6")
    (2, 6)
    """
    match = _DICE_RE.fullmatch(notation.strip())
    if match is None:
        raise ValueError(f"Invalid dice notation {notation!r}; expected NdM such as '1d6'")

    count, sides = int(match["count"]), int(match["sides"])
    if count < 1 or sides < 1:
        raise ValueError(f"Dice notation {notation!r} needs at least one die with one side")
    return count, sides


def dice_range(notation: str) -> tuple[int, int]:
    """Return the lowest and highest totals possible for ``notation``."""
    count, sides = parse_dice(notation)
    return count, count * sides


def roll_dice(seed: str, notation: str = "1d6") -> dict[str, Any]:
    """Roll dice with a deterministic seed.

    Returns:
        Dictionary with the ``notation``, the individual ``rolls``, their
        ``total`` and the ``seed`` used.

    Raises:
        ValueError: If dice notation is invalid
    """
    count, sides = parse_dice(notation)
    rng = _seeded_random(seed)
    rolls = [rng.randint(1, sides) for _ in range(count)]
    return {"notation": notation, "rolls": rolls, "total": sum(rolls), "seed": seed}


def random_choice(seed: str, options: list[Any]) -> dict[str, Any]:
    """Choose one option with a deterministic seed.

    Returns:
        Dictionary containing ``choice``, ``index`` and ``seed``.

    Raises:
        ValueError: If options list is empty
    """
    if not options:
        raise ValueError("options list cannot be empty")

    index = _seeded_random(seed).randrange(len(options))
    return {"choice": options[index], "index": index, "seed": seed}


def random_sample(seed: str, options: list[Any], count: int) -> dict[str, Any]:
    """Choose ``count`` distinct options with a deterministic seed.

    Used for rolls that must not repeat, such as the two modifications of a
    weapon.

    Raises:
        ValueError: If count is negative or larger than the number of options
    """
    if count < 0 or count > len(options):
        raise ValueError(f"cannot pick {count} distinct values from {len(options)} options")

    return {"choices": _seeded_random(seed).sample(options, count), "seed": seed}

"""Crusade campaign domain model.

This package holds every campaign rule in one place.  It exposes:

* Dataclasses describing every campaign entity (see :mod:`models`).
* Enumerations and strongly-typed identifiers used across the rules layer.
* Rule configuration objects (see :mod:`rules_config`).
* Pure rule functions for progression, honours, Out of Action tests,
  requisitions, battles, rosters and validation.

Everything operates on in-memory dataclasses; persistence lives in
:mod:`crusade.persistence`.
"""

from . import (
    battle,
    enums,
    events,
    honours,
    models,
    out_of_action,
    progression,
    requisitions,
    results,
    roster,
    rules_config,
    validator,
)

__all__ = [
    "battle",
    "enums",
    "events",
    "honours",
    "models",
    "out_of_action",
    "progression",
    "requisitions",
    "results",
    "roster",
    "rules_config",
    "validator",
]

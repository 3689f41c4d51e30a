"""Snapshot schema migrations.

Each step upgrades the raw campaign dictionary by one version.  Snapshots
newer than :data:`CURRENT_VERSION` are loaded as-is; their unknown fields are
preserved by the codec.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from crusade.domain.results import CorruptSnapshotError

logger = logging.getLogger(__name__)

CURRENT_VERSION = "1.1.0"

Migration = Callable[[dict[str, Any]], dict[str, Any]]


def _v1_0_0_to_v1_1_0(data: dict[str, Any]) -> dict[str, Any]:
    """Units carried a single ``enhancement``; the registry of fallen units is new."""

    for unit in (data.get("units") or {}).values():
        if "enhancements" not in unit:
            single = unit.pop("enhancement", None)
            unit["enhancements"] = [single] if single else []
    data.setdefault("fallen_units", {})
    return data


MIGRATIONS: dict[str, tuple[str, Migration]] = {
    "1.0.0": ("1.1.0", _v1_0_0_to_v1_1_0),
}


def parse_version(version: str) -> tuple[int, ...]:
    try:
        return tuple(int(part) for part in version.split("."))
    except ValueError as exc:
        raise ValueError(f"invalid snapshot version {version!r}") from exc


def migrate(data: dict[str, Any], version: str, *, source: str | None = None) -> dict[str, Any]:
    """Run the migration chain from ``version`` up to :data:`CURRENT_VERSION`."""

    try:
        if parse_version(version) > parse_version(CURRENT_VERSION):
            logger.warning("snapshot version %s is newer than %s; loading as-is", version, CURRENT_VERSION)
            return data
    except ValueError as exc:
        raise CorruptSnapshotError(str(exc), source=source) from exc

    while version != CURRENT_VERSION:
        step = MIGRATIONS.get(version)
        if step is None:
            raise CorruptSnapshotError(f"no migration path from version {version}", source=source)
        target, upgrade = step
        logger.info("migrating snapshot from %s to %s", version, target)
        data = upgrade(data)
        version = target
    return data

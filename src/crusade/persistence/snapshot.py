"""Versioned JSON snapshots of a campaign.

Envelope layout::

    {
      "format": "crusade-campaign",
      "version": "1.1.0",
      "checksum": "<sha256 of the canonical campaign JSON>",
      "saved_at": "<ISO timestamp>",
      "campaign": {...}
    }

Fields this version does not know are kept in each entity's ``extras`` on
load and written back on save.  The checksum is mandatory from version
1.1.0; older snapshots without one load with a warning.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
import logging
import types
from datetime import UTC, datetime
from typing import Any, Union, get_args, get_origin, get_type_hints

from pydantic import TypeAdapter, ValidationError

from crusade.domain import models as dm
from crusade.domain.results import CorruptSnapshotError
from crusade.persistence.migrations import CURRENT_VERSION, migrate, parse_version

logger = logging.getLogger(__name__)

SNAPSHOT_FORMAT = "crusade-campaign"

CAMPAIGN_ADAPTER: TypeAdapter[dm.Campaign] = TypeAdapter(dm.Campaign)

EXTRAS_FIELD = "extras"

# snapshots written from this version on always carry a checksum
CHECKSUM_REQUIRED_FROM = (1, 1, 0)


def _dataclass_in(tp: Any) -> type | None:
    if dataclasses.is_dataclass(tp) and isinstance(tp, type):
        return tp
    if get_origin(tp) in (Union, types.UnionType):
        for arg in get_args(tp):
            found = _dataclass_in(arg)
            if found is not None:
                return found
    return None


def _walk(data: Any, tp: Any, on_dataclass) -> Any:
    cls = _dataclass_in(tp)
    if cls is not None and isinstance(data, dict):
        return on_dataclass(data, cls)
    origin = get_origin(tp)
    if origin is list and isinstance(data, list):
        (item_type,) = get_args(tp)
        return [_walk(item, item_type, on_dataclass) for item in data]
    if origin is dict and isinstance(data, dict):
        _, value_type = get_args(tp)
        return {key: _walk(value, value_type, on_dataclass) for key, value in data.items()}
    return data


def lift_unknown_fields(data: dict[str, Any], cls: type = dm.Campaign) -> dict[str, Any]:
    """Move keys the dataclasses do not declare into their ``extras`` mapping."""

    def lift(raw: dict[str, Any], target: type) -> dict[str, Any]:
        hints = get_type_hints(target)
        known = {f.name for f in dataclasses.fields(target)}
        result: dict[str, Any] = {}
        extras = dict(raw.get(EXTRAS_FIELD) or {}) if EXTRAS_FIELD in known else None
        for key, value in raw.items():
            if key == EXTRAS_FIELD:
                continue
            if key in known:
                result[key] = _walk(value, hints[key], lift)
            elif extras is not None:
                extras[key] = value
        if extras is not None:
            result[EXTRAS_FIELD] = extras
        return result

    return lift(data, cls)


def merge_unknown_fields(data: dict[str, Any], cls: type = dm.Campaign) -> dict[str, Any]:
    """Inverse of :func:`lift_unknown_fields` for dumped campaign data."""

    def merge(raw: dict[str, Any], target: type) -> dict[str, Any]:
        hints = get_type_hints(target)
        result = {
            key: _walk(value, hints[key], merge) if key in hints else value
            for key, value in raw.items()
            if key != EXTRAS_FIELD
        }
        for key, value in (raw.get(EXTRAS_FIELD) or {}).items():
            result.setdefault(key, value)
        return result

    return merge(data, cls)


def canonical_json(data: Any) -> bytes:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def checksum(campaign_data: dict[str, Any]) -> str:
    return hashlib.sha256(canonical_json(campaign_data)).hexdigest()


def campaign_to_dict(campaign: dm.Campaign) -> dict[str, Any]:
    return merge_unknown_fields(CAMPAIGN_ADAPTER.dump_python(campaign, mode="json"))


def campaign_from_dict(data: dict[str, Any], *, source: str | None = None) -> dm.Campaign:
    try:
        return CAMPAIGN_ADAPTER.validate_python(lift_unknown_fields(data))
    except ValidationError as exc:
        raise CorruptSnapshotError(
            f"campaign data failed schema validation: {exc.error_count()} error(s)", source=source
        ) from exc


def encode_snapshot(campaign: dm.Campaign, *, saved_at: datetime | None = None) -> bytes:
    """Serialize a campaign into a checksummed snapshot envelope."""

    data = campaign_to_dict(campaign)
    envelope = {
        "format": SNAPSHOT_FORMAT,
        "version": CURRENT_VERSION,
        "checksum": checksum(data),
        "saved_at": (saved_at or datetime.now(UTC)).isoformat(),
        "campaign": data,
    }
    return json.dumps(envelope, indent=2, sort_keys=True, ensure_ascii=False).encode("utf-8")


def read_envelope(payload: bytes, *, source: str | None = None) -> dict[str, Any]:
    """Parse and verify a snapshot envelope without decoding the campaign."""

    try:
        envelope = json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CorruptSnapshotError(f"snapshot is not valid JSON: {exc}", source=source) from exc
    if not isinstance(envelope, dict) or not isinstance(envelope.get("campaign"), dict):
        raise CorruptSnapshotError("snapshot has no campaign object", source=source)
    if envelope.get("format", SNAPSHOT_FORMAT) != SNAPSHOT_FORMAT:
        raise CorruptSnapshotError(f"unexpected snapshot format {envelope['format']!r}", source=source)

    version = str(envelope.get("version", "1.0.0"))
    expected = envelope.get("checksum")
    if expected is None:
        try:
            required = parse_version(version) >= CHECKSUM_REQUIRED_FROM
        except ValueError as exc:
            raise CorruptSnapshotError(str(exc), source=source) from exc
        if required:
            raise CorruptSnapshotError(f"snapshot version {version} has no checksum", source=source)
        logger.warning("snapshot %s (version %s) has no checksum; integrity not verified", source, version)
    elif checksum(envelope["campaign"]) != expected:
        raise CorruptSnapshotError("snapshot checksum mismatch", source=source)
    return envelope


def decode_snapshot(payload: bytes, *, source: str | None = None) -> dm.Campaign:
    """Verify, migrate and decode a snapshot produced by :func:`encode_snapshot`."""

    envelope = read_envelope(payload, source=source)
    version = str(envelope.get("version", "1.0.0"))
    data = migrate(envelope["campaign"], version, source=source)
    return campaign_from_dict(data, source=source)

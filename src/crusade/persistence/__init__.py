"""Snapshot persistence: codec, migrations, backup rings and autosave."""

from .autosave import AutosaveScheduler
from .backups import BackupInfo, BackupRing
from .coordinator import LoadResult, PersistenceCoordinator, prepare_loaded_campaign
from .snapshot import decode_snapshot, encode_snapshot

__all__ = [
    "AutosaveScheduler",
    "BackupInfo",
    "BackupRing",
    "LoadResult",
    "PersistenceCoordinator",
    "decode_snapshot",
    "encode_snapshot",
    "prepare_loaded_campaign",
]

"""Bounded ring of snapshot files for one campaign."""

from __future__ import annotations

import logging
import os
import re
import tempfile
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

logger = logging.getLogger(__name__)

_SNAPSHOT_RE = re.compile(r"^snapshot-(\d{8})\.json$")


@dataclass(slots=True)
class BackupInfo:
    """A snapshot file in the ring; ``index`` 0 is the newest."""

    index: int
    sequence: int
    path: Path
    size: int
    modified_at: datetime


def atomic_write(path: Path, payload: bytes) -> None:
    """Write ``payload`` to ``path`` via a temporary file and an atomic rename."""

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class BackupRing:
    """Keep the newest ``capacity`` snapshots of a campaign on disk."""

    def __init__(self, directory: Path, *, capacity: int = 10) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.directory = directory
        self.capacity = capacity

    def _sequences(self) -> list[tuple[int, Path]]:
        if not self.directory.exists():
            return []
        found: list[tuple[int, Path]] = []
        for path in self.directory.iterdir():
            match = _SNAPSHOT_RE.match(path.name)
            if match:
                found.append((int(match.group(1)), path))
        return sorted(found, reverse=True)

    def paths(self) -> list[Path]:
        """Snapshot paths, newest first."""

        return [path for _, path in self._sequences()]

    def list(self) -> list[BackupInfo]:
        infos: list[BackupInfo] = []
        for index, (sequence, path) in enumerate(self._sequences()):
            stat = path.stat()
            infos.append(
                BackupInfo(
                    index=index,
                    sequence=sequence,
                    path=path,
                    size=stat.st_size,
                    modified_at=datetime.fromtimestamp(stat.st_mtime, UTC),
                )
            )
        return infos

    def write(self, payload: bytes) -> Path:
        """Store a new newest snapshot and evict any beyond capacity."""

        existing = self._sequences()
        sequence = existing[0][0] + 1 if existing else 1
        path = self.directory / f"snapshot-{sequence:08d}.json"
        atomic_write(path, payload)
        for _, stale in self._sequences()[self.capacity :]:
            logger.debug("evicting snapshot %s", stale.name)
            stale.unlink(missing_ok=True)
        return path

    def __len__(self) -> int:
        return len(self._sequences())

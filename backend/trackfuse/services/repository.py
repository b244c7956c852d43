"""
Activity Repository - indexes a folder of activity files.

Tracks are not cached: every request re-reads and re-ingests the file, so
ingestion runs stay independent of each other.
"""

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from trackfuse.models.track import Track
from trackfuse.services.adapters import SUPPORTED_SUFFIXES, parse_activity_file
from trackfuse.services.assembler import GpxSelection


logger = logging.getLogger(__name__)


@dataclass
class ActivityEntry:
    """Index entry for one activity file."""

    id: str
    name: str
    source_file: Path
    format: str
    size_bytes: int
    modified_at: datetime


class ActivityRepository:
    """
    Repository for activity files.

    Reads .gpx and .fit files from a folder.
    """

    def __init__(self, data_folder: Optional[Path] = None):
        """
        Initialize the repository.

        Args:
            data_folder: Folder containing activity files. If None, must be set later.
        """
        self._data_folder: Optional[Path] = data_folder
        self._index: dict[str, ActivityEntry] = {}

        if data_folder is not None:
            self.scan_folder(data_folder)

    @property
    def data_folder(self) -> Optional[Path]:
        return self._data_folder

    @property
    def activity_count(self) -> int:
        return len(self._index)

    def set_data_folder(self, folder: Path) -> int:
        """
        Set the data folder and scan it.

        Returns:
            Number of activity files found
        """
        self._data_folder = folder
        self._index.clear()
        return self.scan_folder(folder)

    def scan_folder(self, folder: Path) -> int:
        """
        Scan a folder for activity files and build the index.

        Returns:
            Number of activity files found
        """
        if not folder.exists():
            logger.warning(f"Data folder does not exist: {folder}")
            return 0

        count = 0
        for filepath in sorted(folder.iterdir()):
            if not filepath.is_file() or filepath.suffix.lower() not in SUPPORTED_SUFFIXES:
                continue
            entry = self._make_entry(filepath)
            self._index[entry.id] = entry
            count += 1
            logger.debug(f"Indexed activity: {entry.id} -> {filepath.name}")

        logger.info(f"Scanned {count} activity files in {folder}")
        return count

    def list_activities(self) -> list[ActivityEntry]:
        """Index entries, newest file first, then by name."""
        return sorted(
            self._index.values(),
            key=lambda e: (e.modified_at, e.name),
            reverse=True,
        )

    def get_entry(self, activity_id: str) -> Optional[ActivityEntry]:
        return self._index.get(activity_id)

    def load_track(self, activity_id: str, selection: Optional[GpxSelection] = None) -> Optional[Track]:
        """
        Ingest an indexed file.

        Returns:
            Track if the id is known, None otherwise. GPX files need an
            explicit selection; decode and selection errors propagate.
        """
        entry = self._index.get(activity_id)
        if entry is None:
            return None
        return parse_activity_file(entry.source_file, selection)

    def _make_entry(self, filepath: Path) -> ActivityEntry:
        stat = filepath.stat()
        return ActivityEntry(
            id=self._filepath_to_id(filepath),
            name=filepath.stem,
            source_file=filepath,
            format=filepath.suffix.lower().lstrip("."),
            size_bytes=stat.st_size,
            modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )

    def _filepath_to_id(self, filepath: Path) -> str:
        """Generate a consistent ID from filepath."""
        stat = filepath.stat()
        id_string = f"{filepath.name}_{stat.st_size}_{stat.st_mtime}"
        return hashlib.sha256(id_string.encode()).hexdigest()[:16]


# Global repository instance (set up by app initialization)
_repository: Optional[ActivityRepository] = None


def get_repository() -> ActivityRepository:
    """Get the global repository instance."""
    global _repository
    if _repository is None:
        _repository = ActivityRepository()
    return _repository


def init_repository(data_folder: Path) -> ActivityRepository:
    """Initialize the global repository with a data folder."""
    global _repository
    _repository = ActivityRepository(data_folder)
    return _repository

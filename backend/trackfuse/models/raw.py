"""
Raw activity model (source-format, unnormalized).

Adapters load source files into this structure before normalization.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional


class SourceKind(Enum):
    """Origin of a single raw stream."""

    GPX_TRACK = "gpx_track"
    FIT_RECORD_DEFINITION = "fit_record_definition"


class ActivityKind(Enum):
    """File format of a raw activity."""

    GPX = "gpx"
    FIT = "fit"


@dataclass
class Stream:
    """Ordered raw rows from one physical source (GPX segment or FIT definition)."""

    source_kind: SourceKind
    rows: list[Mapping[str, Any]]
    units: dict[str, Optional[str]] = field(default_factory=dict)

    @property
    def field_schema(self) -> set[str]:
        names: set[str] = set()
        for row in self.rows:
            names.update(row.keys())
        return names

    def __len__(self) -> int:
        return len(self.rows)


@dataclass
class RawActivity:
    """Raw activity extracted from a source file."""

    kind: ActivityKind
    source_file: Optional[Path]
    name: str

    # GPX: {"metadata", "bounds", "waypoints", "tracks", "routes"}
    gpx: Optional[dict[str, Any]] = None

    # FIT: one stream per record message definition
    streams: list[Stream] = field(default_factory=list)

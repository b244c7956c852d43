"""
Adapter selection and the file -> Track convenience entry points.
"""

from pathlib import Path
from typing import Optional, Protocol

from trackfuse.errors import UnsupportedFormatError
from trackfuse.models.raw import RawActivity
from trackfuse.models.track import Track
from trackfuse.services.assembler import GpxSelection, assemble
from trackfuse.services.fit_parser import FitAdapter
from trackfuse.services.gpx_parser import GpxAdapter


class ActivityAdapter(Protocol):
    """Adapter interface for activity file formats."""

    name: str
    suffixes: tuple[str, ...]

    def can_parse(self, filepath: Path) -> bool:
        ...

    def parse(self, filepath: Path) -> RawActivity:
        ...


ADAPTERS: list[ActivityAdapter] = [
    GpxAdapter(),
    FitAdapter(),
]

SUPPORTED_SUFFIXES = tuple(s for adapter in ADAPTERS for s in adapter.suffixes)


def select_adapter(filepath: Path) -> ActivityAdapter:
    for adapter in ADAPTERS:
        if adapter.can_parse(filepath):
            return adapter
    raise UnsupportedFormatError(f"No adapter available for file: {filepath}")


def read_activity(filepath: Path) -> RawActivity:
    """Decode a file into its raw structure without normalizing it."""
    return select_adapter(filepath).parse(filepath)


def parse_activity_file(filepath: Path, selection: Optional[GpxSelection] = None) -> Track:
    """
    Parse a .gpx or .fit file into a Track.

    GPX files need an explicit `selection`.
    """
    return assemble(read_activity(filepath), selection)

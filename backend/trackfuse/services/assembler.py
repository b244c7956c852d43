"""
Track assembler - entry point from a parsed activity to a Track.

GPX input is a nested mapping {metadata, bounds, waypoints, tracks, routes}
where `tracks` is a list of tracks, each a list of segments, each a list of
row mappings. Only `tracks` is consumed; the other keys are handed back in
Track.passthrough untouched.

FIT input is a list of record streams, one per message definition.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from trackfuse.errors import SelectionError
from trackfuse.models.raw import ActivityKind, RawActivity, SourceKind, Stream
from trackfuse.models.track import Track
from trackfuse.services.merger import merge_streams
from trackfuse.services.normalizer import normalize_stream


logger = logging.getLogger(__name__)


GPX_PASSTHROUGH_KEYS = ("metadata", "bounds", "waypoints", "routes")


@dataclass(frozen=True)
class GpxSelection:
    """
    Which GPX track(s)/segment(s) to ingest.

    track=None selects every track. segment=None selects every segment of
    the chosen track(s).
    """

    track: Optional[int] = None
    segment: Optional[int] = None

    def __post_init__(self):
        if self.track is None and self.segment is not None:
            raise SelectionError("A segment can only be selected together with a track")
        if self.track is not None and self.track < 0:
            raise SelectionError(f"Track index must be >= 0, got {self.track}")
        if self.segment is not None and self.segment < 0:
            raise SelectionError(f"Segment index must be >= 0, got {self.segment}")

    @classmethod
    def all(cls) -> "GpxSelection":
        return cls()

    @property
    def is_all(self) -> bool:
        return self.track is None


def select_segments(tracks: Sequence[Sequence[Any]], selection: GpxSelection) -> list[Sequence[Any]]:
    """Pick the segments named by `selection`, in file order."""
    if selection.is_all:
        return [segment for track in tracks for segment in track]

    if selection.track >= len(tracks):
        raise SelectionError(f"Track {selection.track} out of range ({len(tracks)} tracks)")
    segments = tracks[selection.track]
    if selection.segment is None:
        return list(segments)
    if selection.segment >= len(segments):
        raise SelectionError(
            f"Segment {selection.segment} out of range ({len(segments)} segments in track {selection.track})"
        )
    return [segments[selection.segment]]


def assemble_streams(streams: Sequence[Stream]) -> Track:
    """Normalize each stream and merge them into one Track."""
    normalized = [normalize_stream(stream, i) for i, stream in enumerate(streams)]
    return merge_streams(normalized)


def assemble_gpx(parsed: Mapping[str, Any], selection: GpxSelection) -> Track:
    """
    Build a Track from a parsed GPX structure.

    Args:
        parsed: Parsed GPX mapping (see module docstring)
        selection: Explicit track/segment choice; use GpxSelection.all() to merge everything

    Returns:
        Track with the non-track keys copied into `passthrough`
    """
    if not isinstance(selection, GpxSelection):
        raise SelectionError("GPX input needs an explicit GpxSelection")

    tracks = parsed.get("tracks") or []
    segments = select_segments(tracks, selection)
    streams = [Stream(source_kind=SourceKind.GPX_TRACK, rows=list(rows)) for rows in segments]

    track = assemble_streams(streams)
    track.passthrough = {key: parsed[key] for key in GPX_PASSTHROUGH_KEYS if key in parsed}
    _log_summary("gpx", track)
    return track


def assemble_fit(streams: Sequence[Stream]) -> Track:
    """Build a Track from FIT record streams (all streams are merged)."""
    track = assemble_streams(streams)
    _log_summary("fit", track)
    return track


def assemble(activity: RawActivity, selection: Optional[GpxSelection] = None) -> Track:
    """
    Dispatch on activity kind.

    GPX activities require `selection`; FIT activities ignore it.
    """
    if activity.kind == ActivityKind.GPX:
        if selection is None:
            raise SelectionError(
                f"{activity.name}: GPX input needs an explicit selection (GpxSelection.all() to merge all tracks)"
            )
        return assemble_gpx(activity.gpx or {}, selection)
    return assemble_fit(activity.streams)


def _log_summary(kind: str, track: Track) -> None:
    report = track.report
    logger.info(
        f"Assembled {kind} track: {len(track)} records from {len(report.per_stream)} streams "
        f"(dropped={report.dropped}, untimed={report.untimed}, coerced_missing={report.coerced_missing})"
    )

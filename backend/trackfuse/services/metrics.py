"""
Derived metrics for overlays and markers.

All functions are read-only queries over a Track. "No result" (empty track,
field never recorded) is returned as None rather than a computed value.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from trackfuse.models.track import LAT, LON, TIMESTAMP, IngestReport, Record, Track
from trackfuse.utils.coordinates import cumulative_distance


@dataclass(frozen=True)
class BoundingBox:
    lat_min: float
    lat_max: float
    lon_min: float
    lon_max: float

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.lat_min, self.lat_max, self.lon_min, self.lon_max)


@dataclass(frozen=True)
class Endpoints:
    first: Record
    last: Record


@dataclass(frozen=True)
class ValueRange:
    min: float
    max: float


@dataclass
class TrackSummary:
    """Everything a map view needs besides the points themselves."""

    record_count: int
    field_schema: list[str]
    bounding_box: Optional[BoundingBox]
    endpoints: Optional[Endpoints]
    distance_m: float
    duration: Optional[timedelta]
    report: IngestReport


def _spatial_arrays(track: Track) -> tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.bool_]]:
    df = track.to_frame()
    lat = df[LAT].to_numpy(dtype=np.float64)
    lon = df[LON].to_numpy(dtype=np.float64)
    valid = np.isfinite(lat) & np.isfinite(lon)
    return lat, lon, valid


def _field_array(track: Track, field: str) -> NDArray[np.float64]:
    df = track.to_frame()
    if field == TIMESTAMP or field not in df.columns:
        return np.full(len(df), np.nan)
    return df[field].to_numpy(dtype=np.float64)


def bounding_box(track: Track) -> Optional[BoundingBox]:
    """Min/max lat and lon over spatially valid records."""
    lat, lon, valid = _spatial_arrays(track)
    if not np.any(valid):
        return None
    return BoundingBox(
        lat_min=float(np.min(lat[valid])),
        lat_max=float(np.max(lat[valid])),
        lon_min=float(np.min(lon[valid])),
        lon_max=float(np.max(lon[valid])),
    )


def endpoints(track: Track) -> Optional[Endpoints]:
    """First and last spatially valid record in timestamp order."""
    _, _, valid = _spatial_arrays(track)
    if not np.any(valid):
        return None
    indices = np.flatnonzero(valid)
    return Endpoints(first=track.records[indices[0]], last=track.records[indices[-1]])


def extremum(track: Track, field: str, mode: str = "max") -> Optional[Record]:
    """
    Record holding the maximum (or minimum) present value of `field`.

    Ties resolve to the earliest record.
    """
    if mode not in ("max", "min"):
        raise ValueError(f"mode must be 'max' or 'min', got {mode!r}")
    if not track.has_field(field) or track.is_empty:
        return None

    values = _field_array(track, field)
    present = ~np.isnan(values)
    if not np.any(present):
        return None

    # argmax/argmin return the first occurrence
    if mode == "max":
        idx = int(np.argmax(np.where(present, values, -np.inf)))
    else:
        idx = int(np.argmin(np.where(present, values, np.inf)))
    return track.records[idx]


def value_range(track: Track, field: str) -> Optional[ValueRange]:
    """Min/max of the present values of `field` (for colour scaling)."""
    if not track.has_field(field) or track.is_empty:
        return None
    values = _field_array(track, field)
    present = values[~np.isnan(values)]
    if present.size == 0:
        return None
    return ValueRange(min=float(np.min(present)), max=float(np.max(present)))


def total_distance(track: Track) -> float:
    """Path length in meters."""
    lat, lon, valid = _spatial_arrays(track)
    if np.count_nonzero(valid) < 2:
        return 0.0
    return float(cumulative_distance(lat[valid], lon[valid])[-1])


def duration(track: Track) -> Optional[timedelta]:
    if track.is_empty:
        return None
    return track.records[-1].timestamp - track.records[0].timestamp


def summarize(track: Track) -> TrackSummary:
    return TrackSummary(
        record_count=len(track),
        field_schema=list(track.field_schema),
        bounding_box=bounding_box(track),
        endpoints=endpoints(track),
        distance_m=total_distance(track),
        duration=duration(track),
        report=track.report,
    )

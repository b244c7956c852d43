"""
Payloads for the map renderer.

The renderer itself (tiles, polyline layer, colour-gradient plugin) lives
outside this package; these helpers only shape Track data the way those
components expect it.
"""

from typing import Any, Optional

from trackfuse.models.track import ELE, LAT, LON, Present, Track
from trackfuse.services import metrics


def polyline_payload(track: Track) -> dict[str, list[float]]:
    """Parallel lat/lon sequences."""
    return {LAT: track.lat, LON: track.lon}


def gradient_payload(
    track: Track,
    field: str = ELE,
    value_range: Optional[metrics.ValueRange] = None,
) -> Optional[dict[str, Any]]:
    """
    [lat, lon, value] triples plus the {min, max} used for colour scaling.

    Records without a reading for `field` are skipped. Returns None when no
    record has one. A caller-supplied `value_range` overrides the data range.
    """
    points = []
    for record in track.records:
        value = record.get(field)
        if isinstance(value, Present):
            points.append([record.latitude, record.longitude, value.value])
    if not points:
        return None

    if value_range is None:
        value_range = metrics.value_range(track, field)
    return {
        "field": field,
        "points": points,
        "range": {"min": value_range.min, "max": value_range.max},
    }


def _marker(label: str, record) -> dict[str, Any]:
    return {
        "label": label,
        LAT: record.latitude,
        LON: record.longitude,
        "timestamp": record.timestamp.isoformat() if record.timestamp else None,
    }


def marker_payload(track: Track, field: Optional[str] = None) -> list[dict[str, Any]]:
    """Start/end markers, plus a marker at the maximum of `field` if given."""
    ends = metrics.endpoints(track)
    if ends is None:
        return []

    markers = [_marker("start", ends.first), _marker("end", ends.last)]
    if field is not None:
        peak = metrics.extremum(track, field)
        if peak is not None:
            marker = _marker(f"max {field}", peak)
            marker["value"] = peak.get(field).value
            markers.append(marker)
    return markers

"""
GPX adapter.

Reads a .gpx file with gpxpy into the nested raw structure consumed by
the assembler:

    {"metadata": {...}, "bounds": {...} | None, "waypoints": [...],
     "tracks": [[[row, ...], ...], ...], "routes": [...]}

Track point rows keep source names (lat, lon, ele, time) plus the children
of any TrackPointExtension (hr, cad, atemp, ...) as text.
"""

import codecs
import logging
import re
from pathlib import Path
from typing import Any, Optional

import gpxpy
import gpxpy.gpx

from trackfuse.errors import ActivityDecodeError
from trackfuse.models.raw import ActivityKind, RawActivity


logger = logging.getLogger(__name__)

_ENCODING_DECL = re.compile(rb"\s*<\?xml[^>]*?encoding=[\"']([A-Za-z0-9._-]+)[\"']")
_XML_DECL = re.compile(r"^\ufeff?\s*<\?xml[^>]*\?>\s*")


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _extension_fields(point: gpxpy.gpx.GPXTrackPoint) -> dict[str, Optional[str]]:
    """Flatten <extensions> children, e.g. gpxtpx:hr -> {"hr": "142"}."""
    fields: dict[str, Optional[str]] = {}
    for extension in point.extensions or []:
        for elem in extension.iter():
            if len(elem) == 0:
                fields[_local_name(elem.tag)] = elem.text.strip() if elem.text else None
    return fields


def _point_row(point) -> dict[str, Any]:
    row: dict[str, Any] = {
        "lat": point.latitude,
        "lon": point.longitude,
        "ele": point.elevation,
        "time": point.time.isoformat() if point.time else None,
    }
    if isinstance(point, gpxpy.gpx.GPXTrackPoint):
        for name, value in _extension_fields(point).items():
            row.setdefault(name, value)
    return row


def gpx_to_raw(gpx: gpxpy.gpx.GPX) -> dict[str, Any]:
    """Convert a parsed gpxpy document into the raw nested mapping."""
    bounds = gpx.get_bounds()
    return {
        "metadata": {
            "name": gpx.name,
            "description": gpx.description,
            "author": gpx.author_name,
            "time": gpx.time.isoformat() if gpx.time else None,
            "creator": gpx.creator,
        },
        "bounds": {
            "min_latitude": bounds.min_latitude,
            "max_latitude": bounds.max_latitude,
            "min_longitude": bounds.min_longitude,
            "max_longitude": bounds.max_longitude,
        } if bounds is not None else None,
        "waypoints": [
            {"name": wpt.name, **_point_row(wpt)}
            for wpt in gpx.waypoints
        ],
        "tracks": [
            [[_point_row(point) for point in segment.points] for segment in track.segments]
            for track in gpx.tracks
        ],
        "routes": [
            {"name": route.name, "points": [_point_row(point) for point in route.points]}
            for route in gpx.routes
        ],
    }


def decode_gpx_bytes(data: bytes) -> str:
    """
    Decode raw GPX bytes using the encoding named in the XML declaration.

    The declaration is removed from the result, since the text no longer
    has the encoding it names. Files without a declaration are read as
    UTF-8.
    """
    if data.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
        encoding = "utf-16"
    else:
        match = _ENCODING_DECL.match(data)
        encoding = match.group(1).decode("ascii") if match else "utf-8"

    try:
        if codecs.lookup(encoding).name == "utf-8":
            encoding = "utf-8-sig"
        text = data.decode(encoding)
    except LookupError as exc:
        raise ActivityDecodeError(f"Unknown GPX encoding: {encoding}") from exc
    except UnicodeDecodeError as exc:
        raise ActivityDecodeError(f"GPX content is not valid {encoding}: {exc}") from exc
    return _XML_DECL.sub("", text, count=1)


def parse_gpx_text(text: str) -> dict[str, Any]:
    try:
        gpx = gpxpy.parse(text)
    except (gpxpy.gpx.GPXException, ValueError) as exc:
        raise ActivityDecodeError(f"Not a valid GPX document: {exc}") from exc
    return gpx_to_raw(gpx)


class GpxAdapter:
    """Adapter for .gpx files."""

    name = "gpx"
    suffixes = (".gpx",)

    def can_parse(self, filepath: Path) -> bool:
        return filepath.suffix.lower() in self.suffixes

    def parse(self, filepath: Path) -> RawActivity:
        try:
            parsed = parse_gpx_text(decode_gpx_bytes(filepath.read_bytes()))
        except ActivityDecodeError as exc:
            raise ActivityDecodeError(f"Failed to parse '{filepath}' as GPX: {exc}") from exc

        n_points = sum(len(seg) for track in parsed["tracks"] for seg in track)
        logger.debug(f"Read {filepath.name}: {len(parsed['tracks'])} tracks, {n_points} track points")
        return RawActivity(
            kind=ActivityKind.GPX,
            source_file=filepath,
            name=parsed["metadata"]["name"] or filepath.stem,
            gpx=parsed,
        )

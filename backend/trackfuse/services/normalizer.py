"""
Stream normalizer.

Maps one raw stream (GPX segment or FIT record definition) onto canonical
field names, coerces text-encoded numbers and timestamps, and builds Records.
Rows without usable coordinates are dropped and counted, never raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

import pandas as pd

from trackfuse.models.raw import Stream
from trackfuse.models.track import (
    ABSENT,
    ELE,
    LAT,
    LON,
    TIMESTAMP,
    IngestReport,
    Record,
    field_value,
)


logger = logging.getLogger(__name__)


SEMICIRCLES_TO_DEGREES = 180.0 / 2**31


_ALIAS_GROUPS = {
    TIMESTAMP: ["timestamp", "time", "Time", "Timestamp", "datetime"],
    LAT: ["lat", "latitude", "Latitude", "position_lat"],
    LON: ["lon", "lng", "long", "longitude", "Longitude", "position_long"],
    ELE: ["ele", "elevation", "Elevation", "altitude", "Altitude", "alt", "enhanced_altitude"],
    "speed": ["speed", "enhanced_speed"],
    "heart_rate": ["heart_rate", "hr", "heartrate"],
    "cadence": ["cadence", "cad"],
    "power": ["power", "watts"],
    "temperature": ["temperature", "atemp", "temp"],
    "distance": ["distance"],
}

# Source name -> canonical name. Read-only after import.
ALIASES: Mapping[str, str] = MappingProxyType(
    {alias: canonical for canonical, aliases in _ALIAS_GROUPS.items() for alias in aliases}
)

# When two source columns resolve to the same canonical name, the one
# listed here wins (FIT writes both altitude and enhanced_altitude).
ENHANCED_PREFERENCE = ("enhanced_altitude", "enhanced_speed")


@dataclass
class NormalizedStream:
    """Records of one stream plus its canonical schema and counts."""

    records: list[Record]
    field_schema: list[str]
    report: IngestReport = field(default_factory=IngestReport)


def canonical_name(column: str) -> str:
    """Canonical name for a source column; unknown names pass through."""
    if column in ALIASES:
        return ALIASES[column]
    return ALIASES.get(column.strip().lower(), column)


def resolve_columns(columns: Iterable[str]) -> dict[str, str]:
    """
    Map canonical name -> source column.

    Order follows first appearance in `columns`.
    """
    col_map: dict[str, str] = {}
    for column in columns:
        name = canonical_name(column)
        current = col_map.get(name)
        if current is None or (column in ENHANCED_PREFERENCE and current not in ENHANCED_PREFERENCE):
            col_map[name] = column
    return col_map


def normalize_stream(stream: Stream, stream_index: int = 0) -> NormalizedStream:
    """
    Convert one raw stream into canonical Records.

    Args:
        stream: Raw rows with source-specific column names
        stream_index: Position of the stream in its activity (provenance)

    Returns:
        NormalizedStream with kept records, schema and an IngestReport
    """
    df = pd.DataFrame.from_records([dict(row) for row in stream.rows])
    n_rows = len(df)
    col_map = resolve_columns([str(c) for c in df.columns])
    schema = list(col_map.keys())

    lat = _coordinate(df, col_map.get(LAT), stream.units)
    lon = _coordinate(df, col_map.get(LON), stream.units)
    valid = lat.notna() & lon.notna() & lat.between(-90.0, 90.0) & lon.between(-180.0, 180.0)

    timestamps = _timestamps(df, col_map.get(TIMESTAMP))

    coerced_missing = 0
    optional: dict[str, pd.Series] = {}
    for name, column in col_map.items():
        if name in (TIMESTAMP, LAT, LON):
            continue
        raw = df[column]
        values = pd.to_numeric(raw, errors="coerce")
        failed = raw.notna() & values.isna() & valid
        coerced_missing += int(failed.sum())
        optional[name] = values

    records: list[Record] = []
    untimed = 0
    for i in range(n_rows):
        if not valid.iat[i]:
            continue
        ts = timestamps[i]
        if ts is None:
            untimed += 1
        extras = {
            name: field_value(values.iat[i])
            for name, values in optional.items()
            if name != ELE
        }
        records.append(
            Record(
                timestamp=ts,
                latitude=float(lat.iat[i]),
                longitude=float(lon.iat[i]),
                elevation=field_value(optional[ELE].iat[i]) if ELE in optional else ABSENT,
                extra_fields=extras,
                stream_index=stream_index,
            )
        )

    dropped = n_rows - len(records)
    if dropped:
        logger.debug(f"Stream {stream_index}: dropped {dropped} of {n_rows} rows without valid coordinates")
    if n_rows and not records:
        logger.warning(f"Stream {stream_index} ({stream.source_kind.value}) has no valid records")

    report = IngestReport(
        total_rows=n_rows,
        dropped=dropped,
        untimed=untimed,
        coerced_missing=coerced_missing,
        per_stream=[
            {
                "stream_index": stream_index,
                "rows": n_rows,
                "kept": len(records),
                "dropped": dropped,
                "untimed": untimed,
                "coerced_missing": coerced_missing,
            }
        ],
    )
    return NormalizedStream(records=records, field_schema=schema, report=report)


def _coordinate(df: pd.DataFrame, column: Optional[str], units: Mapping[str, Optional[str]]) -> pd.Series:
    if column is None:
        return pd.Series([float("nan")] * len(df), index=df.index, dtype="float64")
    values = pd.to_numeric(df[column], errors="coerce").astype("float64")
    if (units.get(column) or "").lower() == "semicircles":
        values = values * SEMICIRCLES_TO_DEGREES
    return values


def _timestamps(df: pd.DataFrame, column: Optional[str]) -> list:
    if column is None:
        return [None] * len(df)
    parsed = pd.to_datetime(df[column], utc=True, errors="coerce", format="ISO8601")
    return [None if pd.isna(t) else t.to_pydatetime() for t in parsed]

"""
Canonical track data model.

All ingested activity data is normalized into this structure with:
- canonical field names (lat, lon, ele, timestamp + passthrough extras)
- UTC timestamps
- an explicit ABSENT marker for fields a record has no reading for
- per-ingestion drop/missing counts
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional, Union

import numpy as np
import pandas as pd


LAT = "lat"
LON = "lon"
ELE = "ele"
TIMESTAMP = "timestamp"
CORE_FIELDS = (TIMESTAMP, LAT, LON, ELE)


class Absent(Enum):
    """No reading for this field at this record (distinct from zero)."""

    ABSENT = "absent"

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT = Absent.ABSENT


@dataclass(frozen=True)
class Present:
    """A recorded numeric reading."""

    value: float


FieldValue = Union[Present, Absent]


def field_value(value: Optional[float]) -> FieldValue:
    """Wrap a float as Present, mapping None/NaN to ABSENT."""
    if value is None:
        return ABSENT
    value = float(value)
    if math.isnan(value):
        return ABSENT
    return Present(value)


def unwrap(value: FieldValue, default: Any = None) -> Any:
    """Return the float inside a Present, or default for ABSENT."""
    if isinstance(value, Present):
        return value.value
    return default


@dataclass
class Record:
    """One normalized, timestamped observation with position."""

    timestamp: Optional[datetime]
    latitude: float
    longitude: float
    elevation: FieldValue = ABSENT
    extra_fields: dict[str, FieldValue] = field(default_factory=dict)
    stream_index: int = 0

    def get(self, name: str) -> FieldValue:
        """Look up a field by canonical name."""
        if name == LAT:
            return Present(self.latitude)
        if name == LON:
            return Present(self.longitude)
        if name == ELE:
            return self.elevation
        return self.extra_fields.get(name, ABSENT)


@dataclass
class IngestReport:
    """Counts of data lost or marked missing during one ingestion."""

    total_rows: int = 0
    dropped: int = 0
    untimed: int = 0
    coerced_missing: int = 0
    per_stream: list[dict[str, int]] = field(default_factory=list)

    @property
    def kept(self) -> int:
        return self.total_rows - self.dropped

    def __add__(self, other: "IngestReport") -> "IngestReport":
        return IngestReport(
            total_rows=self.total_rows + other.total_rows,
            dropped=self.dropped + other.dropped,
            untimed=self.untimed + other.untimed,
            coerced_missing=self.coerced_missing + other.coerced_missing,
            per_stream=self.per_stream + other.per_stream,
        )


@dataclass
class Track:
    """
    Final merged artifact of one ingestion run.

    `records` is sorted by timestamp ascending (stable on ties, so earlier
    streams win). Records without a timestamp cannot be ordered and are kept
    apart in `untimed`.
    """

    records: list[Record] = field(default_factory=list)
    field_schema: list[str] = field(default_factory=list)
    untimed: list[Record] = field(default_factory=list)
    report: IngestReport = field(default_factory=IngestReport)
    passthrough: dict[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.records)

    @property
    def is_empty(self) -> bool:
        return not self.records

    @property
    def extra_schema(self) -> list[str]:
        return [name for name in self.field_schema if name not in CORE_FIELDS]

    @property
    def lat(self) -> list[float]:
        return [r.latitude for r in self.records]

    @property
    def lon(self) -> list[float]:
        return [r.longitude for r in self.records]

    def column(self, name: str) -> list[FieldValue]:
        return [r.get(name) for r in self.records]

    def has_field(self, name: str) -> bool:
        return name in (LAT, LON) or name in self.field_schema

    def to_frame(self) -> pd.DataFrame:
        """
        Tabular view for analysis. ABSENT becomes NaN here; the Record
        objects keep the distinction. The index holds each record's
        stream_index.
        """
        columns = [TIMESTAMP, LAT, LON, ELE] + self.extra_schema
        df = pd.DataFrame(records_to_rows(self.records, missing=np.nan), columns=columns)
        df[TIMESTAMP] = pd.to_datetime(df[TIMESTAMP], utc=True)
        df.index = pd.Index([r.stream_index for r in self.records], name="stream_index")
        return df


def records_to_rows(records: Iterable[Record], missing: Any = None) -> list[dict[str, Any]]:
    """
    Canonical rows for a record sequence, `missing` standing in for ABSENT.

    Normalizing these rows again yields equal Records.
    """
    rows = []
    for record in records:
        row: dict[str, Any] = {
            TIMESTAMP: record.timestamp,
            LAT: record.latitude,
            LON: record.longitude,
            ELE: unwrap(record.elevation, missing),
        }
        for name, value in record.extra_fields.items():
            row[name] = unwrap(value, missing)
        rows.append(row)
    return rows

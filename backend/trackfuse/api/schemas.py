"""
API schemas (Pydantic models) for request/response validation.
"""

from typing import Any, Optional

from pydantic import BaseModel


# ============================================================================
# Activity Schemas
# ============================================================================

class ActivityEntryResponse(BaseModel):
    """Index entry for listing."""
    id: str
    name: str
    source_file: str
    format: str
    size_bytes: int
    modified_at: str


class RecordResponse(BaseModel):
    """One track record. Absent readings are null."""
    timestamp: Optional[str] = None
    lat: float
    lon: float
    ele: Optional[float] = None
    fields: dict[str, Optional[float]] = {}
    stream_index: int


class BoundingBoxResponse(BaseModel):
    lat_min: float
    lat_max: float
    lon_min: float
    lon_max: float


class StreamReportResponse(BaseModel):
    stream_index: int
    rows: int
    kept: int
    dropped: int
    untimed: int
    coerced_missing: int


class IngestReportResponse(BaseModel):
    """Counts of dropped and missing data."""
    total_rows: int
    kept: int
    dropped: int
    untimed: int
    coerced_missing: int
    streams: list[StreamReportResponse]


class TrackSummaryResponse(BaseModel):
    """Summary of an ingested activity."""
    id: str
    name: str
    format: str
    record_count: int
    field_schema: list[str]
    bounding_box: Optional[BoundingBoxResponse] = None  # null for an empty track
    start: Optional[RecordResponse] = None
    end: Optional[RecordResponse] = None
    distance_m: float
    duration_s: Optional[float] = None
    report: IngestReportResponse
    metadata: Optional[dict[str, Any]] = None  # GPX only


class RecordsResponse(BaseModel):
    """Full ordered record list."""
    id: str
    field_schema: list[str]
    records: list[RecordResponse]
    untimed: list[RecordResponse]


# ============================================================================
# Overlay Schemas
# ============================================================================

class PolylineResponse(BaseModel):
    """Parallel coordinate sequences for a polyline layer."""
    id: str
    lat: list[float]
    lon: list[float]


class ValueRangeResponse(BaseModel):
    min: float
    max: float


class GradientResponse(BaseModel):
    """[lat, lon, value] triples for a colour-gradient layer."""
    id: str
    field: str
    points: list[list[float]]
    range: Optional[ValueRangeResponse] = None  # null when no record has the field


class ExtremumResponse(BaseModel):
    """Record holding the max/min of a field."""
    id: str
    field: str
    mode: str
    value: Optional[float] = None
    record: Optional[RecordResponse] = None


class MarkerResponse(BaseModel):
    label: str
    lat: float
    lon: float
    timestamp: Optional[str] = None
    value: Optional[float] = None


# ============================================================================
# Folder Management Schemas
# ============================================================================

class SetFolderRequest(BaseModel):
    """Request to set the data folder."""
    path: str


class FolderInfoResponse(BaseModel):
    """Information about the current data folder."""
    path: Optional[str]
    activity_count: int


# ============================================================================
# Error Schemas
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: str
    code: Optional[str] = None

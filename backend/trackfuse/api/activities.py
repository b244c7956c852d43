"""
API routes for activities.

Every per-activity route ingests the file on request. For GPX files the
`track`/`segment` query parameters choose what is ingested; leaving both out
is an explicit request to merge all tracks.
"""

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from trackfuse.api.schemas import (
    ActivityEntryResponse,
    BoundingBoxResponse,
    ErrorResponse,
    ExtremumResponse,
    FolderInfoResponse,
    GradientResponse,
    IngestReportResponse,
    MarkerResponse,
    PolylineResponse,
    RecordResponse,
    RecordsResponse,
    SetFolderRequest,
    StreamReportResponse,
    TrackSummaryResponse,
    ValueRangeResponse,
)
from trackfuse.errors import ActivityDecodeError, SelectionError
from trackfuse.models.track import ELE, Record, Track, unwrap
from trackfuse.services import metrics, render
from trackfuse.services.assembler import GpxSelection
from trackfuse.services.repository import ActivityEntry, get_repository


router = APIRouter(prefix="/activities", tags=["activities"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


def _record_response(record: Record) -> RecordResponse:
    return RecordResponse(
        timestamp=record.timestamp.isoformat() if record.timestamp else None,
        lat=record.latitude,
        lon=record.longitude,
        ele=unwrap(record.elevation),
        fields={name: unwrap(value) for name, value in record.extra_fields.items()},
        stream_index=record.stream_index,
    )


def _report_response(track: Track) -> IngestReportResponse:
    report = track.report
    return IngestReportResponse(
        total_rows=report.total_rows,
        kept=report.kept,
        dropped=report.dropped,
        untimed=report.untimed,
        coerced_missing=report.coerced_missing,
        streams=[StreamReportResponse(**s) for s in report.per_stream],
    )


def gpx_selection(
    track: Optional[int] = Query(None, description="GPX track index; omit to merge all tracks"),
    segment: Optional[int] = Query(None, description="Segment index within `track`; omit for all segments"),
) -> GpxSelection:
    """Build the GPX selection from query parameters."""
    try:
        return GpxSelection(track=track, segment=segment)
    except SelectionError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _load(activity_id: str, selection: GpxSelection) -> tuple[ActivityEntry, Track]:
    repo = get_repository()
    entry = repo.get_entry(activity_id)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Activity not found: {activity_id}")

    try:
        track = repo.load_track(activity_id, selection)
    except SelectionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ActivityDecodeError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return entry, track


@router.get("", response_model=list[ActivityEntryResponse])
async def list_activities():
    """
    List all indexed activity files.

    Files are not parsed for listing.
    """
    repo = get_repository()
    return [
        ActivityEntryResponse(
            id=e.id,
            name=e.name,
            source_file=str(e.source_file),
            format=e.format,
            size_bytes=e.size_bytes,
            modified_at=e.modified_at.isoformat(),
        )
        for e in repo.list_activities()
    ]


@router.get("/{activity_id}", response_model=TrackSummaryResponse, responses=ERROR_RESPONSES)
def get_activity_summary(activity_id: str, selection: GpxSelection = Depends(gpx_selection)):
    """
    Ingest an activity and return bounds, endpoints and ingestion counts.
    """
    entry, track = _load(activity_id, selection)
    summary = metrics.summarize(track)

    bbox = summary.bounding_box
    ends = summary.endpoints
    return TrackSummaryResponse(
        id=entry.id,
        name=entry.name,
        format=entry.format,
        record_count=summary.record_count,
        field_schema=summary.field_schema,
        bounding_box=BoundingBoxResponse(**vars(bbox)) if bbox else None,
        start=_record_response(ends.first) if ends else None,
        end=_record_response(ends.last) if ends else None,
        distance_m=summary.distance_m,
        duration_s=summary.duration.total_seconds() if summary.duration is not None else None,
        report=_report_response(track),
        metadata=track.passthrough.get("metadata"),
    )


@router.get("/{activity_id}/records", response_model=RecordsResponse, responses=ERROR_RESPONSES)
def get_activity_records(activity_id: str, selection: GpxSelection = Depends(gpx_selection)):
    """
    Full ordered record list.

    Warning: This can be a large response for long activities.
    """
    entry, track = _load(activity_id, selection)
    return RecordsResponse(
        id=entry.id,
        field_schema=track.field_schema,
        records=[_record_response(r) for r in track.records],
        untimed=[_record_response(r) for r in track.untimed],
    )


@router.get("/{activity_id}/polyline", response_model=PolylineResponse, responses=ERROR_RESPONSES)
def get_activity_polyline(activity_id: str, selection: GpxSelection = Depends(gpx_selection)):
    entry, track = _load(activity_id, selection)
    return PolylineResponse(id=entry.id, **render.polyline_payload(track))


@router.get("/{activity_id}/gradient", response_model=GradientResponse, responses=ERROR_RESPONSES)
def get_activity_gradient(
    activity_id: str,
    field: str = Query(ELE, description="Field to colour by"),
    min_value: Optional[float] = Query(None, alias="min", description="Lower end of the colour scale"),
    max_value: Optional[float] = Query(None, alias="max", description="Upper end of the colour scale"),
    selection: GpxSelection = Depends(gpx_selection),
):
    """
    Colour-gradient overlay data.

    When only one of min/max is given the other comes from the data.
    """
    entry, track = _load(activity_id, selection)

    data_range = metrics.value_range(track, field)
    if data_range is None:
        return GradientResponse(id=entry.id, field=field, points=[], range=None)

    scale = metrics.ValueRange(
        min=min_value if min_value is not None else data_range.min,
        max=max_value if max_value is not None else data_range.max,
    )
    if scale.min > scale.max:
        raise HTTPException(status_code=400, detail="min must not exceed max")

    payload = render.gradient_payload(track, field, scale)
    return GradientResponse(
        id=entry.id,
        field=field,
        points=payload["points"],
        range=ValueRangeResponse(**payload["range"]),
    )


@router.get("/{activity_id}/extremum", response_model=ExtremumResponse, responses=ERROR_RESPONSES)
def get_activity_extremum(
    activity_id: str,
    field: str = Query("speed", description="Field to search"),
    mode: str = Query("max", pattern="^(max|min)$"),
    selection: GpxSelection = Depends(gpx_selection),
):
    """Record holding the max (or min) of a field; earliest record wins ties."""
    entry, track = _load(activity_id, selection)
    record = metrics.extremum(track, field, mode)
    return ExtremumResponse(
        id=entry.id,
        field=field,
        mode=mode,
        value=unwrap(record.get(field)) if record is not None else None,
        record=_record_response(record) if record is not None else None,
    )


@router.get("/{activity_id}/markers", response_model=list[MarkerResponse], responses=ERROR_RESPONSES)
def get_activity_markers(
    activity_id: str,
    field: Optional[str] = Query(None, description="Also mark the maximum of this field"),
    selection: GpxSelection = Depends(gpx_selection),
):
    _, track = _load(activity_id, selection)
    return [MarkerResponse(**m) for m in render.marker_payload(track, field)]


# ============================================================================
# Folder Management Routes
# ============================================================================

folder_router = APIRouter(prefix="/folder", tags=["folder"])


@folder_router.get("", response_model=FolderInfoResponse)
async def get_folder_info():
    """Get information about the current data folder."""
    repo = get_repository()

    return FolderInfoResponse(
        path=str(repo.data_folder) if repo.data_folder else None,
        activity_count=repo.activity_count,
    )


@folder_router.post("", response_model=FolderInfoResponse)
async def set_folder(request: SetFolderRequest):
    """
    Set the data folder to scan for .gpx/.fit files.
    """
    repo = get_repository()

    path = Path(request.path)
    if not path.exists():
        raise HTTPException(status_code=400, detail=f"Folder does not exist: {request.path}")
    if not path.is_dir():
        raise HTTPException(status_code=400, detail=f"Path is not a directory: {request.path}")

    count = repo.set_data_folder(path)

    return FolderInfoResponse(
        path=str(path),
        activity_count=count,
    )


@folder_router.post("/rescan", response_model=FolderInfoResponse)
async def rescan_folder():
    """
    Rebuild the index of the current data folder.
    """
    repo = get_repository()

    if repo.data_folder is None:
        raise HTTPException(status_code=400, detail="No data folder set")

    count = repo.set_data_folder(repo.data_folder)

    return FolderInfoResponse(
        path=str(repo.data_folder),
        activity_count=count,
    )

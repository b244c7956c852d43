"""
Multi-stream merger.

Combines normalized streams recorded concurrently by different sensors into
one chronologically ordered Track whose schema is the union of the inputs.
"""

import logging
from dataclasses import replace
from typing import Sequence

from trackfuse.models.track import ABSENT, CORE_FIELDS, IngestReport, Record, Track
from trackfuse.services.normalizer import NormalizedStream


logger = logging.getLogger(__name__)


def union_schema(streams: Sequence[NormalizedStream]) -> list[str]:
    """Union of stream schemas, in first-seen order."""
    schema: list[str] = []
    for stream in streams:
        for name in stream.field_schema:
            if name not in schema:
                schema.append(name)
    return schema


def merge_streams(streams: Sequence[NormalizedStream]) -> Track:
    """
    Merge normalized streams into one Track.

    Records are sorted by timestamp with a stable sort, so on equal instants
    records keep stream order, then row order. Every extra field in the
    unioned schema is set on every record, ABSENT where its stream had no
    reading.
    """
    schema = union_schema(streams)
    extra_names = [name for name in schema if name not in CORE_FIELDS]

    timed: list[Record] = []
    untimed: list[Record] = []
    report = IngestReport()
    for stream in streams:
        report = report + stream.report
        for record in stream.records:
            (timed if record.timestamp is not None else untimed).append(record)

    timed.sort(key=lambda r: r.timestamp)

    timed = [_with_schema(r, extra_names) for r in timed]
    untimed = [_with_schema(r, extra_names) for r in untimed]

    if untimed:
        logger.warning(f"{len(untimed)} records have no timestamp and were left out of the ordered track")

    return Track(records=timed, field_schema=schema, untimed=untimed, report=report)


def _with_schema(record: Record, extra_names: list[str]) -> Record:
    extras = {name: record.extra_fields.get(name, ABSENT) for name in extra_names}
    return replace(record, extra_fields=extras)

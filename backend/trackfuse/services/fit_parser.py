"""
FIT adapter.

Decodes a .fit file with fitparse and splits its `record` messages into one
stream per message definition: a head unit and each paired sensor can write
records with different field sets, start times and rates, and each of those
becomes its own stream for the merger.
"""

import logging
from pathlib import Path
from typing import Iterable

import fitparse  # type: ignore

from trackfuse.errors import ActivityDecodeError
from trackfuse.models.raw import ActivityKind, RawActivity, SourceKind, Stream


logger = logging.getLogger(__name__)


def group_record_messages(messages: Iterable) -> list[Stream]:
    """
    Group record messages by message definition.

    A definition is identified by the local message number it was written
    under together with its field names, so two sources with identical
    field sets stay separate streams. Streams come out in the order their
    first message appears. Values stay raw (positions in semicircles);
    units are kept per column so the normalizer can convert them.
    """
    streams: dict[tuple[int, tuple[str, ...]], Stream] = {}
    for message in messages:
        fields = [f for f in message.fields if f.name]
        key = (message.header.local_mesg_num, tuple(f.name for f in fields))
        stream = streams.get(key)
        if stream is None:
            stream = Stream(
                source_kind=SourceKind.FIT_RECORD_DEFINITION,
                rows=[],
                units={f.name: f.units for f in fields},
            )
            streams[key] = stream
        stream.rows.append({f.name: f.value for f in fields})
    return list(streams.values())


class FitAdapter:
    """Adapter for .fit files."""

    name = "fit"
    suffixes = (".fit",)

    def can_parse(self, filepath: Path) -> bool:
        return filepath.suffix.lower() in self.suffixes

    def parse(self, filepath: Path) -> RawActivity:
        try:
            fitfile = fitparse.FitFile(str(filepath))
            streams = group_record_messages(fitfile.get_messages("record"))
        except fitparse.FitParseError as exc:
            raise ActivityDecodeError(f"Failed to parse '{filepath}' as FIT: {exc}") from exc

        logger.debug(
            f"Read {filepath.name}: {len(streams)} record definitions, "
            f"{sum(len(s) for s in streams)} records"
        )
        return RawActivity(
            kind=ActivityKind.FIT,
            source_file=filepath,
            name=filepath.stem,
            streams=streams,
        )

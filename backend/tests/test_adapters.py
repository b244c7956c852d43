"""
Tests for the GPX/FIT file adapters.
"""

import codecs
import math
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from trackfuse.errors import ActivityDecodeError, SelectionError, UnsupportedFormatError
from trackfuse.models.raw import ActivityKind, SourceKind
from trackfuse.models.track import ABSENT, Present
from trackfuse.services.adapters import parse_activity_file, read_activity, select_adapter
from trackfuse.services.assembler import GpxSelection, assemble_fit
from trackfuse.services.fit_parser import FitAdapter, group_record_messages
from trackfuse.services.gpx_parser import GpxAdapter, decode_gpx_bytes, parse_gpx_text
from trackfuse.services.normalizer import SEMICIRCLES_TO_DEGREES
from trackfuse.utils.sample_data import write_sample_fit, write_sample_gpx


@pytest.fixture
def sample_gpx_file(tmp_path):
    """300 s loop sampled every 5 s (61 points) in two segments."""
    return write_sample_gpx(tmp_path / "loop.gpx", duration_s=300.0, segments=2)


class TestGpxAdapter:
    """Tests for the gpxpy-based adapter."""

    def test_raw_structure(self, sample_gpx_file):
        activity = GpxAdapter().parse(sample_gpx_file)

        assert activity.kind == ActivityKind.GPX
        assert set(activity.gpx) == {"metadata", "bounds", "waypoints", "tracks", "routes"}
        assert len(activity.gpx["tracks"]) == 1
        assert len(activity.gpx["tracks"][0]) == 2
        assert sum(len(seg) for seg in activity.gpx["tracks"][0]) == 61

    def test_extensions_flattened(self, sample_gpx_file):
        activity = GpxAdapter().parse(sample_gpx_file)
        row = activity.gpx["tracks"][0][0][0]

        assert {"lat", "lon", "ele", "time", "hr", "cad"} <= set(row)
        assert isinstance(row["hr"], str)

    def test_parse_to_track(self, sample_gpx_file):
        track = parse_activity_file(sample_gpx_file, GpxSelection.all())

        assert len(track) == 61
        assert track.report.dropped == 0
        assert {"heart_rate", "cadence"} <= set(track.field_schema)
        assert isinstance(track.records[0].extra_fields["heart_rate"], Present)
        assert track.passthrough["metadata"]["name"] == "Sample loop"

    def test_single_segment(self, sample_gpx_file):
        track = parse_activity_file(sample_gpx_file, GpxSelection(track=0, segment=1))

        assert 0 < len(track) < 61

    def test_selection_required(self, sample_gpx_file):
        with pytest.raises(SelectionError):
            parse_activity_file(sample_gpx_file)

    def test_invalid_gpx(self, tmp_path):
        bad = tmp_path / "broken.gpx"
        bad.write_text("<gpx><trk><trkseg><trkpt lat=\"46.5\"")

        with pytest.raises(ActivityDecodeError):
            GpxAdapter().parse(bad)

    def test_parse_text_without_tracks(self):
        parsed = parse_gpx_text(
            '<?xml version="1.0"?>'
            '<gpx version="1.1" creator="test" xmlns="http://www.topografix.com/GPX/1/1">'
            '<wpt lat="46.5" lon="6.6"><name>Start</name></wpt>'
            '</gpx>'
        )

        assert parsed["tracks"] == []
        assert parsed["waypoints"][0]["name"] == "Start"


LATIN1_GPX = """<?xml version="1.0" encoding="ISO-8859-1"?>
<gpx version="1.1" creator="test" xmlns="http://www.topografix.com/GPX/1/1">
  <metadata><name>Zürich</name></metadata>
  <trk><trkseg>
    <trkpt lat="47.3769" lon="8.5417"><time>2024-05-04T08:00:00Z</time></trkpt>
    <trkpt lat="47.3770" lon="8.5418"><time>2024-05-04T08:00:05Z</time></trkpt>
  </trkseg></trk>
</gpx>
"""


class TestGpxEncoding:
    """Files are decoded with the encoding their XML declaration names."""

    def test_latin1_file(self, tmp_path):
        path = tmp_path / "zurich.gpx"
        path.write_bytes(LATIN1_GPX.encode("latin-1"))

        activity = GpxAdapter().parse(path)

        assert activity.name == "Zürich"
        assert sum(len(seg) for seg in activity.gpx["tracks"][0]) == 2

    def test_utf8_bom(self, tmp_path):
        path = tmp_path / "bom.gpx"
        text = LATIN1_GPX.replace("ISO-8859-1", "UTF-8")
        path.write_bytes(codecs.BOM_UTF8 + text.encode("utf-8"))

        assert GpxAdapter().parse(path).name == "Zürich"

    def test_invalid_utf8_bytes(self, tmp_path):
        path = tmp_path / "bad_bytes.gpx"
        path.write_bytes(LATIN1_GPX.replace("ISO-8859-1", "UTF-8").encode("latin-1"))

        with pytest.raises(ActivityDecodeError):
            parse_activity_file(path, GpxSelection.all())

    def test_unknown_encoding(self):
        with pytest.raises(ActivityDecodeError):
            decode_gpx_bytes(b'<?xml version="1.0" encoding="no-such-codec"?><gpx/>')

    def test_declaration_removed(self):
        text = decode_gpx_bytes(LATIN1_GPX.encode("latin-1"))

        assert text.startswith("<gpx")


def fake_message(local=0, **fields):
    """Stand-in for a fitparse DataMessage."""
    units = {"position_lat": "semicircles", "position_long": "semicircles", "altitude": "m"}
    return SimpleNamespace(
        header=SimpleNamespace(local_mesg_num=local),
        fields=[SimpleNamespace(name=k, value=v, units=units.get(k)) for k, v in fields.items()],
    )


class TestFitGrouping:
    """Tests for splitting FIT records into streams."""

    @pytest.fixture
    def messages(self):
        lat = int(46.5 / SEMICIRCLES_TO_DEGREES)
        lon = int(6.6 / SEMICIRCLES_TO_DEGREES)
        return [
            fake_message(0, timestamp=datetime(2024, 5, 4, 8, 0, 0), position_lat=lat, position_long=lon, altitude=380.0),
            fake_message(1, timestamp=datetime(2024, 5, 4, 8, 0, 1), position_lat=lat, position_long=lon, heart_rate=130),
            fake_message(0, timestamp=datetime(2024, 5, 4, 8, 0, 2), position_lat=lat, position_long=lon, altitude=381.0),
            fake_message(1, timestamp=datetime(2024, 5, 4, 8, 0, 3), position_lat=lat, position_long=lon, heart_rate=131),
        ]

    def test_one_stream_per_definition(self, messages):
        streams = group_record_messages(messages)

        assert len(streams) == 2
        assert all(s.source_kind == SourceKind.FIT_RECORD_DEFINITION for s in streams)
        assert [len(s) for s in streams] == [2, 2]
        assert "altitude" in streams[0].field_schema
        assert "heart_rate" in streams[1].field_schema
        assert streams[0].units["position_lat"] == "semicircles"

    def test_same_fields_different_definitions(self):
        """Two definitions with identical field sets stay separate streams."""
        messages = [
            fake_message(1, timestamp=datetime(2024, 5, 4, 8, 0, 0), position_lat=1, position_long=1),
            fake_message(2, timestamp=datetime(2024, 5, 4, 8, 0, 1), position_lat=2, position_long=2),
            fake_message(1, timestamp=datetime(2024, 5, 4, 8, 0, 2), position_lat=3, position_long=3),
        ]

        streams = group_record_messages(messages)

        assert [len(s) for s in streams] == [2, 1]
        assert [row["position_lat"] for row in streams[0].rows] == [1, 3]

    def test_streams_merge_into_track(self, messages):
        track = assemble_fit(group_record_messages(messages))

        assert len(track) == 4
        assert [r.stream_index for r in track.records] == [0, 1, 0, 1]
        assert track.records[0].latitude == pytest.approx(46.5, abs=1e-6)

    def test_invalid_fit_file(self, tmp_path):
        bad = tmp_path / "broken.fit"
        bad.write_bytes(b"this is definitely not a FIT file")

        with pytest.raises(ActivityDecodeError):
            FitAdapter().parse(bad)


@pytest.fixture
def sample_fit_file(tmp_path):
    """60 s loop: 31 head-unit records interleaved with 31 sensor records."""
    return write_sample_fit(tmp_path / "ride.fit", duration_s=60.0, sample_interval_s=2.0)


class TestFitAdapter:
    """Tests decoding a real FIT file through fitparse."""

    def test_streams_per_definition(self, sample_fit_file):
        activity = FitAdapter().parse(sample_fit_file)

        assert activity.kind == ActivityKind.FIT
        assert [len(s) for s in activity.streams] == [31, 31]
        assert "altitude" in activity.streams[0].field_schema
        assert "heart_rate" in activity.streams[1].field_schema
        assert activity.streams[0].units["position_lat"] == "semicircles"

    def test_raw_timestamps_are_naive_utc(self, sample_fit_file):
        row = FitAdapter().parse(sample_fit_file).streams[0].rows[0]

        assert row["timestamp"] == datetime(2024, 5, 4, 8, 0, 0)
        assert isinstance(row["position_lat"], int)

    def test_parse_to_track(self, sample_fit_file):
        track = parse_activity_file(sample_fit_file)

        assert len(track) == 62
        assert track.report.dropped == 0
        assert [r.stream_index for r in track.records[:4]] == [0, 1, 0, 1]
        times = [r.timestamp for r in track.records]
        assert times == sorted(times)
        assert times[0] == datetime(2024, 5, 4, 8, 0, 0, tzinfo=timezone.utc)
        assert times[-1] == datetime(2024, 5, 4, 8, 1, 1, tzinfo=timezone.utc)

    def test_positions_in_degrees(self, sample_fit_file):
        track = parse_activity_file(sample_fit_file)
        first = track.records[0]

        assert first.latitude == pytest.approx(46.5197, abs=1e-6)
        assert 6.63 < first.longitude < 6.64
        assert first.elevation.value == pytest.approx(380.0, abs=1.0)
        assert first.extra_fields["heart_rate"] is ABSENT
        assert isinstance(track.records[1].extra_fields["heart_rate"], Present)
        assert track.records[0].extra_fields["speed"].value == pytest.approx(2 * math.pi * 400.0 / 60.0, abs=1e-3)


class TestAdapterSelection:
    def test_by_suffix(self, tmp_path):
        assert select_adapter(tmp_path / "a.GPX").name == "gpx"
        assert select_adapter(tmp_path / "a.fit").name == "fit"

    def test_unsupported(self, tmp_path):
        with pytest.raises(UnsupportedFormatError):
            read_activity(tmp_path / "run.tcx")

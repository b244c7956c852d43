"""
Tests for derived metrics.
"""

from datetime import datetime, timedelta, timezone

import pytest

from trackfuse.models.track import ABSENT, Present, Record, Track
from trackfuse.services import metrics


T0 = datetime(2024, 5, 4, 8, 0, tzinfo=timezone.utc)


def make_track(points, schema=("timestamp", "lat", "lon", "ele", "speed")):
    """points: (lat, lon, speed-or-None, ele-or-None) tuples, one second apart."""
    records = [
        Record(
            timestamp=T0 + timedelta(seconds=i),
            latitude=lat,
            longitude=lon,
            elevation=Present(ele) if ele is not None else ABSENT,
            extra_fields={"speed": Present(speed) if speed is not None else ABSENT},
        )
        for i, (lat, lon, speed, ele) in enumerate(points)
    ]
    return Track(records=records, field_schema=list(schema))


@pytest.fixture
def track():
    return make_track([
        (10.0, 20.0, 5.0, 100.0),
        (-5.0, 30.0, 8.0, None),
        (0.0, 0.0, 8.0, 90.0),
    ])


@pytest.fixture
def empty_track():
    return Track()


class TestBoundingBox:
    def test_bounds(self, track):
        bbox = metrics.bounding_box(track)

        assert bbox.as_tuple() == (-5.0, 10.0, 0.0, 30.0)

    def test_single_point(self):
        bbox = metrics.bounding_box(make_track([(1.0, 2.0, None, None)]))

        assert bbox.as_tuple() == (1.0, 1.0, 2.0, 2.0)

    def test_empty_track_has_no_bounds(self, empty_track):
        assert metrics.bounding_box(empty_track) is None


class TestEndpoints:
    def test_first_and_last(self, track):
        ends = metrics.endpoints(track)

        assert ends.first is track.records[0]
        assert ends.last is track.records[-1]

    def test_empty(self, empty_track):
        assert metrics.endpoints(empty_track) is None


class TestExtremum:
    def test_tie_returns_earliest(self, track):
        record = metrics.extremum(track, "speed")

        assert record is track.records[1]
        assert record.extra_fields["speed"] == Present(8.0)

    def test_minimum(self, track):
        assert metrics.extremum(track, "speed", mode="min") is track.records[0]

    def test_elevation_skips_absent(self, track):
        assert metrics.extremum(track, "ele") is track.records[0]
        assert metrics.extremum(track, "ele", mode="min") is track.records[2]

    def test_field_not_in_schema(self, track):
        assert metrics.extremum(track, "heart_rate") is None

    def test_field_never_present(self):
        track = make_track([(1.0, 1.0, None, None), (2.0, 2.0, None, None)])

        assert metrics.extremum(track, "speed") is None

    def test_empty(self, empty_track):
        assert metrics.extremum(empty_track, "speed") is None

    def test_invalid_mode(self, track):
        with pytest.raises(ValueError):
            metrics.extremum(track, "speed", mode="median")


class TestValueRange:
    def test_range(self, track):
        assert metrics.value_range(track, "ele") == metrics.ValueRange(min=90.0, max=100.0)

    def test_no_values(self, empty_track):
        assert metrics.value_range(empty_track, "ele") is None


class TestDistanceAndDuration:
    def test_one_degree_of_latitude(self):
        track = make_track([(0.0, 0.0, None, None), (1.0, 0.0, None, None)])

        assert metrics.total_distance(track) == pytest.approx(111194.9, rel=1e-4)

    def test_single_point_has_zero_distance(self):
        assert metrics.total_distance(make_track([(1.0, 1.0, None, None)])) == 0.0

    def test_duration(self, track):
        assert metrics.duration(track) == timedelta(seconds=2)

    def test_empty_duration(self, empty_track):
        assert metrics.duration(empty_track) is None


class TestSummarize:
    def test_summary(self, track):
        summary = metrics.summarize(track)

        assert summary.record_count == 3
        assert summary.bounding_box.lat_min == -5.0
        assert summary.endpoints.first is track.records[0]
        assert summary.distance_m > 0

    def test_empty_summary(self, empty_track):
        summary = metrics.summarize(empty_track)

        assert summary.record_count == 0
        assert summary.bounding_box is None
        assert summary.endpoints is None
        assert summary.distance_m == 0.0
        assert summary.duration is None

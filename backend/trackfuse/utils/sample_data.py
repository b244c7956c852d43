"""
Sample data generator for testing.

Writes synthetic loop activities as GPX with Garmin TrackPointExtension
heart rate and cadence, or as binary FIT with the position/altitude/speed
records of a head unit interleaved with heart rate/cadence records written
under a second message definition.
"""

import struct
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional
from xml.etree.ElementTree import Element

import gpxpy
import gpxpy.gpx
import numpy as np


GPX_NSMAP = {
    "gpxtpx": "http://www.garmin.com/xmlschemas/TrackPointExtension/v1",
}

DEFAULT_START = datetime(2024, 5, 4, 8, 0, tzinfo=timezone.utc)

# FIT timestamps count seconds from 1989-12-31T00:00:00Z
FIT_EPOCH_OFFSET = 631065600

_FIT_CRC_TABLE = [
    0x0000, 0xCC01, 0xD801, 0x1400, 0xF001, 0x3C00, 0x2800, 0xE401,
    0xA001, 0x6C00, 0x7800, 0xB401, 0x5000, 0x9C01, 0x8801, 0x4400,
]

# name -> (field_def_num, struct format, FIT base type, scale, offset)
_FIT_FIELDS = {
    "type": (0, "B", 0x00, 1, 0),
    "manufacturer": (1, "H", 0x84, 1, 0),
    "time_created": (4, "I", 0x86, 1, 0),
    "timestamp": (253, "I", 0x86, 1, 0),
    "position_lat": (0, "i", 0x85, 1, 0),
    "position_long": (1, "i", 0x85, 1, 0),
    "altitude": (2, "H", 0x84, 5, 500),
    "heart_rate": (3, "B", 0x02, 1, 0),
    "cadence": (4, "B", 0x02, 1, 0),
    "speed": (6, "H", 0x84, 1000, 0),
}

FIT_FILE_ID = 0
FIT_RECORD = 20

HEAD_UNIT_FIELDS = ("timestamp", "position_lat", "position_long", "altitude", "speed")
SENSOR_FIELDS = ("timestamp", "position_lat", "position_long", "heart_rate", "cadence")


@dataclass
class LoopSamples:
    """Synthetic loop sampled on a regular time grid."""

    t: np.ndarray
    lat: np.ndarray
    lon: np.ndarray
    elevation: np.ndarray
    heart_rate: np.ndarray
    cadence: np.ndarray
    speed_mps: float


def generate_loop_samples(
    duration_s: float = 600.0,
    sample_interval_s: float = 5.0,
    center_lat: float = 46.5197,
    center_lon: float = 6.6323,
    radius_m: float = 400.0,
    base_elevation_m: float = 380.0,
    seed: Optional[int] = 0,
) -> LoopSamples:
    """One lap of a circle, starting due east of the centre's latitude."""
    rng = np.random.default_rng(seed)

    n_samples = int(duration_s / sample_interval_s) + 1
    t = np.arange(n_samples) * sample_interval_s
    angle = t / duration_s * 2 * np.pi

    meters_per_deg_lat = 111000
    meters_per_deg_lon = 111000 * np.cos(np.radians(center_lat))
    lat = center_lat + radius_m * np.sin(angle) / meters_per_deg_lat
    lon = center_lon + radius_m * np.cos(angle) / meters_per_deg_lon

    elevation = base_elevation_m + 25.0 * np.sin(2 * angle) + rng.normal(0, 0.3, n_samples)
    heart_rate = np.clip(120 + 30 * np.sin(angle) + rng.normal(0, 2, n_samples), 60, 200).astype(int)
    cadence = np.clip(85 + rng.normal(0, 3, n_samples), 0, 150).astype(int)

    return LoopSamples(
        t=t,
        lat=lat,
        lon=lon,
        elevation=elevation,
        heart_rate=heart_rate,
        cadence=cadence,
        speed_mps=2 * np.pi * radius_m / duration_s,
    )


# ============================================================================
# GPX
# ============================================================================

def _extension(heart_rate: int, cadence: int) -> Element:
    ext = Element("gpxtpx:TrackPointExtension")
    hr = Element("gpxtpx:hr")
    hr.text = str(heart_rate)
    cad = Element("gpxtpx:cad")
    cad.text = str(cadence)
    ext.append(hr)
    ext.append(cad)
    return ext


def generate_loop_gpx(
    duration_s: float = 600.0,
    sample_interval_s: float = 5.0,
    center_lat: float = 46.5197,
    center_lon: float = 6.6323,
    radius_m: float = 400.0,
    base_elevation_m: float = 380.0,
    segments: int = 1,
    with_extensions: bool = True,
    start_time: Optional[datetime] = None,
    seed: Optional[int] = 0,
) -> gpxpy.gpx.GPX:
    """
    Build a single-track GPX document following a circular loop.

    The points are split evenly across `segments` segments.
    """
    start_time = start_time or DEFAULT_START
    loop = generate_loop_samples(
        duration_s, sample_interval_s, center_lat, center_lon, radius_m, base_elevation_m, seed
    )

    gpx = gpxpy.gpx.GPX()
    gpx.name = "Sample loop"
    gpx.nsmap = dict(GPX_NSMAP)
    track = gpxpy.gpx.GPXTrack(name="Loop")
    gpx.tracks.append(track)

    for chunk in np.array_split(np.arange(len(loop.t)), max(segments, 1)):
        segment = gpxpy.gpx.GPXTrackSegment()
        for i in chunk:
            point = gpxpy.gpx.GPXTrackPoint(
                latitude=float(loop.lat[i]),
                longitude=float(loop.lon[i]),
                elevation=round(float(loop.elevation[i]), 1),
                time=start_time + timedelta(seconds=float(loop.t[i])),
            )
            if with_extensions:
                point.extensions.append(_extension(int(loop.heart_rate[i]), int(loop.cadence[i])))
            segment.points.append(point)
        track.segments.append(segment)

    return gpx


def write_sample_gpx(output_path: Path, **kwargs) -> Path:
    """Write a generated loop to `output_path` and return the path."""
    gpx = generate_loop_gpx(**kwargs)
    output_path.write_text(gpx.to_xml(version="1.1"), encoding="utf-8")
    return output_path


# ============================================================================
# FIT
# ============================================================================

def fit_crc(data: bytes, crc: int = 0) -> int:
    """FIT CRC-16 over `data`."""
    for byte in data:
        tmp = _FIT_CRC_TABLE[crc & 0xF]
        crc = ((crc >> 4) & 0x0FFF) ^ tmp ^ _FIT_CRC_TABLE[byte & 0xF]
        tmp = _FIT_CRC_TABLE[crc & 0xF]
        crc = ((crc >> 4) & 0x0FFF) ^ tmp ^ _FIT_CRC_TABLE[(byte >> 4) & 0xF]
    return crc & 0xFFFF


def _fit_timestamp(when: datetime) -> int:
    return int(when.timestamp()) - FIT_EPOCH_OFFSET


def _fit_semicircles(degrees: float) -> int:
    return int(round(degrees * 2**31 / 180.0))


def _fit_definition(local_num: int, global_num: int, names: tuple[str, ...]) -> bytes:
    # header, reserved, architecture (0 = little endian), global number, field count
    out = struct.pack("<BBBHB", 0x40 | local_num, 0, 0, global_num, len(names))
    for name in names:
        num, fmt, base_type, _, _ = _FIT_FIELDS[name]
        out += struct.pack("<BBB", num, struct.calcsize("<" + fmt), base_type)
    return out


def _fit_data(local_num: int, names: tuple[str, ...], values: dict) -> bytes:
    fmt = "<B" + "".join(_FIT_FIELDS[name][1] for name in names)
    raw = []
    for name in names:
        _, _, _, scale, offset = _FIT_FIELDS[name]
        raw.append(int(round((values[name] + offset) * scale)))
    return struct.pack(fmt, local_num, *raw)


def generate_loop_fit(
    duration_s: float = 600.0,
    sample_interval_s: float = 2.0,
    center_lat: float = 46.5197,
    center_lon: float = 6.6323,
    radius_m: float = 400.0,
    base_elevation_m: float = 380.0,
    start_time: Optional[datetime] = None,
    seed: Optional[int] = 0,
) -> bytes:
    """
    Encode a loop as a FIT activity file.

    Head-unit records (local message 1) sit on the sample grid; sensor
    records (local message 2) are written one second after each of them.
    Both carry position, so both survive normalization.
    """
    start_time = (start_time or DEFAULT_START).replace(microsecond=0)
    loop = generate_loop_samples(
        duration_s, sample_interval_s, center_lat, center_lon, radius_m, base_elevation_m, seed
    )
    start = _fit_timestamp(start_time)

    data = _fit_definition(0, FIT_FILE_ID, ("type", "manufacturer", "time_created"))
    data += _fit_data(0, ("type", "manufacturer", "time_created"),
                      {"type": 4, "manufacturer": 255, "time_created": start})
    data += _fit_definition(1, FIT_RECORD, HEAD_UNIT_FIELDS)
    data += _fit_definition(2, FIT_RECORD, SENSOR_FIELDS)

    for i in range(len(loop.t)):
        position = {
            "position_lat": _fit_semicircles(float(loop.lat[i])),
            "position_long": _fit_semicircles(float(loop.lon[i])),
        }
        ts = start + int(round(float(loop.t[i])))
        data += _fit_data(1, HEAD_UNIT_FIELDS, {
            "timestamp": ts,
            "altitude": float(loop.elevation[i]),
            "speed": loop.speed_mps,
            **position,
        })
        data += _fit_data(2, SENSOR_FIELDS, {
            "timestamp": ts + 1,
            "heart_rate": int(loop.heart_rate[i]),
            "cadence": int(loop.cadence[i]),
            **position,
        })

    header = struct.pack("<BBHI4s", 14, 0x10, 2093, len(data), b".FIT")
    header += struct.pack("<H", fit_crc(header))
    body = header + data
    return body + struct.pack("<H", fit_crc(body))


def write_sample_fit(output_path: Path, **kwargs) -> Path:
    """Write a generated FIT loop to `output_path` and return the path."""
    output_path.write_bytes(generate_loop_fit(**kwargs))
    return output_path


def generate_test_data_set(output_folder: Path) -> list[Path]:
    """Generate a set of sample activity files."""
    output_folder.mkdir(parents=True, exist_ok=True)

    files = []

    files.append(write_sample_gpx(
        output_folder / "loop_001_short.gpx",
        duration_s=300.0,
    ))

    files.append(write_sample_gpx(
        output_folder / "loop_002_paused.gpx",
        duration_s=900.0,
        segments=3,
    ))

    files.append(write_sample_gpx(
        output_folder / "loop_003_no_sensors.gpx",
        duration_s=600.0,
        radius_m=800.0,
        with_extensions=False,
    ))

    files.append(write_sample_fit(
        output_folder / "loop_004_ride.fit",
        duration_s=600.0,
    ))

    return files


if __name__ == "__main__":
    # Generate sample data when run directly
    output = Path("./data/activities")
    files = generate_test_data_set(output)
    print(f"Generated {len(files)} sample files in {output}")
    for f in files:
        print(f"  - {f.name}")

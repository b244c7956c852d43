"""
Exception types raised by trackfuse.

Per-record problems (bad coordinates, unparseable numbers) are never raised;
they are counted in the IngestReport instead.
"""


class TrackfuseError(Exception):
    """Base class for trackfuse errors."""


class SelectionError(TrackfuseError, ValueError):
    """GPX track/segment selection is missing or out of range."""


class UnsupportedFormatError(TrackfuseError, ValueError):
    """No adapter can read the given file."""


class ActivityDecodeError(TrackfuseError):
    """The underlying GPX/FIT decoder rejected the file."""

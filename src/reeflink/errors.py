"""
Exception hierarchy for the reeflink pipeline.

Each pipeline stage translates library failures (DuckDB, shapely, GDAL, OS)
into one of these types at its boundary so callers can handle a stage failure
without knowing which library raised it.
"""

from __future__ import annotations

from typing import Optional


class ReefLinkError(Exception):
    """Base exception for pipeline failures."""
    pass


class SourceConnectionError(ReefLinkError, ConnectionError):
    """Remote or local dataset location is unreachable, missing, or denied."""
    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"Cannot reach dataset {url}: {message}")


class SchemaError(ReefLinkError):
    """Dataset cannot be read as tabular columnar data, or has an unexpected shape."""
    pass


class QueryError(ReefLinkError):
    """Invalid projection, filter, or selection against a dataset."""
    pass


class OutOfMemoryError(ReefLinkError, MemoryError):
    """Materialised query result did not fit in the configured memory limit."""
    pass


class GeometryDecodeError(ReefLinkError, ValueError):
    """Spatial payload is absent, malformed, or not a polygonal geometry."""
    def __init__(self, message: str, record_id: Optional[object] = None):
        self.record_id = record_id
        if record_id is not None:
            message = f"Record {record_id}: {message}"
        super().__init__(message)


class WriteError(ReefLinkError, OSError):
    """Output path cannot be created or written."""
    def __init__(self, path: object, message: str):
        self.path = path
        super().__init__(f"Cannot write {path}: {message}")

"""
Pipeline Enumerations

Core enums for type safety and clear interface definitions across the pipeline.
"""

from enum import Enum


class DecodePolicy(str, Enum):
    """What the geometry normalizer does with a record it cannot decode."""
    ABORT = "abort"         # Fail the whole batch on the first bad record
    SKIP = "skip"           # Log and drop the bad record


class ExportFormat(str, Enum):
    """Export format options for data output."""
    SHAPEFILE = "shapefile" # ESRI Shapefile (.shp/.shx/.dbf + .prj/.cpg)
    GPKG = "gpkg"           # SQLite-based format with layer support
    GEOJSON = "geojson"     # Standards-compliant JSON format

"""
Domain Models and Types

Models:
- RunOptions: Runtime configuration and feature flags
- MapExtent: Map window for the overlay render

Enums:
- DecodePolicy: Abort or skip on undecodable geometry
- ExportFormat: Export format options (shapefile, gpkg, geojson)
"""

from .enums import DecodePolicy, ExportFormat
from .models import GBR_EXTENT, GBR_FEATURE_COLUMNS, WGS84, MapExtent, RunOptions

__all__ = [
    "RunOptions", "MapExtent", "DecodePolicy", "ExportFormat",
    "GBR_EXTENT", "GBR_FEATURE_COLUMNS", "WGS84"
]

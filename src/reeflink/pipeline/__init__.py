"""
reeflink Pipeline Components

Source -> Select -> Transform -> Render/Export.

Components:
- source: SourceConnector for lazy DuckDB handles over geoParquet
- select: FeatureQuery builder for projection, de-duplication and materialisation
- transform: GeometryNormalizer for WKB decoding and CRS assignment
- render: MapRenderer for the mainland/feature overlay map
- export: Exporter for Shapefile, GeoPackage and GeoJSON output
- sst: Zarr sea-surface temperature access
"""

from .export import Exporter
from .render import MapRenderer, is_mainland, partition_mainland
from .runner import PipelineResult, run_pipeline
from .select import FeatureQuery, select_features
from .source import DatasetHandle, SourceConnector
from .transform import GeometryNormalizer, decode_wkb

__all__ = [
    "SourceConnector", "DatasetHandle", "FeatureQuery", "select_features",
    "GeometryNormalizer", "decode_wkb", "MapRenderer", "is_mainland",
    "partition_mainland", "Exporter", "run_pipeline", "PipelineResult",
]

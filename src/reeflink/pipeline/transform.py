"""
GeometryNormalizer - WKB decoding and CRS assignment

Turns the raw ``geometry_raw`` WKB column produced by the feature selector
into a GeoDataFrame with a decoded ``geometry`` column and the collection's
reference system attached. Coordinates are kept exactly as decoded: no
reprojection, rounding, simplification or repair.
"""

from __future__ import annotations

import logging
from typing import Optional

import geopandas as gpd
import pandas as pd
import shapely
import shapely.wkb as swkb
from pyproj import CRS
from shapely.errors import ShapelyError
from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry

from ..domain.enums import DecodePolicy
from ..domain.models import GEOMETRY_COLUMN, ID_COLUMN, RAW_GEOMETRY_COLUMN, WGS84
from ..errors import GeometryDecodeError, SchemaError

logger = logging.getLogger(__name__)

POLYGONAL_TYPES = (Polygon, MultiPolygon)


def decode_wkb(payload) -> BaseGeometry:
    """
    Decode one WKB payload into a 2D polygon or multipolygon.

    Args:
        payload: WKB as bytes, bytearray or memoryview, or a hex string

    Returns:
        Polygon or MultiPolygon; Z/M ordinates are dropped

    Raises:
        GeometryDecodeError: If the payload is missing, malformed, empty or not polygonal
    """
    if payload is None or (pd.api.types.is_scalar(payload) and pd.isna(payload)):
        raise GeometryDecodeError("geometry is missing")

    if isinstance(payload, (bytearray, memoryview)):
        payload = bytes(payload)
    if not isinstance(payload, (bytes, str)):
        raise GeometryDecodeError(f"unsupported payload type {type(payload).__name__}")

    try:
        geom = swkb.loads(payload, hex=isinstance(payload, str))
    except (ShapelyError, ValueError, TypeError) as e:
        raise GeometryDecodeError(f"malformed WKB: {e}") from e

    if not isinstance(geom, POLYGONAL_TYPES):
        raise GeometryDecodeError(f"expected Polygon or MultiPolygon, got {geom.geom_type}")

    if geom.is_empty:
        raise GeometryDecodeError("geometry is empty")

    if geom.has_z:
        geom = shapely.force_2d(geom)

    return geom


def assert_wgs84(crs) -> str:
    """
    Validate that ``crs`` is WGS84 and return it as ``EPSG:4326``.

    The feature datasets are published in WGS84; any other value is a
    configuration mistake, not something to reproject.
    """
    if CRS.from_user_input(crs).to_epsg() != 4326:
        raise ValueError(f"Feature collections must be in {WGS84}, got {crs}")
    return WGS84


class GeometryNormalizer:
    """
    Replace the raw WKB column with decoded geometry and attach the CRS.

    Records that fail to decode either abort the batch (default) or are
    logged and dropped, depending on ``on_error``.
    """

    def __init__(self, crs: str = WGS84, on_error: DecodePolicy = DecodePolicy.ABORT,
                 id_column: str = ID_COLUMN):
        self.crs = assert_wgs84(crs)
        self.on_error = DecodePolicy(on_error)
        self.id_column = id_column

    def normalize(self, frame: pd.DataFrame) -> gpd.GeoDataFrame:
        """
        Decode every record's ``geometry_raw`` into ``geometry``.

        Args:
            frame: Materialised feature records with a ``geometry_raw`` column

        Returns:
            GeoDataFrame without ``geometry_raw``, in the configured CRS,
            in input order with a fresh index

        Raises:
            SchemaError: If the raw geometry column is missing or geometry is already present
            GeometryDecodeError: On the first bad record when the policy is ABORT
        """
        if RAW_GEOMETRY_COLUMN not in frame.columns:
            raise SchemaError(f"Column '{RAW_GEOMETRY_COLUMN}' not found; columns: {list(frame.columns)}")
        if GEOMETRY_COLUMN in frame.columns:
            raise SchemaError(f"Column '{GEOMETRY_COLUMN}' already present; records must carry only raw geometry")

        if self.id_column in frame.columns:
            ids = frame[self.id_column].tolist()
        else:
            ids = list(range(len(frame)))

        geometries = []
        keep = []
        for record_id, payload in zip(ids, frame[RAW_GEOMETRY_COLUMN]):
            try:
                geometries.append(decode_wkb(payload))
                keep.append(True)
            except GeometryDecodeError as e:
                if self.on_error == DecodePolicy.ABORT:
                    raise GeometryDecodeError(str(e), record_id=record_id) from e
                logger.warning(f"Skipping record {record_id}: {e}")
                keep.append(False)

        skipped = keep.count(False)
        records = frame.loc[keep].drop(columns=[RAW_GEOMETRY_COLUMN]).reset_index(drop=True)
        gdf = gpd.GeoDataFrame(records, geometry=gpd.GeoSeries(geometries, crs=self.crs), crs=self.crs)

        invalid = int((~gdf.geometry.is_valid).sum()) if len(gdf) else 0
        if invalid:
            logger.warning(f"{invalid} decoded geometries are not valid (kept unchanged)")

        logger.info(f"Normalized {len(gdf):,} features to {self.crs}"
                    + (f" ({skipped} skipped)" if skipped else ""))
        return gdf


def normalize_features(
    frame: pd.DataFrame,
    crs: str = WGS84,
    on_error: DecodePolicy = DecodePolicy.ABORT,
    id_column: Optional[str] = None,
) -> gpd.GeoDataFrame:
    """Functional shortcut for ``GeometryNormalizer(...).normalize(frame)``."""
    return GeometryNormalizer(crs=crs, on_error=on_error, id_column=id_column or ID_COLUMN).normalize(frame)

"""
Sea-surface temperature access from a Zarr array store.

The store is opened lazily with xarray; only the grid cells that a
time series is requested for are read.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import geopandas as gpd
import numpy as np
import pandas as pd
import xarray as xr

from ..config.settings import REMOTE_SCHEMES
from ..domain.models import ID_COLUMN
from ..errors import QueryError, SchemaError, SourceConnectionError

logger = logging.getLogger(__name__)

DEFAULT_VARIABLE = "analysed_sst"


def open_sst_store(url: str, anonymous: bool = True) -> xr.Dataset:
    """
    Open a Zarr SST store without reading array data.

    Args:
        url: Local path or object-store URL of the Zarr store
        anonymous: Use unsigned requests for public buckets

    Raises:
        SourceConnectionError: If the store is missing or unreachable
    """
    remote = url.lower().startswith(REMOTE_SCHEMES)
    if not remote and not Path(url).exists():
        raise SourceConnectionError(url, "no such Zarr store")

    storage_options = {"anon": anonymous} if remote and url.lower().startswith("s3://") else None
    logger.info(f"Opening SST store: {url}")

    try:
        ds = xr.open_zarr(url, storage_options=storage_options)
    except (OSError, KeyError) as e:
        raise SourceConnectionError(url, str(e)) from e

    logger.debug(f"SST store variables: {list(ds.data_vars)}; dims: {dict(ds.sizes)}")
    return ds


def _check_inside(coord: xr.DataArray, value: float, name: str) -> None:
    values = np.asarray(coord.values, dtype=float)
    half_step = float(np.abs(np.diff(values)).max()) / 2 if values.size > 1 else 0.0
    low, high = float(values.min()) - half_step, float(values.max()) + half_step
    if not low <= value <= high:
        raise QueryError(f"{name}={value} is outside the grid ({low:.4f} to {high:.4f})")


def sst_series(
    ds: xr.Dataset,
    lon: float,
    lat: float,
    variable: str = DEFAULT_VARIABLE,
    start: Optional[str] = None,
    end: Optional[str] = None,
    lon_dim: str = "longitude",
    lat_dim: str = "latitude",
    time_dim: str = "time",
) -> pd.Series:
    """
    Time series of the grid cell nearest to (lon, lat).

    Raises:
        SchemaError: If the variable or a dimension is not in the store
        QueryError: If the point is outside the grid
    """
    if variable not in ds.data_vars:
        raise SchemaError(f"Variable '{variable}' not found. Available: {list(ds.data_vars)}")
    for dim in (lon_dim, lat_dim, time_dim):
        if dim not in ds.coords:
            raise SchemaError(f"Coordinate '{dim}' not found. Available: {list(ds.coords)}")

    _check_inside(ds[lon_dim], lon, lon_dim)
    _check_inside(ds[lat_dim], lat, lat_dim)

    da = ds[variable].sel({lon_dim: lon, lat_dim: lat}, method="nearest")
    if start is not None or end is not None:
        da = da.sel({time_dim: slice(start, end)})

    series = da.load().to_series()
    series.name = variable
    return series


def sst_for_features(
    ds: xr.Dataset,
    gdf: gpd.GeoDataFrame,
    variable: str = DEFAULT_VARIABLE,
    start: Optional[str] = None,
    end: Optional[str] = None,
    id_column: str = ID_COLUMN,
    skip_outside: bool = False,
    **dims: str,
) -> pd.DataFrame:
    """
    SST time series at each feature's representative point.

    Returns:
        DataFrame indexed by time with one column per feature identifier
    """
    columns = {}
    points = gdf.geometry.representative_point()
    for feature_id, point in zip(gdf[id_column], points):
        try:
            columns[feature_id] = sst_series(ds, point.x, point.y, variable=variable,
                                             start=start, end=end, **dims)
        except QueryError as e:
            if not skip_outside:
                raise
            logger.warning(f"Skipping feature {feature_id}: {e}")

    logger.info(f"Sampled {variable} for {len(columns)} of {len(gdf)} features")
    return pd.DataFrame(columns)

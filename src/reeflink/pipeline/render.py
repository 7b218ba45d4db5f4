"""
Map rendering for the GBR feature collection.

Splits the collection into the mainland subset and everything else, and
draws both over a country base map clipped to the GBR window.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import geopandas as gpd
import pandas as pd
import requests

from ..domain.models import GBR_EXTENT, LABEL_COLUMN, WGS84, MapExtent
from ..errors import SourceConnectionError, WriteError

logger = logging.getLogger(__name__)

MAINLAND_TOKEN = "Mainland"

DEFAULT_COLORS = {
    "basemap": "#e8e4d8",
    "basemap_edge": "#9a9484",
    "feature": "#2a7fb8",
    "mainland": "#d95f02",
}


def is_mainland(label: Optional[str]) -> bool:
    """True if a combined name/id label denotes the Australian mainland."""
    if label is None or (not isinstance(label, str) and pd.isna(label)):
        return False
    return MAINLAND_TOKEN in str(label)


def partition_mainland(
    gdf: gpd.GeoDataFrame,
    label_column: str = LABEL_COLUMN
) -> tuple[gpd.GeoDataFrame, gpd.GeoDataFrame]:
    """
    Split a collection into (mainland, features).

    Returns:
        Tuple of the records whose label matches ``is_mainland`` and the complement
    """
    if label_column not in gdf.columns:
        raise KeyError(f"Column '{label_column}' not found; columns: {list(gdf.columns)}")

    mask = gdf[label_column].map(is_mainland).astype(bool)
    return gdf[mask], gdf[~mask]


class CountryBasemap:
    """
    Country outlines from Natural Earth admin-0 (50m), downloaded once.

    The zip is kept in ``cache_dir`` so repeated renders do not re-download.
    """

    NATURAL_EARTH_URL = "https://naciscdn.org/naturalearth/50m/cultural/ne_50m_admin_0_countries.zip"
    ARCHIVE_NAME = "ne_50m_admin_0_countries.zip"

    def __init__(self, cache_dir: Optional[Path] = None, url: Optional[str] = None):
        self.cache_dir = Path(cache_dir or "boundaries_cache")
        self.url = url or self.NATURAL_EARTH_URL
        self._countries: Optional[gpd.GeoDataFrame] = None

    @property
    def archive_path(self) -> Path:
        return self.cache_dir / self.ARCHIVE_NAME

    def _download(self) -> Path:
        """Fetch the Natural Earth archive into the cache."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        temp_file = self.archive_path.with_suffix(".part")

        logger.info(f"Downloading Natural Earth countries from {self.url}")
        try:
            response = requests.get(self.url, stream=True, timeout=300)
            response.raise_for_status()

            with open(temp_file, 'wb') as f:
                for chunk in response.iter_content(chunk_size=8192):
                    if chunk:
                        f.write(chunk)
        except requests.RequestException as e:
            if temp_file.exists():
                temp_file.unlink()
            raise SourceConnectionError(self.url, str(e)) from e

        temp_file.replace(self.archive_path)
        return self.archive_path

    def countries(self) -> gpd.GeoDataFrame:
        """All country outlines in WGS84."""
        if self._countries is None:
            archive = self.archive_path if self.archive_path.exists() else self._download()
            countries = gpd.read_file(f"zip://{archive}")
            if countries.crs is None:
                countries = countries.set_crs(WGS84)
            elif countries.crs.to_epsg() != 4326:
                countries = countries.to_crs(WGS84)
            self._countries = countries
        return self._countries

    def get(self, iso2: str = "AU") -> gpd.GeoDataFrame:
        """
        Outline of one country.

        Raises:
            ValueError: If the ISO code is not in the dataset
        """
        countries = self.countries()
        column = "ISO_A2" if "ISO_A2" in countries.columns else "iso_a2"
        country = countries[countries[column] == iso2.upper()]
        if country.empty:
            raise ValueError(f"Country {iso2} not found in Natural Earth data")
        return country[[country.geometry.name]].reset_index(drop=True)


def load_basemap(path: Path) -> gpd.GeoDataFrame:
    """Read a local vector file to use as the base map."""
    basemap = gpd.read_file(path)
    if basemap.crs is None:
        return basemap.set_crs(WGS84)
    return basemap.to_crs(WGS84)


def _require_matplotlib() -> Any:
    import matplotlib

    matplotlib.use("Agg", force=False)
    import matplotlib.pyplot as plt
    return plt


class MapRenderer:
    """
    Overlay map: base map, then non-mainland features, then the mainland subset.
    """

    def __init__(self, extent: MapExtent = GBR_EXTENT, colors: Optional[dict[str, str]] = None,
                 figsize: tuple[float, float] = (8.0, 10.0), dpi: int = 150):
        self.extent = extent
        self.colors = {**DEFAULT_COLORS, **(colors or {})}
        self.figsize = figsize
        self.dpi = dpi

    def limits(self, *frames: gpd.GeoDataFrame) -> tuple[tuple[float, float], tuple[float, float]]:
        """
        Axis limits: lower bounds from the extent, upper bounds from the data.
        """
        max_x = self.extent.min_lon
        max_y = self.extent.min_lat
        for frame in frames:
            if frame is None or frame.empty:
                continue
            _, _, fx, fy = frame.total_bounds
            max_x = max(max_x, float(fx))
            max_y = max(max_y, float(fy))

        # Keep a non-degenerate window when nothing reaches past the corner
        if max_x <= self.extent.min_lon:
            max_x = self.extent.min_lon + 1.0
        if max_y <= self.extent.min_lat:
            max_y = self.extent.min_lat + 1.0

        return (self.extent.min_lon, max_x), (self.extent.min_lat, max_y)

    def render(
        self,
        gdf: gpd.GeoDataFrame,
        output_path: Path,
        basemap: Optional[gpd.GeoDataFrame] = None,
        title: Optional[str] = "Great Barrier Reef features"
    ) -> Path:
        """
        Render the overlay map to ``output_path`` (format from the suffix).

        Raises:
            WriteError: If the image cannot be written
        """
        plt = _require_matplotlib()
        mainland, features = partition_mainland(gdf)
        logger.info(f"Rendering {len(features):,} features and {len(mainland):,} mainland records")

        fig, ax = plt.subplots(figsize=self.figsize, dpi=self.dpi)
        try:
            if basemap is not None and not basemap.empty:
                basemap.plot(ax=ax, color=self.colors["basemap"],
                             edgecolor=self.colors["basemap_edge"], linewidth=0.4)
            if not features.empty:
                features.plot(ax=ax, color=self.colors["feature"], linewidth=0)
            if not mainland.empty:
                mainland.plot(ax=ax, color=self.colors["mainland"], linewidth=0)

            xlim, ylim = self.limits(gdf, basemap)
            ax.set_xlim(*xlim)
            ax.set_ylim(*ylim)
            ax.set_xlabel("Longitude")
            ax.set_ylabel("Latitude")
            if title:
                ax.set_title(title)

            output_path = Path(output_path)
            try:
                output_path.parent.mkdir(parents=True, exist_ok=True)
                fig.savefig(output_path, dpi=self.dpi, bbox_inches="tight")
            except OSError as e:
                raise WriteError(output_path, str(e)) from e
        finally:
            plt.close(fig)

        logger.info(f"Map written to {output_path}")
        return output_path

"""
Exporter - Vector file export

Writes a normalized feature collection to an ESRI Shapefile (default),
GeoPackage or GeoJSON. Existing output is deleted before writing, so a
repeated export with overwrite enabled always reflects only the latest
collection.
"""

import logging
from pathlib import Path

import fiona
import geopandas as gpd

from ..domain.enums import ExportFormat
from ..domain.models import LABEL_COLUMN
from ..errors import WriteError
from ..utils import clean_filename

logger = logging.getLogger(__name__)

SHAPEFILE_SIDECARS = (".shp", ".shx", ".dbf", ".prj", ".cpg")

# DBF field names are limited to 10 characters
SHAPEFILE_FIELD_LIMIT = 10
SHAPEFILE_RENAMES = {LABEL_COLUMN: "loc_name"}

DRIVERS = {
    ExportFormat.SHAPEFILE: "ESRI Shapefile",
    ExportFormat.GPKG: "GPKG",
    ExportFormat.GEOJSON: "GeoJSON",
}

EXTENSIONS = {
    ExportFormat.SHAPEFILE: "shp",
    ExportFormat.GPKG: "gpkg",
    ExportFormat.GEOJSON: "geojson",
}


class Exporter:
    """
    Vector data exporter.

    One layer per call; the output file name is ``<layer_name>.<ext>``
    inside the requested directory.
    """

    def __init__(self, fmt: ExportFormat = ExportFormat.SHAPEFILE):
        self.fmt = ExportFormat(fmt)

    def output_path(self, out_dir: Path, layer_name: str) -> Path:
        """Path of the main output file for ``layer_name``."""
        return Path(out_dir) / f"{clean_filename(layer_name)}.{EXTENSIONS[self.fmt]}"

    def write(
        self,
        gdf: gpd.GeoDataFrame,
        out_dir: Path,
        layer_name: str = "gbr_features",
        overwrite: bool = True
    ) -> Path:
        """
        Write a GeoDataFrame to ``out_dir``.

        Args:
            gdf: Normalized feature collection (must carry a CRS)
            out_dir: Output directory, created if absent
            layer_name: Output base name (and layer name for GeoPackage)
            overwrite: Replace an existing output; if False an existing output is an error

        Returns:
            Path to the main output file

        Raises:
            WriteError: If the directory cannot be created or the target cannot be written
        """
        out_dir = Path(out_dir)
        driver = DRIVERS[self.fmt]
        if driver not in fiona.supported_drivers:
            raise WriteError(out_dir, f"{driver} driver not available. Please install GDAL with {driver} support.")

        try:
            out_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WriteError(out_dir, f"cannot create directory: {e}") from e

        output_path = self.output_path(out_dir, layer_name)

        # Everything that can reject the collection runs before old output is removed
        if self.fmt == ExportFormat.SHAPEFILE:
            data = self._prepare_for_shapefile(gdf, output_path)
        else:
            data = gdf

        existing = self._existing_files(output_path)
        if existing:
            if not overwrite:
                raise WriteError(output_path, "output exists and overwrite is disabled")
            self._remove(existing)

        try:
            if self.fmt == ExportFormat.GPKG:
                data.to_file(output_path, driver=driver, layer=clean_filename(layer_name))
            else:
                data.to_file(output_path, driver=driver)
        except Exception as e:
            # GDAL bindings raise their own error types (DataSourceError, DriverError)
            self._remove(self._existing_files(output_path))
            raise WriteError(output_path, f"{type(e).__name__}: {e}") from e

        logger.info(f"Exported {len(gdf):,} features to {output_path} ({self.fmt.value})")
        return output_path

    def _existing_files(self, output_path: Path) -> list[Path]:
        """All files that make up the output at ``output_path``."""
        if self.fmt == ExportFormat.SHAPEFILE:
            candidates = [output_path.with_suffix(ext) for ext in SHAPEFILE_SIDECARS]
        else:
            candidates = [output_path]
        return [p for p in candidates if p.exists()]

    def _remove(self, paths: list[Path]) -> None:
        for path in paths:
            try:
                path.unlink()
                logger.debug(f"Removed existing output {path}")
            except OSError as e:
                raise WriteError(path, f"cannot remove existing output: {e}") from e

    def _prepare_for_shapefile(self, gdf: gpd.GeoDataFrame, output_path: Path) -> gpd.GeoDataFrame:
        """Shorten field names to the DBF limit."""
        gdf = gdf.copy()

        rename_map = {}
        for col in gdf.columns:
            if col == gdf.geometry.name:
                continue
            new_name = SHAPEFILE_RENAMES.get(col, col)
            if len(new_name) > SHAPEFILE_FIELD_LIMIT:
                new_name = new_name[:SHAPEFILE_FIELD_LIMIT]
                logger.warning(f"Truncating field name '{col}' to '{new_name}' for Shapefile compatibility")
            if new_name != col:
                rename_map[col] = new_name

        taken = [rename_map.get(c, c) for c in gdf.columns]
        if len(set(taken)) != len(taken):
            raise WriteError(output_path, f"field names collide after shortening for Shapefile: {taken}")

        if rename_map:
            gdf = gdf.rename(columns=rename_map)

        return gdf


def export_features(
    gdf: gpd.GeoDataFrame,
    out_dir: Path,
    layer_name: str = "gbr_features",
    fmt: ExportFormat = ExportFormat.SHAPEFILE,
    overwrite: bool = True,
) -> Path:
    """Shortcut for ``Exporter(fmt).write(...)``."""
    return Exporter(fmt).write(gdf, out_dir, layer_name=layer_name, overwrite=overwrite)

"""
End-to-end run: connect -> select -> normalize -> {map, export}.

Each stage completes before the next starts; any failure propagates to the
caller and later stages do not run.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import geopandas as gpd

from ..config.settings import DEFAULT_FEATURES_DATASET, Config
from ..config_loader import get_dataset
from ..domain.models import RunOptions
from ..utils import timer
from .export import Exporter
from .render import CountryBasemap, MapRenderer
from .select import select_features
from .source import SourceConnector
from .transform import GeometryNormalizer

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Outputs of one pipeline run."""
    features: gpd.GeoDataFrame
    map_path: Optional[Path] = None
    export_path: Optional[Path] = None


@timer
def run_pipeline(
    settings: Config,
    options: RunOptions,
    url: Optional[str] = None,
    map_path: Optional[Path] = None,
    out_dir: Optional[Path] = None,
    basemap: Optional[gpd.GeoDataFrame] = None,
    dataset: str = DEFAULT_FEATURES_DATASET,
) -> PipelineResult:
    """
    Run the feature extraction pipeline once.

    Args:
        settings: Loaded configuration
        options: Runtime switches (export, overwrite, map, decode policy, limit)
        url: Dataset root; defaults to the configured features URL
        map_path: Image path for the overlay map (default <out_dir>/gbr_features.png)
        out_dir: Export directory (default from configuration)
        basemap: Pre-loaded base map; downloaded from Natural Earth when omitted
        dataset: Catalogue entry supplying the column mapping, CRS and default URL

    Returns:
        PipelineResult with the normalized collection and any written paths
    """
    entry = get_dataset(dataset, settings.source.catalog_path)
    if entry["kind"] != "features":
        raise ValueError(f"Dataset '{dataset}' is a {entry['kind']} dataset, not a feature dataset")

    # Created before connecting: an unsupported CRS fails without reading data
    normalizer = GeometryNormalizer(crs=entry["crs"], on_error=options.decode_policy)
    url = url or settings.resolve_features_url(dataset)
    out_dir = Path(out_dir or settings.output.out_dir)

    logger.info("Stage 1/4: connecting to source")
    with SourceConnector(settings).connect(url) as handle:
        logger.info("Stage 2/4: selecting features")
        frame = select_features(handle, columns=entry["columns"] or None, limit=options.limit)

    logger.info("Stage 3/4: normalizing geometry")
    features = normalizer.normalize(frame)
    result = PipelineResult(features=features)

    logger.info("Stage 4/4: output")
    if options.render_map:
        if basemap is None:
            basemap = CountryBasemap(Path(settings.output.basemap_cache)).get("AU")
        map_path = Path(map_path or out_dir / f"{options.layer_name}.png")
        result.map_path = MapRenderer().render(features, map_path, basemap=basemap)

    if options.export_shapefile:
        result.export_path = Exporter(options.export_format).write(
            features, out_dir, layer_name=options.layer_name, overwrite=options.overwrite
        )
    else:
        logger.info("Export not requested; skipping")

    return result

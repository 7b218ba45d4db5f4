import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from dotenv import load_dotenv

# Load environment variables BEFORE importing local modules that use them
load_dotenv()

from .config.settings import DEFAULT_FEATURES_DATASET, Config, ConfigurationError
from .config_loader import get_dataset, load_catalog
from .domain.enums import DecodePolicy, ExportFormat
from .domain.models import RunOptions
from .errors import ReefLinkError
from .pipeline.render import load_basemap
from .pipeline.runner import run_pipeline
from .utils import setup_logging

app = typer.Typer(help="reeflink: GBR features Source -> Normalize -> Map/Export")


def load_settings() -> Config:
    try:
        return Config()
    except ConfigurationError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(1) from e


@app.command("extract")
def extract(
    url: Annotated[Optional[str], typer.Option("--url", "-u", help="Dataset root (defaults to the catalogue entry's url)")] = None,
    dataset: Annotated[str, typer.Option("--dataset", "-d", help="Catalogue entry supplying columns, CRS and default url")] = DEFAULT_FEATURES_DATASET,
    export_shapefile: Annotated[bool, typer.Option("--export-shapefile", help="Write the feature collection to disk")] = False,
    out_dir: Annotated[Optional[Path], typer.Option("--out-dir", "-o", help="Output directory for exports and the map")] = None,
    layer_name: Annotated[str, typer.Option("--layer-name", help="Output file/layer base name")] = "gbr_features",
    fmt: Annotated[ExportFormat, typer.Option("--format", "-f", help="Export format: shapefile, gpkg, geojson")] = ExportFormat.SHAPEFILE,
    overwrite: Annotated[bool, typer.Option("--overwrite/--no-overwrite", help="Replace an existing export")] = True,
    map_path: Annotated[Optional[Path], typer.Option("--map", help="Image path for the overlay map")] = None,
    render_map: Annotated[bool, typer.Option("--render-map/--no-map", help="Render the mainland/feature overlay map")] = True,
    basemap: Annotated[Optional[Path], typer.Option("--basemap", help="Local vector file to use as the base map")] = None,
    skip_bad_geometry: Annotated[bool, typer.Option("--skip-bad-geometry", help="Log and drop undecodable geometries instead of aborting")] = False,
    limit: Annotated[Optional[int], typer.Option("--limit", "-l", help="Feature limit for testing and development")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable detailed logging output")] = False,
    log_to_file: Annotated[bool, typer.Option("--log-to-file", help="Create timestamped log files")] = False,
):
    """
    Extract GBR features, render the overlay map and optionally export them.
    """
    log_file = setup_logging(verbose, run_name="extract", enable_file_logging=log_to_file)
    if log_file:
        typer.echo(f"Logging to: {log_file}")

    settings = load_settings()

    try:
        options = RunOptions(
            export_shapefile=export_shapefile,
            export_format=fmt,
            layer_name=layer_name,
            overwrite=overwrite,
            render_map=render_map,
            decode_policy=DecodePolicy.SKIP if skip_bad_geometry else DecodePolicy.ABORT,
            limit=limit,
        )
    except ValueError as e:
        typer.echo(f"ERROR: invalid options: {e}", err=True)
        raise typer.Exit(1) from e

    try:
        basemap_gdf = load_basemap(basemap) if (render_map and basemap) else None
        result = run_pipeline(settings, options, url=url, map_path=map_path,
                              out_dir=out_dir, basemap=basemap_gdf, dataset=dataset)
    except (ReefLinkError, ConfigurationError, ValueError) as e:
        logging.error(f"Pipeline failed: {e}")
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(1) from e

    typer.echo(f"Features: {len(result.features):,}")
    if result.map_path:
        typer.echo(f"Map: {result.map_path}")
    if result.export_path:
        typer.echo(f"Export: {result.export_path}")


@app.command("list-datasets")
def list_datasets(
    catalog: Annotated[Optional[Path], typer.Option("--catalog", "-c", help="Path to a dataset catalogue YAML file")] = None,
):
    """
    List the datasets in the catalogue.
    """
    try:
        datasets = load_catalog(catalog)
    except (FileNotFoundError, ValueError) as e:
        typer.echo(f"ERROR loading catalogue: {e}", err=True)
        raise typer.Exit(1) from e

    typer.echo("Available Datasets")
    typer.echo("=" * 50)
    for name, entry in datasets.items():
        typer.echo(f"\n* {name} ({entry['kind']})")
        if entry.get('title'):
            typer.echo(f"   Title: {entry['title']}")
        typer.echo(f"   URL: {entry['url']}")
        if entry.get('columns'):
            typer.echo(f"   Columns: {', '.join(f'{k} -> {v}' for k, v in entry['columns'].items())}")


@app.command("sst")
def sst(
    lon: Annotated[float, typer.Option("--lon", help="Longitude in degrees east")],
    lat: Annotated[float, typer.Option("--lat", help="Latitude in degrees north")],
    start: Annotated[Optional[str], typer.Option("--start", help="First date (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="Last date (YYYY-MM-DD)")] = None,
    url: Annotated[Optional[str], typer.Option("--url", "-u", help="Zarr store (defaults to the catalogue's noaa_crw_sst)")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable detailed logging output")] = False,
):
    """
    Print the nearest-cell sea-surface temperature series for a point.
    """
    from .pipeline.sst import open_sst_store, sst_series

    setup_logging(verbose)
    settings = load_settings()

    try:
        entry = get_dataset("noaa_crw_sst", settings.source.catalog_path)
        ds = open_sst_store(url or settings.resolve_sst_url())
        series = sst_series(
            ds, lon, lat,
            variable=entry.get('variable', 'analysed_sst'),
            start=start, end=end,
            lon_dim=entry.get('lon_dim', 'longitude'),
            lat_dim=entry.get('lat_dim', 'latitude'),
            time_dim=entry.get('time_dim', 'time'),
        )
    except (ReefLinkError, ConfigurationError, ValueError) as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(1) from e

    typer.echo(series.to_string())


if __name__ == "__main__":
    app()

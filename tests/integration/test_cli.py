import logging

import geopandas as gpd
import pytest
import shapely
from typer.testing import CliRunner

from reeflink.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def reset_logging(monkeypatch):
    for name in ("REEFLINK_FEATURES_URL", "REEFLINK_CATALOG", "DUCKDB_THREADS", "DUCKDB_MEMORY_LIMIT"):
        monkeypatch.delenv(name, raising=False)
    yield
    # setup_logging binds a handler to the runner's captured stdout
    logging.basicConfig(handlers=[logging.NullHandler()], force=True)


def test_extract_with_export(gbr_dataset, tmp_path):
    out_dir = tmp_path / "out"

    result = runner.invoke(app, [
        "extract", "--url", str(gbr_dataset), "--no-map",
        "--export-shapefile", "--out-dir", str(out_dir),
    ])

    assert result.exit_code == 0, result.output
    assert "Features: 4" in result.output
    assert (out_dir / "gbr_features.shp").exists()


def test_extract_with_local_basemap(gbr_dataset, tmp_path):
    basemap = tmp_path / "australia.geojson"
    gpd.GeoDataFrame(geometry=[shapely.box(113, -44, 154, -10)], crs="EPSG:4326").to_file(
        basemap, driver="GeoJSON"
    )
    map_path = tmp_path / "map.png"

    result = runner.invoke(app, [
        "extract", "--url", str(gbr_dataset), "--basemap", str(basemap), "--map", str(map_path),
    ])

    assert result.exit_code == 0, result.output
    assert map_path.exists()


def test_extract_missing_source_fails(tmp_path):
    result = runner.invoke(app, ["extract", "--url", str(tmp_path / "missing"), "--no-map"])

    assert result.exit_code == 1
    assert "ERROR" in result.output


def test_extract_rejects_bad_limit(gbr_dataset):
    result = runner.invoke(app, ["extract", "--url", str(gbr_dataset), "--no-map", "--limit", "0"])

    assert result.exit_code == 1
    assert "invalid options" in result.output


def test_list_datasets():
    result = runner.invoke(app, ["list-datasets"])

    assert result.exit_code == 0
    assert "gbr_features (features)" in result.output
    assert "noaa_crw_sst (sst)" in result.output
    assert "LOC_NAME_S -> loc_name_combined" in result.output

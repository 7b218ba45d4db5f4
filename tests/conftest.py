import struct
from pathlib import Path

import pandas as pd
import pytest


def polygon_wkb(*rings) -> bytes:
    """Little-endian WKB polygon built by hand, one ring per argument."""
    out = struct.pack("<BII", 1, 3, len(rings))
    for ring in rings:
        out += struct.pack("<I", len(ring))
        for x, y in ring:
            out += struct.pack("<dd", x, y)
    return out


def square(x0: float, y0: float, size: float = 0.1) -> bytes:
    return polygon_wkb([
        (x0, y0), (x0 + size, y0), (x0 + size, y0 + size), (x0, y0 + size), (x0, y0)
    ])


def feature_row(uid, name, label, geometry):
    return {
        "UNIQUE_ID": uid,
        "GBR_NAME": name,
        "LOC_NAME_S": label,
        "geometry": geometry,
        "X_COORD": 0.0,
        "Y_COORD": 0.0,
        "minx": 0.0,
        "miny": 0.0,
        "maxx": 0.0,
        "maxy": 0.0,
    }


def write_dataset(root: Path, rows: list[dict], parts: int = 1) -> Path:
    """Write rows as a directory of parquet files shaped like the GBR features dataset."""
    root.mkdir(parents=True, exist_ok=True)
    frame = pd.DataFrame(rows)
    chunk = max(1, -(-len(frame) // parts))
    for i in range(parts):
        part = frame.iloc[i * chunk:(i + 1) * chunk]
        if len(part):
            part.to_parquet(root / f"part-{i}.parquet", index=False)
    return root


@pytest.fixture
def gbr_rows():
    return [
        feature_row(1003, "Mainland", "Mainland - QLD", square(145.0, -17.0, 1.0)),
        feature_row(1001, "Reef A", "Reef A - 001", square(146.0, -18.0)),
        feature_row(1002, "Reef A", "Reef A - 002", square(146.2, -18.1)),
        feature_row(1004, "Island B", "Island B - 004", square(147.0, -19.0)),
        # exact duplicate of 1001 across every column
        feature_row(1001, "Reef A", "Reef A - 001", square(146.0, -18.0)),
    ]


@pytest.fixture
def gbr_dataset(tmp_path, gbr_rows):
    return write_dataset(tmp_path / "gbr_features.parquet", gbr_rows, parts=2)


@pytest.fixture
def gbr_geoparquet(tmp_path):
    """GBR-shaped dataset written by geopandas, so it carries geo metadata."""
    import geopandas as gpd
    import shapely

    frame = gpd.GeoDataFrame(
        {
            "UNIQUE_ID": [2002, 2001, 2003],
            "GBR_NAME": ["Reef C", "Mainland", "Island D"],
            "LOC_NAME_S": ["Reef C - 002", "Mainland - QLD", "Island D - 003"],
            "X_COORD": [0.0, 0.0, 0.0],
            "Y_COORD": [0.0, 0.0, 0.0],
        },
        geometry=[
            shapely.box(146.0, -18.0, 146.1, -17.9),
            shapely.box(145.0, -17.0, 146.0, -16.0),
            shapely.MultiPolygon([shapely.box(147.0, -19.0, 147.1, -18.9),
                                  shapely.box(147.2, -19.0, 147.3, -18.9)]),
        ],
        crs="EPSG:4326",
    )
    path = tmp_path / "gbr_geo.parquet"
    frame.to_parquet(path, index=False)
    return path

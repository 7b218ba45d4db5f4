import pytest

from reeflink.domain.models import GBR_FEATURE_COLUMNS
from reeflink.errors import QueryError, SchemaError
from reeflink.pipeline.select import FeatureQuery, check_unique_ids, select_features
from reeflink.pipeline.source import SourceConnector
from tests.conftest import feature_row, square, write_dataset


@pytest.fixture
def handle(gbr_dataset):
    with SourceConnector().connect(str(gbr_dataset)) as h:
        yield h


def test_select_features_projects_and_renames(handle):
    frame = select_features(handle)

    assert list(frame.columns) == ["unique_id", "gbr_name", "loc_name_combined", "geometry_raw"]


def test_select_features_removes_exact_duplicates(handle):
    frame = select_features(handle)

    assert len(frame) == 4
    assert frame["unique_id"].tolist() == [1001, 1002, 1003, 1004]
    assert frame["unique_id"].is_unique


def test_select_features_keeps_raw_wkb(handle):
    frame = select_features(handle)

    first = frame.iloc[0]["geometry_raw"]
    assert bytes(first) == square(146.0, -18.0)


def test_select_features_limit(handle):
    frame = select_features(handle, limit=2)

    assert frame["unique_id"].tolist() == [1001, 1002]


def test_select_missing_column_raises_query_error(handle):
    with pytest.raises(QueryError, match="NOT_A_COLUMN"):
        FeatureQuery(handle).select({"NOT_A_COLUMN": "x", "UNIQUE_ID": "unique_id"})


def test_select_features_with_missing_schema_column(tmp_path):
    root = tmp_path / "no_label"
    rows = [feature_row(1, "Reef", "Reef - 1", square(1, 1))]
    for row in rows:
        del row["LOC_NAME_S"]
    write_dataset(root, rows)

    with SourceConnector().connect(str(root)) as h:
        with pytest.raises(QueryError):
            select_features(h)


def test_query_builder_defers_execution(handle):
    query = FeatureQuery(handle).select(GBR_FEATURE_COLUMNS).distinct().where_equals("GBR_NAME", "Reef A")
    sql, params = query.to_sql()

    assert sql.startswith("SELECT DISTINCT")
    assert 'WHERE "GBR_NAME" = ?' in sql
    assert sql.rstrip().endswith('ORDER BY "unique_id"')
    assert params == ["Reef A"]


def test_where_equals_filters_rows(handle):
    frame = (FeatureQuery(handle)
             .select(GBR_FEATURE_COLUMNS)
             .distinct()
             .where_equals("GBR_NAME", "Reef A")
             .collect())

    assert frame["loc_name_combined"].tolist() == ["Reef A - 001", "Reef A - 002"]


def test_without_distinct_duplicates_survive(handle):
    frame = FeatureQuery(handle).select(GBR_FEATURE_COLUMNS).collect()

    assert len(frame) == 5


def test_select_list_keeps_names(handle):
    frame = FeatureQuery(handle).select(["GBR_NAME"]).distinct().collect()

    assert frame["GBR_NAME"].tolist() == ["Island B", "Mainland", "Reef A"]


def test_order_by_must_be_selected(handle):
    query = FeatureQuery(handle).select(GBR_FEATURE_COLUMNS).order_by("X_COORD")

    with pytest.raises(QueryError):
        query.to_sql()


def test_invalid_projection_and_limit(handle):
    with pytest.raises(QueryError):
        FeatureQuery(handle).select({})
    with pytest.raises(QueryError):
        FeatureQuery(handle).select({"UNIQUE_ID": "a", "GBR_NAME": "a"})
    with pytest.raises(QueryError):
        FeatureQuery(handle).limit(0)


def test_collect_on_closed_handle(gbr_dataset):
    h = SourceConnector().connect(str(gbr_dataset))
    query = FeatureQuery(h).select(GBR_FEATURE_COLUMNS)
    h.close()

    with pytest.raises(QueryError, match="closed"):
        query.collect()


def test_duplicate_ids_with_different_attributes(tmp_path):
    root = write_dataset(tmp_path / "dupes", [
        feature_row(7, "Reef A", "Reef A - 007", square(1, 1)),
        feature_row(7, "Reef B", "Reef B - 007", square(2, 2)),
    ])

    with SourceConnector().connect(str(root)) as h:
        with pytest.raises(SchemaError, match="not unique"):
            select_features(h)


def test_null_geometry_passes_through(tmp_path):
    root = write_dataset(tmp_path / "nulls", [
        feature_row(1, "Reef A", "Reef A - 001", square(1, 1)),
        feature_row(2, "Reef B", "Reef B - 002", None),
    ])

    with SourceConnector().connect(str(root)) as h:
        frame = select_features(h)

    assert len(frame) == 2
    assert frame["geometry_raw"].isna().tolist() == [False, True]


def test_check_unique_ids_ignores_frames_without_ids():
    import pandas as pd

    check_unique_ids(pd.DataFrame({"other": [1, 1]}))


def test_check_unique_ids_reports_nulls_separately():
    import pandas as pd

    with pytest.raises(SchemaError, match="2 null value"):
        check_unique_ids(pd.DataFrame({"unique_id": [1.0, None, None]}))


def test_check_unique_ids_counts_repeated_values():
    import pandas as pd

    with pytest.raises(SchemaError, match="2 value\\(s\\) repeat"):
        check_unique_ids(pd.DataFrame({"unique_id": [1, 1, 2, 2, 3]}))


def test_null_ids_in_dataset(tmp_path):
    root = write_dataset(tmp_path / "null_ids", [
        feature_row(1, "Reef A", "Reef A - 001", square(1, 1)),
        feature_row(None, "Reef B", "Reef B - 002", square(2, 2)),
    ])

    with SourceConnector().connect(str(root)) as h:
        with pytest.raises(SchemaError, match="null"):
            select_features(h)


def test_geoparquet_selects_and_normalizes(gbr_geoparquet):
    import shapely

    from reeflink.pipeline.transform import normalize_features

    with SourceConnector().connect(str(gbr_geoparquet)) as h:
        frame = select_features(h)

    assert list(frame.columns) == ["unique_id", "gbr_name", "loc_name_combined", "geometry_raw"]
    assert frame["unique_id"].tolist() == [2001, 2002, 2003]
    assert isinstance(frame["geometry_raw"].iloc[0], (bytes, bytearray))

    gdf = normalize_features(frame)

    assert "geometry_raw" not in gdf.columns
    assert gdf.crs.to_epsg() == 4326
    assert gdf.geometry.iloc[0].equals(shapely.box(145.0, -17.0, 146.0, -16.0))
    assert gdf.geometry.iloc[2].geom_type == "MultiPolygon"
    assert gdf.geometry.iloc[1].bounds == (146.0, -18.0, 146.1, -17.9)

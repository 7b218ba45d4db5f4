import pytest

from reeflink.errors import SchemaError, SourceConnectionError
from reeflink.pipeline.source import SourceConnector, parquet_glob, quote_identifier, quote_literal


def test_parquet_glob_for_directory_roots(tmp_path):
    assert parquet_glob("s3://bucket/data.parquet") == "s3://bucket/data.parquet/**/*.parquet"
    assert parquet_glob("s3://bucket/data.parquet/") == "s3://bucket/data.parquet/**/*.parquet"
    assert parquet_glob(str(tmp_path)) == f"{tmp_path}/**/*.parquet"


def test_parquet_glob_keeps_single_file_and_explicit_globs(tmp_path):
    single = tmp_path / "one.parquet"
    single.write_bytes(b"")

    assert parquet_glob(str(single)) == str(single)
    assert parquet_glob("https://host/x/*.parquet") == "https://host/x/*.parquet"


def test_sql_quoting():
    assert quote_literal("it's") == "'it''s'"
    assert quote_identifier('we"ird') == '"we""ird"'


def test_connect_reads_schema_only(gbr_dataset):
    with SourceConnector().connect(str(gbr_dataset)) as handle:
        assert handle.columns == [
            "UNIQUE_ID", "GBR_NAME", "LOC_NAME_S", "geometry",
            "X_COORD", "Y_COORD", "minx", "miny", "maxx", "maxy",
        ]
        # plain parquet without geo metadata
        assert handle.schema["geometry"] == "BLOB"
        assert handle.url == str(gbr_dataset)

    assert handle.con is None


def test_connect_reads_geoparquet_schema(gbr_geoparquet):
    with SourceConnector().connect(str(gbr_geoparquet)) as handle:
        assert handle.columns[:3] == ["UNIQUE_ID", "GBR_NAME", "LOC_NAME_S"]
        assert "geometry" in handle.columns
        # DuckDB versions with native geometry report GEOMETRY(<crs>) for geoParquet
        assert handle.schema["geometry"].startswith(("GEOMETRY", "BLOB"))


def test_connect_missing_location_raises_connection_error(tmp_path):
    missing = tmp_path / "does-not-exist"

    with pytest.raises(SourceConnectionError) as exc_info:
        SourceConnector().connect(str(missing))

    assert isinstance(exc_info.value, ConnectionError)
    assert exc_info.value.url == str(missing)


def test_connect_empty_directory_raises_connection_error(tmp_path):
    with pytest.raises(SourceConnectionError):
        SourceConnector().connect(str(tmp_path))


def test_connect_non_parquet_raises_schema_error(tmp_path):
    bogus = tmp_path / "notes.parquet"
    bogus.write_text("this file is plain text, not a parquet dataset\n")

    with pytest.raises(SchemaError):
        SourceConnector().connect(str(bogus))


def test_connect_empty_location():
    with pytest.raises(SourceConnectionError):
        SourceConnector().connect("   ")

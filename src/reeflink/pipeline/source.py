"""
SourceConnector - Remote geoParquet access

Opens a lazy DuckDB handle over a directory of parquet files (local or on
object storage). Opening only reads parquet metadata; rows are transferred
when a FeatureQuery is collected.
"""

import logging
from pathlib import Path
from typing import Optional

import duckdb

from ..config.settings import REMOTE_SCHEMES, Config
from ..errors import SchemaError, SourceConnectionError

logger = logging.getLogger(__name__)


def is_remote(url: str) -> bool:
    return url.lower().startswith(REMOTE_SCHEMES)


def parquet_glob(url: str) -> str:
    """
    Return the read_parquet pattern for a dataset root.

    A root that is already a single parquet file is used as-is; anything
    else is treated as a directory and globbed recursively.
    """
    if not is_remote(url) and Path(url).is_file():
        return url

    if url.endswith('*.parquet'):
        return url

    return f"{url.rstrip('/')}/**/*.parquet"


def quote_literal(value: str) -> str:
    """Quote a string as a SQL literal."""
    return "'" + value.replace("'", "''") + "'"


def quote_identifier(name: str) -> str:
    """Quote a column name as a SQL identifier."""
    return '"' + name.replace('"', '""') + '"'


class DatasetHandle:
    """
    Lazy, queryable handle to one columnar dataset.

    Holds the DuckDB connection and the dataset's schema. Nothing beyond
    parquet footers has been read when the handle is returned.
    """

    def __init__(self, con: duckdb.DuckDBPyConnection, url: str, pattern: str, schema: dict[str, str]):
        self.con = con
        self.url = url
        self.pattern = pattern
        self.schema = schema

    @property
    def columns(self) -> list[str]:
        return list(self.schema.keys())

    @property
    def relation_sql(self) -> str:
        """FROM-clause expression that reads the dataset."""
        return f"read_parquet({quote_literal(self.pattern)}, union_by_name=true)"

    def close(self):
        """Close the DuckDB connection."""
        if self.con is not None:
            self.con.close()
            self.con = None

    def __enter__(self) -> "DatasetHandle":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __repr__(self) -> str:
        return f"DatasetHandle(url={self.url!r}, columns={len(self.schema)})"


class SourceConnector:
    """
    Opens dataset handles with a DuckDB session configured from settings.

    Remote roots (s3://, gs://, http(s)://) load the httpfs extension;
    public buckets are read anonymously.
    """

    def __init__(self, settings: Optional[Config] = None):
        self.settings = settings

    def _setup_duckdb(self, remote: bool) -> duckdb.DuckDBPyConnection:
        """Configure DuckDB for columnar reads."""
        con = duckdb.connect()

        if self.settings is not None:
            duckdb_settings = self.settings.get_duckdb_settings()
            con.execute(f"SET memory_limit='{duckdb_settings['memory_limit']}';")
            con.execute(f"SET threads={duckdb_settings['threads']};")
            if 'temp_directory' in duckdb_settings:
                temp_dir = str(duckdb_settings['temp_directory']).replace('\\', '/')
                con.execute(f"SET temp_directory={quote_literal(temp_dir)};")

        if remote:
            con.execute("INSTALL httpfs; LOAD httpfs;")
            s3_region = self.settings.source.s3_region if self.settings is not None else "ap-southeast-2"
            con.execute(f"SET s3_region={quote_literal(s3_region)};")
            con.execute("SET http_retries=3;")

            try:
                con.execute("SET enable_http_metadata_cache=true;")
            except duckdb.Error:
                logger.debug("enable_http_metadata_cache not available in this DuckDB version")

        return con

    def connect(self, url: str) -> DatasetHandle:
        """
        Open a lazy handle to the dataset rooted at ``url``.

        Args:
            url: Dataset root (directory of parquet files, or a single file)

        Returns:
            DatasetHandle with the dataset schema loaded

        Raises:
            SourceConnectionError: If the location is unreachable, missing, or denied
            SchemaError: If the location cannot be read as parquet
        """
        if not url or not url.strip():
            raise SourceConnectionError(url, "empty dataset location")

        remote = is_remote(url)
        if not remote and not Path(url).exists():
            raise SourceConnectionError(url, "no such file or directory")

        pattern = parquet_glob(url)
        logger.info(f"Opening dataset: {url}")
        logger.debug(f"Parquet pattern: {pattern}")

        try:
            con = self._setup_duckdb(remote)
        except duckdb.Error as e:
            raise SourceConnectionError(url, f"could not initialise remote access: {e}") from e

        handle = DatasetHandle(con, url, pattern, schema={})
        try:
            rows = con.execute(f"DESCRIBE SELECT * FROM {handle.relation_sql}").fetchall()
        except duckdb.IOException as e:
            handle.close()
            raise SourceConnectionError(url, str(e)) from e
        except duckdb.Error as e:
            handle.close()
            raise SchemaError(f"Dataset {url} cannot be opened as parquet: {e}") from e

        if not rows:
            handle.close()
            raise SchemaError(f"Dataset {url} has no columns")

        handle.schema = {row[0]: row[1] for row in rows}
        logger.info(f"Dataset schema: {len(handle.schema)} columns")
        logger.debug(f"Columns: {handle.columns}")
        return handle

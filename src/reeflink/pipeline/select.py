"""
FeatureQuery - Column projection, de-duplication and materialisation

Builder over a DatasetHandle. Calls accumulate a query specification;
nothing runs until collect(), which executes one DuckDB query and returns an
owned, fully materialised DataFrame.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import duckdb
import pandas as pd

from ..domain.models import GBR_FEATURE_COLUMNS, ID_COLUMN
from ..errors import OutOfMemoryError, QueryError, SchemaError
from .source import DatasetHandle, quote_identifier


class FeatureQuery:
    """
    Deferred query against one dataset.

    Example:
        frame = (FeatureQuery(handle)
                 .select(GBR_FEATURE_COLUMNS)
                 .distinct()
                 .collect())
    """

    def __init__(self, handle: DatasetHandle):
        self.handle = handle
        self._columns: dict[str, str] = {}
        self._distinct = False
        self._filters: list[tuple[str, Any]] = []
        self._order_by: Optional[str] = None
        self._limit: Optional[int] = None

    def select(self, columns: dict[str, str] | list[str]) -> FeatureQuery:
        """
        Project source columns, renaming them.

        Args:
            columns: ``{source: output}`` mapping, or a list of source names kept as-is
        """
        if isinstance(columns, dict):
            mapping = dict(columns)
        else:
            mapping = {c: c for c in columns}

        if not mapping:
            raise QueryError("At least one column must be selected")

        outputs = list(mapping.values())
        if len(set(outputs)) != len(outputs):
            raise QueryError(f"Duplicate output column names in projection: {outputs}")

        self._check_columns(mapping.keys())
        self._columns = mapping
        return self

    def distinct(self, enabled: bool = True) -> FeatureQuery:
        """Drop rows identical across every projected column."""
        self._distinct = enabled
        return self

    def where_equals(self, column: str, value: Any) -> FeatureQuery:
        """Keep rows whose source ``column`` equals ``value``."""
        self._check_columns([column])
        self._filters.append((column, value))
        return self

    def order_by(self, column: str) -> FeatureQuery:
        """Order results by an output column."""
        self._order_by = column
        return self

    def limit(self, n: Optional[int]) -> FeatureQuery:
        """Cap the number of rows returned."""
        if n is not None and n < 1:
            raise QueryError("Limit must be positive")
        self._limit = n
        return self

    def _check_columns(self, names) -> None:
        missing = [name for name in names if name not in self.handle.schema]
        if missing:
            raise QueryError(
                f"Column(s) {missing} not found in {self.handle.url}. "
                f"Available: {self.handle.columns}"
            )

    def to_sql(self) -> tuple[str, list[Any]]:
        """Render the query and its bound parameters."""
        if not self._columns:
            raise QueryError("No columns selected")

        projection = ", ".join(
            f"{quote_identifier(src)} AS {quote_identifier(dst)}"
            for src, dst in self._columns.items()
        )
        sql = f"SELECT {'DISTINCT ' if self._distinct else ''}{projection} FROM {self.handle.relation_sql}"

        params = []
        if self._filters:
            clauses = []
            for column, value in self._filters:
                if value is None:
                    clauses.append(f"{quote_identifier(column)} IS NULL")
                else:
                    clauses.append(f"{quote_identifier(column)} = ?")
                    params.append(value)
            sql += " WHERE " + " AND ".join(clauses)

        order_col = self._order_by or next(iter(self._columns.values()))
        if order_col not in self._columns.values():
            raise QueryError(f"Cannot order by '{order_col}': not a selected column")
        sql += f" ORDER BY {quote_identifier(order_col)}"

        if self._limit is not None:
            sql += f" LIMIT {int(self._limit)}"

        return sql, params

    def collect(self) -> pd.DataFrame:
        """
        Execute the query and materialise the result in memory.

        Raises:
            QueryError: If DuckDB rejects the query
            OutOfMemoryError: If the result does not fit in memory
        """
        if self.handle.con is None:
            raise QueryError(f"Dataset handle for {self.handle.url} is closed")

        sql, params = self.to_sql()
        logging.info(f"Executing query: {sql[:200]}")
        start_time = time.time()

        try:
            frame = self.handle.con.execute(sql, params).df()
        except duckdb.OutOfMemoryException as e:
            logging.error(f"Query ran out of memory: {e}")
            raise OutOfMemoryError(f"Result for {self.handle.url} exceeds available memory: {e}") from e
        except MemoryError as e:
            logging.error("Query result exceeds available memory")
            raise OutOfMemoryError(f"Result for {self.handle.url} exceeds available memory") from e
        except (duckdb.BinderException, duckdb.ParserException,
                duckdb.ConversionException, duckdb.InvalidInputException) as e:
            raise QueryError(f"Query rejected: {e}") from e

        elapsed = time.time() - start_time
        logging.info(f"Fetched {len(frame):,} rows in {elapsed:.1f} seconds")
        return frame


def check_unique_ids(frame: pd.DataFrame, id_column: str = ID_COLUMN) -> None:
    """
    Raise SchemaError if ``id_column`` holds null or duplicate values.
    """
    if id_column not in frame.columns:
        return

    ids = frame[id_column]
    null_count = int(ids.isna().sum())
    if null_count:
        raise SchemaError(f"{id_column} has {null_count} null value(s)")

    duplicated = ids[ids.duplicated(keep=False)]
    if not duplicated.empty:
        sample = sorted(duplicated.astype(str).unique().tolist())[:5]
        raise SchemaError(
            f"{id_column} is not unique: {duplicated.nunique()} value(s) repeat, e.g. {sample}"
        )


def select_features(
    handle: DatasetHandle,
    columns: Optional[dict[str, str]] = None,
    limit: Optional[int] = None,
) -> pd.DataFrame:
    """
    Project the feature columns, de-duplicate, and materialise.

    Args:
        handle: Open dataset handle
        columns: Source -> output column mapping (defaults to the GBR feature columns)
        limit: Optional row cap for development runs

    Returns:
        DataFrame with one row per distinct feature, ordered by identifier
    """
    columns = columns or GBR_FEATURE_COLUMNS
    query = FeatureQuery(handle).select(columns).distinct().limit(limit)
    if ID_COLUMN in columns.values():
        query.order_by(ID_COLUMN)

    frame = query.collect()
    check_unique_ids(frame)
    return frame

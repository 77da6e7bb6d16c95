"""DuckDB data source.

All aggregation happens inside DuckDB; no column is ever materialized in
Python. Every query runs on its own cursor so worker threads can share one
connection.
"""

from __future__ import annotations

import re
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import duckdb

from relinfer.core.errors import AnalysisError, ConfigurationError, TableEnumerationError
from relinfer.core.logging import get_logger, increment_db_query, record_operation_timing
from relinfer.core.models import FieldShape
from relinfer.sources.base import DataSource
from relinfer.sources.models import (
    ColumnInfo,
    ColumnProfile,
    OverlapResult,
    QueryResult,
    TableInfo,
)

logger = get_logger(__name__)

DEFAULT_IDENTIFIER_COLUMNS = ("id", "airtable_id", "record_id")

_LIST_TYPE = re.compile(r"\[\d*\]$")


def quote_identifier(name: str) -> str:
    """Quote an identifier for DuckDB, escaping embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


def shape_for_type(data_type: str) -> FieldShape:
    """LIST and ARRAY types (VARCHAR[], BIGINT[3], ...) hold arrays of identifiers."""
    if _LIST_TYPE.search(data_type.strip()):
        return FieldShape.ARRAY
    return FieldShape.SCALAR


class DuckDBDataSource(DataSource):
    """Read-only DataSource over a DuckDB database.

    Args:
        conn: Existing connection (not closed by this source)
        path: Database file to open read-only when no connection is given
        schema: Schema holding the tables
        identifier_columns: Column names recognised as a table's key, in priority order
    """

    def __init__(
        self,
        conn: duckdb.DuckDBPyConnection | None = None,
        path: str | Path | None = None,
        schema: str = "main",
        identifier_columns: Sequence[str] = DEFAULT_IDENTIFIER_COLUMNS,
    ):
        if conn is None and path is None:
            raise ConfigurationError("DuckDBDataSource requires a connection or a database path")

        self._owns_connection = conn is None
        self._path = str(path) if path is not None else None

        if conn is None:
            assert self._path is not None
            if self._path != ":memory:" and not Path(self._path).exists():
                raise ConfigurationError(f"DuckDB database not found: {self._path}")
            try:
                conn = duckdb.connect(self._path, read_only=self._path != ":memory:")
            except duckdb.Error as e:
                raise ConfigurationError(f"Cannot open DuckDB database {self._path}: {e}") from e

        self._conn = conn
        self.schema = schema
        self.identifier_columns = tuple(identifier_columns)

    @property
    def name(self) -> str:
        location = self._path or f"conn-{id(self._conn):x}"
        return f"duckdb:{location}/{self.schema}"

    def close(self) -> None:
        """Close the connection if this source opened it."""
        if self._owns_connection:
            self._conn.close()

    def __enter__(self) -> DuckDBDataSource:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # === Query helpers ===

    def _table_ref(self, table: str) -> str:
        return f"{quote_identifier(self.schema)}.{quote_identifier(table)}"

    def query(self, sql: str, params: Sequence[Any] | None = None) -> QueryResult:
        """Run a read query on a fresh cursor.

        Raises:
            duckdb.Error: On query failure (callers translate it)
        """
        start = time.perf_counter()
        cursor = self._conn.cursor()
        try:
            cursor.execute(sql, params or [])
            columns = [d[0] for d in cursor.description] if cursor.description else []
            rows = [tuple(row) for row in cursor.fetchall()]
        finally:
            cursor.close()
            increment_db_query()
            record_operation_timing("db_query", time.perf_counter() - start)
        return QueryResult(columns=columns, rows=rows)

    def _values_subquery(self, table: str, column: str, shape: FieldShape) -> str:
        """Non-null values of a column, one per row (flattened for arrays)."""
        col = quote_identifier(column)
        if shape == FieldShape.ARRAY:
            return (
                f"SELECT v FROM (SELECT UNNEST({col}) AS v FROM {self._table_ref(table)}) "
                f"WHERE v IS NOT NULL"
            )
        return f"SELECT {col} AS v FROM {self._table_ref(table)} WHERE {col} IS NOT NULL"

    def _column_shape(self, table: str, column: str) -> FieldShape:
        result = self.query(
            """
            SELECT data_type FROM information_schema.columns
            WHERE table_schema = ? AND table_name = ? AND column_name = ?
            """,
            [self.schema, table, column],
        )
        data_type = result.scalar()
        if data_type is None:
            raise AnalysisError(f"Column {table}.{column} does not exist", table, column)
        return shape_for_type(data_type)

    # === DataSource ===

    def list_tables(self) -> list[TableInfo]:
        try:
            result = self.query(
                """
                SELECT c.table_name, c.column_name, c.data_type, c.is_nullable
                FROM information_schema.columns c
                JOIN information_schema.tables t
                  ON t.table_schema = c.table_schema AND t.table_name = c.table_name
                WHERE c.table_schema = ? AND t.table_type = 'BASE TABLE'
                ORDER BY c.table_name, c.ordinal_position
                """,
                [self.schema],
            )
        except duckdb.Error as e:
            raise TableEnumerationError(f"Failed to list tables in {self.name}: {e}") from e

        columns_by_table: dict[str, list[ColumnInfo]] = {}
        for table_name, column_name, data_type, is_nullable in result:
            columns_by_table.setdefault(table_name, []).append(
                ColumnInfo(
                    name=column_name,
                    data_type=data_type,
                    shape=shape_for_type(data_type),
                    nullable=is_nullable == "YES",
                )
            )

        tables: list[TableInfo] = []
        for table_name, columns in columns_by_table.items():
            try:
                row_count = self.query(f"SELECT COUNT(*) FROM {self._table_ref(table_name)}").scalar(0)
            except duckdb.Error as e:
                raise TableEnumerationError(f"Failed to count rows of {table_name}: {e}") from e
            tables.append(
                TableInfo(
                    name=table_name,
                    row_count=int(row_count),
                    columns=columns,
                    key_column=self._find_key_column(columns),
                )
            )

        logger.debug("tables_listed", source=self.name, tables=len(tables))
        return tables

    def _find_key_column(self, columns: list[ColumnInfo]) -> str | None:
        by_lower = {c.name.lower(): c for c in columns if c.shape == FieldShape.SCALAR}
        for candidate in self.identifier_columns:
            col = by_lower.get(candidate.lower())
            if col is not None:
                return col.name
        return None

    def profile_column(self, table: str, column: str) -> ColumnProfile:
        try:
            shape = self._column_shape(table, column)
            col = quote_identifier(column)
            ref = self._table_ref(table)

            if shape == FieldShape.ARRAY:
                # Empty arrays count as null
                sql = f"""
                    SELECT
                        COUNT(*) AS total_rows,
                        COUNT(*) FILTER (WHERE len({col}) > 0) AS non_null_count,
                        (SELECT COUNT(DISTINCT v) FROM ({self._values_subquery(table, column, shape)}))
                            AS distinct_count,
                        COALESCE(MAX(len({col})), 0) AS max_elements,
                        COALESCE(AVG(len({col})) FILTER (WHERE len({col}) > 0), 0) AS avg_elements
                    FROM {ref}
                """
            else:
                sql = f"""
                    SELECT
                        COUNT(*) AS total_rows,
                        COUNT({col}) AS non_null_count,
                        COUNT(DISTINCT {col}) AS distinct_count,
                        CASE WHEN COUNT({col}) > 0 THEN 1 ELSE 0 END AS max_elements,
                        CASE WHEN COUNT({col}) > 0 THEN 1.0 ELSE 0.0 END AS avg_elements
                    FROM {ref}
                """
            row = self.query(sql).first()
        except duckdb.Error as e:
            raise AnalysisError(f"Profiling {table}.{column} failed: {e}", table, column) from e

        assert row is not None
        total_rows, non_null, distinct, max_elements, avg_elements = row
        return ColumnProfile(
            table=table,
            column=column,
            shape=shape,
            total_rows=int(total_rows),
            non_null_count=int(non_null),
            distinct_count=int(distinct or 0),
            max_elements_per_record=int(max_elements or 0),
            avg_elements_per_record=round(float(avg_elements or 0.0), 4),
        )

    def compute_overlap(
        self, table: str, column: str, target_table: str, target_key_column: str
    ) -> OverlapResult:
        try:
            shape = self._column_shape(table, column)
            key = quote_identifier(target_key_column)
            sql = f"""
                WITH source_values AS (
                    SELECT DISTINCT CAST(v AS VARCHAR) AS value
                    FROM ({self._values_subquery(table, column, shape)})
                ),
                target_keys AS (
                    SELECT DISTINCT CAST({key} AS VARCHAR) AS value
                    FROM {self._table_ref(target_table)}
                    WHERE {key} IS NOT NULL
                )
                SELECT
                    COUNT(*) AS distinct_source_values,
                    COUNT(tk.value) AS matched
                FROM source_values sv
                LEFT JOIN target_keys tk ON sv.value = tk.value
            """
            row = self.query(sql).first()
        except duckdb.Error as e:
            raise AnalysisError(
                f"Overlap {table}.{column} -> {target_table}.{target_key_column} failed: {e}",
                table,
                column,
            ) from e

        assert row is not None
        return OverlapResult(distinct_source_values=int(row[0]), matched=int(row[1]))

    def max_references_per_value(
        self, table: str, column: str, target_table: str, target_key_column: str
    ) -> int | None:
        try:
            shape = self._column_shape(table, column)
            col = quote_identifier(column)
            key = quote_identifier(target_key_column)
            if shape == FieldShape.ARRAY:
                # A row listing the same id twice references it once
                values = (
                    f"SELECT v FROM (SELECT UNNEST(list_distinct({col})) AS v "
                    f"FROM {self._table_ref(table)}) WHERE v IS NOT NULL"
                )
            else:
                values = self._values_subquery(table, column, shape)
            # Values missing from the target are not references to any target row
            sql = f"""
                WITH target_keys AS (
                    SELECT DISTINCT CAST({key} AS VARCHAR) AS value
                    FROM {self._table_ref(target_table)}
                    WHERE {key} IS NOT NULL
                )
                SELECT MAX(ref_count) FROM (
                    SELECT CAST(v AS VARCHAR) AS value, COUNT(*) AS ref_count
                    FROM ({values})
                    GROUP BY CAST(v AS VARCHAR)
                ) refs
                JOIN target_keys tk ON refs.value = tk.value
            """
            value = self.query(sql).scalar(0)
        except duckdb.Error as e:
            raise AnalysisError(
                f"Reference count for {table}.{column} -> {target_table}.{target_key_column} failed: {e}",
                table,
                column,
            ) from e
        return int(value)

    def sample_values(self, table: str, column: str, limit: int = 10) -> list[str]:
        try:
            shape = self._column_shape(table, column)
            sql = f"""
                SELECT DISTINCT CAST(v AS VARCHAR) AS value
                FROM ({self._values_subquery(table, column, shape)})
                ORDER BY value
                LIMIT {int(limit)}
            """
            return [row[0] for row in self.query(sql)]
        except duckdb.Error as e:
            raise AnalysisError(f"Sampling {table}.{column} failed: {e}", table, column) from e

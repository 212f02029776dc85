"""
Data-access context over an embedded DuckDB database

The context owns the single connection used by every core query. Sources are
bulk-loaded from Parquet files once (from a local directory or an http(s)
base URL) and are read-only afterwards.

Usage:
    ctx = DataContext.open()
    ctx.load_sources("data/")
    rows = ctx.records("SELECT * FROM columns_metadata WHERE data_table_id = ?", ["T1"])
"""
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import duckdb
import pandas as pd
from tqdm import tqdm

from .config import PARQUET_SOURCES, TABLES_METADATA, VARIABLE_COLUMN, VALUE_COLUMN
from .exceptions import InitializationError, MissingTableError, SchemaError

logger = logging.getLogger("explorer.db")

NUMERIC_TYPE_MARKERS = ("int", "double", "decimal", "real", "numeric", "float")


def quote_identifier(name: str) -> str:
    """Quote an identifier, doubling embedded double quotes."""
    return '"' + str(name).replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """Quote a string literal, doubling embedded single quotes."""
    return "'" + str(value).replace("'", "''") + "'"


def is_remote(location: str) -> bool:
    return bool(re.match(r"^https?://", str(location), re.IGNORECASE))


def join_location(base: str, filename: str) -> str:
    """Join a directory or base URL with a file name."""
    if is_remote(base):
        return base.rstrip("/") + "/" + filename
    return str(Path(base) / filename)


class LoadResult:
    """Outcome of loading one source into a table."""

    def __init__(self, table: str, loaded: bool, row_count: int = 0, error: Optional[str] = None):
        self.table = table
        self.loaded = loaded
        self.row_count = row_count
        self.error = error

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table,
            "loaded": self.loaded,
            "row_count": self.row_count,
            "error": self.error,
        }

    def __repr__(self):
        return f"LoadResult({self.table!r}, loaded={self.loaded}, row_count={self.row_count})"


class DataContext:
    """Owned handle on the DuckDB connection, passed into every core query."""

    def __init__(self, conn: duckdb.DuckDBPyConnection):
        self._conn = conn
        self._value_columns: Dict[str, Optional[str]] = {}
        self._httpfs_ready = False

    @classmethod
    def open(cls, db_path: Optional[str] = None, read_only: bool = False) -> "DataContext":
        """
        Start the engine

        Args:
            db_path: Database file; None or ':memory:' for an in-memory database
            read_only: Open an existing file read-only

        Raises:
            InitializationError: If DuckDB cannot be started
        """
        target = str(db_path) if db_path else ":memory:"
        try:
            conn = duckdb.connect(target, read_only=read_only)
        except duckdb.Error as e:
            raise InitializationError(f"Could not open database {target}: {e}") from e
        logger.debug("Opened database %s", target)
        return cls(conn)

    def close(self):
        self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # Query execution

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None):
        """Run a query on a fresh cursor and return the cursor."""
        cursor = self._conn.cursor()
        if params:
            cursor.execute(sql, list(params))
        else:
            cursor.execute(sql)
        return cursor

    def records(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Run a query and return rows as dicts; SQL NULL stays None."""
        cursor = self.execute(sql, params)
        columns = [d[0] for d in cursor.description]
        return [dict(zip(columns, row)) for row in cursor.fetchall()]

    def frame(self, sql: str, params: Optional[Sequence[Any]] = None) -> pd.DataFrame:
        return self.execute(sql, params).fetchdf()

    def scalar(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        row = self.execute(sql, params).fetchone()
        return row[0] if row else None

    # Catalog helpers

    def table_exists(self, table: str) -> bool:
        count = self.scalar("""
            SELECT COUNT(*)
            FROM information_schema.tables
            WHERE table_schema = 'main' AND table_name = ?
        """, [table])
        return bool(count)

    def require_tables(self, *tables: str):
        for table in tables:
            if not self.table_exists(table):
                raise MissingTableError(table)

    def table_columns(self, table: str) -> List[Tuple[str, str]]:
        """(column_name, data_type) pairs in ordinal order."""
        rows = self.execute("""
            SELECT column_name, data_type
            FROM information_schema.columns
            WHERE table_schema = 'main' AND table_name = ?
            ORDER BY ordinal_position
        """, [table]).fetchall()
        return [(name, dtype) for name, dtype in rows]

    def row_count(self, table: str) -> int:
        return self.scalar(f"SELECT COUNT(*) FROM {quote_identifier(table)}")

    def value_column(self, table: str, area_column: str) -> Optional[str]:
        """
        Find the numeric value column of a fact table

        A column literally named 'value' wins; otherwise the first numeric
        column that is neither the area column nor variable_name.

        Returns:
            Column name, or None if the table is not loaded

        Raises:
            SchemaError: If the table has no numeric column
        """
        if table in self._value_columns:
            return self._value_columns[table]

        columns = self.table_columns(table)
        if not columns:
            return None

        found = None
        for name, _ in columns:
            if name.lower() == VALUE_COLUMN:
                found = name
                break

        if found is None:
            excluded = {area_column.lower(), VARIABLE_COLUMN}
            for name, dtype in columns:
                if name.lower() in excluded:
                    continue
                if any(marker in dtype.lower() for marker in NUMERIC_TYPE_MARKERS):
                    found = name
                    break

        if found is None:
            raise SchemaError(f"Could not determine value column in {table}")

        self._value_columns[table] = found
        return found

    # Loading

    def _ensure_httpfs(self):
        if self._httpfs_ready:
            return
        for statement in ("INSTALL httpfs", "LOAD httpfs"):
            try:
                self._conn.execute(statement)
            except duckdb.Error as e:
                logger.warning("%s failed: %s", statement, e)
        self._httpfs_ready = True

    def load_parquet(self, table: str, location: str) -> int:
        """
        Create a table from a Parquet file unless it already exists

        Returns:
            Row count of the table
        """
        if is_remote(location):
            self._ensure_httpfs()
        elif not Path(location).exists():
            raise FileNotFoundError(f"Parquet source not found: {location}")

        self._conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {quote_identifier(table)} AS
            SELECT * FROM read_parquet({quote_literal(location)})
        """)
        self._value_columns.pop(table, None)
        return self.row_count(table)

    def normalize_dates(self, table: str = TABLES_METADATA, column: str = "date") -> bool:
        """
        Convert a text date column (DD.MM.YYYY or ISO) to DATE

        The column is only replaced when every non-null value parses, so
        unrecognised raw values stay available for display.

        Returns:
            True if the column was converted
        """
        types = dict(self.table_columns(table))
        dtype = types.get(column)
        if dtype is None or dtype.upper() != "VARCHAR":
            return False

        tbl = quote_identifier(table)
        col = quote_identifier(column)
        parsed = f"""COALESCE(
            CAST(try_strptime(TRIM({col}), '%d.%m.%Y') AS DATE),
            TRY_CAST(TRIM({col}) AS DATE)
        )"""

        unparsed = self.scalar(f"""
            SELECT COUNT(*) FROM {tbl}
            WHERE NULLIF(TRIM({col}), '') IS NOT NULL AND {parsed} IS NULL
        """)
        if unparsed:
            logger.warning("%s.%s has %s unparseable dates; keeping text values", table, column, unparsed)
            return False

        tmp = quote_identifier(f"__{column}_tmp")
        self._conn.execute(f"ALTER TABLE {tbl} ADD COLUMN {tmp} DATE")
        self._conn.execute(f"UPDATE {tbl} SET {tmp} = {parsed}")
        self._conn.execute(f"ALTER TABLE {tbl} DROP COLUMN {col}")
        self._conn.execute(f"ALTER TABLE {tbl} RENAME COLUMN {tmp} TO {col}")
        logger.debug("Converted %s.%s to DATE", table, column)
        return True

    def load_sources(self, location: str,
                     sources: Iterable[Tuple[str, str, bool]] = PARQUET_SOURCES,
                     progress: bool = False) -> List[LoadResult]:
        """
        Bulk-load every source table

        A failing optional source is logged and skipped; the table is simply
        unavailable afterwards.

        Raises:
            InitializationError: If a required source fails to load
        """
        results = []
        failed_required = []

        for table, filename, required in tqdm(list(sources), desc="Loading tables", disable=not progress):
            path = join_location(location, filename)
            try:
                count = self.load_parquet(table, path)
                if table == TABLES_METADATA:
                    self.normalize_dates(table)
                results.append(LoadResult(table, True, count))
                logger.info("Loaded %s: %s rows", table, count)
            except (duckdb.Error, OSError) as e:
                results.append(LoadResult(table, False, error=str(e)))
                if required:
                    failed_required.append(table)
                    logger.error("Failed to load required table %s from %s: %s", table, path, e)
                else:
                    logger.warning("Skipping %s (%s): %s", table, path, e)

        if failed_required:
            raise InitializationError(f"Required tables failed to load: {', '.join(failed_required)}")

        return results

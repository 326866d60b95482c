"""
DuckDB-based query executor for the Insight Engine.

Handles:
- Running engine-generated SQL and returning rows as dictionaries
- Loading DataFrames / CSV files into tables (CLI and tests)
- Keeping blocking DuckDB calls off the event loop
"""

import asyncio
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

import duckdb
import numpy as np
import pandas as pd

from insight_engine.storage.sql import quote_identifier

logger = logging.getLogger(__name__)


class QueryExecutionError(Exception):
    """Raised when a query fails inside the executor."""

    def __init__(self, message: str, sql: Optional[str] = None):
        self.sql = sql
        super().__init__(message)


@dataclass
class QueryResult:
    """Rows returned by a query, one dict per row keyed by column alias."""
    rows: List[Dict[str, Any]] = field(default_factory=list)
    columns: List[str] = field(default_factory=list)

    def first(self) -> Dict[str, Any]:
        """First row, or an empty dict when the result is empty."""
        return self.rows[0] if self.rows else {}

    def __len__(self) -> int:
        return len(self.rows)


class QueryExecutor(Protocol):
    """Anything that can run SQL text and hand back rows."""

    async def execute(self, sql: str) -> QueryResult:
        ...


def _to_native(value: Any) -> Any:
    """Convert pandas/numpy scalars to plain Python values (NaN/NaT -> None)."""
    if value is None:
        return None
    if value is pd.NaT or value is pd.NA:
        return None
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


class DuckDBQueryExecutor:
    """
    Query executor backed by a DuckDB connection.

    Blocking calls run on a single-worker thread pool so that one connection
    is only ever used by one thread at a time.

    Usage:
        executor = DuckDBQueryExecutor()
        executor.load_csv("orders.csv", "orders")

        result = await executor.execute("SELECT COUNT(*) AS total FROM orders")
        print(result.first()["total"])
    """

    def __init__(
        self,
        database_path: Optional[str] = None,
        connection: Optional[duckdb.DuckDBPyConnection] = None,
        memory_limit: Optional[str] = None,
        threads: Optional[int] = None,
    ):
        """
        Initialize the executor.

        Args:
            database_path: Path to DuckDB file. If None, uses in-memory database.
            connection: Existing connection to reuse (takes precedence).
            memory_limit: Optional DuckDB memory limit, e.g. "4GB".
            threads: Optional DuckDB worker thread count.
        """
        self.database_path = database_path
        self._conn: Optional[duckdb.DuckDBPyConnection] = connection
        self._memory_limit = memory_limit
        self._threads = threads
        self._pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="duckdb")

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """Get or create the DuckDB connection."""
        if self._conn is None:
            if self.database_path:
                self._conn = duckdb.connect(self.database_path)
                logger.info(f"Connected to DuckDB at {self.database_path}")
            else:
                self._conn = duckdb.connect(":memory:")
                logger.info("Connected to in-memory DuckDB")

            if self._memory_limit:
                self._conn.execute(f"SET memory_limit='{self._memory_limit}'")
            if self._threads:
                self._conn.execute(f"SET threads={int(self._threads)}")
        return self._conn

    def execute_sync(self, sql: str) -> QueryResult:
        """Execute SQL on the calling thread and return rows."""
        logger.debug(f"Executing SQL: {sql}")
        try:
            df = self.connection.execute(sql).df()
        except duckdb.Error as e:
            raise QueryExecutionError(f"Query failed: {e}", sql=sql) from e

        columns = [str(c) for c in df.columns]
        rows = [
            {col: _to_native(value) for col, value in zip(columns, record)}
            for record in df.itertuples(index=False, name=None)
        ]
        return QueryResult(rows=rows, columns=columns)

    async def execute(self, sql: str) -> QueryResult:
        """Execute SQL without blocking the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._pool, self.execute_sync, sql)

    def load_dataframe(self, df: pd.DataFrame, table_name: str, replace: bool = True) -> int:
        """
        Load a DataFrame into a DuckDB table.

        Args:
            df: The DataFrame to load
            table_name: Target table name
            replace: If True, replace existing table. If False, append.

        Returns:
            Row count of the table after loading
        """
        table = quote_identifier(table_name)
        temp_name = f"_temp_{abs(hash(table_name))}"

        self.connection.register(temp_name, df)
        try:
            if replace:
                self.connection.execute(
                    f"CREATE OR REPLACE TABLE {table} AS SELECT * FROM {temp_name}"
                )
                logger.info(f"Created table '{table_name}' with {len(df)} rows")
            else:
                self.connection.execute(f"INSERT INTO {table} SELECT * FROM {temp_name}")
                logger.info(f"Appended {len(df)} rows to '{table_name}'")
        finally:
            self.connection.unregister(temp_name)

        return self.connection.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    def load_csv(self, csv_path: Union[str, Path], table_name: str) -> int:
        """Load a CSV file into a DuckDB table, letting DuckDB sniff types."""
        df = pd.read_csv(csv_path)
        logger.info(f"Loaded CSV: {csv_path} ({len(df)} rows, {len(df.columns)} columns)")
        return self.load_dataframe(df, table_name)

    def close(self) -> None:
        """Close the connection and release the worker thread."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        self._pool.shutdown(wait=True)

    def __enter__(self) -> "DuckDBQueryExecutor":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

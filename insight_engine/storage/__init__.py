"""
Storage layer for the Insight Engine.

This module provides:
- DuckDBQueryExecutor: async SQL execution over a DuckDB connection
- InMemoryKeyValueStore / JsonFileKeyValueStore: persistence for the result cache
- quote_identifier / quote_literal: the single place SQL text is escaped
"""

from insight_engine.storage.kv_store import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    PersistentStore,
)
from insight_engine.storage.query_executor import (
    DuckDBQueryExecutor,
    QueryExecutionError,
    QueryExecutor,
    QueryResult,
)
from insight_engine.storage.sql import quote_identifier, quote_literal, sample_clause

__all__ = [
    "DuckDBQueryExecutor",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "PersistentStore",
    "QueryExecutionError",
    "QueryExecutor",
    "QueryResult",
    "quote_identifier",
    "quote_literal",
    "sample_clause",
]

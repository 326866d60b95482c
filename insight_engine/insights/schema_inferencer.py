"""
Schema inference for the Insight Engine.

Analyzes table columns to infer a basic statistical type and a business
semantic type per column, then profiles the survivors with three batched
queries (cardinality, statistics, null rate).
"""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from insight_engine.insights.models import BasicType, ColumnProfile, SemanticType
from insight_engine.insights.patterns import (
    ID_PATTERNS,
    PHONE_PATTERNS,
    SEMANTIC_PATTERNS,
    match_label,
    matches_any,
)
from insight_engine.storage.query_executor import QueryExecutor, QueryResult
from insight_engine.storage.sql import quote_identifier

logger = logging.getLogger(__name__)

NUMERIC_TYPES = (
    "INTEGER", "BIGINT", "SMALLINT", "TINYINT", "DOUBLE", "FLOAT",
    "DECIMAL", "NUMERIC", "REAL", "HUGEINT",
)
DATETIME_MARKERS = ("DATE", "TIME", "TIMESTAMP")
STRING_MARKERS = ("VARCHAR", "TEXT", "STRING")

LOW_CARDINALITY_LIMIT = 20
LOW_CARDINALITY_RATIO = 0.05
HIGH_CARDINALITY_TEXT_RATIO = 0.9

RE_CONTROL_CHARS = re.compile(r"[\x00-\x1F\x7F]")
RE_WHITESPACE = re.compile(r"\s+")

# (alias suffix, SQL aggregate template) for the numeric statistics batch
STAT_AGGREGATES = (
    ("min", "MIN({col})"),
    ("max", "MAX({col})"),
    ("mean", "AVG({col})"),
    ("median", "MEDIAN({col})"),
    ("stddev", "STDDEV({col})"),
    ("p25", "APPROX_QUANTILE({col}, 0.25)"),
    ("p50", "APPROX_QUANTILE({col}, 0.5)"),
    ("p75", "APPROX_QUANTILE({col}, 0.75)"),
    ("p80", "APPROX_QUANTILE({col}, 0.8)"),
    ("p99", "APPROX_QUANTILE({col}, 0.99)"),
)


def is_valid_column_name(name: str) -> bool:
    """
    Check whether a column name can be safely interpolated into SQL.

    Rejects names containing double quotes, whitespace-only names and names
    with control characters.
    """
    if '"' in name:
        return False
    if not name.strip():
        return False
    if RE_CONTROL_CHARS.search(name):
        return False
    return True


def sanitize_column_name(name: str) -> str:
    """Strip double quotes, collapse whitespace and trim (result aliases only)."""
    return RE_WHITESPACE.sub(" ", name.replace('"', "")).strip()


def is_numeric_type(raw_type: str) -> bool:
    type_upper = raw_type.upper()
    return any(t in type_upper for t in NUMERIC_TYPES)


def is_phone_number(name: str) -> bool:
    return matches_any(name, PHONE_PATTERNS)


def is_id_column(name: str) -> bool:
    return matches_any(name, ID_PATTERNS)


def match_semantic_type(name: str) -> Optional[SemanticType]:
    """
    Match a semantic type from the column name.

    Priority order: status > category > amount > time > id.
    """
    label = match_label(name, SEMANTIC_PATTERNS)
    return SemanticType(label) if label else None


def infer_type(raw_type: str, cardinality: int, row_count: int, name: str = "") -> BasicType:
    """
    Infer the basic column type from storage type, cardinality and name.

    Phone numbers and ID-like names are always text, even when stored as
    numbers; low-cardinality numbers are categorical; near-unique strings
    are free text. Unknown storage types default to text.
    """
    type_upper = (raw_type or "").upper()
    ratio = cardinality / row_count if row_count > 0 else 0.0

    if name and (is_phone_number(name) or is_id_column(name)):
        return BasicType.TEXT

    if any(marker in type_upper for marker in DATETIME_MARKERS):
        return BasicType.DATETIME

    if is_numeric_type(type_upper):
        if cardinality <= LOW_CARDINALITY_LIMIT or ratio < LOW_CARDINALITY_RATIO:
            return BasicType.CATEGORICAL
        return BasicType.NUMERIC

    if any(marker in type_upper for marker in STRING_MARKERS):
        if ratio > HIGH_CARDINALITY_TEXT_RATIO:
            return BasicType.TEXT
        return BasicType.CATEGORICAL

    return BasicType.TEXT


def sort_columns_by_importance(columns: Sequence[ColumnProfile]) -> List[ColumnProfile]:
    """
    Sort columns for visualization without touching the input.

    Columns with a semantic type come first; ties are broken by cardinality,
    highest first.
    """
    return sorted(
        columns,
        key=lambda c: (0 if c.semantic_type else 1, -c.cardinality),
    )


def _number(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class SchemaInferencer:
    """
    Column type inference over a queryable table.

    Usage:
        inferencer = SchemaInferencer()
        profiles = await inferencer.infer_columns("orders", executor)
    """

    # Re-exported so callers can reach the pure helpers through the service
    sanitize_column_name = staticmethod(sanitize_column_name)
    match_semantic_type = staticmethod(match_semantic_type)
    infer_type = staticmethod(infer_type)
    sort_columns_by_importance = staticmethod(sort_columns_by_importance)

    async def infer_columns(self, table_name: str, executor: QueryExecutor) -> List[ColumnProfile]:
        """
        Infer column profiles for every business-relevant column of a table.

        Args:
            table_name: Name of the table to analyze
            executor: Query executor

        Returns:
            Column profiles; empty when no column has a usable semantic type.
        """
        table = quote_identifier(table_name)

        # Step 1: schema (critical)
        schema = await executor.execute(f"DESCRIBE {table}")
        raw_columns = [
            (str(row["column_name"]), str(row["column_type"])) for row in schema.rows
        ]
        logger.info(f"Found {len(raw_columns)} columns in {table_name}")

        # Step 2: early filtering on name validity and semantic type
        valid_columns = [
            (name, raw_type) for name, raw_type in raw_columns if self._keep_column(name)
        ]
        logger.info(f"After filtering: {len(valid_columns)}/{len(raw_columns)} columns remain")

        if not valid_columns:
            logger.warning(f"No valid business columns found in {table_name}")
            return []

        # Step 3: row count (critical)
        row_count_result = await executor.execute(f"SELECT COUNT(*) AS total FROM {table}")
        row_count = int(row_count_result.first().get("total") or 0)

        # Step 4-6: batched profiling queries
        names = [name for name, _ in valid_columns]
        numeric_names = [name for name, raw_type in valid_columns if is_numeric_type(raw_type)]

        cardinality_row = await self._run_batch(
            "cardinality", executor, self.build_cardinality_query(table_name, names)
        )
        stats_row = {}
        if numeric_names:
            stats_row = await self._run_batch(
                "statistics", executor, self.build_stats_query(table_name, numeric_names)
            )
        null_rate_row = await self._run_batch(
            "null rate", executor, self.build_null_rate_query(table_name, names)
        )

        # Step 7: combine
        profiles = []
        for name, raw_type in valid_columns:
            alias = sanitize_column_name(name)
            cardinality = int(_number(cardinality_row.get(f"{alias}_card")) or 0)
            null_rate = _number(null_rate_row.get(f"{alias}_null")) or 0.0
            basic_type = infer_type(raw_type, cardinality, row_count, name)

            stats: Dict[str, Optional[float]] = {}
            if basic_type == BasicType.NUMERIC:
                stats = {
                    suffix: _number(stats_row.get(f"{alias}_{suffix}"))
                    for suffix, _ in STAT_AGGREGATES
                }

            profiles.append(ColumnProfile(
                name=name,
                raw_type=raw_type,
                basic_type=basic_type,
                semantic_type=match_semantic_type(name),
                cardinality=cardinality,
                null_rate=null_rate,
                **stats,
            ))

        return profiles

    def _keep_column(self, name: str) -> bool:
        if not is_valid_column_name(name):
            logger.warning(f"Skipping column with invalid characters: {name!r}")
            return False

        semantic_type = match_semantic_type(name)
        if semantic_type is None:
            logger.debug(f"Skipping non-business column: {name!r} (no semantic type)")
            return False
        if semantic_type == SemanticType.ID:
            logger.debug(f"Skipping ID column: {name!r}")
            return False
        return True

    async def _run_batch(self, label: str, executor: QueryExecutor, sql: str) -> Dict[str, Any]:
        """Run one profiling batch; a failure is logged and yields an empty row."""
        try:
            result: QueryResult = await executor.execute(sql)
        except Exception as e:
            logger.error(f"Failed to compute {label} batch, continuing with partial profiles: {e}")
            return {}
        return result.first()

    @staticmethod
    def build_cardinality_query(table_name: str, names: Sequence[str]) -> str:
        """Approximate distinct counts for all columns in a single query."""
        selects = [
            f"approx_count_distinct({quote_identifier(name)}) AS "
            f"{quote_identifier(sanitize_column_name(name) + '_card')}"
            for name in names
        ]
        return f"SELECT {', '.join(selects)} FROM {quote_identifier(table_name)}"

    @staticmethod
    def build_stats_query(table_name: str, names: Sequence[str]) -> str:
        """Statistics for all numeric columns in a single query."""
        selects = []
        for name in names:
            col = quote_identifier(name)
            alias = sanitize_column_name(name)
            for suffix, template in STAT_AGGREGATES:
                selects.append(
                    f"{template.format(col=col)} AS {quote_identifier(f'{alias}_{suffix}')}"
                )
        return f"SELECT {', '.join(selects)} FROM {quote_identifier(table_name)}"

    @staticmethod
    def build_null_rate_query(table_name: str, names: Sequence[str]) -> str:
        """Null fraction for all columns in a single query."""
        selects = [
            f"(COUNT(*) - COUNT({quote_identifier(name)})) * 1.0 / NULLIF(COUNT(*), 0) AS "
            f"{quote_identifier(sanitize_column_name(name) + '_null')}"
            for name in names
        ]
        return f"SELECT {', '.join(selects)} FROM {quote_identifier(table_name)}"

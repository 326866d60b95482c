"""
Builds the semantic table context handed to the LLM prompt builders.
"""

import logging
from typing import Dict, List, Sequence

from insight_engine.insights.models import AlgorithmType, InsightContext, TableColumn, TableMetadata
from insight_engine.insights.patterns import (
    DESCRIPTION_PATTERNS,
    FEATURE_DESCRIPTIONS,
    labels_matching,
)
from insight_engine.storage.query_executor import QueryExecutor
from insight_engine.storage.sql import quote_identifier, quote_literal

logger = logging.getLogger(__name__)

FEATURE_TYPE_MARKERS = ("INT", "DOUBLE", "DECIMAL", "FLOAT", "REAL", "NUMERIC")
DEFAULT_BUSINESS_DOMAIN = "ecommerce"


async def fetch_table_metadata(executor: QueryExecutor, table_name: str) -> TableMetadata:
    """Row count plus ordered column schema from information_schema. Errors propagate."""
    count_result = await executor.execute(
        f"SELECT COUNT(*) AS row_count FROM {quote_identifier(table_name)}"
    )
    row_count = int(count_result.first().get("row_count") or 0)

    schema_result = await executor.execute(
        "SELECT column_name, data_type, is_nullable "
        "FROM information_schema.columns "
        f"WHERE table_name = {quote_literal(table_name)} "
        "ORDER BY ordinal_position"
    )
    columns = [
        TableColumn(
            name=str(row["column_name"]),
            type=str(row["data_type"]),
            nullable=row.get("is_nullable") == "YES",
        )
        for row in schema_result.rows
    ]

    return TableMetadata(
        table_name=table_name,
        row_count=row_count,
        column_count=len(columns),
        columns=columns,
    )


def select_feature_columns(columns: Sequence[TableColumn]) -> List[str]:
    """Names of the numeric columns, in schema order."""
    return [
        col.name for col in columns
        if any(marker in col.type.upper() for marker in FEATURE_TYPE_MARKERS)
    ]


def describe_feature(column_name: str) -> str:
    labels = labels_matching(column_name, DESCRIPTION_PATTERNS)
    if not labels:
        return f"Numeric feature: {column_name}"
    if len(labels) > 1:
        logger.debug(
            f"Column {column_name!r} matches {labels}, describing it as {labels[0]!r}"
        )
    return FEATURE_DESCRIPTIONS.get(labels[0], f"Feature: {column_name}")


def map_feature_definitions(feature_columns: Sequence[str]) -> Dict[str, str]:
    """Map each feature column to a business description."""
    return {col: describe_feature(col) for col in feature_columns}


async def build_insight_context(
    executor: QueryExecutor,
    table_name: str,
    algorithm_type: AlgorithmType = AlgorithmType.ANOMALY,
    business_domain: str = DEFAULT_BUSINESS_DOMAIN,
) -> InsightContext:
    """
    Build the insight context for one analysis run.

    Args:
        executor: Query executor
        table_name: Analyzed table
        algorithm_type: Algorithm the context is built for
        business_domain: Domain hint for the prompt

    Returns:
        InsightContext with table metadata and feature descriptions
    """
    metadata = await fetch_table_metadata(executor, table_name)
    feature_columns = select_feature_columns(metadata.columns)

    logger.info(
        f"Built context for {table_name}: {metadata.row_count} rows, "
        f"{len(feature_columns)}/{metadata.column_count} feature columns"
    )

    return InsightContext(
        algorithm_type=algorithm_type,
        table_metadata=metadata,
        feature_definitions=map_feature_definitions(feature_columns),
        business_domain=business_domain,
    )

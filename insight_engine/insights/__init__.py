"""
Insights - column profiling, chart data and analysis digests over a DuckDB table.

This module provides:
- SchemaInferencer: infers basic and semantic column types, profiles columns
- AdaptiveBinner: picks logarithmic / clipped / linear histogram binning
- ResultCache: byte-budgeted LRU cache for derived results
- InsightOrchestrator: builds the insight config and summary/distribution/categorical data
- aggregate_anomalies / aggregate_clusters: digests of analysis output for the LLM
- label_all_clusters: RFM archetype labels for customer clusters

Usage:
    from insight_engine.insights import (
        AdaptiveBinner, InsightOrchestrator, ResultCache, SchemaInferencer,
    )
    from insight_engine.storage import DuckDBQueryExecutor, InMemoryKeyValueStore

    executor = DuckDBQueryExecutor()
    executor.load_csv("orders.csv", "orders")

    orchestrator = InsightOrchestrator(
        SchemaInferencer(), AdaptiveBinner(), ResultCache(InMemoryKeyValueStore())
    )
    charts = await orchestrator.get_distributions("orders", executor)
"""

from insight_engine.insights.aggregator import aggregate_anomalies, aggregate_clusters
from insight_engine.insights.binning import AdaptiveBinner
from insight_engine.insights.cache import CacheError, ResultCache
from insight_engine.insights.context_builder import build_insight_context
from insight_engine.insights.models import (
    AggregatedFeatures,
    AlgorithmType,
    BasicType,
    ColumnProfile,
    InsightConfig,
    InsightContext,
    SemanticType,
)
from insight_engine.insights.orchestrator import InsightOrchestrator
from insight_engine.insights.schema_inferencer import SchemaInferencer
from insight_engine.insights.segment_labeler import (
    RFMClassification,
    apply_labels,
    label_all_clusters,
    label_cluster,
)

__all__ = [
    "AdaptiveBinner",
    "AggregatedFeatures",
    "AlgorithmType",
    "BasicType",
    "CacheError",
    "ColumnProfile",
    "InsightConfig",
    "InsightContext",
    "InsightOrchestrator",
    "RFMClassification",
    "ResultCache",
    "SchemaInferencer",
    "SemanticType",
    "aggregate_anomalies",
    "aggregate_clusters",
    "apply_labels",
    "build_insight_context",
    "label_all_clusters",
    "label_cluster",
]

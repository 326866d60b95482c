"""
Aggregates algorithm output into compact digests for LLM analysis.

Anomaly digests compare the flagged records' feature values (already carried
on each AnomalyRecord) against table-wide averages fetched in one batched
query. Cluster digests are computed entirely in memory.
"""

import logging
from typing import Dict, List, Sequence

import pandas as pd

from insight_engine.insights.models import (
    AggregatedFeatures,
    AnomalyRecord,
    ClusteringAnalysisResult,
    ClusterSample,
    ClusterSummary,
    CustomerClusterRecord,
    InsightContext,
    NumericFeatureStats,
    RFMStats,
    SampleCustomer,
)
from insight_engine.storage.query_executor import QueryExecutor
from insight_engine.storage.sql import quote_identifier

logger = logging.getLogger(__name__)

MAX_ANALYSIS_SIZE = 500
CLUSTER_SAMPLE_SIZE = 75


async def aggregate_anomalies(
    executor: QueryExecutor,
    table_name: str,
    anomalies: Sequence[AnomalyRecord],
    context: InsightContext,
    max_analysis_size: int = MAX_ANALYSIS_SIZE,
) -> AggregatedFeatures:
    """
    Aggregate anomaly records for LLM analysis.

    Totals and the average score cover every record; feature statistics
    cover only the first ``max_analysis_size`` records.

    Args:
        executor: Query executor (used for global averages only)
        table_name: Analyzed table
        anomalies: Anomalous records, highest score first
        context: Insight context; its feature definitions name the features
        max_analysis_size: Cap on records used for feature statistics

    Returns:
        AggregatedFeatures with the anomaly block filled
    """
    if not anomalies:
        return AggregatedFeatures(
            total_anomalies=0,
            average_score=0.0,
            numeric_features={},
            top_patterns={},
            suspicious_patterns={},
        )

    total = len(anomalies)
    average_score = sum(a.score for a in anomalies) / total

    sample = list(anomalies[:max_analysis_size])
    feature_columns = list(context.feature_definitions.keys())

    numeric_features = await compute_numeric_stats(
        executor, table_name, feature_columns, sample
    )

    logger.info(
        f"Aggregated {total} anomalies (analyzed {len(sample)}), "
        f"{len(numeric_features)} numeric features"
    )

    return AggregatedFeatures(
        total_anomalies=total,
        average_score=average_score,
        numeric_features=numeric_features,
        top_patterns={},
        suspicious_patterns={},
    )


def compute_anomaly_feature_stats(
    feature_columns: Sequence[str],
    anomalies: Sequence[AnomalyRecord],
) -> Dict[str, NumericFeatureStats]:
    """avg/min/max per feature over the anomaly set, ignoring missing or non-numeric values."""
    if not anomalies or not feature_columns:
        return {}

    df = pd.DataFrame([a.features for a in anomalies])
    stats = {}
    for col in feature_columns:
        if col not in df.columns:
            continue
        values = pd.to_numeric(df[col], errors="coerce").dropna()
        if values.empty:
            continue
        stats[col] = NumericFeatureStats(
            avg=float(values.mean()),
            min=float(values.min()),
            max=float(values.max()),
        )
    return stats


def build_global_average_query(table_name: str, columns: Sequence[str]) -> str:
    """One query returning AVG of every column, aliased ``avg_<column>``."""
    selects = ", ".join(
        f"AVG({quote_identifier(col)}) AS {quote_identifier('avg_' + col)}"
        for col in columns
    )
    return f"SELECT {selects} FROM {quote_identifier(table_name)}"


async def compute_numeric_stats(
    executor: QueryExecutor,
    table_name: str,
    feature_columns: Sequence[str],
    anomalies: Sequence[AnomalyRecord],
) -> Dict[str, NumericFeatureStats]:
    """
    Feature statistics for the anomaly set, merged with global averages.

    If the global query fails the anomaly statistics are still returned,
    with ``global_avg`` left empty.
    """
    stats = compute_anomaly_feature_stats(feature_columns, anomalies)
    if not stats:
        return stats

    try:
        result = await executor.execute(build_global_average_query(table_name, list(stats)))
    except Exception as e:
        logger.error(f"Failed to query global averages for {table_name}: {e}")
        return stats

    row = result.first()
    if not row:
        logger.warning(f"No global averages returned for {table_name}")
        return stats

    for col, feature in stats.items():
        global_avg = row.get(f"avg_{col}")
        feature.global_avg = float(global_avg) if global_avg else None
        if feature.deviation_pct is not None:
            logger.debug(
                f"{col}: anomaly avg {feature.avg:.2f}, global avg "
                f"{feature.global_avg:.2f}, deviation {feature.deviation_pct:.1f}%"
            )
    return stats


def aggregate_clusters(
    analysis: ClusteringAnalysisResult,
    sample_size: int = CLUSTER_SAMPLE_SIZE,
) -> AggregatedFeatures:
    """
    Aggregate a clustering run for LLM analysis.

    Args:
        analysis: Cluster metadata and per-customer assignments
        sample_size: Maximum customers sampled per cluster

    Returns:
        AggregatedFeatures with the clustering block filled
    """
    customers = pd.DataFrame(
        [
            {
                "customer_id": c.customer_id,
                "cluster_id": c.cluster_id,
                "recency": c.recency,
                "frequency": c.frequency,
                "monetary": c.monetary,
            }
            for c in analysis.customers
        ],
        columns=["customer_id", "cluster_id", "recency", "frequency", "monetary"],
    )

    if customers.empty:
        rfm_stats = RFMStats(0.0, 0.0, 0.0)
    else:
        rfm_stats = RFMStats(
            global_avg_recency=float(customers["recency"].mean()),
            global_avg_frequency=float(customers["frequency"].mean()),
            global_avg_monetary=float(customers["monetary"].mean()),
        )

    grand_total = sum(c.total_value for c in analysis.clusters)
    summaries = [
        ClusterSummary(
            cluster_id=c.cluster_id,
            customer_count=c.customer_count,
            avg_recency=c.avg_recency,
            avg_frequency=c.avg_frequency,
            avg_monetary=c.avg_monetary,
            total_value=c.total_value,
            value_share=c.total_value / grand_total * 100 if grand_total else 0.0,
            label=c.label,
        )
        for c in analysis.clusters
    ]

    samples = [
        ClusterSample(
            cluster_id=c.cluster_id,
            customers=sample_cluster_customers(
                [r for r in analysis.customers if r.cluster_id == c.cluster_id],
                sample_size,
            ),
        )
        for c in analysis.clusters
    ]

    logger.info(
        f"Aggregated {len(analysis.clusters)} clusters over "
        f"{analysis.total_customers} customers"
    )

    return AggregatedFeatures(
        total_customers=analysis.total_customers,
        clusters=summaries,
        rfm_stats=rfm_stats,
        sample_customers=samples,
    )


def sample_cluster_customers(
    customers: Sequence[CustomerClusterRecord],
    sample_size: int = CLUSTER_SAMPLE_SIZE,
) -> List[SampleCustomer]:
    """
    High-value sample of one cluster's customers.

    Customers are ordered by monetary value, descending, and the top
    ``sample_size`` are kept, so samples lean toward the biggest spenders.
    """
    if sample_size <= 0:
        return []
    ordered = sorted(customers, key=lambda c: c.monetary, reverse=True)[:sample_size]

    return [
        SampleCustomer(
            customer_id=c.customer_id,
            recency=c.recency,
            frequency=c.frequency,
            monetary=c.monetary,
        )
        for c in ordered
    ]

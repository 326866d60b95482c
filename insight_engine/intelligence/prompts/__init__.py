"""
AI Prompts for insight actions.

This module contains prompt templates for:
- Anomaly action: diagnosing a batch of anomalous orders
- Clustering action: acting on customer segments
"""

from insight_engine.intelligence.prompts.anomaly_action import (
    ANOMALY_ACTION_PROMPT,
    build_anomaly_action_prompt,
    format_feature_definitions,
    format_numeric_features,
    format_suspicious_patterns,
    format_top_patterns,
)
from insight_engine.intelligence.prompts.clustering_action import (
    CLUSTERING_ACTION_PROMPT,
    build_clustering_action_prompt,
    format_clusters,
    format_rfm_stats,
    format_samples,
)

__all__ = [
    "ANOMALY_ACTION_PROMPT",
    "CLUSTERING_ACTION_PROMPT",
    "build_anomaly_action_prompt",
    "build_clustering_action_prompt",
    "format_clusters",
    "format_feature_definitions",
    "format_numeric_features",
    "format_rfm_stats",
    "format_samples",
    "format_suspicious_patterns",
    "format_top_patterns",
]

"""
Insight strategy for customer clustering output.
"""

import logging
from dataclasses import replace
from typing import Optional

from insight_engine.core.config import AnalysisConfig
from insight_engine.insights.aggregator import aggregate_clusters
from insight_engine.insights.context_builder import build_insight_context
from insight_engine.insights.models import (
    AggregatedFeatures,
    AlgorithmType,
    ClusteringAnalysisResult,
    InsightContext,
)
from insight_engine.insights.segment_labeler import apply_labels
from insight_engine.intelligence.prompts.clustering_action import build_clustering_action_prompt
from insight_engine.intelligence.strategies.base import ActionStrategy
from insight_engine.storage.query_executor import QueryExecutor

logger = logging.getLogger(__name__)


class ClusteringActionStrategy(ActionStrategy):
    """context -> labeled cluster digest with samples -> segment prompt."""

    algorithm_type = AlgorithmType.CLUSTERING

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    async def build_context(
        self,
        executor: QueryExecutor,
        table_name: str,
        analysis_result: ClusteringAnalysisResult,
    ) -> InsightContext:
        context = await build_insight_context(
            executor,
            table_name,
            algorithm_type=AlgorithmType.CLUSTERING,
            business_domain=self.config.business_domain,
        )
        logger.info(
            f"Clustering context for {table_name}: {analysis_result.total_customers} customers, "
            f"{len(analysis_result.clusters)} clusters"
        )
        return context

    async def aggregate_data(
        self,
        executor: QueryExecutor,
        table_name: str,
        analysis_result: ClusteringAnalysisResult,
        context: InsightContext,
    ) -> AggregatedFeatures:
        # Unlabeled clusters get their RFM archetype before digesting
        if any(c.label is None for c in analysis_result.clusters):
            analysis_result = replace(analysis_result, clusters=apply_labels(analysis_result.clusters))

        return aggregate_clusters(analysis_result, sample_size=self.config.cluster_sample_size)

    def build_prompt(self, context: InsightContext, aggregated: AggregatedFeatures) -> str:
        prompt = build_clustering_action_prompt(context, aggregated)
        logger.debug(f"Clustering prompt built ({len(prompt)} chars)")
        return prompt

"""
Insight strategy for anomaly detection output.
"""

import logging
from typing import Optional

from insight_engine.core.config import AnalysisConfig
from insight_engine.insights.aggregator import aggregate_anomalies
from insight_engine.insights.context_builder import build_insight_context
from insight_engine.insights.models import (
    AggregatedFeatures,
    AlgorithmType,
    AnomalyAnalysisResult,
    InsightContext,
)
from insight_engine.intelligence.prompts.anomaly_action import build_anomaly_action_prompt
from insight_engine.intelligence.strategies.base import ActionStrategy
from insight_engine.storage.query_executor import QueryExecutor

logger = logging.getLogger(__name__)


class AnomalyActionStrategy(ActionStrategy):
    """context -> anomaly digest with global baseline -> few-shot prompt."""

    algorithm_type = AlgorithmType.ANOMALY

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    async def build_context(
        self,
        executor: QueryExecutor,
        table_name: str,
        analysis_result: AnomalyAnalysisResult,
    ) -> InsightContext:
        context = await build_insight_context(
            executor,
            table_name,
            algorithm_type=AlgorithmType.ANOMALY,
            business_domain=self.config.business_domain,
        )
        logger.info(
            f"Anomaly context for {table_name}: {context.table_metadata.column_count} columns, "
            f"{len(context.feature_definitions)} features"
        )
        return context

    async def aggregate_data(
        self,
        executor: QueryExecutor,
        table_name: str,
        analysis_result: AnomalyAnalysisResult,
        context: InsightContext,
    ) -> AggregatedFeatures:
        logger.info(
            f"Aggregating {len(analysis_result.anomalies)} anomalies "
            f"(threshold {analysis_result.threshold})"
        )
        return await aggregate_anomalies(
            executor,
            table_name,
            analysis_result.anomalies,
            context,
            max_analysis_size=self.config.max_anomalies_for_analysis,
        )

    def build_prompt(self, context: InsightContext, aggregated: AggregatedFeatures) -> str:
        prompt = build_anomaly_action_prompt(context, aggregated)
        logger.debug(f"Anomaly prompt built ({len(prompt)} chars)")
        return prompt

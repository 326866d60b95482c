"""
Base class for algorithm-specific insight strategies.

Each algorithm (anomaly, clustering, ...) turns its analysis output into an
LLM prompt in three stages: build_context -> aggregate_data -> build_prompt.
"""

from abc import ABC, abstractmethod
from typing import Any

from insight_engine.insights.models import AggregatedFeatures, AlgorithmType, InsightContext
from insight_engine.storage.query_executor import QueryExecutor


class ActionStrategy(ABC):
    """Three-stage prompt pipeline for one analysis algorithm."""

    algorithm_type: AlgorithmType

    @abstractmethod
    async def build_context(
        self,
        executor: QueryExecutor,
        table_name: str,
        analysis_result: Any,
    ) -> InsightContext:
        """Semantic context (table metadata, feature meanings) for the analyzed table."""

    @abstractmethod
    async def aggregate_data(
        self,
        executor: QueryExecutor,
        table_name: str,
        analysis_result: Any,
        context: InsightContext,
    ) -> AggregatedFeatures:
        """Compress the analysis output into a digest small enough for a prompt."""

    @abstractmethod
    def build_prompt(self, context: InsightContext, aggregated: AggregatedFeatures) -> str:
        """Render the LLM prompt."""

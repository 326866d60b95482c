"""
Strategy factory for algorithm-specific insight strategies.
"""

from typing import Optional, Union

from insight_engine.core.config import AnalysisConfig
from insight_engine.insights.models import AlgorithmType
from insight_engine.intelligence.strategies.anomaly import AnomalyActionStrategy
from insight_engine.intelligence.strategies.base import ActionStrategy
from insight_engine.intelligence.strategies.clustering import ClusteringActionStrategy


class StrategyNotImplementedError(NotImplementedError):
    """Raised for algorithm types that have no strategy yet."""
    pass


def get_strategy(
    algorithm_type: Union[AlgorithmType, str],
    config: Optional[AnalysisConfig] = None,
) -> ActionStrategy:
    """
    Get the strategy for an algorithm type.

    Raises:
        StrategyNotImplementedError: for known algorithms without a strategy
        ValueError: for unknown algorithm types
    """
    try:
        algorithm_type = AlgorithmType(algorithm_type)
    except ValueError:
        raise ValueError(f"Unknown algorithm type: {algorithm_type!r}") from None

    if algorithm_type == AlgorithmType.ANOMALY:
        return AnomalyActionStrategy(config)
    if algorithm_type == AlgorithmType.CLUSTERING:
        return ClusteringActionStrategy(config)
    if algorithm_type == AlgorithmType.REGRESSION:
        raise StrategyNotImplementedError(
            "Regression strategy is not implemented yet. "
            "Implement RegressionActionStrategy in "
            "insight_engine/intelligence/strategies/regression.py"
        )

    raise ValueError(f"Unknown algorithm type: {algorithm_type!r}")


__all__ = [
    "ActionStrategy",
    "AnomalyActionStrategy",
    "ClusteringActionStrategy",
    "StrategyNotImplementedError",
    "get_strategy",
]

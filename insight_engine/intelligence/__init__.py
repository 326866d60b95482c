"""
Intelligence - LLM-backed diagnosis of analysis results.

This module provides:
- get_strategy: algorithm-specific context / aggregation / prompt pipelines
- LLMClient: async OpenAI chat client
- InsightActionService: runs a strategy, calls the LLM and parses the answer
- parse_insight_response: tolerant parser for the LLM's JSON answer
"""

from insight_engine.intelligence.action_service import (
    InsightActionOutput,
    InsightActionService,
    InsightGenerationError,
    InsightRecommendation,
    parse_insight_response,
)
from insight_engine.intelligence.llm_client import LLMClient, LLMConfigurationError
from insight_engine.intelligence.strategies import (
    ActionStrategy,
    StrategyNotImplementedError,
    get_strategy,
)

__all__ = [
    "ActionStrategy",
    "InsightActionOutput",
    "InsightActionService",
    "InsightGenerationError",
    "InsightRecommendation",
    "LLMClient",
    "LLMConfigurationError",
    "StrategyNotImplementedError",
    "get_strategy",
    "parse_insight_response",
]

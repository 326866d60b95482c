"""
Insight Action Service - turns analysis results into LLM-written diagnoses
and recommendations.

Pipeline per request:
1. Pick the strategy for the algorithm type
2. Build the table context
3. Aggregate the analysis output
4. Build the prompt and call the LLM
5. Parse the response (never raises; degrades to a low-confidence answer)
"""

import json
import logging
import re
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from insight_engine.core.config import AnalysisConfig
from insight_engine.insights.models import AlgorithmType
from insight_engine.intelligence.llm_client import LLMClient
from insight_engine.intelligence.strategies import ActionStrategy, get_strategy
from insight_engine.storage.query_executor import QueryExecutor

logger = logging.getLogger(__name__)

RE_JSON_FENCE = re.compile(r"```json\s*([\s\S]*?)\s*```")
RE_ANY_FENCE = re.compile(r"```\s*([\s\S]*?)\s*```")
RE_BARE_OBJECT = re.compile(r"\{[\s\S]*\}")


class InsightGenerationError(Exception):
    """Raised when an insight cannot be generated (context, aggregation or LLM failure)."""
    pass


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class InsightRecommendation(BaseModel):
    """One recommended action."""
    model_config = ConfigDict(populate_by_name=True)

    action: str = Field(..., min_length=1)
    priority: Priority
    reason: str = Field(..., min_length=1)
    estimated_impact: Optional[str] = Field(default=None, alias="estimatedImpact")

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v


class InsightActionOutput(BaseModel):
    """Structured LLM decision output."""
    model_config = ConfigDict(populate_by_name=True)

    diagnosis: str = Field(..., min_length=1)
    key_patterns: List[str] = Field(default_factory=list, alias="keyPatterns")
    recommendations: List[InsightRecommendation] = Field(..., min_length=1)
    confidence: Priority = Priority.MEDIUM
    raw_response: str = ""
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @field_validator("recommendations", mode="before")
    @classmethod
    def wrap_single_recommendation(cls, v):
        """A single recommendation object becomes a one-element list."""
        if isinstance(v, dict):
            return [v]
        return v

    @field_validator("confidence", mode="before")
    @classmethod
    def normalize_confidence(cls, v):
        if v is None or v == "":
            return Priority.MEDIUM
        return confidence_level(v)


def confidence_level(value: Union[str, float, int]) -> str:
    """Map a numeric score (0-1) or a label to low / medium / high."""
    if isinstance(value, bool):
        return Priority.MEDIUM.value
    if isinstance(value, str):
        label = value.strip().lower()
        if label in {p.value for p in Priority}:
            return label
        try:
            value = float(label.rstrip("%")) / (100 if label.endswith("%") else 1)
        except ValueError:
            return Priority.MEDIUM.value
    if not isinstance(value, (int, float)):
        return Priority.MEDIUM.value
    if value >= 0.8:
        return Priority.HIGH.value
    if value >= 0.5:
        return Priority.MEDIUM.value
    return Priority.LOW.value


def extract_json(text: str) -> Any:
    """
    Pull the JSON object out of an LLM response.

    Looks for a ```json fence, then any ``` fence, then the first-to-last
    brace span.

    Raises:
        ValueError: if no JSON candidate is found or it does not parse
    """
    match = RE_JSON_FENCE.search(text) or RE_ANY_FENCE.search(text)
    if match:
        candidate = match.group(1)
    else:
        match = RE_BARE_OBJECT.search(text)
        if not match:
            raise ValueError("No JSON found in LLM response")
        candidate = match.group(0)
    return json.loads(candidate)


def fallback_output(raw_response: str, error: str) -> InsightActionOutput:
    """The fixed low-confidence answer used whenever a response cannot be parsed."""
    return InsightActionOutput(
        diagnosis=(
            "Analysis failed: the LLM response could not be parsed. "
            "It may not follow the expected JSON structure."
        ),
        key_patterns=[],
        recommendations=[
            InsightRecommendation(
                action="Check the data quality or run the analysis again",
                priority=Priority.LOW,
                reason=f"Response format error: {error}",
            )
        ],
        confidence=Priority.LOW,
        raw_response=raw_response,
    )


def parse_insight_response(response: str) -> InsightActionOutput:
    """
    Parse and validate an LLM response.

    Never raises: any extraction or validation problem yields the
    low-confidence fallback with the raw response preserved.
    """
    try:
        parsed = extract_json(response)
        if not isinstance(parsed, dict):
            raise ValueError("LLM response JSON is not an object")
        for required in ("diagnosis", "recommendations"):
            if not parsed.get(required):
                raise ValueError(f"Missing required field: {required}")

        output = InsightActionOutput.model_validate({**parsed, "raw_response": response})
    except (ValueError, ValidationError, RecursionError) as e:
        logger.error(f"Failed to parse LLM response: {e}")
        logger.debug(f"Response preview: {response[:500]}")
        return fallback_output(response, str(e))

    logger.info(
        f"Response parsed: {len(output.key_patterns)} patterns, "
        f"{len(output.recommendations)} recommendations, confidence {output.confidence.value}"
    )
    return output


class InsightActionService:
    """
    Generates actionable insights for analysis results.

    Usage:
        service = InsightActionService(executor, LLMClient(settings.llm))
        output = await service.generate_insight(AlgorithmType.ANOMALY, "orders", result)
        print(output.diagnosis)
    """

    def __init__(
        self,
        executor: QueryExecutor,
        llm_client: LLMClient,
        config: Optional[AnalysisConfig] = None,
    ):
        self.executor = executor
        self.llm_client = llm_client
        self.config = config or AnalysisConfig()

    async def build_prompt(
        self,
        algorithm_type: Union[AlgorithmType, str],
        table_name: str,
        analysis_result: Any,
    ) -> str:
        """Run the strategy pipeline up to the prompt, without calling the LLM."""
        strategy = get_strategy(algorithm_type, self.config)
        return await self._run_pipeline(strategy, table_name, analysis_result)

    async def _run_pipeline(self, strategy: ActionStrategy, table_name: str, analysis_result: Any) -> str:
        context = await strategy.build_context(self.executor, table_name, analysis_result)
        aggregated = await strategy.aggregate_data(
            self.executor, table_name, analysis_result, context
        )
        return strategy.build_prompt(context, aggregated)

    async def generate_insight(
        self,
        algorithm_type: Union[AlgorithmType, str],
        table_name: str,
        analysis_result: Any,
    ) -> InsightActionOutput:
        """
        Generate a diagnosis and recommendations.

        Raises:
            StrategyNotImplementedError / ValueError: for unsupported algorithm types
            InsightGenerationError: if context building, aggregation or the LLM call fails
        """
        strategy = get_strategy(algorithm_type, self.config)
        start = time.perf_counter()
        logger.info(f"Generating {strategy.algorithm_type.value} insight for {table_name}")

        try:
            prompt = await self._run_pipeline(strategy, table_name, analysis_result)
            response = await self.llm_client.chat_completion(prompt)
        except Exception as e:
            elapsed = (time.perf_counter() - start) * 1000
            logger.error(f"Insight generation failed after {elapsed:.0f}ms: {e}")
            raise InsightGenerationError(f"Insight generation failed: {e}") from e

        if not response:
            raise InsightGenerationError("Empty response from LLM")

        output = parse_insight_response(response)
        elapsed = (time.perf_counter() - start) * 1000
        logger.info(f"Insight generated in {elapsed:.0f}ms")
        return output

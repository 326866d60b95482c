"""
Insight Orchestrator - builds the per-table insight configuration and the
chart data derived from it (global summary, distributions, categorical
breakdowns), passing every result through the result cache.
"""

import logging
import re
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from insight_engine.core.config import Settings, get_settings
from insight_engine.insights.binning import AdaptiveBinner
from insight_engine.insights.cache import ResultCache
from insight_engine.insights.models import (
    BasicType,
    CategoricalBreakdown,
    CategoricalResult,
    CategoricalValue,
    ColumnProfile,
    ColumnStatistics,
    DistributionSeries,
    InsightConfig,
    MultiLineChartData,
    SemanticType,
    SummaryResult,
)
from insight_engine.insights.schema_inferencer import SchemaInferencer
from insight_engine.storage.query_executor import QueryExecutor
from insight_engine.storage.sql import quote_identifier, quote_literal, sample_clause

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Names that look like flags, phone numbers, statuses, types, payment
# methods or order numbers never appear in the global summary.
SUMMARY_EXCLUDE_PATTERNS = [
    re.compile(r"^is[A-Z]"),
    re.compile(r"^is_", re.IGNORECASE),
    re.compile(r"(^|_)no($|_)", re.IGNORECASE),
    re.compile(r"number", re.IGNORECASE),
    re.compile(r"phone|mobile|contact", re.IGNORECASE),
    re.compile(r"status", re.IGNORECASE),
    re.compile(r"type", re.IGNORECASE),
    re.compile(r"method", re.IGNORECASE),
    re.compile(r"是否|电话|手机|联系|状态|方式|类型|支付|单号"),
]


def cache_key(table_name: str, kind: str, data_version: Optional[str] = None) -> str:
    """
    Cache key for a derived result, e.g. ``"orders:summary"``.

    ``data_version`` identifies the loaded data (see ``cli.data_fingerprint``)
    and keeps results of a reloaded or edited table apart.
    """
    if data_version:
        return f"{table_name}:{data_version}:{kind}"
    return f"{table_name}:{kind}"


class InsightOrchestrator:
    """
    Builds insight configurations and chart data for a table.

    Usage:
        orchestrator = InsightOrchestrator(
            SchemaInferencer(), AdaptiveBinner(), ResultCache(InMemoryKeyValueStore())
        )
        config = await orchestrator.build_config("orders", executor)
        if config:
            charts = await orchestrator.generate_distributions(config, executor)
    """

    def __init__(
        self,
        inferencer: SchemaInferencer,
        binner: AdaptiveBinner,
        cache: Optional[ResultCache] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            inferencer: Column profiler
            binner: Histogram strategy selector
            cache: Result cache. None disables caching.
            settings: Thresholds and limits. None = get_settings().
        """
        self.inferencer = inferencer
        self.binner = binner
        self.cache = cache
        self.settings = settings or get_settings()

    # =========================================================================
    # Configuration
    # =========================================================================

    async def build_config(self, table_name: str, executor: QueryExecutor) -> Optional[InsightConfig]:
        """
        Profile a table and decide what can be charted.

        Returns:
            InsightConfig, or None when the table has no amount, status or
            category column worth charting.
        """
        analysis = self.settings.analysis
        columns = await self.inferencer.infer_columns(table_name, executor)

        if not columns:
            logger.warning(f"No valid columns found in {table_name}, skipping insights")
            return None

        result = await executor.execute(
            f"SELECT COUNT(*) AS total FROM {quote_identifier(table_name)}"
        )
        row_count = int(result.first().get("total") or 0)

        numeric = [c for c in columns if c.basic_type == BasicType.NUMERIC]
        amount_columns = [c for c in numeric if c.semantic_type == SemanticType.AMOUNT]
        sorted_numeric = self.inferencer.sort_columns_by_importance(amount_columns)
        status_columns = [c for c in columns if c.semantic_type == SemanticType.STATUS]
        category_columns = [c for c in columns if c.semantic_type == SemanticType.CATEGORY]

        if not (sorted_numeric or status_columns or category_columns):
            logger.warning(
                f"No amount/status/category columns found in {table_name}, skipping insights"
            )
            return None

        logger.info(
            f"Valid insight columns for {table_name}: {len(sorted_numeric)} amount, "
            f"{len(status_columns)} status, {len(category_columns)} category"
        )

        return InsightConfig(
            table_name=table_name,
            columns=columns,
            row_count=row_count,
            sampling_enabled=row_count > analysis.sampling_threshold,
            sampling_rate=analysis.sampling_rate,
            numeric_columns=sorted_numeric,
            categorical_columns=[c for c in columns if c.basic_type == BasicType.CATEGORICAL],
            datetime_columns=[c for c in columns if c.basic_type == BasicType.DATETIME],
            status_columns=status_columns,
            category_columns=category_columns,
        )

    # =========================================================================
    # Chart data
    # =========================================================================

    def transform_summary_result(self, columns: Sequence[ColumnProfile]) -> SummaryResult:
        """Keep only money-like columns for the global summary."""
        filtered = [
            col for col in columns
            if col.semantic_type == SemanticType.AMOUNT
            and col.basic_type in (BasicType.NUMERIC, BasicType.CATEGORICAL)
            and not any(p.search(col.name) for p in SUMMARY_EXCLUDE_PATTERNS)
        ]
        logger.info(f"Global summary filtered: {len(filtered)}/{len(columns)} columns")
        return SummaryResult(columns=filtered)

    async def generate_distributions(
        self,
        config: InsightConfig,
        executor: QueryExecutor,
    ) -> MultiLineChartData:
        """
        Histogram per top numeric column, sharing the first series' x-axis.

        A column whose query fails is logged and left out.
        """
        top_columns = config.numeric_columns[: self.settings.analysis.max_distribution_columns]
        if not top_columns:
            logger.info(f"No numeric columns found for distribution in {config.table_name}")
            return MultiLineChartData()

        sampling = sample_clause(config.sampling_enabled, config.sampling_rate)
        all_bins: List[List[float]] = []
        series: List[DistributionSeries] = []

        for column in top_columns:
            stats = self._column_statistics(column, config.row_count)
            if stats is None:
                logger.warning(f"Skipping distribution for {column.name}: no min/max statistics")
                continue

            sql = self.binner.build_query(config.table_name, column.name, stats, sampling)
            try:
                result = await executor.execute(sql)
            except Exception as e:
                logger.error(f"Failed to generate distribution for {column.name}: {e}")
                continue

            bins = sorted(
                (float(row["bin"]), int(row["count"]))
                for row in result.rows
                if row.get("bin") is not None
            )
            if not bins:
                continue

            all_bins.append([b for b, _ in bins])
            series.append(DistributionSeries(column_name=column.name, data=[c for _, c in bins]))

        logger.info(f"Generated {len(series)} distributions for {config.table_name}")
        return MultiLineChartData(x_axis=all_bins[0] if all_bins else [], series=series)

    def _column_statistics(self, column: ColumnProfile, row_count: int) -> Optional[ColumnStatistics]:
        if column.min is None or column.max is None:
            return None
        spread = column.max - column.min
        q1 = column.p25 if column.p25 is not None else column.min + 0.25 * spread
        q3 = column.p75 if column.p75 is not None else column.min + 0.75 * spread
        return ColumnStatistics(min=column.min, max=column.max, q1=q1, q3=q3, row_count=row_count)

    async def generate_categorical(
        self,
        config: InsightConfig,
        executor: QueryExecutor,
    ) -> CategoricalBreakdown:
        """
        Top values of every status and category column.

        One UNION ALL query per group; a failing group is logged and left empty.
        """
        analysis = self.settings.analysis
        breakdown = CategoricalBreakdown()

        if config.status_columns:
            breakdown.status = await self._run_categorical_batch(
                "status", config, config.status_columns, analysis.top_n_status, executor
            )
        if config.category_columns:
            breakdown.category = await self._run_categorical_batch(
                "category", config, config.category_columns, analysis.top_n_categorical, executor
            )

        logger.info(
            f"Generated {len(breakdown.status)} status + "
            f"{len(breakdown.category)} category results"
        )
        return breakdown

    def build_categorical_query(
        self,
        config: InsightConfig,
        columns: Sequence[ColumnProfile],
        limit: int,
    ) -> str:
        """Top-N value counts for several columns in one UNION ALL query."""
        if config.sampling_enabled:
            cte = (
                f"WITH sampled_data AS (SELECT * FROM {quote_identifier(config.table_name)} "
                f"{sample_clause(True, config.sampling_rate)})\n"
            )
            source = "sampled_data"
        else:
            cte = ""
            source = quote_identifier(config.table_name)

        parts = []
        for column in columns:
            col = quote_identifier(column.name)
            parts.append(
                f"(SELECT {quote_literal(column.name)} AS column_name, "
                f"CAST({col} AS VARCHAR) AS value, COUNT(*) AS count "
                f"FROM {source} WHERE {col} IS NOT NULL "
                f"GROUP BY {col} ORDER BY count DESC LIMIT {int(limit)})"
            )
        return cte + "\nUNION ALL\n".join(parts)

    async def _run_categorical_batch(
        self,
        label: str,
        config: InsightConfig,
        columns: Sequence[ColumnProfile],
        limit: int,
        executor: QueryExecutor,
    ) -> List[CategoricalResult]:
        sql = self.build_categorical_query(config, columns, limit)
        try:
            result = await executor.execute(sql)
        except Exception as e:
            logger.error(f"Failed to generate batched {label} breakdown: {e}")
            return []

        grouped: Dict[str, List[CategoricalValue]] = defaultdict(list)
        for row in result.rows:
            grouped[row["column_name"]].append(
                CategoricalValue(value=str(row["value"]), count=int(row["count"]))
            )

        return [
            CategoricalResult(
                column_name=column.name,
                values=sorted(grouped.get(column.name, []), key=lambda v: v.count, reverse=True),
            )
            for column in columns
        ]

    # =========================================================================
    # Cached entry points
    # =========================================================================

    async def get_summary(
        self, table_name: str, executor: QueryExecutor, data_version: Optional[str] = None
    ) -> SummaryResult:
        """Global summary for a table, served from cache when possible."""
        async def compute() -> Dict[str, Any]:
            config = await self.build_config(table_name, executor)
            columns = config.columns if config else []
            return self.transform_summary_result(columns).to_dict()

        data = await self._cached_call(cache_key(table_name, "summary", data_version), compute)
        return SummaryResult.from_dict(data)

    async def get_distributions(
        self, table_name: str, executor: QueryExecutor, data_version: Optional[str] = None
    ) -> MultiLineChartData:
        """Distribution chart data for a table, served from cache when possible."""
        async def compute() -> Dict[str, Any]:
            config = await self.build_config(table_name, executor)
            if config is None:
                return MultiLineChartData().to_dict()
            return (await self.generate_distributions(config, executor)).to_dict()

        data = await self._cached_call(cache_key(table_name, "distribution", data_version), compute)
        return MultiLineChartData.from_dict(data)

    async def get_categorical(
        self, table_name: str, executor: QueryExecutor, data_version: Optional[str] = None
    ) -> CategoricalBreakdown:
        """Categorical breakdowns for a table, served from cache when possible."""
        async def compute() -> Dict[str, Any]:
            config = await self.build_config(table_name, executor)
            if config is None:
                return CategoricalBreakdown().to_dict()
            return (await self.generate_categorical(config, executor)).to_dict()

        data = await self._cached_call(cache_key(table_name, "categorical", data_version), compute)
        return CategoricalBreakdown.from_dict(data)

    async def _cached_call(self, key: str, compute: Callable[[], Awaitable[T]]) -> T:
        """Read-through cache; cache failures degrade to recomputation."""
        if self.cache is not None:
            cached = await self.cache.get(key)
            if cached is not None:
                logger.info(f"Serving {key} from cache")
                return cached

        value = await compute()

        if self.cache is not None:
            try:
                await self.cache.set(key, value)
            except Exception as e:
                logger.warning(f"Could not cache {key}, continuing without cache: {e}")
        return value

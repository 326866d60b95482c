"""
Adaptive histogram binning.

Picks a binning strategy from a column's distribution and returns the SQL
expression that maps each value to its bin. Nothing here executes SQL.
"""

import logging
import math

from insight_engine.insights.models import BinningResult, BinningStrategyType, ColumnStatistics
from insight_engine.storage.sql import quote_identifier, quote_literal

logger = logging.getLogger(__name__)


class AdaptiveBinner:
    """
    Chooses between logarithmic, clipped and linear binning.

    - logarithmic: max/min spans more than four orders of magnitude
    - clipped: long right tail (max beyond twice the Tukey upper fence)
    - linear: everything else

    Usage:
        binner = AdaptiveBinner()
        result = binner.select_strategy(stats, "order_amount")
        sql = binner.build_query("orders", "order_amount", stats)
    """

    WIDE_RANGE_THRESHOLD = 10_000
    OUTLIER_MULTIPLIER = 2
    FENCE_IQR_MULTIPLIER = 1.5
    FALLBACK_BIN_WIDTH = 10

    def select_strategy(self, stats: ColumnStatistics, column_name: str = "value") -> BinningResult:
        """
        Select the binning strategy for one numeric column.

        Args:
            stats: min/max/quartiles/row count of the column
            column_name: Column the expression should reference

        Returns:
            BinningResult with strategy, bin expression and width/fence
        """
        col = quote_identifier(column_name)
        iqr = stats.q3 - stats.q1
        upper_fence = stats.q3 + self.FENCE_IQR_MULTIPLIER * iqr
        dynamic_range = stats.max / max(stats.min, 1)

        if dynamic_range > self.WIDE_RANGE_THRESHOLD:
            logger.info(
                f"{column_name}: LOGARITHMIC (range: {stats.min:.2f} - {stats.max:.2f})"
            )
            return BinningResult(
                strategy=BinningStrategyType.LOGARITHMIC,
                expression=f"pow(10, floor(log10(GREATEST({col}, 1))))",
            )

        bin_width = self.calculate_optimal_bin_width(iqr, stats.row_count)
        width = quote_literal(bin_width)

        if stats.max > upper_fence * self.OUTLIER_MULTIPLIER:
            fence = quote_literal(upper_fence)
            logger.info(f"{column_name}: CLIPPED (fence: {upper_fence:.2f}, bin width: {bin_width})")
            return BinningResult(
                strategy=BinningStrategyType.CLIPPED,
                expression=(
                    f"CASE WHEN {col} > {fence} THEN {fence} "
                    f"ELSE floor({col} / {width}) * {width} END"
                ),
                bin_width=bin_width,
                upper_fence=upper_fence,
            )

        logger.info(f"{column_name}: LINEAR (bin width: {bin_width})")
        return BinningResult(
            strategy=BinningStrategyType.LINEAR,
            expression=f"floor({col} / {width}) * {width}",
            bin_width=bin_width,
        )

    def calculate_optimal_bin_width(self, iqr: float, row_count: int) -> float:
        """
        Freedman-Diaconis bin width snapped up to a 2/5/10 step.

        Returns the fallback width when the IQR or the row count is zero.
        """
        if iqr <= 0 or row_count <= 0:
            return self.FALLBACK_BIN_WIDTH

        width = 2 * iqr / row_count ** (1 / 3)
        magnitude = 10 ** math.floor(math.log10(width))
        normalized = width / magnitude

        if normalized <= 2:
            return magnitude * 2
        if normalized <= 5:
            return magnitude * 5
        return magnitude * 10

    def build_query(
        self,
        table_name: str,
        column_name: str,
        stats: ColumnStatistics,
        sampling_clause: str = "",
    ) -> str:
        """Histogram query (bin, count) for one column, optionally over a sample."""
        binning = self.select_strategy(stats, column_name)
        table = quote_identifier(table_name)
        source = (
            f"(SELECT * FROM {table} {sampling_clause}) AS sampled_data"
            if sampling_clause
            else table
        )
        return (
            f"SELECT {binning.expression} AS bin, COUNT(*) AS count "
            f"FROM {source} "
            f"WHERE {quote_identifier(column_name)} IS NOT NULL "
            f"GROUP BY 1 ORDER BY 1"
        )

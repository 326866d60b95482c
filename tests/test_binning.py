"""
Unit tests for adaptive histogram binning.
"""

import pytest

from insight_engine.insights.binning import AdaptiveBinner
from insight_engine.insights.models import BinningStrategyType, ColumnStatistics


@pytest.fixture
def binner():
    return AdaptiveBinner()


class TestSelectStrategy:
    """Test strategy selection."""

    def test_wide_range_is_logarithmic(self, binner):
        """max/min above 10,000 selects logarithmic bins."""
        stats = ColumnStatistics(min=1, max=50_000, q1=10, q3=500, row_count=1000)

        result = binner.select_strategy(stats, "order_amount")

        assert result.strategy == BinningStrategyType.LOGARITHMIC
        assert result.expression == 'pow(10, floor(log10(GREATEST("order_amount", 1))))'
        assert result.bin_width is None

    def test_zero_min_uses_one_as_denominator(self, binner):
        """A zero minimum does not divide by zero."""
        stats = ColumnStatistics(min=0, max=20_000, q1=10, q3=500, row_count=1000)
        assert binner.select_strategy(stats).strategy == BinningStrategyType.LOGARITHMIC

    def test_long_tail_is_clipped(self, binner):
        """A max beyond twice the upper fence selects clipped bins."""
        stats = ColumnStatistics(min=0, max=1000, q1=10, q3=20, row_count=1000)

        result = binner.select_strategy(stats, "price")

        assert result.strategy == BinningStrategyType.CLIPPED
        assert result.upper_fence == pytest.approx(35.0)
        assert result.expression.startswith('CASE WHEN "price" > 35.0 THEN 35.0')
        assert result.bin_width is not None

    def test_compact_distribution_is_linear(self, binner):
        """An IQR of 50 over 1000 rows gets 20-wide linear bins."""
        stats = ColumnStatistics(min=0, max=100, q1=25, q3=75, row_count=1000)

        result = binner.select_strategy(stats, "value")

        assert result.strategy == BinningStrategyType.LINEAR
        assert result.bin_width == 20
        assert result.expression == 'floor("value" / 20) * 20'

    def test_column_name_is_quoted(self, binner):
        """Names with quotes are escaped in the expression."""
        stats = ColumnStatistics(min=0, max=100, q1=25, q3=75, row_count=1000)
        result = binner.select_strategy(stats, 'odd"name')
        assert '"odd""name"' in result.expression


class TestBinWidth:
    """Test Freedman-Diaconis width calculation."""

    def test_fallback_on_zero_iqr(self, binner):
        """Zero IQR falls back to width 10."""
        assert binner.calculate_optimal_bin_width(0, 100) == 10

    def test_fallback_on_zero_rows(self, binner):
        """Zero rows falls back to width 10."""
        assert binner.calculate_optimal_bin_width(10, 0) == 10

    @pytest.mark.parametrize("iqr,rows,expected", [
        (50, 1000, 20),    # raw width 10 -> snapped to 2 x 10
        (150, 1000, 50),   # raw width 30 -> snapped to 5 x 10
        (400, 1000, 100),  # raw width 80 -> snapped to 10 x 10
        (2, 1000, 0.5),    # raw width 0.4 -> snapped to 5 x 0.1
    ])
    def test_snaps_to_nice_steps(self, binner, iqr, rows, expected):
        """Widths snap up to a 2/5/10 multiple of a power of ten."""
        assert binner.calculate_optimal_bin_width(iqr, rows) == pytest.approx(expected)


class TestBuildQuery:
    """Test histogram query text."""

    def test_plain_query(self, binner):
        """Without sampling the table is queried directly."""
        stats = ColumnStatistics(min=0, max=100, q1=25, q3=75, row_count=1000)

        sql = binner.build_query("orders", "value", stats)

        assert 'FROM "orders"' in sql
        assert 'WHERE "value" IS NOT NULL' in sql
        assert sql.endswith("GROUP BY 1 ORDER BY 1")

    def test_sampled_query(self, binner):
        """With sampling the table is wrapped in a sampled subquery."""
        stats = ColumnStatistics(min=0, max=100, q1=25, q3=75, row_count=20_000)

        sql = binner.build_query("orders", "value", stats, "USING SAMPLE 75% (bernoulli)")

        assert '(SELECT * FROM "orders" USING SAMPLE 75% (bernoulli)) AS sampled_data' in sql

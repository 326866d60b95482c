"""
Tests for the insight orchestrator: configuration, chart data and caching.
"""

import asyncio

import pytest

from insight_engine.core.config import AnalysisConfig, Settings
from insight_engine.insights.binning import AdaptiveBinner
from insight_engine.insights.cache import CacheError, ResultCache
from insight_engine.insights.models import BasicType, ColumnProfile, InsightConfig, SemanticType
from insight_engine.insights.orchestrator import InsightOrchestrator, cache_key
from insight_engine.insights.schema_inferencer import SchemaInferencer
from insight_engine.storage.kv_store import InMemoryKeyValueStore
from tests.fakes import CountingExecutor, RecordingExecutor


def make_orchestrator(settings=None, cache=None):
    return InsightOrchestrator(SchemaInferencer(), AdaptiveBinner(), cache, settings or Settings())


def amount_profile(name, basic_type=BasicType.NUMERIC, semantic_type=SemanticType.AMOUNT, **stats):
    return ColumnProfile(
        name=name,
        raw_type="DOUBLE",
        basic_type=basic_type,
        semantic_type=semantic_type,
        cardinality=100,
        null_rate=0.0,
        **stats,
    )


class BrokenCache:
    """Cache that always misses and refuses every write."""

    async def get(self, key):
        return None

    async def set(self, key, data):
        raise CacheError("store full")


class TestBuildConfig:
    """Test insight configuration."""

    def test_orders_table(self, orders_executor):
        """1000 distinct amounts, 5 statuses and a unique user id."""
        config = asyncio.run(make_orchestrator().build_config("orders", orders_executor))

        assert config is not None
        assert config.row_count == 5000
        assert [c.name for c in config.numeric_columns] == ["order_amount"]
        assert [c.name for c in config.status_columns] == ["order_status"]
        assert [c.name for c in config.categorical_columns] == ["order_status"]
        assert config.category_columns == []
        assert config.sampling_enabled is False

    def test_sampling_above_threshold(self, orders_executor):
        """Tables larger than the threshold are sampled."""
        settings = Settings(analysis=AnalysisConfig(sampling_threshold=1000, sampling_rate=0.5))

        config = asyncio.run(make_orchestrator(settings).build_config("orders", orders_executor))

        assert config.sampling_enabled is True
        assert config.sampling_rate == 0.5

    def test_no_usable_columns(self):
        """Tables with only ids and timestamps produce no configuration."""
        executor = RecordingExecutor(responses=[
            ("DESCRIBE", [
                {"column_name": "order_id", "column_type": "BIGINT"},
                {"column_name": "created_date", "column_type": "DATE"},
            ]),
            ("COUNT(*) AS total", [{"total": 10}]),
            ("approx_count_distinct", [{"created_date_card": 10}]),
        ])

        config = asyncio.run(make_orchestrator().build_config("orders", executor))

        assert config is None

    def test_config_round_trips_through_dict(self, orders_executor):
        """Cached configuration data restores to an equal object."""
        config = asyncio.run(make_orchestrator().build_config("orders", orders_executor))

        assert InsightConfig.from_dict(config.to_dict()) == config


class TestSummary:
    """Test global summary filtering."""

    def test_excludes_flags_and_identifiers(self):
        """Only money-like numeric columns survive the name filters."""
        columns = [
            amount_profile("order_amount"),
            amount_profile("tax_rate", basic_type=BasicType.CATEGORICAL),
            amount_profile("notes_total"),
            amount_profile("payment_method"),
            amount_profile("is_refund"),
            amount_profile("isRefund"),
            amount_profile("no_total"),
            amount_profile("total_status"),
            amount_profile("支付金额"),
            amount_profile("raw_amount", basic_type=BasicType.TEXT),
            amount_profile("region", semantic_type=SemanticType.CATEGORY),
        ]

        result = make_orchestrator().transform_summary_result(columns)

        assert [c.name for c in result.columns] == ["order_amount", "tax_rate", "notes_total"]


class TestDistributions:
    """Test histogram generation."""

    def test_real_duckdb(self, orders_executor):
        """Each series counts every non-null row; the x-axis is sorted."""
        orchestrator = make_orchestrator()

        async def run():
            config = await orchestrator.build_config("orders", orders_executor)
            return await orchestrator.generate_distributions(config, orders_executor)

        chart = asyncio.run(run())

        assert [s.column_name for s in chart.series] == ["order_amount"]
        assert sum(chart.series[0].data) == 5000
        assert chart.x_axis == sorted(chart.x_axis)
        assert len(chart.x_axis) == len(chart.series[0].data)

    def test_quartile_fallback(self):
        """Missing quartiles are approximated from min/max."""
        stats = make_orchestrator()._column_statistics(amount_profile("a", min=0.0, max=100.0), 10)
        assert (stats.q1, stats.q3) == (25.0, 75.0)

    def test_missing_min_max_is_skipped(self):
        assert make_orchestrator()._column_statistics(amount_profile("a"), 10) is None

    def test_failing_column_is_left_out(self, orders_executor):
        """A failed histogram query drops only that series."""
        orchestrator = make_orchestrator()
        config = asyncio.run(orchestrator.build_config("orders", orders_executor))
        executor = RecordingExecutor(fail_on=["AS bin"])

        chart = asyncio.run(orchestrator.generate_distributions(config, executor))

        assert chart.series == []
        assert chart.x_axis == []


class TestCategorical:
    """Test categorical breakdowns."""

    def test_real_duckdb(self, orders_executor):
        """Status values come back with exact counts, highest first."""
        orchestrator = make_orchestrator()

        async def run():
            config = await orchestrator.build_config("orders", orders_executor)
            return await orchestrator.generate_categorical(config, orders_executor)

        breakdown = asyncio.run(run())

        assert breakdown.category == []
        assert len(breakdown.status) == 1
        status = breakdown.status[0]
        assert status.column_name == "order_status"
        assert len(status.values) == 5
        assert all(v.count == 1000 for v in status.values)

    def test_sampled_query_runs(self, orders_executor):
        """The sampled UNION ALL query is valid DuckDB SQL."""
        settings = Settings(analysis=AnalysisConfig(sampling_threshold=1000))
        orchestrator = make_orchestrator(settings)

        async def run():
            config = await orchestrator.build_config("orders", orders_executor)
            return config, await orchestrator.generate_categorical(config, orders_executor)

        config, breakdown = asyncio.run(run())

        sql = orchestrator.build_categorical_query(config, config.status_columns, 10)
        assert sql.startswith('WITH sampled_data AS (SELECT * FROM "orders" USING SAMPLE 75% (bernoulli))')
        assert "FROM sampled_data" in sql
        assert 0 < len(breakdown.status[0].values) <= 5

    def test_union_of_columns(self):
        """Several columns share one query joined by UNION ALL."""
        orchestrator = make_orchestrator()
        config = asyncio.run(orchestrator.build_config("t", RecordingExecutor(responses=[
            ("DESCRIBE", [
                {"column_name": "region", "column_type": "VARCHAR"},
                {"column_name": "channel", "column_type": "VARCHAR"},
            ]),
            ("COUNT(*) AS total", [{"total": 100}]),
            ("approx_count_distinct", [{"region_card": 4, "channel_card": 3}]),
        ])))

        sql = orchestrator.build_categorical_query(config, config.category_columns, 20)

        assert sql.count("UNION ALL") == 1
        assert "'region' AS column_name" in sql
        assert 'CAST("channel" AS VARCHAR) AS value' in sql
        assert "LIMIT 20" in sql

    def test_failing_group_is_empty(self, orders_executor):
        """A failed group query yields an empty list for that group."""
        orchestrator = make_orchestrator()
        config = asyncio.run(orchestrator.build_config("orders", orders_executor))

        breakdown = asyncio.run(orchestrator.generate_categorical(
            config, RecordingExecutor(fail_on=["UNION ALL", "column_name"])
        ))

        assert breakdown.status == []


class TestCaching:
    """Test the cached entry points."""

    def test_second_call_is_served_from_cache(self, orders_executor):
        """A repeated request runs no queries."""
        executor = CountingExecutor(orders_executor)
        orchestrator = make_orchestrator(cache=ResultCache(InMemoryKeyValueStore()))

        first = asyncio.run(orchestrator.get_summary("orders", executor))
        queries_after_first = len(executor.queries)
        second = asyncio.run(orchestrator.get_summary("orders", executor))

        assert queries_after_first > 0
        assert len(executor.queries) == queries_after_first
        assert first == second
        assert [c.name for c in second.columns] == ["order_amount"]

    def test_entry_points_use_separate_keys(self, orders_executor):
        """Summary, distribution and categorical results are cached independently."""
        store = InMemoryKeyValueStore()
        orchestrator = make_orchestrator(cache=ResultCache(store))

        async def run():
            await orchestrator.get_summary("orders", orders_executor)
            await orchestrator.get_distributions("orders", orders_executor)
            await orchestrator.get_categorical("orders", orders_executor)
            return await store.keys()

        keys = asyncio.run(run())

        assert {
            "insight:orders:summary",
            "insight:orders:distribution",
            "insight:orders:categorical",
        } <= set(keys)

    def test_data_version_separates_entries(self, orders_executor):
        """Results cached for one version of the data are not served for another."""
        executor = CountingExecutor(orders_executor)
        orchestrator = make_orchestrator(cache=ResultCache(InMemoryKeyValueStore()))

        asyncio.run(orchestrator.get_summary("orders", executor, "v1"))
        queries_after_first = len(executor.queries)
        asyncio.run(orchestrator.get_summary("orders", executor, "v2"))

        assert len(executor.queries) > queries_after_first
        assert cache_key("orders", "summary") == "orders:summary"
        assert cache_key("orders", "summary", "v2") == "orders:v2:summary"

    def test_cache_write_failure_still_returns(self, orders_executor):
        """Results are returned even when they cannot be cached."""
        orchestrator = make_orchestrator(cache=BrokenCache())

        breakdown = asyncio.run(orchestrator.get_categorical("orders", orders_executor))

        assert breakdown.status[0].column_name == "order_status"

    def test_without_cache(self, orders_executor):
        """No cache means every call computes."""
        chart = asyncio.run(make_orchestrator().get_distributions("orders", orders_executor))
        assert chart.series[0].column_name == "order_amount"

    def test_unusable_table_yields_empty_results(self):
        """Tables without insight columns produce empty chart data."""
        executor = RecordingExecutor(responses=[
            ("DESCRIBE", [{"column_name": "user_id", "column_type": "BIGINT"}]),
        ])
        orchestrator = make_orchestrator()

        summary = asyncio.run(orchestrator.get_summary("t", executor))
        chart = asyncio.run(orchestrator.get_distributions("t", executor))
        breakdown = asyncio.run(orchestrator.get_categorical("t", executor))

        assert summary.columns == []
        assert chart.series == [] and chart.x_axis == []
        assert breakdown.status == [] and breakdown.category == []


@pytest.mark.parametrize("rate,expected", [(0.75, "75%"), (0.1, "10%")])
def test_sample_rate_in_query(orders_executor, rate, expected):
    """The configured sampling rate is rendered as a percentage."""
    settings = Settings(analysis=AnalysisConfig(sampling_threshold=0, sampling_rate=rate))
    orchestrator = make_orchestrator(settings)
    config = asyncio.run(orchestrator.build_config("orders", orders_executor))

    sql = orchestrator.build_categorical_query(config, config.status_columns, 5)

    assert f"USING SAMPLE {expected}" in sql

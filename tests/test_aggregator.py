"""
Unit tests for anomaly and cluster aggregation.
"""

import asyncio

import pytest

from insight_engine.insights.aggregator import (
    aggregate_anomalies,
    aggregate_clusters,
    build_global_average_query,
    sample_cluster_customers,
)
from insight_engine.insights.models import (
    AlgorithmType,
    AnomalyRecord,
    ClusteringAnalysisResult,
    ClusterMetadata,
    CustomerClusterRecord,
    InsightContext,
    TableMetadata,
)
from tests.fakes import RecordingExecutor


def make_context(features):
    return InsightContext(
        algorithm_type=AlgorithmType.ANOMALY,
        table_metadata=TableMetadata(table_name="orders", row_count=1000, column_count=len(features)),
        feature_definitions={f: "feature" for f in features},
    )


def anomaly(idx, score, **features):
    return AnomalyRecord(id=str(idx), score=score, is_abnormal=True, features=features)


class TestAggregateAnomalies:
    """Test anomaly digests."""

    def test_empty_input_runs_no_queries(self):
        """Zero anomalies yield a zeroed digest without touching the database."""
        executor = RecordingExecutor()

        result = asyncio.run(aggregate_anomalies(executor, "orders", [], make_context(["amount"])))

        assert result.total_anomalies == 0
        assert result.average_score == 0.0
        assert result.numeric_features == {}
        assert executor.queries == []

    def test_merges_global_averages(self):
        """Anomaly statistics are compared with one batched global query."""
        executor = RecordingExecutor(responses=[
            ("AVG(", [{"avg_amount": 100.0, "avg_quantity": 2.0}]),
        ])
        anomalies = [
            anomaly(1, 0.9, amount=100.0, quantity=1),
            anomaly(2, 0.8, amount=200.0, quantity=3),
            anomaly(3, 0.7, amount=float("nan")),
        ]
        context = make_context(["amount", "quantity", "discount"])

        result = asyncio.run(aggregate_anomalies(executor, "orders", anomalies, context))

        assert result.total_anomalies == 3
        assert result.average_score == pytest.approx(0.8)
        assert set(result.numeric_features) == {"amount", "quantity"}

        amount = result.numeric_features["amount"]
        assert (amount.avg, amount.min, amount.max) == (150.0, 100.0, 200.0)
        assert amount.global_avg == 100.0
        assert amount.deviation_pct == pytest.approx(50.0)
        assert result.numeric_features["quantity"].deviation_pct == pytest.approx(0.0)

        assert len(executor.queries) == 1
        assert 'AVG("amount") AS "avg_amount"' in executor.queries[0]

    def test_global_query_failure_keeps_local_stats(self):
        """A failed global query leaves global_avg empty."""
        executor = RecordingExecutor(fail_on=["AVG("])

        result = asyncio.run(aggregate_anomalies(
            executor, "orders", [anomaly(1, 0.9, amount=10.0)], make_context(["amount"])
        ))

        feature = result.numeric_features["amount"]
        assert feature.avg == 10.0
        assert feature.global_avg is None
        assert feature.deviation_pct is None

    def test_zero_global_average_has_no_deviation(self):
        """A zero baseline is treated as missing."""
        executor = RecordingExecutor(responses=[("AVG(", [{"avg_amount": 0.0}])])

        result = asyncio.run(aggregate_anomalies(
            executor, "orders", [anomaly(1, 0.9, amount=10.0)], make_context(["amount"])
        ))

        assert result.numeric_features["amount"].global_avg is None

    def test_analysis_size_cap(self):
        """Totals cover every record; feature stats only the first N."""
        executor = RecordingExecutor(responses=[("AVG(", [{"avg_amount": 1.0}])])
        anomalies = [anomaly(i, 0.5, amount=float(i)) for i in range(1, 4)]

        result = asyncio.run(aggregate_anomalies(
            executor, "orders", anomalies, make_context(["amount"]), max_analysis_size=2
        ))

        assert result.total_anomalies == 3
        assert result.numeric_features["amount"].max == 2.0

    def test_global_average_query(self):
        sql = build_global_average_query("my orders", ["amount", "qty"])
        assert sql == 'SELECT AVG("amount") AS "avg_amount", AVG("qty") AS "avg_qty" FROM "my orders"'


class TestAggregateClusters:
    """Test cluster digests."""

    @pytest.fixture
    def analysis(self):
        customers = [
            CustomerClusterRecord(f"c{i}", 0, recency=10, frequency=2, monetary=float(i))
            for i in range(1, 101)
        ] + [
            CustomerClusterRecord(f"d{i}", 1, recency=40, frequency=1, monetary=float(i))
            for i in range(1, 4)
        ]
        clusters = [
            ClusterMetadata(0, 100, 10, 2, 50.5, total_value=750.0, label="Champions"),
            ClusterMetadata(1, 3, 40, 1, 2.0, total_value=250.0),
        ]
        return ClusteringAnalysisResult(total_customers=103, clusters=clusters, customers=customers)

    def test_value_share(self, analysis):
        """Each cluster's share of the total value is a percentage."""
        result = aggregate_clusters(analysis, sample_size=10)

        assert [c.value_share for c in result.clusters] == [75.0, 25.0]
        assert result.clusters[0].label == "Champions"
        assert result.total_customers == 103

    def test_rfm_stats(self, analysis):
        """Global RFM means are computed over all customers."""
        result = aggregate_clusters(analysis, sample_size=10)

        assert result.rfm_stats.global_avg_recency == pytest.approx((100 * 10 + 3 * 40) / 103)
        assert result.rfm_stats.global_avg_frequency == pytest.approx((100 * 2 + 3) / 103)

    def test_samples_are_capped_and_ordered(self, analysis):
        """Samples hold at most N customers, highest value first."""
        result = aggregate_clusters(analysis, sample_size=10)

        big, small = result.sample_customers
        assert len(big.customers) == 10
        monetary = [c.monetary for c in big.customers]
        assert monetary == sorted(monetary, reverse=True)
        assert monetary[0] == 100.0
        assert monetary == [float(v) for v in range(100, 90, -1)]
        assert len(small.customers) == 3

    def test_samples_keep_the_top_spenders(self):
        """A large cluster is cut to its highest-value customers."""
        customers = [
            CustomerClusterRecord(f"c{i}", 0, recency=5, frequency=1, monetary=float(i))
            for i in range(1, 201)
        ]

        sample = sample_cluster_customers(customers, 75)

        assert [c.monetary for c in sample] == [float(v) for v in range(200, 125, -1)]

    def test_empty_run(self):
        """No customers and no value yields zeros."""
        result = aggregate_clusters(ClusteringAnalysisResult(
            total_customers=0,
            clusters=[ClusterMetadata(0, 0, 0, 0, 0, total_value=0.0)],
        ))

        assert result.rfm_stats.global_avg_monetary == 0.0
        assert result.clusters[0].value_share == 0.0
        assert result.sample_customers[0].customers == []

    def test_zero_sample_size(self):
        """A zero sample size yields no customers."""
        customers = [CustomerClusterRecord("a", 0, 1, 1, 1.0)]
        assert sample_cluster_customers(customers, 0) == []

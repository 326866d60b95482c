"""
Unit tests for RFM segment labeling.
"""

import pytest

from insight_engine.insights.models import ClusterMetadata
from insight_engine.insights.segment_labeler import (
    EMPTY_CLUSTER,
    RFM_ARCHETYPES,
    apply_labels,
    calculate_breakpoints,
    label_all_clusters,
    label_cluster,
    map_scores_to_archetype,
    percentile,
)


def cluster(cluster_id, recency, frequency, monetary, customer_count=10):
    return ClusterMetadata(
        cluster_id=cluster_id,
        customer_count=customer_count,
        avg_recency=recency,
        avg_frequency=frequency,
        avg_monetary=monetary,
        total_value=monetary * customer_count,
    )


@pytest.fixture
def clusters():
    """Best, middle and weakest segment."""
    return [
        cluster(0, recency=5, frequency=10, monetary=1000),
        cluster(1, recency=30, frequency=5, monetary=500),
        cluster(2, recency=90, frequency=1, monetary=100),
    ]


class TestPercentile:
    """Test the nearest-rank percentile."""

    def test_empty(self):
        """No values yields 0."""
        assert percentile([], 0.33) == 0

    def test_non_positive_values_are_ignored(self):
        """Zero and negative values are filtered out first."""
        assert percentile([0, -1], 0.5) == 0
        assert percentile([0, 4, -2, 2], 0.0) == 2

    def test_index_is_clamped(self):
        """p=1.0 returns the largest value instead of overflowing."""
        assert percentile([1, 2, 3, 4], 1.0) == 4
        assert percentile([1, 2, 3, 4], 0.99) == 4

    def test_breakpoints(self, clusters):
        """Breakpoints are the 33rd/66th percentiles per dimension."""
        breakpoints = calculate_breakpoints(clusters)
        assert breakpoints["recency"] == (5, 30)
        assert breakpoints["frequency"] == (1, 5)
        assert breakpoints["monetary"] == (100, 500)


class TestArchetypeMapping:
    """Test the ordered score rules."""

    @pytest.mark.parametrize("scores,expected", [
        ((3, 3, 3), "champions"),
        ((2, 3, 3), "loyal"),
        ((3, 2, 2), "potential_loyalists"),
        ((3, 1, 1), "recent_customers"),
        ((3, 2, 1), "promising"),
        ((2, 2, 2), "need_attention"),
        ((2, 1, 2), "about_to_sleep"),
        ((1, 3, 2), "at_risk"),
        ((1, 1, 3), "cant_lose_them"),
        ((2, 3, 2), "need_attention"),
        ((2, 2, 3), "need_attention"),
    ])
    def test_rules(self, scores, expected):
        """Each score triple maps to the first matching archetype."""
        assert map_scores_to_archetype(*scores) == expected

    def test_every_key_has_an_archetype(self):
        """All returned keys exist in the archetype table."""
        for r in (1, 2, 3):
            for f in (1, 2, 3):
                for m in (1, 2, 3):
                    assert map_scores_to_archetype(r, f, m) in RFM_ARCHETYPES


class TestLabelCluster:
    """Test cluster labeling."""

    def test_labels(self, clusters):
        """Best, middle and weakest clusters get distinct archetypes."""
        labels = [c.label for c in label_all_clusters(clusters)]
        assert labels == ["Champions", "Loyal Customers", "About to Sleep"]

    def test_empty_cluster(self, clusters):
        """Clusters without customers get the sentinel label."""
        empty = cluster(3, 0, 0, 0, customer_count=0)

        result = label_cluster(empty, clusters + [empty])

        assert result is EMPTY_CLUSTER
        assert result.priority == 99

    def test_apply_labels_returns_copies(self, clusters):
        """Input clusters keep their missing label."""
        labeled = apply_labels(clusters)

        assert [c.label for c in labeled] == ["Champions", "Loyal Customers", "About to Sleep"]
        assert all(c.label is None for c in clusters)
        assert labeled[0].avg_monetary == clusters[0].avg_monetary

"""
RFM segment labeling.

Assigns one of eleven business archetypes to each customer cluster by
scoring its average recency, frequency and monetary value (1-3 each)
against the 33rd/66th percentiles of all clusters.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from insight_engine.insights.models import ClusterMetadata

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RFMClassification:
    """Archetype assigned to a cluster. Priority 1 is the most valuable segment."""
    label: str
    label_cn: str
    description: str
    color_hint: str
    priority: int


RFM_ARCHETYPES: Dict[str, RFMClassification] = {
    "champions": RFMClassification(
        "Champions", "冠军客户",
        "Best customers: recent, frequent, high-value purchases", "#52c41a", 1,
    ),
    "loyal": RFMClassification(
        "Loyal Customers", "忠诚客户",
        "Regular buyers with consistent high value", "#73d13d", 2,
    ),
    "potential_loyalists": RFMClassification(
        "Potential Loyalists", "潜力客户",
        "Recent high spenders, build frequency", "#95de64", 3,
    ),
    "recent_customers": RFMClassification(
        "Recent Customers", "新客户",
        "New buyers, nurture engagement", "#1890ff", 4,
    ),
    "promising": RFMClassification(
        "Promising", "有潜力",
        "Recent buyers with growth potential", "#40a9ff", 5,
    ),
    "need_attention": RFMClassification(
        "Need Attention", "需要关注",
        "Average customers showing signs of decline", "#faad14", 6,
    ),
    "about_to_sleep": RFMClassification(
        "About to Sleep", "即将流失",
        "Below average, at risk of churning", "#ffc53d", 7,
    ),
    "at_risk": RFMClassification(
        "At Risk", "流失风险",
        "Used to be good customers, re-engage urgently", "#ff7a45", 8,
    ),
    "cant_lose_them": RFMClassification(
        "Can't Lose Them", "不能失去",
        "High-value customers lost long ago, win back", "#ff4d4f", 9,
    ),
    "hibernating": RFMClassification(
        "Hibernating", "休眠客户",
        "Long-inactive low spenders", "#d9d9d9", 10,
    ),
    "lost": RFMClassification(
        "Lost", "已流失",
        "Lowest engagement, likely gone", "#8c8c8c", 11,
    ),
}

EMPTY_CLUSTER = RFMClassification(
    "Empty Cluster", "空集群", "No customers in this cluster", "#f0f0f0", 99,
)

Breakpoints = Tuple[float, float]


def percentile(values: Sequence[float], p: float) -> float:
    """
    Nearest-rank percentile over the positive values.

    Uses index ``floor(n * p)`` clamped to ``n - 1``; returns 0 when no
    positive value remains.
    """
    ordered = sorted(v for v in values if v > 0)
    if not ordered:
        return 0
    idx = math.floor(len(ordered) * p)
    return ordered[min(idx, len(ordered) - 1)]


def calculate_breakpoints(clusters: Sequence[ClusterMetadata]) -> Dict[str, Breakpoints]:
    """33rd/66th percentile of each RFM dimension over the cluster averages."""
    dimensions = {
        "recency": [c.avg_recency for c in clusters],
        "frequency": [c.avg_frequency for c in clusters],
        "monetary": [c.avg_monetary for c in clusters],
    }
    return {
        name: (percentile(values, 0.33), percentile(values, 0.66))
        for name, values in dimensions.items()
    }


def score_rfm(
    recency: float,
    frequency: float,
    monetary: float,
    breakpoints: Dict[str, Breakpoints],
) -> Tuple[int, int, int]:
    """
    Score each dimension 1-3.

    Lower recency is better (a recent purchase), so its scale is inverted.
    """
    r33, r66 = breakpoints["recency"]
    if recency <= r33:
        r = 3
    elif recency <= r66:
        r = 2
    else:
        r = 1

    def higher_is_better(value: float, bounds: Breakpoints) -> int:
        low, high = bounds
        if value >= high:
            return 3
        if value >= low:
            return 2
        return 1

    f = higher_is_better(frequency, breakpoints["frequency"])
    m = higher_is_better(monetary, breakpoints["monetary"])
    return r, f, m


def map_scores_to_archetype(r: int, f: int, m: int) -> str:
    """Map an (R, F, M) score triple to an archetype key. First matching rule wins."""
    if r == 3 and f == 3 and m == 3:
        return "champions"
    if f == 3 and m == 3:
        return "loyal"
    if r == 3 and m >= 2 and f < 3:
        return "potential_loyalists"
    if r == 3 and f == 1 and m == 1:
        return "recent_customers"
    if r == 3 and f <= 2 and m <= 2:
        return "promising"
    if r == 2 and f == 2 and m == 2:
        return "need_attention"
    if r <= 2 and f <= 2 and m <= 2:
        return "about_to_sleep"
    if r == 1 and f >= 2 and m >= 2:
        return "at_risk"
    if r == 1 and m == 3:
        return "cant_lose_them"
    if r == 1 and f == 1 and m >= 2:
        return "hibernating"
    if r == 1 and f == 1 and m == 1:
        return "lost"

    total = r + f + m
    if total >= 8:
        return "loyal"
    if total >= 6:
        return "need_attention"
    return "about_to_sleep"


def label_cluster(
    cluster: ClusterMetadata,
    all_clusters: Sequence[ClusterMetadata],
) -> RFMClassification:
    """
    Assign a business archetype to one cluster.

    Args:
        cluster: The cluster to label
        all_clusters: Every cluster of the run (percentiles are computed over these)

    Returns:
        The archetype, or the empty-cluster sentinel for clusters without customers
    """
    if cluster.customer_count == 0:
        return EMPTY_CLUSTER

    breakpoints = calculate_breakpoints(all_clusters)
    r, f, m = score_rfm(
        cluster.avg_recency,
        cluster.avg_frequency,
        cluster.avg_monetary,
        breakpoints,
    )
    classification = RFM_ARCHETYPES[map_scores_to_archetype(r, f, m)]

    logger.debug(
        f"Cluster {cluster.cluster_id}: R={r} F={f} M={m} -> {classification.label}"
    )
    return classification


def label_all_clusters(clusters: Sequence[ClusterMetadata]) -> List[RFMClassification]:
    """Label every cluster, preserving order."""
    return [label_cluster(cluster, clusters) for cluster in clusters]


def apply_labels(clusters: Sequence[ClusterMetadata]) -> List[ClusterMetadata]:
    """Copies of ``clusters`` with their archetype label filled in."""
    labels = label_all_clusters(clusters)
    labeled = [c.with_label(l.label) for c, l in zip(clusters, labels)]
    logger.info(
        f"Labeled {len(labeled)} clusters: "
        f"{', '.join(c.label for c in labeled)}"
    )
    return labeled

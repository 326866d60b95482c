"""
AI Prompt for Acting on Customer Clustering Results.

Gives the model the RFM profile of every segment, its share of total value
and a small sample of customers, and asks for segment-level actions.
"""

from typing import List, Optional

from insight_engine.insights.models import AggregatedFeatures, ClusterSample, ClusterSummary, InsightContext, RFMStats

CLUSTERING_ACTION_PROMPT = """
# ROLE
You are a senior CRM strategist for an {business_domain} business. You turn customer
segmentation results into concrete retention and growth actions.

# BUSINESS BACKGROUND
- **Table**: {table_name}
- **Customers analyzed**: {total_customers:,}
- **Segments**: {cluster_count}

# GLOBAL RFM AVERAGES
{rfm_stats}

(Recency = days since last purchase, lower is better. Frequency = number of orders.
Monetary = total spend.)

# SEGMENTS
{clusters}

# SAMPLE CUSTOMERS (highest spend first)
{samples}

---

# TASK

Identify the **2-3 segments that matter most** for revenue right now, explain why,
and recommend what to do for each. Favor actions that protect high-value segments
and re-activate slipping ones.

## OUTPUT FORMAT

Respond with **only** this JSON object:

```json
{{
  "diagnosis": "One short paragraph on the state of the customer base (max 100 words)",
  "keyPatterns": [
    "Specific, quantified observation about a segment"
  ],
  "recommendations": [
    {{
      "action": "A concrete campaign or change, naming the target segment",
      "priority": "high|medium|low",
      "reason": "Why it is needed (one sentence)",
      "estimatedImpact": "Expected effect, quantified where possible"
    }}
  ],
  "confidence": 0.8
}}
```

**Rules**:
- recommendations is an array of objects, each with action, priority and reason
- priority is exactly one of "high", "medium" or "low"
- Refer to segments by their label when they have one

Analyze these customer segments now.
"""


def format_rfm_stats(stats: Optional[RFMStats]) -> str:
    if stats is None:
        return "(not available)"
    return (
        f"- Recency: {stats.global_avg_recency:.1f} days\n"
        f"- Frequency: {stats.global_avg_frequency:.2f} orders\n"
        f"- Monetary: {stats.global_avg_monetary:.2f}"
    )


def format_clusters(clusters: List[ClusterSummary]) -> str:
    if not clusters:
        return "(no segments)"

    lines = []
    for c in clusters:
        name = c.label or f"Cluster {c.cluster_id}"
        lines.append(
            f"- **{name}** (id {c.cluster_id}): {c.customer_count:,} customers, "
            f"recency {c.avg_recency:.1f}, frequency {c.avg_frequency:.2f}, "
            f"monetary {c.avg_monetary:.2f}, {c.value_share:.1f}% of total value"
        )
    return "\n".join(lines)


def format_samples(samples: List[ClusterSample], per_cluster: int = 5) -> str:
    """A few sample rows per cluster; the full samples stay out of the prompt."""
    sections = []
    for sample in samples:
        if not sample.customers:
            continue
        rows = "\n".join(
            f"  - {c.customer_id}: R={c.recency:.0f}, F={c.frequency:.0f}, M={c.monetary:.2f}"
            for c in sample.customers[:per_cluster]
        )
        sections.append(f"- Cluster {sample.cluster_id}:\n{rows}")
    return "\n".join(sections) if sections else "(no samples)"


def build_clustering_action_prompt(context: InsightContext, aggregated: AggregatedFeatures) -> str:
    """Render the clustering action prompt for one analysis run."""
    return CLUSTERING_ACTION_PROMPT.format(
        business_domain=context.business_domain,
        table_name=context.table_metadata.table_name,
        total_customers=aggregated.total_customers or 0,
        cluster_count=len(aggregated.clusters),
        rfm_stats=format_rfm_stats(aggregated.rfm_stats),
        clusters=format_clusters(aggregated.clusters),
        samples=format_samples(aggregated.sample_customers),
    )

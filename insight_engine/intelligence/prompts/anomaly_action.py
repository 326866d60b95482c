"""
AI Prompt for Acting on Anomaly Detection Results.

The prompt is built in three stages:
- Role and business background (table size, anomaly rate, feature meanings)
- Few-shot cases showing the expected diagnosis style
- The task, with a strict JSON output contract
"""

from typing import Any, Dict

from insight_engine.insights.models import AggregatedFeatures, InsightContext, NumericFeatureStats

ANOMALY_ACTION_PROMPT = """
# ROLE
You are a senior e-commerce risk analyst. You review batches of anomalous orders
and tell the operations team what is going on and what to do about it.

# BUSINESS BACKGROUND
- **Table**: {table_name}
- **Total orders**: {row_count:,}
- **Anomalous orders**: {total_anomalies:,}
- **Anomaly rate**: {anomaly_rate:.2f}%
- **Average anomaly score**: {average_score:.3f}

# FEATURES
{feature_definitions}

# DATA COMPARISON

## Numeric features (anomalous orders vs. global average)
{numeric_features}

## Recurring patterns
{top_patterns}

## Suspicious signals
{suspicious_patterns}

---

# FEW-SHOT EXAMPLES

## Example 1: Coupon farming ring
**Data**:
- Ten orders with different names share one IP address
- Order totals cluster just above a coupon threshold
- Orders land within five minutes of a promotion starting

**Diagnosis**: An organized ring is farming the promotion by splitting orders across fake accounts.

**Key patterns**:
1. IP reuse far above normal
2. Order totals tuned to the coupon rule
3. Order timing tightly bunched

**Recommendations**:
- {{"action": "Hold every unshipped order from the shared IPs for manual review", "priority": "high", "reason": "Stops further coupon losses"}}
- {{"action": "Limit coupon claims per IP and per device", "priority": "medium", "reason": "Closes the rule gap"}}

## Example 2: Inventory squatting
**Data**:
- 60% of the orders are placed between 2am and 4am
- 80% are never paid
- All target limited-edition items

**Diagnosis**: Accounts are reserving scarce stock without paying, blocking genuine buyers.

**Key patterns**:
1. Off-hours ordering
2. Very low payment conversion
3. Focus on high-demand items

**Recommendations**:
- {{"action": "Cancel unpaid orders after 15 minutes", "priority": "high", "reason": "Releases reserved stock"}}
- {{"action": "Require payment before reserving limited items", "priority": "high", "reason": "Removes the incentive to squat"}}

---

# TASK

Using the background and the comparison above, identify the **2-3 most significant
shared deviations** in this batch of anomalous orders.

## OUTPUT FORMAT

Respond with **only** this JSON object:

```json
{{
  "diagnosis": "One short paragraph naming the core problem (max 100 words)",
  "keyPatterns": [
    "Specific, quantified pattern 1",
    "Specific, quantified pattern 2"
  ],
  "recommendations": [
    {{
      "action": "A concrete, executable action",
      "priority": "high|medium|low",
      "reason": "Why it is needed (one sentence)"
    }}
  ],
  "confidence": 0.85
}}
```

**Rules**:
- recommendations is an array of objects, each with action, priority and reason
- priority is exactly one of "high", "medium" or "low"
- Every field is required

## STYLE
- State conclusions directly, as if reporting to a manager
- Quantify: "anomalous orders average 35% above the global mean"
- No hedging ("might", "possibly") and no "further analysis is needed"
- Do not explain SQL or statistics; focus on business risk and actions

Analyze this batch of anomalous orders now.
"""


def format_feature_definitions(definitions: Dict[str, str]) -> str:
    if not definitions:
        return "(no numeric features)"
    return "\n".join(f"- **{col}**: {desc}" for col, desc in definitions.items())


def format_numeric_features(features: Dict[str, NumericFeatureStats]) -> str:
    """One comparison line per feature: anomaly average vs. global average."""
    if not features:
        return "(no numeric feature comparison available)"

    lines = []
    for col, stats in features.items():
        deviation = stats.deviation_pct
        if deviation is None:
            lines.append(
                f"- **{col}**: anomaly avg {stats.avg:.2f}, global avg N/A "
                f"(range {stats.min:.2f} - {stats.max:.2f})"
            )
            continue
        trend = "↑" if stats.avg > stats.global_avg else "↓"
        lines.append(
            f"- **{col}**: anomaly avg {stats.avg:.2f}, global avg {stats.global_avg:.2f} "
            f"{trend} (deviation {deviation:.1f}%, range {stats.min:.2f} - {stats.max:.2f})"
        )
    return "\n".join(lines)


def format_top_patterns(patterns: Dict[str, Any]) -> str:
    sections = []

    for key, title in (("addresses", "Top shipping addresses"), ("categories", "Top categories")):
        items = patterns.get(key) or []
        if items:
            body = "\n".join(f"- {i['value']} ({i['count']} orders)" for i in items[:3])
            sections.append(f"### {title}\n{body}")

    slots = [s for s in patterns.get("time_slots") or [] if s.get("count", 0) > 0]
    if slots:
        top_hours = sorted(slots, key=lambda s: s["count"], reverse=True)[:5]
        body = "\n".join(f"- {s['hour']}:00 ({s['count']} orders)" for s in top_hours)
        sections.append(f"### Busiest order hours\n{body}")

    return "\n\n".join(sections) if sections else "(no clear patterns)"


def format_suspicious_patterns(patterns: Dict[str, Any]) -> str:
    alerts = []
    if patterns.get("midnight_orders"):
        alerts.append(f"- ⚠️ **Late-night orders**: {patterns['midnight_orders']} placed between 2am and 4am")
    if patterns.get("same_ip_multi_orders"):
        alerts.append(f"- ⚠️ **IP reuse**: {patterns['same_ip_multi_orders']} IP addresses with multiple orders")
    if patterns.get("warehouse_addresses"):
        alerts.append(f"- ⚠️ **Forwarding addresses**: {patterns['warehouse_addresses']} orders ship to a warehouse")
    return "\n".join(alerts) if alerts else "(no suspicious signals)"


def build_anomaly_action_prompt(context: InsightContext, aggregated: AggregatedFeatures) -> str:
    """Render the anomaly action prompt for one analysis run."""
    metadata = context.table_metadata
    total = aggregated.total_anomalies or 0
    anomaly_rate = total / metadata.row_count * 100 if metadata.row_count > 0 else 0.0

    return ANOMALY_ACTION_PROMPT.format(
        table_name=metadata.table_name,
        row_count=metadata.row_count,
        total_anomalies=total,
        anomaly_rate=anomaly_rate,
        average_score=aggregated.average_score or 0.0,
        feature_definitions=format_feature_definitions(context.feature_definitions),
        numeric_features=format_numeric_features(aggregated.numeric_features),
        top_patterns=format_top_patterns(aggregated.top_patterns),
        suspicious_patterns=format_suspicious_patterns(aggregated.suspicious_patterns),
    )

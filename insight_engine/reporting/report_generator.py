"""
Report generation for insight actions.

Produces a Markdown report from an InsightActionOutput and a CSV of the
underlying records, and packages both into a ZIP archive.
"""

import io
import logging
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

import pandas as pd

from insight_engine.intelligence.action_service import InsightActionOutput, Priority

logger = logging.getLogger(__name__)

PRIORITY_ICONS = {
    Priority.HIGH: "🔴",
    Priority.MEDIUM: "🟡",
    Priority.LOW: "🟢",
}

REPORT_FILENAME = "analysis_report.md"


def generate_markdown_report(
    output: InsightActionOutput,
    table_name: str,
    algorithm_type: str,
    generated_at: Optional[datetime] = None,
) -> str:
    """
    Render the insight as a Markdown document.

    Sections: header block, diagnosis, key patterns (only when present),
    recommendations with priority icons, footer.
    """
    timestamp = (generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")

    lines = [
        "# Data Analysis Report",
        "",
        f"**Generated**: {timestamp}",
        f"**Table**: {table_name}",
        f"**Algorithm**: {algorithm_type}",
        f"**Confidence**: {output.confidence.value}",
        "",
        "---",
        "",
        "## 🔍 Diagnosis",
        "",
        output.diagnosis,
        "",
    ]

    if output.key_patterns:
        lines += ["## 📊 Key Patterns", ""]
        lines += [f"{i}. **{pattern}**" for i, pattern in enumerate(output.key_patterns, 1)]
        lines.append("")

    lines += ["## 💡 Recommendations", ""]
    for i, rec in enumerate(output.recommendations, 1):
        lines += [
            f"### {PRIORITY_ICONS[rec.priority]} Recommendation {i}: {rec.action}",
            "",
            f"**Reason**: {rec.reason}",
        ]
        if rec.estimated_impact:
            lines.append(f"**Expected impact**: {rec.estimated_impact}")
        lines.append("")

    lines += [
        "---",
        "",
        "*This report was generated automatically. Review it against your "
        "business context before acting on it.*",
        "",
    ]
    return "\n".join(lines)


def rows_to_csv(rows: Sequence[Dict[str, Any]]) -> str:
    """
    Serialize records as RFC 4180 CSV (CRLF line endings, minimal quoting).

    Columns follow the key order of the records; None becomes an empty field.
    """
    if not rows:
        return ""
    df = pd.DataFrame(list(rows))
    return df.to_csv(index=False, lineterminator="\r\n")


def build_report_bundle(
    output: InsightActionOutput,
    rows: Sequence[Dict[str, Any]],
    table_name: str,
    algorithm_type: str,
    generated_at: Optional[datetime] = None,
) -> bytes:
    """ZIP archive (as bytes) holding the Markdown report and the records CSV."""
    markdown = generate_markdown_report(output, table_name, algorithm_type, generated_at)
    csv_text = rows_to_csv(rows)

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=6) as zf:
        zf.writestr(REPORT_FILENAME, markdown)
        zf.writestr(f"{algorithm_type}_records.csv", csv_text)

    data = buffer.getvalue()
    logger.info(
        f"Report bundle built for {table_name}: {len(rows)} records, {len(data) / 1024:.2f} KB"
    )
    return data


def write_report_bundle(
    path: Union[str, Path],
    output: InsightActionOutput,
    rows: Sequence[Dict[str, Any]],
    table_name: str,
    algorithm_type: str,
) -> Path:
    """Build the report bundle and write it to ``path``. Returns the written path."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(build_report_bundle(output, rows, table_name, algorithm_type))
    logger.info(f"Report written to {target}")
    return target

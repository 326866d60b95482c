"""
Reporting - Markdown + CSV report bundles for generated insights.
"""

from insight_engine.reporting.report_generator import (
    build_report_bundle,
    generate_markdown_report,
    rows_to_csv,
    write_report_bundle,
)

__all__ = [
    "build_report_bundle",
    "generate_markdown_report",
    "rows_to_csv",
    "write_report_bundle",
]

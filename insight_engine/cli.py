"""
Insight Engine command-line runner.

Loads a CSV file into an in-memory DuckDB table, profiles it and prints the
global summary, distributions and categorical breakdowns.

Usage:
    insight-engine orders.csv
    insight-engine orders.csv --table orders --json
    insight-engine orders.csv --cache-file .insight_cache.json --config insight_engine.yaml
"""

import argparse
import asyncio
import hashlib
import json
import logging
import re
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from insight_engine.core.config import Settings, get_settings
from insight_engine.insights.binning import AdaptiveBinner
from insight_engine.insights.cache import ResultCache
from insight_engine.insights.orchestrator import InsightOrchestrator
from insight_engine.insights.schema_inferencer import SchemaInferencer
from insight_engine.storage.kv_store import InMemoryKeyValueStore, JsonFileKeyValueStore
from insight_engine.storage.query_executor import DuckDBQueryExecutor

logger = logging.getLogger(__name__)


def default_table_name(csv_path: Path) -> str:
    """Table name derived from the file name (non-word characters become underscores)."""
    return re.sub(r"\W+", "_", csv_path.stem).strip("_") or "data"


def data_fingerprint(csv_path: Path) -> str:
    """Short content hash of a CSV file, used to version its cached results."""
    digest = hashlib.sha256()
    with open(csv_path, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 20), b""):
            digest.update(chunk)
    return digest.hexdigest()[:16]


async def run_insights(
    csv_path: Path,
    table_name: str,
    settings: Settings,
    cache_file: Optional[Path] = None,
) -> Dict[str, Any]:
    """Load the CSV and compute summary, distributions and categorical data."""
    store = JsonFileKeyValueStore(cache_file) if cache_file else InMemoryKeyValueStore()
    cache = ResultCache(store, settings.cache)
    orchestrator = InsightOrchestrator(SchemaInferencer(), AdaptiveBinner(), cache, settings)

    with DuckDBQueryExecutor(
        database_path=settings.duckdb.database_path,
        memory_limit=settings.duckdb.memory_limit,
        threads=settings.duckdb.threads,
    ) as executor:
        row_count = executor.load_csv(csv_path, table_name)
        logger.info(f"Loaded {row_count} rows into {table_name}")
        version = data_fingerprint(csv_path)

        summary = await orchestrator.get_summary(table_name, executor, version)
        distributions = await orchestrator.get_distributions(table_name, executor, version)
        categorical = await orchestrator.get_categorical(table_name, executor, version)

    return {
        "table_name": table_name,
        "row_count": row_count,
        "summary": summary.to_dict(),
        "distributions": distributions.to_dict(),
        "categorical": categorical.to_dict(),
    }


def format_report(results: Dict[str, Any]) -> str:
    """Human-readable rendering of run_insights output."""
    lines: List[str] = [
        "=" * 60,
        f"Insights: {results['table_name']} ({results['row_count']:,} rows)",
        "=" * 60,
        "",
        "Global Summary:",
    ]

    columns = results["summary"]["columns"]
    if not columns:
        lines.append("  (no amount columns)")
    for col in columns:
        lines.append(
            f"  {col['name']}: min={col['min']}, max={col['max']}, "
            f"mean={col['mean']}, median={col['median']}, null_rate={col['null_rate']:.2%}"
        )

    lines += ["", "Distributions:"]
    dist = results["distributions"]
    if not dist["series"]:
        lines.append("  (none)")
    for series in dist["series"]:
        lines.append(f"  {series['column_name']}: {len(series['data'])} bins")

    for group in ("status", "category"):
        lines += ["", f"{group.title()} Columns:"]
        breakdowns = results["categorical"][group]
        if not breakdowns:
            lines.append("  (none)")
        for result in breakdowns:
            top = ", ".join(f"{v['value']} ({v['count']})" for v in result["values"][:5])
            lines.append(f"  {result['column_name']}: {top}")

    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Profile a CSV file and print chart-ready insights",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    insight-engine orders.csv
    insight-engine orders.csv --json > insights.json
        """,
    )
    parser.add_argument("csv", help="CSV file to analyze")
    parser.add_argument(
        "--table", "-t",
        help="Table name to load the CSV into (default: derived from the file name)",
    )
    parser.add_argument(
        "--config", "-c",
        help="Path to a YAML settings file (default: insight_engine.yaml if present)",
    )
    parser.add_argument(
        "--cache-file",
        help="Persist the result cache in this JSON file instead of memory",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON",
    )
    parser.add_argument(
        "--log-level",
        help="Logging level (default: from settings)",
    )

    args = parser.parse_args(argv)

    settings = Settings.from_yaml(args.config) if args.config else get_settings()
    logging.basicConfig(
        level=(args.log_level or settings.logging.level).upper(),
        format=settings.logging.format,
    )

    csv_path = Path(args.csv)
    if not csv_path.exists():
        print(f"ERROR: File not found: {csv_path}", file=sys.stderr)
        return 1

    table_name = args.table or default_table_name(csv_path)
    cache_file = Path(args.cache_file) if args.cache_file else None

    try:
        results = asyncio.run(run_insights(csv_path, table_name, settings, cache_file))
    except Exception as e:
        logger.error(f"Insight run failed: {e}")
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(results, indent=2, ensure_ascii=False, default=str))
    else:
        print(format_report(results))
    return 0


if __name__ == "__main__":
    sys.exit(main())

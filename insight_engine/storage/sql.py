"""
SQL text helpers.

Every identifier or literal that the engine interpolates into query text goes
through this module, so escaping rules live in one place.
"""

from typing import Any


def quote_identifier(name: str) -> str:
    """Quote a table or column name for DuckDB (double quotes, doubled inside)."""
    return '"' + str(name).replace('"', '""') + '"'


def quote_literal(value: Any) -> str:
    """
    Render a Python value as a SQL literal.

    Strings are single-quoted with embedded single quotes doubled,
    None becomes NULL, booleans become TRUE/FALSE.
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return repr(value)
    return "'" + str(value).replace("'", "''") + "'"


def sample_clause(sampling_enabled: bool, sampling_rate: float) -> str:
    """Build a row-level (bernoulli) DuckDB ``USING SAMPLE`` clause, or an empty string."""
    if not sampling_enabled:
        return ""
    percent = round(sampling_rate * 100, 4)
    return f"USING SAMPLE {percent:g}% (bernoulli)"

"""
Shared fixtures for Insight Engine tests.
"""

import pytest

from insight_engine.storage.query_executor import DuckDBQueryExecutor
from tests.fakes import make_orders_frame


@pytest.fixture
def orders_executor():
    """In-memory DuckDB with an ``orders`` table of 5000 rows."""
    executor = DuckDBQueryExecutor()
    executor.load_dataframe(make_orders_frame(), "orders")
    yield executor
    executor.close()

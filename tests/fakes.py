"""
Test doubles and sample data shared by the test modules.
"""

from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from insight_engine.storage.query_executor import QueryExecutionError, QueryResult


class RecordingExecutor:
    """
    Fake query executor.

    Records every SQL text it receives. Responses are matched by substring,
    first match wins; unmatched queries return an empty result.
    """

    def __init__(
        self,
        responses: Optional[Sequence[Tuple[str, List[Dict]]]] = None,
        fail_on: Sequence[str] = (),
    ):
        self.queries: List[str] = []
        self.responses = list(responses or [])
        self.fail_on = list(fail_on)

    async def execute(self, sql: str) -> QueryResult:
        self.queries.append(sql)
        for marker in self.fail_on:
            if marker in sql:
                raise QueryExecutionError(f"forced failure on {marker}", sql=sql)
        for marker, rows in self.responses:
            if marker in sql:
                return QueryResult(rows=[dict(r) for r in rows], columns=list(rows[0]) if rows else [])
        return QueryResult()


class CountingExecutor:
    """Wraps a real executor and counts the queries passed through it."""

    def __init__(self, inner):
        self.inner = inner
        self.queries: List[str] = []

    async def execute(self, sql: str) -> QueryResult:
        self.queries.append(sql)
        return await self.inner.execute(sql)


def make_orders_frame(rows: int = 5000) -> pd.DataFrame:
    """Orders table: 1000 distinct amounts, 5 statuses, unique user ids."""
    statuses = ["pending", "paid", "shipped", "delivered", "cancelled"]
    return pd.DataFrame({
        "order_amount": [float((i % 1000) * 1.5 + 10) for i in range(rows)],
        "order_status": [statuses[i % 5] for i in range(rows)],
        "user_id": list(range(rows)),
    })

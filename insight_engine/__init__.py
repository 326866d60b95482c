"""
Insight Engine - column profiling, adaptive charts and LLM-backed diagnosis
for tabular data loaded into DuckDB.

Sub-packages:
- storage: query execution and key/value persistence
- insights: schema inference, binning, caching, aggregation, segment labeling
- intelligence: prompt strategies, LLM client, response parsing
- reporting: Markdown/CSV report bundles
"""

__version__ = "0.1.0"

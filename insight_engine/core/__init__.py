"""
Core configuration for the Insight Engine.
"""

from insight_engine.core.config import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]

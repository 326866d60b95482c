"""
Configuration settings for the Insight Engine.
Uses pydantic-settings for environment variable loading, with an optional
YAML file for overrides.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CacheConfig(BaseModel):
    """Result cache configuration."""
    key_prefix: str = "insight:"
    max_size_bytes: int = 9 * 1024 * 1024  # 9MB
    eviction_age_minutes: int = 30

    @property
    def eviction_age_ms(self) -> int:
        """Minimum idle time before an entry may be evicted, in milliseconds."""
        return self.eviction_age_minutes * 60 * 1000


class AnalysisConfig(BaseModel):
    """Thresholds used while profiling tables and digesting analysis output."""
    sampling_threshold: int = 10_000
    sampling_rate: float = 0.75
    max_distribution_columns: int = 5
    top_n_status: int = 10
    top_n_categorical: int = 20
    max_anomalies_for_analysis: int = 500
    cluster_sample_size: int = 75
    business_domain: str = "ecommerce"


class LLMConfig(BaseModel):
    """LLM configuration."""
    api_key: Optional[str] = None  # Falls back to OPENAI_API_KEY
    base_url: Optional[str] = None  # For OpenAI-compatible gateways
    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    max_tokens: int = 2000


class DuckDBConfig(BaseModel):
    """DuckDB configuration."""
    database_path: Optional[str] = None  # None = in-memory
    memory_limit: str = "4GB"
    threads: int = 4


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(levelname)s - %(message)s"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Nested values use a double underscore, e.g.
    ``INSIGHT_CACHE__MAX_SIZE_BYTES=1048576`` or ``INSIGHT_LLM__MODEL=gpt-4o``.
    """

    model_config = SettingsConfigDict(
        env_prefix="INSIGHT_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    cache: CacheConfig = Field(default_factory=CacheConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    duckdb: DuckDBConfig = Field(default_factory=DuckDBConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: str) -> "Settings":
        """
        Load settings from a YAML file.

        Environment variables still apply to any section the file does
        not set.
        """
        config_path = Path(path)

        if not config_path.exists():
            # Return defaults if no config file
            return cls()

        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    for candidate in (Path("insight_engine.yaml"), Path("insight_engine.yml")):
        if candidate.exists():
            return Settings.from_yaml(str(candidate))
    return Settings()

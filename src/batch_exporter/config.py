from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

SinkKind = Literal["bigquery", "postgres"]


@dataclass(frozen=True)
class Destination:
    """Namespace (BigQuery dataset / Postgres schema) plus table name."""

    namespace: str
    table: str

    def __str__(self) -> str:
        return f"{self.namespace}.{self.table}"


@dataclass(frozen=True)
class ExporterConfig:
    """Flush thresholds and destination identity."""

    destination: Destination
    batch_size: int = 500  # dispatch cap and size-trigger threshold
    batch_timeout: float = 5.0  # seconds between flush attempts
    tick_interval: float = 1.0  # scheduler resolution, seconds

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.batch_timeout <= 0:
            raise ValueError(f"batch_timeout must be > 0, got {self.batch_timeout}")
        if self.tick_interval <= 0:
            raise ValueError(f"tick_interval must be > 0, got {self.tick_interval}")


class Settings(BaseSettings):
    """Environment-driven settings (``EXPORTER_*``)."""

    model_config = SettingsConfigDict(
        env_prefix="EXPORTER_", env_file=".env", case_sensitive=False, extra="ignore"
    )

    SINK: SinkKind = "bigquery"
    DATASET: str
    TABLE: str
    BATCH_SIZE: int = 500
    BATCH_TIMEOUT_MS: int = 5000
    TICK_INTERVAL_MS: int = 1000

    # bigquery
    PROJECT_ID: Optional[str] = None
    LOCATION: Optional[str] = None

    # postgres
    DSN: Optional[str] = None
    POOL_MAX: int = 4

    @property
    def destination(self) -> Destination:
        return Destination(namespace=self.DATASET, table=self.TABLE)

    def exporter_config(self) -> ExporterConfig:
        return ExporterConfig(
            destination=self.destination,
            batch_size=self.BATCH_SIZE,
            batch_timeout=self.BATCH_TIMEOUT_MS / 1000.0,
            tick_interval=self.TICK_INTERVAL_MS / 1000.0,
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings()

"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env(key: str, default: str = "") -> str:
    """Read an environment variable, falling back to ``default`` when unset."""
    return os.environ.get(key, default)


def _env_float(key: str, default: float) -> float:
    raw = _env(key)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    raw = _env(key)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class AppConfig:
    env: str = field(default_factory=lambda: _env("APP_ENV", "development"))
    log_level: str = field(default_factory=lambda: _env("LOG_LEVEL", "INFO"))

    @property
    def is_development(self) -> bool:
        return self.env == "development"


@dataclass(frozen=True)
class PipelineConfig:
    """Timing of the generation pipeline.

    ``min_step``/``max_step`` bound the randomized progress increment of the
    simulated backend; ``timeout_seconds`` caps a single job's wall-clock time.
    """

    tick_seconds: float = field(
        default_factory=lambda: _env_float("PIPELINE_TICK_SECONDS", 0.35)
    )
    min_step: int = field(default_factory=lambda: _env_int("PIPELINE_MIN_STEP", 6))
    max_step: int = field(default_factory=lambda: _env_int("PIPELINE_MAX_STEP", 18))
    timeout_seconds: float = field(
        default_factory=lambda: _env_float("PIPELINE_TIMEOUT_SECONDS", 300.0)
    )


@dataclass(frozen=True)
class ReviewSyncConfig:
    interval_seconds: float = field(
        default_factory=lambda: _env_float("REVIEW_SYNC_INTERVAL_SECONDS", 1.0)
    )


@dataclass(frozen=True)
class ReviewStoreConfig:
    base_url: str = field(default_factory=lambda: _env("REVIEW_STORE_BASE_URL"))
    timeout_seconds: float = field(
        default_factory=lambda: _env_float("REVIEW_STORE_TIMEOUT_SECONDS", 5.0)
    )


@dataclass(frozen=True)
class ServiceBusConfig:
    connection_string: str = field(
        default_factory=lambda: _env("AZURE_SERVICEBUS_CONNECTION_STRING")
    )
    event_topic_name: str = field(
        default_factory=lambda: _env("AZURE_SERVICEBUS_EVENT_TOPIC", "studio-events")
    )
    decision_topic_name: str = field(
        default_factory=lambda: _env(
            "AZURE_SERVICEBUS_DECISION_TOPIC", "review-decisions"
        )
    )
    subscription_name: str = field(
        default_factory=lambda: _env(
            "AZURE_SERVICEBUS_SUBSCRIPTION", "studio-consumer"
        )
    )


@dataclass(frozen=True)
class MonitorConfig:
    connection_string: str = field(
        default_factory=lambda: _env("APPLICATIONINSIGHTS_CONNECTION_STRING")
    )


@dataclass(frozen=True)
class Settings:
    """Top-level settings container."""

    app: AppConfig = field(default_factory=AppConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    review_sync: ReviewSyncConfig = field(default_factory=ReviewSyncConfig)
    review_store: ReviewStoreConfig = field(default_factory=ReviewStoreConfig)
    servicebus: ServiceBusConfig = field(default_factory=ServiceBusConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)


def load_settings() -> Settings:
    """Build settings from the current environment."""
    return Settings()

"""
Centralized Configuration System
Environment-aware settings for the relay worker and ingestion API,
plus the loader for the JSON routing file.
"""
import json
from pathlib import Path
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal

from relay.models.routing import RelayConfig


class ConfigurationError(Exception):
    """Raised when the routing file cannot be read or is invalid."""
    pass


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow"
    )
    """
    Process-level settings.
    Loads from environment variables with sensible defaults.
    """

    # ============================================
    # ROUTING
    # ============================================
    routing_config_path: str = "config.json"

    # ============================================
    # OUTBOUND DELIVERY
    # ============================================
    http_timeout_seconds: float = 10.0
    delivery_max_attempts: int = 3
    delivery_backoff_base_ms: int = 100
    terminal_failure_policy: Literal["retry", "dead_letter", "drop"] = "dead_letter"

    # ============================================
    # QUEUE WORKER
    # ============================================
    worker_max_concurrent: int = 10
    worker_poll_interval: float = 0.5
    worker_batch_size: int = 1
    queue_redelivery_delays: list[float] = [1, 5, 10, 30, 60]

    # ============================================
    # LOGGING
    # ============================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    enable_structured_logging: bool = False  # Set to True for production JSON logs

    # ============================================
    # ENVIRONMENT
    # ============================================
    environment: Literal["development", "staging", "production"] = "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Singleton pattern for settings.
    Uses LRU cache to ensure only one Settings instance exists.
    """
    return Settings()


def load_routing_config(path: str | Path) -> RelayConfig:
    """
    Read and validate the routing file.

    Args:
        path: Location of the JSON routing file

    Returns:
        Frozen routing configuration

    Raises:
        ConfigurationError: If the file is missing, not JSON, or invalid
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Failed to read routing config {path}: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Routing config {path} is not valid JSON: {e}") from e

    try:
        return RelayConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Routing config {path} is invalid: {e}") from e

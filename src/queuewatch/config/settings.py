"""
Application settings with environment variable support.

Uses Pydantic Settings for type-safe configuration with automatic
environment variable loading and validation.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from queuewatch.config.constants import (
    DEFAULT_API_HOST,
    DEFAULT_API_PORT,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_HISTORY_DEPTH,
    DEFAULT_PAGE_URL,
    DEFAULT_RECONNECT_PROBE_INTERVAL,
    DEFAULT_SCRAPE_INTERVAL,
    DEFAULT_SCRAPE_RETRY_BUDGET,
    DEFAULT_SCRAPE_TIMEOUT,
    DEFAULT_SIMULATION_ADVANCE_PROBABILITY,
    DEFAULT_SIMULATION_START_QUEUE,
    DEFAULT_SIMULATION_TICK_INTERVAL,
    DEFAULT_STALL_TIMEOUT,
    DEFAULT_STREAM_RETRY_BUDGET,
    DEFAULT_STREAM_URL,
    MAX_RECONNECT_DELAY,
    MIN_RECONNECT_DELAY,
    RECONNECT_MULTIPLIER,
)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables. Tests build
    Settings directly with shrunk budgets and intervals.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Upstream
    # =========================================================================

    stream_url: str = Field(
        default=DEFAULT_STREAM_URL,
        description="Server-Sent Events endpoint of the upstream queue",
    )
    page_url: str = Field(
        default=DEFAULT_PAGE_URL,
        description="Rendered queue page with the embedded state blob",
    )
    verify_ssl: bool = Field(
        default=True,
        description="Verify the upstream TLS certificate",
    )

    # =========================================================================
    # Query API
    # =========================================================================

    host: str = Field(default=DEFAULT_API_HOST, description="API bind address")
    port: int = Field(default=DEFAULT_API_PORT, ge=1, le=65535, description="API bind port")

    # =========================================================================
    # Timeouts
    # =========================================================================

    connect_timeout: float = Field(
        default=DEFAULT_CONNECT_TIMEOUT,
        gt=0.0,
        description="Seconds allowed for the stream handshake",
    )
    stall_timeout: float = Field(
        default=DEFAULT_STALL_TIMEOUT,
        gt=0.0,
        description="Seconds without a stream frame before the connection is stalled",
    )
    scrape_timeout: float = Field(
        default=DEFAULT_SCRAPE_TIMEOUT,
        gt=0.0,
        description="Total seconds allowed for one page fetch",
    )

    # =========================================================================
    # Retry Budgets & Backoff
    # =========================================================================

    stream_retry_budget: int = Field(
        default=DEFAULT_STREAM_RETRY_BUDGET,
        ge=1,
        description="Consecutive stream failures before falling back to scraping",
    )
    scrape_retry_budget: int = Field(
        default=DEFAULT_SCRAPE_RETRY_BUDGET,
        ge=1,
        description="Consecutive scrape failures before falling back to simulation",
    )
    backoff_initial: float = Field(
        default=MIN_RECONNECT_DELAY,
        ge=0.0,
        description="First reconnect delay in seconds",
    )
    backoff_max: float = Field(
        default=MAX_RECONNECT_DELAY,
        ge=0.0,
        description="Reconnect delay ceiling in seconds",
    )
    backoff_multiplier: float = Field(
        default=RECONNECT_MULTIPLIER,
        ge=1.0,
        description="Growth factor between reconnect delays",
    )

    # =========================================================================
    # Polling & Simulation
    # =========================================================================

    scrape_interval: float = Field(
        default=DEFAULT_SCRAPE_INTERVAL,
        gt=0.0,
        description="Seconds between page fetches in scraping mode",
    )
    reconnect_probe_interval: float = Field(
        default=DEFAULT_RECONNECT_PROBE_INTERVAL,
        gt=0.0,
        description="Seconds between background stream probes while degraded",
    )
    simulation_tick_interval: float = Field(
        default=DEFAULT_SIMULATION_TICK_INTERVAL,
        gt=0.0,
        description="Seconds between simulated queue ticks",
    )
    simulation_advance_probability: float = Field(
        default=DEFAULT_SIMULATION_ADVANCE_PROBABILITY,
        ge=0.0,
        le=1.0,
        description="Chance that a simulated tick serves the next number",
    )
    simulation_start_queue: int = Field(
        default=DEFAULT_SIMULATION_START_QUEUE,
        ge=1,
        description="First queue number served by the simulator",
    )
    history_depth: int = Field(
        default=DEFAULT_HISTORY_DEPTH,
        ge=1,
        le=20,
        description="Completed numbers remembered per counter",
    )

    # =========================================================================
    # Operation
    # =========================================================================

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file path",
    )
    use_uvloop: bool = Field(
        default=True,
        description="Use uvloop for the event loop",
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("stream_url", "page_url", mode="after")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Ensure upstream URLs are HTTP(S)."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Upstream URL must be http(s): {v}")
        return v

    @model_validator(mode="after")
    def validate_backoff(self) -> "Settings":
        """Ensure the backoff ceiling is not below the first delay."""
        if self.backoff_max < self.backoff_initial:
            raise ValueError("backoff_max must be >= backoff_initial")
        return self

    # =========================================================================
    # Computed Properties
    # =========================================================================

    def backoff_delay(self, failures: int) -> float:
        """Reconnect delay after the given number of consecutive failures."""
        if failures <= 0:
            return 0.0
        delay = self.backoff_initial * self.backoff_multiplier ** (failures - 1)
        return min(delay, self.backoff_max)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are loaded only once.
    Clear cache with `get_settings.cache_clear()` if needed.
    """
    return Settings()

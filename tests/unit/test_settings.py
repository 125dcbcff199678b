"""
Unit tests for Settings.

Tests defaults, validation, environment overrides and backoff delays.
"""

import pytest
from pydantic import ValidationError

from queuewatch.config.constants import DEFAULT_PAGE_URL, DEFAULT_STREAM_URL
from queuewatch.config.settings import Settings


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test documented defaults."""
        for name in ("PORT", "STREAM_RETRY_BUDGET", "SCRAPE_RETRY_BUDGET", "HISTORY_DEPTH"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.stream_url == DEFAULT_STREAM_URL
        assert settings.page_url == DEFAULT_PAGE_URL
        assert settings.port == 3000
        assert settings.stream_retry_budget == 5
        assert settings.scrape_retry_budget == 3
        assert settings.scrape_interval == 20
        assert settings.reconnect_probe_interval == 60
        assert settings.simulation_tick_interval == 30
        assert settings.history_depth == 3

    def test_environment_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test values are read from the environment."""
        monkeypatch.setenv("STREAM_RETRY_BUDGET", "2")
        monkeypatch.setenv("PORT", "8080")

        settings = Settings(_env_file=None)

        assert settings.stream_retry_budget == 2
        assert settings.port == 8080

    def test_rejects_non_http_url(self) -> None:
        """Test upstream URLs must be http(s)."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, stream_url="ftp://example.com/stream")

    def test_rejects_inverted_backoff(self) -> None:
        """Test the backoff ceiling cannot be below the first delay."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, backoff_initial=10, backoff_max=1)

    def test_rejects_zero_budget(self) -> None:
        """Test retry budgets must be at least one."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, stream_retry_budget=0)

    def test_backoff_delay(self) -> None:
        """Test exponential growth capped at the ceiling."""
        settings = Settings(
            _env_file=None,
            backoff_initial=1,
            backoff_max=30,
            backoff_multiplier=2,
        )

        delays = [settings.backoff_delay(n) for n in range(0, 8)]

        assert delays == [0, 1, 2, 4, 8, 16, 30, 30]

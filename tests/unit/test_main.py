"""
Unit tests for the entry point.

Tests that an unusable API address is the one fatal startup condition.
"""

import socket
from collections.abc import Iterator

import pytest

from queuewatch.__main__ import bind_socket, main
from queuewatch.config.settings import get_settings


@pytest.fixture
def occupied_port() -> Iterator[int]:
    """Hold a listening socket on a loopback port for the test."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    yield sock.getsockname()[1]
    sock.close()


@pytest.fixture
def fresh_settings() -> Iterator[None]:
    """Make get_settings() re-read the environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestBindSocket:
    """Tests for bind_socket."""

    def test_binds_free_port(self) -> None:
        """Test a free port is bound and inheritable."""
        sock = bind_socket("127.0.0.1", 0)
        try:
            assert sock.getsockname()[1] > 0
            assert sock.get_inheritable()
        finally:
            sock.close()

    def test_port_in_use(self, occupied_port: int) -> None:
        """Test binding a port with a listener raises OSError."""
        with pytest.raises(OSError):
            bind_socket("127.0.0.1", occupied_port)


class TestMain:
    """Tests for main()."""

    def test_exits_with_status_one_when_port_in_use(
        self,
        occupied_port: int,
        fresh_settings: None,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Test main logs CRITICAL and returns 1 when the API cannot bind."""
        monkeypatch.setenv("HOST", "127.0.0.1")
        monkeypatch.setenv("PORT", str(occupied_port))
        monkeypatch.setenv("USE_UVLOOP", "false")
        monkeypatch.delenv("LOG_FILE", raising=False)

        assert main() == 1

        out = capsys.readouterr().out
        assert "CRITICAL" in out
        assert f"[MAIN] Cannot bind 127.0.0.1:{occupied_port}" in out

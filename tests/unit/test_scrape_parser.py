"""
Unit tests for the page scraper's embedded state extraction.

Tests locating, unescaping and decoding the queueOnlineDataFirst blob.
"""

from typing import Any

import pytest

from queuewatch.core.errors import DecodeFailure, EmbeddedStateNotFound, ProtocolFailure
from queuewatch.core.types import SnapshotSource
from queuewatch.upstream.scrape import extract_embedded_state, parse_page, unescape_js_string
from tests.mocks.sse_server import render_page


class TestExtractEmbeddedState:
    """Tests for extract_embedded_state."""

    def test_html_escaped_assignment(self) -> None:
        """Test &quot; entities are unescaped."""
        page = render_page({"currentQueue": 4015})

        assert extract_embedded_state(page) == '{"currentQueue":4015}'

    def test_assignment_among_other_scripts(self) -> None:
        """Test the right script is found among several."""
        page = (
            "<html><body>"
            "<script src='/app.js'></script>"
            "<script>var other = 'x';</script>"
            "<script>\n  var queueOnlineDataFirst = '{&quot;queue&quot;: []}';\n</script>"
            "</body></html>"
        )

        assert extract_embedded_state(page) == '{"queue": []}'

    def test_missing_assignment(self) -> None:
        """Test a page without the state raises EmbeddedStateNotFound."""
        with pytest.raises(EmbeddedStateNotFound):
            extract_embedded_state(render_page(None))

    def test_marker_without_assignment(self) -> None:
        """Test the marker alone is not enough."""
        page = "<script>render(queueOnlineDataFirst);</script>"

        with pytest.raises(EmbeddedStateNotFound):
            extract_embedded_state(page)

    def test_not_found_is_protocol_failure(self) -> None:
        """Test the error taxonomy."""
        with pytest.raises(ProtocolFailure) as exc_info:
            extract_embedded_state("<html></html>")

        assert exc_info.value.describe().startswith("not_found:")

    def test_unescape_js_string(self) -> None:
        """Test entity and quote unescaping."""
        assert unescape_js_string("{&quot;name&quot;: &quot;O\\'Neil &amp; co&quot;}") == (
            '{"name": "O\'Neil & co"}'
        )


class TestParsePage:
    """Tests for parse_page."""

    def test_parse_page(self, upstream_document: dict[str, Any]) -> None:
        """Test a full page decodes to a scraped snapshot."""
        snapshot = parse_page(render_page(upstream_document))

        assert snapshot.current_queue == 4015
        assert snapshot.counter_no == "2"
        assert [entry.queue_no for entry in snapshot.waiting] == [4016, 4017]
        assert snapshot.source is SnapshotSource.SCRAPED

    def test_invalid_json(self) -> None:
        """Test an assignment that is not JSON raises DecodeFailure."""
        page = "<script>var queueOnlineDataFirst = '{&quot;currentQueue&quot;: ';</script>"

        with pytest.raises(DecodeFailure):
            parse_page(page)

    def test_wrong_shape(self) -> None:
        """Test JSON without queue fields raises DecodeFailure."""
        page = "<script>var queueOnlineDataFirst = '{&quot;status&quot;: 1}';</script>"

        with pytest.raises(DecodeFailure):
            parse_page(page)

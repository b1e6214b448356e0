"""Tests for URL detection and documentation fetching (mocked HTTP)."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from errorwise.analysis.url_context import detect_urls, fetch_url_context, html_to_text

PAGE = """<html><head><title>TypeError - MDN</title><style>body { color: red; }</style></head>
<body><script>track()</script><h1>TypeError</h1><p>The TypeError object represents an error.</p></body></html>"""


def _make_httpx_response(status_code: int, text: str, url: str) -> httpx.Response:
    return httpx.Response(status_code, text=text, request=httpx.Request("GET", url))


class TestDetectUrls:
    def test_finds_urls_in_order(self):
        text = "See https://docs.python.org/3/library/json.html and http://example.com/a?b=1 for details"
        assert detect_urls(text) == ["https://docs.python.org/3/library/json.html", "http://example.com/a?b=1"]

    def test_skips_local_and_media(self):
        text = "http://localhost:3000/api http://127.0.0.1/x https://cdn.example.com/shot.png https://ok.example.com/doc"
        assert detect_urls(text) == ["https://ok.example.com/doc"]

    def test_strips_trailing_punctuation_and_dedupes(self):
        text = "Read https://example.com/guide. Then https://example.com/guide again."
        assert detect_urls(text) == ["https://example.com/guide"]

    def test_empty(self):
        assert detect_urls("") == []
        assert detect_urls(None) == []


class TestHtmlToText:
    def test_strips_markup(self):
        text = html_to_text(PAGE)
        assert "track()" not in text
        assert "color: red" not in text
        assert "<" not in text
        assert "The TypeError object represents an error." in text

    def test_truncates(self):
        text = html_to_text("<p>" + "word " * 1000 + "</p>", max_chars=100)
        assert len(text) == 103
        assert text.endswith("...")


class TestFetchUrlContext:
    @pytest.mark.asyncio
    async def test_fetches_and_skips_failures(self):
        good_url = "https://developer.mozilla.org/TypeError"
        bad_url = "https://broken.example.com/page"

        with patch("errorwise.analysis.url_context.httpx.AsyncClient") as mock_client_cls:
            mock_client = AsyncMock()
            mock_client.get.side_effect = [
                _make_httpx_response(200, PAGE, good_url),
                httpx.ConnectError("connection refused"),
            ]
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=None)
            mock_client_cls.return_value = mock_client

            results = await fetch_url_context(f"Error, see {good_url} and {bad_url}")

        assert len(results) == 1
        assert results[0].url == good_url
        assert results[0].title == "TypeError - MDN"
        assert "represents an error" in results[0].content

    @pytest.mark.asyncio
    async def test_http_error_status_skipped(self):
        url = "https://example.com/missing"
        with patch("errorwise.analysis.url_context.httpx.AsyncClient") as mock_client_cls:
            mock_client = AsyncMock()
            mock_client.get.return_value = _make_httpx_response(404, "not found", url)
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=None)
            mock_client_cls.return_value = mock_client

            assert await fetch_url_context(f"see {url}") == []

    @pytest.mark.asyncio
    async def test_respects_max_urls(self):
        text = " ".join(f"https://example.com/{i}" for i in range(5))
        with patch("errorwise.analysis.url_context.httpx.AsyncClient") as mock_client_cls:
            mock_client = AsyncMock()
            mock_client.get.return_value = _make_httpx_response(200, PAGE, "https://example.com/0")
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=None)
            mock_client_cls.return_value = mock_client

            results = await fetch_url_context(text, max_urls=2)

        assert len(results) == 2
        assert mock_client.get.await_count == 2

    @pytest.mark.asyncio
    async def test_no_urls_no_client(self):
        with patch("errorwise.analysis.url_context.httpx.AsyncClient") as mock_client_cls:
            assert await fetch_url_context("TypeError without links") == []
        mock_client_cls.assert_not_called()

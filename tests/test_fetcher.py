"""Test HTML fetching with fallback transports."""
import asyncio

import httpx
import pytest
from ingestion.errors import ExtractionError
from ingestion.fetcher import HTMLFetcher, looks_like_html, normalize_url


PAGE = "<html><body>" + "<p>Readable paragraph text.</p>" * 30 + "</body></html>"
PROXY = "https://proxy.test/raw?url={url}"


def make_fetcher(handler, proxies=None, attempts=2):
    return HTMLFetcher(
        proxies=[PROXY] if proxies is None else proxies,
        attempts=attempts,
        backoff=0,
        transport=httpx.MockTransport(handler)
    )


def test_normalize_url():
    """Test scheme handling."""
    assert normalize_url("example.com/a") == "https://example.com/a"
    assert normalize_url("  http://example.com ") == "http://example.com"
    assert normalize_url("HTTPS://example.com") == "HTTPS://example.com"


def test_looks_like_html():
    """Test the HTML payload check."""
    assert looks_like_html(PAGE)
    assert not looks_like_html("<html></html>")
    assert not looks_like_html("x" * 1000)


def test_direct_fetch():
    """Test a successful direct fetch."""
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, text=PAGE)

    html = asyncio.run(make_fetcher(handler).fetch_html("https://example.com/a"))

    assert html == PAGE
    assert len(seen) == 1
    assert "Mozilla" in seen[0].headers["user-agent"]


def test_falls_back_to_proxy():
    """Test that a blocked origin is fetched through a proxy."""
    seen = []

    def handler(request):
        seen.append(request.url.host)
        if request.url.host == "example.com":
            return httpx.Response(403, text="Forbidden")
        assert request.url.params["url"] == "https://example.com/a"
        return httpx.Response(200, text=PAGE)

    html = asyncio.run(make_fetcher(handler).fetch_html("https://example.com/a"))

    assert html == PAGE
    # Client errors are not retried
    assert seen == ["example.com", "proxy.test"]


def test_retries_server_errors():
    """Test that transient failures are retried on the same transport."""
    calls = []

    def handler(request):
        calls.append(request.url.host)
        if len(calls) == 1:
            return httpx.Response(503, text="busy")
        return httpx.Response(200, text=PAGE)

    html = asyncio.run(make_fetcher(handler).fetch_html("https://example.com/a"))

    assert html == PAGE
    assert calls == ["example.com", "example.com"]


def test_retries_timeouts():
    """Test that timeouts count as transient."""
    calls = []

    def handler(request):
        calls.append(request.url.host)
        if len(calls) == 1:
            raise httpx.ConnectTimeout("timed out", request=request)
        return httpx.Response(200, text=PAGE)

    assert asyncio.run(make_fetcher(handler).fetch_html("https://example.com/a")) == PAGE
    assert len(calls) == 2


def test_rejects_non_html_payload():
    """Test that an error stub is not accepted as a page."""
    def handler(request):
        if request.url.host == "example.com":
            return httpx.Response(200, text="Please enable JavaScript")
        return httpx.Response(200, text=PAGE)

    assert asyncio.run(make_fetcher(handler).fetch_html("https://example.com/a")) == PAGE


def test_all_transports_fail():
    """Test the error after every transport is exhausted."""
    def handler(request):
        return httpx.Response(500, text="down")

    fetcher = make_fetcher(handler, proxies=[PROXY, "https://other.test/?{url}"])

    with pytest.raises(ExtractionError, match="save|saving"):
        asyncio.run(fetcher.fetch_html("https://example.com/a"))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

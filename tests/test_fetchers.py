# tests/test_fetchers.py
import pytest
import requests

from app.config import Settings
from app.errors import FetchError
from app.fetchers import FirecrawlFetcher, JinaFetcher, build_fetcher, check_url
from conftest import FakeResponse, FakeSession


@pytest.mark.parametrize("url,expected", [
    ("https://events.example.com/a", None),
    ("", "empty_url"),
    ("ftp://events.example.com/a", "bad_scheme"),
    ("file:///etc/passwd", "bad_scheme"),
    ("https://", "missing_host"),
])
def test_check_url(url, expected):
    assert check_url(url) == expected


def test_firecrawl_returns_markdown():
    session = FakeSession(FakeResponse(json_body={"success": True, "data": {"markdown": "  # Expo\n"}}))
    fetcher = FirecrawlFetcher("fc-key", base_url="https://fc.test/", timeout=12, session=session)
    assert fetcher.fetch("https://events.example.com/a") == "# Expo"
    method, url, kwargs = session.requests[0]
    assert (method, url) == ("POST", "https://fc.test/v1/scrape")
    assert kwargs["json"] == {"url": "https://events.example.com/a", "formats": ["markdown"], "onlyMainContent": False}
    assert kwargs["headers"]["Authorization"] == "Bearer fc-key"
    assert kwargs["timeout"] == 12


@pytest.mark.parametrize("response,fragment", [
    (FakeResponse(status_code=429, text="rate limited"), "HTTP 429"),
    (FakeResponse(json_body={"success": False, "error": "blocked"}), "blocked"),
    (FakeResponse(json_body={"success": True, "data": {"markdown": ""}}), "No content"),
    (FakeResponse(text="<html>"), "invalid JSON"),
])
def test_firecrawl_failures_carry_url(response, fragment):
    fetcher = FirecrawlFetcher("fc-key", session=FakeSession(response))
    with pytest.raises(FetchError) as exc:
        fetcher.fetch("https://events.example.com/a")
    assert exc.value.url == "https://events.example.com/a"
    assert "https://events.example.com/a" in str(exc.value)
    assert fragment in str(exc.value)


def test_firecrawl_network_error():
    fetcher = FirecrawlFetcher("fc-key", session=FakeSession(error=requests.Timeout("read timed out")))
    with pytest.raises(FetchError, match="read timed out"):
        fetcher.fetch("https://events.example.com/a")


def test_rejects_bad_url_without_calling_service():
    session = FakeSession(FakeResponse())
    with pytest.raises(FetchError, match="bad_scheme"):
        FirecrawlFetcher("fc-key", session=session).fetch("javascript:alert(1)")
    assert session.requests == []


def test_jina_reader():
    session = FakeSession(FakeResponse(text="# Night Market\nFri-Sun"))
    fetcher = JinaFetcher("jina-key", session=session)
    assert fetcher.fetch("https://events.example.com/m") == "# Night Market\nFri-Sun"
    method, url, kwargs = session.requests[0]
    assert url == "https://r.jina.ai/https://events.example.com/m"
    assert kwargs["headers"]["X-Return-Format"] == "markdown"


def test_jina_empty_body_is_failure():
    fetcher = JinaFetcher("jina-key", session=FakeSession(FakeResponse(text="   ")))
    with pytest.raises(FetchError, match="No content returned from Jina API"):
        fetcher.fetch("https://events.example.com/m")


def test_build_fetcher_follows_settings():
    assert isinstance(build_fetcher(Settings(firecrawl_api_key="k")), FirecrawlFetcher)
    assert isinstance(build_fetcher(Settings(content_fetcher="jina", jina_api_key="k")), JinaFetcher)

# app/fetchers.py
"""Content fetch strategies: turn a listing URL into page markdown.

Both strategies call a hosted reader API over HTTP with `requests` and raise
`FetchError` (carrying the URL) on any failure, including an empty page.
"""
from typing import Optional
from urllib.parse import urlparse
import requests
from .config import Settings, FETCHER_JINA
from .errors import FetchError
from .utils import logger

USER_AGENT = "EventIngest/1.0"


def check_url(url: str) -> Optional[str]:
    """Return an error string if `url` is not a fetchable http(s) URL."""
    if not url:
        return "empty_url"
    try:
        p = urlparse(url)
    except ValueError:
        return "invalid_url"
    if p.scheme not in ("http", "https"):
        return "bad_scheme"
    if not p.hostname:
        return "missing_host"
    return None


class FirecrawlFetcher:
    name = "firecrawl"

    def __init__(self, api_key: str, base_url: str = "https://api.firecrawl.dev", timeout: float = 60.0, session=None):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self, url: str) -> str:
        err = check_url(url)
        if err:
            raise FetchError(url, err)
        logger.info("Scraping %s with Firecrawl", url)
        try:
            resp = self.session.post(
                f"{self.base_url}/v1/scrape",
                json={"url": url, "formats": ["markdown"], "onlyMainContent": False},
                headers={"Authorization": f"Bearer {self.api_key}", "User-Agent": USER_AGENT},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise FetchError(url, e) from e
        if resp.status_code >= 400:
            raise FetchError(url, f"HTTP {resp.status_code}: {resp.text[:200]}")
        try:
            body = resp.json()
        except ValueError as e:
            raise FetchError(url, "Firecrawl returned invalid JSON") from e
        if not isinstance(body, dict):
            raise FetchError(url, "Firecrawl returned no result")
        if body.get("success") is False:
            raise FetchError(url, body.get("error") or "Firecrawl reported failure")
        data = body.get("data") or body
        markdown = (data.get("markdown") or "").strip() if isinstance(data, dict) else ""
        if not markdown:
            raise FetchError(url, "No content returned")
        return markdown


class JinaFetcher:
    name = "jina"
    base_url = "https://r.jina.ai/"

    def __init__(self, api_key: str, timeout: float = 60.0, session=None):
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self, url: str) -> str:
        err = check_url(url)
        if err:
            raise FetchError(url, err)
        logger.info("Scraping %s with Jina Reader", url)
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "X-Return-Format": "markdown",
            "User-Agent": USER_AGENT,
        }
        try:
            resp = self.session.get(f"{self.base_url}{url}", headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(url, e) from e
        if resp.status_code >= 400:
            raise FetchError(url, f"Jina API error: {resp.status_code} {resp.reason}")
        markdown = (resp.text or "").strip()
        if not markdown:
            raise FetchError(url, "No content returned from Jina API")
        return markdown


def build_fetcher(settings: Settings):
    if settings.content_fetcher == FETCHER_JINA:
        return JinaFetcher(settings.jina_api_key, timeout=settings.fetch_timeout_seconds)
    return FirecrawlFetcher(
        settings.firecrawl_api_key,
        base_url=settings.firecrawl_api_url,
        timeout=settings.fetch_timeout_seconds,
    )

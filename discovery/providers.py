"""
Search providers behind one interface: query(q, num) -> [{title, link, snippet}].

SerpApiProvider is the keyed primary; DuckDuckGoProvider scrapes the keyless
HTML endpoint and serves as the fallback.
"""

import logging
from typing import Optional, Protocol
from urllib.parse import parse_qs, urlparse

import requests
from bs4 import BeautifulSoup

from errors import SearchProviderError

logger = logging.getLogger(__name__)

SERPAPI_URL = "https://serpapi.com/search"
DUCKDUCKGO_URL = "https://html.duckduckgo.com/html/"

BROWSER_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)


class SearchProvider(Protocol):
    name: str

    def query(self, q: str, num: int) -> list[dict]:
        ...


def _is_placeholder(key: Optional[str]) -> bool:
    return not key or key.strip().lower().startswith("your_")


class SerpApiProvider:
    name = "serpapi"

    def __init__(self, api_key: Optional[str], timeout: float = 15.0, session=None):
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return not _is_placeholder(self.api_key)

    def query(self, q: str, num: int) -> list[dict]:
        if not self.configured:
            raise SearchProviderError("SERP_API_KEY is not set")

        try:
            resp = self.session.get(
                SERPAPI_URL,
                params={"q": q, "api_key": self.api_key, "num": num, "engine": "google"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise SearchProviderError(f"SerpAPI request failed: {exc}") from exc

        if resp.status_code != 200:
            raise SearchProviderError(f"SerpAPI returned HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise SearchProviderError("SerpAPI returned invalid JSON") from exc
        if data.get("error"):
            raise SearchProviderError(f"SerpAPI error: {data['error']}")

        return [
            {
                "title":   r.get("title", ""),
                "link":    r.get("link", ""),
                "snippet": r.get("snippet", ""),
            }
            for r in data.get("organic_results", [])
            if r.get("link")
        ]


def _unwrap_ddg_link(href: str) -> str:
    """DuckDuckGo wraps results as //duckduckgo.com/l/?uddg=<encoded target>."""
    if "uddg=" not in href:
        return href
    qs = parse_qs(urlparse(href).query)
    target = qs.get("uddg", [""])[0]
    return target or href


class DuckDuckGoProvider:
    name = "duckduckgo"

    def __init__(self, timeout: float = 15.0, session=None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def query(self, q: str, num: int) -> list[dict]:
        try:
            resp = self.session.get(
                DUCKDUCKGO_URL,
                params={"q": q},
                headers={"User-Agent": BROWSER_UA},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise SearchProviderError(f"DuckDuckGo request failed: {exc}") from exc

        if resp.status_code != 200:
            raise SearchProviderError(f"DuckDuckGo returned HTTP {resp.status_code}")

        return parse_duckduckgo_html(resp.text, num)


def parse_duckduckgo_html(html: str, num: int) -> list[dict]:
    soup = BeautifulSoup(html, "lxml")
    results = []
    for node in soup.select(".result"):
        if len(results) >= num:
            break
        link_el = node.select_one(".result__title a")
        if link_el is None or not link_el.get("href"):
            continue
        snippet_el = node.select_one(".result__snippet")
        results.append({
            "title":   link_el.get_text(strip=True),
            "link":    _unwrap_ddg_link(link_el["href"]),
            "snippet": snippet_el.get_text(strip=True) if snippet_el else "",
        })
    logger.debug("Parsed %d DuckDuckGo results", len(results))
    return results

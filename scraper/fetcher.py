"""
Static page fetcher for competitor articles.
"""

import logging
from typing import Optional

import requests

from scraper.browser import is_blocked, render_page

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}


class PageFetcher:
    """
    Fetch raw HTML with a browser user agent and a bounded timeout.
    Failures are logged and reported as None; nothing is retried.
    """

    def __init__(self, timeout: float = 15.0, browser_fallback: bool = False, session=None):
        self.timeout = timeout
        self.browser_fallback = browser_fallback
        self.session = session or requests.Session()

    def fetch(self, url: str) -> Optional[str]:
        try:
            resp = self.session.get(url, headers=DEFAULT_HEADERS, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("Failed to fetch %s: %s", url, exc)
            return None

        html = resp.text or ""
        if self.browser_fallback and is_blocked(html, resp.status_code):
            logger.warning("Static fetch of %s looks blocked (status=%d)", url, resp.status_code)
            return render_page(url, timeout=self.timeout * 2)

        if not 200 <= resp.status_code < 300:
            logger.warning("Fetching %s returned HTTP %d", url, resp.status_code)
            return None

        content_type = resp.headers.get("Content-Type", "")
        if content_type and "html" not in content_type.lower():
            logger.warning("Skipping %s: not an HTML page (%s)", url, content_type)
            return None

        logger.debug("Fetched %s (%d chars)", url, len(html))
        return html

"""
Competitor discovery: turn an article title into a short list of external
blog/article URLs covering the same topic.
"""

import logging
from typing import Optional
from urllib.parse import urlparse

from models import CompetitorCandidate

logger = logging.getLogger(__name__)

DEFAULT_QUERY_SUFFIX = "blog article guide"
EXTRA_RESULTS = 5

# Pages that are never articles we can learn from
_EXCLUDE_HOSTS = (
    "youtube.com", "youtu.be",
    "twitter.com", "x.com",
    "facebook.com", "instagram.com",
    "wikipedia.org",
    "amazon.com", "ebay.com",
)

_EXCLUDE_URL_PATTERNS = (
    "linkedin.com/company", "linkedin.com/in/",
    ".pdf", ".doc", ".ppt",
    "/login", "/signup", "/register",
    "/shop", "/product", "/cart",
)

_ARTICLE_PATH_PATTERNS = (
    "/blog", "/article", "/post", "/news",
    "/guide", "/how-to", "/tutorial",
    "/insights", "/resources", "/learn",
)

_ARTICLE_TITLE_KEYWORDS = ("how to", "guide", "tips", "ways", "best", "top", "complete")


def _host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


def is_blog_or_article(url: str, title: str = "") -> bool:
    """Heuristic: does this search result look like a readable article page?"""
    lower_url = (url or "").lower()
    lower_title = (title or "").lower()

    parsed = urlparse(lower_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False

    host = parsed.netloc.split(":")[0]
    if any(_host_matches(host, d) for d in _EXCLUDE_HOSTS):
        return False
    if any(p in lower_url for p in _EXCLUDE_URL_PATTERNS):
        return False

    if any(p in parsed.path for p in _ARTICLE_PATH_PATTERNS):
        return True

    if any(kw in lower_title for kw in _ARTICLE_TITLE_KEYWORDS):
        return True

    # Default accept, except a bare site root
    return parsed.path not in ("", "/")


def _host(url: str) -> str:
    host = urlparse(url).netloc.lower()
    return host.split(":")[0]


def _is_own_domain(url: str, domain: Optional[str]) -> bool:
    if not domain:
        return False
    return _host_matches(_host(url), domain.lower())


def _url_key(url: str) -> str:
    parsed = urlparse(url)
    return (parsed.netloc.lower() + parsed.path.rstrip("/") + ("?" + parsed.query if parsed.query else ""))


class CompetitorDiscovery:
    """
    Query the primary provider, falling back to the secondary one on any error
    or when the primary yields nothing usable.
    """

    def __init__(
        self,
        primary,
        fallback=None,
        exclude_domain: Optional[str] = None,
        query_suffix: str = DEFAULT_QUERY_SUFFIX,
    ):
        self.primary = primary
        self.fallback = fallback
        self.exclude_domain = exclude_domain
        self.query_suffix = query_suffix

    def build_query(self, topic: str) -> str:
        parts = [topic.strip()]
        if self.query_suffix:
            parts.append(self.query_suffix)
        if self.exclude_domain:
            parts.append(f"-site:{self.exclude_domain}")
        return " ".join(parts)

    def filter_results(self, results: list[dict], count: int) -> list[CompetitorCandidate]:
        candidates = []
        seen = set()
        for r in results:
            url = (r.get("link") or "").strip()
            title = (r.get("title") or "").strip()
            if not url or not title:
                continue
            if _is_own_domain(url, self.exclude_domain):
                continue
            if not is_blog_or_article(url, title):
                logger.debug("Rejected non-article result %s", url)
                continue
            key = _url_key(url)
            if key in seen:
                continue
            seen.add(key)
            candidates.append(CompetitorCandidate(title=title, url=url, snippet=(r.get("snippet") or "").strip()))
            if len(candidates) >= count:
                break
        return candidates

    def _providers(self) -> list:
        providers = []
        if self.primary is not None and getattr(self.primary, "configured", True):
            providers.append(self.primary)
        elif self.primary is not None:
            logger.info("Primary search provider %s not configured — using fallback", self.primary.name)
        if self.fallback is not None:
            providers.append(self.fallback)
        return providers

    def discover(self, topic: str, count: int) -> list[CompetitorCandidate]:
        """Return at most `count` candidates; an empty list when nothing is found."""
        query = self.build_query(topic)
        logger.info("Searching for competitors of '%s'", topic)

        for provider in self._providers():
            try:
                results = provider.query(query, count + EXTRA_RESULTS)
            except Exception as exc:
                logger.warning("Search via %s failed: %s", provider.name, exc)
                continue

            candidates = self.filter_results(results, count)
            if candidates:
                logger.info(
                    "Found %d competitor article(s) via %s (%d raw results)",
                    len(candidates), provider.name, len(results),
                )
                return candidates
            logger.warning("No usable results from %s for '%s'", provider.name, topic)

        return []

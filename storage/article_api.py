"""
Client for the article storage service (REST, JSON envelopes of the form
{"success": bool, "data": ...}).
"""

import logging
import os
from typing import Optional

import requests

from errors import ArticleApiError, PublishError
from models import STATUS_ORIGINAL, STATUS_UPDATED, SourceArticle

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:8000/api"
PAGE_SIZE = 200


def _unwrap_list(body) -> list:
    """Accepts {"data": [...]}, paginated {"data": {"data": [...]}}, or a bare list."""
    if isinstance(body, list):
        return body
    if isinstance(body, dict):
        data = body.get("data")
        if isinstance(data, dict):
            data = data.get("data")
        if isinstance(data, list):
            return data
    raise ArticleApiError(f"Unexpected article listing shape: {type(body).__name__}")


class ArticleApiClient:

    def __init__(self, base_url: Optional[str] = None, timeout: float = 30.0, session=None):
        base_url = base_url or os.getenv("ARTICLE_API_URL") or DEFAULT_BASE_URL
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get(self, path: str, params: Optional[dict] = None):
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ArticleApiError(f"GET {url} failed: {exc}") from exc
        if resp.status_code != 200:
            raise ArticleApiError(f"GET {url} returned HTTP {resp.status_code}: {resp.text[:200]}")
        try:
            return resp.json()
        except ValueError as exc:
            raise ArticleApiError(f"GET {url} returned invalid JSON") from exc

    def list_articles(self, status: str) -> list[dict]:
        articles = _unwrap_list(self._get("/articles", {"status": status, "per_page": PAGE_SIZE}))
        logger.info("Fetched %d articles with status '%s'", len(articles), status)
        return articles

    def list_source_articles(self) -> list[SourceArticle]:
        return [SourceArticle.from_api(a) for a in self.list_articles(STATUS_ORIGINAL)]

    def list_derived_urls(self) -> set[str]:
        """original_url of every already-enhanced article."""
        return {a["original_url"] for a in self.list_articles(STATUS_UPDATED) if a.get("original_url")}

    def _get_single(self, path: str) -> SourceArticle:
        body = self._get(path)
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict) or body.get("success") is False:
            raise ArticleApiError(f"No article at {path}")
        return SourceArticle.from_api(data)

    def get_article(self, article_id: int) -> SourceArticle:
        return self._get_single(f"/articles/{article_id}")

    def get_latest_original(self) -> SourceArticle:
        return self._get_single("/articles-latest")

    def create_article(self, payload: dict) -> int:
        """POST a new article; returns its id or raises PublishError."""
        url = f"{self.base_url}/articles"
        try:
            resp = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise PublishError(str(exc)) from exc

        if not 200 <= resp.status_code < 300:
            raise PublishError(f"HTTP {resp.status_code}: {resp.text[:300]}")
        try:
            body = resp.json()
        except ValueError as exc:
            raise PublishError("Storage service returned invalid JSON") from exc

        if not isinstance(body, dict) or body.get("success") is False:
            message = body.get("message") if isinstance(body, dict) else None
            raise PublishError(message or "Failed to publish article")

        data = body.get("data")
        article_id = data.get("id") if isinstance(data, dict) else None
        if article_id is None:
            raise PublishError("Storage service response has no article id")

        logger.info("Published article %s: '%s'", article_id, payload.get("title", "")[:60])
        return article_id

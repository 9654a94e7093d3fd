"""
HTML extraction: readable article body, plain text, excerpt, byline, lead image.

Primary path is readability-lxml; when it yields nothing usable we fall back to
stripping page chrome and probing common content containers with BeautifulSoup.
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from readability import Document

from models import CompetitorCandidate, CompetitorDocument

logger = logging.getLogger(__name__)

MAX_TEXT_CHARS = 10_000
MIN_READABLE_CHARS = 200
MIN_CONTAINER_CHARS = 500
EXCERPT_CHARS = 200

# Tags whose entire subtree we discard in the fallback path
_STRIP_TAGS = ["script", "style", "noscript", "nav", "header", "footer", "aside", "form", "iframe", "svg"]
_STRIP_SELECTORS = ".ads, .advertisement, .sidebar, .ad, [class*='cookie']"

_CONTENT_SELECTORS = (
    "article",
    ".post-content",
    ".article-content",
    ".entry-content",
    ".content-area",
    "main",
    ".blog-post",
)

_BLOCK_TAGS = [
    "p", "div", "section", "article", "li", "ul", "ol", "blockquote", "pre",
    "h1", "h2", "h3", "h4", "h5", "h6", "table", "tr", "figure",
]


@dataclass(frozen=True)
class ExtractedPage:
    title: str
    html: str
    text: str
    excerpt: str
    byline: Optional[str]
    length: int
    image_url: Optional[str]
    method: str


def clean_text(text: str, max_chars: int = MAX_TEXT_CHARS) -> str:
    """Collapse whitespace, normalise paragraph breaks, trim and truncate."""
    lines = [re.sub(r"[ \t\r\f\v\xa0]+", " ", line).strip() for line in (text or "").split("\n")]
    joined = "\n".join(lines)
    joined = re.sub(r"\n{3,}", "\n\n", joined).strip()
    return joined[:max_chars]


def html_to_text(fragment: str) -> str:
    """Plain text of an HTML fragment with a blank line after each block element."""
    soup = BeautifulSoup(fragment or "", "lxml")
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for block in soup.find_all(_BLOCK_TAGS):
        block.insert_after("\n\n")
    return soup.get_text()


def _meta_content(soup: BeautifulSoup, **attrs) -> str:
    tag = soup.find("meta", attrs=attrs)
    return (tag.get("content") or "").strip() if tag else ""


def find_lead_image(soup: BeautifulSoup, page_url: str) -> Optional[str]:
    """og:image first, otherwise the first image inside a content container."""
    og = _meta_content(soup, property="og:image") or _meta_content(soup, name="og:image")
    if og:
        return urljoin(page_url, og)
    img = soup.select_one("article img, main img, .post-content img")
    if img is not None:
        src = img.get("src") or img.get("data-src")
        if src:
            return urljoin(page_url, src.strip())
    return None


def _readability_extract(html: str, page_url: str) -> Optional[tuple[str, str, str]]:
    """Returns (title, body_html, text) or None when readability finds nothing."""
    try:
        doc = Document(html, url=page_url)
        body_html = doc.summary(html_partial=True)
        title = doc.short_title() or doc.title() or ""
    except Exception as exc:
        logger.debug("readability failed on %s: %s", page_url, exc)
        return None

    text = html_to_text(body_html)
    if len(clean_text(text)) < MIN_READABLE_CHARS:
        return None
    return title.strip(), body_html, text


def _fallback_extract(html: str) -> Optional[tuple[str, str, str]]:
    soup = BeautifulSoup(html, "lxml")

    h1 = soup.find("h1")
    title_tag = soup.find("title")
    title = (h1.get_text(" ", strip=True) if h1 else "") or (title_tag.get_text(strip=True) if title_tag else "")

    for tag in soup.find_all(_STRIP_TAGS):
        tag.decompose()
    for tag in soup.select(_STRIP_SELECTORS):
        tag.decompose()

    for selector in _CONTENT_SELECTORS:
        el = soup.select_one(selector)
        if el is not None and len(el.get_text(" ", strip=True)) > MIN_CONTAINER_CHARS:
            return title, str(el), html_to_text(str(el))

    paragraphs = [p.get_text(" ", strip=True) for p in soup.find_all("p")]
    paragraphs = [p for p in paragraphs if p]
    if not paragraphs:
        return None
    body_html = "".join(f"<p>{p}</p>" for p in paragraphs)
    return title, body_html, "\n\n".join(paragraphs)


def extract_readable(html: str, page_url: str, max_chars: int = MAX_TEXT_CHARS) -> Optional[ExtractedPage]:
    """
    Parse raw HTML and return the readable article, or None if there is none.
    """
    if not html or not html.strip():
        return None

    soup = BeautifulSoup(html, "lxml")
    image_url = find_lead_image(soup, page_url)
    byline = _meta_content(soup, name="author") or None
    description = _meta_content(soup, name="description") or _meta_content(soup, property="og:description")

    method = "readability"
    result = _readability_extract(html, page_url)
    if result is None:
        method = "fallback"
        result = _fallback_extract(html)
    if result is None:
        logger.debug("No readable content on %s", page_url)
        return None

    title, body_html, raw_text = result
    text = clean_text(raw_text, max_chars)
    if not text:
        return None

    logger.debug("Extracted %d chars from %s via %s", len(text), page_url, method)
    return ExtractedPage(
        title=title,
        html=body_html,
        text=text,
        excerpt=description or text[:EXCERPT_CHARS],
        byline=byline,
        length=len(text),
        image_url=image_url,
        method=method,
    )


class ArticleExtractor:
    """Fetches competitor pages and turns candidates into CompetitorDocuments."""

    def __init__(self, fetcher, max_text_chars: int = MAX_TEXT_CHARS, workers: int = 1):
        self.fetcher = fetcher
        self.max_text_chars = max_text_chars
        self.workers = max(1, workers)

    def extract(self, candidate: CompetitorCandidate) -> Optional[CompetitorDocument]:
        html = self.fetcher.fetch(candidate.url)
        if html is None:
            logger.warning("Could not fetch %s — dropping candidate", candidate.url)
            return None

        try:
            page = extract_readable(html, candidate.url, self.max_text_chars)
        except Exception as exc:
            logger.warning("Extraction error on %s: %s", candidate.url, exc)
            return None

        if page is None:
            logger.warning("No readable content on %s — dropping candidate", candidate.url)
            return None

        logger.info("Extracted '%s' (%d chars, %s)", candidate.title[:60], page.length, page.method)
        return CompetitorDocument.from_candidate(candidate, page)

    def extract_all(self, candidates: list[CompetitorCandidate]) -> list[CompetitorDocument]:
        """Extract every candidate, keeping input order and dropping failures."""
        if self.workers > 1 and len(candidates) > 1:
            with ThreadPoolExecutor(max_workers=min(self.workers, len(candidates))) as pool:
                documents = list(pool.map(self.extract, candidates))
        else:
            documents = [self.extract(c) for c in candidates]
        return [d for d in documents if d is not None]

"""
Reference block and citation records for the competitors an article drew on.
"""

from html import escape
from urllib.parse import urlparse

from models import CitationRecord, CompetitorDocument

SUMMARY_CHARS = 300
SNIPPET_CHARS = 120
DEFAULT_SNIPPET = "Read the full article to learn more."


def source_host(url: str) -> str:
    host = urlparse(url).hostname or url
    return host[4:] if host.startswith("www.") else host


def _summary(doc: CompetitorDocument) -> str:
    if doc.excerpt:
        return doc.excerpt
    if doc.text:
        return doc.text[:SUMMARY_CHARS]
    return doc.snippet


def _card(doc: CompetitorDocument) -> str:
    snippet = doc.snippet or doc.excerpt or DEFAULT_SNIPPET
    if len(snippet) > SNIPPET_CHARS:
        snippet = snippet[:SNIPPET_CHARS] + "..."

    image = ""
    if doc.image_url:
        image = (
            f'<div class="related-article-image">'
            f'<img src="{escape(doc.image_url)}" alt="{escape(doc.title)}" loading="lazy"></div>'
        )

    return (
        f'<a class="related-article-card" href="{escape(doc.url)}" target="_blank" rel="noopener">'
        f"{image}"
        f'<div class="related-article-body">'
        f'<h4 class="related-article-title">{escape(doc.title)}</h4>'
        f'<p class="related-article-source">Source: {escape(source_host(doc.url))}</p>'
        f'<p class="related-article-snippet">{escape(snippet)}</p>'
        f"</div></a>"
    )


def assemble_citations(competitors: list[CompetitorDocument]) -> tuple[str, list[CitationRecord]]:
    """
    Returns (references_html, records). Pure: no network access, and the same
    input always yields the same output.
    """
    if not competitors:
        return "", []

    records = [
        CitationRecord(url=doc.url, title=doc.title, summary=_summary(doc), image_url=doc.image_url)
        for doc in competitors
    ]
    cards = "".join(_card(doc) for doc in competitors)
    references_html = (
        '\n<section class="related-articles-section">'
        '<h3 class="related-articles-heading">Related Articles</h3>'
        f'<div class="related-articles-grid">{cards}</div>'
        "</section>"
    )
    return references_html, records

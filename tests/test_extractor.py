"""Tests for article extraction."""

from unittest.mock import Mock, patch

from bs4 import BeautifulSoup

from models import CompetitorCandidate
from scraper.extractor import (
    ArticleExtractor,
    _fallback_extract,
    clean_text,
    extract_readable,
    find_lead_image,
)

PARAGRAPH = (
    "Chatbots reduce support costs, shorten response times, and keep customers happy. "
    "Teams that deploy them well see fewer repetitive tickets, faster resolutions, and more time for hard problems. "
)

ARTICLE_HTML = f"""
<html>
<head>
  <title>Chatbot Benefits | Example Blog</title>
  <meta name="description" content="Why chatbots pay for themselves.">
  <meta name="author" content="Jane Writer">
  <meta property="og:image" content="/images/hero.jpg">
</head>
<body>
  <nav><a href="/">Home</a> <a href="/about">About</a></nav>
  <article>
    <h1>Chatbot Benefits</h1>
    <p>{PARAGRAPH}</p>
    <p>{PARAGRAPH}</p>
    <p>{PARAGRAPH}</p>
  </article>
  <footer>Copyright Example Inc</footer>
</body>
</html>
"""


class TestCleanText:

    def test_collapses_whitespace_and_blank_lines(self):
        assert clean_text("  a \t b\xa0c \n\n\n\n d  ") == "a b c\n\nd"

    def test_truncates(self):
        assert clean_text("x" * 50, max_chars=10) == "x" * 10


class TestFindLeadImage:

    def test_prefers_og_image_resolved_against_page(self):
        soup = BeautifulSoup(ARTICLE_HTML, "lxml")

        assert find_lead_image(soup, "https://example.com/blog/post") == "https://example.com/images/hero.jpg"

    def test_falls_back_to_first_article_image(self):
        soup = BeautifulSoup('<article><img src="pic.png"></article>', "lxml")

        assert find_lead_image(soup, "https://example.com/blog/") == "https://example.com/blog/pic.png"

    def test_none_without_images(self):
        assert find_lead_image(BeautifulSoup("<p>text</p>", "lxml"), "https://example.com") is None


class TestExtractReadable:

    def test_extracts_article_body_with_readability(self):
        page = extract_readable(ARTICLE_HTML, "https://example.com/blog/post")

        assert page is not None
        assert page.method == "readability"
        assert "Chatbots reduce support costs" in page.text
        assert "Copyright Example Inc" not in page.text
        assert page.excerpt == "Why chatbots pay for themselves."
        assert page.byline == "Jane Writer"
        assert page.image_url == "https://example.com/images/hero.jpg"
        assert page.length == len(page.text)

    def test_truncates_text(self):
        page = extract_readable(ARTICLE_HTML, "https://example.com/blog/post", max_chars=100)

        assert len(page.text) == 100

    @patch("scraper.extractor._readability_extract", return_value=None)
    def test_uses_fallback_when_readability_finds_nothing(self, _):
        page = extract_readable(ARTICLE_HTML, "https://example.com/blog/post")

        assert page.method == "fallback"
        assert "Chatbots reduce support costs" in page.text
        assert "Home" not in page.text

    def test_empty_html_gives_none(self):
        assert extract_readable("   ", "https://example.com") is None

    def test_excerpt_defaults_to_text_prefix(self):
        html = ARTICLE_HTML.replace('<meta name="description" content="Why chatbots pay for themselves.">', "")

        page = extract_readable(html, "https://example.com/blog/post")

        assert page.excerpt == page.text[:200]


class TestFallbackExtract:

    def test_joins_paragraphs_when_no_container_is_large_enough(self):
        html = "<html><head><title>T</title></head><body><div><p>One.</p><p>Two.</p></div></body></html>"

        title, body_html, text = _fallback_extract(html)

        assert title == "T"
        assert body_html == "<p>One.</p><p>Two.</p>"
        assert text == "One.\n\nTwo."

    def test_none_without_paragraphs(self):
        assert _fallback_extract("<html><body><div>nothing</div></body></html>") is None


class TestArticleExtractor:

    def _candidate(self, n):
        return CompetitorCandidate(title=f"Article {n}", url=f"https://site{n}.com/blog/post", snippet=f"s{n}")

    def test_builds_competitor_document(self):
        fetcher = Mock()
        fetcher.fetch.return_value = ARTICLE_HTML

        doc = ArticleExtractor(fetcher).extract(self._candidate(1))

        assert doc.url == "https://site1.com/blog/post"
        assert doc.title == "Article 1"
        assert "Chatbots reduce support costs" in doc.text
        assert doc.image_url == "https://site1.com/images/hero.jpg"

    def test_drops_unfetchable_candidate(self):
        fetcher = Mock()
        fetcher.fetch.return_value = None

        assert ArticleExtractor(fetcher).extract(self._candidate(1)) is None

    @patch("scraper.extractor.extract_readable", side_effect=ValueError("bad markup"))
    def test_drops_candidate_on_extraction_error(self, _):
        fetcher = Mock()
        fetcher.fetch.return_value = "<html></html>"

        assert ArticleExtractor(fetcher).extract(self._candidate(1)) is None

    def test_extract_all_keeps_order_and_drops_failures(self):
        pages = {
            "https://site1.com/blog/post": ARTICLE_HTML,
            "https://site2.com/blog/post": None,
            "https://site3.com/blog/post": ARTICLE_HTML,
        }
        fetcher = Mock()
        fetcher.fetch.side_effect = lambda url: pages[url]
        candidates = [self._candidate(n) for n in (1, 2, 3)]

        for workers in (1, 3):
            docs = ArticleExtractor(fetcher, workers=workers).extract_all(candidates)

            assert [d.title for d in docs] == ["Article 1", "Article 3"]

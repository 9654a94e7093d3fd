"""Tests for the batch orchestrator."""

from unittest.mock import Mock

import pytest

from analysis.gap_analysis import GapAnalyzer
from conftest import ORIGINAL_BODY, ScriptedGenerator, make_document, make_source
from enhancement.enhancer import ContentEnhancer
from enhancement.markup import MARK_OPEN, strip_additions
from errors import ArticleApiError, ConfigurationError, PreservationError, PublishError
from models import FAILED, SKIPPED, SUCCEEDED, CompetitorCandidate, EnhancementResult, GapAnalysisResult
from pipeline.batch import NO_COMPETITORS, NO_CONTENT, BatchOrchestrator, Stage, select_pending


class FakeStore:
    """In-memory article service: published articles become derived ones."""

    def __init__(self, sources):
        self.sources = list(sources)
        self.published = []

    def list_source_articles(self):
        return list(self.sources)

    def list_derived_urls(self):
        return {p["original_url"] for p in self.published if p.get("original_url")}

    def create_article(self, payload):
        self.published.append(payload)
        return 100 + len(self.published)

    def get_article(self, article_id):
        return next(a for a in self.sources if a.id == article_id)

    def get_latest_original(self):
        return self.sources[-1]


def _candidates(n=2):
    return [
        CompetitorCandidate(title=f"Competitor Article {i}", url=f"https://www.competitor{i}.com/blog/chatbots-{i}")
        for i in range(1, n + 1)
    ]


def _discovery(candidates=None):
    discovery = Mock()
    discovery.discover.return_value = _candidates() if candidates is None else candidates
    return discovery


def _extractor(documents=None):
    extractor = Mock()
    extractor.extract_all.return_value = [make_document(1), make_document(2)] if documents is None else documents
    return extractor


def _orchestrator(store, generator=None, sleep=None, **kwargs):
    generator = generator or ScriptedGenerator()
    kwargs.setdefault("discovery", _discovery())
    kwargs.setdefault("extractor", _extractor())
    kwargs.setdefault("analyzer", GapAnalyzer(generator))
    kwargs.setdefault("enhancer", ContentEnhancer(generator))
    return BatchOrchestrator(store=store, sleep=sleep or Mock(), **kwargs)


def _sources(n):
    return [
        make_source(title=f"Article {i}", id=i, original_url=f"https://beyondchats.com/blogs/article-{i}/")
        for i in range(1, n + 1)
    ]


class TestEndToEnd:

    def test_chatbot_benefits_publish_payload(self):
        store = FakeStore([make_source()])

        summary = _orchestrator(store).run()

        assert summary.succeeded == 1
        payload = store.published[0]
        assert payload["status"] == "updated"
        assert len(payload["competitor_articles"]) == 2
        assert payload["gap_analysis"]["overall_score"] == 7
        assert len(payload["gap_analysis"]["missing"]) == 2
        assert payload["title"] == "Chatbot Benefits: A Complete Guide"
        assert payload["original_url"] == "https://beyondchats.com/blogs/chatbot-benefits/"
        assert payload["references"] == [
            "https://www.competitor1.com/blog/chatbots-1",
            "https://www.competitor2.com/blog/chatbots-2",
        ]

    def test_published_content_preserves_original(self):
        store = FakeStore([make_source()])

        _orchestrator(store).run()

        content = store.published[0]["content"]
        body = content.split('\n<section class="related-articles-section">')[0]
        assert body.count(MARK_OPEN) == 2
        assert strip_additions(body) == ORIGINAL_BODY
        assert 'class="related-articles-section"' in content

    def test_outcome_records_article_id_and_score(self):
        store = FakeStore([make_source()])

        outcome = _orchestrator(store).run().outcomes[0]

        assert outcome.status == SUCCEEDED
        assert outcome.article_id == 101
        assert outcome.score == 7
        assert outcome.stage == Stage.DONE.value


class TestItemOutcomes:

    def test_no_competitors_is_skipped(self):
        outcome = _orchestrator(FakeStore([]), discovery=_discovery([])).process_article(make_source())

        assert (outcome.status, outcome.reason, outcome.stage) == (SKIPPED, NO_COMPETITORS, "discover")

    def test_no_extracted_content_is_skipped(self):
        outcome = _orchestrator(FakeStore([]), extractor=_extractor([])).process_article(make_source())

        assert (outcome.status, outcome.reason, outcome.stage) == (SKIPPED, NO_CONTENT, "extract")

    def test_preservation_violation_is_skipped(self):
        generator = ScriptedGenerator(enhance_responses=["<p>Completely rewritten.</p>"])
        store = FakeStore([])

        outcome = _orchestrator(store, generator).process_article(make_source())

        assert outcome.status == SKIPPED
        assert outcome.stage == "enhance"
        assert store.published == []

    def test_publish_error_is_failed_with_raw_message(self):
        store = FakeStore([])
        store.create_article = Mock(side_effect=PublishError("HTTP 422: title required"))

        outcome = _orchestrator(store).process_article(make_source())

        assert (outcome.status, outcome.reason, outcome.stage) == (FAILED, "HTTP 422: title required", "publish")

    def test_unexpected_error_is_failed(self):
        discovery = Mock()
        discovery.discover.side_effect = RuntimeError("boom")

        outcome = _orchestrator(FakeStore([]), discovery=discovery).process_article(make_source())

        assert (outcome.status, outcome.reason, outcome.stage) == (FAILED, "boom", "discover")

    def test_gap_analysis_failure_does_not_stop_the_item(self):
        generator = ScriptedGenerator(gap_response="not json")
        store = FakeStore([])

        outcome = _orchestrator(store, generator).process_article(make_source())

        assert outcome.status == SUCCEEDED
        assert store.published[0]["gap_analysis"]["overall_score"] == 0

    def test_configuration_error_propagates(self):
        analyzer = Mock()
        analyzer.analyze.side_effect = ConfigurationError("ANTHROPIC_API_KEY is not set")

        with pytest.raises(ConfigurationError):
            _orchestrator(FakeStore([]), analyzer=analyzer).process_article(make_source())

    def test_discovery_uses_title_and_competitor_count(self):
        discovery = _discovery()

        _orchestrator(FakeStore([]), discovery=discovery, competitor_count=3).process_article(make_source())

        discovery.discover.assert_called_once_with("Chatbot Benefits", 3)


class TestRun:

    def test_counts_are_conserved(self):
        class FlakyStore(FakeStore):
            def create_article(self, payload):
                if payload["title"] == "Article 3":
                    raise PublishError("down")
                return super().create_article(payload)

        def enhance(article, documents):
            if article.title == "Article 2":
                raise PreservationError("rewrote paragraph 2")
            return EnhancementResult(title=article.title, body_html=article.content, verified=True)

        discovery = Mock()
        discovery.discover.side_effect = lambda title, n: [] if title == "Article 1" else _candidates()
        enhancer = Mock()
        enhancer.enhance.side_effect = enhance
        store = FlakyStore(_sources(4))
        analyzer = Mock()
        analyzer.analyze.return_value = GapAnalysisResult(overall_score=5)

        summary = _orchestrator(store, discovery=discovery, enhancer=enhancer, analyzer=analyzer).run()

        assert (summary.succeeded, summary.failed, summary.skipped) == (1, 1, 2)
        assert summary.succeeded + summary.failed + summary.skipped == summary.total == 4
        assert summary.failures == [("Article 3", "down")]

    def test_second_run_over_unchanged_store_succeeds_zero(self):
        store = FakeStore(_sources(3))

        first = _orchestrator(store).run()
        second = _orchestrator(store).run()

        assert first.succeeded == 3
        assert second.succeeded == 0
        assert second.total == 0
        assert second.already_enhanced == 3

    def test_success_cap_stops_the_run(self):
        store = FakeStore(_sources(5))
        sleep = Mock()

        summary = _orchestrator(store, sleep=sleep, success_cap=2).run()

        assert summary.succeeded == 2
        assert summary.total == 2
        assert summary.failed == summary.skipped == 0
        assert summary.already_enhanced == 0
        assert summary.cap_reached is True
        assert len(store.published) == 2
        sleep.assert_called_once_with(20)

    def test_pacing_between_items_only(self):
        sleep = Mock()

        _orchestrator(FakeStore(_sources(3)), sleep=sleep, delay_seconds=5).run()

        assert [c.args[0] for c in sleep.call_args_list] == [5, 5]

    def test_source_listing_failure_propagates(self):
        store = Mock()
        store.list_source_articles.side_effect = ArticleApiError("connection refused")

        with pytest.raises(ArticleApiError):
            _orchestrator(store).run()

    def test_derived_listing_failure_disables_dedup(self):
        store = FakeStore(_sources(2))
        store.list_derived_urls = Mock(side_effect=ArticleApiError("timeout"))

        summary = _orchestrator(store).run()

        assert summary.succeeded == 2
        assert summary.already_enhanced == 0

    def test_configuration_error_aborts_run(self):
        analyzer = Mock()
        analyzer.analyze.side_effect = ConfigurationError("ANTHROPIC_API_KEY is not set")

        with pytest.raises(ConfigurationError):
            _orchestrator(FakeStore(_sources(2)), analyzer=analyzer).run()

    def test_summary_to_dict(self):
        summary = _orchestrator(FakeStore(_sources(1))).run()

        data = summary.to_dict()

        assert data["succeeded"] == 1
        assert data["items"][0]["title"] == "Article 1"


class TestSelectPending:

    def test_excludes_enhanced_and_repeated_urls(self):
        sources = [
            make_source(title="A", original_url="https://x.com/a"),
            make_source(title="B", original_url="https://x.com/b"),
            make_source(title="B again", original_url="https://x.com/b"),
            make_source(title="No URL", original_url=None),
            make_source(title="No URL either", original_url=None),
        ]

        pending, already = select_pending(sources, {"https://x.com/a"})

        assert [a.title for a in pending] == ["B", "No URL", "No URL either"]
        assert already == 1


class TestSingleArticle:

    def test_process_single_by_id(self):
        store = FakeStore(_sources(3))

        summary = _orchestrator(store).process_single(2)

        assert summary.total == 1
        assert store.published[0]["original_url"] == "https://beyondchats.com/blogs/article-2/"

    def test_process_latest(self):
        store = FakeStore(_sources(3))

        summary = _orchestrator(store).process_latest()

        assert summary.succeeded == 1
        assert store.published[0]["original_url"] == "https://beyondchats.com/blogs/article-3/"

    def test_latest_is_not_republished(self):
        store = FakeStore(_sources(2))
        orchestrator = _orchestrator(store)

        first = orchestrator.process_latest()
        second = orchestrator.process_latest()

        assert first.succeeded == 1
        assert (second.succeeded, second.total, second.already_enhanced) == (0, 0, 1)
        assert len(store.published) == 1

    def test_single_article_enhanced_by_a_run_is_skipped(self):
        store = FakeStore(_sources(2))
        _orchestrator(store).run()

        summary = _orchestrator(store).process_single(1)

        assert (summary.succeeded, summary.total, summary.already_enhanced) == (0, 0, 1)
        assert len(store.published) == 2

    def test_force_re_enhances(self):
        store = FakeStore(_sources(1))
        _orchestrator(store).run()

        summary = _orchestrator(store).process_single(1, force=True)

        assert summary.succeeded == 1
        assert len(store.published) == 2

    def test_derived_listing_failure_still_processes(self):
        store = FakeStore(_sources(1))
        store.list_derived_urls = Mock(side_effect=ArticleApiError("timeout"))

        assert _orchestrator(store).process_latest().succeeded == 1

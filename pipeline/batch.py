"""
Batch orchestration.

Each source article moves through a fixed sequence of stages:

    DISCOVER → EXTRACT → ANALYZE → ENHANCE → ASSEMBLE → PUBLISH → DONE

A stage handler either returns the next stage or ends the item early with an
ItemOutcome. Outcomes are folded into a RunSummary; items run one at a time
with a pacing delay between them until the success cap is reached.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from enhancement.citations import assemble_citations
from errors import ConfigurationError, PreservationError
from models import (
    FAILED,
    SKIPPED,
    SUCCEEDED,
    EnhancedArticlePayload,
    EnhancementResult,
    GapAnalysisResult,
    ItemOutcome,
    RunSummary,
    SourceArticle,
)

logger = logging.getLogger(__name__)

NO_COMPETITORS = "No competitors found"
NO_CONTENT = "Could not extract any competitor content"


class Stage(Enum):
    DISCOVER = "discover"
    EXTRACT = "extract"
    ANALYZE = "analyze"
    ENHANCE = "enhance"
    ASSEMBLE = "assemble"
    PUBLISH = "publish"
    DONE = "done"


@dataclass
class _WorkItem:
    """Everything produced for one article so far."""
    article: SourceArticle
    candidates: list = field(default_factory=list)
    documents: list = field(default_factory=list)
    gap: Optional[GapAnalysisResult] = None
    enhancement: Optional[EnhancementResult] = None
    payload: Optional[EnhancedArticlePayload] = None
    article_id: Optional[int] = None


def select_pending(sources: list[SourceArticle], derived_urls: set) -> tuple[list[SourceArticle], int]:
    """
    Drop sources that already have an enhanced counterpart, and repeated
    original_urls within the listing. Returns (pending, already_enhanced).
    """
    pending = []
    seen = set()
    already = 0
    for article in sources:
        url = article.original_url
        if url and url in derived_urls:
            already += 1
            logger.debug("Skipping '%s': already enhanced", article.title)
            continue
        if url and url in seen:
            logger.warning("Skipping '%s': duplicate original_url %s", article.title, url)
            continue
        if url:
            seen.add(url)
        pending.append(article)
    return pending, already


class BatchOrchestrator:

    def __init__(
        self,
        store,
        discovery,
        extractor,
        analyzer,
        enhancer,
        competitor_count: int = 2,
        delay_seconds: float = 20,
        success_cap: int = 10,
        sleep=time.sleep,
    ):
        self.store = store
        self.discovery = discovery
        self.extractor = extractor
        self.analyzer = analyzer
        self.enhancer = enhancer
        self.competitor_count = competitor_count
        self.delay_seconds = delay_seconds
        self.success_cap = success_cap
        self._sleep = sleep
        self._handlers = {
            Stage.DISCOVER: self._discover,
            Stage.EXTRACT:  self._extract,
            Stage.ANALYZE:  self._analyze,
            Stage.ENHANCE:  self._enhance,
            Stage.ASSEMBLE: self._assemble,
            Stage.PUBLISH:  self._publish,
        }

    # ── Stages ────────────────────────────────────────────────────────────────

    def _discover(self, item: _WorkItem) -> Union[Stage, ItemOutcome]:
        item.candidates = self.discovery.discover(item.article.title, self.competitor_count)
        if not item.candidates:
            return ItemOutcome(item.article.title, SKIPPED, NO_COMPETITORS, Stage.DISCOVER.value)
        logger.info("Found %d competitors for '%s'", len(item.candidates), item.article.title)
        return Stage.EXTRACT

    def _extract(self, item: _WorkItem) -> Union[Stage, ItemOutcome]:
        item.documents = self.extractor.extract_all(item.candidates)
        if not item.documents:
            return ItemOutcome(item.article.title, SKIPPED, NO_CONTENT, Stage.EXTRACT.value)
        return Stage.ANALYZE

    def _analyze(self, item: _WorkItem) -> Stage:
        item.gap = self.analyzer.analyze(item.article, item.documents)
        return Stage.ENHANCE

    def _enhance(self, item: _WorkItem) -> Stage:
        item.enhancement = self.enhancer.enhance(item.article, item.documents)
        return Stage.ASSEMBLE

    def _assemble(self, item: _WorkItem) -> Stage:
        references_html, citations = assemble_citations(item.documents)
        item.payload = EnhancedArticlePayload(
            source=item.article,
            enhancement=item.enhancement,
            references_html=references_html,
            citations=tuple(citations),
            gap_analysis=item.gap,
        )
        return Stage.PUBLISH

    def _publish(self, item: _WorkItem) -> Stage:
        item.article_id = self.store.create_article(item.payload.to_dict())
        return Stage.DONE

    # ── Items ─────────────────────────────────────────────────────────────────

    def process_article(self, article: SourceArticle) -> ItemOutcome:
        """Run one article through every stage. Only ConfigurationError escapes."""
        item = _WorkItem(article)
        stage = Stage.DISCOVER
        try:
            while stage is not Stage.DONE:
                result = self._handlers[stage](item)
                if isinstance(result, ItemOutcome):
                    logger.warning("Skipped '%s': %s", article.title, result.reason)
                    return result
                stage = result
        except ConfigurationError:
            raise
        except PreservationError as exc:
            logger.warning("Skipped '%s': %s", article.title, exc)
            return ItemOutcome(article.title, SKIPPED, str(exc), stage.value)
        except Exception as exc:
            logger.exception("Failed '%s' at %s stage: %s", article.title, stage.value, exc)
            return ItemOutcome(article.title, FAILED, str(exc), stage.value)

        logger.info("Enhanced '%s' → article %s", article.title, item.article_id)
        return ItemOutcome(
            article.title,
            SUCCEEDED,
            stage=Stage.DONE.value,
            article_id=item.article_id,
            score=item.gap.overall_score if item.gap else None,
        )

    # ── Runs ──────────────────────────────────────────────────────────────────

    def _derived_urls(self) -> set:
        try:
            return self.store.list_derived_urls()
        except Exception as exc:
            logger.warning("Could not list enhanced articles, continuing without dedup: %s", exc)
            return set()

    def run(self) -> RunSummary:
        """
        Enhance every pending source article. Failure to list sources
        propagates; failure to list derived articles only disables dedup.
        """
        sources = self.store.list_source_articles()
        pending, already = select_pending(sources, self._derived_urls())
        summary = RunSummary(already_enhanced=already)
        logger.info(
            "=== %d source articles: %d pending, %d already enhanced ===",
            len(sources), len(pending), already,
        )

        for index, article in enumerate(pending):
            if index > 0 and self.delay_seconds > 0:
                logger.info("Waiting %ss before next article", self.delay_seconds)
                self._sleep(self.delay_seconds)

            logger.info("[%d/%d] Processing '%s'", index + 1, len(pending), article.title)
            summary.record(self.process_article(article))

            if self.success_cap and summary.succeeded >= self.success_cap:
                summary.cap_reached = True
                logger.info("Success cap of %d reached — stopping", self.success_cap)
                break

        log_summary(summary)
        return summary

    def _run_one(self, article: SourceArticle, force: bool = False) -> RunSummary:
        if not force:
            pending, already = select_pending([article], self._derived_urls())
            if not pending:
                logger.info("'%s' already has an enhanced version — nothing to do", article.title)
                summary = RunSummary(already_enhanced=already)
                log_summary(summary)
                return summary

        summary = RunSummary().record(self.process_article(article))
        log_summary(summary)
        return summary

    def process_single(self, article_id: int, force: bool = False) -> RunSummary:
        """Enhance one source article by id; `force` re-enhances an already enhanced one."""
        return self._run_one(self.store.get_article(article_id), force)

    def process_latest(self, force: bool = False) -> RunSummary:
        return self._run_one(self.store.get_latest_original(), force)


def log_summary(summary: RunSummary) -> None:
    logger.info(
        "Run complete — %d succeeded, %d failed, %d skipped of %d attempted (%d already enhanced)",
        summary.succeeded, summary.failed, summary.skipped, summary.total, summary.already_enhanced,
    )
    for title, reason in summary.failures:
        logger.info("  failed: %s — %s", title, reason)

"""
Data records passed between pipeline stages.

Each stage produces a new, richer record instead of mutating the previous one:
CompetitorCandidate (discovery) → CompetitorDocument (extraction), and
GapAnalysisResult + EnhancementResult + citations → EnhancedArticlePayload.
"""

from dataclasses import dataclass, field
from typing import Optional

STATUS_ORIGINAL = "original"
STATUS_UPDATED = "updated"


# ── Source ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SourceArticle:
    """An original article as stored by the article service. Read-only."""
    id: Optional[int]
    title: str
    content: str
    excerpt: Optional[str] = None
    author: Optional[str] = None
    published_at: Optional[str] = None
    featured_image: Optional[str] = None
    original_url: Optional[str] = None
    slug: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "SourceArticle":
        return cls(
            id=data.get("id"),
            title=(data.get("title") or "").strip(),
            content=data.get("content") or "",
            excerpt=data.get("excerpt"),
            author=data.get("author"),
            published_at=data.get("published_at"),
            featured_image=data.get("featured_image"),
            original_url=data.get("original_url"),
            slug=data.get("slug"),
        )


# ── Competitors ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CompetitorCandidate:
    title: str
    url: str
    snippet: str = ""


@dataclass(frozen=True)
class CompetitorDocument:
    """A candidate whose page was fetched and reduced to readable content."""
    candidate: CompetitorCandidate
    text: str
    html: str = ""
    excerpt: str = ""
    image_url: Optional[str] = None
    byline: Optional[str] = None
    extraction_method: str = "readability"

    @property
    def url(self) -> str:
        return self.candidate.url

    @property
    def title(self) -> str:
        return self.candidate.title

    @property
    def snippet(self) -> str:
        return self.candidate.snippet

    @classmethod
    def from_candidate(cls, candidate: CompetitorCandidate, page) -> "CompetitorDocument":
        """Combine a search candidate with an ExtractedPage from the scraper."""
        return cls(
            candidate=candidate,
            text=page.text,
            html=page.html,
            excerpt=page.excerpt or candidate.snippet,
            image_url=page.image_url,
            byline=page.byline,
            extraction_method=page.method,
        )


# ── Gap analysis ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class GapAnalysisResult:
    missing: tuple = ()
    improve: tuple = ()
    strengths: tuple = ()
    keywords_missing: tuple = ()
    overall_score: int = 0
    recommendations: tuple = ()
    error: Optional[str] = None

    @classmethod
    def failed(cls, reason: str) -> "GapAnalysisResult":
        return cls(error=reason)

    def to_dict(self) -> dict:
        d = {
            "missing":          list(self.missing),
            "improve":          list(self.improve),
            "strengths":        list(self.strengths),
            "keywords_missing": list(self.keywords_missing),
            "overall_score":    self.overall_score,
            "recommendations":  list(self.recommendations),
        }
        if self.error:
            d["error"] = self.error
        return d


# ── Enhancement ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Insertion:
    """A generated segment placed at `offset` characters into the original content."""
    offset: int
    html: str


@dataclass(frozen=True)
class EnhancementResult:
    title: str
    body_html: str
    insertions: tuple = ()
    verified: bool = False


@dataclass(frozen=True)
class CitationRecord:
    url: str
    title: str
    summary: str = ""
    image_url: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "source_url":      self.url,
            "title":           self.title,
            "content_summary": self.summary,
            "image_url":       self.image_url,
        }


@dataclass(frozen=True)
class EnhancedArticlePayload:
    """The unit published back to the article service."""
    source: SourceArticle
    enhancement: EnhancementResult
    references_html: str
    citations: tuple
    gap_analysis: GapAnalysisResult
    status: str = STATUS_UPDATED

    @property
    def content(self) -> str:
        return self.enhancement.body_html + self.references_html

    def to_dict(self) -> dict:
        payload = {
            "title":               self.enhancement.title,
            "content":             self.content,
            "excerpt":             self.source.excerpt,
            "author":              self.source.author,
            "published_at":        self.source.published_at,
            "featured_image":      self.source.featured_image,
            "original_url":        self.source.original_url,
            "status":              self.status,
            "references":          [c.url for c in self.citations],
            "gap_analysis":        self.gap_analysis.to_dict(),
            "competitor_articles": [c.to_dict() for c in self.citations],
        }
        # The storage service validates optional fields only when present
        return {k: v for k, v in payload.items() if v is not None}


# ── Run accounting ────────────────────────────────────────────────────────────

SUCCEEDED = "succeeded"
FAILED = "failed"
SKIPPED = "skipped"


@dataclass(frozen=True)
class ItemOutcome:
    title: str
    status: str
    reason: str = ""
    stage: str = ""
    article_id: Optional[int] = None
    score: Optional[int] = None


@dataclass
class RunSummary:
    """Accumulates per-item outcomes for one batch run."""
    already_enhanced: int = 0
    cap_reached: bool = False
    outcomes: list = field(default_factory=list)

    def record(self, outcome: ItemOutcome) -> "RunSummary":
        self.outcomes.append(outcome)
        return self

    def _count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def succeeded(self) -> int:
        return self._count(SUCCEEDED)

    @property
    def failed(self) -> int:
        return self._count(FAILED)

    @property
    def skipped(self) -> int:
        return self._count(SKIPPED)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def failures(self) -> list[tuple[str, str]]:
        return [(o.title, o.reason) for o in self.outcomes if o.status == FAILED]

    def to_dict(self) -> dict:
        return {
            "succeeded":        self.succeeded,
            "failed":           self.failed,
            "skipped":          self.skipped,
            "total":            self.total,
            "already_enhanced": self.already_enhanced,
            "cap_reached":      self.cap_reached,
            "failures":         [{"title": t, "reason": r} for t, r in self.failures],
            "items": [
                {
                    "title":      o.title,
                    "status":     o.status,
                    "reason":     o.reason,
                    "stage":      o.stage,
                    "article_id": o.article_id,
                    "score":      o.score,
                }
                for o in self.outcomes
            ],
        }

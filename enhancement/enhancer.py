"""
Article enhancement: ask the model to weave competitor insights into the
source article as new, marked paragraphs, then verify nothing original was
touched before accepting the result.
"""

import logging

from analysis.text import truncate
from enhancement.markup import (
    ADDITION_CLASS,
    clean_generated_html,
    render_additions,
    split_additions,
    take_title,
)
from errors import PreservationError
from models import CompetitorDocument, EnhancementResult, SourceArticle

logger = logging.getLogger(__name__)

COMPETITOR_CHARS = 2000
MAX_SOURCE_CHARS = 100_000
# Source characters prompted per output token; the answer repeats the source
# and adds to it, so this must stay below the ~3 chars a token of HTML holds.
SOURCE_CHARS_PER_TOKEN = 2.5


def _competitor_block(competitors: list[CompetitorDocument]) -> str:
    return "\n".join(
        f'--- Reference Article {i}: "{c.title}" ---\n'
        f"URL: {c.url}\n"
        f"Content Summary:\n{truncate(c.text, COMPETITOR_CHARS) or c.snippet}\n"
        for i, c in enumerate(competitors, start=1)
    )


def build_prompt(source: SourceArticle, competitors: list[CompetitorDocument],
                 max_source_chars: int = MAX_SOURCE_CHARS) -> str:
    return f"""You are an expert content editor and SEO specialist. Improve a blog article by comparing it, point by point, with top-ranking competitor articles.

## Core objective
1. Understand: read the original article's title and content to grasp its topic and flow.
2. Compare: for each point in the competitor articles, ask whether they explain it better or include valid points, examples or statistics the original is missing.
3. Enhance: where something is missing, INSERT a new paragraph. Rewrite competitor points in your own words; never copy them.
4. Preserve (critical):
   - NEVER delete, shorten, reorder or modify any existing sentence, tag or attribute of the original.
   - Your only job is to INSERT new paragraphs BETWEEN existing ones.
   - The original HTML must appear in your output exactly as given, word for word.

## 1. Original article (preserve every character)
Title: {source.title}
Full content:
{truncate(source.content, max_source_chars)}

## 2. Top-ranking competitors (source material)
{_competitor_block(competitors)}

## 3. Marking new content
- Wrap each paragraph you add, and only those, in <mark class="{ADDITION_CLASS}">...</mark>.
- Do not mark original content.

## 4. Output requirements
- Start with a single <h1> holding the article title, followed by the full article HTML including your additions.
- Keep all original <img>, <iframe>, <video> and <embed> elements exactly where they are.
- Keep all original headings and structure.
- Write naturally, in the voice of the original article.
- Output valid HTML only: no markdown code fences and no commentary."""


def _reminder(error: PreservationError) -> str:
    return f"""

## IMPORTANT: your previous answer was rejected
It changed the original article ({error}).
Copy every original paragraph exactly as given, including tags, attributes and punctuation.
Only add new paragraphs wrapped in <mark class="{ADDITION_CLASS}">...</mark> between them."""


class ContentEnhancer:

    def __init__(
        self,
        generator,
        temperature: float = 0.7,
        max_tokens: int = 16000,
        verify: bool = True,
        max_attempts: int = 2,
        max_source_chars: int = MAX_SOURCE_CHARS,
    ):
        self.generator = generator
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.verify = verify
        self.max_attempts = max(1, max_attempts)
        self.max_source_chars = min(max_source_chars, int(max_tokens * SOURCE_CHARS_PER_TOKEN))

    def _generate(self, prompt: str) -> str:
        return self.generator.generate(prompt, temperature=self.temperature, max_tokens=self.max_tokens)

    def enhance(self, source: SourceArticle, competitors: list[CompetitorDocument]) -> EnhancementResult:
        """
        Returns the enhanced title and body. With verification on, the body is
        rebuilt from the original plus marked insertions; PreservationError is
        raised when every attempt modified the original.
        """
        prompt = build_prompt(source, competitors, self.max_source_chars)
        error = None

        for attempt in range(1, self.max_attempts + 1):
            raw = self._generate(prompt if error is None else prompt + _reminder(error))
            document = clean_generated_html(raw, source.content)
            if not document:
                error = PreservationError("Model returned an empty document")
                logger.warning("Empty enhancement for '%s' (attempt %d/%d)", source.title, attempt, self.max_attempts)
                continue

            title, body = take_title(document, source.content)
            title = title or f"Enhanced: {source.title}"

            if not self.verify:
                return EnhancementResult(title=title, body_html=document, verified=False)

            try:
                insertions = split_additions(body, source.content, self.max_source_chars)
            except PreservationError as exc:
                error = exc
                logger.warning(
                    "Enhancement of '%s' failed preservation check (attempt %d/%d): %s",
                    source.title, attempt, self.max_attempts, exc,
                )
                continue

            if not insertions:
                logger.warning("Enhancement of '%s' added no marked paragraphs", source.title)
            logger.info("Enhanced '%s' with %d insertions", source.title, len(insertions))
            return EnhancementResult(
                title=title,
                body_html=render_additions(source.content, insertions),
                insertions=tuple(insertions),
                verified=True,
            )

        raise PreservationError(f"Enhancement rejected after {self.max_attempts} attempts: {error}")

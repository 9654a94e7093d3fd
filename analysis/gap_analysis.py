"""
Gap analysis: one structured-JSON prompt comparing the source article with
its competitors, validated and repaired into a fixed-shape GapAnalysisResult.

Upstream failures never escape this module (except a missing API key): the
result is the all-empty record with score 0 and an error marker.
"""

import json
import logging
import math
import re
from typing import Optional

from analysis.text import strip_code_fences, strip_html, truncate
from errors import ConfigurationError
from models import CompetitorDocument, GapAnalysisResult, SourceArticle

logger = logging.getLogger(__name__)

SOURCE_CHARS = 3000
COMPETITOR_CHARS = 1500
MAX_RECOMMENDATIONS = 3

_LIST_FIELDS = ("missing", "improve", "strengths", "keywords_missing", "recommendations")


def build_prompt(source: SourceArticle, competitors: list[CompetitorDocument]) -> str:
    competitor_block = "\n".join(
        f'Article {i}: "{c.title}"\n'
        f"Key Topics: {truncate(c.text, COMPETITOR_CHARS) or c.snippet}\n"
        for i, c in enumerate(competitors, start=1)
    )

    return f"""Analyze the original article against these competitor articles and identify gaps.

## Original Article
Title: {source.title}
Content Summary:
{truncate(strip_html(source.content), SOURCE_CHARS)}

## Competitor Articles
{competitor_block}

## Analysis Task
Compare the original with competitors and return a JSON object with:
1. "missing" - Topics/points competitors cover that the original doesn't (array of strings)
2. "improve" - Areas where original could be stronger (array of strings)
3. "strengths" - What the original does well (array of strings)
4. "keywords_missing" - Important keywords/phrases competitors use that we don't (array of strings)
5. "overall_score" - Quality score 1-10 of the original compared to competitors (integer)
6. "recommendations" - Top 3 specific improvements (array of strings)

Return ONLY valid JSON, no markdown formatting or explanation."""


def _load_json(raw: str) -> Optional[dict]:
    text = strip_code_fences(raw)
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        # Models sometimes wrap the object in prose despite instructions
        match = re.search(r"\{.*\}", text, re.DOTALL)
        if not match:
            return None
        try:
            data = json.loads(match.group())
        except json.JSONDecodeError:
            return None
    return data if isinstance(data, dict) else None


def _coerce_list(value) -> Optional[tuple]:
    if isinstance(value, str):
        value = [value] if value.strip() else []
    if not isinstance(value, list):
        return None
    items = []
    for item in value:
        if item is None or isinstance(item, (dict, list)):
            continue
        text = str(item).strip()
        if text:
            items.append(text)
    return tuple(items)


def _coerce_score(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        match = re.search(r"-?\d+(?:\.\d+)?", value)
        if not match:
            return None
        value = float(match.group())
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return max(1, min(10, int(round(value))))


def parse_gap_analysis(raw: str) -> GapAnalysisResult:
    """Validate the model's answer; never raises."""
    data = _load_json(raw)
    if data is None:
        logger.error("Gap analysis returned invalid JSON")
        logger.debug("Raw gap analysis response: %.300s", raw)
        return GapAnalysisResult.failed("Could not parse gap analysis JSON")

    problems = []
    fields = {}
    for name in _LIST_FIELDS:
        items = _coerce_list(data.get(name))
        if items is None:
            problems.append(name)
            items = ()
        fields[name] = items

    score = _coerce_score(data.get("overall_score"))
    if score is None:
        problems.append("overall_score")
        score = 0

    error = f"Missing or invalid fields: {', '.join(problems)}" if problems else None
    if error:
        logger.warning("Gap analysis incomplete — %s", error)

    return GapAnalysisResult(
        missing=fields["missing"],
        improve=fields["improve"],
        strengths=fields["strengths"],
        keywords_missing=fields["keywords_missing"],
        overall_score=score,
        recommendations=fields["recommendations"][:MAX_RECOMMENDATIONS],
        error=error,
    )


class GapAnalyzer:

    def __init__(self, generator, temperature: float = 0.3, max_tokens: int = 2000):
        self.generator = generator
        self.temperature = temperature
        self.max_tokens = max_tokens

    def analyze(self, source: SourceArticle, competitors: list[CompetitorDocument]) -> GapAnalysisResult:
        prompt = build_prompt(source, competitors)
        try:
            raw = self.generator.generate(prompt, temperature=self.temperature, max_tokens=self.max_tokens)
        except ConfigurationError:
            raise
        except Exception as exc:
            logger.error("Gap analysis call failed for '%s': %s", source.title, exc)
            return GapAnalysisResult.failed(str(exc))

        result = parse_gap_analysis(raw)
        logger.info(
            "Gap analysis for '%s': score %d/10, %d missing topics, %d improvement areas",
            source.title[:60], result.overall_score, len(result.missing), len(result.improve),
        )
        return result

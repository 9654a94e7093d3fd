"""
Small text helpers shared by the prompt builders.
"""

import html
import re

_TAG_RE = re.compile(r"<[^>]*>")
_FENCE_START_RE = re.compile(r"^\s*```[a-zA-Z]*\s*")
_FENCE_END_RE = re.compile(r"\s*```\s*$")


def strip_html(markup: str) -> str:
    """Drop tags, unescape entities and collapse whitespace."""
    if not markup:
        return ""
    text = _TAG_RE.sub(" ", markup)
    text = html.unescape(text)
    return re.sub(r"\s+", " ", text).strip()


def truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars]


def strip_code_fences(raw: str) -> str:
    """Remove a markdown code fence the model may wrap its answer in."""
    raw = (raw or "").strip()
    raw = _FENCE_START_RE.sub("", raw)
    raw = _FENCE_END_RE.sub("", raw)
    return raw.strip()

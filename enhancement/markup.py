"""
Addition markers and the preservation check.

The model returns a full HTML document in which new paragraphs are wrapped in
<mark>. We never publish that document directly. Instead the unmarked text is
aligned against the original body and the marked segments become Insertion
records at original offsets; render_additions() then rebuilds the body from
the original, so everything that was there before is byte-identical.
"""

import logging
import re
from html import unescape
from typing import Optional

from analysis.text import strip_code_fences, strip_html
from errors import PreservationError
from models import Insertion

logger = logging.getLogger(__name__)

ADDITION_CLASS = "ai-addition"
MARK_OPEN = f'<mark class="{ADDITION_CLASS}">'
MARK_CLOSE = "</mark>"

# When the prompt carried a truncated source, the model may stop a little short
# of the cut or run past it; this much unconsumed tail is tolerated.
TRUNCATION_SLACK = 500

_ANY_MARK_OPEN = r"<mark\b[^>]*>"
_CLASS_MARK_OPEN = r"<mark\b[^>]*\bclass\s*=\s*[\"'][^\"']*\b" + ADDITION_CLASS + r"\b[^\"']*[\"'][^>]*>"
_INNER = r"(?:(?!</mark>).)*?"

_RENDERED_RE = re.compile(re.escape(MARK_OPEN) + "(" + _INNER + ")" + re.escape(MARK_CLOSE), re.DOTALL)
_MARK_TAG_RE = re.compile(r"</?mark\b[^>]*>", re.IGNORECASE)
_H1_RE = re.compile(r"<h1\b[^>]*>(.*?)</h1>", re.IGNORECASE | re.DOTALL)
_LEADING_H1_RE = re.compile(
    r"^\s*(?:<mark\b[^>]*>\s*)?<h1\b[^>]*>(.*?)</h1>(?:\s*</mark>)?", re.IGNORECASE | re.DOTALL
)
_BODY_RE = re.compile(r"<body\b[^>]*>(.*?)(?:</body>|$)", re.IGNORECASE | re.DOTALL)
_WS_RE = re.compile(r"\s+")
# An entity, the slash of a self-closing tag, or any single character
_TOKEN_RE = re.compile(
    r"&(?:[A-Za-z][A-Za-z0-9]*|#[0-9]+|#[xX][0-9a-fA-F]+);|(?P<slash>/(?=\s*>))|.",
    re.DOTALL,
)


def _generated_mark_re(strict: bool) -> re.Pattern:
    """
    Matches one addition in model output: a <p> holding nothing but marks
    (<p><mark>…</mark></p>, or several marks side by side) or a bare mark.
    """
    open_ = _CLASS_MARK_OPEN if strict else _ANY_MARK_OPEN
    return re.compile(
        r"<p\b[^>]*>\s*(?P<wrapped>(?:" + open_ + _INNER + r"</mark>\s*)+)</p>"
        r"|" + open_ + "(?P<bare>" + _INNER + r")</mark>",
        re.IGNORECASE | re.DOTALL,
    )


def _squash(text: str) -> str:
    return _WS_RE.sub("", text)


def _canonical(text: str, end: Optional[int] = None) -> list[tuple[str, int, int]]:
    """
    Non-space characters of `text[:end]` with entities decoded and the slash
    of self-closing tags dropped, as (char, start, end) where start/end span
    the source token the character came from.
    """
    chars = []
    for match in _TOKEN_RE.finditer(text, 0, len(text) if end is None else end):
        if match.group("slash"):
            continue
        for ch in unescape(match.group()):
            if not ch.isspace():
                chars.append((ch, match.start(), match.end()))
    return chars


def clean_generated_html(raw: str, original: str) -> str:
    """
    Reduce a model answer to the article fragment: drop code fences, document
    wrappers the original does not have, and chatter before the first tag or
    after the last one.
    """
    html = strip_code_fences(raw)
    original_lower = original.lower()

    if "<body" in html.lower() and "<body" not in original_lower:
        match = _BODY_RE.search(html)
        if match:
            html = match.group(1).strip()

    if original.lstrip().startswith("<") and "<" in html:
        html = html[html.index("<"):]
    if original.rstrip().endswith(">") and ">" in html:
        html = html[: html.rindex(">") + 1]
    return html.strip()


def extract_title(html: str) -> Optional[str]:
    match = _H1_RE.search(html or "")
    if not match:
        return None
    return strip_html(match.group(1)) or None


def take_title(html: str, original: str) -> tuple[Optional[str], str]:
    """
    Split the leading <h1> off a generated document.

    Returns (title, body). The heading stays in the body when the original
    already contains it, since it is then part of the preserved content.
    """
    title = extract_title(html)
    match = _LEADING_H1_RE.match(html)
    if match is None:
        return title, html
    heading = _squash(strip_html(match.group(1)))
    original_headings = [_squash(strip_html(h)) for h in _H1_RE.findall(original)]
    if heading and heading in original_headings:
        return title, html
    return title, html[match.end():].lstrip()


class _Aligner:
    """
    Walks the original body while unmarked generated text is fed to it.

    Both sides are compared as canonical character streams (see _canonical),
    so re-serializing the original is not mistaken for editing it.
    """

    def __init__(self, original: str, limit: int):
        self.original = original
        self.limit = limit
        self.truncated = limit < len(original)
        self.stream = _canonical(original, limit)
        self.index = 0
        self.pos = 0
        self.overflowed = False

    def consume(self, segment: str) -> None:
        if self.overflowed:
            return
        for ch, start, _ in _canonical(segment):
            if self.index >= len(self.stream):
                if self.truncated:
                    self.overflowed = True
                    self.pos = self.limit
                    return
                raise PreservationError(
                    f"Original content was modified near offset {self.limit}: "
                    f"expected end of article, got {segment[start:start + 40]!r}"
                )
            expected, at, end = self.stream[self.index]
            if expected != ch:
                raise PreservationError(
                    f"Original content was modified near offset {at}: "
                    f"expected {self.original[at:at + 40]!r}, got {segment[start:start + 40]!r}"
                )
            self.index += 1
            self.pos = end

    def finish(self) -> None:
        remaining = len(self.stream) - self.index
        if not remaining:
            return
        if self.truncated and remaining <= TRUNCATION_SLACK:
            return
        at = self.stream[self.index][1]
        raise PreservationError(
            f"Original content is missing from offset {at}: {self.original[at:at + 60].strip()!r}"
        )


def split_additions(html: str, original: str, max_source_chars: Optional[int] = None) -> list[Insertion]:
    """
    Separate generated additions from preserved text.

    Raises PreservationError unless the unmarked parts of `html`, read in
    order, reproduce the original up to `max_source_chars`. Whitespace,
    entity spelling and self-closing slashes are not compared.
    Returned insertions are in original coordinates.
    """
    limit = len(original) if max_source_chars is None else min(len(original), max_source_chars)
    # An original that already uses <mark> keeps it; only classed marks count then
    strict = "<mark" in original.lower()
    aligner = _Aligner(original, limit)

    insertions = []
    last = 0
    for match in _generated_mark_re(strict).finditer(html):
        aligner.consume(html[last:match.start()])
        last = match.end()
        if aligner.overflowed:
            logger.warning("Dropping addition past the truncated source at offset %d", limit)
            continue
        if match.group("wrapped") is not None:
            addition = f"<p>{_MARK_TAG_RE.sub('', match.group('wrapped')).strip()}</p>"
        else:
            addition = _MARK_TAG_RE.sub("", match.group("bare")).strip()
        if strip_html(addition):
            insertions.append(Insertion(offset=aligner.pos, html=addition))
    aligner.consume(html[last:])
    aligner.finish()
    return insertions


def render_addition(fragment: str) -> str:
    return f"{MARK_OPEN}{fragment}{MARK_CLOSE}"


def render_additions(original: str, insertions) -> str:
    """Splice marked additions into the original at their offsets."""
    parts = []
    pos = 0
    for ins in sorted(insertions, key=lambda i: i.offset):
        parts.append(original[pos:ins.offset])
        parts.append(render_addition(ins.html))
        pos = ins.offset
    parts.append(original[pos:])
    return "".join(parts)


def strip_additions(html: str) -> str:
    """Remove every rendered addition; inverse of render_additions."""
    return _RENDERED_RE.sub("", html)


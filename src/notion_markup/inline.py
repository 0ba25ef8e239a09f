"""Inline formatting: markdown-style text and inline HTML to rich text spans."""

import re
from dataclasses import dataclass, replace
from typing import Optional

from .blocks import RichTextSpan
from .cleanup import TextRun, clean_runs


# Pattern precedence only matters for ties; overlaps are settled by position
# and length. Each body is wrapped in a lookahead so that every offset is a
# candidate, including ones inside an earlier candidate's span.
_FORMAT_PATTERNS = [
    ('link', r'\[(?P<inner>[^\[\]]+)\]\((?P<url>(?:[^()\s]|\([^()\s]*\))+)\)'),
    ('bold_italic', r'\*\*\*(?!\s)(?P<inner>[^*]+?)(?<!\s)\*\*\*'),
    ('bold', r'\*\*(?!\s)(?P<inner>[^*]+?)(?<!\s)\*\*'),
    ('italic', r'\*(?!\s)(?P<inner>[^*]+?)(?<!\s)\*'),
    ('italic', r'(?<![\w_])_(?![\s_])(?P<inner>[^_]+?)(?<![\s_])_(?![\w_])'),
    ('strikethrough', r'~~(?!\s)(?P<inner>[^~]+?)(?<!\s)~~'),
    ('code', r'`(?P<inner>[^`]+)`'),
]

FORMAT_PATTERNS = [
    (style, re.compile(rf'(?=(?P<whole>{body}))'))
    for style, body in _FORMAT_PATTERNS
]

_LINK_TARGET = re.compile(r'^(?:https?://|mailto:)', re.IGNORECASE)


@dataclass
class _Match:
    start: int
    end: int
    text: str
    style: str
    url: Optional[str] = None


def _collect_matches(text: str) -> list[_Match]:
    matches = []
    for style, pattern in FORMAT_PATTERNS:
        for m in pattern.finditer(text):
            start = m.start()
            matches.append(_Match(
                start=start,
                end=start + len(m.group('whole')),
                text=m.group('inner'),
                style=style,
                url=m.group('url') if style == 'link' else None,
            ))
    return matches


def _span_for(match: _Match) -> RichTextSpan:
    if match.style == 'link':
        if not _LINK_TARGET.match(match.url or ''):
            # Relative or placeholder targets such as "#" keep only the label
            return RichTextSpan(text=match.text)
        return RichTextSpan(text=match.text, link=match.url)
    if match.style == 'bold_italic':
        return RichTextSpan(text=match.text, bold=True, italic=True)
    return RichTextSpan(text=match.text, **{match.style: True})


def parse_inline_formatting(text: str) -> list[RichTextSpan]:
    """Parse inline formatting in text and return rich text spans.

    Every pattern is matched at every offset. Candidates are taken in order
    of start position (longer first on ties) and any candidate overlapping an
    already accepted one is dropped, so `***x***` beats the `**` match that
    starts at the same place.

    Args:
        text: The text content to parse for inline formatting.

    Returns:
        Non-empty list of spans in document order. Unformatted input yields a
        single plain span (with empty text for empty input).
    """
    matches = _collect_matches(text)
    matches.sort(key=lambda m: (m.start, -(m.end - m.start)))

    # Accepted matches never overlap and come in start order, so only the
    # last one can overlap a later candidate
    accepted: list[_Match] = []
    for match in matches:
        if accepted and match.start < accepted[-1].end:
            continue
        accepted.append(match)

    if not accepted:
        return [RichTextSpan(text=text)]

    spans: list[RichTextSpan] = []
    last = 0
    for match in accepted:
        if match.start > last:
            spans.append(RichTextSpan(text=text[last:match.start]))
        spans.append(_span_for(match))
        last = match.end
    if last < len(text):
        spans.append(RichTextSpan(text=text[last:]))
    return spans


def _styled(span: RichTextSpan, run: TextRun) -> RichTextSpan:
    link = run.link if run.link and _LINK_TARGET.match(run.link) else None
    return replace(
        span,
        bold=span.bold or run.bold,
        italic=span.italic or run.italic,
        strikethrough=span.strikethrough or run.strikethrough,
        code=span.code or run.code,
        link=span.link or link,
    )


def parse_rich_text(text: str, decode_entities: bool = True) -> list[RichTextSpan]:
    """Parse markup mixing inline HTML and markdown into rich text spans.

    Inline HTML tags are read into styled runs first (see `clean_runs`);
    markdown markers are then parsed inside each run and combined with the
    run's own style. Text inside `<code>` keeps its markers literal.

    Returns:
        Spans in document order, empty when the markup has no visible text.
    """
    spans: list[RichTextSpan] = []
    for run in clean_runs(text, decode_entities):
        if run.code:
            spans.append(_styled(RichTextSpan(text=run.text), run))
            continue
        spans.extend(_styled(span, run) for span in parse_inline_formatting(run.text))
    return spans

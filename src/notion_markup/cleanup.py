"""Text cleanup and normalization.

Inline HTML is read with the standard library's HTMLParser into styled text
runs. Formatting tags set the style of the text inside them; any other tag is
dropped with its text kept, so nothing tag-like can reach a rich_text payload.
"""

import html
import logging
import re
from dataclasses import dataclass
from html.parser import HTMLParser
from typing import Optional

logger = logging.getLogger("notion-markup.cleanup")


# Literal backslash-n pairs, as produced by JSON-escaped tool arguments
_ESCAPED_NEWLINE = re.compile(r'\\n')

# Formatting tags; they style text and never become blocks
INLINE_TAGS = {
    'strong', 'b', 'em', 'i', 'u', 's', 'del', 'strike', 'a',
    'span', 'mark', 'small', 'sup', 'sub', 'br', 'summary',
}

_BOLD_TAGS = {'strong', 'b'}
_ITALIC_TAGS = {'em', 'i'}
_STRIKETHROUGH_TAGS = {'s', 'del', 'strike'}
# Inline <code> is told apart from block <code> by the tree builder
_STYLE_TAGS = INLINE_TAGS | {'code'}

_RESIDUAL_TAG = re.compile(r'</?[A-Za-z]')
# Unterminated openers the parser hands back as text
_DANGLING_TAG = re.compile(r'</?[A-Za-z][^<>\n]*')

_MULTI_SPACE = re.compile(r'[ \t]{2,}')
_SPACE_AROUND_NEWLINE = re.compile(r'[ \t]*\n[ \t]*')
_EXCESS_NEWLINES = re.compile(r'\n{3,}')
# Separators stranded at the edges once child blocks were cut out of a line
_ORPHAN_SEPARATORS_END = re.compile(r'(?:\s*[,;])+\s*$')
_ORPHAN_SEPARATORS_START = re.compile(r'^\s*(?:[,;]\s*)+')


@dataclass
class TextRun:
    """Text carrying one combination of inline HTML styles."""
    text: str
    bold: bool = False
    italic: bool = False
    strikethrough: bool = False
    code: bool = False
    link: Optional[str] = None

    def same_style(self, other: "TextRun") -> bool:
        return (
            (self.bold, self.italic, self.strikethrough, self.code, self.link) ==
            (other.bold, other.italic, other.strikethrough, other.code, other.link)
        )


class InlineMarkupParser(HTMLParser):
    """Collect styled text runs from markup.

    Formatting tags are tracked on a stack of open tags; the style of each
    piece of text is read off that stack. Tags that are not formatting tags
    are dropped and their names recorded in `block_tags`. Comments and
    declarations are dropped.
    """

    def __init__(self):
        # Entities are decoded before parsing; leftovers stay literal
        super().__init__(convert_charrefs=False)
        self.runs: list[TextRun] = []
        self.block_tags: list[str] = []
        self._open: list[tuple[str, Optional[str]]] = []

    def handle_starttag(self, tag, attrs):
        if tag not in _STYLE_TAGS:
            self.block_tags.append(tag)
        elif tag == 'br':
            self._append('\n')
        else:
            href = dict(attrs).get('href') if tag == 'a' else None
            self._open.append((tag, href))

    def handle_startendtag(self, tag, attrs):
        if tag not in _STYLE_TAGS:
            self.block_tags.append(tag)
        elif tag == 'br':
            self._append('\n')

    def handle_endtag(self, tag):
        if tag not in _STYLE_TAGS:
            self.block_tags.append(tag)
            return
        # Close the innermost open tag of this name; strays are ignored
        for i in range(len(self._open) - 1, -1, -1):
            if self._open[i][0] == tag:
                del self._open[i]
                break

    def handle_data(self, data):
        self._append(data)

    def handle_entityref(self, name):
        self._append(f'&{name};')

    def handle_charref(self, name):
        self._append(f'&#{name};')

    def _append(self, text: str) -> None:
        names = {tag for tag, _ in self._open}
        links = [href for tag, href in self._open if tag == 'a' and href]
        run = TextRun(
            text=text,
            bold=bool(names & _BOLD_TAGS),
            italic=bool(names & _ITALIC_TAGS),
            strikethrough=bool(names & _STRIKETHROUGH_TAGS),
            code='code' in names,
            link=links[-1] if links else None,
        )
        if self.runs and self.runs[-1].same_style(run):
            self.runs[-1].text += text
        else:
            self.runs.append(run)


def _parse_markup(markup: str) -> InlineMarkupParser:
    parser = InlineMarkupParser()
    try:
        parser.feed(markup)
        parser.close()
    except AssertionError as e:
        # Some Python releases reject malformed marked sections (`<![x`)
        logger.debug(f"Markup parse stopped early: {e}")
        parser.block_tags.append('!')
    return parser


def normalize_content(text: str) -> str:
    """Normalize line endings and escaped newlines."""
    text = text.replace('\r\n', '\n').replace('\r', '\n')
    return _ESCAPED_NEWLINE.sub('\n', text)


def has_residual_tag(text: str) -> bool:
    """Return True if text still holds tag-like markup (`<` + letter)."""
    return bool(_RESIDUAL_TAG.search(text))


def has_block_markup(markup: str) -> bool:
    """Return True if markup holds anything but inline formatting tags.

    Entity decoding is left to the caller.
    """
    parser = _parse_markup(markup)
    if parser.block_tags:
        return True
    return has_residual_tag(''.join(run.text for run in parser.runs))


def _collapse_run(text: str) -> str:
    text = _MULTI_SPACE.sub(' ', text)
    text = _SPACE_AROUND_NEWLINE.sub('\n', text)
    return _EXCESS_NEWLINES.sub('\n\n', text)


def _drop_residual_brackets(runs: list[TextRun]) -> None:
    """Remove `<` that forms a tag opener with text from the next run."""
    joined = ''.join(run.text for run in runs)
    positions = {m.start() for m in _RESIDUAL_TAG.finditer(joined)}
    if not positions:
        return
    offset = 0
    for run in runs:
        length = len(run.text)
        run.text = ''.join(
            ch for i, ch in enumerate(run.text) if offset + i not in positions
        )
        offset += length


def _tidy_runs(runs: list[TextRun]) -> list[TextRun]:
    """Collapse whitespace across run boundaries and trim the edges."""
    kept: list[TextRun] = []
    for run in runs:
        run.text = _collapse_run(_DANGLING_TAG.sub('', run.text))
        if kept:
            previous = kept[-1]
            if previous.text[-1:] in (' ', '\n') and run.text[:1] in (' ', '\t'):
                run.text = run.text.lstrip(' \t')
            elif previous.text[-1:] in (' ', '\t') and run.text[:1] == '\n':
                previous.text = previous.text.rstrip(' \t')
        if run.text:
            kept.append(run)

    while kept:
        kept[0].text = _ORPHAN_SEPARATORS_START.sub('', kept[0].text.lstrip())
        if kept[0].text:
            break
        kept.pop(0)
    while kept:
        kept[-1].text = _ORPHAN_SEPARATORS_END.sub('', kept[-1].text).rstrip()
        if kept[-1].text:
            break
        kept.pop()

    _drop_residual_brackets(kept)
    return [run for run in kept if run.text]


def clean_runs(text: str, decode_entities: bool = True) -> list[TextRun]:
    """Styled display text of a piece of markup.

    Decodes HTML entities (first, so an entity-escaped tag is handled like
    any other tag), reads inline formatting tags into run styles, drops every
    other tag, collapses whitespace and trims orphaned separators.

    Returns:
        Non-empty runs in document order.
    """
    if decode_entities:
        text = html.unescape(text)
    return _tidy_runs(_parse_markup(text).runs)


def clean_text(text: str) -> str:
    """Plain display text of a piece of markup."""
    return ''.join(run.text for run in clean_runs(text))

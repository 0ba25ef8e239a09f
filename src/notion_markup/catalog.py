"""Tag catalog: recognized markup tags and how each becomes a block.

The catalog is a static table built once at import. The tree builder looks
entries up by tag name; the resolver calls an entry's converter with the tag's
content (child tag spans already cut out) and its parsed attributes.
"""

import html
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

import parsy as P

from .blocks import Block, RichTextSpan
from .cleanup import clean_text
from .inline import parse_rich_text

logger = logging.getLogger("notion-markup.catalog")


# =============================================================================
# Attribute Parsing (Parsy-based)
# =============================================================================

_ws = P.regex(r'\s*')
_attr_name = P.regex(r'[A-Za-z_:][-A-Za-z0-9_:.]*').map(str.lower)
_attr_value = (
    (P.string('"') >> P.regex(r'[^"]*') << P.string('"')) |
    (P.string("'") >> P.regex(r"[^']*") << P.string("'")) |
    P.regex(r'[^\s"\'<>=`/]+')
)
_attribute = P.seq(
    _attr_name,
    (_ws >> P.string('=') >> _ws >> _attr_value).optional(),
)
_attributes = _ws >> (_attribute << _ws).many() << P.regex(r'/?\s*')

# Used when the grammar rejects the attribute string outright
_FALLBACK_ATTR = re.compile(r'([A-Za-z_:][-A-Za-z0-9_:.]*)\s*=\s*(?:"([^"]*)"|\'([^\']*)\'|(\S+))')


def parse_attributes(attr_text: str) -> dict[str, str]:
    """Parse the attribute part of an opening tag.

    Accepts `name="v"`, `name='v'`, `name=v` and bare `name` (value ""),
    with names lowercased. Values are HTML-unescaped.
    """
    if not attr_text or not attr_text.strip():
        return {}
    try:
        pairs = _attributes.parse(attr_text)
    except P.ParseError as e:
        logger.debug(f"Attribute parse error, using fallback: {e}")
        return {
            m.group(1).lower(): html.unescape(m.group(2) or m.group(3) or m.group(4) or '')
            for m in _FALLBACK_ATTR.finditer(attr_text)
        }
    return {name: html.unescape(value or '') for name, value in pairs}


# =============================================================================
# Configuration Tables
# =============================================================================

# Callout type -> (emoji, color)
CALLOUT_STYLES = {
    'info': ('ℹ️', 'blue_background'),
    'warning': ('⚠️', 'yellow_background'),
    'danger': ('🚨', 'red_background'),
    'error': ('❌', 'red_background'),
    'note': ('📝', 'gray_background'),
    'tip': ('💡', 'green_background'),
    'success': ('✅', 'green_background'),
    'question': ('❓', 'purple_background'),
}
DEFAULT_CALLOUT_STYLE = ('ℹ️', 'gray_background')

# Hosts whose URLs Notion renders as embeds rather than bookmarks
EMBED_URL_PATTERNS = [
    re.compile(r'^(?:https?://)?(?:www\.|m\.)?(?:youtube\.com/watch\?v=|youtu\.be/)', re.IGNORECASE),
    re.compile(r'^(?:https?://)?(?:www\.)?vimeo\.com/', re.IGNORECASE),
    re.compile(r'^(?:https?://)?(?:www\.)?dailymotion\.com/video/', re.IGNORECASE),
    re.compile(r'^(?:https?://)?(?:www\.)?twitch\.tv/', re.IGNORECASE),
    re.compile(r'^(?:https?://)?(?:www\.)?loom\.com/share/', re.IGNORECASE),
    re.compile(r'^(?:https?://)?(?:www\.)?figma\.com/', re.IGNORECASE),
    re.compile(r'^(?:https?://)?(?:www\.)?miro\.com/', re.IGNORECASE),
    re.compile(r'^(?:https?://)?codepen\.io/', re.IGNORECASE),
]

URL_PATTERN = re.compile(r'^https?://\S+$', re.IGNORECASE)

_TRUTHY = {'true', '1', 'yes', 'checked', ''}


def callout_style(callout_type: str) -> tuple[str, str]:
    """Return (emoji, color) for a callout type, case-insensitive."""
    return CALLOUT_STYLES.get(callout_type.strip().lower(), DEFAULT_CALLOUT_STYLE)


def is_embeddable_url(url: str) -> bool:
    """Check whether a URL belongs to a host Notion can embed."""
    return any(pattern.search(url) for pattern in EMBED_URL_PATTERNS)


# =============================================================================
# Converters
# =============================================================================

def _rich_text(content: str) -> Optional[list[RichTextSpan]]:
    spans = parse_rich_text(content)
    return spans or None


def _text_block(block_type: str) -> Callable[[str, dict, str], Optional[Block]]:
    def convert(content: str, attrs: dict, tag_name: str) -> Optional[Block]:
        spans = _rich_text(content)
        if spans is None:
            return None
        return Block(block_type, rich_text=spans)
    return convert


_SUMMARY = re.compile(r'<summary(?:\s[^<>]*)?>(?P<title>.*?)</summary\s*>', re.IGNORECASE | re.DOTALL)


def _toggle(content: str, attrs: dict, tag_name: str) -> Optional[Block]:
    # <details><summary>Title</summary>Body</details>
    summary = _SUMMARY.search(content)
    title = parse_rich_text(summary.group('title')) if summary else []
    if not title:
        spans = _rich_text(content)
        return Block('toggle', rich_text=spans) if spans else None
    body = parse_rich_text(content[:summary.start()] + ' ' + content[summary.end():])
    children = [Block('paragraph', rich_text=body)] if body else []
    return Block('toggle', rich_text=title, children=children)


def _heading(content: str, attrs: dict, tag_name: str) -> Optional[Block]:
    spans = _rich_text(content)
    if spans is None:
        return None
    level = min(int(tag_name[1]), 3)
    return Block(f'heading_{level}', rich_text=spans)


def _callout(content: str, attrs: dict, tag_name: str) -> Optional[Block]:
    spans = _rich_text(content)
    if spans is None:
        return None
    emoji, color = callout_style(attrs.get('type', 'info'))
    emoji = attrs.get('icon') or attrs.get('emoji') or emoji
    return Block('callout', rich_text=spans, icon=emoji, color=color)


def _todo(content: str, attrs: dict, tag_name: str) -> Optional[Block]:
    spans = _rich_text(content)
    if spans is None:
        return None
    checked = 'checked' in attrs and attrs['checked'].strip().lower() in _TRUTHY
    return Block('to_do', rich_text=spans, checked=checked)


_PRE_CODE = re.compile(r'^\s*<code(?P<attrs>\s[^<>]*)?>(?P<body>.*)</code>\s*$', re.IGNORECASE | re.DOTALL)
_LANGUAGE_CLASS = re.compile(r'(?:lang|language)-([\w+#-]+)')


def _code(content: str, attrs: dict, tag_name: str) -> Optional[Block]:
    # <pre><code class="language-x">...</code></pre>
    wrapped = _PRE_CODE.match(content) if tag_name == 'pre' else None
    if wrapped:
        content = wrapped.group('body')
        inner_attrs = parse_attributes(wrapped.group('attrs') or '')
        lang_class = _LANGUAGE_CLASS.search(inner_attrs.get('class', ''))
        if lang_class and 'language' not in attrs:
            attrs = {**attrs, 'language': lang_class.group(1)}
    code = re.sub(r'^\s*\n', '', html.unescape(content)).rstrip()
    if not code:
        return None
    language = attrs.get('language') or attrs.get('lang') or 'plain text'
    if language == 'plain_text':
        language = 'plain text'
    return Block('code', rich_text=[RichTextSpan(text=code)], language=language.lower())


def _image(content: str, attrs: dict, tag_name: str) -> Optional[Block]:
    src = attrs.get('src', '').strip()
    if not src:
        return None
    caption = parse_rich_text(content) or parse_rich_text(attrs.get('alt', ''))
    return Block('image', url=src, caption=caption)


def _url_block(block_type: str, *url_attrs: str) -> Callable[[str, dict, str], Optional[Block]]:
    def convert(content: str, attrs: dict, tag_name: str) -> Optional[Block]:
        url = clean_text(content)
        for name in url_attrs:
            if not url:
                url = attrs.get(name, '').strip()
        if not URL_PATTERN.match(url):
            return None
        return Block(block_type, url=url)
    return convert


def _equation(content: str, attrs: dict, tag_name: str) -> Optional[Block]:
    expression = html.unescape(content).strip()
    if not expression:
        return None
    return Block('equation', expression=expression)


def _divider(content: str, attrs: dict, tag_name: str) -> Optional[Block]:
    return Block('divider')


# =============================================================================
# Catalog
# =============================================================================

@dataclass(frozen=True)
class TagEntry:
    """One recognized tag family.

    Attributes:
        names: Tag names (lowercase) handled by this entry.
        convert: `(content, attrs, tag_name) -> Block | None`. None for list
            containers, which are expanded by the list item extractor.
        list_type: Block type of the items of a list container.
        void: May appear without a closing tag (`<hr>`, `<img ...>`).
        opaque: Content is literal; tags inside never become nodes.
    """
    names: tuple[str, ...]
    convert: Optional[Callable[[str, dict, str], Optional[Block]]] = None
    list_type: Optional[str] = None
    void: bool = False
    opaque: bool = False

    @property
    def is_list(self) -> bool:
        return self.list_type is not None


TAG_CATALOG: tuple[TagEntry, ...] = (
    TagEntry(('callout',), _callout),
    TagEntry(('code', 'pre'), _code, opaque=True),
    TagEntry(('image', 'img'), _image, void=True),
    TagEntry(('equation',), _equation, opaque=True),
    TagEntry(('embed',), _url_block('embed', 'src', 'url'), void=True),
    TagEntry(('bookmark',), _url_block('bookmark', 'href', 'url', 'src'), void=True),
    TagEntry(('toggle', 'details'), _toggle),
    TagEntry(('quote', 'blockquote'), _text_block('quote')),
    TagEntry(('divider', 'hr'), _divider, void=True),
    TagEntry(('todo',), _todo),
    TagEntry(('h1', 'h2', 'h3', 'h4', 'h5', 'h6'), _heading),
    TagEntry(('p',), _text_block('paragraph')),
    TagEntry(('ul',), list_type='bulleted_list_item'),
    TagEntry(('ol',), list_type='numbered_list_item'),
    TagEntry(('li',), _text_block('bulleted_list_item')),
)

CATALOG_BY_NAME: dict[str, TagEntry] = {
    name: entry for entry in TAG_CATALOG for name in entry.names
}


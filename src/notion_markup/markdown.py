"""Line-oriented markdown fallback for text outside recognized tags."""

import html
import logging
import re
from typing import Optional

from .blocks import Block, RichTextSpan
from .catalog import URL_PATTERN, callout_style, is_embeddable_url
from .cleanup import has_block_markup
from .inline import parse_rich_text

logger = logging.getLogger("notion-markup.markdown")


HEADING = re.compile(r'^(#{1,6})\s+(.+)$')
HORIZONTAL_RULE = re.compile(r'^(?:-{3,}|\*{3,}|_{3,})$')
CALLOUT = re.compile(r'^>\s*\[!(\w+)\]\s*(.*)$')
IMAGE = re.compile(r'^!\[(?P<alt>[^\]]*)\]\((?P<url>\S+?)\)$')
EQUATION = re.compile(r'^\$\$(.+)\$\$$')
TODO = re.compile(r'^[-*+]\s+\[( |x|X)\]\s*(.*)$')
BULLET = re.compile(r'^[-*+]\s+(.+)$')
NUMBERED = re.compile(r'^\d+[.)]\s+(.+)$')
QUOTE = re.compile(r'^>\s?(.*)$')
FENCE = re.compile(r'^```\s*([\w+#.-]*)')
# Fence closed on its own line: ```js const x = 1```
ONE_LINE_FENCE = re.compile(r'^```(?:(?P<lang>[\w+#.-]+)\s+)?(?P<code>[^`].*?)```$')

_NESTABLE = {'bulleted_list_item', 'numbered_list_item', 'to_do'}


def _text(block_type: str, text: str, **kwargs) -> Optional[Block]:
    spans = parse_rich_text(text, decode_entities=False)
    if not spans:
        return None
    return Block(block_type, rich_text=spans, **kwargs)


def parse_line(line: str) -> Optional[Block]:
    """Convert a single stripped, entity-decoded, non-fence line into a block.

    Returns None for a line with no visible text, such as `- [ ]` or `>`.
    """
    m = HEADING.match(line)
    if m:
        level = min(len(m.group(1)), 3)
        return _text(f'heading_{level}', m.group(2).strip())

    if HORIZONTAL_RULE.match(line):
        return Block('divider')

    m = CALLOUT.match(line)
    if m:
        emoji, color = callout_style(m.group(1))
        return _text('callout', m.group(2).strip(), icon=emoji, color=color)

    m = IMAGE.match(line)
    if m:
        alt = m.group('alt').strip()
        return Block(
            'image',
            url=m.group('url'),
            caption=[RichTextSpan(text=alt)] if alt else [],
        )

    m = EQUATION.match(line)
    if m:
        return Block('equation', expression=m.group(1).strip())

    if URL_PATTERN.match(line):
        return Block('embed' if is_embeddable_url(line) else 'bookmark', url=line)

    m = TODO.match(line)
    if m:
        return _text('to_do', m.group(2).strip(), checked=m.group(1).lower() == 'x')

    m = BULLET.match(line)
    if m:
        return _text('bulleted_list_item', m.group(1).strip())

    m = NUMBERED.match(line)
    if m:
        return _text('numbered_list_item', m.group(1).strip())

    m = QUOTE.match(line)
    if m:
        return _text('quote', m.group(1).strip())

    return _text('paragraph', line)


def _indent(line: str) -> int:
    expanded = line.expandtabs(4)
    return len(expanded) - len(expanded.lstrip(' '))


def parse_markdown_lines(text: str) -> list[Block]:
    """Parse markdown text line by line into blocks.

    Fenced code blocks keep their interior verbatim. Indented list items and
    to-dos become children of the nearest less-indented item above them.
    A fence closed on its own opening line is a one-line code block. Lines
    holding any tag other than inline formatting are skipped so no markup
    leaks into block text.

    Args:
        text: Text between recognized tags (or the whole document).

    Returns:
        Blocks in line order.
    """
    blocks: list[Block] = []
    # (indent, block) of list items that may take nested items
    stack: list[tuple[int, Block]] = []
    lines = text.split('\n')
    i = 0

    while i < len(lines):
        raw = lines[i]
        stripped = raw.strip()
        i += 1

        if not stripped:
            continue

        m = ONE_LINE_FENCE.match(stripped)
        if m:
            code = m.group('code').strip()
            if code:
                language = (m.group('lang') or 'plain text').lower()
                blocks.append(Block('code', rich_text=[RichTextSpan(text=code)], language=language))
            stack.clear()
            continue

        m = FENCE.match(stripped)
        if m:
            language = m.group(1).lower() or 'plain text'
            code_lines = []
            while i < len(lines) and lines[i].strip() != '```':
                code_lines.append(lines[i])
                i += 1
            i += 1  # closing fence
            code = '\n'.join(code_lines).rstrip()
            if code:
                blocks.append(Block('code', rich_text=[RichTextSpan(text=code)], language=language))
            stack.clear()
            continue

        line = html.unescape(stripped)
        if has_block_markup(line):
            logger.debug(f"Skipping line with leftover markup: {line[:60]!r}")
            continue

        block = parse_line(line)
        if block is None:
            continue

        if block.block_type not in _NESTABLE:
            stack.clear()
            blocks.append(block)
            continue

        indent = _indent(raw)
        while stack and stack[-1][0] >= indent:
            stack.pop()
        if stack:
            stack[-1][1].children.append(block)
        else:
            blocks.append(block)
        stack.append((indent, block))

    return blocks

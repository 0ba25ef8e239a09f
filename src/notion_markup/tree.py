"""Hierarchical tag tree builder.

Finds every block-level tag in a document, pairs each opening tag with its
closing tag by explicit depth counting, and arranges the resulting spans
into a forest that mirrors their textual nesting.
"""

import logging
import re
from bisect import bisect_right
from dataclasses import dataclass, field
from itertools import groupby
from typing import Optional

from .catalog import CATALOG_BY_NAME, TagEntry, parse_attributes
from .cleanup import INLINE_TAGS

logger = logging.getLogger("notion-markup.tree")


# Opening, closing or self-closing tag
TAG_PATTERN = re.compile(
    r'<(?P<close>/)?(?P<name>[A-Za-z][\w:-]*)(?=[\s/>])(?P<attrs>[^<>]*?)(?P<slash>/)?>'
)

# Fenced markdown code blocks: closed on the opening line (```js x```),
# closed on a later line, or unterminated and running to the end
FENCE_PATTERN = re.compile(
    r'^[ \t]*```(?:[^`\n][^\n]*?```[ \t]*$|.*?(?:\n[ \t]*```[ \t]*(?=\n|\Z)|\Z))',
    re.MULTILINE | re.DOTALL
)


@dataclass(eq=False)
class TagNode:
    """One tag occurrence and its span in the scanned text.

    `entry` is None for tags the catalog does not know; those never produce
    a block themselves.
    """
    tag_name: str
    start: int
    end: int
    inner_start: int
    inner_end: int
    attrs: dict[str, str] = field(default_factory=dict)
    self_closing: bool = False
    entry: Optional[TagEntry] = None
    children: list["TagNode"] = field(default_factory=list)
    depth: int = 0

    def raw(self, text: str) -> str:
        return text[self.start:self.end]

    def inner(self, text: str) -> str:
        return text[self.inner_start:self.inner_end]

    def content(self, text: str) -> str:
        """Inner text with every child span cut out.

        A cut leaves a space so the text on either side stays apart.
        """
        parts = []
        cursor = self.inner_start
        for child in self.children:
            parts.append(text[cursor:child.start])
            cursor = child.end
        parts.append(text[cursor:self.inner_end])
        return ' '.join(parts)


def match_tag_pairs(text: str) -> tuple[list[re.Match], dict[int, tuple[int, int]]]:
    """Pair every opening tag with its closing tag in one pass.

    Each tag name keeps its own stack of open tags. A closing tag pops the
    innermost open tag of its name, which is the opening whose same-name
    depth count returns to zero there. Closing tags with nothing open are
    ignored; openings left on a stack are unclosed.

    Returns:
        (openings, pairs): opening and self-closing tags in document order,
        and a map from an opening tag's start offset to the (start, end) of
        its closing tag.
    """
    openings = []
    pairs: dict[int, tuple[int, int]] = {}
    open_by_name: dict[str, list[int]] = {}

    for m in TAG_PATTERN.finditer(text):
        name = m.group('name').lower()
        if m.group('close'):
            stack = open_by_name.get(name)
            if stack:
                pairs[stack.pop()] = (m.start(), m.end())
            continue
        openings.append(m)
        if not m.group('slash'):
            open_by_name.setdefault(name, []).append(m.start())

    return openings, pairs


def _fenced_spans(text: str) -> list[tuple[int, int]]:
    return [(m.start(), m.end()) for m in FENCE_PATTERN.finditer(text)]


def _in_fence(fences: list[tuple[int, int]], fence_starts: list[int], pos: int) -> bool:
    i = bisect_right(fence_starts, pos) - 1
    return i >= 0 and pos < fences[i][1]


def _is_inline_code(text: str, start: int, end: int, attrs: dict, inner: str) -> bool:
    """A bare `<code>` sharing its line with other text is inline formatting."""
    if attrs or '\n' in inner:
        return False
    line_start = text.rfind('\n', 0, start) + 1
    line_end = text.find('\n', end)
    if line_end == -1:
        line_end = len(text)
    return bool(text[line_start:start].strip() or text[end:line_end].strip())


def scan_tags(text: str) -> list[TagNode]:
    """Collect a node for every paired or self-closing block-level tag.

    Catalog tags and unknown tags are scanned alike; inline formatting tags
    and anything inside a fenced code block are ignored. Opening tags with
    no closing tag are skipped unless the catalog marks them void.
    """
    fences = _fenced_spans(text)
    fence_starts = [start for start, _ in fences]
    openings, pairs = match_tag_pairs(text)
    nodes: list[TagNode] = []

    for m in openings:
        name = m.group('name').lower()
        if name in INLINE_TAGS:
            continue
        if _in_fence(fences, fence_starts, m.start()):
            continue

        entry = CATALOG_BY_NAME.get(name)
        attrs = parse_attributes(m.group('attrs'))

        if m.group('slash'):
            nodes.append(TagNode(
                tag_name=name, start=m.start(), end=m.end(),
                inner_start=m.end(), inner_end=m.end(),
                attrs=attrs, self_closing=True, entry=entry,
            ))
            continue

        close = pairs.get(m.start())
        if close is None:
            if entry is not None and entry.void:
                nodes.append(TagNode(
                    tag_name=name, start=m.start(), end=m.end(),
                    inner_start=m.end(), inner_end=m.end(),
                    attrs=attrs, self_closing=True, entry=entry,
                ))
            else:
                logger.debug(f"Skipping unclosed <{name}> at offset {m.start()}")
            continue

        close_start, close_end = close
        if name == 'code' and _is_inline_code(
            text, m.start(), close_end, attrs, text[m.end():close_start]
        ):
            continue

        nodes.append(TagNode(
            tag_name=name, start=m.start(), end=close_end,
            inner_start=m.end(), inner_end=close_start,
            attrs=attrs, entry=entry,
        ))

    nodes.sort(key=lambda n: (n.start, -n.end))
    return nodes


def _drop_generic_conflicts(nodes: list[TagNode]) -> list[TagNode]:
    """Drop unknown-tag nodes that straddle the boundary of a known tag.

    One sweep over tag boundaries in text order, closings before openings at
    the same offset. A node crosses another when it closes while the other,
    opened after it, is still open. Open nodes of each kind are kept in
    start order, so only the most recently opened ones need checking.
    """
    spans = [n for n in nodes if not n.self_closing]
    events = [(n.start, 1, i, n) for i, n in enumerate(spans)]
    events += [(n.end, 0, i, n) for i, n in enumerate(spans)]
    events.sort(key=lambda e: e[:3])

    closed: set[TagNode] = set()
    dropped: set[TagNode] = set()
    open_known: list[TagNode] = []
    open_generic: list[TagNode] = []

    for (_, opening), group in groupby(events, key=lambda e: e[:2]):
        batch = [e[3] for e in group]
        if opening:
            for node in batch:
                (open_generic if node.entry is None else open_known).append(node)
            continue

        closed.update(batch)
        for node in batch:
            if node.entry is None:
                while open_known and open_known[-1] in closed:
                    open_known.pop()
                if open_known and open_known[-1].start > node.start:
                    dropped.add(node)
            else:
                while open_generic and (
                    open_generic[-1] in closed or open_generic[-1].start > node.start
                ):
                    crossing = open_generic.pop()
                    if crossing not in closed:
                        dropped.add(crossing)

    kept = []
    for node in nodes:
        if node in dropped:
            logger.debug(f"Dropping <{node.tag_name}> overlapping a known tag at offset {node.start}")
            continue
        kept.append(node)
    return kept


def build_tag_tree(text: str) -> list[TagNode]:
    """Build the tag forest for a document.

    Nodes are visited in start order with a stack of open ancestors. Entries
    ending at or before the current node are popped; the remaining top is the
    parent. A node reaching past its parent's end is dropped, as is any node
    inside an opaque tag (code, pre, equation).

    Args:
        text: The document text.

    Returns:
        Root nodes in document order, children attached.
    """
    roots: list[TagNode] = []
    stack: list[TagNode] = []

    for node in _drop_generic_conflicts(scan_tags(text)):
        while stack and stack[-1].end <= node.start:
            stack.pop()

        if stack:
            parent = stack[-1]
            if node.end > parent.end:
                logger.debug(f"Dropping <{node.tag_name}> crossing </{parent.tag_name}> at offset {node.start}")
                continue
            if parent.entry is not None and parent.entry.opaque:
                continue
            node.depth = len(stack)
            parent.children.append(node)
        else:
            roots.append(node)

        if not node.self_closing:
            stack.append(node)

    return roots

"""Hybrid markup (HTML-like tags mixed with markdown) to Notion blocks."""

import logging

from .blocks import Block
from .cleanup import normalize_content
from .markdown import parse_markdown_lines
from .resolver import parse_fragment, resolve_node
from .tree import build_tag_tree

logger = logging.getLogger("notion-markup.parser")

__all__ = ["parse_content_to_blocks", "parse_fragment"]


def parse_content_to_blocks(content: str) -> list[Block]:
    """Parse hybrid markup into a forest of Notion blocks.

    Recognized tags become blocks through the tag tree; the text between
    top-level tags goes through the markdown fallback. Blocks come out in
    the order their source appears in the document.

    Args:
        content: Markup as received from the caller. Literal `\\n` sequences
            are treated as line breaks.

    Returns:
        Top-level blocks, each with its nested children. Empty for empty or
        whitespace-only input.
    """
    if not content or not content.strip():
        return []

    text = normalize_content(content)
    roots = build_tag_tree(text)

    blocks: list[Block] = []
    cursor = 0
    for node in roots:
        blocks.extend(parse_markdown_lines(text[cursor:node.start]))
        blocks.extend(resolve_node(text, node))
        cursor = node.end
    blocks.extend(parse_markdown_lines(text[cursor:]))

    logger.debug(f"Parsed {len(text)} chars into {len(blocks)} top-level blocks ({len(roots)} tag roots)")
    return blocks

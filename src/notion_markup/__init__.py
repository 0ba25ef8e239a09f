"""Convert hybrid markup (HTML-like tags mixed with markdown) into Notion blocks."""

from .blocks import Block, RichTextSpan, blocks_to_notion
from .inline import parse_inline_formatting, parse_rich_text
from .parser import parse_content_to_blocks, parse_fragment

__all__ = [
    "Block",
    "RichTextSpan",
    "blocks_to_notion",
    "parse_content_to_blocks",
    "parse_fragment",
    "parse_inline_formatting",
    "parse_rich_text",
]

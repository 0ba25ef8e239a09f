"""Block model and Notion API serialization.

A `Block` is the in-memory form of one Notion block. Parsing produces a forest
of these; `blocks_to_notion` turns them into the JSON payload accepted by
`PATCH /blocks/{id}/children`.
"""

import re
from dataclasses import dataclass, field
from typing import Iterator, Optional


# Notion rejects rich_text items whose content exceeds 2000 characters
MAX_RICH_TEXT_LENGTH = 2000

# Block types that may own child blocks
CHILD_BEARING_BLOCK_TYPES = {
    'bulleted_list_item', 'numbered_list_item', 'to_do',
    'toggle', 'quote', 'callout',
}

# Block types whose payload is a rich_text array
TEXT_BLOCK_TYPES = {
    'paragraph', 'heading_1', 'heading_2', 'heading_3',
    'bulleted_list_item', 'numbered_list_item', 'to_do',
    'toggle', 'quote', 'callout', 'code',
}

LIST_ITEM_TYPES = {'bulleted_list_item', 'numbered_list_item'}

_LINKABLE_URL = re.compile(r'^(?:https?://|mailto:)\S+$', re.IGNORECASE)


@dataclass
class RichTextSpan:
    """A span of rich text with formatting."""
    text: str
    bold: bool = False
    italic: bool = False
    strikethrough: bool = False
    code: bool = False
    link: Optional[str] = None


@dataclass
class Block:
    """Parsed block.

    Kind-specific fields are only meaningful for their block type; everything
    else keeps its default.
    """
    block_type: str
    rich_text: list[RichTextSpan] = field(default_factory=list)
    children: list["Block"] = field(default_factory=list)
    checked: Optional[bool] = None  # to_do
    language: Optional[str] = None  # code
    url: Optional[str] = None  # image, embed, bookmark
    expression: Optional[str] = None  # equation
    caption: list[RichTextSpan] = field(default_factory=list)  # image
    icon: Optional[str] = None  # callout emoji
    color: Optional[str] = None  # callout

    def __post_init__(self):
        if self.block_type in TEXT_BLOCK_TYPES and not self.rich_text:
            self.rich_text = [RichTextSpan(text='')]

    @property
    def supports_children(self) -> bool:
        return self.block_type in CHILD_BEARING_BLOCK_TYPES

    def to_notion(self) -> dict:
        """Convert to Notion API block format."""
        block_type = self.block_type
        data: dict

        if block_type == 'code':
            data = {
                "rich_text": rich_text_spans_to_notion(self.rich_text),
                "language": self.language or "plain text",
            }
        elif block_type == 'to_do':
            data = {
                "rich_text": rich_text_spans_to_notion(self.rich_text),
                "checked": bool(self.checked),
            }
        elif block_type == 'callout':
            data = {"rich_text": rich_text_spans_to_notion(self.rich_text)}
            if self.icon:
                data["icon"] = {"type": "emoji", "emoji": self.icon}
            if self.color and self.color != 'default':
                data["color"] = self.color
        elif block_type in TEXT_BLOCK_TYPES:
            data = {"rich_text": rich_text_spans_to_notion(self.rich_text)}
        elif block_type == 'divider':
            data = {}
        elif block_type == 'equation':
            data = {"expression": self.expression or ""}
        elif block_type == 'image':
            data = {
                "type": "external",
                "external": {"url": self.url or ""},
            }
            if self.caption:
                data["caption"] = rich_text_spans_to_notion(self.caption)
        elif block_type in ('embed', 'bookmark'):
            data = {"url": self.url or ""}
        else:
            raise ValueError(f"Unsupported block type: {block_type}")

        if self.children and self.supports_children:
            data["children"] = [child.to_notion() for child in self.children]

        return {"object": "block", "type": block_type, block_type: data}


def rich_text_spans_to_notion(spans: list[RichTextSpan]) -> list[dict]:
    """Convert RichTextSpan list to Notion API rich_text format.

    Spans longer than MAX_RICH_TEXT_LENGTH are split into consecutive items
    with the same annotations.
    """
    result = []
    for span in spans:
        annotations = {}
        if span.bold:
            annotations["bold"] = True
        if span.italic:
            annotations["italic"] = True
        if span.strikethrough:
            annotations["strikethrough"] = True
        if span.code:
            annotations["code"] = True

        link = span.link if span.link and _LINKABLE_URL.match(span.link) else None

        chunks = [
            span.text[i:i + MAX_RICH_TEXT_LENGTH]
            for i in range(0, len(span.text), MAX_RICH_TEXT_LENGTH)
        ] or ['']
        for chunk in chunks:
            obj: dict = {
                "type": "text",
                "text": {"content": chunk}
            }
            if link:
                obj["text"]["link"] = {"url": link}
            if annotations:
                obj["annotations"] = dict(annotations)
            result.append(obj)
    return result


def blocks_to_notion(blocks: list[Block]) -> list[dict]:
    """Serialize a block forest for the Notion API."""
    return [block.to_notion() for block in blocks]


def plain_text(block: Block) -> str:
    """Concatenated text of a block's rich_text spans."""
    return "".join(span.text for span in block.rich_text)


def walk_blocks(blocks: list[Block]) -> Iterator[Block]:
    """Yield every block in the forest, depth-first, parents before children."""
    for block in blocks:
        yield block
        yield from walk_blocks(block.children)

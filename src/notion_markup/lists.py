"""List item extraction for `<ul>` / `<ol>` containers."""

import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from .blocks import RichTextSpan
from .inline import parse_rich_text
from .tree import TagNode, build_tag_tree

logger = logging.getLogger("notion-markup.lists")


@dataclass
class NestedList:
    """A list container found inside an item; rendered as the item's children."""
    list_type: str
    inner_content: str
    items: list["ListItem"] = field(default_factory=list)


@dataclass
class NestedMarkup:
    """A non-list block tag found inside an item.

    `node` belongs to the tag tree of `source`.
    """
    node: TagNode
    source: str

    @property
    def markup(self) -> str:
        return self.node.raw(self.source)


@dataclass
class ListItem:
    text: str
    nested_children: list[Union[NestedList, NestedMarkup]] = field(default_factory=list)
    rich_text: list[RichTextSpan] = field(default_factory=list)


def _item_from_node(text: str, node: TagNode) -> Optional[ListItem]:
    """Separate an item's own prose from the block tags nested in it."""
    prose = []
    nested: list[Union[NestedList, NestedMarkup]] = []
    cursor = node.inner_start

    for child in node.children:
        prose.append(text[cursor:child.start])
        if child.entry is None:
            # Unknown wrappers are prose; cleanup drops the tags
            prose.append(child.raw(text))
        elif child.entry.is_list:
            prose.append(' ')
            nested.append(NestedList(
                child.entry.list_type,
                child.inner(text),
                collect_list_items(text, child.children),
            ))
        else:
            prose.append(' ')
            nested.append(NestedMarkup(child, text))
        cursor = child.end
    prose.append(text[cursor:node.inner_end])

    spans = parse_rich_text(''.join(prose))
    if not spans and not nested:
        return None
    return ListItem(
        text=''.join(span.text for span in spans),
        nested_children=nested,
        rich_text=spans,
    )


def collect_list_items(text: str, nodes: list[TagNode]) -> list[ListItem]:
    """List items among the tag nodes directly inside a list container.

    Items wrapped in unknown tags count, as do the items of a list sitting
    directly in the container without an item of its own.
    """
    items = []
    for node in nodes:
        if node.tag_name == 'li':
            item = _item_from_node(text, node)
            if item is not None:
                items.append(item)
        elif node.entry is None or node.entry.is_list:
            items.extend(collect_list_items(text, node.children))
    return items


def extract_list_items(inner_content: str) -> list[ListItem]:
    """Extract the top-level items of a list container's inner content.

    Each `<li>` is paired with its closing tag by counting nested `<li>`
    depth (see `build_tag_tree`), so items of nested lists stay inside their
    parent item. Openers that are never closed are skipped.

    Args:
        inner_content: Text between `<ul>`/`<ol>` and its closing tag.

    Returns:
        Items in document order; items with neither text nor nested blocks
        are dropped.
    """
    return collect_list_items(inner_content, build_tag_tree(inner_content))

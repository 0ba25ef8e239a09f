"""Depth-first conversion of a tag tree into blocks."""

import logging

from .blocks import Block, RichTextSpan
from .lists import ListItem, NestedList, collect_list_items, extract_list_items
from .tree import TagNode, build_tag_tree

logger = logging.getLogger("notion-markup.resolver")


# Placeholder paragraph for a subtree whose conversion raised
CONVERSION_ERROR_TEXT = "⚠️ This content could not be converted."


def _error_block() -> Block:
    return Block('paragraph', rich_text=[RichTextSpan(text=CONVERSION_ERROR_TEXT)])


def resolve_tag_tree(text: str, roots: list[TagNode]) -> list[Block]:
    """Convert every root (and its subtree) to blocks, in document order."""
    blocks = []
    for node in roots:
        blocks.extend(resolve_node(text, node))
    return blocks


def resolve_node(text: str, node: TagNode) -> list[Block]:
    """Convert one node; a failure only replaces this node's own output."""
    try:
        return _resolve(text, node)
    except Exception as e:
        logger.warning(f"Failed to convert <{node.tag_name}> at offset {node.start}: {e}")
        return [_error_block()]


def _resolve(text: str, node: TagNode) -> list[Block]:
    entry = node.entry
    if entry is not None and entry.is_list:
        return item_blocks(collect_list_items(text, node.children), entry.list_type)

    # Children first; their spans are cut out of this node's content
    children = resolve_tag_tree(text, node.children)

    if entry is None or entry.convert is None:
        return children

    block = entry.convert(node.content(text), node.attrs, node.tag_name)
    if block is None:
        return children
    if block.supports_children:
        block.children.extend(children)
        return [block]
    # Kinds without children are followed by what they contained
    return [block, *children]


def list_blocks(inner_content: str, list_type: str) -> list[Block]:
    """Blocks for the items of one list container."""
    return item_blocks(extract_list_items(inner_content), list_type)


def item_blocks(items: list[ListItem], list_type: str) -> list[Block]:
    """One list-item block per item; a failing item only replaces itself."""
    blocks = []
    for item in items:
        try:
            blocks.append(_list_item_block(item, list_type))
        except Exception as e:
            logger.warning(f"Failed to convert list item {item.text[:40]!r}: {e}")
            blocks.append(_error_block())
    return blocks


def _list_item_block(item: ListItem, list_type: str) -> Block:
    children = []
    for nested in item.nested_children:
        if isinstance(nested, NestedList):
            children.extend(item_blocks(nested.items, nested.list_type))
        else:
            children.extend(resolve_node(nested.source, nested.node))

    return Block(list_type, rich_text=item.rich_text, children=children)


def parse_fragment(markup: str) -> list[Block]:
    """Build and resolve the tag tree of a standalone markup fragment."""
    return resolve_tag_tree(markup, build_tag_tree(markup))

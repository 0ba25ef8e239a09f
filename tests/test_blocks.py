"""Tests for the block model and Notion serialization."""

import pytest

from notion_markup.blocks import (
    MAX_RICH_TEXT_LENGTH,
    Block,
    RichTextSpan,
    blocks_to_notion,
    plain_text,
    rich_text_spans_to_notion,
    walk_blocks,
)


class TestRichTextSpansToNotion:
    """Tests for rich_text_spans_to_notion function."""

    def test_plain(self):
        result = rich_text_spans_to_notion([RichTextSpan(text="hi")])
        assert result == [{"type": "text", "text": {"content": "hi"}}]

    def test_annotations(self):
        result = rich_text_spans_to_notion([RichTextSpan(text="x", bold=True, code=True)])
        assert result[0]["annotations"] == {"bold": True, "code": True}

    def test_link(self):
        result = rich_text_spans_to_notion([RichTextSpan(text="x", link="https://a.test")])
        assert result[0]["text"]["link"] == {"url": "https://a.test"}

    def test_non_web_link_dropped(self):
        result = rich_text_spans_to_notion([RichTextSpan(text="x", link="javascript:alert(1)")])
        assert "link" not in result[0]["text"]

    def test_long_text_split(self):
        text = "a" * (MAX_RICH_TEXT_LENGTH * 2 + 5)
        result = rich_text_spans_to_notion([RichTextSpan(text=text, italic=True)])
        assert [len(r["text"]["content"]) for r in result] == [MAX_RICH_TEXT_LENGTH, MAX_RICH_TEXT_LENGTH, 5]
        assert all(r["annotations"] == {"italic": True} for r in result)


class TestBlockToNotion:
    """Tests for Block.to_notion."""

    def test_paragraph(self):
        payload = Block("paragraph", rich_text=[RichTextSpan(text="p")]).to_notion()
        assert payload == {
            "object": "block",
            "type": "paragraph",
            "paragraph": {"rich_text": [{"type": "text", "text": {"content": "p"}}]},
        }

    def test_text_block_always_has_rich_text(self):
        payload = Block("bulleted_list_item").to_notion()
        assert payload["bulleted_list_item"]["rich_text"] == [{"type": "text", "text": {"content": ""}}]

    def test_children_only_for_child_bearing_types(self):
        child = Block("paragraph", rich_text=[RichTextSpan(text="c")])
        toggle = Block("toggle", rich_text=[RichTextSpan(text="t")], children=[child]).to_notion()
        heading = Block("heading_1", rich_text=[RichTextSpan(text="h")], children=[child]).to_notion()
        assert toggle["toggle"]["children"][0]["type"] == "paragraph"
        assert "children" not in heading["heading_1"]

    def test_code(self):
        payload = Block("code", rich_text=[RichTextSpan(text="x")]).to_notion()
        assert payload["code"]["language"] == "plain text"

    def test_callout(self):
        payload = Block("callout", rich_text=[RichTextSpan(text="c")], icon="💡", color="green_background").to_notion()
        assert payload["callout"]["icon"] == {"type": "emoji", "emoji": "💡"}
        assert payload["callout"]["color"] == "green_background"

    def test_image(self):
        payload = Block("image", url="https://x.test/a.png", caption=[RichTextSpan(text="cap")]).to_notion()
        assert payload["image"]["type"] == "external"
        assert payload["image"]["external"] == {"url": "https://x.test/a.png"}
        assert payload["image"]["caption"][0]["text"]["content"] == "cap"

    def test_url_blocks_and_equation(self):
        assert Block("embed", url="https://youtu.be/x").to_notion()["embed"] == {"url": "https://youtu.be/x"}
        assert Block("bookmark", url="https://a.test").to_notion()["bookmark"] == {"url": "https://a.test"}
        assert Block("equation", expression="x^2").to_notion()["equation"] == {"expression": "x^2"}
        assert Block("divider").to_notion()["divider"] == {}

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            Block("table").to_notion()


class TestHelpers:
    """Tests for plain_text, walk_blocks and blocks_to_notion."""

    def test_plain_text(self):
        block = Block("paragraph", rich_text=[RichTextSpan(text="a"), RichTextSpan(text="b", bold=True)])
        assert plain_text(block) == "ab"

    def test_walk_blocks_depth_first(self):
        leaf = Block("paragraph", rich_text=[RichTextSpan(text="leaf")])
        mid = Block("toggle", rich_text=[RichTextSpan(text="mid")], children=[leaf])
        last = Block("paragraph", rich_text=[RichTextSpan(text="last")])
        assert [plain_text(b) for b in walk_blocks([mid, last])] == ["mid", "leaf", "last"]

    def test_blocks_to_notion(self):
        payload = blocks_to_notion([Block("divider"), Block("divider")])
        assert [p["type"] for p in payload] == ["divider", "divider"]

"""Tests for text cleanup and normalization."""

from notion_markup.cleanup import (
    clean_runs,
    clean_text,
    has_block_markup,
    has_residual_tag,
    normalize_content,
)


def styles(runs):
    return [(r.text, r.bold, r.italic, r.strikethrough, r.code) for r in runs]


class TestNormalizeContent:
    """Tests for normalize_content function."""

    def test_escaped_newlines(self):
        assert normalize_content("a\\nb") == "a\nb"

    def test_crlf(self):
        assert normalize_content("a\r\nb\rc") == "a\nb\nc"


class TestCleanRuns:
    """Tests for clean_runs function."""

    def test_strong_and_em(self):
        runs = clean_runs("<strong>a</strong> <em>b</em>")
        assert styles(runs) == [
            ("a", True, False, False, False),
            (" ", False, False, False, False),
            ("b", False, True, False, False),
        ]

    def test_nested_styles_combine(self):
        runs = clean_runs("<strong>Bold <em>it</em></strong> end")
        assert styles(runs) == [
            ("Bold ", True, False, False, False),
            ("it", True, True, False, False),
            (" end", False, False, False, False),
        ]

    def test_same_tag_nested(self):
        runs = clean_runs("<b>Bold <b>inner</b> tail</b>")
        assert styles(runs) == [("Bold inner tail", True, False, False, False)]

    def test_crossed_tags(self):
        runs = clean_runs("<b>a <i>b</b> c</i>")
        assert styles(runs) == [
            ("a ", True, False, False, False),
            ("b", True, True, False, False),
            (" c", False, True, False, False),
        ]

    def test_anchor(self):
        runs = clean_runs('see <a href="https://example.com">site</a>')
        assert runs[1].text == "site"
        assert runs[1].link == "https://example.com"

    def test_anchor_without_href(self):
        runs = clean_runs("<a name='x'>label</a>")
        assert styles(runs) == [("label", False, False, False, False)]
        assert runs[0].link is None

    def test_code_and_strike(self):
        runs = clean_runs("use <code>pip</code> not <del>easy_install</del>")
        assert [r.text for r in runs] == ["use ", "pip", " not ", "easy_install"]
        assert runs[1].code is True
        assert runs[3].strikethrough is True

    def test_br(self):
        assert clean_text("a<br>b<br/>c") == "a\nb\nc"

    def test_whitespace_across_runs(self):
        runs = clean_runs("  a   <b> b </b>  c  ")
        assert [r.text for r in runs] == ["a ", "b ", "c"]

    def test_empty(self):
        assert clean_runs("") == []
        assert clean_runs("<span> </span>") == []


class TestHasResidualTag:
    """Tests for has_residual_tag function."""

    def test_detects_tag(self):
        assert has_residual_tag("x <p") is True
        assert has_residual_tag("</div>") is True

    def test_ignores_math(self):
        assert has_residual_tag("1 < 2") is False


class TestHasBlockMarkup:
    """Tests for has_block_markup function."""

    def test_inline_tags_allowed(self):
        assert has_block_markup("a <b>b</b> <a href='x'>c</a> <code>d</code>") is False

    def test_block_tag(self):
        assert has_block_markup("before <div>x</div>") is True
        assert has_block_markup("</ul> stray closer") is True

    def test_plain_text(self):
        assert has_block_markup("1 < 2 and 3 > 2") is False


class TestCleanText:
    """Tests for clean_text function."""

    def test_collapses_whitespace(self):
        assert clean_text("  a   b \n  c ") == "a b\nc"

    def test_decodes_entities(self):
        assert clean_text("Tom &amp; Jerry") == "Tom & Jerry"

    def test_escaped_tags_are_stripped(self):
        assert clean_text("&lt;b&gt;hi&lt;/b&gt;") == "hi"

    def test_unknown_tags_stripped(self):
        assert clean_text("<foo>bar</foo>") == "bar"

    def test_keeps_comparisons(self):
        assert clean_text("a < b and c > d") == "a < b and c > d"

    def test_literal_markers_kept(self):
        assert clean_text("5 <b>*</b> 3") == "5 * 3"

    def test_orphan_separators_trimmed(self):
        assert clean_text("Headings: , ,") == "Headings:"
        assert clean_text(", tail") == "tail"

    def test_never_leaves_tag_markup(self):
        assert not has_residual_tag(clean_text("a <x y='1'>b</x> <unclosed c"))
        assert not has_residual_tag(clean_text("<<b>b</b>"))

"""
Tests for computed style resolution.
"""

import pytest

from cardquill.markup import parse_fragment
from cardquill.styles.canonical import canonical_font_size, to_text_style
from cardquill.styles.computed_style import (
    ComputedStyle,
    StyleResolver,
    expand_font_shorthand,
    parse_length,
    parse_stylesheet,
)


class TestParseLength:
    """Test cases for parse_length."""

    @pytest.mark.parametrize("value,expected", [
        ("12px", 12.0),
        ("12pt", 16.0),
        ("1.5em", 24.0),
        ("2rem", 32.0),
        ("1in", 96.0),
        (10, 10.0),
        ("0", 0.0),
    ])
    def test_units(self, value, expected):
        assert parse_length(value) == pytest.approx(expected)

    def test_percentages_need_reference(self):
        assert parse_length("50%") is None
        assert parse_length("50%", reference=300) == 150.0

    @pytest.mark.parametrize("value", [None, "auto", "none", "10vw", "calc(100% - 10px)", ""])
    def test_unresolvable(self, value):
        assert parse_length(value, reference=100) is None


class TestStylesheet:
    """Test cases for stylesheet parsing."""

    def test_rules_and_specificity(self):
        rules = parse_stylesheet("p { color: red } .a .b, #x { font-size: 12px }")

        selectors = [rule.selector for rule in rules]
        assert selectors == ["p", ".a .b", "#x"]
        assert rules[0].specificity == (0, 0, 1)
        assert rules[1].specificity == (0, 2, 0)
        assert rules[2].specificity == (1, 0, 0)
        assert [rule.order for rule in rules] == [0, 1, 2]

    def test_at_rules_and_comments_are_skipped(self):
        css = """
        /* header */
        @media (max-width: 600px) { p { color: blue } }
        @keyframes fade { from { opacity: 0 } to { opacity: 1 } }
        p { color: red }
        """
        rules = parse_stylesheet(css)

        assert len(rules) == 1
        assert rules[0].declarations == (("color", "red", False),)

    def test_unsupported_selectors_are_skipped(self):
        rules = parse_stylesheet("p::first-line { color: red } p { color: blue }")

        assert [rule.selector for rule in rules] == ["p"]

    def test_font_shorthand(self):
        assert expand_font_shorthand("italic bold 24px/1.2 Arial, sans-serif") == {
            "font-style": "italic",
            "font-weight": "bold",
            "font-size": "24px",
            "line-height": "1.2",
            "font-family": "Arial, sans-serif",
        }
        assert expand_font_shorthand("inherit") == {}


class TestStyleResolver:
    """Test cases for StyleResolver."""

    def _resolve(self, markup, path):
        root = parse_fragment(markup)
        resolver = StyleResolver(root)
        return resolver, resolver.compute(root.xpath(path)[0])

    def test_defaults(self):
        _, style = self._resolve("<p>x</p>", "//p")

        assert style.font_size == 16.0
        assert style["color"] == "#000000"
        assert style.display == "block"
        assert not style.is_hidden

    def test_inheritance_and_relative_sizes(self):
        _, style = self._resolve(
            '<div style="font-size: 20px; color: navy"><p style="font-size: 1.5em">x</p></div>', "//p"
        )

        assert style.font_size == 30.0
        assert style["color"] == "navy"

    def test_user_agent_heading(self):
        _, style = self._resolve("<h1>Title</h1>", "//h1")

        assert style.font_size == 32.0
        assert style["font-weight"] == "bold"

    def test_cascade_order(self):
        markup = """
        <style>
          p { color: red; font-size: 10px }
          .lead { color: green }
          #intro { font-size: 30px }
        </style>
        <p id="intro" class="lead" style="color: blue">x</p>
        """
        _, style = self._resolve(markup, "//p")

        assert style["color"] == "blue"
        assert style.font_size == 30.0

    def test_important_beats_inline(self):
        markup = '<style>p { color: red !important }</style><p style="color: blue">x</p>'
        _, style = self._resolve(markup, "//p")

        assert style["color"] == "red"

    def test_later_rule_wins_on_equal_specificity(self):
        markup = "<style>p { color: red } p { color: green }</style><p>x</p>"
        _, style = self._resolve(markup, "//p")

        assert style["color"] == "green"

    def test_keywords(self):
        markup = (
            '<div style="color: red; font-weight: bold">'
            '<p style="color: currentColor; font-weight: bolder">a</p>'
            '<span style="color: initial; font-weight: inherit">b</span>'
            "</div>"
        )
        root = parse_fragment(markup)
        resolver = StyleResolver(root)
        p = resolver.compute(root.xpath("//p")[0])
        span = resolver.compute(root.xpath("//span")[0])

        assert p["color"] == "red"
        assert p["font-weight"] == "900"
        assert span["color"] == "#000000"
        assert span["font-weight"] == "bold"

    def test_hidden_states(self):
        markup = (
            '<p style="display: none">a</p>'
            '<p style="visibility: hidden">b</p>'
            '<p style="opacity: 0">c</p>'
        )
        root = parse_fragment(markup)
        resolver = StyleResolver(root)

        assert all(resolver.compute(p).is_hidden for p in root.iter("p"))

    def test_line_height_resolution(self):
        root = parse_fragment(
            '<div style="font-size: 20px; line-height: 1.5em"><p style="font-size: 10px">x</p></div>'
        )
        resolver = StyleResolver(root)
        div = resolver.compute(root[0])
        p = resolver.compute(root[0][0])

        assert div["line-height"] == "30.0px"
        assert div.line_height_px() == 30.0
        # Resolved lengths inherit as lengths, unitless factors as factors.
        assert p.line_height_px() == 30.0

    def test_normal_line_height(self):
        style = ComputedStyle({"font-size": 10.0, "line-height": "normal"})

        assert style.line_height_px() == pytest.approx(14.0)

    def test_cached_per_element(self):
        root = parse_fragment("<p>x</p>")
        resolver = StyleResolver(root)

        assert resolver.compute(root[0]) is resolver.compute(root[0])


class TestCanonicalStyle:
    """Test cases for reducing computed styles to TextStyle."""

    def test_to_text_style(self, styled_html):
        root = parse_fragment(styled_html)
        resolver = StyleResolver(root)
        span = root.xpath("//span")[0]
        note = root.xpath("//p[@class='note']")[0]

        title_style = to_text_style(resolver.compute(span))
        note_style = to_text_style(resolver.compute(note))

        assert title_style.font_size_px == 40
        assert title_style.color_hex == "#ff0000"
        assert title_style.weight == "normal"
        assert note_style.align == "left"
        assert note_style.weight == "bold"
        assert note_style.font_size_px == 20

    def test_canonical_font_size(self):
        assert canonical_font_size(13.33) == 13
        assert canonical_font_size(13.5) == 14
        assert canonical_font_size(None) == 16
        assert canonical_font_size(0) == 16

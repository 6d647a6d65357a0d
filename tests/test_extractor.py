"""
Tests for text model extraction.
"""

import re

import pytest

from cardquill.extractor import TextModelExtractor, extract_text_units, is_text_unit_node
from cardquill.markup import parse_fragment, serialize_fragment
from cardquill.models import TextStyle
from cardquill.surface import create_preview_surface


class TestExtract:
    """Test cases for TextModelExtractor.extract."""

    def test_card_units(self, card_html):
        units = extract_text_units(parse_fragment(card_html))

        assert [unit.text for unit in units] == ["Original Title", "Original body copy."]
        assert units[0].style == TextStyle(48, "#ffffff", "bold", "center")
        assert units[1].style == TextStyle(24, "#f0f0f0", "normal", "left")
        assert units[0].node.tag == "h1"
        assert all(unit.original_text == unit.text for unit in units)
        assert all(unit.original_style == unit.style for unit in units)

    def test_ids_follow_pattern_and_are_unique_across_passes(self, card_html):
        root = parse_fragment(card_html)
        extractor = TextModelExtractor()

        first = extractor.extract(root)
        second = extractor.extract(root)

        ids = [unit.id for unit in first + second]
        assert all(re.match(r"^text-\d+-\d+$", unit_id) for unit_id in ids)
        assert first[0].id.startswith("text-0-")
        assert first[1].id.startswith("text-1-")
        assert len(set(ids)) == len(ids)

    def test_stylesheet_and_mixed_content(self, styled_html):
        units = extract_text_units(parse_fragment(styled_html))

        assert [unit.text for unit in units] == ["Sheet styled", "Justified note", "Plain tail", "bold"]
        title, note, mixed, bold = units
        assert title.style == TextStyle(40, "#ff0000", "normal", "left")
        assert note.style == TextStyle(20, "#000000", "bold", "left")
        assert mixed.node.tag == "p"
        assert bold.node.tag == "b"
        assert bold.style.weight == "bold"

    def test_style_and_script_content_is_ignored(self):
        root = parse_fragment("<style>p { color: red }</style><script>var a = 1;</script><p>x</p>")

        assert [unit.text for unit in extract_text_units(root)] == ["x"]

    @pytest.mark.parametrize("markup", [None, "", "<div><img src='a.png'></div>", "<div>   </div>"])
    def test_no_units(self, markup):
        root = None if markup is None else parse_fragment(markup)

        assert extract_text_units(root) == []

    def test_unknown_color_becomes_black(self):
        root = parse_fragment('<p style="color: var(--brand)">x</p>')

        assert extract_text_units(root)[0].style.color_hex == "#000000"

    def test_extraction_does_not_mutate(self, card_html):
        root = parse_fragment(card_html)

        before = serialize_fragment(root)
        extract_text_units(root)

        assert serialize_fragment(root) == before

    def test_reextraction_is_equivalent(self, styled_html):
        root = parse_fragment(styled_html)

        first = extract_text_units(root)
        second = extract_text_units(root)

        assert [(u.text, u.style, u.node) for u in first] == [(u.text, u.style, u.node) for u in second]

    def test_text_unit_node(self):
        root = parse_fragment("<div><p>a</p></div><span></span>")

        assert not is_text_unit_node(root[0])
        assert is_text_unit_node(root[0][0])
        assert not is_text_unit_node(root[1])


class TestRefreshBounds:
    """Test cases for advisory bounds."""

    def test_bounds_in_display_coordinates(self, card_html):
        surface = create_preview_surface(card_html, 900, 1200)
        extractor = TextModelExtractor()
        units = extractor.extract(surface.root)

        extractor.refresh_bounds(units, surface)

        title, body = units
        assert title.bounds is not None
        assert title.bounds.x == pytest.approx(40 * surface.scale)
        assert title.bounds.width == pytest.approx(820 * surface.scale)
        assert body.bounds.y > title.bounds.y

    def test_hidden_node_has_no_bounds(self):
        surface = create_preview_surface('<p>a</p><p style="display: none">b</p>', 400, 300)
        extractor = TextModelExtractor()
        units = extractor.extract(surface.root)

        extractor.refresh_bounds(units, surface)

        assert [unit.text for unit in units] == ["a", "b"]
        assert units[0].bounds is not None
        assert units[1].bounds is None

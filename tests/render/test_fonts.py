"""
Tests for font lookup, text measurement and line alignment.
"""

import pytest

from cardquill.render.alignment import TextAlignmentEngine
from cardquill.render.fonts import FontResolver, font_metrics, split_family_stack, text_width
from cardquill.render.geometry import Edges, Rect, Size, parse_box_shorthand


class TestFontResolver:
    """Test cases for FontResolver."""

    def test_split_family_stack(self):
        assert split_family_stack("'PingFang SC', \"Helvetica Neue\", sans-serif") == [
            "pingfang sc",
            "helvetica neue",
            "sans-serif",
        ]
        assert split_family_stack(None) == []

    def test_unknown_family_still_resolves(self, temp_dir):
        choice = FontResolver(font_dirs=[temp_dir]).resolve("No Such Family", 20)

        assert choice.font is not None
        assert text_width(choice.font, "abc") > 0

    def test_configured_directory_wins(self, temp_dir):
        resolver = FontResolver(font_dirs=[temp_dir])

        assert resolver.directories[0] == temp_dir

    def test_fonts_are_cached(self):
        resolver = FontResolver()

        assert resolver.resolve("sans-serif", 16).font is resolver.resolve("sans-serif", 16).font

    def test_measurement_helpers(self):
        font = FontResolver().resolve("sans-serif", 32).font
        ascent, descent = font_metrics(font, 32)

        assert text_width(font, "") == 0.0
        assert text_width(font, "MMMM") > text_width(font, "M")
        assert ascent > 0
        assert descent >= 0


class TestAlignment:
    """Test cases for TextAlignmentEngine."""

    @pytest.mark.parametrize("alignment,expected", [
        ("left", 10),
        ("center", 55),
        ("right", 100),
        ("justify", 10),
    ])
    def test_calculate_x(self, alignment, expected):
        assert TextAlignmentEngine.calculate_x(Rect(10, 0, 100, 20), 10, alignment) == expected

    def test_overflowing_line_starts_at_left_edge(self):
        assert TextAlignmentEngine.calculate_x(Rect(10, 0, 100, 20), 300, "right") == 10

    @pytest.mark.parametrize("value,expected", [
        ("center", "center"),
        ("-webkit-center", "center"),
        ("end", "right"),
        ("justify", "justify"),
        (None, "left"),
    ])
    def test_alignment_from_style(self, value, expected):
        assert TextAlignmentEngine.get_alignment_from_style({"text-align": value}) == expected


class TestGeometry:
    """Test cases for geometry helpers."""

    def test_box_shorthand(self):
        def resolve(token):
            return float(token.rstrip("px")) if token != "auto" else None

        assert parse_box_shorthand("5px", resolve) == Edges.uniform(5)
        assert parse_box_shorthand("1px 2px 3px", resolve) == Edges(1, 2, 3, 2)
        assert parse_box_shorthand("0 auto", resolve) == Edges(0, 0, 0, 0)
        assert parse_box_shorthand("", resolve) is None

    def test_size_to_pixels(self):
        assert Size(10.4, 0.2).to_pixels() == (10, 1)
        assert Size(50, 40).scaled(2).to_pixels() == (100, 80)

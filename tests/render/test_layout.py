"""
Tests for the box layout engine.
"""

import pytest

from cardquill.markup import parse_fragment
from cardquill.render.layout import BoxKind, LayoutEngine, background_of, is_editing_marked
from cardquill.styles.computed_style import ComputedStyle


def _layout(markup, width=400, height=None, **kwargs):
    root = parse_fragment(markup)
    box = LayoutEngine(**kwargs).layout(root, width, height)
    return root, box


class TestBlockLayout:
    """Test cases for normal flow block layout."""

    def test_blocks_stack_vertically(self):
        root, box = _layout('<div style="height: 60px"></div><div style="height: 30px"></div>', 200)

        first, second = box.children
        assert first.frame.y == 0
        assert second.frame.y == 60
        assert first.frame.width == 200
        assert box.frame.height == 90

    def test_padding_and_border_box(self):
        root, box = _layout(
            '<div style="width: 200px; padding: 10px; box-sizing: border-box">'
            '<p style="margin: 0; height: 20px"></p></div>'
        )
        div = box.children[0]
        p = div.children[0]

        assert div.frame.width == 200
        assert div.frame.height == 40
        assert (p.frame.x, p.frame.y, p.frame.width) == (10, 10, 180)

    def test_content_box_adds_padding(self):
        root, box = _layout('<div style="width: 200px; height: 50px; padding: 10px"></div>')

        assert (box.children[0].frame.width, box.children[0].frame.height) == (220, 70)

    def test_margins(self):
        root, box = _layout('<div style="margin: 10px 20px; height: 10px"></div><div style="height: 5px"></div>')
        first, second = box.children

        assert (first.frame.x, first.frame.y, first.frame.width) == (20, 10, 360)
        assert second.frame.y == 30

    def test_margin_auto_centers(self):
        root, box = _layout('<div style="width: 200px; margin: 0 auto; height: 10px"></div>')

        assert box.children[0].frame.x == 100

    def test_display_none_has_no_box(self):
        root, box = _layout('<div style="display: none; height: 50px"></div><div style="height: 10px"></div>')

        assert len(box.children) == 1
        assert box.children[0].frame.y == 0
        assert root[0] not in box.index()

    def test_background_and_border(self):
        root, box = _layout('<div style="height: 10px; background: #ff0000; border: 2px solid blue"></div>')
        div = box.children[0]

        assert div.background == "#ff0000"
        assert div.border_width == 2
        assert div.border_color == "blue"
        assert div.frame.height == 14


class TestPositioning:
    """Test cases for absolute and relative positioning."""

    def test_absolute_right_bottom(self):
        root, box = _layout(
            '<div style="position: relative; width: 400px; height: 300px">'
            '<div style="position: absolute; right: 20px; bottom: 10px; width: 140px; height: 150px"></div>'
            "</div>",
        )
        child = box.children[0].children[0]

        assert (child.frame.x, child.frame.y) == (240, 140)

    def test_absolute_left_top_inside_relative_parent(self):
        root, box = _layout(
            '<div style="height: 50px"></div>'
            '<div style="position: relative; height: 100px">'
            '<span style="position: absolute; left: 5px; top: 7px; width: 10px; height: 10px"></span>'
            "</div>"
        )
        parent = box.children[1]
        child = parent.children[0]

        assert (child.frame.x, child.frame.y) == (5, 57)

    def test_relative_offset(self):
        root, box = _layout('<div style="position: relative; left: 15px; top: 5px; height: 10px"></div>')

        assert (box.children[0].frame.x, box.children[0].frame.y) == (15, 5)


class TestInlineLayout:
    """Test cases for line boxes and text runs."""

    def test_single_line(self):
        root, box = _layout('<p style="margin: 0; font-size: 20px; line-height: 30px">Hello world</p>')
        p = box.children[0]

        assert p.frame.height == 30
        assert len(p.runs) == 1
        assert p.runs[0].text == "Hello world"
        assert p.runs[0].font_size == 20

    def test_wrapping(self):
        root, box = _layout(
            '<p style="margin: 0; width: 60px; font-size: 16px">aaaa bbbb cccc dddd eeee</p>'
        )
        runs = box.children[0].runs

        assert len({run.y for run in runs}) >= 2
        assert all(run.x == 0 for run in runs)

    @pytest.mark.parametrize("align", ["right", "center"])
    def test_alignment(self, align):
        root, box = _layout(f'<p style="margin: 0; width: 300px; text-align: {align}">hi</p>')
        run = box.children[0].runs[0]

        if align == "right":
            assert run.x + run.width == pytest.approx(300)
        else:
            assert run.x + run.width / 2 == pytest.approx(150)

    def test_inline_children_get_extents(self):
        root, box = _layout('<p style="margin: 0">Plain <b>bold</b> tail</p>')
        p = box.children[0]
        bold = root[0][0]

        runs = [run.text for run in p.runs]
        assert "bold" in runs
        assert any(run.bold for run in p.runs)
        inline = box.index()[bold]
        assert inline.kind is BoxKind.INLINE
        assert inline.frame.width > 0

    def test_line_break(self):
        root, box = _layout('<p style="margin: 0; line-height: 20px">a<br>b</p>')

        assert box.children[0].frame.height == 40

    def test_image_box(self):
        root, box = _layout('<p style="margin: 0"><img src="logo.png" style="width: 50px; height: 40px"></p>')
        images = [b for b in box.iter() if b.kind is BoxKind.IMAGE]

        assert len(images) == 1
        assert images[0].image_src == "logo.png"
        assert (images[0].frame.width, images[0].frame.height) == (50, 40)

    def test_image_without_size_is_skipped(self):
        root, box = _layout('<p style="margin: 0"><img src="logo.png"></p>')

        assert not [b for b in box.iter() if b.kind is BoxKind.IMAGE]


class TestFlexLayout:
    """Test cases for flex rows and columns."""

    def test_flex_row_places_children_side_by_side(self):
        root, box = _layout(
            '<div style="display: flex; gap: 10px">'
            '<div style="width: 100px; height: 20px"></div>'
            '<div style="width: 50px; height: 40px"></div>'
            "</div>"
        )
        row = box.children[0]
        first, second = row.children

        assert (first.frame.x, second.frame.x) == (0, 110)
        assert row.frame.height == 40

    def test_flex_column_centers_vertically(self):
        root, box = _layout(
            '<div style="display: flex; flex-direction: column; justify-content: center; height: 100px">'
            '<div style="height: 20px"></div>'
            "</div>"
        )

        assert box.children[0].children[0].frame.y == 40


class TestEditingMarkers:
    """Test cases for overlay marker handling."""

    def test_marked_elements_are_skipped_by_default(self):
        root, box = _layout('<p class="editable-element" data-editable-id="text-0-1">x</p>')

        assert is_editing_marked(root[0])
        assert root[0] not in box.index()

    def test_marked_elements_can_be_kept(self):
        root, box = _layout('<p class="editable-element">x</p>', skip_editing_marked=False)

        assert root[0] in box.index()

    def test_background_of(self):
        assert background_of(ComputedStyle({"background": "linear-gradient(#111111, #222222)"})) == "#111111"
        assert background_of(ComputedStyle({"background-color": "transparent"})) is None

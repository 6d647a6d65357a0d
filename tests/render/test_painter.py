"""
Tests for the Pillow painter.
"""

import io

from PIL import Image

from cardquill.markup import parse_fragment
from cardquill.render.geometry import Size
from cardquill.render.layout import LayoutEngine
from cardquill.render.painter import PillowPainter, apply_opacity, composite, encode_png, to_rgba

RED = (255, 0, 0, 255)
WHITE = (255, 255, 255, 255)


def _paint(markup, width, height, scale=1.0, images=None, background="#ffffff", **layout_kwargs):
    root = parse_fragment(markup)
    layout = LayoutEngine(**layout_kwargs).layout(root, width, height)
    return PillowPainter().paint(layout, Size(width, height), scale, background, images)


class TestColorHelpers:
    """Test cases for to_rgba, composite and apply_opacity."""

    def test_to_rgba(self):
        assert to_rgba("red") == RED
        assert to_rgba("#00ff00", 0.5) == (0, 255, 0, 128)
        assert to_rgba("rgba(0, 0, 255, 0.5)") == (0, 0, 255, 128)
        assert to_rgba("transparent") is None
        assert to_rgba("nonsense") is None
        assert to_rgba(None) is None

    def test_composite_clips_negative_offsets(self):
        canvas = Image.new("RGBA", (10, 10), (0, 0, 0, 0))
        tile = Image.new("RGBA", (5, 5), RED)

        composite(canvas, tile, -2, -2)

        assert canvas.getpixel((0, 0)) == RED
        assert canvas.getpixel((2, 2)) == RED
        assert canvas.getpixel((3, 3)) == (0, 0, 0, 0)

    def test_composite_outside_canvas_is_noop(self):
        canvas = Image.new("RGBA", (10, 10), (0, 0, 0, 0))

        composite(canvas, Image.new("RGBA", (5, 5), RED), 20, 20)

        assert canvas.getbbox() is None

    def test_apply_opacity(self):
        tile = apply_opacity(Image.new("RGBA", (2, 2), RED), 0.5)

        assert tile.getpixel((0, 0))[3] == 127


class TestPillowPainter:
    """Test cases for PillowPainter.paint."""

    def test_block_background(self):
        image = _paint('<div style="width: 10px; height: 10px; background: red"></div>', 20, 20)

        assert image.size == (20, 20)
        assert image.getpixel((5, 5)) == RED
        assert image.getpixel((15, 15)) == WHITE

    def test_device_scale(self):
        image = _paint('<div style="width: 10px; height: 10px; background: red"></div>', 10, 10, scale=2.0)

        assert image.size == (20, 20)
        assert image.getpixel((19, 19)) == RED

    def test_opacity_blends_with_canvas(self):
        image = _paint('<div style="height: 10px; background: red; opacity: 0.5"></div>', 10, 10)
        r, g, b, a = image.getpixel((5, 5))

        assert r == 255
        assert 120 <= g <= 135
        assert a == 255

    def test_transparent_canvas(self):
        image = _paint("<div></div>", 4, 4, background=None)

        assert image.getpixel((0, 0)) == (0, 0, 0, 0)

    def test_text_is_drawn(self):
        image = _paint('<p style="margin: 0; font-size: 40px; color: #000000">MMMM</p>', 200, 60)

        darkest, _ = image.convert("L").getextrema()
        assert darkest < 128

    def test_hidden_text_is_not_drawn(self):
        image = _paint('<p style="margin: 0; font-size: 40px; visibility: hidden">MMMM</p>', 200, 60)

        assert image.convert("L").getextrema() == (255, 255)

    def test_editing_marked_boxes_are_not_painted(self):
        markup = '<div class="editable-element" style="height: 10px; background: red"></div>'

        image = _paint(markup, 10, 10, skip_editing_marked=False)

        assert image.getpixel((5, 5)) == WHITE

    def test_images(self):
        source = Image.new("RGBA", (2, 2), (0, 0, 255, 255))
        markup = '<img src="blue.png" style="display: block; width: 10px; height: 10px">'

        image = _paint(markup, 20, 20, images={"blue.png": source})
        missing = _paint(markup, 20, 20)

        assert image.getpixel((5, 5)) == (0, 0, 255, 255)
        assert missing.getpixel((5, 5)) == WHITE


class TestEncodePng:
    """Test cases for PNG encoding."""

    def test_png_signature(self):
        data = encode_png(Image.new("RGBA", (3, 2), RED))

        assert data.startswith(b"\x89PNG\r\n\x1a\n")
        with Image.open(io.BytesIO(data)) as decoded:
            assert decoded.size == (3, 2)

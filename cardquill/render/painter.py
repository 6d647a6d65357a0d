"""
Pillow painter for laid out fragments.

Every box is painted on its own transparent tile which is alpha-composited
onto the canvas in tree order, so opacity and overlapping boxes blend the
way a browser paints them.
"""

from __future__ import annotations

import io
import logging
import math
from typing import Dict, Optional, Tuple

from PIL import Image, ImageDraw

from ..styles.color import parse_color
from .fonts import FontResolver, font_metrics
from .geometry import Rect, Size
from .layout import BoxKind, LayoutBox, TextRun, is_editing_marked

logger = logging.getLogger(__name__)

RGBA = Tuple[int, int, int, int]


def to_rgba(value: Optional[str], opacity: float = 1.0) -> Optional[RGBA]:
    """Convert a CSS color to an RGBA tuple with opacity folded into alpha."""
    parsed = parse_color(value)
    if parsed is None:
        return None
    r, g, b, alpha = parsed
    alpha = int(round(255 * max(0.0, min(1.0, alpha * opacity))))
    if alpha <= 0:
        return None
    return (r, g, b, alpha)


def composite(canvas: Image.Image, tile: Image.Image, x: float, y: float) -> None:
    """Alpha-composite ``tile`` at ``(x, y)``, clipping it to the canvas."""
    left, top = int(math.floor(x)), int(math.floor(y))
    crop_left, crop_top = max(0, -left), max(0, -top)
    right = min(tile.width, canvas.width - left)
    bottom = min(tile.height, canvas.height - top)
    if right <= crop_left or bottom <= crop_top:
        return
    if crop_left or crop_top or right < tile.width or bottom < tile.height:
        tile = tile.crop((crop_left, crop_top, right, bottom))
    canvas.alpha_composite(tile, dest=(left + crop_left, top + crop_top))


def apply_opacity(tile: Image.Image, opacity: float) -> Image.Image:
    if opacity >= 1.0:
        return tile
    alpha = tile.getchannel("A").point(lambda a: int(a * opacity))
    tile.putalpha(alpha)
    return tile


class PillowPainter:
    """
    Paint a ``LayoutBox`` tree into an RGBA image.

    Args:
        font_resolver: Font lookup (shared with the layout engine)
    """

    def __init__(self, font_resolver: Optional[FontResolver] = None):
        self.fonts = font_resolver or FontResolver()

    def paint(
        self,
        layout: LayoutBox,
        size: Size,
        scale: float,
        background: Optional[str] = "#ffffff",
        images: Optional[Dict[str, Image.Image]] = None,
    ) -> Image.Image:
        """
        Paint a layout.

        Args:
            layout: Root layout box (CSS px)
            size: Canvas size in CSS px
            scale: Device pixels per CSS px
            background: Canvas color (None for transparent)
            images: Decoded images keyed by ``src``

        Returns:
            RGBA canvas of ``size * scale`` pixels
        """
        pixel_size = size.scaled(scale).to_pixels()
        canvas = Image.new("RGBA", pixel_size, to_rgba(background) or (0, 0, 0, 0))
        images = images or {}
        painted = 0
        for box in layout.iter():
            if box.element is not None and is_editing_marked(box.element):
                continue
            if box.kind is BoxKind.BLOCK:
                self._paint_block(canvas, box, scale)
            elif box.kind is BoxKind.IMAGE:
                self._paint_image(canvas, box, scale, images)
            for run in box.runs:
                if self._paint_run(canvas, run, scale):
                    painted += 1
        logger.debug(f"Painted {painted} text runs on {pixel_size[0]}x{pixel_size[1]} canvas")
        return canvas

    # ------------------------------------------------------------------
    def _paint_block(self, canvas: Image.Image, box: LayoutBox, scale: float) -> None:
        if not box.visible or box.opacity <= 0:
            return
        fill = to_rgba(box.background, box.opacity)
        outline = to_rgba(box.border_color, box.opacity) if box.border_width else None
        if fill is None and outline is None:
            return

        frame = box.frame.scaled(scale)
        width, height = int(math.ceil(frame.width)), int(math.ceil(frame.height))
        if width <= 0 or height <= 0:
            return
        tile = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        draw = ImageDraw.Draw(tile)
        shape = (0, 0, width - 1, height - 1)
        border = int(round(box.border_width * scale)) if outline else 0
        radius = int(round(min(box.border_radius * scale, width / 2, height / 2)))
        if radius > 0:
            draw.rounded_rectangle(shape, radius=radius, fill=fill, outline=outline, width=max(border, 1) if outline else 0)
        else:
            draw.rectangle(shape, fill=fill, outline=outline, width=max(border, 1) if outline else 0)
        composite(canvas, tile, frame.x, frame.y)

    def _paint_image(self, canvas: Image.Image, box: LayoutBox, scale: float, images: Dict[str, Image.Image]) -> None:
        if not box.visible or box.opacity <= 0 or not box.image_src:
            return
        source = images.get(box.image_src.strip())
        if source is None:
            return
        frame = box.frame.scaled(scale)
        size = (max(1, int(round(frame.width))), max(1, int(round(frame.height))))
        tile = apply_opacity(source.resize(size, Image.LANCZOS), box.opacity)
        composite(canvas, tile, frame.x, frame.y)

    def _paint_run(self, canvas: Image.Image, run: TextRun, scale: float) -> bool:
        if not run.visible or run.opacity <= 0 or not run.text.strip():
            return False
        fill = to_rgba(run.color, run.opacity)
        if fill is None:
            return False

        choice = self.fonts.resolve(run.font_family, run.font_size * scale, run.bold)
        ascent, descent = font_metrics(choice.font, run.font_size * scale)
        frame = Rect(run.x * scale, run.y * scale, run.width * scale, run.height * scale)
        pad = int(math.ceil(run.font_size * scale * 0.25)) + 2
        width = int(math.ceil(frame.width)) + 2 * pad
        height = int(math.ceil(max(frame.height, ascent + descent))) + 2 * pad
        tile = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        draw = ImageDraw.Draw(tile)

        background = to_rgba(run.background, run.opacity)
        if background is not None:
            draw.rectangle((pad, pad, pad + frame.width, pad + frame.height), fill=background)

        top = run.baseline * scale - ascent - frame.y + pad
        stroke = max(1, int(round(run.font_size * scale / 30))) if choice.synthetic_bold else 0
        draw.text((pad, top), run.text, font=choice.font, fill=fill, stroke_width=stroke, stroke_fill=fill)
        composite(canvas, tile, frame.x - pad, frame.y - pad)
        return True


def encode_png(image: Image.Image) -> bytes:
    """Encode an image as PNG bytes."""
    output = io.BytesIO()
    image.save(output, format="PNG", optimize=False)
    return output.getvalue()

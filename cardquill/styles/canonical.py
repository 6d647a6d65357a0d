"""Reduction of computed styles to the canonical text unit style."""

from __future__ import annotations

from typing import Mapping

from ..models import TextStyle, binarize_align, binarize_weight
from .color import normalize_color
from .computed_style import ROOT_FONT_SIZE


def canonical_font_size(value) -> int:
    """Round a resolved px size to a positive int; unusable values become 16."""
    try:
        size = int(round(float(value)))
    except (TypeError, ValueError):
        return int(ROOT_FONT_SIZE)
    return size if size > 0 else int(ROOT_FONT_SIZE)


def to_text_style(computed: Mapping) -> TextStyle:
    """
    Reduce a computed style to the four canonical fields.

    Args:
        computed: Output of ``StyleResolver.compute``

    Returns:
        TextStyle with binarized weight and alignment and a ``#rrggbb`` color
    """
    return TextStyle(
        font_size_px=canonical_font_size(computed.get("font-size")),
        color_hex=normalize_color(computed.get("color")),
        weight=binarize_weight(computed.get("font-weight")),
        align=binarize_align(computed.get("text-align")),
    )

"""
Horizontal alignment of line boxes.

Supports left (default), center and right; ``justify`` is laid out as left
aligned.
"""

from typing import Any, Mapping

from .geometry import Rect


class TextAlignmentEngine:
    """Compute the X position of a line inside its containing block."""

    @staticmethod
    def calculate_x(rect: Rect, text_width: float, alignment: str = "left") -> float:
        """
        Compute the X position for a line.

        Args:
            rect: Content rect of the containing block
            text_width: Width of the line contents
            alignment: ``left``, ``center``, ``right`` or ``justify``

        Returns:
            X position of the line start
        """
        alignment = alignment.lower() if alignment else "left"

        if alignment == "center":
            return max(rect.x, rect.x + (rect.width - text_width) / 2)
        if alignment == "right":
            return max(rect.x, rect.x + rect.width - text_width)
        return rect.x

    @staticmethod
    def get_alignment_from_style(style: Mapping[str, Any]) -> str:
        """Map CSS ``text-align`` values onto left/center/right/justify."""
        alignment = str(style.get("text-align") or "left").lower()

        if alignment in ("center", "-webkit-center"):
            return "center"
        if alignment in ("right", "end", "-webkit-right"):
            return "right"
        if alignment == "justify":
            return "justify"
        return "left"

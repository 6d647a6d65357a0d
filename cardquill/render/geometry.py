"""Geometry primitives and helpers for fragment layout."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from ..models import Rect

__all__ = ["Edges", "Rect", "Size", "parse_box_shorthand"]


@dataclass(slots=True)
class Size:
    width: float
    height: float

    @classmethod
    def from_tuple(cls, value: Iterable[float]) -> "Size":
        width, height = value
        return cls(float(width), float(height))

    def scaled(self, factor: float) -> "Size":
        return Size(self.width * factor, self.height * factor)

    def to_pixels(self) -> tuple:
        """Integer pixel size, never smaller than 1x1."""
        return (max(1, int(round(self.width))), max(1, int(round(self.height))))


@dataclass(slots=True)
class Edges:
    """Widths of the four sides of a padding or margin box."""

    top: float = 0.0
    right: float = 0.0
    bottom: float = 0.0
    left: float = 0.0

    @classmethod
    def uniform(cls, value: float) -> "Edges":
        return cls(value, value, value, value)

    @property
    def horizontal(self) -> float:
        return self.left + self.right

    @property
    def vertical(self) -> float:
        return self.top + self.bottom

    def __add__(self, other: "Edges") -> "Edges":
        return Edges(
            top=self.top + other.top,
            right=self.right + other.right,
            bottom=self.bottom + other.bottom,
            left=self.left + other.left,
        )


def parse_box_shorthand(
    value: Optional[str],
    resolve: Callable[[str], Optional[float]],
) -> Optional[Edges]:
    """
    Parse a 1-4 value ``margin``/``padding`` shorthand.

    Args:
        value: Shorthand value, e.g. ``"10px 20px"``
        resolve: Converts one token to px (None when unresolvable, e.g. ``auto``)

    Returns:
        Edges in px, or None when the value is empty
    """
    if not value or not value.strip():
        return None
    parts = [resolve(token) or 0.0 for token in value.split()[:4]]
    if len(parts) == 1:
        return Edges.uniform(parts[0])
    if len(parts) == 2:
        return Edges(parts[0], parts[1], parts[0], parts[1])
    if len(parts) == 3:
        return Edges(parts[0], parts[1], parts[2], parts[1])
    return Edges(parts[0], parts[1], parts[2], parts[3])

"""Style parsing and resolution for fragment markup."""

from .color import first_color_in, is_transparent, normalize_color, parse_color
from .computed_style import ComputedStyle, StyleResolver, parse_length
from .inline_style import InlineStyle, parse_style, serialize_style

__all__ = [
    "ComputedStyle",
    "InlineStyle",
    "StyleResolver",
    "first_color_in",
    "is_transparent",
    "normalize_color",
    "parse_color",
    "parse_length",
    "parse_style",
    "serialize_style",
]

"""
Color parsing for fragment styles.

Handles CSS color values, RGB/HSL conversion and normalization to the
``#rrggbb`` form used by text units.
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Tuple

from PIL import ImageColor

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "#000000"

RGBA = Tuple[int, int, int, float]

_NUMBER = r"[+-]?(?:\d+\.?\d*|\.\d+)"
_RGB_RE = re.compile(
    rf"^rgba?\(\s*({_NUMBER}%?)\s*[,\s]\s*({_NUMBER}%?)\s*[,\s]\s*({_NUMBER}%?)"
    rf"\s*(?:[,/]\s*({_NUMBER}%?)\s*)?\)$",
    re.IGNORECASE,
)
_HSL_RE = re.compile(
    rf"^hsla?\(\s*({_NUMBER})(?:deg)?\s*[,\s]\s*({_NUMBER})%\s*[,\s]\s*({_NUMBER})%"
    rf"\s*(?:[,/]\s*({_NUMBER}%?)\s*)?\)$",
    re.IGNORECASE,
)
_HEX_RE = re.compile(r"^#([0-9a-f]{3,4}|[0-9a-f]{6}|[0-9a-f]{8})$", re.IGNORECASE)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _channel(token: str) -> int:
    if token.endswith("%"):
        return int(round(_clamp(float(token[:-1]), 0.0, 100.0) * 255 / 100))
    return int(round(_clamp(float(token), 0.0, 255.0)))


def _alpha(token: Optional[str]) -> float:
    if token is None:
        return 1.0
    if token.endswith("%"):
        return _clamp(float(token[:-1]) / 100.0, 0.0, 1.0)
    return _clamp(float(token), 0.0, 1.0)


def hsl_to_rgb(h: float, s: float, l: float) -> Tuple[int, int, int]:
    """
    Convert HSL to RGB.

    Args:
        h: Hue in degrees
        s: Saturation (0-100)
        l: Lightness (0-100)

    Returns:
        RGB tuple
    """
    h = (h % 360) / 360.0
    s = _clamp(s, 0.0, 100.0) / 100.0
    l = _clamp(l, 0.0, 100.0) / 100.0

    if s == 0:
        r = g = b = l
    else:
        def hue_to_rgb(p, q, t):
            if t < 0:
                t += 1
            if t > 1:
                t -= 1
            if t < 1/6:
                return p + (q - p) * 6 * t
            if t < 1/2:
                return q
            if t < 2/3:
                return p + (q - p) * (2/3 - t) * 6
            return p

        q = l * (1 + s) if l < 0.5 else l + s - l * s
        p = 2 * l - q

        r = hue_to_rgb(p, q, h + 1/3)
        g = hue_to_rgb(p, q, h)
        b = hue_to_rgb(p, q, h - 1/3)

    return (int(round(r * 255)), int(round(g * 255)), int(round(b * 255)))


def rgb_to_hex(rgb_value: Tuple[int, ...]) -> str:
    """Convert an RGB(A) tuple to ``#rrggbb`` (alpha is dropped)."""
    return f"#{int(rgb_value[0]):02x}{int(rgb_value[1]):02x}{int(rgb_value[2]):02x}"


def parse_color(value: Optional[str]) -> Optional[RGBA]:
    """
    Parse a CSS color value.

    Supports hex (3, 4, 6 and 8 digits), ``rgb()``/``rgba()`` in comma and
    space syntax, ``hsl()``/``hsla()``, ``transparent`` and named colors.

    Args:
        value: CSS color string

    Returns:
        ``(r, g, b, alpha)`` or None when the value is not a color
    """
    if not value or not isinstance(value, str):
        return None

    text = value.strip().lower()
    if not text:
        return None

    if text == "transparent":
        return (0, 0, 0, 0.0)

    hex_match = _HEX_RE.match(text)
    if hex_match:
        digits = hex_match.group(1)
        if len(digits) in (3, 4):
            digits = "".join(c * 2 for c in digits)
        r, g, b = (int(digits[i:i + 2], 16) for i in (0, 2, 4))
        a = int(digits[6:8], 16) / 255.0 if len(digits) == 8 else 1.0
        return (r, g, b, a)

    rgb_match = _RGB_RE.match(text)
    if rgb_match:
        r, g, b = (_channel(rgb_match.group(i)) for i in (1, 2, 3))
        return (r, g, b, _alpha(rgb_match.group(4)))

    hsl_match = _HSL_RE.match(text)
    if hsl_match:
        h, s, l = (float(hsl_match.group(i)) for i in (1, 2, 3))
        r, g, b = hsl_to_rgb(h, s, l)
        return (r, g, b, _alpha(hsl_match.group(4)))

    if text in ImageColor.colormap:
        r, g, b = ImageColor.getrgb(text)[:3]
        return (r, g, b, 1.0)

    return None


def normalize_color(value: Optional[str], default: str = DEFAULT_COLOR) -> str:
    """
    Normalize a CSS color to ``#rrggbb``.

    Unrecognized values fall back to ``default`` (black unless overridden).
    """
    parsed = parse_color(value)
    if parsed is None:
        if value:
            logger.debug(f"Unrecognized color {value!r}, using {default}")
        return default
    return rgb_to_hex(parsed)


def is_transparent(value: Optional[str]) -> bool:
    """Check whether a color value paints nothing."""
    parsed = parse_color(value)
    return parsed is not None and parsed[3] <= 0.0


def first_color_in(value: Optional[str]) -> Optional[str]:
    """
    Find the first color token in a compound value.

    Used for ``background`` shorthands and gradients, e.g.
    ``linear-gradient(135deg, #667eea 0%, #764ba2 100%)`` yields ``#667eea``.
    """
    if not value:
        return None
    direct = parse_color(value)
    if direct is not None:
        return value.strip()

    for match in re.finditer(r"(#[0-9a-fA-F]{3,8}\b|(?:rgba?|hsla?)\([^)]*\)|[a-zA-Z]+)", value):
        token = match.group(1)
        if token.lower() in ("linear", "radial", "gradient", "deg", "to", "url", "none"):
            continue
        if parse_color(token) is not None:
            return token
    return None

"""
Data model shared by the extractor, overlay, consistency manager and renderer.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional

from lxml import etree

from .exceptions import StyleError
from .styles.color import normalize_color

WEIGHTS = ("normal", "bold")
ALIGNMENTS = ("left", "center", "right")


def binarize_weight(value: Any) -> str:
    """Numeric weights >= 600 and ``bold``/``bolder`` are bold, everything else normal."""
    if value is None:
        return "normal"
    text = str(value).strip().lower()
    try:
        return "bold" if float(text) >= 600 else "normal"
    except ValueError:
        return "bold" if text in ("bold", "bolder") else "normal"


def binarize_align(value: Any) -> str:
    """Keep ``center``/``right``; anything else (justify, start, end...) is ``left``."""
    text = str(value or "").strip().lower()
    return text if text in ("center", "right") else "left"


@dataclass(frozen=True)
class TextStyle:
    """The four canonical style fields of a text unit."""

    font_size_px: int = 16
    color_hex: str = "#000000"
    weight: str = "normal"
    align: str = "left"

    def __post_init__(self):
        if not isinstance(self.font_size_px, int) or isinstance(self.font_size_px, bool):
            raise StyleError("font_size_px must be an integer", details=repr(self.font_size_px))
        if self.font_size_px <= 0:
            raise StyleError("font_size_px must be positive", details=str(self.font_size_px))
        if not isinstance(self.color_hex, str):
            raise StyleError("color_hex must be a string", details=repr(self.color_hex))

    @classmethod
    def coerce(cls, font_size: Any = 16, color: Any = None, weight: Any = None,
               align: Any = None) -> "TextStyle":
        """Build a style from loose input, binarizing and normalizing each field."""
        try:
            size = int(round(float(str(font_size).strip().lower().removesuffix("px"))))
        except (TypeError, ValueError):
            size = 16
        return cls(
            font_size_px=max(1, size),
            color_hex=normalize_color(color),
            weight=binarize_weight(weight),
            align=binarize_align(align),
        )

    def normalized(self) -> "TextStyle":
        """Copy with every field coerced into the canonical domain."""
        return TextStyle.coerce(self.font_size_px, self.color_hex, self.weight, self.align)

    def is_canonical(self) -> bool:
        return self.weight in WEIGHTS and self.align in ALIGNMENTS and self == self.normalized()

    def with_changes(self, **changes: Any) -> "TextStyle":
        return replace(self, **changes)

    def to_css(self) -> Dict[str, str]:
        """Inline CSS properties written by a commit."""
        return {
            "font-size": f"{self.font_size_px}px",
            "color": self.color_hex,
            "font-weight": self.weight,
            "text-align": self.align,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fontSizePx": self.font_size_px,
            "colorHex": self.color_hex,
            "weight": self.weight,
            "align": self.align,
        }


@dataclass(slots=True)
class Rect:
    """Axis-aligned rectangle in CSS px, origin at the top-left corner."""

    x: float
    y: float
    width: float
    height: float

    def __post_init__(self):
        if self.width < 0:
            self.width = abs(self.width)
        if self.height < 0:
            self.height = abs(self.height)

    @property
    def left(self) -> float:
        return self.x

    @property
    def top(self) -> float:
        return self.y

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def contains(self, x: float, y: float) -> bool:
        return self.left <= x <= self.right and self.top <= y <= self.bottom

    def scaled(self, factor: float) -> "Rect":
        return Rect(self.x * factor, self.y * factor, self.width * factor, self.height * factor)


@dataclass(eq=False)
class TextUnit:
    """
    One editable piece of text.

    ``node`` is a back-reference into a markup tree owned elsewhere.
    """

    id: str
    node: etree._Element
    text: str
    original_text: str
    style: TextStyle
    original_style: Optional[TextStyle] = None
    bounds: Optional[Rect] = None

    def __post_init__(self):
        if self.original_style is None:
            self.original_style = self.style

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "tag": self.node.tag if isinstance(self.node.tag, str) else "",
            "text": self.text,
            "originalText": self.original_text,
            "style": self.style.to_dict(),
        }
        if self.bounds is not None:
            payload["bounds"] = {
                "x": self.bounds.x,
                "y": self.bounds.y,
                "width": self.bounds.width,
                "height": self.bounds.height,
            }
        return payload


@dataclass
class EditSession:
    """Ephemeral editing state for one text unit."""

    target_unit_id: str
    draft_text: str
    draft_style: TextStyle
    is_open: bool = True


class CommitOutcome(str, Enum):
    SUCCESS = "success"
    EMPTY_TEXT_REJECTED = "empty_text_rejected"
    TEXT_TOO_LONG = "text_too_long"
    SESSION_CLOSED = "session_closed"
    UNKNOWN_UNIT = "unknown_unit"


@dataclass(frozen=True)
class CommitResult:
    """Outcome of ``OverlaySession.commit``; validation failures are values, not exceptions."""

    outcome: CommitOutcome
    reason: str = ""
    unit: Optional[TextUnit] = None

    @property
    def success(self) -> bool:
        return self.outcome is CommitOutcome.SUCCESS

    def __bool__(self) -> bool:
        return self.success


class ExportAttempt(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


@dataclass
class ExportJob:
    """One rasterization request."""

    target_width_px: int
    target_height_px: int
    filename: str
    scale_factor: float = 2.0
    attempt: ExportAttempt = ExportAttempt.PRIMARY
    background_color: Optional[str] = None

    def __post_init__(self):
        if self.target_width_px <= 0 or self.target_height_px <= 0:
            raise ValueError(
                f"Export dimensions must be positive, got {self.target_width_px}x{self.target_height_px}"
            )
        if self.scale_factor <= 0:
            raise ValueError(f"Scale factor must be positive, got {self.scale_factor}")

    def for_attempt(self, attempt: ExportAttempt, scale_factor: float) -> "ExportJob":
        return replace(self, attempt=attempt, scale_factor=scale_factor)

    @property
    def pixel_size(self) -> tuple:
        return (
            max(1, int(round(self.target_width_px * self.scale_factor))),
            max(1, int(round(self.target_height_px * self.scale_factor))),
        )


@dataclass(frozen=True)
class RasterResult:
    """Encoded output of a successful render."""

    data: bytes
    width: int
    height: int
    attempt: ExportAttempt
    media_type: str = "image/png"


@dataclass
class ExportOutcome:
    """What the export API reports to its caller."""

    success: bool
    message: str
    path: Optional[Any] = None
    attempt: Optional[ExportAttempt] = None
    degraded: bool = False
    attempts: list = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.success

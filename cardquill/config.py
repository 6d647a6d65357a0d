"""
Configuration for CardQuill.

All settings are frozen dataclasses so a configuration can be shared between
the preview and export sides without one of them mutating it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

#: Font stack forced onto export surfaces when a node has no usable family.
FALLBACK_FONT_STACK = "'PingFang SC', 'Microsoft YaHei', 'Helvetica Neue', Arial, sans-serif"

#: Font stack used by the scaled preview box.
PREVIEW_FONT_STACK = "system-ui, -apple-system, sans-serif"

#: Families treated as "no explicit choice" when normalizing export surfaces.
GENERIC_FONT_FAMILIES = frozenset({
    "system-ui",
    "-apple-system",
    "blinkmacsystemfont",
    "sans-serif",
    "serif",
    "ui-sans-serif",
    "inherit",
    "initial",
})


@dataclass(frozen=True)
class EditorConfig:
    """
    Settings of the editable overlay.

    Attributes:
        max_text_length: Longest accepted draft (after trimming).
        highlight_background: Hover background applied by the overlay.
        highlight_outline: Hover outline applied by the overlay.
        highlight_outline_offset: Hover outline offset.
    """

    max_text_length: int = 150
    highlight_background: str = "rgba(59, 130, 246, 0.1)"
    highlight_outline: str = "2px dashed rgba(59, 130, 246, 0.5)"
    highlight_outline_offset: str = "2px"


@dataclass(frozen=True)
class PreviewConfig:
    """
    Settings of the scaled preview surface.

    Attributes:
        max_display_width: Widest preview box in CSS px.
        max_display_height: Tallest preview box in CSS px.
        font_family: Font stack of the preview content box.
        default_width: Width used when a fragment arrives without valid dimensions.
        default_height: Height used when a fragment arrives without valid dimensions.
    """

    max_display_width: float = 400.0
    max_display_height: float = 500.0
    font_family: str = PREVIEW_FONT_STACK
    default_width: int = 400
    default_height: int = 300


@dataclass(frozen=True)
class ExportConfig:
    """
    Settings of the consistency manager and the rasterization engine.

    Attributes:
        scale_factor: Device scale of the primary render.
        fallback_scale_factor: Device scale of the single fallback render.
        image_timeout: Seconds to wait for image loads in one render attempt.
        min_output_bytes: Encoded PNG results smaller than this many raw bytes
            count as failures. 750 bytes is a 1000-character base64 data URL.
        background_color: Canvas color behind the fragment.
        download_dir: Directory receiving exported files.
        font_dirs: Extra directories searched for TrueType fonts.
        fallback_font_stack: Font stack forced onto nodes without a family.
    """

    scale_factor: float = 2.0
    fallback_scale_factor: float = 1.0
    image_timeout: float = 10.0
    min_output_bytes: int = 750
    background_color: str = "#ffffff"
    download_dir: Path = Path(".")
    font_dirs: Tuple[Path, ...] = ()
    fallback_font_stack: str = FALLBACK_FONT_STACK


@dataclass(frozen=True)
class CardQuillConfig:
    """Bundle of all CardQuill settings."""

    editor: EditorConfig = field(default_factory=EditorConfig)
    preview: PreviewConfig = field(default_factory=PreviewConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CardQuillConfig":
        """
        Build configuration from ``CARDQUILL_*`` environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``

        Returns:
            Configuration with every unset variable left at its default
        """
        env = os.environ if environ is None else environ
        config = cls()

        editor = config.editor
        if env.get("CARDQUILL_MAX_TEXT_LENGTH"):
            editor = replace(editor, max_text_length=int(env["CARDQUILL_MAX_TEXT_LENGTH"]))

        export = config.export
        if env.get("CARDQUILL_SCALE_FACTOR"):
            export = replace(export, scale_factor=float(env["CARDQUILL_SCALE_FACTOR"]))
        if env.get("CARDQUILL_IMAGE_TIMEOUT"):
            export = replace(export, image_timeout=float(env["CARDQUILL_IMAGE_TIMEOUT"]))
        if env.get("CARDQUILL_MIN_OUTPUT_BYTES"):
            export = replace(export, min_output_bytes=int(env["CARDQUILL_MIN_OUTPUT_BYTES"]))
        if env.get("CARDQUILL_DOWNLOAD_DIR"):
            export = replace(export, download_dir=Path(env["CARDQUILL_DOWNLOAD_DIR"]))
        if env.get("CARDQUILL_FONT_DIRS"):
            dirs = tuple(Path(p) for p in env["CARDQUILL_FONT_DIRS"].split(os.pathsep) if p)
            export = replace(export, font_dirs=dirs)

        log_level = env.get("CARDQUILL_LOG_LEVEL", config.log_level).upper()
        return cls(editor=editor, preview=config.preview, export=export, log_level=log_level)


@dataclass(frozen=True)
class CoverSize:
    """Target artifact size offered to users."""

    key: str
    label: str
    width: int
    height: int
    ratio: str
    description: str = ""

    @property
    def size(self) -> str:
        return f"{self.width}×{self.height}"


COVER_SIZES: Dict[str, CoverSize] = {
    "xiaohongshu": CoverSize(
        key="xiaohongshu",
        label="xiaohongshu_cover",
        width=900,
        height=1200,
        ratio="3:4",
        description="Vertical note cover",
    ),
    "video": CoverSize(
        key="video",
        label="video_cover",
        width=1080,
        height=1920,
        ratio="9:16",
        description="Short video cover",
    ),
    "wechat": CoverSize(
        key="wechat",
        label="wechat_cover",
        width=900,
        height=268,
        ratio="3.35:1",
        description="Article header with share thumbnail",
    ),
}


def get_cover_size(key: str) -> CoverSize:
    """
    Look up a cover size preset.

    Args:
        key: Preset key (``xiaohongshu``, ``video``, ``wechat``)

    Returns:
        The matching preset

    Raises:
        KeyError: If the key is unknown
    """
    try:
        return COVER_SIZES[key]
    except KeyError:
        raise KeyError(f"Unknown cover size: {key!r} (known: {', '.join(COVER_SIZES)})") from None


def preview_scale(width: float, height: float, config: Optional[PreviewConfig] = None) -> float:
    """
    Compute the visual scale that fits a design into the preview box.

    Never enlarges: the result is at most 1.0.
    """
    config = config or PreviewConfig()
    if not width or not height or width <= 0 or height <= 0:
        return 1.0
    scale_x = config.max_display_width / float(width)
    scale_y = config.max_display_height / float(height)
    return min(scale_x, scale_y, 1.0)

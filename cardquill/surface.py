"""
Render surfaces.

A surface owns one copy of the fragment under a container element. The
preview surface is scaled and editable; the export surface is an unscaled,
edit-free copy rebuilt before every rasterization.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from lxml import etree

from .config import PreviewConfig, preview_scale
from .markup import clone_tree, parse_fragment, replace_children, serialize_fragment
from .styles.inline_style import InlineStyle

logger = logging.getLogger(__name__)

PREVIEW_MARKER = "data-preview-container"


class SurfaceKind(str, Enum):
    PREVIEW = "preview"
    EXPORT = "export"


def _format_scale(scale: float) -> str:
    return f"{scale:.6f}".rstrip("0").rstrip(".")


@dataclass(eq=False)
class Surface:
    """
    A container element plus its rendering parameters.

    Attributes:
        root: Container element owning the fragment copy
        kind: Preview or export
        width_px: Unscaled design width
        height_px: Unscaled design height
        scale: Visual scale (1.0 for export, at most 1.0 for preview)
        is_clean: True only right after editing artifacts were stripped
        generation: Incremented each time the content is replaced
    """

    root: etree._Element
    kind: SurfaceKind
    width_px: int
    height_px: int
    scale: float = 1.0
    is_clean: bool = False
    generation: int = 0

    def mark_dirty(self) -> None:
        if self.is_clean:
            logger.debug(f"{self.kind.value} surface marked dirty")
        self.is_clean = False

    def replace_content(self, content: Union[str, etree._Element, None]) -> None:
        """
        Swap the whole content of the surface for a new fragment.

        Args:
            content: Fragment markup, or a container element whose children are copied
        """
        source = content if isinstance(content, etree._Element) else parse_fragment(content)
        replace_children(self.root, source)
        self.generation += 1
        self.mark_dirty()

    def html(self) -> str:
        """Inner HTML of the surface container."""
        return serialize_fragment(self.root)

    def clone_root(self) -> etree._Element:
        return clone_tree(self.root)

    @property
    def display_size(self) -> tuple:
        return (self.width_px * self.scale, self.height_px * self.scale)


def create_preview_surface(
    markup: Union[str, etree._Element, None],
    width: Optional[int] = None,
    height: Optional[int] = None,
    config: Optional[PreviewConfig] = None,
) -> Surface:
    """
    Build the scaled preview surface for a fragment.

    Invalid dimensions fall back to the configured defaults (400x300).

    Args:
        markup: Fragment markup or an already parsed container element
        width: Design width in px
        height: Design height in px
        config: Preview settings

    Returns:
        Preview surface whose root carries the scale transform
    """
    config = config or PreviewConfig()
    if not width or not height or width <= 0 or height <= 0:
        logger.debug(
            f"Invalid preview dimensions {width}x{height}, "
            f"using {config.default_width}x{config.default_height}"
        )
        width, height = config.default_width, config.default_height
    width, height = int(width), int(height)

    root = markup if isinstance(markup, etree._Element) else parse_fragment(markup)
    scale = preview_scale(width, height, config)

    root.set(PREVIEW_MARKER, "true")
    InlineStyle(root).update({
        "width": f"{width}px",
        "height": f"{height}px",
        "transform": f"scale({_format_scale(scale)})",
        "transform-origin": "top left",
        "font-family": config.font_family,
    })
    return Surface(root=root, kind=SurfaceKind.PREVIEW, width_px=width, height_px=height, scale=scale)

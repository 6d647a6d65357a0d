"""
Dual-surface consistency.

Builds the export surface from the live preview: a deep copy stripped of
every editing artifact and scale transform, verified to carry the same
visible text as the preview before it is handed to the rasterizer.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import FrozenSet, Iterator, Optional

from lxml import etree

from .config import FALLBACK_FONT_STACK, GENERIC_FONT_FAMILIES, EditorConfig, ExportConfig
from .exceptions import ConsistencyCheckFailed
from .markup import clone_tree, flatten_text
from .markup.fragment import is_element
from .models import ExportJob
from .overlay import EDITABLE_CLASS, EDITABLE_ID_ATTR, TEXT_ELEMENT_ATTR
from .styles.color import parse_color
from .styles.computed_style import StyleResolver
from .styles.inline_style import InlineStyle
from .surface import PREVIEW_MARKER, Surface, SurfaceKind

logger = logging.getLogger(__name__)

EDITING_ATTRIBUTES = (
    EDITABLE_ID_ATTR,
    TEXT_ELEMENT_ATTR,
    "contenteditable",
    PREVIEW_MARKER,
)
EDITING_ATTRIBUTE_PREFIX = "data-editable-"

EDITING_CLASSES = frozenset({EDITABLE_CLASS, "editable-hint", "ring-2", "ring-blue-500"})

EDITING_PROPERTIES = (
    "cursor",
    "outline",
    "outline-offset",
    "user-select",
    "-webkit-user-select",
    "pointer-events",
)
EDITING_PROPERTY_PREFIX = "transition"

# Removed only when their value carries a color the overlay writes.
HIGHLIGHT_PROPERTIES = ("background-color", "box-shadow", "border")

SCALE_PROPERTIES = ("transform", "transform-origin", "scale", "zoom")

_COLOR_TOKEN_RE = re.compile(r"#[0-9a-fA-F]{3,8}\b|(?:rgba?|hsla?)\([^)]*\)|[a-zA-Z]+")


def _color_key(parsed) -> tuple:
    return (*parsed[:3], round(parsed[3], 3))


def _colors_in(value: Optional[str]) -> Iterator[tuple]:
    for token in _COLOR_TOKEN_RE.findall(value or ""):
        parsed = parse_color(token)
        if parsed is not None:
            yield _color_key(parsed)


def highlight_colors(config: Optional[EditorConfig] = None) -> FrozenSet[tuple]:
    """Colors (with alpha) of the hover highlight the overlay applies."""
    config = config or EditorConfig()
    return frozenset(_colors_in(f"{config.highlight_background} {config.highlight_outline}"))


def carries_highlight(value: Optional[str], colors: Optional[FrozenSet[tuple]] = None) -> bool:
    """
    True when a declaration value carries one of the overlay's highlight colors.

    The match includes alpha, so an opaque ``#3b82f6`` chosen by the design
    is not mistaken for the translucent hover highlight.
    """
    if colors is None:
        colors = highlight_colors()
    return any(color in colors for color in _colors_in(value))


def is_generic_font_stack(value: Optional[str]) -> bool:
    """
    Check whether a font-family value makes no concrete choice.

    Empty stacks, stacks naming ``system-ui`` and stacks starting with a
    generic family count as generic.
    """
    if not value or not value.strip():
        return True
    families = [f.strip().strip("'\"").lower() for f in value.split(",") if f.strip()]
    if not families:
        return True
    return "system-ui" in families or families[0] in GENERIC_FONT_FAMILIES


@dataclass
class ExportPreparation:
    """Result of preparing an export surface."""

    surface: Surface
    degraded: bool = False
    attempts: int = 1


class ConsistencyManager:
    """
    Keep the export surface in step with the preview surface.

    Args:
        config: Export settings (fallback font stack)
        editor_config: Overlay settings giving the highlight colors to strip
    """

    def __init__(self, config: Optional[ExportConfig] = None, editor_config: Optional[EditorConfig] = None):
        self.config = config or ExportConfig()
        self.highlight_colors = highlight_colors(editor_config)
        self.export_surface: Optional[Surface] = None

    # ------------------------------------------------------------------
    def sync(self, preview: Surface, job: ExportJob) -> Surface:
        """
        Rebuild the export surface from the current preview content.

        The live preview is never mutated.

        Args:
            preview: Preview surface
            job: Export job giving the target dimensions

        Returns:
            Clean, unscaled export surface
        """
        self.export_surface = None
        root = clone_tree(preview.root)

        for element in root.iter():
            if is_element(element):
                self._strip_editing(element)
                InlineStyle(element).remove(*SCALE_PROPERTIES)
        self._force_root_geometry(root, job)
        self._force_font_family(root)

        surface = Surface(
            root=root,
            kind=SurfaceKind.EXPORT,
            width_px=job.target_width_px,
            height_px=job.target_height_px,
            scale=1.0,
            is_clean=True,
            generation=preview.generation,
        )
        self.export_surface = surface
        logger.debug(f"Synced export surface at {job.target_width_px}x{job.target_height_px}")
        return surface

    def verify(self, preview: Surface, export: Surface) -> bool:
        """Compare the flattened visible text of both surfaces."""
        matches = flatten_text(preview.root) == flatten_text(export.root)
        logger.debug(f"Surface verification {'passed' if matches else 'failed'}")
        return matches

    def require_consistent(self, preview: Surface, export: Surface) -> None:
        """
        Raise when the surfaces carry different text.

        Raises:
            ConsistencyCheckFailed: If verification fails
        """
        if not self.verify(preview, export):
            raise ConsistencyCheckFailed(
                "Preview and export surfaces differ",
                preview_text=flatten_text(preview.root),
                export_text=flatten_text(export.root),
            )

    def prepare_export(self, preview: Surface, job: ExportJob) -> ExportPreparation:
        """
        Sync and verify, re-syncing once on mismatch.

        When the second sync still mismatches, the export falls back to a raw
        copy of the preview content (only root geometry forced) and the
        preparation is marked degraded.
        """
        export = self.sync(preview, job)
        try:
            self.require_consistent(preview, export)
            return ExportPreparation(surface=export)
        except ConsistencyCheckFailed:
            logger.debug("Export surface mismatch, re-syncing")

        export = self.sync(preview, job)
        try:
            self.require_consistent(preview, export)
            return ExportPreparation(surface=export, attempts=2)
        except ConsistencyCheckFailed as exc:
            logger.warning(f"{exc}; exporting raw preview content")

        return ExportPreparation(surface=self.raw_copy(preview, job), degraded=True, attempts=2)

    def raw_copy(self, preview: Surface, job: ExportJob) -> Surface:
        """Copy preview content with only the root dimensions and scale forced."""
        root = clone_tree(preview.root)
        InlineStyle(root).update({
            "width": f"{job.target_width_px}px",
            "height": f"{job.target_height_px}px",
            "transform": "none",
            "scale": "1",
        })
        surface = Surface(
            root=root,
            kind=SurfaceKind.EXPORT,
            width_px=job.target_width_px,
            height_px=job.target_height_px,
            scale=1.0,
            is_clean=False,
            generation=preview.generation,
        )
        self.export_surface = surface
        return surface

    # ------------------------------------------------------------------
    def _strip_editing(self, element: etree._Element) -> None:
        for name in list(element.attrib):
            if name in EDITING_ATTRIBUTES or name.startswith(EDITING_ATTRIBUTE_PREFIX):
                del element.attrib[name]

        class_attr = element.get("class")
        if class_attr is not None:
            tokens = [t for t in class_attr.split() if t not in EDITING_CLASSES]
            if tokens:
                element.set("class", " ".join(tokens))
            else:
                del element.attrib["class"]

        style = InlineStyle(element)
        declared = style.as_dict()
        doomed = [
            prop for prop in declared
            if prop in EDITING_PROPERTIES or prop.startswith(EDITING_PROPERTY_PREFIX)
        ]
        doomed.extend(
            p for p in HIGHLIGHT_PROPERTIES if carries_highlight(declared.get(p), self.highlight_colors)
        )
        if doomed:
            style.remove(*doomed)

    def _force_root_geometry(self, root: etree._Element, job: ExportJob) -> None:
        InlineStyle(root).update({
            "width": f"{job.target_width_px}px",
            "height": f"{job.target_height_px}px",
            "transform": "none",
            "scale": "1",
            "margin": "0",
            "position": "relative",
            "overflow": "hidden",
            "box-sizing": "border-box",
        })

    def _force_font_family(self, root: etree._Element) -> None:
        stack = self.config.fallback_font_stack or FALLBACK_FONT_STACK
        resolver = StyleResolver(root)
        forced = 0
        for element in root.iter():
            if not is_element(element):
                continue
            declared = element is root or "font-family" in resolver.cascaded_declarations(element)
            if declared and is_generic_font_stack(resolver.compute(element).get("font-family")):
                InlineStyle(element).set("font-family", stack)
                forced += 1
        if forced:
            logger.debug(f"Forced fallback font stack on {forced} elements")

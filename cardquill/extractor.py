"""
Text model extraction.

Walks an arbitrary fragment tree and turns every element that carries
visible text of its own into a ``TextUnit`` with a canonical style.
"""

from __future__ import annotations

import itertools
import logging
import time
from typing import Callable, Iterable, List, Optional

from lxml import etree

from .markup import has_direct_text, is_leaf_with_text, iter_content_elements, read_text
from .models import Rect, TextUnit
from .render.layout import LayoutEngine
from .styles.canonical import to_text_style
from .styles.computed_style import StyleResolver

logger = logging.getLogger(__name__)

_PASS_COUNTER = itertools.count(1)


def _pass_salt() -> str:
    """Millisecond timestamp plus a process-wide pass number."""
    return f"{int(time.time() * 1000)}{next(_PASS_COUNTER)}"


def is_text_unit_node(node: etree._Element) -> bool:
    """An element qualifies when it owns direct text or is a leaf with text."""
    return has_direct_text(node) or is_leaf_with_text(node)


class TextModelExtractor:
    """
    Extract text units from a fragment.

    A fresh ``StyleResolver`` is built for every pass so committed edits are
    always reflected in the computed styles.
    """

    def __init__(self, resolver_factory: Callable[[etree._Element], StyleResolver] = StyleResolver):
        self.resolver_factory = resolver_factory

    def extract(self, fragment_root: Optional[etree._Element]) -> List[TextUnit]:
        """
        Extract text units in depth-first document order.

        Args:
            fragment_root: Container element of the fragment

        Returns:
            List of text units (empty when nothing qualifies)
        """
        if fragment_root is None:
            logger.debug("No fragment to extract from")
            return []

        resolver = self.resolver_factory(fragment_root)
        salt = _pass_salt()
        units: List[TextUnit] = []

        for node in iter_content_elements(fragment_root):
            if not is_text_unit_node(node):
                continue
            text = read_text(node)
            if not text:
                continue
            style = to_text_style(resolver.compute(node))
            units.append(TextUnit(
                id=f"text-{len(units)}-{salt}",
                node=node,
                text=text,
                original_text=text,
                style=style,
            ))

        if units:
            logger.debug(f"Extracted {len(units)} text units")
        else:
            logger.debug("Fragment contains no extractable text")
        return units

    def refresh_bounds(self, units: Iterable[TextUnit], surface) -> List[TextUnit]:
        """
        Recompute advisory bounds of units living on a surface.

        Bounds are expressed in the surface's display coordinates (layout
        position multiplied by the surface scale).

        Args:
            units: Units whose nodes belong to ``surface.root``
            surface: Surface to lay out

        Returns:
            The same units, with ``bounds`` updated (None when a node has no box)
        """
        units = list(units)
        layout = LayoutEngine(skip_editing_marked=False).layout(surface.root, surface.width_px, surface.height_px)
        boxes = layout.index()
        for unit in units:
            box = boxes.get(unit.node)
            if box is None:
                unit.bounds = None
                continue
            frame = box.frame
            unit.bounds = Rect(frame.x, frame.y, frame.width, frame.height).scaled(surface.scale)
        return units


def extract_text_units(fragment_root: Optional[etree._Element]) -> List[TextUnit]:
    """Extract text units with the default extractor."""
    return TextModelExtractor().extract(fragment_root)

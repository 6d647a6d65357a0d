"""
Box layout of fragment trees.

Produces a ``LayoutBox`` tree in CSS px: block boxes stacked in normal flow,
inline content broken into line boxes of styled text runs, simple flex rows
and columns, and absolutely positioned boxes placed against their nearest
positioned ancestor.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union

from lxml import etree

from ..markup.fragment import is_element, tag_name
from ..models import binarize_weight
from ..styles.color import first_color_in, is_transparent
from ..styles.computed_style import ComputedStyle, StyleResolver, parse_length
from .alignment import TextAlignmentEngine
from .fonts import FontResolver, font_metrics, text_width
from .geometry import Edges, Rect, parse_box_shorthand

logger = logging.getLogger(__name__)

BLOCK_DISPLAYS = frozenset({
    "block", "flex", "grid", "list-item", "table", "inline-block", "inline-flex",
    "table-row", "table-cell", "flow-root",
})
POSITIONED = frozenset({"relative", "absolute", "fixed", "sticky"})
OUT_OF_FLOW = frozenset({"absolute", "fixed"})
SKIPPED_TAGS = frozenset({"script", "noscript", "style", "template", "head", "title", "meta", "link"})
EDITING_CLASSES = frozenset({"editable-element", "editable-hint"})

_CJK = "\\u2e80-\\u9fff\\uac00-\\ud7af\\uf900-\\ufaff\\uff00-\\uffef\\u3000-\\u303f"
_TOKEN_RE = re.compile(rf"\s+|[{_CJK}]|[^\s{_CJK}]+")


def is_editing_marked(element: etree._Element) -> bool:
    """Elements still carrying overlay markers are left out of renders."""
    if element.get("data-editable-id"):
        return True
    classes = set((element.get("class") or "").split())
    return bool(classes & EDITING_CLASSES)


class BoxKind(str, Enum):
    BLOCK = "block"
    INLINE = "inline"
    IMAGE = "image"


@dataclass(eq=False)
class TextRun:
    """A horizontal run of text sharing one style, positioned on a line."""

    text: str
    x: float
    y: float
    width: float
    height: float
    baseline: float
    font_size: float
    font_family: str
    bold: bool
    color: str
    opacity: float = 1.0
    visible: bool = True
    background: Optional[str] = None
    element: Optional[etree._Element] = None
    owners: Tuple[etree._Element, ...] = ()

    @property
    def frame(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)

    def translate(self, dx: float, dy: float) -> None:
        self.x += dx
        self.y += dy
        self.baseline += dy


@dataclass(eq=False)
class LayoutBox:
    """A laid out element (or the inline extent of an inline element)."""

    element: Optional[etree._Element]
    style: ComputedStyle
    kind: BoxKind
    frame: Rect
    children: List["LayoutBox"] = field(default_factory=list)
    runs: List[TextRun] = field(default_factory=list)
    background: Optional[str] = None
    border_width: float = 0.0
    border_color: Optional[str] = None
    border_radius: float = 0.0
    image_src: Optional[str] = None
    opacity: float = 1.0
    visible: bool = True

    def iter(self) -> Iterator["LayoutBox"]:
        yield self
        for child in self.children:
            yield from child.iter()

    def iter_runs(self) -> Iterator[TextRun]:
        for box in self.iter():
            yield from box.runs

    def index(self) -> Dict[etree._Element, "LayoutBox"]:
        """Map elements to their boxes (first box wins)."""
        boxes: Dict[etree._Element, LayoutBox] = {}
        for box in self.iter():
            if box.element is not None:
                boxes.setdefault(box.element, box)
        return boxes

    def translate(self, dx: float, dy: float) -> None:
        if not dx and not dy:
            return
        self.frame = Rect(self.frame.x + dx, self.frame.y + dy, self.frame.width, self.frame.height)
        for run in self.runs:
            run.translate(dx, dy)
        for child in self.children:
            child.translate(dx, dy)

    def content_right(self) -> float:
        """Right-most edge of actual content (runs and children)."""
        right = self.frame.x
        for run in self.runs:
            right = max(right, run.x + run.width)
        for child in self.children:
            right = max(right, child.content_right() if child.kind is BoxKind.BLOCK else child.frame.right)
        return right


@dataclass
class _TextItem:
    text: str
    style: ComputedStyle
    owners: Tuple[etree._Element, ...]
    opacity: float
    background: Optional[str] = None


@dataclass
class _ImageItem:
    element: etree._Element
    style: ComputedStyle
    width: float
    height: float
    opacity: float


class _LineBreak:
    pass


_InlineItem = Union[_TextItem, _ImageItem, _LineBreak]


@dataclass
class _Atom:
    kind: str
    text: str = ""
    width: float = 0.0
    item: Optional[_InlineItem] = None


@dataclass
class _LayoutContext:
    resolver: StyleResolver
    viewport: Rect


def background_of(style: ComputedStyle) -> Optional[str]:
    """Painted background color (first color of gradients); None when transparent."""
    value = style.get("background-color") or first_color_in(style.get("background"))
    if value is None and style.get("background-image"):
        value = first_color_in(style.get("background-image"))
    if not value or is_transparent(value):
        return None
    return value


class LayoutEngine:
    """
    Lay out a fragment tree.

    Args:
        font_resolver: Font lookup used to measure text
        resolver_factory: Builds the style resolver for a tree
        skip_editing_marked: Leave out elements carrying overlay markers
    """

    def __init__(
        self,
        font_resolver: Optional[FontResolver] = None,
        resolver_factory: Callable[[etree._Element], StyleResolver] = StyleResolver,
        skip_editing_marked: bool = True,
    ):
        self.fonts = font_resolver or FontResolver()
        self.resolver_factory = resolver_factory
        self.skip_editing_marked = skip_editing_marked

    def layout(self, root: etree._Element, width: Optional[float] = None,
               height: Optional[float] = None) -> LayoutBox:
        """
        Lay out ``root`` and its subtree.

        Args:
            root: Container element to lay out
            width: Available width in px
            height: Available height in px

        Returns:
            Root layout box
        """
        viewport = Rect(0.0, 0.0, float(width or 0.0), float(height or 0.0))
        ctx = _LayoutContext(resolver=self.resolver_factory(root), viewport=viewport)
        style = ctx.resolver.compute(root)
        box, _ = self._layout_block(
            ctx, root, style, 0.0, 0.0, viewport.width, viewport.height or None, viewport, 1.0,
        )
        return box

    # ------------------------------------------------------------------
    # Measurement helpers
    # ------------------------------------------------------------------

    def measure(self, text: str, style: ComputedStyle) -> float:
        choice = self.fonts.resolve(style.get("font-family"), style.font_size, self._is_bold(style))
        return text_width(choice.font, text)

    def metrics(self, style: ComputedStyle) -> Tuple[float, float]:
        choice = self.fonts.resolve(style.get("font-family"), style.font_size, self._is_bold(style))
        return font_metrics(choice.font, style.font_size)

    @staticmethod
    def _is_bold(style: ComputedStyle) -> bool:
        return binarize_weight(style.get("font-weight")) == "bold"

    @staticmethod
    def _edges(style: ComputedStyle, prop: str, reference: float) -> Edges:
        def resolve(token: str) -> Optional[float]:
            return parse_length(token, style.font_size, reference)

        edges = parse_box_shorthand(style.get(prop), resolve) or Edges()
        for side in ("top", "right", "bottom", "left"):
            value = style.get(f"{prop}-{side}")
            if value is not None:
                setattr(edges, side, resolve(value) or 0.0)
        return edges

    @staticmethod
    def _border(style: ComputedStyle) -> Tuple[float, Optional[str]]:
        value = style.get("border")
        width = None
        color = None
        if value and value.strip().lower() not in ("none", "0"):
            for token in value.split():
                length = parse_length(token, style.font_size)
                if length is not None and width is None:
                    width = length
            color = first_color_in(value)
            if width is None and color is not None:
                width = 1.0
        if style.get("border-width") is not None:
            width = parse_length(style.get("border-width"), style.font_size)
        if style.get("border-color") is not None:
            color = first_color_in(style.get("border-color"))
        if not width or not color or is_transparent(color):
            return 0.0, None
        return width, color

    @staticmethod
    def _margin_auto(style: ComputedStyle) -> bool:
        margin = (style.get("margin") or "").split()
        if len(margin) in (1, 2, 3) and margin[-1 if len(margin) < 3 else 1] == "auto":
            return True
        return style.get("margin-left") == "auto" and style.get("margin-right") == "auto"

    # ------------------------------------------------------------------
    # Block layout
    # ------------------------------------------------------------------

    def _layout_block(
        self,
        ctx: _LayoutContext,
        element: etree._Element,
        style: ComputedStyle,
        x: float,
        y: float,
        available_width: float,
        available_height: Optional[float],
        positioned: Rect,
        opacity: float,
    ) -> Tuple[LayoutBox, float]:
        margin = self._edges(style, "margin", available_width)
        padding = self._edges(style, "padding", available_width)
        border_width, border_color = self._border(style)
        border = Edges.uniform(border_width)
        border_box = str(style.get("box-sizing", "")).lower() == "border-box"
        chrome_w = padding.horizontal + border.horizontal
        chrome_h = padding.vertical + border.vertical

        explicit_w = style.length("width", available_width)
        if explicit_w is not None:
            content_w = explicit_w - (chrome_w if border_box else 0.0)
        else:
            content_w = available_width - margin.horizontal - chrome_w
        max_w = style.length("max-width", available_width)
        if max_w is not None:
            content_w = min(content_w, max_w - (chrome_w if border_box else 0.0))
        content_w = max(0.0, content_w)

        box_x = x + margin.left
        if explicit_w is not None or max_w is not None:
            if self._margin_auto(style):
                box_x = x + max(0.0, (available_width - content_w - chrome_w) / 2)
        box_y = y + margin.top

        fixed_h = style.length("height", available_height)
        fixed_content_h = None
        if fixed_h is not None:
            fixed_content_h = max(0.0, fixed_h - (chrome_h if border_box else 0.0))

        box = LayoutBox(
            element=element,
            style=style,
            kind=BoxKind.BLOCK,
            frame=Rect(box_x, box_y, content_w + chrome_w, 0.0),
            background=background_of(style),
            border_width=border_width,
            border_color=border_color,
            border_radius=style.length("border-radius", content_w + chrome_w) or 0.0,
            opacity=opacity * style.opacity,
            visible=str(style.get("visibility", "visible")).lower() == "visible",
        )

        content = Rect(box_x + border.left + padding.left, box_y + border.top + padding.top, content_w, 0.0)
        deferred: List[Tuple[etree._Element, ComputedStyle]] = []
        used_h = self._layout_children(ctx, box, element, content, fixed_content_h, positioned, deferred)

        content_h = fixed_content_h if fixed_content_h is not None else used_h
        min_h = style.length("min-height", available_height)
        if min_h is not None:
            content_h = max(content_h, min_h - (chrome_h if border_box else 0.0))
        box.frame = Rect(box_x, box_y, content_w + chrome_w, content_h + chrome_h)

        position = str(style.get("position", "static")).lower()
        if position == "relative":
            dx = style.length("left", available_width) or -(style.length("right", available_width) or 0.0)
            dy = style.length("top", available_height) or -(style.length("bottom", available_height) or 0.0)
            box.translate(dx, dy)

        if deferred:
            container = positioned
            if position in POSITIONED or element is ctx.resolver.root:
                container = Rect(
                    box.frame.x + border.left,
                    box.frame.y + border.top,
                    box.frame.width - border.horizontal,
                    box.frame.height - border.vertical,
                )
            for child, child_style in deferred:
                box.children.append(self._layout_absolute(ctx, child, child_style, container, content, box.opacity))

        return box, margin.top + box.frame.height + margin.bottom

    def _layout_absolute(
        self,
        ctx: _LayoutContext,
        element: etree._Element,
        style: ComputedStyle,
        container: Rect,
        static: Rect,
        opacity: float,
    ) -> LayoutBox:
        left = style.length("left", container.width)
        right = style.length("right", container.width)
        top = style.length("top", container.height)
        bottom = style.length("bottom", container.height)

        available = container.width
        if style.get("width") is None:
            if left is not None and right is not None:
                available = max(0.0, container.width - left - right)
            else:
                available = max(0.0, container.width - (left or 0.0) - (right or 0.0))

        box, _ = self._layout_block(ctx, element, style, 0.0, 0.0, available, container.height, container, opacity)
        if style.get("width") is None and (left is None or right is None):
            shrink = box.content_right() - box.frame.x
            padding_right = self._edges(style, "padding", container.width).right
            width = min(box.frame.width, shrink + padding_right + box.border_width)
            if width < box.frame.width:
                box, _ = self._layout_block(ctx, element, style, 0.0, 0.0, width, container.height, container, opacity)

        margin = self._edges(style, "margin", container.width)
        if left is not None:
            x = container.x + left
        elif right is not None:
            x = container.right - right - box.frame.width - margin.horizontal
        else:
            x = static.x
        if top is not None:
            y = container.y + top
        elif bottom is not None:
            y = container.bottom - bottom - box.frame.height - margin.vertical
        else:
            y = static.y

        transform = str(style.get("transform", "")).replace(" ", "").lower()
        if "translate(-50%,-50%)" in transform:
            x -= box.frame.width / 2
            y -= box.frame.height / 2
        elif "translatex(-50%)" in transform:
            x -= box.frame.width / 2
        elif "translatey(-50%)" in transform:
            y -= box.frame.height / 2

        box.translate(x, y)
        return box

    def _layout_children(
        self,
        ctx: _LayoutContext,
        box: LayoutBox,
        element: etree._Element,
        content: Rect,
        fixed_height: Optional[float],
        positioned: Rect,
        deferred: List[Tuple[etree._Element, ComputedStyle]],
    ) -> float:
        style = box.style
        display = style.display
        if display in ("flex", "inline-flex"):
            direction = str(style.get("flex-direction", "row")).lower()
            if direction.startswith("row") and not (element.text and element.text.strip()):
                return self._layout_flex_row(ctx, box, element, content, fixed_height, positioned, deferred)

        cursor = content.y
        pending: List[_InlineItem] = []

        def flush() -> None:
            nonlocal cursor
            if pending:
                cursor += self._layout_inline(box, pending, Rect(content.x, cursor, content.width, 0.0))
                pending.clear()

        if element.text:
            pending.append(_TextItem(element.text, style, (), box.opacity))

        for child in element:
            if is_element(child) and not self._skipped(child):
                child_style = ctx.resolver.compute(child)
                position = str(child_style.get("position", "static")).lower()
                if child_style.display == "none":
                    pass
                elif position in OUT_OF_FLOW:
                    deferred.append((child, child_style))
                elif tag_name(child) == "img" and child_style.display in BLOCK_DISPLAYS:
                    flush()
                    image = self._image_item(child, child_style, content.width, box.opacity)
                    if image is not None:
                        box.children.append(self._image_box(image, content.x, cursor, image.height))
                        cursor += image.height
                elif child_style.display in BLOCK_DISPLAYS:
                    flush()
                    child_box, height = self._layout_block(
                        ctx, child, child_style, content.x, cursor, content.width, fixed_height, positioned, box.opacity,
                    )
                    box.children.append(child_box)
                    cursor += height
                else:
                    self._collect_inline(ctx, child, child_style, pending, (), box.opacity, None, content.width)
            if child.tail:
                pending.append(_TextItem(child.tail, style, (), box.opacity))
        flush()

        used = cursor - content.y
        if display in ("flex", "inline-flex"):
            self._align_flex_column(box, content, used, fixed_height)
        return used

    def _align_flex_column(self, box: LayoutBox, content: Rect, used: float, fixed_height: Optional[float]) -> None:
        style = box.style
        align = str(style.get("align-items", "stretch")).lower()
        if align in ("center", "flex-end", "end"):
            for child in box.children:
                if child.kind is not BoxKind.BLOCK or child.style.get("width") is not None:
                    continue
                extent = child.content_right() - child.frame.x
                free = content.width - extent
                if free > 0:
                    child.translate(free / 2 if align == "center" else free, 0.0)
        justify = str(style.get("justify-content", "flex-start")).lower()
        if fixed_height is not None and fixed_height > used and justify in ("center", "flex-end", "end"):
            free = fixed_height - used
            shift = free / 2 if justify == "center" else free
            for child in box.children:
                child.translate(0.0, shift)
            for run in box.runs:
                run.translate(0.0, shift)

    def _layout_flex_row(
        self,
        ctx: _LayoutContext,
        box: LayoutBox,
        element: etree._Element,
        content: Rect,
        fixed_height: Optional[float],
        positioned: Rect,
        deferred: List[Tuple[etree._Element, ComputedStyle]],
    ) -> float:
        style = box.style
        gap = style.length("column-gap", content.width)
        if gap is None:
            gap = parse_length((style.get("gap") or "0").split()[-1], style.font_size, content.width) or 0.0

        items: List[Tuple[etree._Element, ComputedStyle, float, float]] = []
        for child in element:
            if not is_element(child) or self._skipped(child):
                continue
            child_style = ctx.resolver.compute(child)
            if child_style.display == "none":
                continue
            if str(child_style.get("position", "static")).lower() in OUT_OF_FLOW:
                deferred.append((child, child_style))
                continue
            measured, _ = self._layout_block(
                ctx, child, child_style, 0.0, 0.0, content.width, fixed_height, positioned, box.opacity,
            )
            margin = self._edges(child_style, "margin", content.width)
            if child_style.get("width") is not None:
                basis = measured.frame.width
            else:
                basis = measured.content_right() - measured.frame.x + self._edges(child_style, "padding", content.width).right
            items.append((child, child_style, basis + margin.horizontal, self._grow(child_style)))

        if not items:
            return 0.0

        free = content.width - sum(i[2] for i in items) - gap * (len(items) - 1)
        total_grow = sum(i[3] for i in items)
        widths = []
        for _, _, basis, grow in items:
            if free > 0 and total_grow > 0:
                widths.append(basis + free * grow / total_grow)
            elif free < 0:
                widths.append(max(0.0, basis + free / len(items)))
            else:
                widths.append(basis)

        children: List[LayoutBox] = []
        heights: List[float] = []
        cursor = content.x
        for (child, child_style, _, _), width in zip(items, widths):
            child_box, height = self._layout_block(
                ctx, child, child_style, cursor, content.y, width, fixed_height, positioned, box.opacity,
            )
            children.append(child_box)
            heights.append(height)
            cursor += width + gap

        used_w = cursor - gap - content.x
        row_h = fixed_height if fixed_height is not None else max(heights)
        justify = str(style.get("justify-content", "flex-start")).lower()
        leftover = max(0.0, content.width - used_w)
        offsets = [0.0] * len(children)
        if justify == "center":
            offsets = [leftover / 2] * len(children)
        elif justify in ("flex-end", "end", "right"):
            offsets = [leftover] * len(children)
        elif justify == "space-between" and len(children) > 1:
            step = leftover / (len(children) - 1)
            offsets = [step * i for i in range(len(children))]
        elif justify == "space-around":
            step = leftover / len(children)
            offsets = [step / 2 + step * i for i in range(len(children))]

        align = str(style.get("align-items", "stretch")).lower()
        for child_box, height, dx in zip(children, heights, offsets):
            dy = 0.0
            if align == "center":
                dy = (row_h - height) / 2
            elif align in ("flex-end", "end"):
                dy = row_h - height
            child_box.translate(dx, dy)
            box.children.append(child_box)

        return max(heights)

    @staticmethod
    def _grow(style: ComputedStyle) -> float:
        value = style.get("flex-grow")
        if value is None and style.get("flex"):
            value = str(style.get("flex")).split()[0]
            if value in ("auto",):
                return 1.0
        try:
            return max(0.0, float(value)) if value is not None else 0.0
        except ValueError:
            return 0.0

    def _skipped(self, element: etree._Element) -> bool:
        if tag_name(element) in SKIPPED_TAGS:
            return True
        return self.skip_editing_marked and is_editing_marked(element)

    # ------------------------------------------------------------------
    # Inline layout
    # ------------------------------------------------------------------

    def _collect_inline(
        self,
        ctx: _LayoutContext,
        element: etree._Element,
        style: ComputedStyle,
        items: List[_InlineItem],
        owners: Tuple[etree._Element, ...],
        opacity: float,
        background: Optional[str],
        reference: float,
    ) -> None:
        tag = tag_name(element)
        if tag == "br":
            items.append(_LineBreak())
            return
        if tag == "img":
            image = self._image_item(element, style, reference, opacity)
            if image is not None:
                items.append(image)
            return

        opacity = opacity * style.opacity

        owners = owners + (element,)
        background = background_of(style) or background
        if element.text:
            items.append(_TextItem(element.text, style, owners, opacity, background))
        for child in element:
            if is_element(child) and not self._skipped(child):
                child_style = ctx.resolver.compute(child)
                if child_style.display != "none":
                    self._collect_inline(ctx, child, child_style, items, owners, opacity, background, reference)
            if child.tail:
                items.append(_TextItem(child.tail, style, owners, opacity, background))

    @staticmethod
    def _image_item(element: etree._Element, style: ComputedStyle, reference: float,
                    opacity: float) -> Optional[_ImageItem]:
        """Images need both dimensions from CSS or attributes; intrinsic sizes are unknown here."""
        width = style.length("width", reference) or parse_length(element.get("width")) or 0.0
        height = style.length("height") or parse_length(element.get("height")) or 0.0
        if not width or not height:
            logger.debug(f"Skipping image without explicit size: {str(element.get('src'))[:80]}")
            return None
        return _ImageItem(element, style, width, height, opacity * style.opacity)

    @staticmethod
    def _image_box(item: _ImageItem, x: float, y: float, height: float) -> LayoutBox:
        return LayoutBox(
            element=item.element,
            style=item.style,
            kind=BoxKind.IMAGE,
            frame=Rect(x, y, item.width, height),
            image_src=item.element.get("src"),
            opacity=item.opacity,
            visible=str(item.style.get("visibility", "visible")).lower() == "visible",
        )

    def _atoms(self, items: List[_InlineItem]) -> List[_Atom]:
        atoms: List[_Atom] = []
        for item in items:
            if isinstance(item, _LineBreak):
                atoms.append(_Atom("break"))
            elif isinstance(item, _ImageItem):
                atoms.append(_Atom("image", width=item.width, item=item))
            else:
                preserve = str(item.style.get("white-space", "normal")).lower() in ("pre", "pre-wrap", "pre-line")
                for token in _TOKEN_RE.findall(item.text):
                    if token.isspace():
                        if preserve and "\n" in token:
                            for _ in range(token.count("\n")):
                                atoms.append(_Atom("break"))
                            continue
                        atoms.append(_Atom("space", " ", self.measure(" ", item.style), item))
                    else:
                        atoms.append(_Atom("word", token, self.measure(token, item.style), item))
        return atoms

    def _layout_inline(self, box: LayoutBox, items: List[_InlineItem], area: Rect) -> float:
        lines: List[List[_Atom]] = [[]]
        line_w = 0.0
        for atom in self._atoms(items):
            line = lines[-1]
            if atom.kind == "break":
                lines.append([])
                line_w = 0.0
                continue
            if atom.kind == "space":
                if not line or line[-1].kind == "space":
                    continue
                line.append(atom)
                line_w += atom.width
                continue
            trailing = line[-1].width if line and line[-1].kind == "space" else 0.0
            if line and line_w - trailing + atom.width > area.width + 0.01 and line_w - trailing > 0:
                if line[-1].kind == "space":
                    line.pop()
                lines.append([atom])
                line_w = atom.width
            else:
                line.append(atom)
                line_w += atom.width

        alignment = TextAlignmentEngine.get_alignment_from_style(box.style)
        strut = box.style.line_height_px()
        cursor = area.y
        for line in lines:
            while line and line[-1].kind == "space":
                line.pop()
        while lines and not lines[-1]:
            lines.pop()
        if not lines:
            return 0.0

        for line in lines:
            if not line:
                cursor += strut
                continue

            line_h = strut
            for atom in line:
                if isinstance(atom.item, _TextItem):
                    line_h = max(line_h, atom.item.style.line_height_px())
                elif isinstance(atom.item, _ImageItem):
                    line_h = max(line_h, atom.item.height)

            used = sum(atom.width for atom in line)
            x = TextAlignmentEngine.calculate_x(area, used, alignment)
            self._place_line(box, line, x, cursor, line_h)
            cursor += line_h

        self._collect_inline_boxes(box)
        return cursor - area.y

    def _place_line(self, box: LayoutBox, line: List[_Atom], x: float, top: float, line_h: float) -> None:
        run: Optional[TextRun] = None
        run_item: Optional[_TextItem] = None
        for atom in line:
            if isinstance(atom.item, _ImageItem):
                item = atom.item
                box.children.append(self._image_box(item, x, top + line_h - item.height, item.height))
                run, run_item = None, None
                x += atom.width
                continue

            item = atom.item
            if run is not None and item is run_item:
                run.text += atom.text
                run.width += atom.width
            else:
                ascent, descent = self.metrics(item.style)
                baseline = top + (line_h - (ascent + descent)) / 2 + ascent
                run = TextRun(
                    text=atom.text,
                    x=x,
                    y=top,
                    width=atom.width,
                    height=line_h,
                    baseline=baseline,
                    font_size=item.style.font_size,
                    font_family=str(item.style.get("font-family") or ""),
                    bold=self._is_bold(item.style),
                    color=str(item.style.get("color") or "#000000"),
                    opacity=item.opacity,
                    visible=str(item.style.get("visibility", "visible")).lower() == "visible",
                    background=item.background,
                    element=item.owners[-1] if item.owners else box.element,
                    owners=item.owners,
                )
                run_item = item
                box.runs.append(run)
            x += atom.width

    def _collect_inline_boxes(self, box: LayoutBox) -> None:
        """Rebuild the inline extents of inline elements from all runs of a block."""
        frames: Dict[etree._Element, Rect] = {}
        for run in box.runs:
            frame = run.frame
            for owner in run.owners:
                current = frames.get(owner)
                if current is None:
                    frames[owner] = frame
                    continue
                left = min(current.left, frame.left)
                top = min(current.top, frame.top)
                frames[owner] = Rect(left, top, max(current.right, frame.right) - left,
                                     max(current.bottom, frame.bottom) - top)

        box.children = [child for child in box.children if child.kind is not BoxKind.INLINE]
        for owner, frame in frames.items():
            box.children.append(LayoutBox(element=owner, style=box.style, kind=BoxKind.INLINE, frame=frame))

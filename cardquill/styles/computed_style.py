"""
Computed style resolution for fragment elements.

Cascade order (lowest first): user-agent defaults, ``<style>`` sheet rules
ordered by specificity then source order, inline ``style`` attributes.
``!important`` declarations outrank normal ones of every origin.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from cssselect import parse as parse_selector
from lxml import etree
from lxml.cssselect import CSSSelector, ExpressionError, SelectorError

from .inline_style import parse_declarations

logger = logging.getLogger(__name__)

StyleDict = Dict[str, Any]

ROOT_FONT_SIZE = 16.0

INHERITED_PROPERTIES = (
    "font-size",
    "color",
    "font-weight",
    "font-style",
    "text-align",
    "font-family",
    "line-height",
    "visibility",
    "letter-spacing",
    "white-space",
)

ROOT_DEFAULTS: StyleDict = {
    "font-size": ROOT_FONT_SIZE,
    "color": "#000000",
    "font-weight": "400",
    "font-style": "normal",
    "text-align": "left",
    "font-family": "",
    "line-height": "normal",
    "visibility": "visible",
    "letter-spacing": "normal",
    "white-space": "normal",
}

BLOCK_TAGS = frozenset({
    "address", "article", "aside", "blockquote", "body", "center", "dd", "details",
    "dialog", "div", "dl", "dt", "fieldset", "figcaption", "figure", "footer", "form",
    "h1", "h2", "h3", "h4", "h5", "h6", "header", "hgroup", "hr", "html", "li", "main",
    "nav", "ol", "p", "pre", "section", "summary", "table", "tbody", "td", "tfoot",
    "th", "thead", "tr", "ul",
})

HIDDEN_TAGS = frozenset({
    "head", "link", "meta", "noscript", "script", "style", "template", "title",
})

USER_AGENT_STYLES: Dict[str, StyleDict] = {
    "h1": {"font-size": "2em", "font-weight": "bold", "margin": "0.67em 0"},
    "h2": {"font-size": "1.5em", "font-weight": "bold", "margin": "0.83em 0"},
    "h3": {"font-size": "1.17em", "font-weight": "bold", "margin": "1em 0"},
    "h4": {"font-weight": "bold", "margin": "1.33em 0"},
    "h5": {"font-size": "0.83em", "font-weight": "bold", "margin": "1.67em 0"},
    "h6": {"font-size": "0.67em", "font-weight": "bold", "margin": "2.33em 0"},
    "p": {"margin": "1em 0"},
    "ul": {"margin": "1em 0", "padding-left": "40px"},
    "ol": {"margin": "1em 0", "padding-left": "40px"},
    "blockquote": {"margin": "1em 40px"},
    "b": {"font-weight": "bold"},
    "strong": {"font-weight": "bold"},
    "th": {"font-weight": "bold", "text-align": "center"},
    "center": {"text-align": "center"},
    "em": {"font-style": "italic"},
    "i": {"font-style": "italic"},
    "small": {"font-size": "smaller"},
    "big": {"font-size": "larger"},
    "pre": {"white-space": "pre", "font-family": "monospace"},
    "code": {"font-family": "monospace"},
}

FONT_SIZE_KEYWORDS = {
    "xx-small": 9.0,
    "x-small": 10.0,
    "small": 13.0,
    "medium": 16.0,
    "large": 18.0,
    "x-large": 24.0,
    "xx-large": 32.0,
    "xxx-large": 48.0,
}

_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_LENGTH_RE = re.compile(r"^([+-]?(?:\d+\.?\d*|\.\d+))(px|pt|em|rem|%|vw|vh|pc|in|cm|mm)?$", re.IGNORECASE)
_FONT_WEIGHT_TOKENS = {"bold", "bolder", "lighter", "normal"}
_FONT_STYLE_TOKENS = {"italic", "oblique"}


def parse_length(
    value: Any,
    font_size: float = ROOT_FONT_SIZE,
    reference: Optional[float] = None,
    root_font_size: float = ROOT_FONT_SIZE,
) -> Optional[float]:
    """
    Convert a CSS length to px.

    Args:
        value: CSS value (``"12px"``, ``"1.5em"``, ``"50%"``, a number...)
        font_size: Font size of the element, for ``em``
        reference: Base for percentages (None makes percentages unresolvable)
        root_font_size: Font size for ``rem``

    Returns:
        Length in px, or None when the value is not a resolvable length
    """
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().lower()
    if not text or text in ("auto", "none", "normal", "inherit", "initial"):
        return None
    match = _LENGTH_RE.match(text)
    if not match:
        return None
    number = float(match.group(1))
    unit = match.group(2) or "px"
    if unit == "px":
        return number
    if unit == "pt":
        return number * 4.0 / 3.0
    if unit == "pc":
        return number * 16.0
    if unit == "in":
        return number * 96.0
    if unit == "cm":
        return number * 96.0 / 2.54
    if unit == "mm":
        return number * 96.0 / 25.4
    if unit == "em":
        return number * font_size
    if unit == "rem":
        return number * root_font_size
    if unit == "%":
        return None if reference is None else number * reference / 100.0
    # Viewport units have no meaning for an isolated fragment.
    return None


def default_display(tag: str) -> str:
    if tag in HIDDEN_TAGS:
        return "none"
    if tag in BLOCK_TAGS:
        return "block"
    return "inline"


def expand_font_shorthand(value: str) -> StyleDict:
    """
    Expand a ``font`` shorthand (``italic bold 24px/1.2 Arial, sans-serif``).

    Returns an empty dict when no size token is found.
    """
    tokens = value.split()
    result: StyleDict = {}
    for index, token in enumerate(tokens):
        lowered = token.lower()
        if lowered in _FONT_STYLE_TOKENS:
            result["font-style"] = lowered
        elif lowered in _FONT_WEIGHT_TOKENS or lowered.isdigit():
            result["font-weight"] = lowered
        elif lowered in ("small-caps",):
            continue
        else:
            size, _, line_height = token.partition("/")
            if parse_length(size) is None and size.lower() not in FONT_SIZE_KEYWORDS:
                return {}
            result["font-size"] = size
            if line_height:
                result["line-height"] = line_height
            family = " ".join(tokens[index + 1:]).strip()
            if family:
                result["font-family"] = family
            return result
    return {}


@dataclass(frozen=True)
class StyleRule:
    """One selector of a stylesheet rule with its declarations."""

    selector: str
    matcher: CSSSelector
    specificity: Tuple[int, int, int]
    order: int
    declarations: Tuple[Tuple[str, str, bool], ...]


def _matching_brace(css: str, open_index: int) -> int:
    depth = 0
    for index in range(open_index, len(css)):
        if css[index] == "{":
            depth += 1
        elif css[index] == "}":
            depth -= 1
            if depth == 0:
                return index
    return len(css)


def parse_stylesheet(css: str, start_order: int = 0) -> List[StyleRule]:
    """
    Parse stylesheet text into selector rules.

    At-rules (``@media``, ``@keyframes``, ``@font-face``...) are skipped with
    their blocks. Selectors cssselect cannot translate (pseudo-elements,
    unknown pseudo-classes) are skipped.
    """
    css = _COMMENT_RE.sub("", css or "")
    rules: List[StyleRule] = []
    order = start_order
    pos = 0
    while pos < len(css):
        brace = css.find("{", pos)
        if brace == -1:
            break
        prelude = css[pos:brace]
        if ";" in prelude:
            prelude = prelude.rsplit(";", 1)[-1]
        prelude = prelude.strip()
        end = _matching_brace(css, brace)
        body = css[brace + 1:end]
        pos = end + 1

        if not prelude or prelude.startswith("@"):
            continue

        declarations = tuple(parse_declarations(body))
        if not declarations:
            continue

        for selector in prelude.split(","):
            selector = selector.strip()
            if not selector:
                continue
            try:
                matcher = CSSSelector(selector, translator="html")
                specificity = parse_selector(selector)[0].specificity()
            except (SelectorError, ExpressionError) as exc:
                logger.debug(f"Skipping unsupported selector {selector!r}: {exc}")
                continue
            rules.append(StyleRule(selector, matcher, tuple(specificity), order, declarations))
            order += 1
    return rules


class ComputedStyle(dict):
    """Resolved property values of one element."""

    @property
    def font_size(self) -> float:
        return float(self.get("font-size", ROOT_FONT_SIZE))

    @property
    def display(self) -> str:
        return str(self.get("display", "inline")).lower()

    @property
    def opacity(self) -> float:
        try:
            return max(0.0, min(1.0, float(self.get("opacity", 1.0))))
        except (TypeError, ValueError):
            return 1.0

    @property
    def is_hidden(self) -> bool:
        """True when the element paints nothing at all."""
        return (
            self.display == "none"
            or str(self.get("visibility", "visible")).lower() in ("hidden", "collapse")
            or self.opacity <= 0.0
        )

    def length(self, prop: str, reference: Optional[float] = None) -> Optional[float]:
        return parse_length(self.get(prop), self.font_size, reference)

    def line_height_px(self) -> float:
        """Used line height; ``normal`` is 1.4 times the font size."""
        value = str(self.get("line-height", "normal")).strip().lower()
        if value == "normal":
            return self.font_size * 1.4
        try:
            return float(value) * self.font_size
        except ValueError:
            resolved = parse_length(value, self.font_size, self.font_size)
            return resolved if resolved is not None else self.font_size * 1.4


class StyleResolver:
    """
    Resolve computed styles for the elements of one fragment tree.

    Results are cached per element for the life of the resolver; create a
    new resolver after mutating the tree.
    """

    def __init__(self, root: etree._Element):
        self.root = root
        self._cache: Dict[etree._Element, ComputedStyle] = {}
        self._matches: Dict[etree._Element, List[StyleRule]] = {}
        self.rules = self._collect_rules(root)
        self._index_matches()

    # ------------------------------------------------------------------
    def _collect_rules(self, root: etree._Element) -> List[StyleRule]:
        rules: List[StyleRule] = []
        for style_element in root.iter("style"):
            rules.extend(parse_stylesheet(style_element.text or "", start_order=len(rules)))
        if rules:
            logger.debug(f"Collected {len(rules)} stylesheet rules")
        return rules

    def _index_matches(self) -> None:
        for rule in self.rules:
            try:
                matched = rule.matcher(self.root)
            except etree.XPathError as exc:
                logger.debug(f"Selector {rule.selector!r} failed to evaluate: {exc}")
                continue
            for element in matched:
                self._matches.setdefault(element, []).append(rule)

    # ------------------------------------------------------------------
    def compute(self, element: etree._Element) -> ComputedStyle:
        """
        Get the computed style of an element.

        Args:
            element: Element of the resolver's tree (or an ancestor of it)

        Returns:
            Resolved properties; inherited properties are always present
        """
        cached = self._cache.get(element)
        if cached is not None:
            return cached

        parent = element.getparent()
        parent_style = self.compute(parent) if parent is not None else ComputedStyle(ROOT_DEFAULTS)

        computed = ComputedStyle((prop, parent_style[prop]) for prop in INHERITED_PROPERTIES)
        tag = element.tag.lower() if isinstance(element.tag, str) else ""
        computed["display"] = default_display(tag)

        cascaded = self.cascaded_declarations(element)

        font_size_value = cascaded.pop("font-size", None)
        if font_size_value is not None:
            computed["font-size"] = self._resolve_font_size(font_size_value, parent_style.font_size)

        for prop, value in cascaded.items():
            keyword = value.strip().lower()
            if keyword == "inherit":
                computed[prop] = parent_style.get(prop, ROOT_DEFAULTS.get(prop, ""))
                continue
            if keyword in ("initial", "unset", "revert"):
                if prop in ROOT_DEFAULTS:
                    computed[prop] = ROOT_DEFAULTS[prop]
                elif prop == "display":
                    computed[prop] = default_display(tag)
                else:
                    computed.pop(prop, None)
                continue

            if prop == "color" and keyword == "currentcolor":
                computed[prop] = parent_style["color"]
            elif prop == "font-weight":
                computed[prop] = self._resolve_font_weight(keyword, parent_style.get("font-weight"))
            elif prop == "line-height":
                computed[prop] = self._resolve_line_height(value, computed.font_size)
            else:
                computed[prop] = value

        self._cache[element] = computed
        return computed

    def cascaded_declarations(self, element: etree._Element) -> Dict[str, str]:
        """Winning declared value per property, before inheritance and unit resolution."""
        candidates: List[Tuple[Tuple, str, str]] = []
        tag = element.tag.lower() if isinstance(element.tag, str) else ""

        for prop, value in USER_AGENT_STYLES.get(tag, {}).items():
            candidates.append(((False, 0, (0, 0, 0), 0), prop, value))

        for rule in self._matches.get(element, ()):
            for prop, value, important in rule.declarations:
                for name, expanded in self._expand(prop, value):
                    candidates.append(((important, 1, rule.specificity, rule.order), name, expanded))

        for index, (prop, value, important) in enumerate(parse_declarations(element.get("style"))):
            for name, expanded in self._expand(prop, value):
                candidates.append(((important, 2, (0, 0, 0), index), name, expanded))

        candidates.sort(key=lambda item: item[0])
        declared: Dict[str, str] = {}
        for _, prop, value in candidates:
            declared[prop] = value
        return declared

    # ------------------------------------------------------------------
    @staticmethod
    def _expand(prop: str, value: str) -> Iterable[Tuple[str, str]]:
        if prop == "font":
            expanded = expand_font_shorthand(value)
            if expanded:
                return list(expanded.items())
        return [(prop, value)]

    @staticmethod
    def _resolve_font_size(value: str, parent_size: float) -> float:
        keyword = value.strip().lower()
        if keyword in FONT_SIZE_KEYWORDS:
            return FONT_SIZE_KEYWORDS[keyword]
        if keyword == "smaller":
            return parent_size / 1.2
        if keyword == "larger":
            return parent_size * 1.2
        if keyword == "inherit":
            return parent_size
        resolved = parse_length(keyword, parent_size, parent_size)
        if resolved is None or resolved <= 0:
            logger.debug(f"Unresolvable font-size {value!r}, inheriting {parent_size}px")
            return parent_size
        return resolved

    @staticmethod
    def _resolve_font_weight(value: str, parent_weight: Any) -> str:
        if value not in ("bolder", "lighter"):
            return value
        try:
            parent = float(parent_weight)
        except (TypeError, ValueError):
            parent = 700.0 if str(parent_weight).lower() == "bold" else 400.0
        if value == "bolder":
            return "700" if parent < 600 else "900"
        return "100" if parent < 600 else "400"

    @staticmethod
    def _resolve_line_height(value: str, font_size: float) -> str:
        text = value.strip().lower()
        if text == "normal":
            return text
        try:
            float(text)
            return text
        except ValueError:
            pass
        resolved = parse_length(text, font_size, font_size)
        return f"{resolved}px" if resolved is not None else "normal"

"""
Inline ``style`` attribute handling.

Declarations keep their source order so rewriting one property leaves the
rest of the attribute byte-for-byte recognizable.
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, Optional, Tuple

from lxml import etree

StyleDict = Dict[str, str]


def _split_declarations(style_str: str) -> Iterator[str]:
    """Split on ``;`` outside parentheses and quotes (``url(data:...;base64,...)``)."""
    depth = 0
    quote: Optional[str] = None
    start = 0
    for index, char in enumerate(style_str):
        if quote:
            if char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth = max(0, depth - 1)
        elif char == ";" and depth == 0:
            yield style_str[start:index]
            start = index + 1
    yield style_str[start:]


def parse_declarations(style_str: Optional[str]) -> Iterator[Tuple[str, str, bool]]:
    """Yield ``(property, value, important)`` for each declaration."""
    if not style_str:
        return
    for declaration in _split_declarations(style_str):
        declaration = declaration.strip()
        if not declaration or ":" not in declaration:
            continue
        prop, value = declaration.split(":", 1)
        prop = prop.strip().lower()
        value = value.strip()
        important = False
        if value.lower().endswith("!important"):
            value = value[: -len("!important")].rstrip()
            important = True
        if prop and value:
            yield prop, value, important


def parse_style(style_str: Optional[str]) -> StyleDict:
    """
    Parse a ``style`` attribute into an ordered property dict.

    Args:
        style_str: Attribute value, e.g. ``"color: red; font-size: 12px"``

    Returns:
        Lowercase property names mapped to values (``!important`` dropped)
    """
    return {prop: value for prop, value, _ in parse_declarations(style_str)}


def serialize_style(style: StyleDict) -> str:
    """Serialize a property dict back into ``style`` attribute form."""
    return "; ".join(f"{prop}: {value}" for prop, value in style.items() if value != "")


class InlineStyle:
    """Read and write the inline style of one element."""

    def __init__(self, element: etree._Element):
        self.element = element

    def as_dict(self) -> StyleDict:
        return parse_style(self.element.get("style"))

    def get(self, prop: str, default: Optional[str] = None) -> Optional[str]:
        return self.as_dict().get(prop.lower(), default)

    def has(self, prop: str) -> bool:
        return prop.lower() in self.as_dict()

    def set(self, prop: str, value: str) -> None:
        style = self.as_dict()
        style[prop.lower()] = value
        self._write(style)

    def update(self, values: Dict[str, Optional[str]]) -> None:
        """Set several properties at once; ``None`` removes a property."""
        style = self.as_dict()
        for prop, value in values.items():
            if value is None:
                style.pop(prop.lower(), None)
            else:
                style[prop.lower()] = value
        self._write(style)

    def remove(self, *props: str) -> None:
        style = self.as_dict()
        changed = False
        for prop in props:
            if style.pop(prop.lower(), None) is not None:
                changed = True
        if changed:
            self._write(style)

    def remove_matching(self, props: Iterable[str], predicate) -> None:
        """Remove properties from ``props`` whose value satisfies ``predicate``."""
        style = self.as_dict()
        doomed = [p for p in props if p in style and predicate(style[p])]
        if doomed:
            self.remove(*doomed)

    def _write(self, style: StyleDict) -> None:
        text = serialize_style(style)
        if text:
            self.element.set("style", text)
        elif "style" in self.element.attrib:
            del self.element.attrib["style"]

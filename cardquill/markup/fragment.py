"""
Markup fragment handling.

A fragment is kept as an lxml element tree under a container ``div``. The rest
of the package only uses the narrow capability set defined here (visit, read
text, replace text, clone, serialize), never a fixed schema of the markup.
"""

from __future__ import annotations

import copy
import logging
import re
from html import escape
from typing import Iterator, List, Optional

from lxml import etree
from lxml import html as lxml_html

from ..exceptions import ParsingError
from ..styles.inline_style import parse_style

logger = logging.getLogger(__name__)

NON_CONTENT_TAGS = frozenset({
    "style",
    "script",
    "noscript",
    "template",
    "head",
    "title",
    "meta",
    "link",
})

_UNICODE_ESCAPE_RE = re.compile(r"\\u([0-9a-fA-F]{4})")
_FULL_DOCUMENT_RE = re.compile(r"^\s*(?:<!doctype[^>]*>\s*)?<html[\s>]", re.IGNORECASE)


def decode_unicode_escapes(markup: str) -> str:
    """Turn literal ``\\uXXXX`` sequences (as emitted by some generators) into characters."""
    return _UNICODE_ESCAPE_RE.sub(lambda m: chr(int(m.group(1), 16)), markup)


def parse_fragment(markup: Optional[str], container_tag: str = "div") -> etree._Element:
    """
    Parse an HTML/CSS fragment into a container element.

    Full documents are accepted too: their ``<style>`` elements and body
    children are moved into the container.

    Args:
        markup: Fragment markup (may be empty)
        container_tag: Tag of the created container

    Returns:
        The container element owning the fragment

    Raises:
        ParsingError: If lxml cannot parse the markup at all
    """
    container = lxml_html.Element(container_tag)
    if markup is None or not markup.strip():
        return container

    markup = decode_unicode_escapes(markup)
    try:
        if _FULL_DOCUMENT_RE.match(markup):
            document = lxml_html.document_fromstring(markup)
            head = document.find("head")
            if head is not None:
                for style in head.iter("style"):
                    container.append(copy.deepcopy(style))
                    container[-1].tail = None
            body = document.find("body")
            if body is not None:
                _move_content(body, container)
        else:
            parsed = lxml_html.fragment_fromstring(markup, create_parent=container_tag)
            _move_content(parsed, container)
    except (etree.ParserError, etree.ParseError, ValueError) as exc:
        raise ParsingError("Failed to parse markup fragment", details=str(exc)) from exc

    return container


def _move_content(source: etree._Element, target: etree._Element) -> None:
    if source.text:
        if len(target):
            target[-1].tail = (target[-1].tail or "") + source.text
        else:
            target.text = (target.text or "") + source.text
    for child in list(source):
        target.append(child)


def serialize_fragment(root: etree._Element) -> str:
    """Return the inner HTML of a container element."""
    parts: List[str] = []
    if root.text:
        parts.append(escape(root.text, quote=False))
    for child in root:
        parts.append(lxml_html.tostring(child, encoding="unicode", with_tail=True))
    return "".join(parts)


def serialize_element(element: etree._Element) -> str:
    """Return the outer HTML of an element (without its tail)."""
    return lxml_html.tostring(element, encoding="unicode", with_tail=False)


def clone_tree(root: etree._Element) -> etree._Element:
    """Deep copy an element tree; the copy shares no nodes with the source."""
    clone = copy.deepcopy(root)
    clone.tail = None
    return clone


def replace_children(target: etree._Element, source: etree._Element) -> None:
    """Replace the content of ``target`` with a copy of the content of ``source``."""
    for child in list(target):
        target.remove(child)
    target.text = source.text
    for child in source:
        target.append(copy.deepcopy(child))


# ----------------------------------------------------------------------
# Capability helpers
# ----------------------------------------------------------------------

def is_element(node) -> bool:
    """True for real elements (not comments or processing instructions)."""
    return isinstance(node.tag, str)


def tag_name(node: etree._Element) -> str:
    return node.tag.lower() if is_element(node) else ""


def is_content_element(node) -> bool:
    return is_element(node) and tag_name(node) not in NON_CONTENT_TAGS


def element_children(node: etree._Element) -> List[etree._Element]:
    return [child for child in node if is_element(child)]


def iter_content_elements(root: etree._Element) -> Iterator[etree._Element]:
    """Depth-first pre-order walk skipping non-content elements and their subtrees."""
    if not is_content_element(root):
        return
    yield root
    for child in root:
        if is_content_element(child):
            yield from iter_content_elements(child)


def direct_text_values(node: etree._Element) -> List[str]:
    """Non-blank direct text nodes of an element, trimmed."""
    values = []
    if node.text and node.text.strip():
        values.append(node.text.strip())
    for child in node:
        if child.tail and child.tail.strip():
            values.append(child.tail.strip())
    return values


def has_direct_text(node: etree._Element) -> bool:
    return bool(direct_text_values(node))


def full_text(node: etree._Element) -> str:
    """All text below an element, including nested elements but not its tail."""
    parts: List[str] = []
    if node.text:
        parts.append(node.text)
    for child in node:
        if is_content_element(child):
            parts.append(full_text(child))
        if child.tail:
            parts.append(child.tail)
    return "".join(parts)


def is_leaf_with_text(node: etree._Element) -> bool:
    return not element_children(node) and bool(full_text(node).strip())


def read_text(node: etree._Element) -> str:
    """
    Read the editable text of an element.

    Direct text nodes are trimmed and joined with one space; a childless
    element contributes its full text.
    """
    values = direct_text_values(node)
    if not values and not element_children(node):
        text = full_text(node).strip()
        if text:
            values.append(text)
    return " ".join(values).strip()


def replace_text(node: etree._Element, text: str) -> None:
    """
    Write ``text`` as the direct text content of an element.

    A childless element has its whole text replaced. Otherwise the first
    direct text-bearing slot is updated and every child element is left
    untouched; when there is no such slot the text becomes the first text
    node of the element.
    """
    if not element_children(node):
        for child in list(node):
            node.remove(child)
        node.text = text
        return

    if node.text and node.text.strip():
        node.text = text
        return

    for child in node:
        if child.tail and child.tail.strip():
            child.tail = text
            return

    node.text = text


def _is_hidden_inline(node: etree._Element) -> bool:
    style = parse_style(node.get("style"))
    return style.get("display", "").lower() == "none"


def flatten_text(root: Optional[etree._Element]) -> str:
    """
    Concatenate the visible text of a tree with whitespace collapsed.

    Used to compare two surfaces; ``display: none`` subtrees and non-content
    elements contribute nothing.
    """
    if root is None:
        return ""
    parts: List[str] = []
    _collect_visible_text(root, parts)
    return " ".join(" ".join(parts).split())


def _collect_visible_text(node: etree._Element, parts: List[str]) -> None:
    if not is_content_element(node) or _is_hidden_inline(node):
        return
    if node.text:
        parts.append(node.text)
    for child in node:
        if is_element(child):
            _collect_visible_text(child, parts)
        if child.tail:
            parts.append(child.tail)

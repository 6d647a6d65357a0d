"""
Markup module: parsing, serialization and node capabilities for fragments.
"""

from .fragment import (
    NON_CONTENT_TAGS,
    clone_tree,
    decode_unicode_escapes,
    direct_text_values,
    element_children,
    flatten_text,
    full_text,
    has_direct_text,
    is_content_element,
    is_leaf_with_text,
    iter_content_elements,
    parse_fragment,
    read_text,
    replace_children,
    replace_text,
    serialize_element,
    serialize_fragment,
)

__all__ = [
    "NON_CONTENT_TAGS",
    "clone_tree",
    "decode_unicode_escapes",
    "direct_text_values",
    "element_children",
    "flatten_text",
    "full_text",
    "has_direct_text",
    "is_content_element",
    "is_leaf_with_text",
    "iter_content_elements",
    "parse_fragment",
    "read_text",
    "replace_children",
    "replace_text",
    "serialize_element",
    "serialize_fragment",
]

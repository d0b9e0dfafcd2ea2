#!/usr/bin/env python3
"""
ABOUTME: Splices a generated <root> fragment into a full draw.io document
ABOUTME: Leaves every byte outside the replaced root boundary untouched
"""

from .common import (
    DEFAULT_CONTAINER_TAG,
    DEFAULT_WRAPPER_TAG,
    EmptyInputError,
    is_blank,
)
from .scanner import find_element_span, scan_markup, starts_with_element


def _tag_name(text: str, start: int) -> str:
    """Name of the tag beginning at text[start], as written in the source"""
    return next(scan_markup(text[start:])).name


def _open_self_closing(tag: str) -> str:
    """'<a x="1" />' -> '<a x="1">'"""
    return tag[:-2].rstrip() + '>'


def ensure_root_xml(xml: str, container_tag: str = DEFAULT_CONTAINER_TAG) -> str:
    """
    Normalize generator output to a single <root> element.

    - Already starts with <root ...>: returned trimmed as-is
    - Contains a balanced <root>...</root>: that span is extracted
    - Otherwise: the whole text is wrapped in <root></root>

    Idempotent: ensure_root_xml(ensure_root_xml(x)) == ensure_root_xml(x).
    """
    if is_blank(xml):
        return f"<{container_tag}></{container_tag}>"
    trimmed = xml.strip()
    if starts_with_element(trimmed, container_tag):
        return trimmed
    span = find_element_span(trimmed, container_tag)
    if span:
        return trimmed[span.start:span.end]
    return f"<{container_tag}>{trimmed}</{container_tag}>"


def replace_nodes(current_xml: str, nodes: str,
                  container_tag: str = DEFAULT_CONTAINER_TAG,
                  wrapper_tag: str = DEFAULT_WRAPPER_TAG) -> str:
    """
    Replace the root boundary of a diagram with new nodes.

    Args:
        current_xml: The live document (may be empty)
        nodes: Fragment holding the new nodes, wrapped or not
        container_tag: Element delimiting the root boundary
        wrapper_tag: Outer element expected to own the container

    Returns:
        The updated document. Falls back to wrapping everything in a minimal
        <mxGraphModel> rather than failing.
    """
    normalized_root = ensure_root_xml(nodes, container_tag)
    if is_blank(current_xml):
        return f"<{wrapper_tag}>{normalized_root}</{wrapper_tag}>"

    span = find_element_span(current_xml, container_tag)
    if span:
        return current_xml[:span.start] + normalized_root + current_xml[span.end:]

    wrapper = find_element_span(current_xml, wrapper_tag)
    if wrapper and wrapper.content_end < wrapper.end:
        # Insert just before </mxGraphModel>
        return (current_xml[:wrapper.content_end] + normalized_root
                + current_xml[wrapper.content_end:])
    if wrapper:
        # Self-closing <mxGraphModel .../>: open it up in place
        return (current_xml[:wrapper.start]
                + _open_self_closing(current_xml[wrapper.start:wrapper.end])
                + normalized_root + f"</{_tag_name(current_xml, wrapper.start)}>"
                + current_xml[wrapper.end:])

    return f"<{wrapper_tag}>{current_xml.strip()}{normalized_root}</{wrapper_tag}>"


def merge_root_xml(base_xml: str, new_root_xml: str,
                   container_tag: str = DEFAULT_CONTAINER_TAG,
                   wrapper_tag: str = DEFAULT_WRAPPER_TAG) -> str:
    """
    Apply generator output to a live document.

    Single entry point for display_diagram style updates: normalizes the
    fragment and splices it into base_xml.

    Raises:
        EmptyInputError: If both the base document and the fragment are blank
    """
    if is_blank(base_xml) and is_blank(new_root_xml):
        raise EmptyInputError("Nothing to merge: base document and fragment are both empty")
    return replace_nodes(base_xml, new_root_xml, container_tag, wrapper_tag)

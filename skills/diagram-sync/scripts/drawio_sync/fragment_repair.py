#!/usr/bin/env python3
"""
ABOUTME: Turns a possibly truncated streaming buffer into a well-formed <root> fragment
ABOUTME: Keeps only complete cells so live previews never see a half-written tag
"""

from typing import List

from .common import DEFAULT_CONTAINER_TAG, DEFAULT_ELEMENT_TAG, FRAGMENT_INDENT
from .scanner import CLOSE, OPEN, SELF_CLOSE, scan_markup


def collect_complete_elements(buffer: str, element_tag: str = DEFAULT_ELEMENT_TAG) -> List[str]:
    """
    Collect every complete occurrence of element_tag, verbatim and in order.

    An occurrence is complete when it is self-closing or its matching close
    tag appears later in the buffer. Nested occurrences of the same tag belong
    to their outermost element. Anything after a truncated tag is ignored.
    """
    elements: List[str] = []
    capture_start = None
    depth = 0
    for token in scan_markup(buffer):
        if not token.complete:
            break
        if token.name != element_tag:
            continue
        if token.kind == SELF_CLOSE:
            if capture_start is None:
                elements.append(buffer[token.start:token.end])
        elif token.kind == OPEN:
            if capture_start is None:
                capture_start = token.start
            depth += 1
        elif token.kind == CLOSE and capture_start is not None:
            depth -= 1
            if depth == 0:
                elements.append(buffer[capture_start:token.end])
                capture_start = None
    return elements


def convert_to_legal_xml(buffer: str, element_tag: str = DEFAULT_ELEMENT_TAG,
                         container_tag: str = DEFAULT_CONTAINER_TAG) -> str:
    """
    Convert a potentially incomplete XML buffer into a legal wrapped fragment.

    Designed to be called on every stream chunk: each call rescans the whole
    buffer, and an element returned for a prefix is returned again for every
    longer buffer. Elements of any other tag are dropped, only element_tag is
    collected.

    Args:
        buffer: Streamed generator output, possibly cut mid-tag
        element_tag: Element to collect (default: mxCell)
        container_tag: Synthetic wrapper (default: root)

    Returns:
        "<root>\\n" + one re-indented element per block + "</root>";
        "<root>\\n</root>" when nothing is complete yet
    """
    lines = [f"<{container_tag}>"]
    for element in collect_complete_elements(buffer or '', element_tag):
        # Indent each line of the element for readability
        lines.extend(FRAGMENT_INDENT + line.strip() for line in element.split('\n'))
    lines.append(f"</{container_tag}>")
    return '\n'.join(lines)

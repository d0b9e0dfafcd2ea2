#!/usr/bin/env python3
"""
ABOUTME: Re-indents diagram XML into one tag or text run per line
ABOUTME: Normalization pass run on documents and search patterns before patching
"""

from typing import List

from .common import FORMAT_INDENT
from .scanner import CLOSE, OPEN, SELF_CLOSE, TEXT, scan_markup


def _collapse_tag_whitespace(tag: str) -> str:
    """
    Collapse whitespace runs outside quoted attribute values to one space.

    Whitespace directly before the closing '>' is dropped.
    """
    parts: List[str] = []
    quote = None
    in_space = False
    for char in tag:
        if quote:
            parts.append(char)
            if char == quote:
                quote = None
            continue
        if char.isspace():
            in_space = True
            continue
        if in_space and char != '>':
            parts.append(' ')
        in_space = False
        if char in '"\'':
            quote = char
        parts.append(char)
    return ''.join(parts)


def format_xml(xml: str, indent: str = FORMAT_INDENT) -> str:
    """
    Format XML with one logical unit per line, indented by nesting depth.

    Only whitespace outside attribute values changes: whitespace-only text is
    dropped, text runs are stripped at their ends, and whitespace inside a
    tag collapses to single spaces so a tag written over several lines takes
    one line. Attribute values survive untouched. Malformed input is
    formatted best-effort: a stray close tag never pushes depth below zero
    and a truncated trailing tag is kept as the last line.

    Args:
        xml: The XML string to format
        indent: The indentation string per level (default: two spaces)

    Returns:
        Formatted XML without a trailing newline
    """
    lines: List[str] = []
    depth = 0
    for token in scan_markup(xml):
        chunk = xml[token.start:token.end]
        if token.kind == TEXT:
            chunk = chunk.strip()
            if chunk:
                lines.append(indent * depth + chunk)
            continue
        if token.kind in (OPEN, CLOSE, SELF_CLOSE):
            chunk = _collapse_tag_whitespace(chunk)
        if token.kind == CLOSE:
            depth = max(0, depth - 1)
            lines.append(indent * depth + chunk)
        else:
            lines.append(indent * depth + chunk.strip())
            if token.kind == OPEN and token.complete:
                depth += 1
    return '\n'.join(lines)

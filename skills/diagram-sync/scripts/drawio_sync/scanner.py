#!/usr/bin/env python3
"""
ABOUTME: Minimal markup tokenizer for streamed and hand-edited diagram XML
ABOUTME: Emits open/close/self-close/text tokens and flags a truncated trailing tag
"""

from dataclasses import dataclass
from typing import Generator, Optional


# Token kinds
OPEN = "open"
CLOSE = "close"
SELF_CLOSE = "self_close"
TEXT = "text"
SPECIAL = "special"          # comment, processing instruction, CDATA, doctype

# Delimiters of special constructs: (prefix, terminator)
_SPECIAL_DELIMITERS = (
    ('<!--', '-->'),
    ('<![CDATA[', ']]>'),
    ('<?', '?>'),
)


@dataclass
class MarkupToken:
    """One lexical unit of markup; text[start:end] is its exact source"""
    kind: str
    start: int
    end: int
    name: str = ''
    complete: bool = True


@dataclass
class ElementSpan:
    """
    Location of a balanced element.

    content_start/content_end delimit the element body; both equal end for a
    self-closing element.
    """
    start: int
    end: int
    content_start: int
    content_end: int


def _is_name_start(char: str) -> bool:
    return char.isalpha() or char in '_:'


def _is_name_char(char: str) -> bool:
    return char.isalnum() or char in '_:-.'


def _starts_tag(text: str, pos: int) -> bool:
    """A '<' opens a tag only when followed by a name, '/', '!' or '?'"""
    if pos + 1 >= len(text):
        return False
    nxt = text[pos + 1]
    return nxt in '/!?' or _is_name_start(nxt)


def _read_name(text: str, pos: int) -> int:
    while pos < len(text) and _is_name_char(text[pos]):
        pos += 1
    return pos


def _read_special(text: str, pos: int) -> MarkupToken:
    body_start, terminator = pos + 2, '>'    # doctype and other declarations
    for prefix, candidate in _SPECIAL_DELIMITERS:
        if text.startswith(prefix, pos):
            body_start, terminator = pos + len(prefix), candidate
            break
    end = text.find(terminator, body_start)
    if end == -1:
        return MarkupToken(SPECIAL, pos, len(text), complete=False)
    return MarkupToken(SPECIAL, pos, end + len(terminator))


def _read_tag(text: str, pos: int) -> MarkupToken:
    """Read one tag starting at text[pos] == '<'"""
    if text[pos + 1] in '!?':
        return _read_special(text, pos)

    if text[pos + 1] == '/':
        name_end = _read_name(text, pos + 2)
        name = text[pos + 2:name_end]
        close = text.find('>', name_end)
        if close == -1:
            return MarkupToken(CLOSE, pos, len(text), name, complete=False)
        return MarkupToken(CLOSE, pos, close + 1, name)

    name_end = _read_name(text, pos + 1)
    name = text[pos + 1:name_end]
    i = name_end
    quote = None
    while i < len(text):
        char = text[i]
        if quote:
            if char == quote:
                quote = None
        elif char in '"\'':
            quote = char
        elif char == '>':
            kind = SELF_CLOSE if text[i - 1] == '/' else OPEN
            return MarkupToken(kind, pos, i + 1, name)
        i += 1
    return MarkupToken(OPEN, pos, len(text), name, complete=False)


def scan_markup(text: str) -> Generator[MarkupToken, None, None]:
    """
    Tokenize markup left to right.

    Quoted attribute values may contain '>' without ending the tag. A tag cut
    off by the end of input is yielded once with complete=False and scanning
    stops there.

    Args:
        text: Markup, possibly truncated

    Yields:
        MarkupToken for every tag and text run, in source order
    """
    if not text:
        return
    pos = 0
    length = len(text)
    text_start = None
    while pos < length:
        if text[pos] == '<' and _starts_tag(text, pos):
            if text_start is not None:
                yield MarkupToken(TEXT, text_start, pos)
                text_start = None
            token = _read_tag(text, pos)
            yield token
            if not token.complete:
                return
            pos = token.end
        else:
            if text_start is None:
                text_start = pos
            nxt = text.find('<', pos + 1)
            pos = length if nxt == -1 else nxt
    if text_start is not None:
        yield MarkupToken(TEXT, text_start, length)


def same_name(name: str, tag: str) -> bool:
    """Tag names compare case-insensitively"""
    return name.lower() == tag.lower()


def find_element_span(text: str, tag: str) -> Optional[ElementSpan]:
    """
    Find the first balanced occurrence of an element.

    Nested elements of the same name are counted, so the span ends at the
    close tag that matches the first opening tag.

    Returns:
        ElementSpan, or None when no occurrence is closed within text
    """
    start = None
    content_start = 0
    depth = 0
    for token in scan_markup(text):
        if not token.complete:
            break
        if not same_name(token.name, tag):
            continue
        if token.kind == SELF_CLOSE and start is None:
            return ElementSpan(token.start, token.end, token.end, token.end)
        if token.kind == OPEN:
            if start is None:
                start = token.start
                content_start = token.end
            depth += 1
        elif token.kind == CLOSE and start is not None:
            depth -= 1
            if depth == 0:
                return ElementSpan(start, token.end, content_start, token.start)
    return None


def starts_with_element(text: str, tag: str) -> bool:
    """Check whether the first token of text opens the given element"""
    for token in scan_markup(text):
        return token.kind in (OPEN, SELF_CLOSE) and same_name(token.name, tag)
    return False

#!/usr/bin/env python3
"""
ABOUTME: Structural checks on generated diagram XML before it reaches the canvas
ABOUTME: Reports parser errors with line/column and missing or duplicate mxCell ids
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional

from lxml import etree

from .common import DEFAULT_CONTAINER_TAG, DEFAULT_ELEMENT_TAG, DEFAULT_WRAPPER_TAG, is_blank
from .fragment_repair import convert_to_legal_xml
from .scanner import starts_with_element

# Error codes
EMPTY_INPUT = "empty-input"
PARSER_ERROR = "parser-error"
DUPLICATE_ID = "duplicate-id"
MISSING_ID = "missing-id"

# Ids draw.io reserves for the default layer and its parent
RESERVED_IDS = {"0", "1"}

SNIPPET_LENGTH = 120

# Error messages raised by the draw.io runtime when it rejects a document
DRAWIO_RUNTIME_ERROR_PATTERNS = [
    re.compile(r'非绘图文件', re.IGNORECASE),
    re.compile(r'not a diagram file', re.IGNORECASE),
    re.compile(r'attributes?\s+construct\s+error', re.IGNORECASE),
    re.compile(r'd\.setid\s+is\s+not\s+(?:a\s+)?function', re.IGNORECASE),
    re.compile(r'xml\s+apply\s+error', re.IGNORECASE),
    re.compile(r'mxgraph', re.IGNORECASE),
]

_PARSER = etree.XMLParser(resolve_entities=False, no_network=True)


@dataclass
class DiagramValidationError:
    code: str
    message: str
    line: Optional[int] = None
    column: Optional[int] = None
    snippet: Optional[str] = None


@dataclass
class DiagramValidationResult:
    is_valid: bool
    normalized_xml: str
    errors: List[DiagramValidationError] = field(default_factory=list)


def normalize_generated_xml(xml: str) -> str:
    """
    Reduce generator output to a <root> fragment.

    A full <mxGraphModel> that parses yields its root element; anything else
    that is not already a <root> goes through fragment repair.
    """
    if is_blank(xml):
        return f"<{DEFAULT_CONTAINER_TAG}></{DEFAULT_CONTAINER_TAG}>"
    trimmed = xml.strip()
    if starts_with_element(trimmed, DEFAULT_CONTAINER_TAG):
        return trimmed
    if f"<{DEFAULT_WRAPPER_TAG}" in trimmed:
        try:
            doc = etree.fromstring(trimmed.encode('utf-8'), _PARSER)
        except etree.XMLSyntaxError:
            doc = None
        if doc is not None:
            model = doc if doc.tag == DEFAULT_WRAPPER_TAG else doc.find(f'.//{DEFAULT_WRAPPER_TAG}')
            root = model.find(DEFAULT_CONTAINER_TAG) if model is not None else None
            if root is not None:
                return etree.tostring(root, encoding='unicode', with_tail=False)
    return convert_to_legal_xml(trimmed)


def validate_diagram_xml(xml: str) -> DiagramValidationResult:
    """
    Check that generated XML can be loaded by draw.io.

    Args:
        xml: Generator output (fragment or full model)

    Returns:
        DiagramValidationResult with the normalized <root> fragment and any
        empty-input, parser-error, missing-id or duplicate-id errors
    """
    normalized_xml = normalize_generated_xml(xml)
    errors: List[DiagramValidationError] = []

    if is_blank(xml):
        errors.append(DiagramValidationError(
            EMPTY_INPUT, "Generated XML is empty and cannot be applied to the canvas"
        ))
        return DiagramValidationResult(False, normalized_xml, errors)

    wrapped = normalized_xml if normalized_xml.startswith(f"<{DEFAULT_CONTAINER_TAG}") \
        else f"<{DEFAULT_CONTAINER_TAG}>{normalized_xml}</{DEFAULT_CONTAINER_TAG}>"

    try:
        doc = etree.fromstring(
            f"<{DEFAULT_WRAPPER_TAG}>{wrapped}</{DEFAULT_WRAPPER_TAG}>".encode('utf-8'),
            _PARSER,
        )
    except etree.XMLSyntaxError as e:
        line, column = e.position if e.position else (None, None)
        errors.append(DiagramValidationError(
            PARSER_ERROR,
            re.sub(r'\s+', ' ', str(e)).strip() or "Unknown XML parse error",
            line=line,
            column=column,
        ))
        return DiagramValidationResult(False, normalized_xml, errors)

    seen_ids = set()
    for cell in doc.findall(f'{DEFAULT_CONTAINER_TAG}/{DEFAULT_ELEMENT_TAG}'):
        cell_id = cell.get('id')
        snippet = etree.tostring(cell, encoding='unicode', with_tail=False)[:SNIPPET_LENGTH]
        if not cell_id:
            errors.append(DiagramValidationError(
                MISSING_ID,
                f"Found an {DEFAULT_ELEMENT_TAG} without an id attribute; draw.io cannot load it",
                snippet=snippet,
            ))
            continue
        if cell_id in seen_ids and cell_id not in RESERVED_IDS:
            errors.append(DiagramValidationError(
                DUPLICATE_ID,
                f'Duplicate {DEFAULT_ELEMENT_TAG} id="{cell_id}" will make draw.io fail to load',
                snippet=snippet,
            ))
        else:
            seen_ids.add(cell_id)

    return DiagramValidationResult(not errors, normalized_xml, errors)


def is_drawio_runtime_error_message(message: Optional[str]) -> bool:
    """Check whether a draw.io runtime message means the document was rejected"""
    if not message:
        return False
    return any(pattern.search(message) for pattern in DRAWIO_RUNTIME_ERROR_PATTERNS)

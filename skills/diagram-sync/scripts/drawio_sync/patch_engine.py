#!/usr/bin/env python3
"""
ABOUTME: Applies ordered search/replace edits to diagram XML with tiered fuzzy matching
ABOUTME: Tiers: exact lines, whitespace-trimmed lines, then raw substring as last resort
"""

from typing import Callable, Iterable, List, Optional

from .common import (
    TIER_EXACT,
    TIER_SUBSTRING,
    TIER_TRIMMED,
    Edit,
    EditFailure,
    MatchResult,
    PatchNotFoundError,
    PatchReport,
)
from .formatter import format_xml

LineComparator = Callable[[str, str], bool]

_LINE_TIERS = (
    (TIER_EXACT, lambda original, search: original == search),
    (TIER_TRIMMED, lambda original, search: original.strip() == search.strip()),
)


def _split_lines(text: str) -> List[str]:
    """Split into lines, dropping the empty line left by a trailing newline"""
    lines = text.split('\n')
    if lines and lines[-1] == '':
        lines.pop()
    return lines


def _scan(lines: List[str], search_lines: List[str], start_line: int,
          comparator: LineComparator) -> Optional[int]:
    """Return the first line index >= start_line where search_lines match"""
    last_start = len(lines) - len(search_lines)
    for i in range(max(0, start_line), last_start + 1):
        if all(comparator(lines[i + j], search_line)
               for j, search_line in enumerate(search_lines)):
            return i
    return None


def find_line_match(lines: List[str], search_lines: List[str],
                    hint_line: int = 0) -> Optional[MatchResult]:
    """
    Locate search_lines in lines using the line-based tiers.

    Each tier first scans from hint_line, then from the top, so an edit that
    targets an earlier region than the previous edit still matches.
    """
    start_candidates = [max(0, hint_line)]
    if start_candidates[0] != 0:
        start_candidates.append(0)
    for tier, comparator in _LINE_TIERS:
        for start_line in start_candidates:
            found = _scan(lines, search_lines, start_line, comparator)
            if found is not None:
                return MatchResult(found, found + len(search_lines), tier)
    return None


def apply_edits(xml_content: str, edits: Iterable) -> PatchReport:
    """
    Apply search/replace edits in order and report how far the batch got.

    The document is formatted once up front and each search pattern is
    formatted the same way. Replacement text is spliced in verbatim. The
    substring tier works on the unsplit formatted text, reformats the whole
    document afterwards and restarts the next search from the top.

    Processing stops at the first edit that no tier can locate; edits before
    it stay applied in report.document.

    Args:
        xml_content: The original XML string
        edits: Edit objects, {"search", "replace"} dicts or 2-tuples

    Returns:
        PatchReport with the resulting document, applied count, tier per
        applied edit and the failing edit (if any)
    """
    result = format_xml(xml_content)
    tiers: List[str] = []
    match_lines: List[Optional[int]] = []
    next_search_hint_line = 0

    for index, raw_edit in enumerate(edits):
        edit = Edit.coerce(raw_edit)
        formatted_search = format_xml(edit.search)
        search_lines = _split_lines(formatted_search)
        if not search_lines:
            # Blank search never matches; replace is not inserted at the hint line
            return PatchReport(result, index, tiers, EditFailure(index, edit.search), match_lines)

        result_lines = result.split('\n')
        match = find_line_match(result_lines, search_lines, next_search_hint_line)

        if match is None:
            search_str = formatted_search.strip()
            position = result.find(search_str)
            if position == -1:
                return PatchReport(result, index, tiers, EditFailure(index, edit.search), match_lines)
            result = format_xml(
                result[:position] + edit.replace.strip() + result[position + len(search_str):]
            )
            tiers.append(TIER_SUBSTRING)
            match_lines.append(None)
            next_search_hint_line = 0
            continue

        replace_lines = _split_lines(edit.replace)
        result_lines[match.start_line:match.end_line] = replace_lines
        result = '\n'.join(result_lines)
        tiers.append(match.tier)
        match_lines.append(match.start_line + 1)
        next_search_hint_line = match.start_line + len(replace_lines)

    return PatchReport(result, len(tiers), tiers, match_lines=match_lines)


def replace_xml_parts(xml_content: str, search_replace_pairs: Iterable) -> str:
    """
    Replace parts of the XML using search/replace pairs.

    Raises:
        PatchNotFoundError: If a search pattern cannot be located; carries the
            pattern, its index and the partially edited document
    """
    report = apply_edits(xml_content, search_replace_pairs)
    if report.error:
        raise PatchNotFoundError(
            report.error.search,
            index=report.error.index,
            partial_document=report.document,
            applied_count=report.applied_count,
        )
    return report.document

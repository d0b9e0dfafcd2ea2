#!/usr/bin/env python3
"""
ABOUTME: Shared constants, data classes and errors for draw.io diagram sync
ABOUTME: Used by the scanner, formatter, fragment repair, root merger, patch engine and codec
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional


# ============================================================
# Constants
# ============================================================

# Element collected from streamed generator output
DEFAULT_ELEMENT_TAG = "mxCell"

# Container delimiting the root boundary of a diagram
DEFAULT_CONTAINER_TAG = "root"

# Outer wrapper that owns the root container
DEFAULT_WRAPPER_TAG = "mxGraphModel"

# Indentation used for repaired fragment children
FRAGMENT_INDENT = "    "

# Indentation used by the formatter per nesting level
FORMAT_INDENT = "  "

# Match tiers, strictest first
TIER_EXACT = "exact"
TIER_TRIMMED = "trimmed"
TIER_SUBSTRING = "substring"

# Blank draw.io file loaded on "clear"
EMPTY_MXFILE = (
    '<mxfile><diagram name="Page-1" id="page-1"><mxGraphModel><root>'
    '<mxCell id="0"/><mxCell id="1" parent="0"/>'
    '</root></mxGraphModel></diagram></mxfile>'
)

# ============================================================
# Errors
# ============================================================

class DiagramSyncError(Exception):
    """Base class for diagram sync errors"""


class EmptyInputError(DiagramSyncError, ValueError):
    """Raised when a required document or fragment is empty or blank"""


class SnapshotFormatError(DiagramSyncError, ValueError):
    """Raised when an exported snapshot lacks one of its nested layers"""


class PatchNotFoundError(DiagramSyncError):
    """
    Raised when an edit's search text cannot be located by any match tier.

    Edits before the failing one stay applied: partial_document holds the
    document as it was when the batch stopped.
    """

    def __init__(self, search: str, index: int = 0,
                 partial_document: Optional[str] = None, applied_count: int = 0):
        self.search = search
        self.index = index
        self.partial_document = partial_document
        self.applied_count = applied_count
        super().__init__(
            f"Search pattern not found in the diagram (edit #{index + 1}): "
            f"{format_text_preview(search, 80)}"
        )

# ============================================================
# Data Classes
# ============================================================

@dataclass(frozen=True)
class Edit:
    """Single search/replace pair from an edit_diagram tool call"""
    search: str
    replace: str

    @classmethod
    def coerce(cls, value: Any) -> 'Edit':
        """
        Build an Edit from an Edit, a {"search", "replace"} dict or a 2-tuple.

        Raises:
            ValueError: If the value has no usable search/replace pair
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            if 'search' not in value:
                raise ValueError(f"Edit is missing 'search': {value!r}")
            return cls(str(value['search']), str(value.get('replace') or ''))
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return cls(str(value[0]), str(value[1]))
        raise ValueError(f"Unsupported edit value: {value!r}")

    def to_dict(self) -> dict:
        return {'search': self.search, 'replace': self.replace}


@dataclass
class MatchResult:
    """Line range located for one edit"""
    start_line: int
    end_line: int                # exclusive
    tier: str


@dataclass
class EditFailure:
    """Edit that stopped a batch"""
    index: int
    search: str


@dataclass
class PatchReport:
    """Outcome of applying a batch of edits"""
    document: str
    applied_count: int
    tiers: List[str] = field(default_factory=list)  # match tier per applied edit
    error: Optional[EditFailure] = None
    # 1-based first line replaced per applied edit; None for substring matches
    match_lines: List[Optional[int]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.error is None

# ============================================================
# Helper Functions
# ============================================================

def format_text_preview(text: str, max_len: int = 30) -> str:
    """
    Format text for log output: remove newlines and truncate.

    Args:
        text: Text to format
        max_len: Maximum length before truncation

    Returns:
        Clean, truncated text with "..." suffix if truncated
    """
    clean = text.replace('\n', ' ').replace('\r', '').replace('\t', ' ')
    # Collapse multiple spaces
    while '  ' in clean:
        clean = clean.replace('  ', ' ')
    clean = clean.strip()
    if len(clean) > max_len:
        return clean[:max_len] + "..."
    return clean


def is_blank(text: Optional[str]) -> bool:
    return not text or not text.strip()

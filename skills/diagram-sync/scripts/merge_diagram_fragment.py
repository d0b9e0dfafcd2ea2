#!/usr/bin/env python3
"""
ABOUTME: Merges a generated <root> fragment (or a raw streamed response) into a diagram file
ABOUTME: Optionally repairs truncated stream output and validates the merged result
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from drawio_sync.common import (
    DEFAULT_CONTAINER_TAG,
    DEFAULT_ELEMENT_TAG,
    DEFAULT_WRAPPER_TAG,
    EMPTY_MXFILE,
)
from drawio_sync.fragment_repair import collect_complete_elements, convert_to_legal_xml
from drawio_sync.root_merger import merge_root_xml
from drawio_sync.validation import validate_diagram_xml
from drawio_sync.wire_codec import coerce_diagram_xml, encode_diagram_xml


def load_base(path: Optional[str], use_template: bool) -> str:
    """Load the live diagram; a missing file means an empty (or template) canvas"""
    text = Path(path).read_text(encoding='utf-8') if path and Path(path).exists() else ''
    if not text.strip():
        return EMPTY_MXFILE if use_template else ''
    xml = coerce_diagram_xml(text)
    if xml is None:
        raise ValueError(f"Base diagram cannot be decoded: {path}")
    return xml


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Merge a generated diagram fragment into a draw.io diagram"
    )
    parser.add_argument('base_file', help='Live diagram file (created if missing)')
    parser.add_argument('fragment_file', help='Generated fragment or raw streamed response')
    parser.add_argument('-o', '--output', help='Output file path (default: overwrite base_file)')
    parser.add_argument('--stream', action='store_true',
                        help='Treat the fragment as a possibly truncated stream buffer and repair it')
    parser.add_argument('--element-tag', default=DEFAULT_ELEMENT_TAG,
                        help=f'Element collected when repairing (default: {DEFAULT_ELEMENT_TAG})')
    parser.add_argument('--container-tag', default=DEFAULT_CONTAINER_TAG,
                        help=f'Root boundary element (default: {DEFAULT_CONTAINER_TAG})')
    parser.add_argument('--wrapper-tag', default=DEFAULT_WRAPPER_TAG,
                        help=f'Outer model element (default: {DEFAULT_WRAPPER_TAG})')
    parser.add_argument('--template', action='store_true',
                        help='Start from the blank draw.io file when the base is missing')
    parser.add_argument('--validate', action='store_true',
                        help='Validate the fragment before merging; exit 1 on errors')
    parser.add_argument('--encode', action='store_true',
                        help='Write the result as a compressed draw.io payload')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Verbose output')

    args = parser.parse_args(argv)

    try:
        base_xml = load_base(args.base_file, args.template)
        fragment = Path(args.fragment_file).read_text(encoding='utf-8')

        if args.stream:
            complete = collect_complete_elements(fragment, args.element_tag)
            fragment = convert_to_legal_xml(fragment, args.element_tag, args.container_tag)
            if args.verbose:
                print(f"  [Repair] {len(complete)} complete <{args.element_tag}> element(s) kept")

        if args.validate:
            result = validate_diagram_xml(fragment)
            if not result.is_valid:
                print("\nValidation errors:")
                for error in result.errors:
                    location = f" (line {error.line}, column {error.column})" if error.line else ""
                    print(f"  - [{error.code}] {error.message}{location}")
                return 1
            if args.verbose:
                print("  [Validate] fragment OK")

        merged = merge_root_xml(base_xml, fragment, args.container_tag, args.wrapper_tag)

        output_path = Path(args.output or args.base_file)
        output_path.write_text(encode_diagram_xml(merged) if args.encode else merged,
                               encoding='utf-8')
        print(f"Saved to: {output_path}")
        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

if __name__ == '__main__':
    sys.exit(main())

#!/usr/bin/env python3
"""
ABOUTME: Applies edit_diagram search/replace pairs to a draw.io diagram file
ABOUTME: Writes the (partially) edited diagram and a retry file for the edits that failed
"""

import argparse
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from drawio_sync.common import Edit, PatchReport, format_text_preview
from drawio_sync.patch_engine import apply_edits
from drawio_sync.wire_codec import coerce_diagram_xml, encode_diagram_xml

# ============================================================
# Main Class: DiagramEditApplier
# ============================================================

class DiagramEditApplier:
    """
    Applies a batch of edits to one diagram file.

    Edits run in order; the batch stops at the first edit whose search text
    cannot be located, keeping everything applied before it.
    """

    def __init__(self, diagram_path: str, edits_path: str, output_path: str = None,
                 encode_output: bool = False, verbose: bool = False):
        self.diagram_path = Path(diagram_path)
        self.edits_path = Path(edits_path)
        self.encode_output = encode_output
        self.verbose = verbose

        self.diagram_xml = self._load_diagram()
        self.edits = self._load_edits()

        self.output_path = Path(output_path) if output_path else \
            self.diagram_path.with_stem(self.diagram_path.stem + '_edited')

        self.report: Optional[PatchReport] = None

    # ==================== Loading ====================

    def _load_diagram(self) -> str:
        """Load diagram XML; payloads and snapshot data URLs are decoded first"""
        text = self.diagram_path.read_text(encoding='utf-8')
        xml = coerce_diagram_xml(text)
        if xml is None:
            raise ValueError(f"Diagram file is empty or cannot be decoded: {self.diagram_path}")
        return xml

    def _load_edits(self) -> List[Edit]:
        """
        Load edits file.

        Supports three formats:
        1. JSON array of {"search", "replace"} objects
        2. JSON object with an "edits" array (edit_diagram tool-call input)
        3. JSONL, one edit per line; meta lines (type == "meta") are skipped
        """
        text = self.edits_path.read_text(encoding='utf-8').strip()
        if not text:
            return []

        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            data = None

        if isinstance(data, dict) and 'edits' in data:
            data = data['edits']
        if isinstance(data, list):
            return [Edit.coerce(item) for item in data]
        if isinstance(data, dict) and 'search' in data:
            return [Edit.coerce(data)]

        edits = []
        for line_num, line in enumerate(text.splitlines(), 1):
            line = line.strip()
            if not line:
                continue
            try:
                item = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON in edits file at line {line_num}: {e}")
            if isinstance(item, dict) and item.get('type') == 'meta':
                continue
            try:
                edits.append(Edit.coerce(item))
            except ValueError as e:
                raise ValueError(f"Invalid edit at line {line_num}: {e}")
        return edits

    # ==================== Apply & Save ====================

    def apply(self) -> PatchReport:
        """Apply all edits and print per-edit progress when verbose"""
        self.report = apply_edits(self.diagram_xml, self.edits)

        if self.verbose:
            for index, (tier, line) in enumerate(zip(self.report.tiers, self.report.match_lines)):
                preview = format_text_preview(self.edits[index].search, 60)
                location = f" at line {line}" if line is not None else ""
                print(f"  [Edit {index + 1}] {tier} match{location}: {preview}")
            if self.report.error:
                preview = format_text_preview(self.report.error.search, 60)
                print(f"  [Edit {self.report.error.index + 1}] not found: {preview}")

        return self.report

    def save(self, dry_run: bool = False):
        """Save edited diagram (raw XML, or a compressed payload with --encode)"""
        if dry_run:
            print(f"[DRY RUN] Would save to: {self.output_path}")
            return

        content = self.report.document
        if self.encode_output:
            content = encode_diagram_xml(content)
        self.output_path.write_text(content, encoding='utf-8')
        print(f"Saved to: {self.output_path}")

    def save_failed_items(self) -> Optional[Path]:
        """
        Save the failing edit and every edit after it to JSONL for retry.

        Returns:
            Path to failed items file if the batch stopped early, None otherwise
        """
        if not self.report or not self.report.error:
            return None

        failed_index = self.report.error.index
        fail_path = self.edits_path.with_name(self.edits_path.stem + '_fail.jsonl')

        with open(fail_path, 'w', encoding='utf-8') as f:
            meta_line: Dict = {
                'type': 'meta',
                'diagram_file': str(self.output_path),
                'original_edits': self.edits_path.name,
                'generated_at': datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S%z'),
                'failed_count': len(self.edits) - failed_index,
                'total_count': len(self.edits),
            }
            json.dump(meta_line, f, ensure_ascii=False)
            f.write('\n')

            for index in range(failed_index, len(self.edits)):
                data = self.edits[index].to_dict()
                if index == failed_index:
                    data['_error'] = "Search pattern not found in the diagram"
                json.dump(data, f, ensure_ascii=False)
                f.write('\n')

        return fail_path

# ============================================================
# Main Function
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Apply search/replace edits to a draw.io diagram"
    )
    parser.add_argument('diagram_file', help='Diagram file (XML, compressed payload or xmlsvg data URL)')
    parser.add_argument('edits_file', help='Edits file (JSON array, {"edits": [...]} or JSONL)')
    parser.add_argument('-o', '--output', help='Output file path')
    parser.add_argument('--encode', action='store_true',
                        help='Write the result as a compressed draw.io payload')
    parser.add_argument('--dry-run', action='store_true',
                        help='Apply edits but do not save')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Verbose output')

    args = parser.parse_args(argv)

    try:
        applier = DiagramEditApplier(
            args.diagram_file,
            args.edits_file,
            output_path=args.output,
            encode_output=args.encode,
            verbose=args.verbose
        )

        print(f"Source file: {applier.diagram_path}")
        print(f"Output to: {applier.output_path}")
        print(f"Edits: {len(applier.edits)}")
        if args.verbose:
            print("-" * 50)

        report = applier.apply()

        fail_count = len(applier.edits) - report.applied_count
        if report.error:
            print("\nFailed edit:")
            print(f"  - [#{report.error.index + 1}] Search pattern not found: "
                  f"{format_text_preview(report.error.search)}")
            if fail_count > 1:
                print(f"  - {fail_count - 1} later edit(s) not attempted")

        print("-" * 50)
        print(f"Completed: {report.applied_count} succeeded, {fail_count} failed")

        applier.save(dry_run=args.dry_run)

        fail_file = applier.save_failed_items()
        if fail_file:
            print(f"\n{'=' * 50}")
            print(f"Failed edits saved to: {fail_file}")
            print(f"  → Fix the search text and retry against the saved output")
            print(f"  → Command: python {sys.argv[0]} {applier.output_path} {fail_file}")
            print(f"{'=' * 50}")
            return 1

        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

if __name__ == '__main__':
    sys.exit(main())

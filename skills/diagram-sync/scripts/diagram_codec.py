#!/usr/bin/env python3
"""
ABOUTME: Command-line access to the draw.io wire codec
ABOUTME: encode / decode payloads, extract XML from xmlsvg snapshots, build viewer links
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from drawio_sync.wire_codec import (
    build_viewer_url,
    coerce_diagram_xml,
    decode_diagram_xml,
    encode_diagram_xml,
    extract_diagram_xml,
)


def _write(text: str, output: Optional[str]):
    if output:
        Path(output).write_text(text, encoding='utf-8')
        print(f"Saved to: {output}")
    else:
        print(text)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Encode, decode and extract draw.io diagram XML"
    )
    parser.add_argument('command', choices=['encode', 'decode', 'extract', 'viewer-url'],
                        help='Operation to run')
    parser.add_argument('input_file', help='Input file')
    parser.add_argument('-o', '--output', help='Output file path (default: stdout)')
    parser.add_argument('--title', default='',
                        help='Viewer title for viewer-url')
    parser.add_argument('--viewer-base', default=None,
                        help='Viewer base URL (default: $DRAWIO_VIEWER_URL or https://viewer.diagrams.net)')

    args = parser.parse_args(argv)

    try:
        text = Path(args.input_file).read_text(encoding='utf-8')

        if args.command == 'encode':
            _write(encode_diagram_xml(text), args.output)
        elif args.command == 'decode':
            xml = decode_diagram_xml(text)
            if xml is None:
                print("Error: payload could not be decoded", file=sys.stderr)
                return 1
            _write(xml, args.output)
        elif args.command == 'extract':
            _write(extract_diagram_xml(text), args.output)
        else:
            xml = coerce_diagram_xml(text)
            url = build_viewer_url(xml, args.title, base_url=args.viewer_base) if xml else None
            if url is None:
                print("Error: diagram could not be encoded for the viewer", file=sys.stderr)
                return 1
            _write(url, args.output)
        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

if __name__ == '__main__':
    sys.exit(main())

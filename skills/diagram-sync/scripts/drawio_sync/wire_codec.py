#!/usr/bin/env python3
"""
ABOUTME: Compressed wire format shared with the draw.io viewer (deflate + base64 + urlencode)
ABOUTME: Also unwraps diagram XML from exported xmlsvg snapshots
"""

import base64
import binascii
import os
import re
import zlib
from html import unescape
from typing import Optional, Protocol
from urllib.parse import quote, unquote

from defusedxml import ElementTree as ET
from defusedxml.common import DefusedXmlException

from .common import EmptyInputError, SnapshotFormatError, is_blank


# Raw DEFLATE stream: negative window bits means no zlib/gzip header
WINDOW_BITS = -15
COMPRESSION_LEVEL = 9

# Characters encodeURIComponent leaves alone beyond quote()'s defaults
URI_COMPONENT_SAFE = "!*'()"

# A "%" not followed by two hex digits; decodeURIComponent rejects these
_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")

DEFAULT_VIEWER_URL = "https://viewer.diagrams.net"
DEFAULT_VIEWER_TITLE = "Diagram"

SNAPSHOT_CONTENT_ATTR = "content"
SNAPSHOT_DIAGRAM_TAG = "diagram"


def _local_name(tag: str) -> str:
    """Strip an ElementTree '{namespace}' prefix"""
    return tag.rsplit('}', 1)[-1] if isinstance(tag, str) else ''


def _unwrap_data_url(container: str) -> str:
    """Return the markup held by a data: URL, or the input unchanged"""
    if not container.startswith('data:'):
        return container
    header, _, body = container.partition(',')
    if header.endswith(';base64'):
        try:
            return base64.b64decode(body).decode('utf-8')
        except (binascii.Error, UnicodeDecodeError) as e:
            raise SnapshotFormatError(f"Snapshot data URL is not valid base64 markup: {e}")
    return unquote(body)


class WireFormat(Protocol):
    """Capability to move diagram XML in and out of a viewer's interchange format"""

    def encode(self, xml: str) -> str: ...

    def decode(self, payload: str) -> Optional[str]: ...

    def extract(self, container: str) -> str: ...


class DrawioWireFormat:
    """
    draw.io's compressed diagram encoding.

    payload = base64(raw_deflate(utf8(encodeURIComponent(xml)))), window bits
    -15. A zlib- or gzip-framed stream inflates to garbage or fails here, so
    both directions must agree on raw framing.
    """

    def __init__(self, content_attr: str = SNAPSHOT_CONTENT_ATTR,
                 diagram_tag: str = SNAPSHOT_DIAGRAM_TAG):
        self.content_attr = content_attr
        self.diagram_tag = diagram_tag

    def encode(self, xml: str) -> str:
        """
        Encode diagram XML into a viewer payload.

        Raises:
            EmptyInputError: If xml is empty or blank
        """
        if is_blank(xml):
            raise EmptyInputError("Diagram XML must not be empty")
        url_encoded = quote(xml, safe=URI_COMPONENT_SAFE)
        compressor = zlib.compressobj(COMPRESSION_LEVEL, zlib.DEFLATED, WINDOW_BITS)
        compressed = compressor.compress(url_encoded.encode('utf-8')) + compressor.flush()
        return base64.b64encode(compressed).decode('ascii')

    def decode(self, payload: str) -> Optional[str]:
        """
        Decode a viewer payload back to diagram XML.

        Returns:
            The XML, or None when any stage (base64, inflate, UTF-8, percent-decoding) fails
        """
        if is_blank(payload):
            return None
        try:
            compressed = base64.b64decode(''.join(payload.split()), validate=True)
            inflated = zlib.decompress(compressed, WINDOW_BITS)
            url_encoded = inflated.decode('utf-8')
            if _MALFORMED_ESCAPE.search(url_encoded):
                return None
            return unquote(url_encoded, errors='strict')
        except (binascii.Error, zlib.error, UnicodeDecodeError, ValueError):
            return None

    def extract(self, container: str) -> str:
        """
        Extract diagram XML from an exported xmlsvg snapshot.

        Layers: <svg content="&lt;mxfile&gt;..."> (optionally as a data: URL)
        -> entity-unescaped <mxfile> markup -> <diagram> text payload -> XML.

        Raises:
            SnapshotFormatError: Naming the layer that is missing
        """
        if is_blank(container):
            raise SnapshotFormatError("No snapshot element found in the input string")
        markup = _unwrap_data_url(container.strip())

        try:
            outer = ET.fromstring(markup)
        except (ET.ParseError, DefusedXmlException) as e:
            raise SnapshotFormatError(f"No snapshot element found in the input string: {e}")

        encoded_content = outer.get(self.content_attr)
        if not encoded_content:
            raise SnapshotFormatError(
                f"Snapshot element does not have a '{self.content_attr}' attribute"
            )

        try:
            inner = ET.fromstring(unescape(encoded_content))
        except (ET.ParseError, DefusedXmlException) as e:
            raise SnapshotFormatError(f"Snapshot content is not valid markup: {e}")

        diagram = next(
            (elem for elem in inner.iter() if _local_name(elem.tag) == self.diagram_tag),
            None,
        )
        if diagram is None:
            raise SnapshotFormatError(f"No {self.diagram_tag} element found")

        # Uncompressed exports nest the model directly
        children = list(diagram)
        if children:
            return ET.tostring(children[0], encoding='unicode').strip()

        encoded_data = (diagram.text or '').strip()
        if not encoded_data:
            raise SnapshotFormatError(f"No encoded data found in the {self.diagram_tag} element")

        xml = self.decode(encoded_data)
        if xml is None:
            raise SnapshotFormatError(
                f"Encoded data in the {self.diagram_tag} element could not be decoded"
            )
        return xml


_default_format = DrawioWireFormat()


def encode_diagram_xml(xml: str) -> str:
    return _default_format.encode(xml)


def decode_diagram_xml(encoded: str) -> Optional[str]:
    return _default_format.decode(encoded)


def extract_diagram_xml(xml_svg_string: str) -> str:
    return _default_format.extract(xml_svg_string)


def coerce_diagram_xml(xml_or_encoded: str,
                       wire_format: Optional[WireFormat] = None) -> Optional[str]:
    """
    Accept either diagram XML, an exported snapshot data URL or a payload.

    Returns:
        Diagram XML, or None when the text is blank or cannot be decoded
    """
    wire_format = wire_format or _default_format
    trimmed = (xml_or_encoded or '').strip()
    if not trimmed:
        return None
    if trimmed.startswith('data:'):
        return wire_format.extract(trimmed)
    if trimmed.startswith('<'):
        return trimmed
    return wire_format.decode(trimmed)


def to_base64_xml(xml: str) -> str:
    """
    Plain base64 of the UTF-8 XML (no compression), for data URLs.

    Raises:
        EmptyInputError: If xml is empty or blank
    """
    if is_blank(xml):
        raise EmptyInputError("Diagram XML must not be empty")
    return base64.b64encode(xml.encode('utf-8')).decode('ascii')


def build_viewer_url(xml: str, title: str = '', base_url: Optional[str] = None,
                     wire_format: Optional[WireFormat] = None) -> Optional[str]:
    """
    Build a read-only viewer link carrying the diagram in its #R fragment.

    The viewer base comes from base_url, then DRAWIO_VIEWER_URL, then
    https://viewer.diagrams.net.

    Returns:
        The URL, or None when the diagram cannot be encoded
    """
    wire_format = wire_format or _default_format
    base = (base_url or os.getenv("DRAWIO_VIEWER_URL") or DEFAULT_VIEWER_URL).rstrip('/')
    try:
        encoded = wire_format.encode(xml)
    except (EmptyInputError, UnicodeEncodeError):
        return None
    safe_title = quote(title or DEFAULT_VIEWER_TITLE, safe=URI_COMPONENT_SAFE)
    return f"{base}/?target=blank&lightbox=1&layers=1&nav=1&title={safe_title}#R{encoded}"

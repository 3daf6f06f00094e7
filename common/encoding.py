"""
Conversions between raw bytes, base64 text and data URIs.

The encryption primitive consumes and produces text, so payloads travel
through it as data URIs (``data:<type>;base64,<payload>``).
"""

import base64
import binascii
import re
from typing import Optional, Tuple
from urllib.parse import unquote_to_bytes

from common.constants import DEFAULT_CONTENT_TYPE

_DATA_URI_RE = re.compile(r'^data:(?P<type>[^;,]*)(?P<params>(;[^;,]*)*),(?P<payload>.*)$', re.DOTALL)


def to_base64(data: bytes) -> str:
    """Encode bytes as ASCII base64 text."""
    return base64.b64encode(data).decode('ascii')


def from_base64(text: str) -> bytes:
    """
    Decode base64 text, tolerating missing padding.

    Raises:
        ValueError: If the text is not valid base64
    """
    cleaned = text.strip()
    cleaned += '=' * (-len(cleaned) % 4)
    try:
        return base64.b64decode(cleaned, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e


def to_data_uri(data: bytes, content_type: Optional[str] = None) -> str:
    """Wrap bytes into a base64 data URI."""
    return f"data:{content_type or DEFAULT_CONTENT_TYPE};base64,{to_base64(data)}"


def is_data_uri(text: str) -> bool:
    return text.startswith('data:') and _DATA_URI_RE.match(text) is not None


def parse_data_uri(text: str) -> Tuple[str, bytes]:
    """
    Split a data URI into (content_type, payload bytes).

    Raises:
        ValueError: If the text is not a data URI
    """
    match = _DATA_URI_RE.match(text)
    if not match:
        raise ValueError("Not a data URI")

    content_type = match.group('type') or 'text/plain'
    params = match.group('params') or ''
    payload = match.group('payload')

    if ';base64' in params.lower():
        return content_type, from_base64(payload)

    return content_type, unquote_to_bytes(payload)


def encode_for_primitive(data: bytes, content_type: Optional[str] = None) -> str:
    """Shape raw bytes into the text the encryption primitive expects."""
    return to_data_uri(data, content_type)


def decode_from_primitive(text: str) -> bytes:
    """
    Reinterpret decrypted primitive output as bytes.

    Data URIs are decoded; anything else is taken as the raw decrypted text.
    """
    if is_data_uri(text):
        return parse_data_uri(text)[1]
    return text.encode('utf-8')

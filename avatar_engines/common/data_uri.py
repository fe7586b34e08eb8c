"""Conversion between raw engine output and data URIs."""
from __future__ import annotations

import base64
import binascii
import re
from typing import Tuple, Union
from urllib.parse import unquote_to_bytes

from avatar_engines.common.errors import EncodingError

BytesLike = Union[bytes, bytearray, memoryview]

_MIME_RE = re.compile(r"^[a-z0-9][a-z0-9.+-]*/[a-z0-9][a-z0-9.+-]*$", re.IGNORECASE)
_DATA_URI_RE = re.compile(r"^data:(?P<mime>[^;,]*)(?P<params>(?:;[^;,]*)*),(?P<payload>.*)$", re.DOTALL)


def encode_data_uri(data: BytesLike, mime_type: str) -> str:
    """Encode ``data`` as ``data:<mime>;base64,<payload>``.

    memoryviews are encoded over exactly the bytes they expose, so a view into a
    larger buffer never leaks the surrounding bytes.
    """
    if not isinstance(mime_type, str) or not _MIME_RE.match(mime_type):
        raise EncodingError(f"Invalid MIME type for data URI: {mime_type!r}")
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise EncodingError(f"Cannot encode {type(data).__name__} as a data URI")
    try:
        raw = memoryview(data).cast("B").tobytes()
        payload = base64.b64encode(raw).decode("ascii")
    except (TypeError, ValueError) as exc:
        raise EncodingError(f"Failed to base64-encode output: {exc}") from exc
    return f"data:{mime_type};base64,{payload}"


def is_data_uri(value: str) -> bool:
    return value.startswith("data:")


def decode_data_uri(uri: str) -> Tuple[str, bytes]:
    """Split a data URI into (mime_type, bytes). Raises ValueError when malformed."""
    match = _DATA_URI_RE.match(uri.strip())
    if not match:
        raise ValueError("Malformed data URI")
    mime = match.group("mime") or "text/plain"
    params = [p for p in match.group("params").split(";") if p]
    payload = match.group("payload")
    if "base64" in (p.lower() for p in params):
        try:
            return mime, base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError) as exc:
            raise ValueError(f"Invalid base64 payload: {exc}") from exc
    return mime, unquote_to_bytes(payload)

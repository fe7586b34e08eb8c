from __future__ import annotations

from typing import Optional, Union

BytesLike = Union[bytes, bytearray, memoryview]

# (offset, signature, mime)
_SIGNATURES = [
    (0, b"\x89PNG\r\n\x1a\n", "image/png"),
    (0, b"\xff\xd8\xff", "image/jpeg"),
    (0, b"GIF87a", "image/gif"),
    (0, b"GIF89a", "image/gif"),
    (0, b"BM", "image/bmp"),
    (0, b"\x00\x00\x01\x00", "image/x-icon"),
]


def sniff_mime_type(data: BytesLike) -> Optional[str]:
    """Detect an image MIME type from magic numbers; None when unrecognized."""
    head = bytes(memoryview(data)[:16])
    if len(head) >= 12 and head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    for offset, signature, mime in _SIGNATURES:
        if head[offset:offset + len(signature)] == signature:
            return mime
    return None


def extension_for(mime_type: str) -> str:
    """File extension the engine's format detection understands for a MIME type."""
    subtype = mime_type.split("/", 1)[-1].lower()
    if subtype == "x-icon":
        return "ico"
    return subtype

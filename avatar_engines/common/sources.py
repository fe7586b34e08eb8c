"""Resolve image sources (URL, data URI, bare base64, bytes) into sniffed assets."""
from __future__ import annotations

import base64
import binascii
import logging
from typing import Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict

from avatar_engines.common.data_uri import decode_data_uri, is_data_uri
from avatar_engines.common.errors import SourceFetchError
from avatar_engines.common.mime import extension_for, sniff_mime_type
from avatar_engines.config import runtime_config

logger = logging.getLogger(__name__)

Source = Union[str, bytes, bytearray]


class MediaAsset(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: Optional[str] = None

    @property
    def extension(self) -> Optional[str]:
        return extension_for(self.mime_type) if self.mime_type else None

    @property
    def size_bytes(self) -> int:
        return len(self.data)


def _check_size(data: bytes, limit: int) -> bytes:
    if len(data) > limit:
        raise SourceFetchError(
            f"Source is {len(data)} bytes, limit is {limit}",
            {"size_bytes": len(data), "limit": limit},
        )
    return data


async def _download(url: str, client: Optional[httpx.AsyncClient], limit: int) -> bytes:
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=runtime_config.get_fetch_timeout(), follow_redirects=True)
    try:
        resp = await http.get(url)
        resp.raise_for_status()
        return _check_size(resp.content, limit)
    except httpx.HTTPStatusError as exc:
        raise SourceFetchError(
            f"Fetching {url} returned HTTP {exc.response.status_code}",
            {"url": url, "status_code": exc.response.status_code},
        ) from exc
    except httpx.HTTPError as exc:
        raise SourceFetchError(f"Fetching {url} failed: {exc}", {"url": url}) from exc
    finally:
        if owns_client:
            await http.aclose()


async def fetch_source(source: Source, client: Optional[httpx.AsyncClient] = None) -> bytes:
    """Load the raw bytes behind a source.

    Strings starting with ``data:`` are decoded in place, ``http(s)://`` strings are
    downloaded, and any other string is treated as bare base64.
    """
    limit = runtime_config.get_max_source_bytes()
    if isinstance(source, (bytes, bytearray)):
        return _check_size(bytes(source), limit)
    if not isinstance(source, str) or not source.strip():
        raise SourceFetchError("Image source must be a non-empty string or bytes")

    value = source.strip()
    if is_data_uri(value):
        try:
            _, data = decode_data_uri(value)
        except ValueError as exc:
            raise SourceFetchError(f"Invalid data URI: {exc}") from exc
        return _check_size(data, limit)
    if value.lower().startswith(("http://", "https://")):
        logger.debug("Downloading image source %s", value)
        return await _download(value, client, limit)
    try:
        data = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise SourceFetchError("Source is neither a URL, a data URI nor base64") from exc
    return _check_size(data, limit)


async def load_asset(source: Source, client: Optional[httpx.AsyncClient] = None) -> MediaAsset:
    data = await fetch_source(source, client)
    return MediaAsset(data=data, mime_type=sniff_mime_type(data))

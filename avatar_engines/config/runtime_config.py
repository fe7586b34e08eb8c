"""Runtime configuration helpers for the avatar engines."""
from __future__ import annotations

import os
import shutil
from typing import Optional

DEFAULT_FFMPEG_LOGLEVEL = "error"
DEFAULT_FETCH_TIMEOUT = 15.0
DEFAULT_MAX_SOURCE_BYTES = 10 * 1024 * 1024


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(name, default)


def _float_env(name: str, default: Optional[float]) -> Optional[float]:
    raw = (_get_env(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def get_ffmpeg_binary() -> str:
    return _get_env("AVATAR_FFMPEG_BINARY") or shutil.which("ffmpeg") or "ffmpeg"


def get_engine_workdir() -> Optional[str]:
    """Directory backing the engine's private file namespace; None means a fresh temp dir."""
    return _get_env("AVATAR_ENGINE_WORKDIR") or None


def get_ffmpeg_loglevel() -> str:
    return (_get_env("AVATAR_FFMPEG_LOGLEVEL") or DEFAULT_FFMPEG_LOGLEVEL).strip().lower()


def get_fetch_timeout() -> float:
    return _float_env("AVATAR_FETCH_TIMEOUT", DEFAULT_FETCH_TIMEOUT)


def get_operation_timeout() -> Optional[float]:
    return _float_env("AVATAR_OPERATION_TIMEOUT", None)


def get_max_source_bytes() -> int:
    raw = (_get_env("AVATAR_MAX_SOURCE_BYTES") or "").strip()
    try:
        value = int(raw) if raw else DEFAULT_MAX_SOURCE_BYTES
    except ValueError:
        return DEFAULT_MAX_SOURCE_BYTES
    return value if value > 0 else DEFAULT_MAX_SOURCE_BYTES

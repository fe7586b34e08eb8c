"""Typed failures raised by the avatar operations.

Every stage of an operation either succeeds or raises one of these; the caller
owns retry policy, nothing here retries.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class AvatarProcessingError(RuntimeError):
    """Base class for all avatar operation failures."""

    code = "avatar.processing_failed"
    http_status = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class UnrecognizedFormatError(AvatarProcessingError):
    """An input's bytes did not match any known image signature."""

    code = "avatar.unrecognized_format"
    http_status = 415

    def __init__(self, role: str, message: Optional[str] = None):
        super().__init__(message or f"Invalid image type for {role}", {"role": role})
        self.role = role


class SourceFetchError(AvatarProcessingError):
    code = "avatar.source_fetch_failed"
    http_status = 400


class EngineExecutionError(AvatarProcessingError):
    """The media engine refused to run the command or faulted while running it."""

    code = "avatar.engine_failed"

    def __init__(self, operation: str, returncode: Optional[int] = None, diagnostic: str = ""):
        msg = f"Media engine failed for {operation}"
        if returncode is not None:
            msg += f" (exit code {returncode})"
        if diagnostic:
            msg += f": {diagnostic}"
        super().__init__(msg, {"operation": operation, "returncode": returncode, "diagnostic": diagnostic})
        self.operation = operation
        self.returncode = returncode
        self.diagnostic = diagnostic


class OutputReadError(AvatarProcessingError):
    """The engine ran, but the expected output file is missing or empty."""

    code = "avatar.output_missing"

    def __init__(self, name: str, message: Optional[str] = None):
        super().__init__(message or f"Engine produced no output at {name}", {"file": name})
        self.name = name


class EncodingError(AvatarProcessingError):
    code = "avatar.encoding_failed"


class OperationTimeoutError(AvatarProcessingError):
    code = "avatar.timeout"
    http_status = 504

    def __init__(self, operation: str, timeout: float):
        super().__init__(
            f"{operation} did not finish within {timeout:g}s",
            {"operation": operation, "timeout_s": timeout},
        )
        self.operation = operation
        self.timeout = timeout


class VirtualFileWriteError(AvatarProcessingError):
    code = "avatar.write_failed"

    def __init__(self, name: str, message: Optional[str] = None):
        super().__init__(message or f"Could not write {name} to the engine", {"file": name})
        self.name = name

"""Canonical error envelope for avatar engine responses.

Standardized structure:
{
  "error": {
    "code": "string",
    "message": "string",
    "http_status": 400,
    "operation": "string | null",
    "details": {}
  }
}
"""
from __future__ import annotations

from typing import Any, Dict, NoReturn, Optional

from fastapi import HTTPException
from pydantic import BaseModel, Field

from avatar_engines.common.errors import AvatarProcessingError


class ErrorDetail(BaseModel):
    """Canonical error detail structure."""
    code: str
    message: str
    http_status: int
    operation: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class ErrorEnvelope(BaseModel):
    """Top-level error envelope returned by all avatar endpoints."""
    error: ErrorDetail


def build_error_envelope(
    code: str,
    message: str,
    status_code: int = 400,
    operation: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> ErrorEnvelope:
    """Construct an ErrorEnvelope (without raising)."""
    return ErrorEnvelope(
        error=ErrorDetail(
            code=code,
            message=message,
            http_status=status_code,
            operation=operation,
            details=details or {},
        )
    )


def error_response(
    code: str,
    message: str,
    status_code: int = 400,
    operation: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> NoReturn:
    """Raise an HTTPException whose body is the canonical error envelope.

    Args:
        code: Machine-readable error code (e.g., "avatar.unrecognized_format")
        message: Human-readable error message
        status_code: HTTP status code (default 400)
        operation: The avatar operation being attempted
        details: Additional context dict
    """
    envelope = build_error_envelope(
        code=code,
        message=message,
        status_code=status_code,
        operation=operation,
        details=details,
    )
    raise HTTPException(status_code=status_code, detail=envelope.model_dump())


def processing_error_response(exc: AvatarProcessingError, operation: Optional[str] = None) -> NoReturn:
    """Map a typed processing failure onto the envelope, keeping its code and status."""
    error_response(
        code=exc.code,
        message=exc.message,
        status_code=exc.http_status,
        operation=operation,
        details=exc.details,
    )

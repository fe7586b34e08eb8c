from __future__ import annotations

import logging

from fastapi import APIRouter

from avatar_engines.avatar_decoration.models import (
    AvatarImageResult,
    CropRequest,
    DecorationRequest,
    GraphPreview,
)
from avatar_engines.avatar_decoration.service import get_avatar_service, preview_graph
from avatar_engines.common.error_envelope import error_response, processing_error_response
from avatar_engines.common.errors import AvatarProcessingError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/avatar", tags=["avatar_decoration"])


@router.post("/crop", response_model=AvatarImageResult)
async def crop(req: CropRequest):
    try:
        return await get_avatar_service().crop(req.source)
    except AvatarProcessingError as exc:
        logger.info("crop failed: %s", exc)
        processing_error_response(exc, operation="crop")


@router.post("/decoration", response_model=AvatarImageResult)
async def decoration(req: DecorationRequest):
    try:
        return await get_avatar_service().decorate(req.avatar_source, req.decoration_source)
    except AvatarProcessingError as exc:
        logger.info("decoration failed: %s", exc)
        processing_error_response(exc, operation="decoration")


@router.get("/graphs/{operation}", response_model=GraphPreview)
def graph(operation: str):
    try:
        return preview_graph(operation)  # type: ignore[arg-type]
    except ValueError as exc:
        error_response(
            code="avatar.unknown_operation",
            message=str(exc),
            status_code=404,
            details={"operation": operation},
        )

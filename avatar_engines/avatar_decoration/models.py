from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, Field

from avatar_engines.filter_graph.models import FilterStage

AvatarOperation = Literal["crop", "decoration"]


class CropRequest(BaseModel):
    source: str = Field(..., min_length=1)  # URL, data URI or bare base64


class DecorationRequest(BaseModel):
    avatar_source: str = Field(..., min_length=1)
    decoration_source: str = Field(..., min_length=1)


class AvatarImageResult(BaseModel):
    operation: AvatarOperation
    data_uri: str
    mime_type: str
    size_bytes: int


class GraphPreview(BaseModel):
    operation: AvatarOperation
    input_count: int
    filter_complex: str
    stages: List[FilterStage] = Field(default_factory=list)

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

PAD_LABEL_RE = re.compile(r"^[A-Za-z0-9_]+$")
RAW_INPUT_RE = re.compile(r"^(?P<index>\d+)(?::(?P<stream>[a-z]))?$")


class FilterStage(BaseModel):
    filter_name: str
    inputs: List[str] = Field(default_factory=list)  # pad labels or raw inputs ("0:v")
    params: Dict[str, Any] = Field(default_factory=dict)  # insertion order is kept
    outputs: List[str] = Field(default_factory=list)

    @field_validator("filter_name")
    @classmethod
    def _filter_name(cls, v: str) -> str:
        if not re.match(r"^[a-z0-9_]+$", v or ""):
            raise ValueError(f"Invalid filter name: {v!r}")
        return v


class FilterGraph(BaseModel):
    stages: List[FilterStage] = Field(default_factory=list)
    input_count: int = 1
    # Labeled pad that carries the final stream; None means the last stage's unlabeled output.
    output_label: Optional[str] = None

    def add_stage(
        self,
        filter_name: str,
        inputs: Optional[List[str]] = None,
        params: Optional[Dict[str, Any]] = None,
        outputs: Optional[List[str]] = None,
    ) -> FilterStage:
        stage = FilterStage(
            filter_name=filter_name,
            inputs=inputs or [],
            params=params or {},
            outputs=outputs or [],
        )
        self.stages.append(stage)
        return stage

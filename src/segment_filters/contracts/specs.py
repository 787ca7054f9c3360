"""Contracts for saved segments and previews."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from segment_filters.contracts.tree import FilterTree


class SegmentSpec(BaseModel):
    segment_id: str
    name: str
    segment_type: Literal["personal", "site"] = "personal"
    filter_tree: FilterTree
    labels: dict[str, str] = Field(default_factory=dict)
    saved_at: Optional[datetime] = None


class PreviewResult(BaseModel):
    matched: int
    total: int
    percent: float = 0.0
    warnings: list[str] = Field(default_factory=list)

"""Contracts package - Pydantic models for segment filters."""

from segment_filters.contracts.outcome import Issue, Outcome, ValidationResult
from segment_filters.contracts.specs import PreviewResult, SegmentSpec
from segment_filters.contracts.trace import EditEvent, EditLog
from segment_filters.contracts.tree import (
    CONDITION_OPERATORS,
    GROUP_OPERATORS,
    OPPOSITE_OPERATORS,
    Condition,
    ConditionOperator,
    ConditionValue,
    FilterNode,
    FilterTree,
    Group,
    GroupOperator,
)

__all__ = [
    # Tree
    "CONDITION_OPERATORS",
    "GROUP_OPERATORS",
    "OPPOSITE_OPERATORS",
    "Condition",
    "ConditionOperator",
    "ConditionValue",
    "FilterNode",
    "FilterTree",
    "Group",
    "GroupOperator",
    # Outcomes
    "Issue",
    "Outcome",
    "ValidationResult",
    # Segments
    "PreviewResult",
    "SegmentSpec",
    # Trace
    "EditEvent",
    "EditLog",
]
